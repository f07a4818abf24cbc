"""
Commands module behavioral tests (runner modes, entry points, faults).

Scope
- Validate single-root default mode and multi-root selection with ``^`` chaining.
- Validate that nothing runs when any part of the argument vector is invalid.
- Validate the __complete, __list, --completion and --help entry points.
- Validate shell mode renders faults and exits with status 1.

Conventions
- Test method names follow CamelCase per project convention.
- Tests use the public API (Runner, runner, invoke) with an injected environment
  and a StringIO standing in for stdout.
"""
import io
import json
import unittest
from typing import Annotated
from unittest import TestCase

from commandeer import Runner, invoke, runner
from commandeer.faults import (
    DuplicatedCommandError,
    HiddenFieldError,
    MissingFlagError,
    UnknownCommandError,
    UnknownShellError,
)

CALLS = []


class Status:
    def run(self):
        """Show the working tree status."""
        CALLS.append("status")


class Repo:
    status: Annotated[Status, "subcommand"]

    def run(self):
        """Inspect the repository."""
        CALLS.append("repo")


class Stats:
    def run(self):
        """Print statistics."""
        CALLS.append("stats")


class Deploy:
    env: Annotated[str, "short=e,enum=dev|prod,default=dev"]
    token: Annotated[str, "env=DEPLOY_TOKEN,required"]
    targets: Annotated[list[str], "positional"]

    def run(self):
        """Deploy the given targets."""
        CALLS.append("deploy:%s:%s" % (self.env, ",".join(self.targets)))


class Hidden:
    _secret: Annotated[str, "flag"]


def tool(*roots, **options):
    options.setdefault("environ", {"DEPLOY_TOKEN": "t"})
    return Runner(*roots, prog="tool", stdout=io.StringIO(), **options)


def output(runner):
    return runner._stdout.getvalue()


class TestMultiRoot(TestCase):
    """Behavioral tests for root selection and chaining across roots."""

    def setUp(self):
        CALLS.clear()
        self.runner = tool(Repo, Stats)

    def testUnmatchedTokenStartsNextRoot(self):
        invoke(self.runner, "repo stats")
        self.assertEqual(CALLS, ["repo", "stats"])

    def testUnknownTokenInsideSubcommandRaises(self):
        with self.assertRaises(UnknownCommandError) as context:
            invoke(self.runner, "repo status stats")
        self.assertEqual(str(context.exception), "unknown command: stats")
        self.assertIn("'^'", context.exception.options["hint"])
        self.assertEqual(CALLS, [])

    def testBreakStartsNextRoot(self):
        invoke(self.runner, "repo status ^ stats")
        self.assertEqual(CALLS, ["status", "stats"])

    def testTypoSuggestsCommand(self):
        with self.assertRaises(UnknownCommandError) as context:
            invoke(self.runner, "repo statu")
        self.assertIn("did you mean 'status'?", context.exception.options["hint"])
        self.assertEqual(CALLS, [])

    def testRootsAreCaseInsensitive(self):
        invoke(self.runner, "STATS")
        self.assertEqual(CALLS, ["stats"])

    def testUnknownRoot(self):
        with self.assertRaises(UnknownCommandError) as context:
            invoke(self.runner, "stat")
        self.assertEqual(context.exception.options["suggestions"][0], "stats")

    def testEmptyPromptPrintsUsage(self):
        invoke(self.runner, [])
        self.assertIn("usage: tool <command>", output(self.runner))
        self.assertEqual(CALLS, [])

    def testDuplicatedRootsRaise(self):
        with self.assertRaises(DuplicatedCommandError):
            tool(Stats, Stats)


class TestSingleRoot(TestCase):
    """Behavioral tests for single-root default mode."""

    def setUp(self):
        CALLS.clear()

    def testArgumentsGoToTheRoot(self):
        invoke(tool(Deploy), "-e prod api web")
        self.assertEqual(CALLS, ["deploy:prod:api,web"])

    def testChainedRuns(self):
        invoke(tool(Deploy), "api ^ -e prod web")
        self.assertEqual(CALLS, ["deploy:dev:api", "deploy:prod:web"])

    def testNothingRunsWhenLaterPartFails(self):
        with self.assertRaises(MissingFlagError):
            invoke(tool(Deploy, environ={}), "--token t api ^ web")
        self.assertEqual(CALLS, [])

    def testEnvironmentIsInjected(self):
        with self.assertRaises(MissingFlagError):
            invoke(tool(Deploy, environ={}), "api")

    def testDecoratorForm(self):
        @runner(prog="tool", environ={}, stdout=io.StringIO())
        def hello():
            CALLS.append("hello")

        self.assertIsInstance(hello, Runner)
        invoke(hello, [])
        self.assertEqual(CALLS, ["hello"])

    def testInvokeWrapsPlainCommands(self):
        invoke(Stats, [])
        self.assertEqual(CALLS, ["stats"])

    def testInvokeRejectsNone(self):
        with self.assertRaises(TypeError):
            invoke(None)

    def testInvokeRejectsNonStringTokens(self):
        with self.assertRaises(TypeError):
            invoke(tool(Stats), [1, 2])

    def testStructuralFaultsRaiseAtConstruction(self):
        with self.assertRaises(HiddenFieldError):
            tool(Hidden)


class TestEntryPoints(TestCase):
    """Behavioral tests for the runner's own entry points."""

    def setUp(self):
        CALLS.clear()

    def testComplete(self):
        runner = tool(Repo, Stats)
        invoke(runner, ["__complete", "tool st"])
        self.assertEqual(output(runner).split(), ["stats"])

    def testList(self):
        runner = tool(Repo, Stats)
        invoke(runner, ["__list"])
        names = [command["name"] for command in json.loads(output(runner))["commands"]]
        self.assertEqual(names, ["repo", "repo status", "stats"])

    def testCompletionScript(self):
        for prompt in ("--completion bash", "--completion=bash"):
            with self.subTest(prompt=prompt):
                runner = tool(Stats)
                invoke(runner, prompt)
                self.assertIn("complete -F _tool_completion tool", output(runner))

    def testCompletionUsesShellVariable(self):
        runner = tool(Stats, environ={"SHELL": "/bin/fish"})
        invoke(runner, "--completion")
        self.assertIn("complete -c tool", output(runner))

    def testCompletionUnknownShell(self):
        with self.assertRaises(UnknownShellError):
            invoke(tool(Stats, environ={"SHELL": "/bin/tcsh"}), "--completion")

    def testHelpDoesNotRun(self):
        runner = tool(Repo, Stats)
        invoke(runner, "repo status --help")
        self.assertIn("Show the working tree status.", output(runner))
        self.assertEqual(CALLS, [])

    def testHelpSkipsValidation(self):
        runner = tool(Deploy, environ={})
        invoke(runner, "--help")
        self.assertIn("--token", output(runner))

    def testHelpForEachChainedCommand(self):
        runner = tool(Repo, Stats)
        invoke(runner, "repo status ^ stats --help")
        self.assertIn("Show the working tree status.", output(runner))
        self.assertIn("Print statistics.", output(runner))

    def testGlobalHelp(self):
        runner = tool(Repo, Stats)
        invoke(runner, "--help")
        self.assertIn("Inspect the repository.", output(runner))


class TestShellMode(TestCase):
    """Behavioral tests for rendered faults in shell mode."""

    def testFaultsExitWithStatusOne(self):
        with self.assertRaises(SystemExit) as context:
            invoke(tool(Repo, Stats, shell=True, colorful=False), "nope")
        self.assertEqual(context.exception.code, 1)


if __name__ == "__main__":
    unittest.main()
