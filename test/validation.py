"""
Validation module behavioral tests (defaults, environment, required flags, choices).

Scope
- Validate precedence: command line, then environment, then default, then the fault.
- Validate that an environment variable satisfies a required flag and that empty ones do not.
- Validate environment, default and choice faults.
- Validate inherited flags are defaulted once per invocation chain.

Conventions
- Test method names follow CamelCase per project convention.
- Environments are injected through Runner(environ=...); os.environ is never touched.
"""
import io
import shlex
import unittest
from typing import Annotated
from unittest import TestCase

from commandeer import Frame, ParseState, Registry, Runner, apply_defaults, build, check_required
from commandeer.faults import (
    InvalidChoiceError,
    InvalidDefaultError,
    InvalidEnvironmentError,
    MissingFlagError,
)


class Serve:
    port: Annotated[int, "short=p,env=APP_PORT,default=8080"]
    token: Annotated[str, "env=APP_TOKEN,required"]
    mode: Annotated[str, "enum=dev|prod,default=dev"]
    labels: Annotated[list[str], "name=label,default=web"]


class Broken:
    count: Annotated[int, "default=many"]


class Leaf:
    pass


class Parent:
    region: Annotated[str, "env=REGION,default=eu"]
    first: Annotated[Leaf, "subcommand"]
    second: Annotated[Leaf, "subcommand"]


def serve(prompt, environ):
    runner = Runner(Serve, environ=environ, stdout=io.StringIO())
    invocation, = runner.plan(shlex.split(prompt))
    return invocation.leaf.instance


class TestPrecedence(TestCase):
    """Behavioral tests for value precedence."""

    def testCommandLineWins(self):
        self.assertEqual(serve("--port 7000", {"APP_PORT": "9000", "APP_TOKEN": "t"}).port, 7000)

    def testEnvironmentBeatsDefault(self):
        self.assertEqual(serve("", {"APP_PORT": "9000", "APP_TOKEN": "t"}).port, 9000)

    def testDefaultWhenNothingElse(self):
        command = serve("", {"APP_TOKEN": "t"})
        self.assertEqual(command.port, 8080)
        self.assertEqual(command.mode, "dev")
        self.assertEqual(command.labels, ["web"])

    def testEmptyEnvironmentIsIgnored(self):
        self.assertEqual(serve("", {"APP_PORT": "", "APP_TOKEN": "t"}).port, 8080)

    def testEnvironmentSatisfiesRequired(self):
        self.assertEqual(serve("", {"APP_TOKEN": "secret"}).token, "secret")

    def testCommandLineSatisfiesRequired(self):
        self.assertEqual(serve("--token abc", {}).token, "abc")

    def testListFlagFromCommandLineSkipsDefault(self):
        self.assertEqual(serve("--label a b", {"APP_TOKEN": "t"}).labels, ["a", "b"])


class TestFaults(TestCase):
    """Behavioral tests for validation faults."""

    def testMissingRequiredFlag(self):
        with self.assertRaises(MissingFlagError) as context:
            serve("", {})
        self.assertEqual(str(context.exception), "missing required flag --token")
        self.assertEqual(context.exception.options["hint"], "pass --token or set $APP_TOKEN")

    def testEmptyEnvironmentDoesNotSatisfyRequired(self):
        with self.assertRaises(MissingFlagError):
            serve("", {"APP_TOKEN": ""})

    def testInvalidEnvironment(self):
        with self.assertRaises(InvalidEnvironmentError) as context:
            serve("", {"APP_PORT": "abc", "APP_TOKEN": "t"})
        self.assertEqual(str(context.exception), "invalid value for env APP_PORT: parsing int 'abc': invalid syntax")

    def testInvalidDefault(self):
        with self.assertRaises(InvalidDefaultError) as context:
            Runner(Broken, environ={}, stdout=io.StringIO()).plan([])
        self.assertEqual(str(context.exception), "invalid default for --count: parsing int 'many': invalid syntax")

    def testInvalidChoice(self):
        with self.assertRaises(InvalidChoiceError) as context:
            serve("--mode qa", {"APP_TOKEN": "t"})
        self.assertEqual(str(context.exception), "invalid value 'qa' for --mode: must be one of dev, prod")


class TestInheritedFlags(TestCase):
    """Behavioral tests for flags shared by chained siblings."""

    def testParentDefaultIsAppliedOnce(self):
        runner = Runner(Parent, environ={"REGION": "us"}, stdout=io.StringIO())
        first, second = runner.plan(["first", "^", "second"])
        self.assertIs(first[0].instance, second[0].instance)
        self.assertEqual(first[0].instance.region, "us")

    def testCommandLineValueIsKept(self):
        runner = Runner(Parent, environ={"REGION": "us"}, stdout=io.StringIO())
        first, second = runner.plan(["--region", "ap", "first", "^", "second"])
        self.assertEqual(second[0].instance.region, "ap")


class TestHelpers(TestCase):
    """Behavioral tests for apply_defaults() and check_required()."""

    def testSourcesAreRecorded(self):
        node = build(Serve)
        registry = Registry.collect((Frame(node, node.spawn()),))
        state = ParseState()
        apply_defaults(registry, state, {"APP_PORT": "1"})
        port = registry.lookup("--port")
        mode = registry.lookup("--mode")
        self.assertTrue(port.env_applied)
        self.assertFalse(port.default_applied)
        self.assertTrue(mode.default_applied)
        self.assertTrue(state.resolved(port))
        with self.assertRaises(MissingFlagError):
            check_required(registry, state)


if __name__ == "__main__":
    unittest.main()
