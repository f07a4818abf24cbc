"""
Commandeer runner: select roots, plan the whole argument vector, then dispatch.

What this module provides
- Runner: owns the built root commands and the runtime options (shell, fancy, colorful,
  default mode, environment, output stream).
- runner(...): factory, usable directly or as a decorator over a single root.
- invoke(obj, prompt): convenience entry point for runners, nodes, classes and functions.

Entry points handled before planning (first token)
- ``__complete LINE``: print completion candidates, one per line.
- ``__list``: print every command as JSON.
- ``--completion[=SHELL]`` / ``--completion SHELL``: print the shell script ($SHELL when omitted).
- ``--help`` anywhere: print help for each command the arguments resolve to.

Quick start
    from typing import Annotated
    from commandeer import invoke

    class Deploy:
        env: Annotated[str, "flag,short=e,enum=dev|prod,default=dev"]
        targets: Annotated[list[str], "positional"]

        def run(self):
            \"\"\"Deploy the given targets.\"\"\"
            print(self.env, self.targets)

    if __name__ == "__main__":
        invoke(Deploy, "-e prod api web")
"""
import difflib
import os.path
import shlex
import sys
from collections.abc import Iterable

from rich.console import Console

from .completion import complete, detect_shell, script
from .dispatcher import Context, dispatch
from .faults import *
from .formatter import listing, render_help, render_usage
from .nodes import build
from .resolver import BREAK, ParseState, walk
from .utils import *


class Runner:
    """
    Runs argument vectors against one or more root commands.

    Modes
    - single root with default=True: arguments go straight to the root, which is walked
      again for as long as it makes progress (``cmd a ^ b``).
    - otherwise: the first token selects a root (case-insensitively) and ``^`` separates
      chained roots.

    Every invocation is planned (resolved and validated) before the first action runs;
    dispatch stops at the first failing invocation.
    """
    __introspectable__ = (
        "roots",
        "prog",
        "shell",
        "fancy",
        "colorful",
        "default",
    )

    roots = mirror("roots")
    prog = mirror("prog")
    shell = mirror("shell")
    fancy = mirror("fancy")
    colorful = mirror("colorful")
    default = mirror("default")

    def __init__(
            self,
            *roots,
            prog=Unset,
            shell=False,
            fancy=False,
            colorful=True,
            default=True,
            environ=Unset,
            stdout=Unset,
    ):
        if not roots:
            raise TypeError("Runner() requires at least one root command")
        self._prog = coalesce(prog, getattr(__import__("__main__"), "__prog__", os.path.basename(sys.argv[0]) or "command"))
        self._shell = bool(shell)
        self._fancy = bool(fancy)
        self._colorful = bool(colorful)
        self._default = bool(default)
        self._environ = coalesce(environ, os.environ)
        self._stdout = coalesce(stdout, None)
        self._roots = ()

        nodes = []
        seen = {}
        try:
            for root in roots:
                node = build(root)
                if (folded := node.name.casefold()) in seen:
                    raise DuplicatedCommandError(
                        "root command %s is registered twice" % node.name,
                        hint="give one of them another name with command_name()",
                    )
                seen[folded] = node
                nodes.append(node)
        except CommandException as fault:
            self.trigger(fault)
        self._roots = tuple(nodes)

    def __repr__(self):
        return "Runner(%s)" % ", ".join(root.name for root in self._roots)

    def __rich_repr__(self):
        for name in self.__introspectable__:
            yield name, getattr(self, name)

    @property
    def console(self):
        return Console(file=self._stdout, no_color=not self._colorful, highlight=False)

    def trigger(self, fault, /, **options):
        """Surface a fault with this runner's rendering options (raise or render-and-exit)."""
        code = getattr(fault, "code", Unset)
        if isinstance(code, FaultCode) and "docs" not in options:
            options["docs"] = getdoc(code)
        trigger(fault, **options, tool=self, shell=self._shell, fancy=self._fancy, colorful=self._colorful)

    def _echo(self, text):
        print(text, file=self._stdout or sys.stdout)

    def _unknown_root(self, token, node=None):
        names = [root.name for root in self._roots]
        if node is not None:
            names.extend(node.children)
        suggestions = difflib.get_close_matches(token, names, 3)
        try:
            hint = "did you mean %r? run '%s --help' to list commands" % (suggestions[0], self._prog)
        except IndexError:
            hint = "run '%s --help' to list commands" % self._prog
        return UnknownCommandError("unknown command: %s" % token, hint=hint, suggestions=suggestions)

    def _root(self, token):
        folded = token.casefold()
        for root in self._roots:
            if root.name.casefold() == folded:
                return root
        return None

    def plan(self, tokens, /, *, enforce=True):
        """
        Resolve and validate ``tokens`` into invocations without running anything.

        ``enforce=False`` plans leniently (incomplete input tolerated, nothing required),
        which is how help-only mode finds the commands to describe.
        """
        options = dict(environ=self._environ, allow_incomplete=not enforce, enforce=enforce)
        remaining = list(tokens)
        invocations = []
        node = None

        if len(self._roots) == 1 and self._default:
            root = self._roots[0]
            while remaining and remaining[0] == BREAK:
                remaining = remaining[1:]
            while True:
                planned, rest = walk(root, remaining, (), ParseState(), explicit=False, **options)
                if rest and rest == remaining:
                    raise self._unknown_root(rest[0], root)
                invocations.extend(planned)
                while rest and rest[0] == BREAK:
                    rest = rest[1:]
                if not rest:
                    return invocations
                remaining = rest

        while remaining:
            if remaining[0] == BREAK:
                remaining = remaining[1:]
                continue
            if (root := self._root(remaining[0])) is None:
                raise self._unknown_root(remaining[0], node)
            planned, remaining = walk(root, remaining[1:], (), ParseState(), explicit=False, **options)
            invocations.extend(planned)
            node = planned[-1].leaf.node
        return invocations

    def run(self, tokens, /, context=Unset):
        """Plan ``tokens`` and dispatch every invocation in order."""
        invocations = self.plan(tokens)
        context = coalesce(context, Context())
        for invocation in invocations:
            dispatch(invocation, context)

    def help(self, tokens, /):
        """Print help for every command ``tokens`` resolve to, or the global usage."""
        console = self.console
        options = dict(colorful=self._colorful, fancy=self._fancy)
        single = len(self._roots) == 1 and self._default

        if not single and (not tokens or self._root(tokens[0]) is None):
            console.print(render_usage(self._roots, self._prog, **options))
            return
        invocations = self.plan(tokens, enforce=False)
        for invocation in invocations:
            console.print(render_help(invocation.leaf.node, self._prog, **options))

    def completion(self, shell=Unset, /):
        self._echo(script(coalesce(shell, "") or detect_shell(self._environ), self._prog))

    def __invoke__(self, prompt=Unset):
        """
        Execute this runner with a token stream.

        Parameters
        - prompt:
          • Unset: read tokens from sys.argv[1:].
          • str: shell-like string; will be split via shlex.split.
          • Iterable[str]: pre-tokenized sequence.
        """
        if prompt is Unset:
            tokens = sys.argv[1:]
        elif isinstance(prompt, str):
            tokens = shlex.split(prompt)
        elif isinstance(prompt, Iterable):
            tokens = list(prompt)
            if not all(isinstance(token, str) for token in tokens):
                raise TypeError("__invoke__() argument must be a string or an iterable of strings")
        else:
            raise TypeError("__invoke__() argument must be a string or an iterable of strings")

        try:
            match tokens:
                case ["__complete", *line]:
                    for candidate in complete(self._roots, " ".join(line)):
                        self._echo(candidate)
                case ["__list", *_]:
                    self._echo(listing(self._roots))
                case ["--completion", shell, *_] if not shell.startswith("-"):
                    self.completion(shell)
                case ["--completion", *_]:
                    self.completion()
                case [first, *_] if first.startswith("--completion="):
                    self.completion(first.removeprefix("--completion="))
                case _ if "--help" in tokens:
                    self.help([token for token in tokens if token != "--help"])
                case [] if not (len(self._roots) == 1 and self._default):
                    self.console.print(render_usage(self._roots, self._prog, colorful=self._colorful, fancy=self._fancy))
                case _:
                    self.run(tokens)
        except CommandException as fault:
            self.trigger(fault)


def runner(*roots, **options):
    """
    Create a Runner, or return a decorator building one around a single root.

    Forms
    - runner(Deploy, Status, prog="tool") -> Runner
    - @runner(prog="tool") over a class or function -> Runner
    """
    if roots:
        return Runner(*roots, **options)

    @rename("runner")
    def wrapper(root, /):
        return Runner(root, **options)

    return wrapper


def invoke(object, prompt=Unset, /):
    """
    Convenience runner for runners, classes, instances, functions and collaborators.

    - If ``object`` implements __invoke__, it is called with ``prompt``.
    - Otherwise ``object`` is wrapped in a single-root Runner first.
    """
    if hasattr(object, "__invoke__") and callable(object.__invoke__):
        object.__invoke__(prompt)
        return
    if object is None:
        target = "argument" if prompt is Unset else "first argument"
        raise TypeError(f"invoke() {target} must be a command or implement __invoke__")
    invoke(Runner(object), prompt)


__all__ = (
    "Runner",
    "runner",
    "invoke",
)
