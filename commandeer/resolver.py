"""
Argument resolver: walk an argument vector down a command tree.

Overview
- resolve(): one node's pass over its arguments. Flags of the whole ancestor chain are
  accepted, the leaf's positionals fill strictly in order, and once the positional slots
  are exhausted a token is matched against the node's children.
- walk(): plan a whole argument vector into invocations. It recurses into matched
  subcommands and resolves chained siblings separated by the break token ``^``.

Grammar in brief
- ``--name value``, ``--name=value``, ``-n value``, ``-n=value``; booleans take no value.
- ``-abc`` expands to ``-a -b -c`` when every letter is a boolean short flag.
- list flags capture values up to the next flag, ``--``, ``^`` or the end.
- ``--`` closes a list positional; ``^`` ends the current command.

Equivalence
    resolving ``cmd sub1 sub2`` is the same as resolving ``cmd sub1`` (remainder
    ``[sub2]``) and then resolving ``[sub2]`` with ``sub1`` as the node.
"""
import difflib
import logging
from typing import NamedTuple

from .faults import *
from .nodes import Frame
from .registry import Registry
from .utils import *
from .validation import validate

logger = logging.getLogger(__name__)

BREAK = "^"
SEPARATOR = "--"


class ParseState:
    """
    State shared by every resolution call of one invocation.

    - visited: flags explicitly touched on the command line, keyed by their owning
      instance and long name (so chained siblings never see each other's flags).
    - settled: flags that received their environment or default value.
    - position: supply-order cursor used by Interleaved destinations.
    """
    __slots__ = ("visited", "settled", "position")

    def __init__(self, visited=(), settled=(), position=0):
        self.visited = set(visited)
        self.settled = set(settled)
        self.position = position

    def __repr__(self):
        return "ParseState(visited=%d, settled=%d, position=%d)" % (len(self.visited), len(self.settled), self.position)

    @staticmethod
    def _key(spec):
        return id(spec.frame.instance), spec.name

    def advance(self):
        """Return the current position and move the cursor forward."""
        position = self.position
        self.position += 1
        return position

    def visit(self, spec, /):
        self.visited.add(self._key(spec))

    def touched(self, spec, /):
        return self._key(spec) in self.visited

    def settle(self, spec, /):
        self.settled.add(self._key(spec))

    def resolved(self, spec, /):
        return self._key(spec) in self.visited or self._key(spec) in self.settled

    def fork(self):
        """Copy this state for a chained sibling; nothing mutable is shared."""
        return ParseState(self.visited, self.settled, self.position)


class ParseResult(NamedTuple):
    remaining: list
    subcommand: object = None
    positionals_complete: bool = True


class Invocation(tuple):
    """A planned root-to-leaf chain of frames."""
    __slots__ = ()

    def __repr__(self):
        return "Invocation(%r)" % self.route

    @property
    def leaf(self):
        return self[-1]

    @property
    def route(self):
        return " ".join(frame.node.name for frame in self)


def _flagish(token):
    return token.startswith("-") and len(token) > 1


def _stops(token):
    return token in (SEPARATOR, BREAK) or token.startswith("-")


def check_single_dash(args, registry, /):
    """Reject ``-name`` / ``-name=value`` spellings of known long flags."""
    longnames = registry.longnames
    for token in args:
        if token in (SEPARATOR, BREAK):
            return
        if not token.startswith("-") or token.startswith("--") or len(token) <= 2:
            continue
        name = token[1:].partition("=")[0]
        if len(name) > 1 and name in longnames:
            raise SingleDashFlagError(
                "long flags must use --%s (got -%s)" % (name, name),
                hint="spell it --%s" % name,
            )


def expand_clusters(args, registry, /):
    """
    Expand ``-abc`` into ``-a -b -c`` when every letter is a known boolean short flag.

    Letters are checked left to right. Reaching an unknown letter first keeps the token
    intact (a descendant may know it); reaching a value-taking short flag first is a
    MalformedClusterError.
    """
    longnames = registry.longnames
    expanded = []
    for index, token in enumerate(args):
        if token == BREAK:
            expanded.extend(args[index:])
            break
        group = token[1:]
        if (
            token.startswith("--") or
            not token.startswith("-") or
            len(token) <= 2 or
            "=" in token or
            group in longnames
        ):
            expanded.append(token)
            continue
        for character in group:
            if (spec := registry.short(character)) is None:
                expanded.append(token)
                break
            if not spec.boolean:
                raise MalformedClusterError(
                    "short flag group %r must contain only boolean flags" % token,
                    hint="pass value-taking flags separately (for example: -%s VALUE)" % character,
                )
        else:
            expanded.extend("-" + character for character in group)
    return expanded


def _assign(spec, text, state):
    try:
        spec.assign(text, state)
    except (ValueError, TypeError) as error:
        raise InvalidValueError(
            "invalid value %r for %s: %s" % (text, spec.label(), error),
        ) from None


def _unknown_flag(name, registry):
    suggestions = difflib.get_close_matches(name, registry.names, 3)
    try:
        hint = "did you mean %r?" % suggestions[0]
    except IndexError:
        hint = "run with --help to see the available flags"
    return UnknownFlagError("flag provided but not defined: %s" % name, hint=hint, suggestions=suggestions)


def _flag(registry, args, index, state, allow_incomplete):
    """Consume one flag token (and its values); return the number of tokens consumed."""
    name, separator, value = args[index].partition("=")
    spec = registry.lookup(name)
    if spec is None:
        raise _unknown_flag(name, registry)
    state.visit(spec)

    if separator:
        _assign(spec, value, state)
        return 1

    if spec.boolean:
        _assign(spec, "true", state)
        return 1

    missing = MissingValueError(
        "flag needs an argument: %s" % spec.longname,
        hint="pass a value after %s (for example: %s %s)" % (name, name, spec.placeholder),
    )

    if spec.multi:
        count = 0
        for token in args[index + 1:]:
            if _stops(token):
                break
            _assign(spec, token, state)
            count += 1
        if not count:
            if allow_incomplete and index + 1 >= len(args):
                return 1
            raise missing
        return 1 + count

    if index + 1 >= len(args):
        if allow_incomplete:
            return 1
        raise missing
    if _stops(args[index + 1]):
        raise missing
    _assign(spec, args[index + 1], state)
    return 2


def _finish(positionals, enforce):
    """Apply positional defaults, enforce required slots, and report completeness."""
    for spec in positionals:
        if not spec.count and spec.descriptor.default is not Unset:
            try:
                spec.assign(spec.descriptor.default)
            except (ValueError, TypeError) as error:
                raise InvalidDefaultError("invalid default for %s: %s" % (spec.name, error)) from None
            spec.default_applied = True
        if enforce and spec.required and not spec.filled:
            raise MissingPositionalError(
                "missing required positional %s" % spec.name,
                hint="pass a value for %s" % spec.name,
            )
    return all(spec.filled for spec in positionals if spec.required)


def resolve(frame, chain, args, state, /, *, explicit, allow_incomplete=False, enforce=True):
    """
    Resolve ``args`` for ``frame`` (the last frame of ``chain``).

    Returns a ParseResult: the matched child with the tokens after it, or the unconsumed
    remainder (starting at ``^``, or at an unmatched token when ``explicit`` is false).
    """
    registry = Registry.collect(chain)
    check_single_dash(args, registry)
    args = expand_clusters(args, registry)
    positionals = registry.positionals
    slot = 0
    index = 0

    while index < len(args):
        token = args[index]

        if token == BREAK:
            logger.debug("break token ends %s", frame.node.name)
            return ParseResult(args[index:], None, _finish(positionals, enforce))

        if token == SEPARATOR:
            if slot < len(positionals) and positionals[slot].multi:
                slot += 1
            index += 1
            continue

        if _flagish(token):
            if slot < len(positionals) and positionals[slot].multi and positionals[slot].count:
                slot += 1
            index += _flag(registry, args, index, state, allow_incomplete)
            continue

        if slot < len(positionals):
            spec = positionals[slot]
            _assign(spec, token, state)
            if not spec.multi:
                slot += 1
            index += 1
            continue

        if (child := frame.node.child(token)) is not None:
            logger.debug("matched subcommand %s of %s", child.name, frame.node.name)
            return ParseResult(args[index + 1:], child, True)

        if explicit:
            suggestions = difflib.get_close_matches(token, frame.node.children.keys(), 3)
            try:
                hint = "did you mean %r? use '^' to chain another command" % suggestions[0]
            except IndexError:
                hint = "use '^' before %r to chain another command" % token
            raise UnknownCommandError("unknown command: %s" % token, hint=hint, suggestions=suggestions)

        logger.debug("%s stops at %r", frame.node.name, token)
        return ParseResult(args[index:], None, _finish(positionals, enforce))

    return ParseResult([], None, _finish(positionals, enforce))


def walk(node, args, parents, state, /, *, explicit, environ=None, allow_incomplete=False, enforce=True):
    """
    Plan ``args`` starting at ``node`` below the ``parents`` frames.

    Returns ``(invocations, remaining)``. A remainder is either empty, starts with ``^``
    (nothing below could take the next command), or starts at a token ``node`` does not
    know while ``explicit`` is false.
    """
    instance = node.spawn()
    if parents:
        node.attach(parents[-1].instance, instance)
    chain = (*parents, Frame(node, instance))

    result = resolve(chain[-1], chain, list(args), state, explicit=explicit, allow_incomplete=allow_incomplete, enforce=enforce)

    if result.subcommand is None:
        if enforce:
            validate(chain, state, environ)
        return [Invocation(chain)], result.remaining

    invocations, remaining = walk(
        result.subcommand, result.remaining, chain, state,
        explicit=True, environ=environ, allow_incomplete=allow_incomplete, enforce=enforce,
    )
    while remaining and remaining[0] == BREAK and len(remaining) > 1:
        if (sibling := node.child(remaining[1])) is None:
            break
        logger.debug("chaining %s after %s", sibling.name, invocations[-1].route)
        state = state.fork()
        more, remaining = walk(
            sibling, remaining[2:], chain, state,
            explicit=True, environ=environ, allow_incomplete=allow_incomplete, enforce=enforce,
        )
        invocations.extend(more)
    return invocations, remaining


__all__ = (
    "BREAK",
    "ParseState",
    "ParseResult",
    "Invocation",
    "check_single_dash",
    "expand_clusters",
    "resolve",
    "walk",
)
