"""
Shell completion: candidates for a partial command line, and the shell glue scripts.

Flow of complete(roots, line)
1. Tokenize the raw line (quotes and backslash escapes honored); a trailing blank means
   the user is starting a new argument, otherwise the last token is the prefix.
2. Drop the binary name and the runner's own flags.
3. Resolve leniently (incomplete input allowed, nothing enforced), following subcommands,
   chained siblings after ``^`` and other roots.
4. Emit candidates: the enum values (or nothing) when a flag value is being typed;
   otherwise, in order, commands, flags, enum values of the current positional, then other roots.
"""
import logging
import os
import textwrap

from .faults import *
from .nodes import Frame
from .registry import Registry
from .resolver import BREAK, ParseState, resolve
from .utils import *

logger = logging.getLogger(__name__)

SHELLS = ("bash", "zsh", "fish")

_SCRIPTS = {
    "bash": """
        _{name}_completion() {{
            local request="${{COMP_LINE}}"
            local completions
            completions=$({prog} __complete "$request")

            COMPREPLY=( $(compgen -W "$completions" -- "${{COMP_WORDS[COMP_CWORD]}}") )
        }}
        complete -F _{name}_completion {prog}
    """,
    "zsh": """
        #compdef {prog}

        _{name}_completion() {{
            local request="${{words[*]}}"
            local completions
            completions=("${{(@f)$({prog} __complete "$request")}}")

            compadd -a completions
        }}
        compdef _{name}_completion {prog}
    """,
    "fish": """
        function __{name}_complete
            set -l request (commandline -cp)
            {prog} __complete "$request"
        end
        complete -c {prog} -a "(__{name}_complete)" -f
    """,
}


def tokenize(line, /):
    """
    Split a raw command line the way a shell would for completion purposes.

    Returns ``(parts, new_arg)``; ``new_arg`` is true when the line ends with unquoted
    whitespace (the cursor sits on a fresh, empty argument).
    """
    parts = []
    current = []
    single = double = escaped = False
    new_arg = False

    for character in line:
        if escaped:
            current.append(character)
            escaped = new_arg = False
        elif character == "\\" and not single:
            escaped = True
            new_arg = False
        elif character == "'" and not double:
            single = not single
            new_arg = False
        elif character == '"' and not single:
            double = not double
            new_arg = False
        elif character in " \t\n" and not single and not double:
            if current:
                parts.append("".join(current))
                current.clear()
            new_arg = True
        else:
            current.append(character)
            new_arg = False

    if escaped:
        current.append("\\")
    if current:
        parts.append("".join(current))
    if single or double:
        new_arg = False
    return parts, new_arg


def detect_shell(environ=None, /):
    """Return the basename of $SHELL (empty when unset)."""
    environ = os.environ if environ is None else environ
    return os.path.basename(environ.get("SHELL", ""))


def script(shell, prog, /):
    """Return the completion script of ``shell`` for the program ``prog``."""
    try:
        template = _SCRIPTS[shell]
    except KeyError:
        raise UnknownShellError(
            "unsupported shell: %s" % (shell or "<unknown>"),
            hint="use one of: %s (for example: --completion=bash)" % ", ".join(SHELLS),
        ) from None
    name = "".join(character if character.isalnum() else "_" for character in prog)
    return textwrap.dedent(template).format(prog=prog, name=name).lstrip("\n")


class _Candidates:
    __slots__ = ("prefix", "items")

    def __init__(self, prefix):
        self.prefix = prefix
        self.items = {}

    def add(self, *names):
        for name in names:
            if name.startswith(self.prefix):
                self.items.setdefault(name, None)

    def __iter__(self):
        return iter(self.items)


def _find(roots, name):
    folded = name.casefold()
    for root in roots:
        if root.name.casefold() == folded:
            return root
    return None


def _takes_value(spec):
    return spec is not None and not spec.boolean


def _flag_before(args, registry):
    """Return the spec whose value is being typed after ``args`` (cluster tails included)."""
    if not args:
        return None
    previous = args[-1]
    if previous == "--" or not previous.startswith("-") or "=" in previous:
        return None
    if previous.startswith("--") or len(previous) == 2:
        return registry.lookup(previous)
    return registry.short(previous[-1])


def _positional_index(args, registry):
    """Count the positional values among ``args``, skipping flag values."""
    count = 0
    index = 0
    while index < len(args):
        token = args[index]
        if token == "--":
            pass
        elif token.startswith("-") and len(token) > 1:
            spec = None if "=" in token else _flag_before([token], registry)
            if _takes_value(spec):
                if spec.multi:
                    while index + 1 < len(args) and not args[index + 1].startswith("-"):
                        index += 1
                elif index + 1 < len(args):
                    index += 1
        else:
            count += 1
        index += 1
    return count


def complete(roots, line, /):
    """Return the ordered completion candidates for the raw command ``line``."""
    roots = tuple(roots)
    parts, new_arg = tokenize(line)
    if not parts:
        return []
    parts = parts[1:]
    if not new_arg and parts:
        prefix, args = parts[-1], parts[:-1]
    else:
        prefix, args = "", parts
    args = [arg for arg in args if arg != "--help" and not arg.startswith("--completion")]
    candidates = _Candidates(prefix)
    single = len(roots) == 1

    if single:
        node, at_root = roots[0], True
    else:
        if not args:
            candidates.add(*(root.name for root in roots), "--help", "--completion")
            return list(candidates)
        if (node := _find(roots, args[0])) is None:
            partial = _Candidates(args[0])
            partial.add(*(root.name for root in roots))
            return list(partial)
        args, at_root = args[1:], False

    state = ParseState()
    parents = ()
    complete_positionals = True
    while True:
        chain = (*parents, Frame(node, node.spawn()))
        try:
            result = resolve(chain[-1], chain, args, state, explicit=False, allow_incomplete=True, enforce=False)
        except CommandException as error:
            logger.debug("completion stopped at %s: %s", node.name, error)
            break
        complete_positionals = result.positionals_complete

        if result.subcommand is not None:
            node, parents, args, at_root = result.subcommand, chain, result.remaining, False
            continue
        if not result.remaining:
            break
        rest = result.remaining
        if rest[0] == BREAK:
            if len(rest) == 1:
                break
            rest = rest[1:]
            if node.parent is not None and (sibling := node.parent.child(rest[0])) is not None:
                node, parents, args = sibling, chain[:-1], rest[1:]
                continue
        if (root := _find(roots, rest[0])) is not None:
            node, parents, args, at_root = root, (), rest[1:], False
            continue
        break

    registry = Registry.collect(chain)

    if new_arg or not prefix.startswith("-"):
        if _takes_value(spec := _flag_before(args, registry)):
            candidates.add(*spec.enum)
            return list(candidates)

    if single and at_root:
        candidates.add(node.name)
    candidates.add(*node.children)
    if node.parent is not None:
        candidates.add(*node.parent.children)
    if not at_root:
        candidates.add(BREAK)

    if not prefix or prefix.startswith("-"):
        for spec in registry.flags:
            candidates.add(spec.longname)
            if spec.shortname:
                candidates.add(spec.shortname)
        candidates.add("--help")
        if at_root:
            candidates.add("--completion")

    if prefix.startswith("-"):
        return list(candidates)

    positionals = registry.positionals
    if positionals:
        index = _positional_index(args, registry)
        if index >= len(positionals) and positionals[-1].multi:
            index = len(positionals) - 1
        if index < len(positionals) and positionals[index].enum:
            candidates.add(*positionals[index].enum)
            return list(candidates)

    if not single and complete_positionals:
        candidates.add(*(root.name for root in roots))
    return list(candidates)


__all__ = (
    "SHELLS",
    "tokenize",
    "detect_shell",
    "script",
    "complete",
)
