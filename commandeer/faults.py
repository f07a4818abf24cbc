"""
Faults raised while building, resolving, validating and dispatching commands.

Contents
- FaultCode: stable numeric ids, 110xx structural, 111xx grammar, 112xx validation,
  113xx signature, 114xx dispatch. Hosts may relabel them through ``__main__.__codes__``.
- CommandException: carries the exact message plus rendering options and renders itself
  with rich (header, message, hint, docs; a panel when ``fancy``).
- One base class per error kind:
  • StructuralError: the declared tree is invalid; raised while building, before any argument is read.
  • GrammarError: the argument vector does not fit the tree.
  • ValidationError: well-formed values that are missing or out of range after defaulting.
  • SignatureError: an override hook, action or lifecycle hook has an unsupported shape.
  • DispatchError: an action or hook failed; the original error is its __cause__.
- trigger(): raise the fault, or in shell mode print it and exit with status 1.
- getdoc(): the host's optional ``__main__.__docs__`` entry for a code.

Messages name the offending flag (long and short forms when both exist), field or token
verbatim, and keep to one sentence; anything actionable goes in the hint.
"""
import copy
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the package (stable identifiers).

    grouping (by error kind)
    - structural (110xx)
      • INVALID_DESCRIPTOR, HIDDEN_FIELD, PREFILLED_FIELD, UNSUPPORTED_FIELD,
        DUPLICATED_COMMAND, DUPLICATED_FLAG, MALFORMED_ANNOTATION
    - grammar (111xx)
      • UNKNOWN_FLAG, SINGLE_DASH_FLAG, MALFORMED_CLUSTER, MISSING_VALUE,
        UNKNOWN_COMMAND, INVALID_VALUE, UNKNOWN_SHELL
    - validation (112xx)
      • MISSING_FLAG, MISSING_POSITIONAL, INVALID_ENVIRONMENT, INVALID_DEFAULT, INVALID_CHOICE
    - signature (113xx)
      • INVALID_SIGNATURE, INVALID_RESULT
    - dispatch (114xx)
      • DELEGATED_ERROR

    spacing leaves room for future additions without reshuffling existing codes.
    """
    # --- structural errors (110xx) ---
    INVALID_DESCRIPTOR          = 11001
    HIDDEN_FIELD                = 11002
    PREFILLED_FIELD             = 11003
    UNSUPPORTED_FIELD           = 11004
    DUPLICATED_COMMAND          = 11005
    DUPLICATED_FLAG             = 11006
    MALFORMED_ANNOTATION        = 11007

    # --- grammar errors (111xx) ---
    UNKNOWN_FLAG                = 11101
    SINGLE_DASH_FLAG            = 11102
    MALFORMED_CLUSTER           = 11103
    MISSING_VALUE               = 11104
    UNKNOWN_COMMAND             = 11105
    INVALID_VALUE               = 11106
    UNKNOWN_SHELL               = 11107

    # --- validation errors (112xx) ---
    MISSING_FLAG                = 11201
    MISSING_POSITIONAL          = 11202
    INVALID_ENVIRONMENT         = 11203
    INVALID_DEFAULT             = 11204
    INVALID_CHOICE              = 11205

    # --- signature errors (113xx) ---
    INVALID_SIGNATURE           = 11301
    INVALID_RESULT              = 11302

    # --- dispatch errors (114xx) ---
    DELEGATED_ERROR             = 11401

    def normalize(self):
        """Return the label of this code: ``__main__.__codes__[code]`` when the host defines one."""
        labels = getattr(__import__("__main__"), "__codes__", {})
        return str(labels.get(self, self.value))


class CommandException(Exception):
    """
    Base of every fault raised by the package.

    ``str(fault)`` is the exact user-facing sentence. Rendering details (title, code,
    hint, docs) and the runtime switches (shell, fancy, colorful, tool) travel in
    ``options``; copy.replace() produces a copy with more of them.
    """
    code = Unset
    title = "command error"

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(coalesce(message, ""))
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return coalesce(self.message, "")

    def __rich__(self):
        main = __import__("__main__")
        palette = defaultdict(str, {
            "prog-name": "bold #F4F4F5",
            "code": "bold #38BDF8",
            "error-title": "bold #F43F5E",
            "error-message": "#E4E4E7",
            "hint-arrow": "dim #4ADE80",
            "hint": "italic #4ADE80",
            "docs": "#A1A1AA",
        } | getattr(main, "__styles__", {}))
        colorful = self.options.get("colorful", True)

        def paint(fragment, style):
            return Text(str(fragment), palette[style] if colorful else "")

        prog = getattr(main, "__prog__", getattr(self.options.get("tool"), "prog", "command"))
        code = self.options.get("code", type(self).code)
        label = code.normalize() if isinstance(code, FaultCode) else "-"
        title = self.options.get("title", type(self).title)

        header = Text.assemble("[ ", paint(prog, "prog-name"), " · ", paint(label, "code"), " ] ", paint(title, "error-title"))
        body = [paint(coalesce(self.message, ""), "error-message")]
        if hint := self.options.get("hint"):
            body.append(Text.assemble(paint("  → ", "hint-arrow"), paint(hint, "hint")))
        if docs := self.options.get("docs"):
            body.append(paint(docs, "docs"))

        if self.options.get("fancy", False):
            return Panel(Group(*body), title=header, title_align="left", expand=False)
        return Group(header, *body)

    def __trigger__(self) -> None:
        if self.options.get("shell", False):
            console.print(self)
            sys.exit(1)
        raise self from self.__cause__

    def __replace__(self, /, **overrides):
        fault = type(self)(self.message, **(dict(self.options) | overrides))
        fault.__cause__ = self.__cause__
        return fault


class StructuralError(CommandException):
    title = "invalid command tree"

class GrammarError(CommandException):
    title = "invalid arguments"

class ValidationError(CommandException):
    title = "invalid values"

class SignatureError(CommandException):
    code = FaultCode.INVALID_SIGNATURE
    title = "unsupported signature"

class DispatchError(CommandException):
    code = FaultCode.DELEGATED_ERROR
    title = "command failed"


class InvalidDescriptorError(StructuralError):
    code = FaultCode.INVALID_DESCRIPTOR

class HiddenFieldError(StructuralError):
    code = FaultCode.HIDDEN_FIELD

class PrefilledFieldError(StructuralError):
    code = FaultCode.PREFILLED_FIELD

class UnsupportedFieldError(StructuralError):
    code = FaultCode.UNSUPPORTED_FIELD

class DuplicatedCommandError(StructuralError):
    code = FaultCode.DUPLICATED_COMMAND

class DuplicatedFlagError(StructuralError):
    code = FaultCode.DUPLICATED_FLAG

class MalformedAnnotationError(StructuralError):
    code = FaultCode.MALFORMED_ANNOTATION


class UnknownFlagError(GrammarError):
    code = FaultCode.UNKNOWN_FLAG
    title = "unknown flag"

class SingleDashFlagError(GrammarError):
    code = FaultCode.SINGLE_DASH_FLAG
    title = "malformed long flag"

class MalformedClusterError(GrammarError):
    code = FaultCode.MALFORMED_CLUSTER
    title = "malformed short flag group"

class MissingValueError(GrammarError):
    code = FaultCode.MISSING_VALUE
    title = "missing flag value"

class UnknownCommandError(GrammarError):
    code = FaultCode.UNKNOWN_COMMAND
    title = "unknown command"

class InvalidValueError(GrammarError):
    code = FaultCode.INVALID_VALUE
    title = "invalid value"

class UnknownShellError(GrammarError):
    code = FaultCode.UNKNOWN_SHELL
    title = "unsupported shell"


class MissingFlagError(ValidationError):
    code = FaultCode.MISSING_FLAG
    title = "missing required flag"

class MissingPositionalError(ValidationError):
    code = FaultCode.MISSING_POSITIONAL
    title = "missing required positional"

class InvalidEnvironmentError(ValidationError):
    code = FaultCode.INVALID_ENVIRONMENT

class InvalidDefaultError(ValidationError):
    code = FaultCode.INVALID_DEFAULT

class InvalidChoiceError(ValidationError):
    code = FaultCode.INVALID_CHOICE
    title = "invalid choice"


def trigger(fault, /, **options):
    """
    Surface ``fault`` after merging ``options`` into a copy of it.

    Typical options: tool, shell, fancy, colorful, title, code, hint, docs. Outside shell
    mode the copy is raised (its __cause__ kept); in shell mode it is printed to stderr
    and the process exits with status 1.
    """
    if not callable(getattr(fault, "__trigger__", None)) or not callable(getattr(fault, "__replace__", None)):
        raise TypeError("trigger() argument must define __trigger__() and __replace__()")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """Return ``__main__.__docs__[code]``, or None when the host documents nothing for it."""
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a FaultCode")
    return getattr(__import__("__main__"), "__docs__", {}).get(code)


__all__ = (
    "CommandException",
    "StructuralError",
    "GrammarError",
    "ValidationError",
    "SignatureError",
    "DispatchError",
    "InvalidDescriptorError",
    "HiddenFieldError",
    "PrefilledFieldError",
    "UnsupportedFieldError",
    "DuplicatedCommandError",
    "DuplicatedFlagError",
    "MalformedAnnotationError",
    "UnknownFlagError",
    "SingleDashFlagError",
    "MalformedClusterError",
    "MissingValueError",
    "UnknownCommandError",
    "InvalidValueError",
    "UnknownShellError",
    "MissingFlagError",
    "MissingPositionalError",
    "InvalidEnvironmentError",
    "InvalidDefaultError",
    "InvalidChoiceError",
    "FaultCode",
    "trigger",
    "getdoc",
)
