"""
Field metadata: turn annotation text into a normalized FieldDescriptor.

Annotation grammar
- The text is the first ``str`` item of ``Annotated[T, "..."]`` metadata (``""`` when absent).
- Comma-separated tokens. The kind is decided first:
  • ``subcommand`` or ``subcommand=NAME``: a child command (default name: kebab-cased field name).
  • ``positional``: a positional slot (default name: the field name).
  • ``flag`` or nothing: a flag (default name: the lower-cased field name).
- Overrides: ``name=``, ``short=``, ``env=``, ``default=``, ``enum=A|B|C``,
  ``placeholder=``, ``desc=`` (alias ``description=``) and the bare ``required``.

Override hook
- When the owning instance exposes ``tag_options(field_name, descriptor)``, it runs
  last and the descriptor it returns wins. Exceptions raised by the hook propagate.

Example
    >>> extract("flag,name=stage,short=s,enum=dev|prod", "Mode")
    FieldDescriptor(kind=<Kind.FLAG: 'flag'>, name='stage', short='s', ...)
"""
import inspect
import logging
import typing
from enum import StrEnum
from typing import Annotated, NamedTuple

from .faults import *
from .utils import *

logger = logging.getLogger(__name__)


class Kind(StrEnum):
    FLAG = "flag"
    POSITIONAL = "positional"
    SUBCOMMAND = "subcommand"


class FieldDescriptor(NamedTuple):
    """
    Normalized metadata of one field.

    Absent optional values are Unset (so an explicit empty default stays distinguishable);
    the description defaults to the empty string.
    """
    kind: Kind
    name: str
    short: str | UnsetType = Unset
    env: str | UnsetType = Unset
    default: str | UnsetType = Unset
    enum: tuple[str, ...] = ()
    placeholder: str | UnsetType = Unset
    required: bool = False
    description: str = ""

    @property
    def longname(self):
        return "--" + self.name

    @property
    def shortname(self):
        return "-" + self.short if self.short else ""

    def label(self):
        """Return ``--name, -s`` (or just ``--name``) for messages."""
        if self.short:
            return "%s, %s" % (self.longname, self.shortname)
        return self.longname


_KEYS = ("name", "short", "env", "default", "enum", "placeholder", "desc", "description")


def annotation_text(annotation, /):
    """Return the first string metadata item of an Annotated type (or "")."""
    if typing.get_origin(annotation) is Annotated:
        for item in annotation.__metadata__:
            if isinstance(item, str):
                return item
    return ""


def _default_name(kind, field_name):
    match kind:
        case Kind.SUBCOMMAND:
            return kebabize(field_name)
        case Kind.POSITIONAL:
            return field_name
        case _:
            return field_name.lower()


def parse(text, field_name, /):
    """Parse annotation text without running any override hook."""
    tokens = [token.strip() for token in text.split(",")] if text.strip() else []

    kind = Kind.FLAG
    name = Unset
    for token in tokens:
        if token == "subcommand" or token.startswith("subcommand="):
            kind = Kind.SUBCOMMAND
            if token.startswith("subcommand="):
                name = token.removeprefix("subcommand=")
        elif token == "positional" and kind is not Kind.SUBCOMMAND:
            kind = Kind.POSITIONAL

    options = {}
    for token in tokens:
        if token in ("flag", "positional", "subcommand", "required") or token.startswith("subcommand="):
            if token == "required":
                options["required"] = True
            continue
        key, separator, value = token.partition("=")
        if not separator or key not in _KEYS:
            raise MalformedAnnotationError(
                "unknown annotation token %r on field %s" % (token, field_name),
                hint="valid keys are flag, positional, subcommand, required, %s" % ", ".join(
                    key + "=" for key in _KEYS
                ),
            )
        match key:
            case "enum":
                options["enum"] = tuple(member for member in value.split("|") if member)
            case "desc" | "description":
                options["description"] = value
            case "short":
                if len(value) != 1:
                    raise MalformedAnnotationError(
                        "short alias of field %s must be a single character (got %r)" % (field_name, value),
                        hint="use name= for long aliases",
                    )
                options["short"] = value
            case "name":
                name = value
            case _:
                options[key] = value

    return FieldDescriptor(kind, name or _default_name(kind, field_name), **options)


def _hook(owner):
    hook = getattr(owner, "tag_options", None)
    if hook is None:
        return None
    if not callable(hook):
        raise SignatureError(
            "tag_options of %s must be a method" % type(owner).__name__,
            hint="define tag_options(self, field_name, descriptor) -> FieldDescriptor",
        )
    try:
        inspect.signature(hook).bind("field", FieldDescriptor(Kind.FLAG, "field"))
    except TypeError:
        raise SignatureError(
            "tag_options of %s must accept (field_name, descriptor)" % type(owner).__name__,
            hint="define tag_options(self, field_name, descriptor) -> FieldDescriptor",
        ) from None
    return hook


def extract(text, field_name, /, owner=None):
    """
    Build the FieldDescriptor of ``field_name`` from its annotation text.

    ``owner`` is the instance (or class) declaring the field; its ``tag_options`` hook,
    when present, receives the parsed descriptor and returns the final one.
    """
    descriptor = parse(text, field_name)

    if owner is not None and (hook := _hook(owner)) is not None:
        result = hook(field_name, descriptor)
        if not isinstance(result, FieldDescriptor):
            raise SignatureError(
                "tag_options of %s returned %s, expected FieldDescriptor" % (
                    type(owner).__name__, type(result).__name__
                ),
                code=FaultCode.INVALID_RESULT,
            )
        if result != descriptor:
            logger.debug("tag_options overrode %s: %r", field_name, result)
        descriptor = result

    if not descriptor.name:
        raise InvalidDescriptorError("field %s resolved to an empty name" % field_name)
    return descriptor


__all__ = (
    "Kind",
    "FieldDescriptor",
    "annotation_text",
    "parse",
    "extract",
)
