"""
Value binding: turn argument text into field values.

A Binder is computed once per field from its declared type while the command tree is
built, so resolution never inspects annotations again.

Capabilities come before the built-in type switch:
- a type exposing a ``from_text(text)`` classmethod is constructed from the text;
- a type exposing a ``set(text)`` method is instantiated once (its zero value) and then
  mutated in place for every supplied text.

Built-in kinds: str, int, float, bool, list[T] (one element per text), dict[K, V]
(one ``key=value`` item per text), and list[Interleaved[T]], which records the
relative position at which each value was supplied. ``T | None`` is unwrapped.
"""
import logging
import types
import typing
from typing import Annotated, Any, NamedTuple, Protocol, Union, runtime_checkable

logger = logging.getLogger(__name__)

_TRUTHY = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSY = frozenset({"0", "f", "F", "FALSE", "false", "False"})


class Interleaved[T](NamedTuple):
    """A value together with the position at which it was supplied on the command line."""
    value: T
    position: int


@runtime_checkable
class SupportsText(Protocol):
    """Types that construct themselves from argument text."""

    @classmethod
    def from_text(cls, text: str, /) -> Any: ...


@runtime_checkable
class SupportsSet(Protocol):
    """Values that absorb argument text in place (repeatable or accumulating values)."""

    def set(self, text: str, /) -> None: ...


def _parse_bool(text):
    if text in _TRUTHY:
        return True
    if text in _FALSY:
        return False
    raise ValueError("parsing bool %r: invalid syntax" % text)


def _parse_int(text):
    try:
        return int(text, 10)
    except ValueError:
        raise ValueError("parsing int %r: invalid syntax" % text) from None


def _parse_float(text):
    try:
        return float(text)
    except ValueError:
        raise ValueError("invalid float value %r" % text) from None


_CONVERTERS = {
    str: str,
    int: _parse_int,
    float: _parse_float,
    bool: _parse_bool,
}

_PLACEHOLDERS = {
    str: "<string>",
    int: "<int>",
    float: "<float>",
    bool: "[flag]",
}


def _strip(annotation):
    """Drop Annotated wrappers and a single optional ``None`` member."""
    while typing.get_origin(annotation) is Annotated:
        annotation = typing.get_args(annotation)[0]
    if typing.get_origin(annotation) in (Union, types.UnionType):
        members = [member for member in typing.get_args(annotation) if member is not type(None)]
        if len(members) != 1:
            raise TypeError("unsupported value type %s" % annotation)
        return _strip(members[0])
    return annotation


def _scalar(annotation):
    """Return a text converter for a single (non-container) value."""
    annotation = _strip(annotation)
    if annotation in _CONVERTERS:
        return _CONVERTERS[annotation]
    if isinstance(annotation, type) and issubclass(annotation, SupportsText):
        return annotation.from_text
    raise TypeError("unsupported value type %s" % getattr(annotation, "__name__", annotation))


class Binder:
    """
    Binding strategy for one declared field type.

    Attributes
    - boolean: presence-only flag (``--x`` sets True).
    - multi: the field captures a run of values (list types).
    - mapping: the field takes ``key=value`` items.
    - interleaved: list elements are Interleaved and consume the position cursor.
    - placeholder: the default placeholder used by help output.
    """
    __slots__ = ("annotation", "boolean", "multi", "mapping", "interleaved", "placeholder", "_zero", "_convert", "_key")

    def __init__(self, annotation, /):
        self.annotation = annotation = _strip(annotation)
        self.boolean = annotation is bool
        self.multi = False
        self.mapping = False
        self.interleaved = False
        self._key = None

        origin = typing.get_origin(annotation) or annotation
        arguments = typing.get_args(annotation)

        if origin is list:
            element = _strip(arguments[0]) if arguments else str
            if typing.get_origin(element) is Interleaved or element is Interleaved:
                self.interleaved = True
                element = typing.get_args(element)[0] if typing.get_args(element) else str
            self.multi = True
            self._zero = list
            self._convert = _scalar(element)
            self.placeholder = "<bool>" if element is bool else _PLACEHOLDERS.get(element, "<value>")
        elif origin is dict:
            key, value = arguments if arguments else (str, str)
            self.mapping = True
            self._zero = dict
            self._key = _scalar(key)
            self._convert = _scalar(value)
            self.placeholder = "<key=value>"
        elif annotation in _CONVERTERS:
            self._zero = annotation
            self._convert = _CONVERTERS[annotation]
            self.placeholder = _PLACEHOLDERS[annotation]
        elif isinstance(annotation, type) and issubclass(annotation, SupportsText):
            self._zero = lambda: None
            self._convert = annotation.from_text
            self.placeholder = "<value>"
        elif isinstance(annotation, type) and issubclass(annotation, SupportsSet):
            self._zero = annotation
            self._convert = None
            self.placeholder = "<value>"
        else:
            raise TypeError("unsupported value type %s" % getattr(annotation, "__name__", annotation))

    def __repr__(self):
        return f"binder({getattr(self.annotation, '__name__', self.annotation)!s})"

    def zero(self):
        """Return a fresh zero value for this field."""
        return self._zero()

    def iszero(self, value, /):
        """Tell whether a prefilled value is indistinguishable from the zero value."""
        if value is None:
            return True
        try:
            return value == self.zero()
        except (TypeError, ValueError):  # zero values of capability types may not compare
            return False

    def bind(self, instance, attribute, text, /, cursor=None):
        """
        Store ``text`` into ``instance.attribute``.

        ``cursor`` is the shared parse state (anything with an ``advance()`` method);
        when given, every bound value consumes one position, list elements included.
        Raises ValueError (or TypeError) with a descriptive message on bad text.
        """
        position = cursor.advance() if cursor is not None else 0

        if self._convert is None:
            target = getattr(instance, attribute, None)
            if target is None:
                target = self.zero()
                setattr(instance, attribute, target)
            target.set(text)
            return

        if self.mapping:
            key, separator, value = text.partition("=")
            if not separator:
                raise ValueError("invalid map value, expected key=value: %r" % text)
            target = getattr(instance, attribute, None)
            if target is None:
                setattr(instance, attribute, target := self.zero())
            target[self._key(key)] = self._convert(value)
            return

        value = self._convert(text)

        if self.multi:
            target = getattr(instance, attribute, None)
            if target is None:
                setattr(instance, attribute, target := self.zero())
            target.append(Interleaved(value, position) if self.interleaved else value)
            return

        setattr(instance, attribute, value)
        logger.debug("bound %r to %s.%s", value, type(instance).__name__, attribute)


__all__ = (
    "Interleaved",
    "SupportsText",
    "SupportsSet",
    "Binder",
)
