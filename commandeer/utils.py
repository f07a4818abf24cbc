"""
Small helpers shared by every layer of the package.

Overview
- Unset: the "not given" sentinel, so None stays a legitimate value. It is falsey and
  prints as ``Unset``; UnsetType cannot be subclassed and always returns the same object.
- coalesce(value, default): the value itself unless it is Unset.
- rename(name): decorator pinning __name__/__qualname__ on generated callables.
- mirror("attr"): read-only property over ``self._attr``; containers come back as copies.
- kebabize(name): command names from identifiers (APIServer -> api-server).
- ordinal(number): position words for messages ("first", "12th").

Quick examples
    >>> coalesce(Unset, "fallback")
    'fallback'
    >>> kebabize("dry_run")
    'dry-run'
    >>> ordinal(22)
    '22nd'
"""
import functools
import re
from collections.abc import Mapping, Sequence, Set
from typing import final

_WORDS = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z0-9]+|[A-Z]+|[0-9]+")

_ORDINALS = (
    "first", "second", "third", "fourth", "fifth",
    "sixth", "seventh", "eighth", "ninth", "tenth",
)


@final
class UnsetType:
    """Type of the Unset sentinel (one instance per process)."""

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")

    # Allows ``str | UnsetType`` and ``str | Unset`` in annotations.
    def __or__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    __ror__ = __or__

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo, /):
        return self


Unset = UnsetType()


def coalesce(object, default=None, /):
    """Return ``object`` unless it is Unset; falsey values such as None or "" are kept."""
    return default if object is Unset else object


def rename(name, /):
    """Return a decorator giving a callable a stable __name__ and __qualname__."""
    if not isinstance(name, str):
        raise TypeError("rename() argument must be a string")

    def decorator(callable, /):
        try:
            callable.__name__ = callable.__qualname__ = name
        except (AttributeError, TypeError):
            raise TypeError("rename() can only be applied to a function") from None
        return callable

    return decorator


def _frozen(object):
    # Named tuples are records, not containers: they are returned untouched.
    if isinstance(object, tuple) and hasattr(object, "_fields"):
        return object
    if isinstance(object, Mapping):
        return {key: _frozen(value) for key, value in object.items()}
    if isinstance(object, Set):
        return frozenset(object)
    if isinstance(object, Sequence) and not isinstance(object, str):
        return tuple(_frozen(item) for item in object)
    return object


def mirror(name, /):
    """Define a read-only property over the private attribute ``_<name>``."""
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _frozen(getattr(self, "_" + name))

    return property(getter)


@functools.cache
def kebabize(name, /):
    """
    Turn an identifier into a kebab-cased command name.

    Words split on lower-to-upper transitions, at the end of an acronym and on
    underscores; leading and trailing underscores disappear.
    """
    if not isinstance(name, str):
        raise TypeError("kebabize() argument must be a string")
    return "-".join(
        word.lower()
        for chunk in name.split("_") if chunk
        for word in _WORDS.findall(chunk)
    )


@functools.cache
def ordinal(number, /):
    """Return "first".."tenth", then numeric ordinals ("11th", "21st", "112th")."""
    if 1 <= number <= len(_ORDINALS):
        return _ORDINALS[number - 1]
    if 10 < number % 100 < 20:
        return "%dth" % number
    return "%d%s" % (number, {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th"))


__all__ = (
    "UnsetType",
    "Unset",
    "coalesce",
    "rename",
    "mirror",
    "kebabize",
    "ordinal",
)
