"""
Flag/positional registry: bind field descriptors to live field locations.

Flags are inherited downward, so a registry collects the flags of every frame of the
ancestor chain (root first, declaration order) and the positionals of the leaf frame only.
A long or short name used twice along the chain is a DuplicatedFlagError.
"""
from .faults import *
from .metadata import Kind


class _Spec:
    __slots__ = ("frame", "field")

    def __init__(self, frame, field, /):
        self.frame = frame
        self.field = field

    @property
    def descriptor(self):
        return self.field.descriptor

    @property
    def binder(self):
        return self.field.binder

    @property
    def name(self):
        return self.field.descriptor.name

    @property
    def enum(self):
        return self.field.descriptor.enum

    @property
    def required(self):
        return self.field.descriptor.required

    @property
    def placeholder(self):
        placeholder = self.field.descriptor.placeholder
        return placeholder if placeholder else self.field.binder.placeholder

    @property
    def value(self):
        return getattr(self.frame.instance, self.field.attribute)

    def assign(self, text, /, state=None):
        """
        Check ``text`` against the enum set, then bind it into the live field.

        Raises InvalidChoiceError for values outside the enum set, and ValueError or
        TypeError (left for the caller to wrap) when the text does not parse.
        """
        if self.enum and text not in self.enum:
            raise InvalidChoiceError(
                "invalid value %r for %s: must be one of %s" % (text, self.label(), ", ".join(self.enum)),
                hint="pick one of: %s" % " | ".join(self.enum),
            )
        self.binder.bind(self.frame.instance, self.field.attribute, text, cursor=state)

    def label(self):
        return self.name


class FlagSpec(_Spec):
    """A flag bound to its field; tracks where its value came from."""
    __slots__ = ("default_applied", "env_applied")

    def __init__(self, frame, field, /):
        super().__init__(frame, field)
        self.default_applied = False
        self.env_applied = False

    def __repr__(self):
        return "FlagSpec(%s)" % self.label()

    @property
    def longname(self):
        return self.descriptor.longname

    @property
    def shortname(self):
        return self.descriptor.shortname

    @property
    def boolean(self):
        return self.binder.boolean

    @property
    def multi(self):
        return self.binder.multi

    def label(self):
        return self.descriptor.label()


class PositionalSpec(_Spec):
    """A positional slot of the leaf command; ``count`` is the number of values it received."""
    __slots__ = ("count", "default_applied")

    def __init__(self, frame, field, /):
        super().__init__(frame, field)
        self.count = 0
        self.default_applied = False

    def __repr__(self):
        return "PositionalSpec(%s)" % self.name

    @property
    def multi(self):
        return self.binder.multi

    @property
    def filled(self):
        return self.count > 0 or self.default_applied

    def assign(self, text, /, state=None):
        super().assign(text, state)
        self.count += 1


class Registry:
    """Flag and positional specs of one ancestor chain."""
    __slots__ = ("flags", "positionals", "_names")

    def __init__(self, flags, positionals, /):
        self.flags = tuple(flags)
        self.positionals = tuple(positionals)
        self._names = {}
        for spec in self.flags:
            for key in (spec.longname, spec.shortname):
                if not key:
                    continue
                if key in self._names:
                    raise DuplicatedFlagError(
                        "flag %s already defined" % key,
                        hint="%s is declared by both %s and %s" % (
                            key, self._names[key].frame.node.name, spec.frame.node.name
                        ),
                    )
                self._names[key] = spec

    def __repr__(self):
        return "Registry(flags=%r, positionals=%r)" % (self.flags, self.positionals)

    @classmethod
    def collect(cls, chain, /):
        """Gather the flags of every frame (root first) and the leaf's positionals."""
        flags = [
            FlagSpec(frame, field)
            for frame in chain
            for field in frame.node.fields
            if field.kind is Kind.FLAG
        ]
        positionals = [
            PositionalSpec(chain[-1], field)
            for field in chain[-1].node.fields
            if field.kind is Kind.POSITIONAL
        ] if chain else []
        return cls(flags, positionals)

    def lookup(self, name, /):
        """Return the spec registered as ``--long`` or ``-s``, or None."""
        return self._names.get(name)

    @property
    def names(self):
        return tuple(self._names)

    @property
    def longnames(self):
        return frozenset(spec.name for spec in self.flags)

    def short(self, character, /):
        return self._names.get("-" + character)


__all__ = (
    "FlagSpec",
    "PositionalSpec",
    "Registry",
)
