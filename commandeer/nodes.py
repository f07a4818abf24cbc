"""
Command tree builder.

Scope
- CommandNode: one command of the tree (name, description, children, parent, field table
  and action). Nodes are immutable once built; resolution only spawns fresh instances.
- Frame: a (node, live instance) pair; an ancestor chain is a tuple of frames.
- build(): turn a root descriptor into a validated CommandNode tree.
- TargetLike / GroupLike: collaborator protocols adapted into nodes.

Accepted descriptors
- a class whose annotated fields describe flags, positionals and subcommands,
  or a zero-valued instance of such a class;
- a function taking nothing, a Context, an aggregate, or a Context plus an aggregate;
- a TargetLike (its ``fn()`` returns the function to run) or a GroupLike (routing only).

Structural rules (checked once, while building)
- tagged fields must be public (``field _x must be exported``);
- fields must hold zero values, subcommand fields holding a callable excepted;
- subcommand names are unique per node;
- flag names are unique along every root-to-node path;
- every field type must be bindable.
"""
import copy
import inspect
import logging
import re
import typing
from typing import ClassVar, NamedTuple, Protocol, runtime_checkable

from .dispatcher import Context
from .faults import *
from .metadata import *
from .utils import *
from .values import Binder, _strip

logger = logging.getLogger(__name__)

_GROUP_NAME = re.compile(r"[a-z][a-z0-9-]*")


@runtime_checkable
class TargetLike(Protocol):
    def fn(self): ...

    def get_name(self) -> str: ...

    def get_description(self) -> str: ...


@runtime_checkable
class GroupLike(Protocol):
    def get_members(self): ...

    def get_name(self) -> str: ...


class Field(NamedTuple):
    """One entry of a node's field table; ``binder`` is None for subcommand fields."""
    attribute: str
    descriptor: FieldDescriptor
    binder: Binder | None

    @property
    def kind(self):
        return self.descriptor.kind


class Frame(NamedTuple):
    node: "CommandNode"
    instance: object


class CommandNode:
    """
    A built command.

    The action is driven by exactly one of ``function`` (a plain callable, possibly
    taking a Context and/or the aggregate instance) or ``schema`` with a ``run`` method.
    A node with neither only routes to its children.
    """
    __introspectable__ = (
        "name",
        "description",
        "parent",
        "children",
        "fields",
        "attribute",
    )

    name = mirror("name")
    description = mirror("description")
    parent = mirror("parent")
    children = mirror("children")
    attribute = mirror("attribute")

    def __init__(self, name, /, description="", *, schema=None, template=None, function=None, parameters=(), fields=()):
        self._name = name
        self._description = description or ""
        self._schema = schema
        self._template = template
        self._function = function
        self._parameters = tuple(parameters)
        self._fields = tuple(fields)
        self._children = {}
        self._parent = None
        self._attribute = None

    def __repr__(self):
        return "CommandNode(%r)" % " ".join(step.name for step in self.path)

    def __rich_repr__(self):
        for name in self.__introspectable__:
            yield name, getattr(self, name)

    @property
    def schema(self):
        return self._schema

    @property
    def function(self):
        return self._function

    @property
    def parameters(self):
        return self._parameters

    @property
    def fields(self):
        return self._fields

    @property
    def runnable(self):
        return self._function is not None or callable(getattr(self._schema, "run", None))

    @property
    def flags(self):
        return tuple(field for field in self._fields if field.kind is Kind.FLAG)

    @property
    def positionals(self):
        return tuple(field for field in self._fields if field.kind is Kind.POSITIONAL)

    @property
    def root(self):
        """Return the topmost node of this tree."""
        child, parent = self, self._parent
        while parent:
            child, parent = parent, parent._parent
        return child

    @property
    def path(self):
        """Return the nodes from the root down to this one."""
        path = [node := self]
        while node._parent:
            path.append(node := node._parent)
        return tuple(reversed(path))

    def child(self, token, /):
        """Look up a child by name, case-insensitively; return None when absent."""
        try:
            return self._children[token]
        except KeyError:
            pass
        folded = token.casefold()
        for name, child in self._children.items():
            if name.casefold() == folded:
                return child
        return None

    def spawn(self):
        """
        Create a fresh live instance with every bindable field at its zero value.

        Nodes without a schema (plain functions, targets, groups) have no instance.
        """
        if self._schema is None:
            return None
        if self._template is not None:
            instance = copy.copy(self._template)
        else:
            instance = self._schema.__new__(self._schema)
        for field in self._fields:
            if field.binder is not None:
                setattr(instance, field.attribute, field.binder.zero())
            elif not callable(_declared(instance, field.attribute)):
                setattr(instance, field.attribute, None)
        return instance

    def attach(self, parent, instance, /):
        """Store a spawned child instance into the parent instance's subcommand field."""
        if parent is not None and instance is not None and self._attribute is not None:
            setattr(parent, self._attribute, instance)

    def _adopt(self, child, /):
        if child._name in self._children:
            raise DuplicatedCommandError(
                "command %s already has a subcommand named %s" % (self._name, child._name),
                hint="rename one of them with subcommand=NAME",
            )
        child._parent = self
        self._children[child._name] = child


def _qualname(object):
    return getattr(object, "__qualname__", type(object).__qualname__)


def _hints(object):
    try:
        return typing.get_type_hints(object, include_extras=True)
    except (NameError, TypeError):
        return dict(getattr(object, "__annotations__", {}))


def _roles(function, what):
    """Validate a command function and return its (name, role, keyword_only) parameters."""
    if inspect.iscoroutinefunction(function):
        raise SignatureError(
            "command %s must not be a coroutine function" % what,
            hint="wrap the coroutine with asyncio.run() inside a regular function",
        )
    try:
        signature = inspect.signature(function)
    except (TypeError, ValueError) as error:
        raise SignatureError("command %s has no usable signature: %s" % (what, error)) from None
    hints = _hints(function)
    roles = []
    schema = None
    for parameter in signature.parameters.values():
        if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
            raise SignatureError("command %s must not take *args or **kwargs" % what)
        annotation = _strip(hints.get(parameter.name, parameter.annotation))
        if annotation is Context or (annotation is parameter.empty and parameter.name in ("ctx", "context")):
            role = "context"
        elif isinstance(annotation, type) and annotation is not parameter.empty:
            role = "aggregate"
            schema = annotation
        else:
            raise SignatureError(
                "parameter %s of command %s must be a Context or an annotated class" % (parameter.name, what),
                hint="annotate it with commandeer.Context or with the class holding the flags",
            )
        if role in (existing for _, existing, _ in roles):
            raise SignatureError("command %s takes more than one %s parameter" % (what, role))
        roles.append((parameter.name, role, parameter.kind is parameter.KEYWORD_ONLY))
    return tuple(roles), schema


def _declared(owner, attribute):
    """
    Return the value stored for ``attribute`` without binding it to ``owner``.

    Functions declared on the class stay plain functions (not bound methods), so their
    signature describes what the command actually receives.
    """
    value = getattr(owner, "__dict__", {}).get(attribute, Unset)
    if value is Unset:
        value = inspect.getattr_static(type(owner), attribute, None)
    if inspect.isdatadescriptor(value):
        value = getattr(owner, attribute, None)
    if isinstance(value, staticmethod):
        value = value.__func__
    return value


def _schema(schema, owner, what):
    """Build the field table of an aggregate class; ``owner`` is a zero or template instance."""
    fields = []
    children = []
    for attribute, hint in _hints(schema).items():
        if typing.get_origin(hint) is ClassVar:
            continue
        text = annotation_text(hint)
        if attribute.startswith("_"):
            if text:
                raise HiddenFieldError(
                    "field %s must be exported" % attribute,
                    hint="drop the leading underscore or remove the annotation text",
                )
            continue

        descriptor = extract(text, attribute, owner)

        if descriptor.kind is Kind.SUBCOMMAND:
            value = _declared(owner, attribute)
            if callable(value) and not isinstance(value, type):
                child = build(value, name=descriptor.name)
            elif value is not None:
                raise PrefilledFieldError(
                    "command %s must not prefill subcommand %s; use default tags instead" % (what, attribute)
                )
            elif isinstance(target := _strip(hint), type):
                child = build(target, name=descriptor.name)
            else:
                raise UnsupportedFieldError(
                    "subcommand field %s of %s must be annotated with a command class" % (attribute, what)
                )
            child._attribute = attribute
            children.append(child)
            fields.append(Field(attribute, descriptor, None))
            continue

        value = getattr(owner, attribute, None)
        try:
            binder = Binder(hint)
        except TypeError as error:
            raise UnsupportedFieldError(
                "field %s of %s has an unsupported type: %s" % (attribute, what, error),
                hint="use str, int, float, bool, list, dict, or a type with from_text()/set()",
            ) from None
        if not binder.iszero(value):
            raise PrefilledFieldError(
                "command %s must be zero value; use default tags instead of prefilled fields" % what,
                hint="move the value of %s into its annotation (default=...)" % attribute,
            )
        fields.append(Field(attribute, descriptor, binder))
    return fields, children


def _describe(owner, name, description):
    if callable(method := getattr(owner, "command_name", None)):
        name = method() or name
    if callable(method := getattr(owner, "description", None)):
        description = method() or description
    elif callable(run := getattr(owner, "run", None)):
        description = inspect.getdoc(run) or description
    return name, description


def _aggregate(descriptor, name):
    if isinstance(descriptor, type):
        schema, template = descriptor, None
        owner = schema.__new__(schema)
    else:
        schema, template = type(descriptor), descriptor
        owner = descriptor
    what = schema.__name__

    if inspect.iscoroutinefunction(getattr(schema, "run", None)):
        raise SignatureError("run of command %s must not be a coroutine function" % what)

    fields, children = _schema(schema, owner, what)
    resolved, description = _describe(owner, kebabize(what), "")
    node = CommandNode(
        coalesce(name, resolved),
        description,
        schema=schema,
        template=template,
        fields=fields,
    )
    for child in children:
        node._adopt(child)
    return node


def _routine(function, name, description=""):
    what = getattr(function, "__name__", _qualname(function))
    parameters, schema = _roles(function, what)
    fields, children = [], []
    if schema is not None:
        fields, children = _schema(schema, schema.__new__(schema), schema.__name__)
    node = CommandNode(
        coalesce(name, kebabize(what)),
        description or inspect.getdoc(function) or "",
        schema=schema,
        function=function,
        parameters=parameters,
        fields=fields,
    )
    for child in children:
        node._adopt(child)
    return node


def _target(target, name):
    function = target.fn()
    if not callable(function) or isinstance(function, type):
        raise InvalidDescriptorError(
            "target %s must return a function from fn() (got %s)" % (target.get_name() or "?", type(function).__name__)
        )
    node = _routine(function, coalesce(name, target.get_name() or Unset), target.get_description() or "")
    return node


def _group(group, name):
    if not _GROUP_NAME.fullmatch(resolved := group.get_name() or ""):
        raise InvalidDescriptorError(
            "group name %r must match ^[a-z][a-z0-9-]*$" % resolved,
            hint="use lower-case letters, digits and dashes, starting with a letter",
        )
    node = CommandNode(coalesce(name, resolved))
    for index, member in enumerate(group.get_members(), 1):
        if member is None:
            raise InvalidDescriptorError("%s member of group %s is None" % (ordinal(index), resolved))
        node._adopt(build(member))
    return node


def _check_flags(node, inherited):
    seen = dict(inherited)
    for field in node.flags:
        for key in (field.descriptor.longname, field.descriptor.shortname):
            if not key:
                continue
            if key in seen:
                raise DuplicatedFlagError(
                    "flag %s already defined" % key,
                    hint="%s is declared by both %s and %s" % (key, seen[key], node.name),
                )
            seen[key] = node.name
    for child in node._children.values():
        _check_flags(child, seen)


def build(descriptor, /, name=Unset):
    """
    Build a CommandNode tree from a root descriptor.

    ``name`` overrides the resolved name (subcommand fields pass their own).
    Raises StructuralError subclasses or SignatureError on invalid declarations.
    """
    if descriptor is None:
        raise InvalidDescriptorError("command target must not be None")

    if isinstance(descriptor, CommandNode):
        node = descriptor
    elif isinstance(descriptor, type):
        node = _aggregate(descriptor, name)
    elif isinstance(descriptor, GroupLike):
        node = _group(descriptor, name)
    elif isinstance(descriptor, TargetLike):
        node = _target(descriptor, name)
    elif inspect.isroutine(descriptor) or (callable(descriptor) and not _hints(type(descriptor))):
        node = _routine(descriptor, name)
    elif _hints(type(descriptor)):
        node = _aggregate(descriptor, name)
    else:
        raise InvalidDescriptorError(
            "unsupported command target %s" % _qualname(descriptor),
            hint="pass a class, an instance, a function, a target or a group",
        )

    if node.parent is None:
        _check_flags(node, {})
    logger.debug("built command %s with %d field(s) and %d subcommand(s)", node.name, len(node.fields), len(node.children))
    return node


__all__ = (
    "TargetLike",
    "GroupLike",
    "Field",
    "Frame",
    "CommandNode",
    "build",
)
