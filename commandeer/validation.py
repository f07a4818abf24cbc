"""
Validation and defaulting of a resolved command chain.

Precedence for every flag, first match wins:
1. the value given on the command line;
2. a non-empty environment variable named by ``env=``;
3. the static ``default=``;
4. otherwise, a ``required`` flag is a MissingFlagError.
"""
import logging
import os

from .faults import *
from .registry import Registry
from .utils import *

logger = logging.getLogger(__name__)


def apply_defaults(registry, state, /, environ=None):
    """Fill every flag not yet resolved from the environment, else from its default."""
    environ = os.environ if environ is None else environ
    for spec in registry.flags:
        if state.resolved(spec):
            continue
        descriptor = spec.descriptor

        if descriptor.env and (value := environ.get(descriptor.env, "")):
            try:
                spec.assign(value)
            except (ValueError, TypeError) as error:
                raise InvalidEnvironmentError(
                    "invalid value for env %s: %s" % (descriptor.env, error),
                    hint="fix or unset %s" % descriptor.env,
                ) from None
            spec.env_applied = True
            state.settle(spec)
            logger.debug("%s taken from $%s", spec.longname, descriptor.env)
            continue

        if descriptor.default is not Unset:
            try:
                spec.assign(descriptor.default)
            except (ValueError, TypeError) as error:
                raise InvalidDefaultError("invalid default for %s: %s" % (spec.longname, error)) from None
            spec.default_applied = True
            state.settle(spec)


def check_required(registry, state, /):
    """Raise MissingFlagError for the first required flag left without a value."""
    for spec in registry.flags:
        if spec.required and not state.resolved(spec):
            hint = "pass %s" % spec.longname
            if spec.descriptor.env:
                hint += " or set $%s" % spec.descriptor.env
            raise MissingFlagError("missing required flag %s" % spec.label(), hint=hint)


def validate(chain, state, /, environ=None):
    """Default and check every flag along ``chain``; return the registry used."""
    registry = Registry.collect(chain)
    apply_defaults(registry, state, environ)
    check_required(registry, state)
    return registry


__all__ = (
    "apply_defaults",
    "check_required",
    "validate",
)
