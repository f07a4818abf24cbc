"""
Execution dispatcher: run one planned invocation.

Phases
1. ``persistent_before`` hooks, top-down over the frame chain.
2. The leaf action: ``run`` on an aggregate instance, or the node's function with its
   Context and/or aggregate arguments.
3. ``persistent_after`` hooks, bottom-up.

Results
- ``None`` is success.
- A returned exception instance is an error.
- Anything else is a SignatureError.

A returned opaque error is raised as DispatchError carrying the original as ``__cause__``.
Raised exceptions and returned CommandExceptions propagate untouched. The first error
aborts the rest of the chain.
"""
import inspect
import logging
import threading

from .faults import *

logger = logging.getLogger(__name__)


class Context:
    """
    Cancellation handle forwarded to actions and hooks.

    Wraps a threading.Event; the resolver never inspects it.
    """
    __slots__ = ("_event",)

    def __init__(self):
        self._event = threading.Event()

    def __repr__(self):
        return "Context(cancelled=%s)" % self.cancelled

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()

    def wait(self, timeout=None, /):
        """Block until cancelled or until ``timeout`` seconds elapse; return ``cancelled``."""
        return self._event.wait(timeout)


def _arity(method, what):
    try:
        parameters = inspect.signature(method).parameters.values()
    except (TypeError, ValueError):
        return 0
    required = [
        parameter for parameter in parameters
        if parameter.kind in (parameter.POSITIONAL_ONLY, parameter.POSITIONAL_OR_KEYWORD)
    ]
    if len(required) > 1 or any(parameter.kind is parameter.KEYWORD_ONLY and parameter.default is parameter.empty for parameter in parameters):
        raise SignatureError(
            "%s must accept no arguments or a single context (got %s)" % (what, inspect.signature(method)),
            hint="declare it as %s(self) or %s(self, ctx)" % (what, what),
        )
    return len(required)


def _call(method, context, what):
    if inspect.iscoroutinefunction(method):
        raise SignatureError("%s must not be a coroutine function" % what)
    return method(context) if _arity(method, what) else method()


def _settle(result, what):
    """Turn an action/hook result into None or a raised fault."""
    if result is None:
        return
    if isinstance(result, BaseException):
        if isinstance(result, CommandException):
            raise result
        fault = DispatchError(str(result))
        fault.__cause__ = result
        raise fault
    raise SignatureError(
        "%s returned %s; expected None or an exception" % (what, type(result).__name__),
        code=FaultCode.INVALID_RESULT,
    )


def _arguments(node, instance, context):
    arguments, keywords = [], {}
    for name, role, keyword in node.parameters:
        value = context if role == "context" else instance
        if keyword:
            keywords[name] = value
        else:
            arguments.append(value)
    return arguments, keywords


def dispatch(invocation, context, /):
    """
    Run the hooks and action of one invocation (a root-to-leaf tuple of frames).

    Returns nothing; raises the first error encountered.
    """
    for node, instance in invocation:
        if instance is not None and callable(hook := getattr(instance, "persistent_before", None)):
            logger.debug("persistent_before on %s", node.name)
            _settle(_call(hook, context, "persistent_before"), "persistent_before")

    node, instance = invocation[-1]
    logger.debug("running %s", " ".join(step.name for step, _ in invocation))
    if node.function is not None:
        arguments, keywords = _arguments(node, instance, context)
        _settle(node.function(*arguments, **keywords), node.name)
    elif instance is not None and callable(run := getattr(instance, "run", None)):
        _settle(_call(run, context, "run"), "run")

    for node, instance in reversed(invocation):
        if instance is not None and callable(hook := getattr(instance, "persistent_after", None)):
            logger.debug("persistent_after on %s", node.name)
            _settle(_call(hook, context, "persistent_after"), "persistent_after")


__all__ = (
    "Context",
    "dispatch",
)
