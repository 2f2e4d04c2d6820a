"""Module-level provide/inject, backed by whichever Registry is active.

There is one process-wide default. `use` swaps in a different Registry for
everything below the current place on the stack; like any StackContext, it does
not follow you into newly spawned threads, which will see the default.
"""

import typing as ty

from thds.core.stack_context import StackContext

from .registry import Free, Injected, Registry

T = ty.TypeVar("T")

_DEFAULT_REGISTRY = Registry("default")
_ACTIVE_REGISTRY = StackContext("thds.contextprovider.registry", _DEFAULT_REGISTRY)


def active() -> Registry:
    return _ACTIVE_REGISTRY()


def use(registry: Registry) -> ty.ContextManager[Registry]:
    return _ACTIVE_REGISTRY.set(registry)


def provide(ctx: ty.Any, receiver: ty.Any, *receivers: ty.Any, instance: ty.Hashable = None) -> None:
    """Provide a non-None context to one or more receiver functions.

    Raises NilContextError if ctx is None, and ProvideError if any of the receivers
    are not functions - the ones that are will still have been provided for.
    """
    active().provide(ctx, receiver, *receivers, instance=instance)


def inject(receiver: ty.Any = None, *, instance: ty.Hashable = None, stacklevel: int = 1) -> Injected:
    """Should be called in the context-receiving function; returns the context provided for it.

    If there's no context provided for the function, background() is returned and
    ok is False. The free function should be used to clear the context once it is
    no longer needed.
    """
    return active().inject(receiver, instance=instance, stacklevel=stacklevel + 1)


@ty.overload
def inject_value(
    key: ty.Any,
    type_: ty.Type[T],
    receiver: ty.Any = None,
    *,
    instance: ty.Hashable = None,
    stacklevel: int = 1,
) -> ty.Tuple[T, bool, Free]:
    ...  # pragma: no cover


@ty.overload
def inject_value(
    key: ty.Any,
    type_: ty.Any,
    receiver: ty.Any = None,
    *,
    instance: ty.Hashable = None,
    stacklevel: int = 1,
) -> ty.Tuple[ty.Any, bool, Free]:
    ...  # pragma: no cover


def inject_value(key, type_, receiver=None, *, instance=None, stacklevel=1):
    """Should be called in the value-receiving function; returns the value of type_ for the key.

    If there's no such key, or its value is not a type_, the zero value of type_ is
    returned and ok is False. Free the context only once there are no more values in
    it to be consumed.
    """
    return active().inject_value(
        key, type_, receiver, instance=instance, stacklevel=stacklevel + 1
    )


def free_context(*receivers: ty.Any, instance: ty.Hashable = None) -> None:
    """Frees the context provided for zero or more receiver functions.

    Usually you'd use the free returned by inject/inject_value right after
    consumption; this is for when you need to free it much later, or from somewhere
    else entirely. Anything that isn't a function is quietly skipped.
    """
    active().free_context(*receivers, instance=instance)
