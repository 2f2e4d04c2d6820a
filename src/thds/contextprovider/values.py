import types
import typing as ty

T = ty.TypeVar("T")
_UNIONS = {ty.Union, getattr(types, "UnionType", ty.Union)}  # X | Y is 3.10+


class SupportsValue(ty.Protocol):
    def value(self, key: ty.Any) -> ty.Any:
        ...  # pragma: no cover


_ZERO_FACTORIES: ty.Dict[type, ty.Callable[[], ty.Any]] = {
    t: t for t in (int, float, complex, str, bytes, bool, list, dict, tuple, set, frozenset, bytearray)
}


def zero(type_: ty.Any) -> ty.Any:
    """The 'empty' value handed back when a typed lookup misses.

    Builtin scalars and containers get their empty value; anything else gets None.
    """
    factory = _ZERO_FACTORIES.get(ty.get_origin(type_) or type_)
    return factory() if factory else None


def _runtime_types(type_: ty.Any) -> ty.Tuple[type, ...]:
    origin = ty.get_origin(type_)
    if origin in _UNIONS:
        return tuple(t for arg in ty.get_args(type_) for t in _runtime_types(arg))
    if origin is not None:
        return (origin,)
    return (type_,)


def narrows(value: ty.Any, type_: ty.Any) -> bool:
    if value is None:
        return False
    if type_ is ty.Any:
        return True
    runtime_types = _runtime_types(type_)
    if isinstance(value, bool) and bool not in runtime_types and object not in runtime_types:
        # bool subclasses int, but a flag is not a number.
        return False
    return isinstance(value, runtime_types)


@ty.overload
def context_value(ctx: SupportsValue, key: ty.Any, type_: ty.Type[T]) -> ty.Tuple[T, bool]:
    ...  # pragma: no cover


@ty.overload
def context_value(ctx: SupportsValue, key: ty.Any, type_: ty.Any) -> ty.Tuple[ty.Any, bool]:
    ...  # pragma: no cover


def context_value(ctx, key, type_):
    """Like inject_value, but against a context you already have in hand.

    Returns the zero value of type_ and False if the key is missing or its value is
    not of the requested type.
    """
    value = ctx.value(key)
    if not narrows(value, type_):
        return zero(type_), False
    return value, True
