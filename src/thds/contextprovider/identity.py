"""Stable identities for receiver functions.

A function is identified by its code object - the entry point shared by every
function value created from the same `def` or `lambda` - so the identity derived
from a function value is the same one derived from a frame executing that
function. Closure-captured state plays no part in it, which means that two
closures made by the same factory share an identity. Pass an `instance` token
to tell them apart, or use a `ReceiverKey` and skip stack introspection
altogether.

Identities compare by the code object itself, never by its name or location:
two lambdas on one line, or two exec'd bodies with the same pseudo-filename, are
different receivers.
"""

import functools
import inspect
import types
import typing as ty
from dataclasses import dataclass, field

from .errors import NotAFunctionError, UnhashableInstanceError

_currentframe = inspect.currentframe
# the one frame primitive we use; tests replace it to simulate an interpreter without frames.


@dataclass(frozen=True)
class FunctionIdentity:
    code_id: int
    instance: ty.Hashable = None
    code: types.CodeType = field(default=None, compare=False, repr=False)  # type: ignore
    # holding the code keeps code_id from being reused while this identity is alive.

    @property
    def filename(self) -> str:
        return self.code.co_filename

    @property
    def lineno(self) -> int:
        return self.code.co_firstlineno

    @property
    def name(self) -> str:
        return getattr(self.code, "co_qualname", self.code.co_name)  # 3.11+

    def __str__(self) -> str:
        instance = f"[{self.instance}]" if self.instance is not None else ""
        return f"{self.name}@{self.filename}:{self.lineno}{instance}"


@dataclass(frozen=True)
class ReceiverKey:
    """An explicit receiver identity, declared once at module level and shared
    by provider and receiver.
    """

    name: str

    def __str__(self) -> str:
        return f"ReceiverKey({self.name})"


Identity = ty.Union[FunctionIdentity, ReceiverKey]


def _is_hashable(instance: ty.Any) -> bool:
    try:
        hash(instance)
    except TypeError:
        return False
    return True


def _of_code(code: types.CodeType, instance: ty.Hashable) -> FunctionIdentity:
    return FunctionIdentity(id(code), instance, code)


def _unwrap(f: ty.Any) -> ty.Any:
    if isinstance(f, functools.partial):
        return _unwrap(f.func)
    if inspect.ismethod(f) or isinstance(f, (staticmethod, classmethod)):
        return _unwrap(f.__func__)
    if hasattr(f, "__wrapped__"):
        return _unwrap(inspect.unwrap(f))
    return f


def of_function(f: ty.Any, instance: ty.Hashable = None) -> FunctionIdentity:
    """The identity of the code that will run when f is called.

    Partials, bound methods and decorators that use functools.wraps are seen
    through, since it is the innermost function body that will later ask for
    its context.
    """
    func = _unwrap(f)
    if inspect.isbuiltin(func):
        raise NotAFunctionError(f, "is a builtin and has no Python code to identify")
    if not inspect.isfunction(func):
        raise NotAFunctionError(f)
    if not _is_hashable(instance):
        raise UnhashableInstanceError(f, instance)
    return _of_code(func.__code__, instance)


def of_caller(skip: int = 1, instance: ty.Hashable = None) -> ty.Optional[FunctionIdentity]:
    """skip=1 means "whoever calls me", skip=2 "whoever calls my caller", etc.

    Returns None if the stack cannot be inspected that far, or if the instance
    token is unhashable.
    """
    if not _is_hashable(instance):
        return None
    frame = _currentframe()
    try:
        for _ in range(skip):
            if frame is None:
                break
            frame = frame.f_back
        if frame is None:
            return None
        return _of_code(frame.f_code, instance)
    finally:
        del frame  # avoid reference cycles


def resolve(receiver: ty.Any, instance: ty.Hashable = None) -> Identity:
    if isinstance(receiver, ReceiverKey):
        return receiver
    return of_function(receiver, instance)
