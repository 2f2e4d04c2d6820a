"""An immutable, cancellable key-value carrier.

Contexts are never modified; you derive a new one from a parent:

```
ctx = context.with_value(context.background(), "user", "peter")
ctx, cancel = context.with_timeout(ctx, 3.0)
...
ctx.done().wait()  # set on cancel() or once 3 seconds have passed
assert isinstance(ctx.err(), context.DeadlineExceeded)
```

Cancelling a context cancels everything derived from it, but never its parent.
"""

import threading
import typing as ty
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from thds.core import log

logger = log.getLogger(__name__)
_NO_KEY = object()


class Cancelled(Exception):
    pass


class DeadlineExceeded(Cancelled, TimeoutError):
    pass


class _CancelScope:
    """Shared by a cancellable context and every context derived from it
    until the next cancellable descendant.
    """

    def __init__(self, parent: ty.Optional["_CancelScope"], deadline: ty.Optional[datetime]):
        self.event = threading.Event()
        self.err: ty.Optional[Cancelled] = None
        self.deadline = deadline
        self._parent = parent
        self._children: ty.Set["_CancelScope"] = set()
        self._timer: ty.Optional[threading.Timer] = None
        self._lock = threading.Lock()
        if parent:
            parent._adopt(self)

    def _adopt(self, child: "_CancelScope") -> None:
        with self._lock:
            if self.err is None:
                self._children.add(child)
                return
        child.cancel(self.err)

    def _orphan(self, child: "_CancelScope") -> None:
        with self._lock:
            self._children.discard(child)

    def start_timer(self) -> None:
        assert self.deadline is not None
        seconds = (self.deadline - datetime.now(timezone.utc)).total_seconds()
        if seconds <= 0:
            self.cancel(DeadlineExceeded(f"deadline {self.deadline} already passed"))
            return
        timer = threading.Timer(
            seconds, self.cancel, args=(DeadlineExceeded(f"deadline {self.deadline} exceeded"),)
        )
        timer.daemon = True
        with self._lock:
            if self.err is not None:
                return
            self._timer = timer
        timer.start()

    def cancel(self, err: Cancelled) -> None:
        with self._lock:
            if self.err is not None:
                return
            self.err = err
            children, self._children = self._children, set()
            timer, self._timer = self._timer, None
        self.event.set()
        if timer:
            timer.cancel()
        for child in children:
            child.cancel(err)
        if self._parent:
            self._parent._orphan(self)


@dataclass(frozen=True, eq=False)
class Context:
    """Compares by identity. Build these with the module-level constructors."""

    _parent: ty.Optional["Context"] = None
    _key: ty.Any = _NO_KEY
    _val: ty.Any = None
    _scope: ty.Optional[_CancelScope] = None

    def value(self, key: ty.Any) -> ty.Any:
        """The value nearest to this context for the key, or None."""
        ctx: ty.Optional[Context] = self
        while ctx is not None:
            if ctx._key is not _NO_KEY and ctx._key == key:
                return ctx._val
            ctx = ctx._parent
        return None

    def done(self) -> threading.Event:
        if self._scope is None:
            return threading.Event()  # never set
        return self._scope.event

    def err(self) -> ty.Optional[Cancelled]:
        return self._scope.err if self._scope else None

    def deadline(self) -> ty.Optional[datetime]:
        return self._scope.deadline if self._scope else None

    @property
    def cancelled(self) -> bool:
        return self.err() is not None

    def __repr__(self) -> str:
        parts = []
        ctx: ty.Optional[Context] = self
        while ctx is not None:
            if ctx._key is not _NO_KEY:
                parts.append(f"{ctx._key!r}={ctx._val!r}")
            ctx = ctx._parent
        state = f", err={self.err()!r}" if self.cancelled else ""
        return f"Context({', '.join(parts)}{state})"


_BACKGROUND = Context()


def background() -> Context:
    return _BACKGROUND


def with_value(parent: Context, key: ty.Any, val: ty.Any) -> Context:
    if key is None:
        raise ValueError("Context keys may not be None")
    return Context(parent, key, val, parent._scope)


def with_cancel(parent: Context) -> ty.Tuple[Context, ty.Callable[[], None]]:
    scope = _CancelScope(parent._scope, parent.deadline())
    return Context(parent, _NO_KEY, None, scope), lambda: scope.cancel(Cancelled("context cancelled"))


def with_deadline(parent: Context, when: datetime) -> ty.Tuple[Context, ty.Callable[[], None]]:
    """The earlier of `when` and the parent's deadline applies.

    Each deadline runs a daemon timer thread until it fires or the returned
    cancel is called, so call cancel once the context is no longer needed.
    """
    if when.tzinfo is None:
        raise ValueError(f"Deadline {when} must be timezone-aware")
    parent_deadline = parent.deadline()
    if parent_deadline is not None and parent_deadline <= when:
        return with_cancel(parent)

    scope = _CancelScope(parent._scope, when)
    scope.start_timer()
    logger.debug("Created context with deadline %s", when)
    return Context(parent, _NO_KEY, None, scope), lambda: scope.cancel(Cancelled("context cancelled"))


def with_timeout(parent: Context, seconds: float) -> ty.Tuple[Context, ty.Callable[[], None]]:
    """with_deadline, `seconds` from now. Call the returned cancel when done."""
    return with_deadline(parent, datetime.now(timezone.utc) + timedelta(seconds=seconds))
