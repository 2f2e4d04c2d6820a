"""The identity-keyed store behind provide/inject.

A provider stores a context against the identities of one or more receiver
functions; each receiver later looks itself up by its own identity and frees the
entry when done. Nothing here expires on its own - an entry that is never freed
lives as long as the Registry does.
"""

import threading
import typing as ty
from functools import partial

from thds.core import config, log

from . import identity
from .context import background
from .errors import NilContextError, ProvideError, UnresolvableReceiverError
from .values import SupportsValue, context_value, zero

T = ty.TypeVar("T")
Free = ty.Callable[[], None]

LEAK_WARNING_THRESHOLD = config.item("thds.contextprovider.leak_warning_threshold", 10_000, parse=int)
# a warning, not a limit - set to 0 to turn it off.
logger = log.getLogger(__name__)


def _noop() -> None:
    pass


class Injected(ty.NamedTuple):
    ctx: SupportsValue
    ok: bool
    free: Free


class Registry:
    def __init__(self, name: str = ""):
        self.name = name
        self._entries: ty.Dict[identity.Identity, SupportsValue] = dict()
        self._lock = threading.Lock()
        self._over_threshold = False

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, receiver: ty.Any) -> bool:
        if not isinstance(receiver, (identity.FunctionIdentity, identity.ReceiverKey)):
            try:
                receiver = identity.of_function(receiver)
            except UnresolvableReceiverError:
                return False
        with self._lock:
            return receiver in self._entries

    def __repr__(self) -> str:
        return f"Registry({self.name!r}, entries={len(self)})"

    def identities(self) -> ty.List[identity.Identity]:
        with self._lock:
            return list(self._entries)

    def provide(
        self,
        ctx: SupportsValue,
        receiver: ty.Any,
        *receivers: ty.Any,
        instance: ty.Hashable = None,
    ) -> None:
        """Store ctx for each receiver, overwriting anything already stored for it.

        Receivers are functions (or ReceiverKeys). Any that can't be resolved are
        reported together in a ProvideError, but only after every receiver that
        _could_ be resolved has been provided for.
        """
        if ctx is None:
            raise NilContextError("provided ctx is None")

        errors: ty.List[UnresolvableReceiverError] = list()
        resolved: ty.List[identity.Identity] = list()
        for r in (receiver, *receivers):
            try:
                resolved.append(identity.resolve(r, instance))
            except UnresolvableReceiverError as err:
                errors.append(err)

        with self._lock:
            for ident in resolved:
                self._entries[ident] = ctx
            warn_size = self._check_threshold()

        for ident in resolved:
            logger.debug("Provided context", receiver=str(ident), registry=self.name)
        if warn_size:
            logger.warning(
                f"Registry {self.name!r} is holding {warn_size} contexts."
                " Receivers may not be freeing the contexts they inject.",
                threshold=LEAK_WARNING_THRESHOLD(),
            )
        if errors:
            raise ProvideError(errors)

    def _check_threshold(self) -> int:
        """Must be called with the lock held. Returns the size if we just crossed the threshold."""
        threshold = LEAK_WARNING_THRESHOLD()
        over = bool(threshold) and len(self._entries) > threshold
        crossed = over and not self._over_threshold
        self._over_threshold = over
        return len(self._entries) if crossed else 0

    def lookup(self, ident: ty.Optional[identity.Identity]) -> Injected:
        """The explicit form of inject - no stack introspection."""
        if ident is None:
            return Injected(background(), False, _noop)
        with self._lock:
            ctx = self._entries.get(ident)
        if ctx is None:
            return Injected(background(), False, _noop)
        return Injected(ctx, True, partial(self.free, ident))

    def inject(
        self,
        receiver: ty.Any = None,
        *,
        instance: ty.Hashable = None,
        stacklevel: int = 1,
    ) -> Injected:
        """Call from inside the receiver to get the context that was provided for it.

        With no receiver, the calling function identifies itself by its place on the
        stack. If you wrap this call in a helper, pass stacklevel=2 (and so on) so
        that it is the helper's caller that gets identified, as with logging.

        Returns background() and ok=False if nothing was provided. Call free once
        the context is no longer needed.
        """
        if receiver is None:
            ident = identity.of_caller(stacklevel + 1, instance)
            if ident is None:
                logger.debug("Unable to identify the caller of inject", depth=stacklevel)
        else:
            try:
                ident = identity.resolve(receiver, instance)
            except UnresolvableReceiverError:
                ident = None
        return self.lookup(ident)

    @ty.overload
    def inject_value(
        self,
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
        self,
        key: ty.Any,
        type_: ty.Any,
        receiver: ty.Any = None,
        *,
        instance: ty.Hashable = None,
        stacklevel: int = 1,
    ) -> ty.Tuple[ty.Any, bool, Free]:
        ...  # pragma: no cover

    def inject_value(self, key, type_, receiver=None, *, instance=None, stacklevel=1):
        """Like inject, but fetches a single value of the requested type from the context.

        A missing key or a value of the wrong type gives back the zero value and
        ok=False - but the free is still real, since the context was found. Only free
        it when nothing else in it is still needed.
        """
        ctx, ok, free = self.inject(receiver, instance=instance, stacklevel=stacklevel + 1)
        if not ok:
            return zero(type_), False, free
        value, ok = context_value(ctx, key, type_)
        return value, ok, free

    def free(self, ident: identity.Identity) -> None:
        with self._lock:
            removed = self._entries.pop(ident, None) is not None
            if len(self._entries) <= LEAK_WARNING_THRESHOLD():
                self._over_threshold = False
        if removed:
            logger.debug("Freed context", receiver=str(ident), registry=self.name)

    def free_context(self, *receivers: ty.Any, instance: ty.Hashable = None) -> None:
        """An escape hatch for freeing contexts long after consumption, or from outside
        the receiver entirely. Anything that is not a function is ignored.
        """
        for receiver in receivers:
            try:
                ident = identity.resolve(receiver, instance)
            except UnresolvableReceiverError as err:
                logger.debug(f"Ignoring receiver that cannot be freed: {err}")
                continue
            self.free(ident)
