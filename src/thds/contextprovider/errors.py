import typing as ty


class ContextProviderError(Exception):
    pass


class NilContextError(ContextProviderError, ValueError):
    """Raised by provide when there is no context to provide."""


class UnresolvableReceiverError(ContextProviderError, TypeError):
    def __init__(self, receiver: ty.Any, reason: str):
        super().__init__(f"{receiver!r} {reason}")
        self.receiver = receiver


class NotAFunctionError(UnresolvableReceiverError):
    def __init__(self, receiver: ty.Any, reason: str = "is not a function"):
        super().__init__(receiver, reason)


class UnhashableInstanceError(UnresolvableReceiverError):
    def __init__(self, receiver: ty.Any, instance: ty.Any):
        super().__init__(receiver, f"cannot be told apart by unhashable instance {instance!r}")
        self.instance = instance


class ProvideError(ContextProviderError):
    """One or more receivers passed to a single provide call could not be resolved.

    Every receiver that _could_ be resolved has still had its context stored.
    """

    def __init__(self, errors: ty.Sequence[UnresolvableReceiverError]):
        super().__init__("\n".join(str(err) for err in errors))
        self.errors = list(errors)
