"""Hand a context to specific downstream functions without changing their signatures.

```
from thds import contextprovider as cp

def handler():
    user, ok, free = cp.inject_value("user", str)
    ...
    free()

def endpoint(request):
    cp.provide(cp.with_value(cp.background(), "user", request.user), handler)
    middleware_that_eventually_calls_handler()
```

Only `handler` can see the context; everything between `endpoint` and `handler`
is none the wiser.
"""

from thds.core import meta

from . import context, errors, identity, registry, values  # noqa: F401
from .api import active, free_context, inject, inject_value, provide, use  # noqa: F401
from .context import (  # noqa: F401
    Cancelled,
    Context,
    DeadlineExceeded,
    background,
    with_cancel,
    with_deadline,
    with_timeout,
    with_value,
)
from .errors import (  # noqa: F401
    ContextProviderError,
    NilContextError,
    NotAFunctionError,
    UnhashableInstanceError,
    UnresolvableReceiverError,
    ProvideError,
)
from .identity import FunctionIdentity, ReceiverKey  # noqa: F401
from .registry import Injected, Registry  # noqa: F401
from .values import context_value  # noqa: F401

__version__ = meta.get_version(__name__)
