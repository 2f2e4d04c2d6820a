import typing as ty

import pytest

from thds import contextprovider as cp

QUESTION = "The Ultimate Question of Life, the Universe and Everything"
ANSWER = 42


@pytest.fixture(autouse=True)
def registry() -> ty.Iterator[cp.Registry]:
    """Every test gets its own registry, so leftover entries can't leak between tests."""
    with cp.use(cp.Registry("test")) as reg:
        yield reg


@pytest.fixture
def answer_ctx() -> cp.Context:
    return cp.with_value(cp.background(), QUESTION, ANSWER)
