import typing as ty
from concurrent.futures import ThreadPoolExecutor

from thds import contextprovider as cp


def test_registries_are_safe_to_share_across_threads():
    registry = cp.Registry("threads")
    keys = [cp.ReceiverKey(f"worker-{i}") for i in range(200)]

    def provide_and_consume(key: cp.ReceiverKey) -> ty.Tuple[str, bool]:
        registry.provide(cp.with_value(cp.background(), "name", key.name), key)
        value, ok, free = registry.inject_value("name", str, key)
        free()
        return value, ok

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(provide_and_consume, keys))

    assert results == [(key.name, True) for key in keys]
    assert len(registry) == 0


def test_receivers_on_other_threads_inject_from_the_shared_registry():
    registry = cp.Registry("shared")

    def receiver() -> ty.Tuple[ty.Any, bool]:
        value, ok, free = registry.inject_value("n", int)
        free()
        return value, ok

    registry.provide(cp.with_value(cp.background(), "n", 7), receiver)
    with ThreadPoolExecutor(max_workers=1) as pool:
        assert pool.submit(receiver).result() == (7, True)


def test_generators_and_coroutines_identify_themselves():
    import asyncio

    registry = cp.Registry("kinds")

    def gen_receiver():
        yield registry.inject().ok

    async def async_receiver():
        return registry.inject().ok

    ctx = cp.background()
    registry.provide(ctx, gen_receiver, async_receiver)

    assert list(gen_receiver()) == [True]
    assert asyncio.run(async_receiver())


def test_lookup_by_identity():
    registry = cp.Registry()

    def receiver():
        pass

    ident = cp.identity.of_function(receiver)
    assert not registry.lookup(ident).ok
    assert not registry.lookup(None).ok

    registry.provide(cp.background(), receiver)
    assert registry.lookup(ident).ok
    assert ident in registry
    assert registry.identities() == [ident]
    assert "entries=1" in repr(registry)


def test_membership_of_non_functions_is_false():
    registry = cp.Registry()
    registry.provide(cp.background(), cp.ReceiverKey("x"))

    assert 2 not in registry
    assert "x" not in registry
    assert len not in registry
    assert cp.ReceiverKey("x") in registry
