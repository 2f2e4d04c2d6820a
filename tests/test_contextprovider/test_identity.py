import functools

import pytest
from pytest_mock import MockFixture

from thds.contextprovider import identity
from thds.contextprovider.errors import NotAFunctionError, UnhashableInstanceError


def _whoami():
    return identity.of_caller(2)  # whoever called _whoami


def test_function_and_frame_identities_agree():
    def receiver():
        return _whoami()

    assert receiver() == identity.of_function(receiver)


def test_skip_walks_up_the_stack():
    def outer():
        return inner()

    def inner():
        return identity.of_caller(1), identity.of_caller(2)

    me, my_caller = outer()
    assert me == identity.of_function(inner)
    assert my_caller == identity.of_function(outer)


def test_names_are_readable():
    def receiver():
        pass

    ident = identity.of_function(receiver)
    assert ident.name.endswith("receiver")
    assert ident.filename == receiver.__code__.co_filename
    assert str(ident).startswith(ident.name + "@")
    assert str(identity.of_function(receiver, "abc")).endswith("[abc]")


def test_closures_from_one_factory_share_an_identity():
    def factory(n):
        return lambda: n

    assert identity.of_function(factory(1)) == identity.of_function(factory(2))
    assert identity.of_function(factory(1), "one") != identity.of_function(factory(2), "two")


def test_wrappers_are_seen_through():
    def receiver(a, b):
        pass

    @functools.wraps(receiver)
    def wrapper(*args, **kwargs):
        return receiver(*args, **kwargs)

    class K:
        def method(self):
            pass

        @staticmethod
        def static():
            pass

    expected = identity.of_function(receiver)
    assert identity.of_function(functools.partial(receiver, 1)) == expected
    assert identity.of_function(wrapper) == expected
    assert identity.of_function(K().method) == identity.of_function(K.method)
    assert identity.of_function(K.__dict__["static"]) == identity.of_function(K.static)


@pytest.mark.parametrize("not_a_function", [2, "f", None, len, [].append, object(), int])
def test_non_functions_have_no_identity(not_a_function):
    with pytest.raises(NotAFunctionError):
        identity.of_function(not_a_function)


def test_receiver_keys_pass_through_resolve():
    key = identity.ReceiverKey("login")
    assert identity.resolve(key) is key
    assert identity.resolve(key, instance="ignored") == identity.ReceiverKey("login")


def test_of_caller_gives_up_quietly():
    assert identity.of_caller(100_000) is None


def test_of_caller_without_frames(mocker: MockFixture):
    mocker.patch.object(identity, "_currentframe", return_value=None)
    assert identity.of_caller() is None


def test_functions_on_one_line_are_distinct():
    first, second = (lambda: 1), (lambda: 2)
    assert identity.of_function(first) != identity.of_function(second)
    assert identity.of_function(first) == identity.of_function(first)


def test_unhashable_instance_tokens_are_rejected():
    def receiver():
        pass

    with pytest.raises(UnhashableInstanceError) as exc_info:
        identity.of_function(receiver, instance=[1])
    assert exc_info.value.instance == [1]
    assert identity.of_caller(instance=[1]) is None
