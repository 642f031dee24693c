"""Tests for token counting."""

import pytest

from context_relay.token_counter import create_token_counter, estimate_tokens


def test_estimate_rounds_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abc") == 1
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_estimate_mode():
    assert create_token_counter("estimate") is estimate_tokens


def test_callable_mode():
    counter = create_token_counter("callable:context_relay.token_counter:estimate_tokens")
    assert counter("x" * 8) == 2


def test_bad_callable_spec():
    with pytest.raises(ValueError):
        create_token_counter("callable:nocolon")


def test_unknown_mode():
    with pytest.raises(ValueError):
        create_token_counter("magic")
