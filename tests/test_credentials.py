"""
Tests for the credential pool.
"""

import random

from novagate.credentials import Credential, CredentialPool


def test_blank_entries_dropped():
    pool = CredentialPool(["sk-a", "", None, "  ", "sk-b"])
    assert pool.size() == 2
    assert len(pool) == 2
    assert [c.secret for c in pool] == ["sk-a", "sk-b"]


def test_labels_follow_config_position():
    """Labels keep the configured slot number even when earlier slots are empty."""
    pool = CredentialPool(["", "sk-b", "sk-c"])
    assert pool.labels() == ["key-2", "key-3"]


def test_repr_hides_secret():
    cred = Credential(index=1, secret="sk-very-secret")
    assert "sk-very-secret" not in repr(cred)
    assert "sk-very-secret" not in repr(CredentialPool(["sk-very-secret"]))


def test_shuffled_is_a_fresh_copy():
    pool = CredentialPool(["a", "b", "c", "d", "e"])
    order = pool.shuffled(random.Random(7))
    assert sorted(c.secret for c in order) == ["a", "b", "c", "d", "e"]
    # The pool itself never moves.
    assert [c.secret for c in pool] == ["a", "b", "c", "d", "e"]
    order.pop()
    assert pool.size() == 5


def test_shuffled_varies_between_calls():
    pool = CredentialPool(["a", "b", "c", "d", "e", "f"])
    orders = {tuple(c.secret for c in pool.shuffled()) for _ in range(50)}
    assert len(orders) > 1


def test_empty_pool():
    pool = CredentialPool([])
    assert pool.size() == 0
    assert pool.shuffled() == []


def test_from_config_resolved_keys():
    cfg = {"upstream": {"api_keys": ["sk-1", "", "sk-3"]}}
    pool = CredentialPool.from_config(cfg)
    assert pool.size() == 2


def test_from_config_missing_section():
    assert CredentialPool.from_config({}).size() == 0
