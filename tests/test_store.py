"""
Tests for TokenStore.

Tests cover:
- CRUD semantics
- Master key verification and its gating of list/delete/export
- Persistence to file, keyring and in-memory media
- Document format and corruption handling
"""

from __future__ import annotations

import base64
import json

import pytest

from tokenvault import (
    AuthenticationError,
    CorruptStoreError,
    CryptoError,
    EmptyStoreError,
    EnvelopeCipher,
    InMemoryMedium,
    MalformedEnvelopeError,
    SecureKey,
    TokenStore,
    derive_master_key,
)


def _fresh_key() -> SecureKey:
    return SecureKey(bytes(range(32)))


def _document(medium) -> dict:
    return json.loads(medium.read().decode("utf-8"))


class TestCrud:
    """Basic put/get/delete behaviour."""

    def test_put_then_get(self, store):
        store.put("a", "1")
        assert store.get("a") == "1"

    def test_get_missing_returns_none(self, store):
        assert store.get("missing") is None

    def test_put_overwrites(self, store):
        store.put("a", "1")
        store.put("a", "2")
        assert store.get("a") == "2"
        assert len(store) == 1

    def test_names_are_case_sensitive(self, store):
        store.put("Token", "upper")
        store.put("token", "lower")
        assert store.get("Token") == "upper"
        assert store.get("token") == "lower"
        assert store.get("TOKEN") is None

    def test_empty_name_rejected(self, store, memory_medium):
        with pytest.raises(ValueError):
            store.put("", "value")
        assert memory_medium.writes == 0

    def test_delete_present(self, store):
        store.put("a", "1")
        assert store.delete("a") is True
        assert store.get("a") is None
        assert "a" not in store

    def test_delete_missing_returns_false(self, store, memory_medium):
        store.put("a", "1")
        writes = memory_medium.writes
        assert store.delete("missing") is False
        assert memory_medium.writes == writes

    def test_list_names_sorted(self, store):
        for name in ["zeta", "alpha", "Mid"]:
            store.put(name, name.upper())
        assert store.list_names() == ["Mid", "alpha", "zeta"]

    def test_export_all(self, store):
        store.put("GITHUB_TOKEN", "ghp_1")
        store.put("NPM_TOKEN", "npm_2")
        assert store.export_all() == {"GITHUB_TOKEN": "ghp_1", "NPM_TOKEN": "npm_2"}


class TestVerification:
    """Master key verification."""

    def test_list_on_empty_store(self, store):
        with pytest.raises(EmptyStoreError):
            store.list_names()

    def test_delete_on_empty_store(self, store, memory_medium):
        with pytest.raises(EmptyStoreError):
            store.delete("anything")
        assert memory_medium.writes == 0

    def test_export_on_empty_store(self, store):
        with pytest.raises(EmptyStoreError):
            store.export_all()

    def test_empty_store_does_not_touch_cipher(self, memory_medium, monkeypatch):
        store = TokenStore.open(memory_medium, _fresh_key())

        def fail(self, envelope):
            raise AssertionError("decrypt must not run on an empty store")

        monkeypatch.setattr(EnvelopeCipher, "decrypt", fail)
        with pytest.raises(EmptyStoreError):
            store.verify_master_key()

    def test_correct_key_verifies(self, store):
        store.put("a", "1")
        store.verify_master_key()

    def test_wrong_key_detected(self, memory_medium, key, other_key):
        TokenStore.open(memory_medium, key).put("a", "1")
        wrong = TokenStore.open(memory_medium, other_key)

        with pytest.raises(AuthenticationError):
            wrong.list_names()
        with pytest.raises(AuthenticationError):
            wrong.export_all()
        with pytest.raises(AuthenticationError):
            wrong.get("a")

    def test_wrong_key_cannot_delete(self, memory_medium, key, other_key):
        TokenStore.open(memory_medium, key).put("a", "1")
        writes = memory_medium.writes
        wrong = TokenStore.open(memory_medium, other_key)

        with pytest.raises(AuthenticationError):
            wrong.delete("a")
        assert memory_medium.writes == writes
        assert "a" in _document(memory_medium)["tokens"]

    def test_probe_is_smallest_name(self, memory_medium, key, other_key):
        good = EnvelopeCipher(key)
        foreign = EnvelopeCipher(other_key)

        # "a" is the probe; only "b" is readable with key
        tokens = {"b": good.encrypt("2"), "a": foreign.encrypt("1")}
        store = TokenStore(memory_medium, good, tokens)
        with pytest.raises(AuthenticationError):
            store.list_names()

        # "a" is readable; the bad entry is never probed
        tokens = {"z": foreign.encrypt("26"), "a": good.encrypt("1")}
        store = TokenStore(memory_medium, good, tokens)
        assert store.list_names() == ["a", "z"]
        with pytest.raises(AuthenticationError):
            store.export_all()

    def test_malformed_probe_entry(self, memory_medium, key):
        store = TokenStore(memory_medium, EnvelopeCipher(key), {"a": "%%%"})
        with pytest.raises(MalformedEnvelopeError):
            store.list_names()


class TestPersistence:
    """Whole-document persistence."""

    def test_every_put_rewrites_document(self, store, memory_medium):
        store.put("a", "1")
        store.put("b", "2")
        assert memory_medium.writes == 2
        assert set(_document(memory_medium)["tokens"]) == {"a", "b"}

    def test_delete_rewrites_document(self, store, memory_medium):
        store.put("a", "1")
        store.put("b", "2")
        store.delete("a")
        assert set(_document(memory_medium)["tokens"]) == {"b"}

    def test_document_format(self, store, memory_medium):
        store.put("GITHUB_TOKEN", "ghp_secret")
        raw = memory_medium.read().decode("utf-8")
        document = json.loads(raw)

        assert list(document) == ["tokens"]
        envelope = document["tokens"]["GITHUB_TOKEN"]
        assert "ghp_secret" not in raw
        assert len(base64.b64decode(envelope, validate=True)) == 12 + len("ghp_secret") + 16
        assert raw.startswith('{\n  "tokens"')

    @pytest.mark.parametrize("medium_fixture", ["memory_medium", "file_medium", "keyring_medium"])
    def test_reopen_reproduces_pairs(self, request, medium_fixture):
        medium = request.getfixturevalue(medium_fixture)
        pairs = {"GITHUB_TOKEN": "ghp_1", "AWS_SECRET": "aws/2+=", "EMPTY": "", "UNICODE": "ключ"}

        with TokenStore.open(medium, derive_master_key("master secret")) as first:
            for name, value in pairs.items():
                first.put(name, value)

        with TokenStore.open(medium, derive_master_key("master secret")) as second:
            assert second.export_all() == pairs
            assert second.list_names() == sorted(pairs)

    def test_open_accepts_cipher(self, memory_medium):
        cipher = EnvelopeCipher.from_master_secret("master")
        TokenStore.open(memory_medium, cipher).put("a", "1")
        assert TokenStore.open(memory_medium, derive_master_key("master")).get("a") == "1"

    def test_missing_document_is_empty_store(self, file_medium):
        store = TokenStore.open(file_medium, _fresh_key())
        assert len(store) == 0
        assert not file_medium.path.exists()


class TestCorruption:
    """Unparseable documents."""

    @pytest.mark.parametrize(
        "raw",
        [
            b"not json",
            b"",
            b"\xff\xfe",
            b"[]",
            b'{"other": {}}',
            b'{"tokens": []}',
            b'{"tokens": {"a": 1}}',
            b'{"tokens": {"": "AAAA"}}',
        ],
    )
    def test_corrupt_document_rejected(self, raw):
        with pytest.raises(CorruptStoreError):
            TokenStore.open(InMemoryMedium(raw), _fresh_key())

    def test_empty_tokens_mapping_is_valid(self):
        store = TokenStore.open(InMemoryMedium(b'{"tokens": {}}'), _fresh_key())
        assert len(store) == 0

    def test_corrupt_file_rejected(self, file_medium):
        file_medium.path.parent.mkdir(parents=True)
        file_medium.path.write_text("{ truncated")
        with pytest.raises(CorruptStoreError):
            TokenStore.open(file_medium, _fresh_key())


class TestLifecycle:
    def test_close_wipes_key(self, memory_medium):
        key = _fresh_key()
        store = TokenStore.open(memory_medium, key)
        store.put("a", "1")
        store.close()

        assert key.is_zeroized
        with pytest.raises(CryptoError):
            store.get("a")

    def test_context_manager_closes(self, memory_medium):
        key = _fresh_key()
        with TokenStore.open(memory_medium, key) as store:
            store.put("a", "1")
        assert key.is_zeroized

    def test_repr_hides_values(self, store):
        store.put("a", "very-secret")
        assert "very-secret" not in repr(store)
        assert "entries=1" in repr(store)
