"""Tests for InMemoryCredentialStore and JsonFileCredentialStore."""

import asyncio
import json
import os
import stat

import pytest

from oauth_session.errors.exceptions import StoreError
from oauth_session.storage.json_file import STORE_FORMAT_VERSION, JsonFileCredentialStore
from oauth_session.storage.memory import InMemoryCredentialStore


class TestInMemoryCredentialStore:
    async def test_read_missing_returns_none(self):
        assert await InMemoryCredentialStore().read("nobody") is None

    async def test_save_then_read(self, pair):
        store = InMemoryCredentialStore()
        await store.save("user:1", pair)
        assert await store.read("user:1") is pair

    async def test_save_replaces(self, pair, make_pair):
        store = InMemoryCredentialStore()
        await store.save("user:1", pair)
        newer = make_pair(access_token="at-2")
        await store.save("user:1", newer)
        assert await store.read("user:1") is newer

    async def test_clear(self, pair):
        store = InMemoryCredentialStore({"user:1": pair})
        await store.clear("user:1")
        assert await store.read("user:1") is None

    async def test_clear_missing_is_noop(self):
        await InMemoryCredentialStore().clear("nobody")

    async def test_close_is_noop(self):
        await InMemoryCredentialStore().close()


class TestJsonFileCredentialStore:
    @pytest.fixture
    def path(self, tmp_path):
        return tmp_path / "creds" / "credentials.json"

    @pytest.fixture
    def store(self, path):
        return JsonFileCredentialStore(path)

    async def test_read_missing_file_returns_none(self, store, path):
        assert await store.read("user:1") is None
        assert not path.exists()

    async def test_save_then_read(self, store, pair):
        await store.save("user:1", pair)
        assert await store.read("user:1") == pair

    async def test_document_layout(self, store, path, pair):
        await store.save("user:1", pair)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["version"] == STORE_FORMAT_VERSION
        assert data["credentials"]["user:1"] == pair.to_dict()

    async def test_file_is_owner_only(self, store, path, pair):
        await store.save("user:1", pair)
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    async def test_no_temp_file_left_behind(self, store, path, pair):
        await store.save("user:1", pair)
        assert [p.name for p in path.parent.iterdir()] == ["credentials.json"]

    async def test_identities_kept_separately(self, store, pair, make_pair):
        other = make_pair(access_token="at-other", refresh_token="rt-other")
        await store.save("user:1", pair)
        await store.save("user:2", other)

        assert await store.read("user:1") == pair
        assert await store.read("user:2") == other

    async def test_clear_only_removes_identity(self, store, pair):
        await store.save("user:1", pair)
        await store.save("user:2", pair)

        await store.clear("user:1")

        assert await store.read("user:1") is None
        assert await store.read("user:2") == pair

    async def test_clear_missing_does_not_create_file(self, store, path):
        await store.clear("user:1")
        assert not path.exists()

    async def test_persists_pair_without_access_token(self, store, make_pair):
        stripped = make_pair(access_token=None)
        await store.save("user:1", stripped)
        assert (await store.read("user:1")).access_token is None

    async def test_survives_new_instance(self, path, pair):
        await JsonFileCredentialStore(path).save("user:1", pair)
        assert await JsonFileCredentialStore(path).read("user:1") == pair

    async def test_corrupt_file_raises(self, store, path):
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StoreError) as exc_info:
            await store.read("user:1")
        assert exc_info.value.operation == "read"

    async def test_corrupt_file_not_overwritten_on_save(self, store, path, pair):
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StoreError):
            await store.save("user:1", pair)
        assert path.read_text(encoding="utf-8") == "{not json"

    async def test_malformed_document_raises(self, store, path):
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"version": 1, "credentials": []}), encoding="utf-8")

        with pytest.raises(StoreError, match="Malformed"):
            await store.read("user:1")

    async def test_invalid_record_raises(self, store, path):
        path.parent.mkdir(parents=True)
        path.write_text(
            json.dumps({"version": 1, "credentials": {"user:1": {"access_token": "x"}}}),
            encoding="utf-8",
        )

        with pytest.raises(StoreError) as exc_info:
            await store.read("user:1")
        assert exc_info.value.identity == "user:1"

    async def test_concurrent_saves_keep_every_identity(self, store, make_pair):
        pairs = {f"user:{i}": make_pair(access_token=f"at-{i}") for i in range(10)}

        await asyncio.gather(*(store.save(identity, p) for identity, p in pairs.items()))

        for identity, p in pairs.items():
            assert await store.read(identity) == p

    def test_expands_user_path(self):
        store = JsonFileCredentialStore("~/creds.json")
        assert "~" not in str(store.path)
