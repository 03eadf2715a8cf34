"""Tests for the operator CLI."""

import asyncio
import json
import logging
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from oauth_session.__main__ import EXIT_ERROR, EXIT_OK, EXIT_REAUTH, main, parse_args
from oauth_session.oauth2.exchange import TokenExchangeClient
from oauth_session.oauth2.models import CredentialPair
from oauth_session.storage.json_file import JsonFileCredentialStore

CONFIG = """\
oauth:
  client_id: cli-client
  token_url: https://auth.example.com/oauth/token
  revoke_url: https://auth.example.com/oauth/revoke
session:
  identity: cli-user
store:
  type: json
  path: {store_path}
logging:
  level: WARNING
"""


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "credentials.json"


@pytest.fixture
def config_path(tmp_path, store_path):
    path = tmp_path / "session.yaml"
    path.write_text(CONFIG.format(store_path=store_path), encoding="utf-8")
    return path


def _seed(store_path, identity="cli-user"):
    pair = CredentialPair(
        access_token="at-cli",
        refresh_token="rt-cli",
        issued_at=datetime.now(UTC),
        ttl_ms=3_600_000,
    )
    asyncio.run(JsonFileCredentialStore(store_path).save(identity, pair))
    return pair


def _run(config_path, tmp_path, *args):
    return main(["--config", str(config_path), "--env-file", str(tmp_path / ".env"), *args])


class TestParseArgs:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])

    def test_rejects_unknown_command(self):
        with pytest.raises(SystemExit):
            parse_args(["login"])

    def test_defaults(self):
        args = parse_args(["token"])
        assert args.command == "token"
        assert args.config.name == "session.yaml"
        assert args.identity is None
        assert not args.json_logs


class TestCommands:
    def test_token_prints_cached_token(self, config_path, store_path, tmp_path, capsys):
        _seed(store_path)

        assert _run(config_path, tmp_path, "token") == EXIT_OK
        assert capsys.readouterr().out.strip() == "at-cli"

    def test_show_describes_without_secrets(self, config_path, store_path, tmp_path, capsys):
        _seed(store_path)

        assert _run(config_path, tmp_path, "show") == EXIT_OK

        out = capsys.readouterr().out
        info = json.loads(out)
        assert info["identity"] == "cli-user"
        assert info["state"] == "valid"
        assert "at-cli" not in out
        assert "rt-cli" not in out

    def test_identity_override(self, config_path, store_path, tmp_path, capsys):
        _seed(store_path, identity="other-user")

        assert _run(config_path, tmp_path, "--identity", "other-user", "token") == EXIT_OK
        assert capsys.readouterr().out.strip() == "at-cli"

    def test_refresh_forces_exchange(self, config_path, store_path, tmp_path, monkeypatch):
        pair = _seed(store_path)
        refreshed = CredentialPair(
            access_token="at-refreshed",
            refresh_token="rt-refreshed",
            issued_at=datetime.now(UTC),
            ttl_ms=3_600_000,
        )
        refresh = AsyncMock(return_value=refreshed)
        monkeypatch.setattr(TokenExchangeClient, "refresh", refresh)

        assert _run(config_path, tmp_path, "refresh") == EXIT_OK

        assert refresh.await_args.args[0] == pair
        stored = asyncio.run(JsonFileCredentialStore(store_path).read("cli-user"))
        assert stored.access_token == "at-refreshed"

    def test_revoke_clears_store(self, config_path, store_path, tmp_path, monkeypatch):
        _seed(store_path)
        revoke = AsyncMock()
        monkeypatch.setattr(TokenExchangeClient, "revoke", revoke)

        assert _run(config_path, tmp_path, "revoke") == EXIT_OK

        assert revoke.await_args.args[0].refresh_token == "rt-cli"
        assert asyncio.run(JsonFileCredentialStore(store_path).read("cli-user")) is None


class TestExitCodes:
    def test_missing_config(self, tmp_path):
        assert _run(tmp_path / "missing.yaml", tmp_path, "token") == EXIT_ERROR

    def test_no_credentials_requires_reauth(self, config_path, tmp_path):
        assert _run(config_path, tmp_path, "token") == EXIT_REAUTH

    def test_corrupt_store_is_error(self, config_path, store_path, tmp_path):
        store_path.write_text("{broken", encoding="utf-8")
        assert _run(config_path, tmp_path, "show") == EXIT_ERROR
