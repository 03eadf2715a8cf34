"""Tests for CredentialPair and OAuth2Config."""

from datetime import UTC, datetime, timedelta

import pytest

from oauth_session.errors.exceptions import MalformedTokenResponseError
from oauth_session.oauth2.models import (
    DEFAULT_EXPIRATION_BUFFER_MS,
    CredentialPair,
    OAuth2Config,
)


class TestCredentialPairValidation:
    def test_rejects_non_positive_ttl(self, make_pair):
        with pytest.raises(ValueError, match="ttl_ms"):
            make_pair(ttl_ms=0)
        with pytest.raises(ValueError, match="ttl_ms"):
            make_pair(ttl_ms=-5)

    def test_rejects_non_integer_ttl(self, make_pair):
        with pytest.raises(ValueError, match="ttl_ms"):
            make_pair(ttl_ms=1.5)
        with pytest.raises(ValueError, match="ttl_ms"):
            make_pair(ttl_ms=True)

    def test_rejects_empty_access_token(self, make_pair):
        with pytest.raises(ValueError, match="access_token"):
            make_pair(access_token="")

    def test_allows_missing_access_token(self, make_pair):
        pair = make_pair(access_token=None)
        assert pair.access_token is None

    def test_rejects_naive_issued_at(self, make_pair):
        with pytest.raises(ValueError, match="timezone"):
            make_pair(issued_at=datetime(2024, 1, 1, 12, 0, 0))

    def test_is_frozen(self, pair):
        with pytest.raises(AttributeError):
            pair.access_token = "other"


class TestExpiry:
    """Buffer-adjusted expiry: expired when now >= issued_at + ttl - buffer."""

    def test_expires_at(self, pair, t0):
        assert pair.expires_at == t0 + timedelta(hours=1)

    def test_valid_inside_buffer_window(self, pair, t0):
        now = t0 + timedelta(milliseconds=3_550_000)
        assert not pair.is_expired(now, buffer_ms=30_000)

    def test_expired_at_buffer_boundary(self, pair, t0):
        now = t0 + timedelta(milliseconds=3_570_000)
        assert pair.is_expired(now, buffer_ms=30_000)

    def test_expired_after_literal_expiry(self, pair, t0):
        now = t0 + timedelta(milliseconds=3_600_001)
        assert pair.is_expired(now, buffer_ms=0)

    def test_default_buffer(self, pair, t0):
        assert DEFAULT_EXPIRATION_BUFFER_MS == 30_000
        assert pair.is_expired(t0 + timedelta(milliseconds=3_575_000))

    def test_missing_access_token_is_expired(self, make_pair, t0):
        assert make_pair(access_token=None).is_expired(t0)

    def test_remaining_lifetime(self, pair, t0):
        assert pair.remaining_lifetime(t0 + timedelta(minutes=59)) == timedelta(minutes=1)
        assert pair.remaining_lifetime(t0 + timedelta(minutes=61)) < timedelta(0)


class TestFromTokenResponse:
    def test_full_response(self, t0):
        pair = CredentialPair.from_token_response(
            {
                "access_token": "at-new",
                "refresh_token": "rt-new",
                "expires_in": 3600,
                "token_type": "bearer",
                "scope": "read write",
            },
            issued_at=t0,
        )
        assert pair.access_token == "at-new"
        assert pair.refresh_token == "rt-new"
        assert pair.ttl_ms == 3_600_000
        assert pair.token_type == "bearer"
        assert pair.scope == "read write"
        assert pair.issued_at == t0

    def test_keeps_previous_refresh_token_when_not_rotated(self, pair, t0):
        new = CredentialPair.from_token_response(
            {"access_token": "at-2", "expires_in": 60}, issued_at=t0, previous=pair
        )
        assert new.refresh_token == "rt-1"
        assert new.ttl_ms == 60_000

    def test_default_expires_in(self, t0):
        pair = CredentialPair.from_token_response({"access_token": "at"}, issued_at=t0)
        assert pair.ttl_ms == 3_600_000
        assert pair.token_type == "Bearer"
        assert pair.refresh_token is None

    def test_string_expires_in(self, t0):
        pair = CredentialPair.from_token_response(
            {"access_token": "at", "expires_in": "120"}, issued_at=t0
        )
        assert pair.ttl_ms == 120_000

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"access_token": ""},
            {"access_token": 123},
            {"access_token": "at", "expires_in": 0},
            {"access_token": "at", "expires_in": -10},
            {"access_token": "at", "expires_in": "soon"},
            {"access_token": "at", "expires_in": float("nan")},
            {"access_token": "at", "expires_in": 0.0004},
            ["not", "an", "object"],
        ],
    )
    def test_malformed_responses(self, body, t0):
        with pytest.raises(MalformedTokenResponseError):
            CredentialPair.from_token_response(body, issued_at=t0)


class TestSerialization:
    def test_to_dict(self, pair):
        data = pair.to_dict()
        assert data == {
            "access_token": "at-1",
            "refresh_token": "rt-1",
            "issued_at": "2024-01-01T12:00:00+00:00",
            "ttl_ms": 3_600_000,
            "token_type": "Bearer",
            "scope": None,
        }

    def test_from_dict_restores_pair(self, pair):
        restored = CredentialPair.from_dict(pair.to_dict())
        assert restored == pair
        assert restored.issued_at.tzinfo is not None

    def test_from_dict_missing_fields(self):
        with pytest.raises(KeyError):
            CredentialPair.from_dict({"access_token": "at"})

    def test_repr_hides_tokens(self, make_pair):
        text = repr(make_pair(access_token="secret-at", refresh_token="secret-rt"))
        assert "secret-at" not in text
        assert "secret-rt" not in text
        assert "***" in text


class TestOAuth2Config:
    def test_defaults(self):
        config = OAuth2Config(client_id="cid", token_url="https://auth.example.com/token")
        assert config.client_secret is None
        assert config.revoke_url is None
        assert config.timeout_seconds == 30.0
        assert config.allow_client_credentials is False

    def test_timeout_coerced_to_float(self):
        config = OAuth2Config(client_id="cid", token_url="https://x", timeout_seconds="15")
        assert config.timeout_seconds == 15.0

    def test_scope_string_from_list(self):
        config = OAuth2Config(client_id="cid", token_url="https://x", scope=["read", "write"])
        assert config.get_scope_string() == "read write"

    def test_scope_string_empty(self):
        assert OAuth2Config(client_id="cid", token_url="https://x").get_scope_string() == ""

    def test_repr_hides_secret(self):
        config = OAuth2Config(
            client_id="cid", token_url="https://x", client_secret="very-secret"
        )
        assert "very-secret" not in repr(config)


def test_issued_at_in_other_timezone_compares_correctly(make_pair):
    tz_plus_two = datetime(2024, 1, 1, 14, 0, 0, tzinfo=UTC).astimezone()
    pair = make_pair(issued_at=tz_plus_two)
    assert not pair.is_expired(datetime(2024, 1, 1, 14, 30, 0, tzinfo=UTC))
