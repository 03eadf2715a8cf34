"""Shared fixtures for session manager tests."""

from datetime import UTC, datetime, timedelta

import pytest

from oauth_session.oauth2.models import CredentialPair

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock returning timezone-aware UTC datetimes."""

    def __init__(self, start: datetime = T0):
        self.start = start
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def set_ms(self, offset_ms: int) -> None:
        """Set the clock to start + offset_ms."""
        self.now = self.start + timedelta(milliseconds=offset_ms)

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def _make_pair(
    access_token: str | None = "at-1",
    refresh_token: str | None = "rt-1",
    issued_at: datetime = T0,
    ttl_ms: int = 3_600_000,
    **kwargs,
) -> CredentialPair:
    return CredentialPair(
        access_token=access_token,
        refresh_token=refresh_token,
        issued_at=issued_at,
        ttl_ms=ttl_ms,
        **kwargs,
    )


@pytest.fixture
def t0():
    """Issue time used by make_pair and the fake clock."""
    return T0


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_pair():
    """Factory for credential pairs issued at t0 with a one hour lifetime."""
    return _make_pair


@pytest.fixture
def pair():
    return _make_pair()
