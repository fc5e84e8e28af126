"""
Shared fixtures and fakes for the cache and session tests.
"""

import asyncio
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from fineer.session.models import Principal, Profile


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    @property
    def millis(self) -> int:
        return int(self.now * 1000)


class FakeAuthProvider:
    """In-process stand-in for Firebase Auth (replays state on subscribe)."""

    def __init__(self, principal: Optional[Principal] = None):
        self.principal = principal
        self.callbacks = []
        self.sign_out = AsyncMock(side_effect=self._sign_out)

    async def subscribe_auth_changes(self, callback):
        self.callbacks.append(callback)
        await callback(self.principal)
        return lambda: self.callbacks.remove(callback)

    async def emit(self, principal: Optional[Principal]) -> None:
        self.principal = principal
        for callback in list(self.callbacks):
            await callback(principal)

    async def _sign_out(self) -> None:
        if self.principal is None:
            return
        await self.emit(None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def principal():
    return Principal(uid="uid-123", email="budi@example.com", display_name="Budi")


@pytest.fixture
def profile():
    return Profile(id="pegawai-1", data={"uid": "uid-123", "nama": "Budi", "jabatan": "Staff"})


@pytest.fixture
def provider(principal):
    return FakeAuthProvider(principal)


@pytest.fixture
def profile_store(profile):
    """Mock profile store returning the default profile."""
    store_mock = MagicMock()
    store_mock.query_user_record = AsyncMock(return_value=profile)
    return store_mock


@pytest.fixture
def gate():
    return asyncio.Event()
