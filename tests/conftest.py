"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import time

import pytest

from app.channels.base import DispatchError
from app.config import Settings
from app.models import SentMessage


class FakeClock:
    """Settable replacement for time.time in the dedup cache module."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class StubChannel:
    """In-memory channel implementing ChannelProtocol."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail_with: DispatchError | None = None
        self.verified = False
        self.closed = False
        self._next_id = 100

    async def send_message(self, chat_id: str, text: str, parse_mode: str = "HTML") -> SentMessage:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((chat_id, text, parse_mode))
        self._next_id += 1
        return SentMessage(
            chat_id=chat_id,
            message_id=self._next_id,
            sent_at=int(time.time()),
            raw_payload={"message_id": self._next_id, "chat": {"id": chat_id}, "text": text},
        )

    async def verify(self) -> str:
        self.verified = True
        return "stub_bot"

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Freeze the dedup cache clock at second 1000."""
    fake = FakeClock()
    monkeypatch.setattr("app.core.dedup_cache.time.time", fake)
    return fake


@pytest.fixture
def settings() -> Settings:
    """Settings that never touch Telegram on startup."""
    return Settings(
        _env_file=None,
        telegram_bot_token="123456:TEST-TOKEN",
        telegram_verify_on_startup=False,
        telegram_retry_max_wait=0,
    )


@pytest.fixture
def stub_channel() -> StubChannel:
    return StubChannel()
