"""Pytest configuration and shared fixtures.

The package lives under ``src``; when the tests run without an installed
copy, this file puts that directory on ``sys.path`` so ``reader_sync``
imports resolve.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]

src_str = str(ROOT / "src")
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from reader_sync.config import Config, ServerConfig  # noqa: E402
from reader_sync.core.auth import Authenticator  # noqa: E402
from reader_sync.core.dispatch import RequestDispatcher  # noqa: E402

from helpers.fake_transport import FakeTransport, ManualTimer  # noqa: E402


BASE_URL = "https://reader.example.com"


@pytest.fixture(autouse=True)
def data_home(tmp_path, monkeypatch):
    """Keep state, config and logs out of the real home directory."""
    home = tmp_path / "home"
    monkeypatch.setenv("READER_SYNC_HOME", str(home))
    return home


@pytest.fixture
def config() -> Config:
    return Config(
        server=ServerConfig(base_url=BASE_URL, username="alice", password="secret"),
        action_token_ttl=1500,
        article_limit=100,
        max_concurrent_requests=4,
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport.with_auth()


class Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def authenticator(config, transport, clock) -> Authenticator:
    auth = Authenticator(
        config.server,
        transport,
        session_refresh_interval=config.session_refresh_interval,
        action_token_ttl=config.action_token_ttl,
        clock=clock,
        timer_factory=ManualTimer,
    )
    yield auth
    auth.close()


@pytest.fixture
def dispatcher(authenticator, transport) -> RequestDispatcher:
    dispatcher = RequestDispatcher(authenticator, transport, client_name="ReaderSync", max_workers=4)
    yield dispatcher
    dispatcher.close()
