"""In-memory holder for the session and action tokens."""

import threading
import time
from typing import Callable, Optional, Tuple


class TokenStore:
    """Holds both credentials and their expiry state.

    All updates happen under one lock; readers get consistent snapshots.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._session_token: Optional[str] = None
        self._session_invalid = False
        self._action_token: Optional[str] = None
        self._action_acquired_at: Optional[float] = None

    @property
    def session_token(self) -> Optional[str]:
        with self._lock:
            return self._session_token

    @property
    def action_token(self) -> Optional[str]:
        with self._lock:
            return self._action_token

    def snapshot(self) -> Tuple[Optional[str], Optional[str]]:
        """Session and action token read together."""
        with self._lock:
            session = None if self._session_invalid else self._session_token
            return session, self._action_token

    def has_valid_session(self) -> bool:
        with self._lock:
            return bool(self._session_token) and not self._session_invalid

    def action_token_valid(self, ttl: float) -> bool:
        """True if an action token exists and is younger than ``ttl`` seconds."""
        with self._lock:
            if not self._action_token or self._action_acquired_at is None:
                return False
            return (self._clock() - self._action_acquired_at) < ttl

    def action_token_age(self) -> Optional[float]:
        with self._lock:
            if self._action_acquired_at is None:
                return None
            return self._clock() - self._action_acquired_at

    def set_session_token(self, token: str) -> None:
        with self._lock:
            self._session_token = token
            self._session_invalid = False

    def mark_session_invalid(self) -> None:
        with self._lock:
            self._session_invalid = True

    def set_action_token(self, token: str) -> None:
        with self._lock:
            self._action_token = token
            self._action_acquired_at = self._clock()

    def expire_action_token(self) -> None:
        with self._lock:
            self._action_token = None
            self._action_acquired_at = None

    def clear(self) -> None:
        with self._lock:
            self._session_token = None
            self._session_invalid = False
            self._action_token = None
            self._action_acquired_at = None
