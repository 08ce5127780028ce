"""Session and action token lifecycle.

The service issues two credentials.  The session token comes from
``/accounts/ClientLogin`` and authorizes every call; the action token
comes from ``/reader/api/0/token``, expires within half an hour and must
accompany every call that changes state.  ``Authenticator`` fetches each
of them at most once at a time: callers that arrive while a fetch is in
flight wait for that fetch and share its outcome.
"""

import logging
import threading
import time
from concurrent.futures import Future
from typing import Callable, Dict, Optional

from ..config import ServerConfig
from ..errors import AuthFailure, NetworkFailure, ReaderError
from .tokens import TokenStore
from .transport import HTTPRequest, Transport

logger = logging.getLogger(__name__)

CLIENT_LOGIN_PATH = "/accounts/ClientLogin"
TOKEN_PATH = "/reader/api/0/token"

SESSION = "session"
ACTION = "action"


class RecurringTimer:
    """Calls ``function`` every ``interval`` seconds until cancelled."""

    def __init__(self, interval: float, function: Callable[[], object], name: str = "timer"):
        self.interval = interval
        self.function = function
        self.name = name
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._cancelled = True

    @property
    def running(self) -> bool:
        return not self._cancelled

    def start(self) -> None:
        with self._lock:
            self._cancelled = False
            self._arm()

    def _arm(self) -> None:
        self._timer = threading.Timer(self.interval, self._fire)
        self._timer.daemon = True
        self._timer.name = self.name
        self._timer.start()

    def _fire(self) -> None:
        if self._cancelled:
            return
        try:
            self.function()
        except Exception:
            logger.exception(f"Recurring task {self.name} failed")
        with self._lock:
            if not self._cancelled:
                self._arm()

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


class Authenticator:
    """Acquires, refreshes and discards both tokens."""

    def __init__(
        self,
        server: ServerConfig,
        transport: Transport,
        *,
        session_refresh_interval: float = 6 * 3600,
        action_token_ttl: float = 25 * 60,
        store: Optional[TokenStore] = None,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: Callable[..., RecurringTimer] = RecurringTimer,
    ):
        self.server = server
        self.transport = transport
        self.action_token_ttl = action_token_ttl
        self.store = store or TokenStore(clock)
        self.last_error: Optional[ReaderError] = None

        self._degraded = False
        self._flight_lock = threading.Lock()
        self._in_flight: Dict[str, "Future[bool]"] = {}

        self._session_timer = timer_factory(session_refresh_interval, self._refresh_session, name="session-refresh")
        self._action_timer = timer_factory(action_token_ttl, self.get_token, name="action-token-refresh")

    @property
    def ready(self) -> bool:
        """True while a session token is held and nothing has invalidated it."""
        return self.store.has_valid_session() and not self._degraded

    @property
    def session_token(self) -> Optional[str]:
        return self.store.session_token

    @property
    def action_token(self) -> Optional[str]:
        return self.store.action_token

    def auth_headers(self, token: Optional[str] = None) -> Dict[str, str]:
        token = token or self.store.session_token
        if not token:
            return {}
        return {"Authorization": f"GoogleLogin auth={token}"}

    def ensure_authenticated(self) -> bool:
        """Make sure a session token is available, fetching one if needed."""
        return self._single_flight(SESSION, self._fetch_session_token, self.store.has_valid_session)

    def ensure_action_token(self) -> bool:
        """Make sure a fresh action token is available.

        The session token is ensured first since the token endpoint
        requires it.
        """
        if not self.ensure_authenticated():
            return False
        return self._single_flight(
            ACTION,
            self._fetch_action_token,
            lambda: self.store.action_token_valid(self.action_token_ttl),
        )

    def get_token(self) -> bool:
        """Fetch a new action token regardless of the cached one's age."""
        if not self.ensure_authenticated():
            return False
        return self._single_flight(ACTION, self._fetch_action_token)

    def confirm_session(self, token: str) -> None:
        """Record that ``token`` was just accepted by the service."""
        if self._degraded and token == self.store.session_token:
            self._degraded = False
            self.last_error = None
            logger.info("Session token accepted again, client ready")

    def clear_authentication(self) -> None:
        """Discard both tokens and stop the refresh timers."""
        self._session_timer.cancel()
        self._action_timer.cancel()
        self.store.clear()
        self._degraded = False
        logger.info("Cleared authentication")

    def reset_authentication(self, rejected_token: Optional[str] = None) -> bool:
        """Discard both tokens and acquire new ones right away.

        When ``rejected_token`` is given and the current session token is
        already a different one, another caller has reset in the meantime
        and the tokens are kept.
        """
        current = self.store.session_token
        if rejected_token is None or current is None or current == rejected_token:
            self.clear_authentication()
        else:
            logger.debug("Session token already replaced, skipping reset")
        return self.ensure_authenticated() and self.ensure_action_token()

    def close(self) -> None:
        self._session_timer.cancel()
        self._action_timer.cancel()

    def _single_flight(
        self,
        kind: str,
        fetch: Callable[[], bool],
        is_valid: Optional[Callable[[], bool]] = None,
    ) -> bool:
        with self._flight_lock:
            if is_valid is not None and is_valid():
                return True
            future = self._in_flight.get(kind)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[kind] = future

        if not owner:
            logger.debug(f"Waiting for in-flight {kind} token fetch")
            return future.result()

        result = False
        try:
            result = fetch()
        finally:
            with self._flight_lock:
                self._in_flight.pop(kind, None)
            future.set_result(result)
        return result

    def _refresh_session(self) -> bool:
        return self._single_flight(SESSION, self._fetch_session_token)

    def _fetch_session_token(self) -> bool:
        username = self.server.username
        password = self.server.resolved_password()
        if not username or not password:
            self._reject(AuthFailure("No username or password configured"))
            return False

        logger.info(f"Authenticating {username} against {self.server.base_url}")
        request = HTTPRequest(
            "POST",
            self.server.base_url + CLIENT_LOGIN_PATH,
            data={
                "Email": username,
                "Passwd": password,
                "service": "reader",
                "accountType": "GOOGLE",
                "client": self.server.client_name,
            },
        )

        try:
            response = self.transport.perform(request)
        except NetworkFailure as e:
            self._network_failed(SESSION, e)
            return False

        if response.status in (401, 403):
            self._reject(AuthFailure(f"Login rejected ({response.status})"))
            return False
        if not response.ok:
            self._network_failed(SESSION, NetworkFailure(f"Login failed with status {response.status}"))
            return False

        token = None
        for line in response.text.splitlines():
            if line.startswith("Auth="):
                token = line[len("Auth="):].strip()
                break
        if not token:
            self._reject(AuthFailure("Login response did not contain an Auth token"))
            return False

        first = self.store.session_token is None
        self.store.set_session_token(token)
        self._degraded = False
        self.last_error = None
        logger.info("Session token acquired")

        if first or not self._session_timer.running:
            self._session_timer.cancel()
            self._session_timer.start()
        return True

    def _fetch_action_token(self) -> bool:
        request = HTTPRequest(
            "GET",
            self.server.base_url + TOKEN_PATH,
            params={"client": self.server.client_name},
            headers=self.auth_headers(),
        )

        try:
            response = self.transport.perform(request)
        except NetworkFailure as e:
            self._network_failed(ACTION, e)
            return False

        if response.status in (401, 403):
            self.store.mark_session_invalid()
            self._reject(AuthFailure(f"Token request rejected ({response.status})"))
            return False

        token = response.text.strip()
        if not response.ok or not token:
            self._network_failed(ACTION, NetworkFailure(f"Token request failed with status {response.status}"))
            return False

        self.store.set_action_token(token)
        logger.debug("Action token acquired")

        if not self._action_timer.running:
            self._action_timer.start()
        return True

    def _network_failed(self, kind: str, error: NetworkFailure) -> None:
        # Prior tokens stay usable
        logger.error(f"Network failure while fetching {kind} token: {error}")
        self.last_error = error
        if kind == SESSION:
            self._degraded = True

    def _reject(self, error: AuthFailure) -> None:
        logger.error(f"Authentication failed: {error}")
        self.clear_authentication()
        self.last_error = error
