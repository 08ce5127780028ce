"""Authenticated request dispatch.

``RequestDispatcher.send`` runs one ``Exchange`` per operation on a
worker pool.  An exchange moves through a small set of states::

    UNSENT -> SENT -> DONE
                   -> FAILED
                   -> RETRY_AUTH -> SENT_AGAIN -> DONE | FAILED

Only an authentication rejection leads to ``RETRY_AUTH`` and it can do
so once; a second rejection ends the exchange with ``AuthFailure``.
"""

import enum
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Optional, Tuple

from ..errors import AuthFailure, NetworkFailure, ReaderError, RemoteError, failure_category
from ..services.activity import ActivityItem
from .auth import Authenticator
from .transport import HTTPRequest, Response, Transport

logger = logging.getLogger(__name__)

API_PREFIX = "/reader/api/0/"
AUTH_REJECTED = (401, 403)


class Operation:
    """A logical remote call before authentication is attached."""

    def __init__(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        requires_action_token: bool = False,
        activity: Optional[ActivityItem] = None,
        description: str = "",
    ):
        self.method = method.upper()
        self.path = path
        self.params = params or {}
        self.data = data
        self.requires_action_token = requires_action_token
        self.activity = activity
        self.description = description or f"{self.method} {path}"

    def __repr__(self) -> str:
        return f"Operation({self.description})"


class ExchangeState(enum.Enum):
    UNSENT = "unsent"
    SENT = "sent"
    RETRY_AUTH = "retry_auth"
    SENT_AGAIN = "sent_again"
    DONE = "done"
    FAILED = "failed"


class Exchange:
    """Drives a single operation to completion."""

    def __init__(self, dispatcher: "RequestDispatcher", operation: Operation):
        self.dispatcher = dispatcher
        self.operation = operation
        self.state = ExchangeState.UNSENT
        self.attempts = 0
        self.response: Optional[Response] = None
        self.error: Optional[ReaderError] = None

    def run(self) -> Response:
        while self.state not in (ExchangeState.DONE, ExchangeState.FAILED):
            self.step()
        if self.state is ExchangeState.FAILED:
            raise self.error
        return self.response

    def step(self) -> None:
        if self.state in (ExchangeState.UNSENT, ExchangeState.RETRY_AUTH):
            self._submit()
        else:
            raise RuntimeError(f"Exchange cannot advance from {self.state}")

    def _submit(self) -> None:
        auth = self.dispatcher.authenticator
        retrying = self.state is ExchangeState.RETRY_AUTH

        try:
            session, action = self.dispatcher.ensure_credentials(self.operation)
            request = self.dispatcher.build_request(self.operation, session, action)
            self.attempts += 1
            self.state = ExchangeState.SENT_AGAIN if retrying else ExchangeState.SENT
            response = self.dispatcher.transport.perform(request)
        except ReaderError as e:
            self._fail(e)
            return

        if response.status in AUTH_REJECTED:
            if retrying:
                self._fail(AuthFailure(f"{self.operation.description} rejected twice ({response.status})"))
                return
            logger.warning(f"{self.operation.description} rejected ({response.status}), resetting authentication")
            auth.reset_authentication(rejected_token=session)
            self.state = ExchangeState.RETRY_AUTH
            return

        auth.confirm_session(session)

        if not response.ok:
            self._fail(RemoteError(response.status, response.text))
            return

        self.response = response
        self.state = ExchangeState.DONE

    def _fail(self, error: ReaderError) -> None:
        self.error = error
        self.state = ExchangeState.FAILED


class RequestDispatcher:
    """Builds authenticated requests and runs them with the retry policy."""

    def __init__(self, authenticator: Authenticator, transport: Transport, *,
                 client_name: str = "ReaderSync", max_workers: int = 4):
        self.authenticator = authenticator
        self.transport = transport
        self.client_name = client_name
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="reader-dispatch")

    @property
    def base_url(self) -> str:
        return self.authenticator.server.base_url

    def ensure_credentials(self, operation: Operation) -> Tuple[str, Optional[str]]:
        """
        Make sure the tokens ``operation`` needs are available.

        Returns:
            Session and action token taken together from the token store

        Raises:
            AuthFailure: if the tokens were discarded again before use
        """
        auth = self.authenticator
        for _ in range(2):
            if not auth.ensure_authenticated():
                raise self._credential_error("session token unavailable")
            if operation.requires_action_token and not auth.ensure_action_token():
                raise self._credential_error("action token unavailable")

            session, action = auth.store.snapshot()
            if session and (action or not operation.requires_action_token):
                return session, action
            logger.debug(f"Tokens discarded before {operation.description} was sent, acquiring again")

        raise AuthFailure(f"Tokens for {operation.description} were discarded before sending")

    def _credential_error(self, reason: str) -> ReaderError:
        cause = self.authenticator.last_error
        if isinstance(cause, NetworkFailure):
            return NetworkFailure(f"{reason}: {cause}")
        return AuthFailure(f"{reason}: {cause}" if cause else reason)

    def build_request(self, operation: Operation, session: str, action: Optional[str] = None) -> HTTPRequest:
        path = operation.path
        if not path.startswith("/"):
            path = API_PREFIX + path

        params = {"client": self.client_name}
        params.update(operation.params)

        data = None
        if operation.data is not None or operation.requires_action_token:
            data = dict(operation.data or {})
            if operation.requires_action_token:
                data["T"] = action

        return HTTPRequest(
            operation.method,
            self.base_url + path,
            params=params,
            data=data,
            headers=self.authenticator.auth_headers(session),
        )

    def submit(self, fn, *args) -> Future:
        """Run ``fn`` on the dispatch pool."""
        return self._executor.submit(fn, *args)

    def send(self, operation: Operation) -> "Future[Response]":
        """Dispatch ``operation`` on the worker pool."""
        return self._executor.submit(self.send_sync, operation)

    def send_sync(self, operation: Operation) -> Response:
        """Dispatch ``operation`` on the calling thread."""
        exchange = Exchange(self, operation)
        try:
            response = exchange.run()
        except ReaderError as e:
            logger.error(f"{operation.description} failed: {e}")
            self._report(operation, f"Failed ({failure_category(e)}): {e}")
            raise

        logger.debug(f"{operation.description} completed with {response.status}")
        self._report(operation, "Completed")
        return response

    def _report(self, operation: Operation, line: str) -> None:
        if operation.activity is not None:
            operation.activity.append_details(f"{operation.description}: {line}")

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
