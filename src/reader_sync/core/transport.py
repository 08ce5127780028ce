"""HTTP transport for the sync core.

The core only needs something that accepts an ``HTTPRequest`` and later
calls back with either a ``Response`` or the exception that prevented
one.  ``RequestsTransport`` is the default implementation: a shared
``requests.Session`` with a urllib3 retry policy, driven by a bounded
worker pool so that at most ``max_workers`` requests are in flight.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .. import __version__
from ..errors import NetworkFailure

logger = logging.getLogger(__name__)


class HTTPRequest:
    """A fully built request ready for the wire."""

    def __init__(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, object]] = None,
        data: Optional[Dict[str, object]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.method = method.upper()
        self.url = url
        self.params = params or {}
        self.data = data
        self.headers = headers or {}

    def __repr__(self) -> str:
        return f"HTTPRequest({self.method} {self.url})"


class Response:
    """Status code, body and headers of a completed exchange."""

    def __init__(self, status: int, body: bytes = b"", headers: Optional[Dict[str, str]] = None):
        self.status = status
        self.body = body
        self.headers = headers or {}

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def __repr__(self) -> str:
        return f"Response({self.status}, {len(self.body)} bytes)"


Completion = Callable[[Union[Response, BaseException]], None]


class Transport:
    """Contract for the network collaborator."""

    def submit(self, request: HTTPRequest, callback: Completion) -> None:
        """Send ``request`` and invoke ``callback`` exactly once with the outcome."""
        raise NotImplementedError

    def perform(self, request: HTTPRequest, timeout: Optional[float] = None) -> Response:
        """Send ``request`` and wait for the response.

        Raises:
            NetworkFailure: if the transport reported an exception
        """
        future: "Future[Response]" = Future()

        def _complete(outcome: Union[Response, BaseException]) -> None:
            if isinstance(outcome, BaseException):
                future.set_exception(outcome)
            else:
                future.set_result(outcome)

        self.submit(request, _complete)
        try:
            return future.result(timeout=timeout)
        except NetworkFailure:
            raise
        except Exception as e:
            raise NetworkFailure(f"{request.method} {request.url} failed: {e}") from e

    def close(self) -> None:
        pass


class RequestsTransport(Transport):
    """Transport backed by ``requests`` and a bounded thread pool."""

    def __init__(self, max_workers: int = 4, timeout: float = 30, retry_attempts: int = 3):
        self.timeout = timeout
        self.session = self._create_session(retry_attempts)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="reader-http")

    def _create_session(self, retry_attempts: int) -> requests.Session:
        """Create HTTP session with retry strategy."""
        session = requests.Session()

        # Authentication answers (401/403) are left to the dispatcher
        retry_strategy = Retry(
            total=retry_attempts,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=None,
            raise_on_status=False,
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update({
            'User-Agent': f'ReaderSync/{__version__}'
        })

        return session

    def submit(self, request: HTTPRequest, callback: Completion) -> None:
        self._executor.submit(self._run, request, callback)

    def _run(self, request: HTTPRequest, callback: Completion) -> None:
        try:
            resp = self.session.request(
                request.method,
                request.url,
                params=request.params,
                data=request.data,
                headers=request.headers,
                timeout=self.timeout,
            )
            outcome: Union[Response, BaseException] = Response(
                resp.status_code, resp.content, dict(resp.headers)
            )
        except requests.Timeout as e:
            logger.warning(f"Timeout for {request.method} {request.url}")
            outcome = NetworkFailure(f"Timed out after {self.timeout}s: {e}")
        except requests.RequestException as e:
            logger.warning(f"HTTP error for {request.method} {request.url}: {e}")
            outcome = NetworkFailure(str(e))
        except Exception as e:
            logger.exception(f"Unexpected error for {request.method} {request.url}")
            outcome = e

        try:
            callback(outcome)
        except Exception:
            logger.exception(f"Completion callback failed for {request.method} {request.url}")

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        self.session.close()
