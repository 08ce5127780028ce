"""Read and starred state changes.

Changes to the same article are applied in the order they were
requested: each article gets a FIFO lane that is drained by one worker
at a time.  Changes to different articles run concurrently.
"""

import json
import logging
import threading
import time
from collections import deque
from concurrent.futures import Future
from typing import Callable, Deque, Dict, List, Optional, Tuple

from ..errors import MalformedResponse, ReaderError
from ..models import Article, RemoteArticle, feed_stream_id
from ..services.state import ArticleStore
from .dispatch import Operation, RequestDispatcher
from .transport import Response

logger = logging.getLogger(__name__)

READ_TAG = RemoteArticle.READ_STATE
KEPT_UNREAD_TAG = "user/-/state/com.google/kept-unread"
STARRED_TAG = RemoteArticle.STARRED_STATE


class ArticleLanes:
    """Per-key FIFO execution on top of a shared worker pool."""

    def __init__(self, submit: Callable[..., Future]):
        self._submit = submit
        self._lock = threading.Lock()
        self._lanes: Dict[str, Deque[Tuple[Callable[[], Response], Future]]] = {}

    def enqueue(self, key: str, task: Callable[[], Response]) -> "Future[Response]":
        future: "Future[Response]" = Future()
        with self._lock:
            lane = self._lanes.get(key)
            start = lane is None
            if start:
                lane = deque()
                self._lanes[key] = lane
            lane.append((task, future))
        if start:
            self._submit(self._drain, key)
        return future

    def pending(self, key: str) -> int:
        with self._lock:
            lane = self._lanes.get(key)
            return len(lane) if lane else 0

    def _drain(self, key: str) -> None:
        while True:
            with self._lock:
                lane = self._lanes[key]
                if not lane:
                    del self._lanes[key]
                    return
                task, future = lane.popleft()

            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(task())
            except Exception as e:
                future.set_exception(e)


class SyncStateService:
    """Pushes read and starred flags to the service."""

    def __init__(self, dispatcher: RequestDispatcher, store: Optional[ArticleStore] = None):
        self.dispatcher = dispatcher
        self.store = store
        self.lanes = ArticleLanes(dispatcher.submit)

    def mark_read(self, article: Article, flag: bool) -> "Future[Response]":
        """Queue a read-state change for ``article``."""
        data = {"i": article.guid}
        if flag:
            data["a"] = READ_TAG
            data["r"] = KEPT_UNREAD_TAG
        else:
            data["a"] = KEPT_UNREAD_TAG
            data["r"] = READ_TAG
        return self._queue(article, "read", flag, data)

    def mark_starred(self, article: Article, flag: bool) -> "Future[Response]":
        """Queue a starred-state change for ``article``."""
        data = {"i": article.guid, ("a" if flag else "r"): STARRED_TAG}
        return self._queue(article, "starred", flag, data)

    def _queue(self, article: Article, name: str, flag: bool, data: Dict[str, str]) -> "Future[Response]":
        operation = Operation(
            "POST",
            "edit-tag",
            data=data,
            requires_action_token=True,
            description=f"Set {name}={flag} on {article.guid}",
        )

        def apply() -> Response:
            try:
                response = self.dispatcher.send_sync(operation)
            except ReaderError as e:
                logger.error(f"Could not set {name}={flag} on {article.guid}: {e}")
                raise
            setattr(article, name, flag)
            if self.store is not None:
                if name == "read":
                    self.store.set_read(article.guid, flag)
                else:
                    self.store.set_starred(article.guid, flag)
            return response

        return self.lanes.enqueue(article.guid, apply)

    def mark_all_read(self, feed_url: str) -> Response:
        """Mark every article of a feed read on the service."""
        return self.dispatcher.send_sync(Operation(
            "POST",
            "mark-all-as-read",
            data={"s": feed_stream_id(feed_url), "ts": str(int(time.time() * 1_000_000))},
            requires_action_token=True,
            description=f"Mark all read {feed_url}",
        ))

    def fetch_item_ids(self, stream_id: str, exclude: Optional[str] = None, limit: int = 1000) -> List[str]:
        """
        Fetch the ids of the items in a stream.

        Args:
            stream_id: Stream to list, e.g. the starred state
            exclude: Optional stream whose items are left out
            limit: Maximum number of ids returned

        Returns:
            Item ids as the service reports them
        """
        params = {"s": stream_id, "n": limit, "output": "json"}
        if exclude:
            params["xt"] = exclude
        response = self.dispatcher.send_sync(Operation(
            "GET", "stream/items/ids", params=params, description=f"List item ids of {stream_id}",
        ))
        try:
            refs = json.loads(response.body).get("itemRefs") or []
            return [str(ref["id"]) for ref in refs]
        except (ValueError, AttributeError, KeyError, TypeError) as e:
            raise MalformedResponse(f"Unreadable item id list for {stream_id}: {e}")
