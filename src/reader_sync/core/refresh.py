"""Feed refresh and new-article accounting."""

import json
import logging
import threading
import time
from concurrent.futures import CancelledError, Future
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
from urllib.parse import quote

from ..errors import MalformedResponse, PartialRefreshFailure, ReaderError, failure_category
from ..models import Folder, RemoteArticle, feed_stream_id
from ..services.activity import ActivityItem, ActivityLog
from ..services.state import ArticleStore
from .dispatch import Operation, RequestDispatcher

logger = logging.getLogger(__name__)


class NewArticleCounter:
    """Process-wide count of articles first seen during the current sync."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def add(self, count: int) -> int:
        with self._lock:
            self._value += count
            return self._value

    def reset(self) -> None:
        with self._lock:
            self._value = 0


class RefreshJob:
    """One feed fetch with its logging and limit policy."""

    def __init__(self, folder: Folder, activity: Optional[ActivityItem], ignore_article_limit: bool):
        self.folder = folder
        self.activity = activity
        self.ignore_article_limit = ignore_article_limit
        self.cancelled = False

    def log(self, line: str) -> None:
        if self.activity is not None:
            self.activity.append_details(line)

    def status(self, text: str) -> None:
        if self.activity is not None:
            self.activity.set_status(text)


class RefreshResult:
    """Outcome of a successful refresh."""

    def __init__(self, feed_url: str, article_count: int, new_count: int, bytes_received: int):
        self.feed_url = feed_url
        self.article_count = article_count
        self.new_count = new_count
        self.bytes_received = bytes_received

    def __repr__(self) -> str:
        return f"RefreshResult({self.feed_url}, articles={self.article_count}, new={self.new_count})"


class RefreshHandle:
    """Tracks one in-flight refresh and lets the caller cancel it."""

    def __init__(self, job: RefreshJob, future: "Future[RefreshResult]"):
        self.job = job
        self._future = future

    @property
    def feed_url(self) -> str:
        return self.job.folder.feed_url

    @property
    def cancelled(self) -> bool:
        return self.job.cancelled

    def cancel(self) -> bool:
        """Stop the refresh; a response arriving later is discarded."""
        if self._future.done():
            return False
        self.job.cancelled = True
        self._future.cancel()
        self.job.status("Cancelled")
        return True

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> RefreshResult:
        return self._future.result(timeout=timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        return self._future.exception(timeout=timeout)


class BatchResult:
    """Per-feed outcomes of a batch refresh."""

    def __init__(self) -> None:
        self.results: Dict[str, RefreshResult] = {}
        self.failures: Dict[str, BaseException] = {}
        self.cancelled: List[str] = []

    @property
    def new_articles(self) -> int:
        return sum(result.new_count for result in self.results.values())

    @property
    def partial_failure(self) -> Optional[PartialRefreshFailure]:
        if not self.failures:
            return None
        return PartialRefreshFailure(self.failures)


class RefreshCoordinator:
    """Fetches feed contents and feeds them to the article store."""

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        store: ArticleStore,
        *,
        article_limit: int = 100,
        counter: Optional[NewArticleCounter] = None,
    ):
        self.dispatcher = dispatcher
        self.store = store
        self.article_limit = article_limit
        self.counter = counter or NewArticleCounter()

    def build_operation(self, job: RefreshJob) -> Operation:
        folder = job.folder
        params = {
            "output": "json",
            "ck": int(time.time() * 1000),
        }
        if not job.ignore_article_limit:
            params["n"] = self.article_limit
        if folder.last_update is not None:
            params["ot"] = int(folder.last_update.timestamp())

        return Operation(
            "GET",
            "stream/contents/" + quote(feed_stream_id(folder.feed_url), safe=""),
            params=params,
            activity=job.activity,
            description=f"Refresh {folder.feed_url}",
        )

    def refresh_feed(
        self,
        folder: Folder,
        activity: Optional[ActivityItem] = None,
        ignore_article_limit: bool = False,
    ) -> RefreshHandle:
        """
        Start refreshing one feed.

        Args:
            folder: Folder whose feed is fetched
            activity: Activity item that receives progress lines
            ignore_article_limit: Fetch without the article cap

        Returns:
            Handle for tracking or cancelling the refresh
        """
        job = RefreshJob(folder, activity, ignore_article_limit)
        job.status("Retrieving articles")
        job.log(f"Connecting to {folder.feed_url}")
        future = self.dispatcher.submit(self._run, job)
        return RefreshHandle(job, future)

    def _run(self, job: RefreshJob) -> RefreshResult:
        folder = job.folder
        if job.cancelled:
            raise CancelledError()

        try:
            response = self.dispatcher.send_sync(self.build_operation(job))
            if job.cancelled:
                logger.debug(f"Discarding response for cancelled refresh of {folder.feed_url}")
                raise CancelledError()
            job.log(f"{len(response.body)} bytes received")
            articles = self._parse(folder, response.body)
        except ReaderError as e:
            category = failure_category(e)
            logger.error(f"Refresh of {folder.feed_url} failed ({category}): {e}")
            job.status(f"Error ({category})")
            job.log(f"Refresh failed: {e}")
            raise

        new_count = self.store.merge_articles(folder, articles)
        self.counter.add(new_count)

        now = datetime.now(timezone.utc)
        folder.last_update = now
        self.store.set_last_update(folder, now)

        job.log(f"{len(articles)} articles retrieved, {new_count} new")
        job.status(f"{new_count} new articles" if new_count else "No new articles")
        logger.info(f"Refreshed {folder.feed_url}: {len(articles)} articles, {new_count} new")
        return RefreshResult(folder.feed_url, len(articles), new_count, len(response.body))

    def _parse(self, folder: Folder, body: bytes) -> List[RemoteArticle]:
        try:
            payload = json.loads(body)
            items = payload["items"]
        except (ValueError, KeyError, TypeError) as e:
            raise MalformedResponse(f"Unreadable stream contents for {folder.feed_url}: {e}")
        if not isinstance(items, list):
            raise MalformedResponse(f"Stream contents for {folder.feed_url} carry no item list")

        articles = []
        for item in items:
            try:
                articles.append(RemoteArticle(item, folder.feed_url))
            except (ValueError, TypeError, AttributeError, OverflowError, OSError) as e:
                logger.warning(f"Skipping item in {folder.feed_url}: {e}")
        return articles

    def refresh_folders(
        self,
        folders: Iterable[Folder],
        ignore_article_limit: bool = False,
        activity_log: Optional[ActivityLog] = None,
    ) -> BatchResult:
        """
        Refresh several feeds concurrently and wait for all of them.

        The new-article counter is reset first.  A failing feed is
        recorded in the result and does not stop the others.
        """
        self.counter.reset()
        handles = []
        for folder in folders:
            activity = activity_log.item_for(folder.name) if activity_log is not None else None
            handles.append(self.refresh_feed(folder, activity, ignore_article_limit))

        batch = BatchResult()
        for handle in handles:
            try:
                batch.results[handle.feed_url] = handle.result()
            except CancelledError:
                batch.cancelled.append(handle.feed_url)
            except Exception as e:
                batch.failures[handle.feed_url] = e

        if batch.failures:
            logger.warning(str(batch.partial_failure))
        logger.info(
            f"Refreshed {len(batch.results)} feeds, {len(batch.failures)} failed, "
            f"{batch.new_articles} new articles"
        )
        return batch
