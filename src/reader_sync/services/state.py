"""Local article store for Reader Sync.

The sync core never owns persistence; it talks to an ``ArticleStore``.
``StateManager`` is the default store: a JSON file holding the known
article ids and flags per feed, the subscription list last fetched from
the service and the last refresh time of every feed.
"""

import json
import logging
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..models import Folder, RemoteArticle, Subscription
from ..utils.paths import get_state_file_path


class ArticleStore:
    """Contract the sync core uses to read and update local state."""

    def merge_articles(self, folder: Folder, articles: Iterable[RemoteArticle]) -> int:
        """Store ``articles`` for ``folder`` and return how many were new."""
        raise NotImplementedError

    def set_read(self, guid: str, flag: bool) -> None:
        raise NotImplementedError

    def set_starred(self, guid: str, flag: bool) -> None:
        raise NotImplementedError

    def set_last_update(self, folder: Folder, when: datetime) -> None:
        raise NotImplementedError

    def reconcile_subscriptions(self, subscriptions: List[Subscription]) -> None:
        raise NotImplementedError


class AtomicWriter:
    """Simplified atomic writer for JSON operations."""

    def __init__(self, file_path: Path):
        self.file_path = file_path
        self.file_path.parent.mkdir(parents=True, exist_ok=True)

    def write(self, key: str, value: Any) -> None:
        """Atomically write a key-value pair to the JSON file."""
        data = self._load_data()
        data[key] = value

        with tempfile.NamedTemporaryFile(
            mode='w', encoding='utf-8', dir=self.file_path.parent, delete=False, suffix='.tmp'
        ) as tmp_file:
            json.dump(data, tmp_file, indent=2, ensure_ascii=False)
            tmp_file.flush()
            temp_path = Path(tmp_file.name)

        temp_path.replace(self.file_path)

    def read(self, key: Optional[str] = None) -> Any:
        """Read data from the JSON file."""
        data = self._load_data()
        return data.get(key) if key else data

    def _load_data(self) -> Dict[str, Any]:
        """Load data from the JSON file."""
        if not self.file_path.exists():
            return {}

        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError):
            return {}


class StateManager(ArticleStore):
    """JSON-file backed article store."""

    def __init__(self, state_file: Optional[Path] = None, max_articles_per_feed: int = 1000):
        """
        Initialize state manager.

        Args:
            state_file: Optional path to state file. If None, uses default path.
            max_articles_per_feed: Known article ids kept per feed
        """
        if state_file is None:
            state_file = get_state_file_path()

        self.writer = AtomicWriter(state_file)
        self.state_file = state_file
        self.max_articles_per_feed = max_articles_per_feed
        self._lock = threading.RLock()

    def merge_articles(self, folder: Folder, articles: Iterable[RemoteArticle]) -> int:
        """
        Add unseen articles for a feed and refresh flags of known ones.

        Args:
            folder: Folder the articles belong to
            articles: Parsed remote articles

        Returns:
            Number of articles that were not known before
        """
        with self._lock:
            data = self.writer.read("articles") or {}
            known = data.setdefault(folder.feed_url, {})
            new_count = 0

            for article in articles:
                record = known.get(article.guid)
                if record is None:
                    new_count += 1
                    record = {
                        "title": article.title,
                        "link": article.link,
                        "published": article.published.isoformat() if article.published else None,
                        "added_at": datetime.now(timezone.utc).isoformat(),
                    }
                    known[article.guid] = record
                record["read"] = article.read
                record["starred"] = article.starred

            if len(known) > self.max_articles_per_feed:
                # Keep only the most recent entries (insertion order)
                for guid in list(known)[:len(known) - self.max_articles_per_feed]:
                    del known[guid]

            self.writer.write("articles", data)

        logging.debug(f"Merged articles for {folder.feed_url}: {new_count} new")
        return new_count

    def get_article(self, guid: str) -> Optional[Dict[str, Any]]:
        data = self.writer.read("articles") or {}
        for feed_articles in data.values():
            if guid in feed_articles:
                return feed_articles[guid]
        return None

    def known_guids(self, feed_url: str) -> List[str]:
        data = self.writer.read("articles") or {}
        return list(data.get(feed_url, {}))

    def set_read(self, guid: str, flag: bool) -> None:
        self._set_flag(guid, "read", flag)

    def set_starred(self, guid: str, flag: bool) -> None:
        self._set_flag(guid, "starred", flag)

    def _set_flag(self, guid: str, name: str, flag: bool) -> None:
        with self._lock:
            data = self.writer.read("articles") or {}
            for feed_articles in data.values():
                if guid in feed_articles:
                    feed_articles[guid][name] = flag
                    self.writer.write("articles", data)
                    logging.debug(f"Set {name}={flag} for {guid}")
                    return
        logging.debug(f"Article {guid} not stored locally, {name} flag not recorded")

    def get_last_update(self, feed_url: str) -> Optional[datetime]:
        """
        Get the last refresh time for a feed.

        Args:
            feed_url: URL of the feed

        Returns:
            Last refresh datetime or None if never refreshed
        """
        data = self.writer.read("last_updates") or {}
        timestamp_str = data.get(feed_url)

        if timestamp_str:
            try:
                return datetime.fromisoformat(timestamp_str)
            except ValueError:
                logging.warning(f"Invalid timestamp for feed {feed_url}: {timestamp_str}")

        return None

    def set_last_update(self, folder: Folder, when: datetime) -> None:
        with self._lock:
            data = self.writer.read("last_updates") or {}
            data[folder.feed_url] = when.isoformat()
            self.writer.write("last_updates", data)

    def reconcile_subscriptions(self, subscriptions: List[Subscription]) -> None:
        """Replace the stored subscription list with the remote one."""
        with self._lock:
            previous = set((self.writer.read("subscriptions") or {}).keys())
            current = {
                sub.feed_url: {"title": sub.title, "labels": sub.labels, "html_url": sub.html_url}
                for sub in subscriptions
            }
            self.writer.write("subscriptions", current)

        added = set(current) - previous
        removed = previous - set(current)
        logging.info(
            f"Reconciled {len(current)} subscriptions ({len(added)} added, {len(removed)} removed)"
        )

    def folders(self) -> List[Folder]:
        """Folders for every stored subscription."""
        subscriptions = self.writer.read("subscriptions") or {}
        return [
            Folder(feed_url, info.get("title"), last_update=self.get_last_update(feed_url))
            for feed_url, info in subscriptions.items()
        ]

    def get_stats(self) -> Dict:
        """
        Get sync statistics.

        Returns:
            Dictionary with statistics
        """
        articles = self.writer.read("articles") or {}
        subscriptions = self.writer.read("subscriptions") or {}
        all_records = [record for feed in articles.values() for record in feed.values()]

        return {
            "subscriptions": len(subscriptions),
            "articles": len(all_records),
            "unread": sum(1 for record in all_records if not record.get("read")),
            "starred": sum(1 for record in all_records if record.get("starred")),
            "last_updated": datetime.now(timezone.utc).isoformat()
        }
