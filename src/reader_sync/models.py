"""Local and remote entities the sync core reads and updates."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

FEED_STREAM_PREFIX = "feed/"
LABEL_PREFIX = "user/-/label/"


def feed_stream_id(feed_url: str) -> str:
    """Stream id of a feed as the service names it."""
    return f"{FEED_STREAM_PREFIX}{feed_url}"


def folder_label(folder_name: str) -> str:
    """
    Build the label id for a folder name.

    Nested folder names may be given with ``/`` separators or as a
    sequence of path components; empty components are dropped.
    """
    parts = [part.strip() for part in folder_name.split("/") if part.strip()]
    if not parts:
        raise ValueError("Folder name must not be empty")
    return LABEL_PREFIX + "/".join(parts)


class Folder:
    """A local folder bound to one remote feed."""

    def __init__(
        self,
        feed_url: str,
        name: Optional[str] = None,
        *,
        folder_id: Optional[int] = None,
        last_update: Optional[datetime] = None,
    ):
        self.feed_url = feed_url
        self.name = name or feed_url
        self.folder_id = folder_id
        self.last_update = last_update

    def __repr__(self) -> str:
        return f"Folder({self.name!r}, feed={self.feed_url})"


class Article:
    """A local article; only its guid and two flags matter to the core."""

    def __init__(
        self,
        guid: str,
        feed_url: str = "",
        *,
        title: str = "",
        read: bool = False,
        starred: bool = False,
    ):
        self.guid = guid
        self.feed_url = feed_url
        self.title = title
        self.read = read
        self.starred = starred

    def __repr__(self) -> str:
        return f"Article({self.guid!r}, read={self.read}, starred={self.starred})"


class Subscription:
    """One entry of the remote subscription list."""

    def __init__(self, feed_url: str, title: str = "", labels: Optional[List[str]] = None,
                 html_url: str = ""):
        self.feed_url = feed_url
        self.title = title or feed_url
        self.labels = labels or []
        self.html_url = html_url

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Subscription":
        stream_id = data.get("id", "")
        feed_url = stream_id[len(FEED_STREAM_PREFIX):] if stream_id.startswith(FEED_STREAM_PREFIX) else stream_id
        labels = []
        for category in data.get("categories", []) or []:
            label = category.get("label") or category.get("id", "")
            if label.startswith(LABEL_PREFIX):
                label = label[len(LABEL_PREFIX):]
            if label:
                labels.append(label)
        return cls(
            feed_url=feed_url,
            title=data.get("title", ""),
            labels=labels,
            html_url=data.get("htmlUrl", ""),
        )

    def __repr__(self) -> str:
        return f"Subscription({self.feed_url!r}, labels={self.labels})"


class RemoteArticle:
    """An item parsed from a stream contents response."""

    READ_STATE = "user/-/state/com.google/read"
    STARRED_STATE = "user/-/state/com.google/starred"

    def __init__(self, item: Dict[str, Any], feed_url: str):
        """
        Initialize remote article.

        Args:
            item: Raw JSON item from the stream contents response
            feed_url: URL of the source feed
        """
        if not isinstance(item, dict) or not item.get("id"):
            raise ValueError("Stream item without an id")

        self.item = item
        self.feed_url = feed_url
        self.guid = str(item["id"])
        self.title = item.get("title") or "Untitled"
        self.link = self._extract_link(item)
        self.author = item.get("author", "")
        self.content = self._extract_content(item)
        self.published = self._parse_published_date(item)

        categories = item.get("categories") or []
        if not isinstance(categories, list):
            categories = []
        categories = [cat for cat in categories if isinstance(cat, str)]
        self.read = any(cat.endswith("/state/com.google/read") for cat in categories)
        self.starred = any(cat.endswith("/state/com.google/starred") for cat in categories)

    def _extract_content(self, item: Dict[str, Any]) -> str:
        for key in ("content", "summary"):
            value = item.get(key)
            if isinstance(value, dict) and isinstance(value.get("content"), str):
                return value["content"]
            if isinstance(value, str) and value:
                return value
        return ""

    def _extract_link(self, item: Dict[str, Any]) -> str:
        for key in ("canonical", "alternate"):
            links = item.get(key)
            if not isinstance(links, list):
                continue
            for link in links:
                if isinstance(link, dict) and isinstance(link.get("href"), str) and link["href"]:
                    return link["href"]
        return ""

    def _parse_published_date(self, item: Dict[str, Any]) -> Optional[datetime]:
        """Parse published date from the item."""
        for field in ("published", "updated", "crawlTimeMsec"):
            value = item.get(field)
            if not value:
                continue
            try:
                seconds = int(value)
                if field == "crawlTimeMsec":
                    seconds //= 1000
                return datetime.fromtimestamp(seconds, tz=timezone.utc)
            except (TypeError, ValueError, OverflowError, OSError):
                continue

        return None

    def __repr__(self) -> str:
        return f"RemoteArticle({self.title!r}, feed={self.feed_url})"
