"""Subscription management against the remote service."""

import json
import logging
from typing import List, Optional

from ..errors import MalformedResponse, ReaderError, SubscriptionError
from ..models import Subscription, feed_stream_id, folder_label
from ..services.activity import ActivityItem
from .dispatch import Operation, RequestDispatcher
from .transport import Response

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Subscribe, unsubscribe and file feeds into folders."""

    def __init__(self, dispatcher: RequestDispatcher):
        self.dispatcher = dispatcher

    def subscribe(self, feed_url: str, activity: Optional[ActivityItem] = None) -> Response:
        """
        Subscribe to a feed.

        Subscribing to a feed that is already subscribed is passed through;
        the service decides whether anything changes.

        Raises:
            SubscriptionError: if the service rejected the request
        """
        logger.info(f"Subscribing to {feed_url}")
        response = self._edit(feed_url, Operation(
            "POST",
            "subscription/quickadd",
            data={"quickadd": feed_url},
            requires_action_token=True,
            activity=activity,
            description=f"Subscribe {feed_url}",
        ))

        try:
            payload = json.loads(response.body)
        except ValueError:
            return response
        if isinstance(payload, dict) and payload.get("numResults") == 0 and not payload.get("streamId"):
            raise SubscriptionError(feed_url, ReaderError("No feed found at this address"))
        return response

    def unsubscribe(self, feed_url: str, activity: Optional[ActivityItem] = None) -> Response:
        """Remove the remote subscription; local cleanup is left to the caller."""
        logger.info(f"Unsubscribing from {feed_url}")
        return self._edit(feed_url, Operation(
            "POST",
            "subscription/edit",
            data={"ac": "unsubscribe", "s": feed_stream_id(feed_url)},
            requires_action_token=True,
            activity=activity,
            description=f"Unsubscribe {feed_url}",
        ))

    def set_folder_name(self, folder_name: str, feed_url: str, flag: bool,
                        activity: Optional[ActivityItem] = None) -> Response:
        """
        Add the feed to a folder label, or remove it from one.

        Args:
            folder_name: Folder name; nested folders are separated by ``/``
            feed_url: URL of the feed
            flag: True to add the label, False to remove it
        """
        try:
            label = folder_label(folder_name)
        except ValueError as e:
            raise SubscriptionError(feed_url, e)

        action = "a" if flag else "r"
        logger.info(f"{'Adding' if flag else 'Removing'} label {label} for {feed_url}")
        return self._edit(feed_url, Operation(
            "POST",
            "subscription/edit",
            data={"ac": "edit", "s": feed_stream_id(feed_url), action: label},
            requires_action_token=True,
            activity=activity,
            description=f"{'Label' if flag else 'Unlabel'} {feed_url} as {folder_name}",
        ))

    def rename_feed(self, feed_url: str, title: str, activity: Optional[ActivityItem] = None) -> Response:
        """Change the title the service shows for a feed."""
        return self._edit(feed_url, Operation(
            "POST",
            "subscription/edit",
            data={"ac": "edit", "s": feed_stream_id(feed_url), "t": title},
            requires_action_token=True,
            activity=activity,
            description=f"Rename {feed_url}",
        ))

    def list_subscriptions(self) -> List[Subscription]:
        """Fetch the full remote subscription list."""
        response = self.dispatcher.send_sync(Operation(
            "GET",
            "subscription/list",
            params={"output": "json"},
            description="List subscriptions",
        ))
        try:
            payload = json.loads(response.body)
            entries = payload["subscriptions"]
        except (ValueError, KeyError, TypeError) as e:
            raise MalformedResponse(f"Unreadable subscription list: {e}")

        subscriptions = [Subscription.from_json(entry) for entry in entries if isinstance(entry, dict)]
        logger.info(f"Fetched {len(subscriptions)} subscriptions")
        return subscriptions

    def _edit(self, feed_url: str, operation: Operation) -> Response:
        try:
            response = self.dispatcher.send_sync(operation)
        except ReaderError as e:
            raise SubscriptionError(feed_url, e) from e

        error = _edit_error(response.text.strip())
        if error:
            raise SubscriptionError(feed_url, ReaderError(error))
        return response


def _edit_error(body: str) -> Optional[str]:
    """Error message carried in a successful-status edit answer, if any."""
    if not body or body == "OK":
        return None
    try:
        payload = json.loads(body)
    except ValueError:
        return body[:200] if body.lower().startswith("error") else None
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])[:200]
    return None
