"""Tests for the JSON article store."""

from datetime import datetime, timezone

from reader_sync.models import Folder, RemoteArticle, Subscription
from reader_sync.services.state import StateManager

FEED = "https://blog.example.com/feed.xml"


def article(item_id, **extra):
    return RemoteArticle({"id": item_id, "title": item_id, **extra}, FEED)


def test_merge_counts_only_unseen(tmp_path):
    store = StateManager(tmp_path / "state.json")
    folder = Folder(FEED)

    assert store.merge_articles(folder, [article("a"), article("b")]) == 2
    assert store.merge_articles(folder, [article("b"), article("c")]) == 1
    assert store.known_guids(FEED) == ["a", "b", "c"]


def test_merge_refreshes_flags(tmp_path):
    store = StateManager(tmp_path / "state.json")
    folder = Folder(FEED)
    store.merge_articles(folder, [article("a")])

    store.merge_articles(folder, [article("a", categories=["user/1/state/com.google/starred"])])

    assert store.get_article("a")["starred"] is True


def test_old_articles_are_trimmed(tmp_path):
    store = StateManager(tmp_path / "state.json", max_articles_per_feed=2)

    store.merge_articles(Folder(FEED), [article("a"), article("b"), article("c")])

    assert store.known_guids(FEED) == ["b", "c"]


def test_flags_and_unknown_articles(tmp_path):
    store = StateManager(tmp_path / "state.json")
    store.merge_articles(Folder(FEED), [article("a")])

    store.set_read("a", True)
    store.set_starred("missing", True)

    assert store.get_article("a")["read"] is True
    assert store.get_article("missing") is None


def test_subscriptions_and_last_update(tmp_path):
    store = StateManager(tmp_path / "state.json")
    when = datetime(2024, 5, 1, tzinfo=timezone.utc)

    store.reconcile_subscriptions([Subscription(FEED, "Example", ["Tech"])])
    store.set_last_update(Folder(FEED), when)

    folders = store.folders()
    assert len(folders) == 1
    assert folders[0].last_update == when
    assert store.get_stats()["subscriptions"] == 1


def test_reconcile_replaces_list(tmp_path):
    store = StateManager(tmp_path / "state.json")
    store.reconcile_subscriptions([Subscription(FEED), Subscription("https://old.example.com/rss")])

    store.reconcile_subscriptions([Subscription(FEED)])

    assert [folder.feed_url for folder in store.folders()] == [FEED]
