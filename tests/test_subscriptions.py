"""Tests for subscribe, unsubscribe and folder labels."""

import pytest

from reader_sync.core.subscriptions import SubscriptionService
from reader_sync.errors import MalformedResponse, NetworkFailure, RemoteError, SubscriptionError

from helpers.fake_transport import ok

FEED = "https://blog.example.com/feed.xml"


@pytest.fixture
def service(dispatcher):
    return SubscriptionService(dispatcher)


def test_subscribe_uses_quickadd(service, transport):
    transport.route("POST", "/subscription/quickadd", ok({"numResults": 1, "streamId": f"feed/{FEED}"}))

    service.subscribe(FEED)

    request = transport.calls("/subscription/quickadd")[0]
    assert request.data == {"quickadd": FEED, "T": "action-1"}


def test_subscribing_twice_is_not_an_error(service, transport):
    transport.route("POST", "/subscription/quickadd", ok({"numResults": 1, "query": FEED}))

    service.subscribe(FEED)
    service.subscribe(FEED)

    assert len(transport.calls("/subscription/quickadd")) == 2


def test_unsubscribe(service, transport):
    transport.route("POST", "/subscription/edit", ok("OK"))

    service.unsubscribe(FEED)

    request = transport.calls("/subscription/edit")[0]
    assert request.data == {"ac": "unsubscribe", "s": f"feed/{FEED}", "T": "action-1"}


def test_set_folder_name_adds_label(service, transport):
    transport.route("POST", "/subscription/edit", ok("OK"))

    service.set_folder_name("Tech", FEED, True)

    request = transport.calls("/subscription/edit")[0]
    assert request.data["ac"] == "edit"
    assert request.data["s"] == f"feed/{FEED}"
    assert request.data["a"] == "user/-/label/Tech"
    assert "r" not in request.data


def test_set_folder_name_removes_nested_label(service, transport):
    transport.route("POST", "/subscription/edit", ok("OK"))

    service.set_folder_name("News/ World ", FEED, False)

    request = transport.calls("/subscription/edit")[0]
    assert request.data["r"] == "user/-/label/News/World"
    assert "a" not in request.data


def test_empty_folder_name_is_rejected(service, transport):
    with pytest.raises(SubscriptionError):
        service.set_folder_name(" / ", FEED, True)
    assert transport.calls("/subscription/edit") == []


def test_rename_feed(service, transport):
    transport.route("POST", "/subscription/edit", ok("OK"))

    service.rename_feed(FEED, "Example Blog")

    assert transport.calls("/subscription/edit")[0].data["t"] == "Example Blog"


def test_remote_rejection_carries_feed_url(service, transport):
    transport.route("POST", "/subscription/quickadd", ok("bad request", 400))

    with pytest.raises(SubscriptionError) as excinfo:
        service.subscribe(FEED)

    assert excinfo.value.feed_url == FEED
    assert isinstance(excinfo.value.cause, RemoteError)


def test_error_in_body_is_subscription_error(service, transport):
    transport.route("POST", "/subscription/quickadd", ok({"error": "Feed not found"}))

    with pytest.raises(SubscriptionError, match="Feed not found"):
        service.subscribe(FEED)


def test_network_failure_is_wrapped(service, transport):
    transport.route("POST", "/subscription/edit", NetworkFailure("timed out"))

    with pytest.raises(SubscriptionError) as excinfo:
        service.unsubscribe(FEED)

    assert isinstance(excinfo.value.cause, NetworkFailure)


def test_list_subscriptions(service, transport):
    transport.route("GET", "/subscription/list", ok({"subscriptions": [
        {
            "id": f"feed/{FEED}",
            "title": "Example",
            "categories": [{"id": "user/123/label/Tech", "label": "Tech"}],
            "htmlUrl": "https://blog.example.com",
        },
        {"id": "feed/https://other.example.com/rss", "title": "Other", "categories": []},
    ]}))

    subs = service.list_subscriptions()

    assert [sub.feed_url for sub in subs] == [FEED, "https://other.example.com/rss"]
    assert subs[0].labels == ["Tech"]
    assert subs[0].title == "Example"
    assert transport.calls("/reader/api/0/token") == []


def test_list_subscriptions_malformed(service, transport):
    transport.route("GET", "/subscription/list", ok("<html>"))

    with pytest.raises(MalformedResponse):
        service.list_subscriptions()


def test_quickadd_without_results_is_subscription_error(service, transport):
    transport.route("POST", "/subscription/quickadd", ok({"numResults": 0, "query": FEED}))

    with pytest.raises(SubscriptionError) as excinfo:
        service.subscribe(FEED)

    assert excinfo.value.feed_url == FEED
