"""Tests for token acquisition, expiry and single-flight fetching."""

import threading

from reader_sync.core.auth import Authenticator
from reader_sync.errors import AuthFailure, NetworkFailure

from helpers.fake_transport import FakeTransport, ManualTimer, ok


def test_concurrent_callers_share_one_login(config, clock):
    started = threading.Event()
    release = threading.Event()

    def slow_login(request):
        started.set()
        release.wait(5)
        return ok("Auth=session-1\n")

    transport = FakeTransport()
    transport.route("POST", "/accounts/ClientLogin", slow_login)
    auth = Authenticator(config.server, transport, clock=clock, timer_factory=ManualTimer)

    results = []
    threads = [threading.Thread(target=lambda: results.append(auth.ensure_authenticated())) for _ in range(8)]
    threads[0].start()
    assert started.wait(5)
    for thread in threads[1:]:
        thread.start()
    release.set()
    for thread in threads:
        thread.join(5)

    assert results == [True] * 8
    assert len(transport.calls("/accounts/ClientLogin")) == 1
    assert auth.session_token == "session-1"


def test_login_sends_credentials_and_header_is_used(authenticator, transport):
    assert authenticator.ensure_authenticated()

    login = transport.calls("/accounts/ClientLogin")[0]
    assert login.data["Email"] == "alice"
    assert login.data["Passwd"] == "secret"
    assert login.data["service"] == "reader"
    assert authenticator.auth_headers() == {"Authorization": "GoogleLogin auth=session-1"}
    assert authenticator.ready


def test_valid_session_is_not_refetched(authenticator, transport):
    assert authenticator.ensure_authenticated()
    assert authenticator.ensure_authenticated()
    assert len(transport.calls("/accounts/ClientLogin")) == 1


def test_action_token_needs_session_first(authenticator, transport):
    assert authenticator.ensure_action_token()

    paths = [request.url for request in transport.requests]
    assert paths[0].endswith("/accounts/ClientLogin")
    assert paths[1].endswith("/reader/api/0/token")
    assert transport.requests[1].headers["Authorization"] == "GoogleLogin auth=session-1"
    assert authenticator.action_token == "action-1"


def test_expired_action_token_is_refetched(authenticator, transport, clock):
    transport.route("GET", "/reader/api/0/token", ok("action-1"), ok("action-2"))

    assert authenticator.ensure_action_token()
    clock.advance(1000)
    assert authenticator.ensure_action_token()
    assert len(transport.calls("/reader/api/0/token")) == 1

    clock.advance(600)
    assert authenticator.ensure_action_token()
    assert len(transport.calls("/reader/api/0/token")) == 2
    assert authenticator.action_token == "action-2"
    assert len(transport.calls("/accounts/ClientLogin")) == 1


def test_get_token_always_fetches(authenticator, transport):
    assert authenticator.ensure_action_token()
    assert authenticator.get_token()
    assert len(transport.calls("/reader/api/0/token")) == 2


def test_timers_start_after_login_and_stop_on_clear(authenticator):
    assert authenticator.ensure_action_token()
    assert authenticator._session_timer.running
    assert authenticator._action_timer.running

    authenticator.clear_authentication()

    assert not authenticator._session_timer.running
    assert not authenticator._action_timer.running
    assert authenticator.session_token is None
    assert authenticator.action_token is None
    assert not authenticator.ready


def test_action_timer_refreshes_token(authenticator, transport):
    transport.route("GET", "/reader/api/0/token", ok("action-1"), ok("action-2"))
    assert authenticator.ensure_action_token()

    authenticator._action_timer.fire()

    assert authenticator.action_token == "action-2"


def test_session_timer_refreshes_session(authenticator, transport):
    transport.route("POST", "/accounts/ClientLogin", ok("Auth=session-1"), ok("Auth=session-2"))
    assert authenticator.ensure_authenticated()

    authenticator._session_timer.fire()

    assert authenticator.session_token == "session-2"
    assert authenticator._session_timer.starts == 1


def test_reset_reacquires_both_tokens(authenticator, transport):
    transport.route("POST", "/accounts/ClientLogin", ok("Auth=session-1"), ok("Auth=session-2"))
    assert authenticator.ensure_action_token()

    assert authenticator.reset_authentication()

    assert authenticator.session_token == "session-2"
    assert len(transport.calls("/reader/api/0/token")) == 2
    assert authenticator.ready


def test_reset_skips_clear_when_token_already_replaced(authenticator, transport):
    assert authenticator.ensure_action_token()

    assert authenticator.reset_authentication(rejected_token="stale-session")

    assert len(transport.calls("/accounts/ClientLogin")) == 1
    assert authenticator.session_token == "session-1"


def test_network_failure_keeps_prior_token(authenticator, transport):
    transport.route("POST", "/accounts/ClientLogin", ok("Auth=session-1"), NetworkFailure("offline"))
    assert authenticator.ensure_authenticated()

    authenticator._session_timer.fire()

    assert authenticator.session_token == "session-1"
    assert not authenticator.ready
    assert isinstance(authenticator.last_error, NetworkFailure)
    assert authenticator.ensure_authenticated()


def test_rejected_login_clears_credentials(authenticator, transport):
    transport.route("POST", "/accounts/ClientLogin", ok("Auth=session-1"), ok("Error=BadAuthentication", 403))
    assert authenticator.ensure_authenticated()

    authenticator._session_timer.fire()

    assert authenticator.session_token is None
    assert not authenticator.ready
    assert isinstance(authenticator.last_error, AuthFailure)


def test_rejected_token_request_clears_credentials(authenticator, transport):
    transport.route("GET", "/reader/api/0/token", ok("Unauthorized", 401))

    assert not authenticator.ensure_action_token()
    assert authenticator.session_token is None
    assert isinstance(authenticator.last_error, AuthFailure)


def test_login_without_auth_line_fails(authenticator, transport):
    transport.route("POST", "/accounts/ClientLogin", ok("SID=only"))

    assert not authenticator.ensure_authenticated()
    assert isinstance(authenticator.last_error, AuthFailure)


def test_missing_password_makes_no_request(config, clock, monkeypatch):
    monkeypatch.delenv("READER_SYNC_PASSWORD", raising=False)
    config.server.password = ""
    transport = FakeTransport.with_auth()
    auth = Authenticator(config.server, transport, clock=clock, timer_factory=ManualTimer)

    assert not auth.ensure_authenticated()
    assert transport.requests == []
    assert isinstance(auth.last_error, AuthFailure)


def test_password_from_environment(config, clock, monkeypatch):
    monkeypatch.setenv("READER_SYNC_PASSWORD", "from-env")
    config.server.password = ""
    transport = FakeTransport.with_auth()
    auth = Authenticator(config.server, transport, clock=clock, timer_factory=ManualTimer)

    assert auth.ensure_authenticated()
    assert transport.calls("/accounts/ClientLogin")[0].data["Passwd"] == "from-env"
