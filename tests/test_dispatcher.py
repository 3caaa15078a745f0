"""Tests for RequestDispatcher: token handling, error mapping, 401 recovery."""

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from conftest import LIST_FULL
from whawty_console.errors import ApiFailure, AuthenticationFailure, AuthorizationExpired
from whawty_console.models import AuthResponse, UserListResponse
from whawty_console.session import SessionState

TS = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _logged_in(make_app, routes, admin=True):
    app, transport = make_app(routes)
    app.session.login("alice", admin, TS, "tok1")
    return app, transport


class TestTokenHandling:
    def test_authenticated_call_carries_token(self, make_app):
        app, transport = _logged_in(make_app, {"remove": (200, {})})
        result = asyncio.run(app.dispatcher.call("remove", {"username": "bob"}))
        assert result.ok
        assert transport.calls("remove") == [{"username": "bob", "session": "tok1"}]

    def test_authenticate_sends_no_token(self, make_app):
        app, transport = _logged_in(make_app, {"authenticate": (200, {
            "session": "tok2", "username": "alice", "admin": True, "lastchanged": "2024-01-01T00:00:00Z"})})
        result = asyncio.run(app.dispatcher.authenticate("alice", "pw"))
        assert result.ok and isinstance(result.data, AuthResponse)
        assert transport.calls("authenticate") == [{"username": "alice", "password": "pw"}]

    def test_caller_payload_not_mutated(self, make_app):
        app, _ = _logged_in(make_app, {"remove": (200, {})})
        payload = {"username": "bob"}
        asyncio.run(app.dispatcher.call("remove", payload))
        assert payload == {"username": "bob"}

    def test_no_session_sends_nothing(self, make_app):
        app, transport = make_app({"list-full": LIST_FULL})
        app.login_form.username = "alice"
        result = asyncio.run(app.dispatcher.call("list-full"))
        assert not result.ok
        assert isinstance(result.error, AuthorizationExpired)
        assert transport.requests == []
        assert app.login_form.username == "alice"
        assert app.advisories.get("login") is None
        assert app.advisories.get("main") is None

    def test_missing_request_field_raises_before_sending(self, make_app):
        app, transport = _logged_in(make_app, {})
        with pytest.raises(ValueError):
            asyncio.run(app.dispatcher.call("set-admin", {"username": "bob"}))
        assert transport.requests == []


class TestUnauthorized:
    def test_401_logs_out_and_prefills(self, make_app, storage):
        app, _ = _logged_in(make_app, {"list-full": (401, {"error": "session expired"})})
        result = asyncio.run(app.dispatcher.call("list-full"))

        assert not result.ok and result.status_code == 401
        assert app.session.state is SessionState.LOGGED_OUT
        assert storage.snapshot() == {}
        assert app.login_form.username == "alice"
        assert app.login_form.password == ""
        advisory = app.advisories.get("login")
        assert advisory.heading == "Authentication failure"
        assert advisory.level == "danger"
        assert advisory.message == "session expired"
        assert app.advisories.get("main") is None

    def test_401_without_body(self, make_app):
        app, _ = _logged_in(make_app, {"remove": (401, b"")})
        asyncio.run(app.dispatcher.call("remove", {"username": "bob"}))
        assert app.advisories.get("login").message == "HTTP 401 Unauthorized"

    def test_401_on_authenticate_does_not_touch_session(self, make_app):
        app, _ = _logged_in(make_app, {"authenticate": (401, {"error": "nope"})})
        result = asyncio.run(app.dispatcher.authenticate("alice", "bad"))
        assert isinstance(result.error, AuthenticationFailure)
        assert result.error.message == "username and/or password are wrong!"
        assert app.session.state is SessionState.LOGGED_IN


class TestApiErrors:
    def test_server_error_text_is_shown(self, make_app):
        app, _ = _logged_in(make_app, {"add": (400, {"error": "user already exists"})})
        result = asyncio.run(app.dispatcher.call("add", {"username": "bob", "password": "x", "admin": False}))
        assert isinstance(result.error, ApiFailure)
        assert result.status_code == 400
        advisory = app.advisories.get("main")
        assert (advisory.heading, advisory.message) == ("API Error", "user already exists")
        assert app.session.state is SessionState.LOGGED_IN

    def test_status_line_when_body_has_no_error(self, make_app):
        app, _ = _logged_in(make_app, {"list-full": (500, b"boom")})
        asyncio.run(app.dispatcher.call("list-full"))
        assert app.advisories.get("main").message == "HTTP 500 Internal Server Error"

    def test_transport_error(self, make_app):
        def refuse(body):
            return httpx.ConnectError("connection refused")

        app, _ = _logged_in(make_app, {"list-full": refuse})
        result = asyncio.run(app.dispatcher.call("list-full"))
        assert not result.ok
        assert result.status_code == 0
        assert isinstance(result.error.__cause__, httpx.ConnectError)
        assert app.advisories.get("main").message.startswith("ConnectError")
        assert app.session.state is SessionState.LOGGED_IN

    def test_invalid_url_becomes_failed_result(self, make_app):
        def bad_url(body):
            return httpx.InvalidURL("Invalid non-printable ASCII character in URL")

        app, _ = _logged_in(make_app, {"list-full": bad_url})
        result = asyncio.run(app.dispatcher.call("list-full"))
        assert not result.ok
        assert isinstance(result.error, ApiFailure)
        assert isinstance(result.error.__cause__, httpx.InvalidURL)
        assert app.advisories.get("main").message.startswith("InvalidURL")
        assert app.session.state is SessionState.LOGGED_IN

    def test_malformed_success_body(self, make_app):
        app, _ = _logged_in(make_app, {"list-full": (200, {"users": []})})
        result = asyncio.run(app.dispatcher.call("list-full"))
        assert not result.ok
        assert result.status_code == 200
        assert "malformed list-full response" in app.advisories.get("main").message

    def test_success_body_that_is_an_error_report(self, make_app):
        app, _ = _logged_in(make_app, {"list-full": (200, {"error": "backend unavailable"})})
        result = asyncio.run(app.dispatcher.call("list-full"))
        assert result.error.message == "backend unavailable"

    def test_success_decoded(self, make_app):
        app, _ = _logged_in(make_app, {"list-full": LIST_FULL})
        result = asyncio.run(app.dispatcher.call("list-full"))
        assert result.ok
        assert isinstance(result.data, UserListResponse)
        assert [u.name for u in result.data.users] == ["alice", "bob"]
        assert app.advisories.get("main") is None


class TestAudit:
    def test_no_secrets_in_audit_entries(self, make_app):
        app, _ = _logged_in(make_app, {"update": (200, {}), "authenticate": (401, {})})
        asyncio.run(app.dispatcher.call("update", {"username": "bob", "newpassword": "hunter2-secret"}))
        asyncio.run(app.dispatcher.authenticate("bob", "hunter3-secret"))
        dumped = repr(app.audit.entries)
        assert "tok1" not in dumped
        assert "hunter2-secret" not in dumped
        assert "hunter3-secret" not in dumped
        assert any(e["event"] == "api_call" and e.get("endpoint") == "update" for e in app.audit.entries)
