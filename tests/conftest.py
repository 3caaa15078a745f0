"""Shared fixtures: a recording mock transport and a ready-wired ConsoleApp."""

from __future__ import annotations

import inspect
import json
from typing import Any, Callable, Optional, Union

import httpx
import pytest

from whawty_console.advisor import CRACK_TIME_KEY, PasswordAdvisor
from whawty_console.app import ConsoleApp
from whawty_console.storage import MemoryStorage

Reply = tuple[int, Any]
Route = Union[Reply, list[Reply], Callable[[dict], Any]]

AUTH_ALICE = (200, {
    "session": "tok1",
    "username": "alice",
    "admin": True,
    "lastchanged": "2024-01-01T00:00:00Z",
})

AUTH_CAROL = (200, {
    "session": "tok2",
    "username": "carol",
    "admin": False,
    "lastchanged": "2023-06-15T12:30:00Z",
})

LIST_FULL = (200, {"list": {
    "bob": {"admin": False, "lastchanged": "2024-02-03T04:05:06Z", "valid": True,
            "supported": True, "formatid": "scrypt", "formatparams": "1"},
    "alice": {"admin": True, "lastchanged": "2024-01-01T00:00:00Z", "valid": True,
              "supported": False, "formatid": "argon2id", "formatparams": "2"},
}})


class RecordingTransport(httpx.AsyncBaseTransport):
    """Deterministic mock transport that records every request it answers.

    Routes are keyed by endpoint name ("remove", "list-full", ...). A route is
    a (status, body) pair, a list of pairs served in order (the last one
    repeats), or a callable taking the request body and returning a pair,
    optionally as a coroutine.
    """

    def __init__(self, routes: Optional[dict[str, Route]] = None):
        self.routes: dict[str, Route] = dict(routes or {})
        self.requests: list[tuple[str, dict]] = []

    def calls(self, endpoint: str) -> list[dict]:
        return [body for name, body in self.requests if name == endpoint]

    @property
    def endpoints(self) -> list[str]:
        return [name for name, _ in self.requests]

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        name = request.url.path.rsplit("/api/", 1)[-1]
        body = json.loads(request.content or b"{}")
        self.requests.append((name, body))

        route = self.routes.get(name)
        if route is None:
            return httpx.Response(500, json={"error": "no mock"}, request=request)
        if callable(route):
            reply = route(body)
            if inspect.isawaitable(reply):
                reply = await reply
        elif isinstance(route, list):
            reply = route.pop(0) if len(route) > 1 else route[0]
        else:
            reply = route
        if isinstance(reply, Exception):
            raise reply
        status, payload = reply
        if isinstance(payload, (bytes, str)):
            return httpx.Response(status, content=payload, request=request)
        return httpx.Response(status, json=payload, request=request)


def fake_scorer(password: str, user_inputs: Optional[list[str]] = None) -> dict:
    """Stand-in for zxcvbn: one point per four characters, zero if it echoes a user input."""
    score = min(len(password) // 4, 4)
    warning = ""
    if password.lower() in [u.lower() for u in (user_inputs or [])]:
        score, warning = 0, "This is similar to a commonly used password."
    suggestions = ["Add another word or two."] if score < 3 else []
    return {
        "score": score,
        "feedback": {"warning": warning, "suggestions": suggestions},
        "crack_times_display": {CRACK_TIME_KEY: f"{score} days"},
    }


@pytest.fixture()
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def make_app(storage):
    """Factory: make_app(routes) -> (ConsoleApp, RecordingTransport)."""

    def _make(routes: Optional[dict[str, Route]] = None, store: Optional[MemoryStorage] = None):
        transport = RecordingTransport(routes)
        client = httpx.AsyncClient(transport=transport, base_url="http://whawty.test")
        app = ConsoleApp(
            storage=store if store is not None else storage,
            client=client,
            advisor=PasswordAdvisor(scorer=fake_scorer),
        )
        return app, transport

    return _make
