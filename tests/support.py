"""Shared helpers for the relay tests: settings, stub transports and a coroutine runner."""
import asyncio
import json
from urllib.parse import parse_qs, urlsplit

import httpx

from order_relay.config import Settings

BACKEND_URL = "http://backend.test/exec"
SECRET = "test-secret"


def make_settings(**overrides):
    values = dict(backend_url=BACKEND_URL, shared_secret=SECRET, timeout_seconds=2.0)
    values.update(overrides)
    return Settings(**values)


def run(coro):
    return asyncio.run(coro)


def query_of(request: httpx.Request) -> dict:
    return {k: v[0] for k, v in parse_qs(urlsplit(str(request.url)).query).items()}


class RecordingBackend:
    """
    MockTransport handler that answers each action from a table and records calls.

    Table values may be a JSON-able object, an ``httpx.Response`` or a callable
    taking the request and returning either.
    """

    def __init__(self, answers=None):
        self.answers = dict(answers or {})
        self.calls = []

    @staticmethod
    def action_of(request: httpx.Request) -> str:
        if request.method == "POST":
            return json.loads(request.content or b"{}").get("action", "")
        return query_of(request).get("action", "")

    def __call__(self, request: httpx.Request) -> httpx.Response:
        action = self.action_of(request)
        self.calls.append((request.method, action, request))
        if action not in self.answers:
            return httpx.Response(404, text="no such action")
        answer = self.answers[action]
        if callable(answer):
            answer = answer(request)
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, json=answer)

    def actions(self):
        return [action for _, action, _ in self.calls]

    def transport(self):
        return httpx.MockTransport(self)
