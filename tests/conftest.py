"""Shared fixtures: fake HTTP session and captured sleeps."""

from collections import deque

import pytest
from requests.structures import CaseInsensitiveDict

from ghostcomment.src.models import Annotation
from ghostcomment.utils import retry


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    REASONS = {
        200: "OK", 201: "Created", 400: "Bad Request", 401: "Unauthorized",
        403: "Forbidden", 404: "Not Found", 422: "Unprocessable Entity",
        429: "Too Many Requests", 500: "Internal Server Error", 503: "Service Unavailable",
    }

    def __init__(self, status_code=200, data=None, headers=None):
        self.status_code = status_code
        self.reason = self.REASONS.get(status_code, "")
        self.headers = CaseInsensitiveDict(headers or {})
        self._data = data

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._data is None:
            raise ValueError("No JSON body")
        return self._data


class FakeSession:
    """Records requests and replays queued responses in order."""

    def __init__(self, *responses):
        self.headers = CaseInsensitiveDict()
        self.responses = deque(responses)
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        response = self.responses.popleft()
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def posts(self):
        return [call for call in self.calls if call["method"] == "POST"]


@pytest.fixture
def sleeps(monkeypatch):
    """Capture retry/backoff sleeps instead of waiting."""
    recorded = []
    monkeypatch.setattr(retry.time, "sleep", recorded.append)
    return recorded


def make_annotation(file_path="a.ts", line_number=3, content="remove me", prefix="//_gc_"):
    return Annotation(
        file_path=file_path,
        line_number=line_number,
        content=content,
        prefix=prefix,
        original_line=f"{prefix} {content}"
    )
