from __future__ import annotations

import logging
import os
import threading
from unittest.mock import MagicMock

import pytest
import requests

from csaf_retrieval.loader import CsafLoader
from csaf_retrieval.utils.http import RetryPolicy


class FakeSession:
    """
    Stands in for requests.Session: serves canned responses keyed by URL and records every GET.

    A route is one of:
      - (status, body) tuple
      - an Exception instance, raised from get()
      - a list of the above, consumed one per request (the last entry repeats)
    Unknown URLs answer 404.
    """

    def __init__(self):
        self.routes: dict[str, object] = {}
        self.calls: list[str] = []
        self.headers: list[dict] = []
        self._lock = threading.Lock()

    def add(self, url: str, body: str | bytes = b"", status: int = 200) -> FakeSession:
        self.routes[url] = (status, body)
        return self

    def add_file(self, url: str, path: str) -> FakeSession:
        with open(path, "rb") as f:
            return self.add(url, f.read())

    def add_error(self, url: str, error: Exception) -> FakeSession:
        self.routes[url] = error
        return self

    def add_sequence(self, url: str, *routes: object) -> FakeSession:
        self.routes[url] = list(routes)
        return self

    def count(self, url: str) -> int:
        return self.calls.count(url)

    def get(self, url: str, timeout: int | None = None, headers: dict | None = None, **kwargs) -> requests.Response:
        with self._lock:
            self.calls.append(url)
            self.headers.append(dict(headers or {}))
            route = self.routes.get(url, (404, b"not found"))
            if isinstance(route, list):
                route = route.pop(0) if len(route) > 1 else route[0]

        if isinstance(route, Exception):
            raise route

        status, body = route
        response = requests.Response()
        response.status_code = status
        response._content = body.encode("utf-8") if isinstance(body, str) else body
        response.encoding = "utf-8"
        response.url = url
        response.request = requests.Request("GET", url, headers=headers).prepare()
        return response


class Helpers:
    def __init__(self, request, tmpdir):
        # current information about the running test
        # docs: https://docs.pytest.org/en/6.2.x/reference.html#std-fixture-request
        self.request = request
        self.tmpdir = tmpdir

    def local_dir(self, path: str):
        """
        Returns the path of a file relative to the current test file.

        Given the following setup:

            tests/unit/
            ├── test-fixtures
            │   └── example.com
            │       └── provider-metadata.json
            └── test_provider.py

        The call `local_dir("test-fixtures/example.com/provider-metadata.json")` will return the
        absolute path to the fixture relative to test_provider.py
        """
        current_test_filepath = os.path.realpath(self.request.module.__file__)
        parent = os.path.realpath(os.path.dirname(current_test_filepath))
        return os.path.join(parent, path)

    def read(self, path: str) -> str:
        with open(self.local_dir(path), encoding="utf-8") as f:
            return f.read()


@pytest.fixture
def helpers(request, tmpdir):
    """
    Returns a common set of helper functions for tests.
    """
    return Helpers(request, tmpdir)


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def loader(fake_session):
    # no retries so that unexpected 5xx responses fail fast instead of sleeping
    return CsafLoader(session=fake_session, retry_policy=RetryPolicy(max_retries=0))


@pytest.fixture
def mock_logger():
    logger = logging.getLogger("test-csaf-retrieval")
    return MagicMock(logger, autospec=True)


@pytest.fixture
def disable_get_requests(monkeypatch):
    def disabled(*args, **kwargs):
        raise RuntimeError("requests disabled but HTTP GET attempted")

    monkeypatch.setattr(requests, "get", disabled)
    monkeypatch.setattr(requests.Session, "get", disabled)
