"""Shared fixtures: a fake aiohttp session so fetch tests never touch the network."""

import os
import shutil
import tempfile

import pytest
from multidict import CIMultiDict


class FakeContent:
    def __init__(self, chunks):
        self._chunks = chunks
        self.read_calls = 0

    async def iter_chunked(self, n):
        for chunk in self._chunks:
            self.read_calls += 1
            yield chunk


class FakeResponse:
    def __init__(self, body=b"", status=200, reason="OK", headers=None, url="https://example.com/x", history=()):
        if isinstance(body, str):
            body = body.encode("utf-8")
        chunks = body if isinstance(body, list) else ([body] if body else [])
        self.status = status
        self.reason = reason
        self.headers = CIMultiDict(headers or {})
        self.url = url
        self.history = tuple(history)
        self.content = FakeContent(chunks)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, response=None):
        self.response = response
        self.requested = []
        self.closed = False

    def get(self, url, **kwargs):
        self.requested.append(url)
        if self.response is None:
            raise AssertionError(f"unexpected request to {url}")
        return self.response

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True
        return False


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def stub_client_session(monkeypatch):
    """Replace aiohttp.ClientSession with a FakeSession serving one response."""
    import aiohttp

    def install(response):
        session = FakeSession(response)
        monkeypatch.setattr(aiohttp, "ClientSession", lambda *args, **kwargs: session)
        return session

    return install


@pytest.fixture
def sandbox_dir():
    """A sandbox directory inside the OS temp dir, like agent workspaces in tests."""
    path = tempfile.mkdtemp(prefix="sandbox-media-", dir=tempfile.gettempdir())
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def isolated_roots(tmp_path, monkeypatch):
    """
    Separate temp root, sandbox and outside directories.

    tempfile.tempdir is pointed at a private directory so "outside" really
    lies outside every trusted root.
    """
    temp_root = tmp_path / "tmproot"
    sandbox = tmp_path / "sandbox"
    outside = tmp_path / "outside"
    for d in (temp_root, sandbox, outside):
        d.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(temp_root))
    return {"temp": str(temp_root), "sandbox": str(sandbox), "outside": str(outside)}


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Each test starts from default settings, ignoring any local .env."""
    from media_gate.helpers import media_settings

    for key in list(os.environ):
        if key.startswith(media_settings.ENV_PREFIX):
            monkeypatch.delenv(key)
    monkeypatch.setattr(media_settings, "_settings", None)
    monkeypatch.setattr(media_settings, "_dotenv_loaded", True)
