"""Tests for the RubyGems compact index client."""

import asyncio

import pytest

aiohttp_mod = pytest.importorskip("aiohttp")

from constants import Constants
from registry.base import PackageNotFound, RegistryUnavailable
from registry.rubygems.client import RubyGemsClient


class _DummyResponse:
    def __init__(self, status, body=""):
        self.status = status
        self._body = body

    async def text(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _DummySession:
    """Replays a scripted list of responses or exceptions."""

    def __init__(self, script):
        self.script = list(script)
        self.urls = []

    def get(self, url, headers=None):
        self.urls.append(url)
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self):
        pass


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch):
    monkeypatch.setattr(Constants, "HTTP_RETRY_BASE_DELAY_SEC", 0)
    monkeypatch.setattr(Constants, "HTTP_RETRY_MAX", 3)


class TestRubyGemsClient:
    """Fetching and decoding /info documents."""

    def test_info_url(self):
        """The gem name is appended to the info path and quoted."""
        client = RubyGemsClient(base_url="https://gems.example.com/")
        assert client.info_url("rack") == "https://gems.example.com/info/rack"
        assert client.base_url == "https://gems.example.com"

    def test_fetch_versions_decodes_document(self):
        """A 200 response is decoded newest first."""
        session = _DummySession([_DummyResponse(200, "---\n2.2.8 |checksum:a\n3.0.8 |checksum:b\n")])
        client = RubyGemsClient(session=session)

        versions = asyncio.run(client.fetch_versions("rack"))

        assert [str(v.version) for v in versions] == ["3.0.8", "2.2.8"]
        assert session.urls == ["https://rubygems.org/info/rack"]

    def test_not_found(self):
        """404 maps to PackageNotFound without retrying."""
        session = _DummySession([_DummyResponse(404)])
        client = RubyGemsClient(session=session)

        with pytest.raises(PackageNotFound) as exc:
            asyncio.run(client.fetch_versions("nope"))
        assert exc.value.package == "nope"
        assert len(session.urls) == 1

    def test_retries_server_errors_then_succeeds(self):
        """5xx responses are retried."""
        session = _DummySession([_DummyResponse(503), _DummyResponse(502), _DummyResponse(200, "---\n1.0 |\n")])
        client = RubyGemsClient(session=session)

        versions = asyncio.run(client.fetch_versions("rack"))

        assert len(versions) == 1
        assert len(session.urls) == 3

    def test_exhausted_retries_raise_unavailable(self):
        """Persistent failures surface as RegistryUnavailable."""
        session = _DummySession([
            aiohttp_mod.ClientConnectionError("reset"),
            asyncio.TimeoutError(),
            _DummyResponse(500),
        ])
        client = RubyGemsClient(session=session)

        with pytest.raises(RegistryUnavailable) as exc:
            asyncio.run(client.fetch_versions("rack"))
        assert "HTTP 500" in str(exc.value)
        assert len(session.urls) == 3

    def test_client_error_status_not_retried(self):
        """A 403 is final."""
        session = _DummySession([_DummyResponse(403)])
        client = RubyGemsClient(session=session)

        with pytest.raises(RegistryUnavailable):
            asyncio.run(client.fetch_versions("rack"))
        assert len(session.urls) == 1

    def test_close_keeps_foreign_session(self):
        """A session passed in by the caller is not closed by the client."""
        closed = []

        class _Session(_DummySession):
            async def close(self):
                closed.append(True)

        client = RubyGemsClient(session=_Session([]))
        asyncio.run(client.close())
        assert closed == []
