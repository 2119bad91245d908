import httpx
import pytest
from fastapi.testclient import TestClient

from app import create_app
from instaclip.resolver import ResolvedMedia
from instaclip.token_store import TokenStore


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeResolver:
    def __init__(self, media=None, error=None):
        self.media = media or ResolvedMedia(
            media_url="https://scontent.cdninstagram.com/v/clip.mp4",
            thumbnail="https://scontent.cdninstagram.com/v/thumb.jpg",
            title="Sunset reel",
            duration=12.5,
        )
        self.error = error
        self.calls = []

    def __call__(self, url):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.media


class UpstreamRecorder:
    """MockTransport handler that records requests and serves canned responses."""

    def __init__(self, respond=None):
        self.requests = []
        self.respond = respond or (
            lambda request: httpx.Response(
                200, headers={"content-type": "video/mp4"}, content=b"fake-mp4-bytes"
            )
        )

    def __call__(self, request):
        self.requests.append(request)
        return self.respond(request)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return TokenStore(clock=clock)


@pytest.fixture
def upstream():
    return UpstreamRecorder()


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def client(store, upstream, resolver):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    app = create_app(token_store=store, http_client=http_client, resolver=resolver)
    return TestClient(app)


class DeadStream(httpx.AsyncByteStream):
    """Upstream body that fails before delivering a single byte."""

    def __init__(self):
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        raise httpx.ReadError("connection reset by peer")

    async def aclose(self):
        self.closed = True
