"""
Streams a tokenized CDN URL back to the client as a file download.

The proxy only ever fetches hosts on the Instagram/Facebook CDN allow-list,
so a token cannot be turned into an open proxy for arbitrary URLs.
"""

import logging
import re
from typing import AsyncIterator, Optional
from urllib.parse import urlsplit

import httpx
from fastapi.responses import Response, StreamingResponse

from instaclip.config import DEFAULT_CONTENT_TYPE, DOWNLOAD_FILENAME
from instaclip.errors import (
    ForbiddenSource,
    InvalidOrExpiredToken,
    MissingToken,
    Unexpected,
    UpstreamFailure,
)
from instaclip.token_store import TokenStore

logger = logging.getLogger(__name__)

ALLOWED_EXACT_HOSTS = {"cdninstagram.com", "scontent.cdninstagram.com"}
ALLOWED_HOST_PATTERNS = [
    re.compile(r"^[a-z0-9-]+\.cdninstagram\.com$"),
    re.compile(r"^scontent[a-z0-9-]*\.fbcdn\.net$"),
    re.compile(r"^instagram\.[a-z]{2,}[a-z0-9-]*\.fna\.fbcdn\.net$"),
]


def is_allowed_media_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return False

    if parts.scheme != "https" or not hostname:
        return False

    if hostname in ALLOWED_EXACT_HOSTS:
        return True
    return any(pattern.match(hostname) for pattern in ALLOWED_HOST_PATTERNS)


class DownloadProxy:
    def __init__(self, token_store: TokenStore, http_client: httpx.AsyncClient):
        self.token_store = token_store
        self.http_client = http_client

    async def handle_download(self, token: Optional[str]) -> Response:
        if not token:
            raise MissingToken()

        video_url = self.token_store.get(token)
        if not video_url:
            raise InvalidOrExpiredToken()

        if not is_allowed_media_url(video_url):
            logger.warning("Rejected download token pointing at disallowed URL %s", video_url)
            self.token_store.delete(token)
            raise ForbiddenSource()

        upstream = await self._open(video_url)

        if not upstream.is_success:
            status = upstream.status_code
            await upstream.aclose()
            logger.warning("Upstream returned %s for %s", status, video_url)
            raise UpstreamFailure(status_code=status)

        headers = {
            "Content-Disposition": f'attachment; filename="{DOWNLOAD_FILENAME}"',
            "Access-Control-Allow-Origin": "*",
        }
        media_type = upstream.headers.get("content-type") or DEFAULT_CONTENT_TYPE

        if upstream.is_stream_consumed:
            # Body was already read (e.g. by a response hook); send it whole
            await upstream.aclose()
            return Response(content=upstream.content, media_type=media_type, headers=headers)

        content_length = upstream.headers.get("content-length")
        if content_length:
            headers["Content-Length"] = content_length

        # Nothing is committed to the client until the first chunk is in hand
        chunks = upstream.aiter_raw()
        try:
            first_chunk = await chunks.__anext__()
        except StopAsyncIteration:
            first_chunk = b""
        except httpx.HTTPError as exc:
            await upstream.aclose()
            logger.error("Upstream stream from %s failed before any bytes: %s", video_url, exc)
            raise Unexpected() from exc

        return StreamingResponse(
            self.iter_body(upstream, chunks, first_chunk), media_type=media_type, headers=headers
        )

    async def _open(self, video_url: str) -> httpx.Response:
        request = self.http_client.build_request(
            "GET", video_url, headers={"Accept-Encoding": "identity"}
        )
        try:
            return await self.http_client.send(request, stream=True)
        except httpx.HTTPError as exc:
            logger.error("Failed to fetch %s: %s", video_url, exc)
            raise Unexpected() from exc

    async def iter_body(
        self, upstream: httpx.Response, chunks: AsyncIterator[bytes], first_chunk: bytes
    ) -> AsyncIterator[bytes]:
        """Yield upstream bytes unmodified, one chunk at a time.

        Headers are already committed once the first chunk goes out, so a
        failure mid-stream can only abort the connection. The upstream response
        is closed on every exit path, including client disconnects.
        """
        sent = 0
        try:
            if first_chunk:
                yield first_chunk
                sent += len(first_chunk)
            async for chunk in chunks:
                yield chunk
                sent += len(chunk)
        except httpx.HTTPError as exc:
            logger.warning(
                "Upstream stream from %s broke after %d bytes: %s", upstream.url, sent, exc
            )
            raise
        finally:
            await upstream.aclose()
