import logging
import re
from dataclasses import dataclass
from typing import Optional

import yt_dlp
from yt_dlp.utils import DownloadError, ExtractorError

from instaclip.errors import ClipError, NotFound, RateLimited, Unexpected, UpstreamUnavailable

logger = logging.getLogger(__name__)

YDL_OPTS = {
    'quiet': True,
    'no_warnings': True,
    'skip_download': True,
    'noplaylist': True,
    'format': 'best[ext=mp4]/best',
}


@dataclass
class ResolvedMedia:
    media_url: str
    thumbnail: Optional[str] = None
    title: Optional[str] = None
    duration: Optional[float] = None
    username: Optional[str] = None


def classify_error(error_message: str) -> ClipError:
    error_lower = error_message.lower()

    if '401' in error_lower or 'login required' in error_lower or 'log in' in error_lower:
        return UpstreamUnavailable()
    if '429' in error_lower or 'rate limit' in error_lower or 'rate-limit' in error_lower:
        return RateLimited()
    if (
        '404' in error_lower
        or 'not found' in error_lower
        or 'private' in error_lower
        or 'unavailable' in error_lower
    ):
        return NotFound()
    return Unexpected(
        error="Failed to fetch video",
        message="Unable to retrieve video information. The video may be private or Instagram's "
        "service is temporarily unavailable. Please try again.",
    )


def _pick_media_url(info: dict) -> Optional[str]:
    if info.get('url'):
        return info['url']

    formats = [f for f in info.get('formats') or [] if f.get('url')]
    muxed = [
        f for f in formats
        if f.get('vcodec') not in (None, 'none') and f.get('acodec') not in (None, 'none')
    ]
    if muxed:
        return muxed[-1]['url']
    if formats:
        return formats[-1]['url']
    return None


def resolve(url: str) -> ResolvedMedia:
    """Resolve a public post URL to a direct media URL. Blocking."""
    try:
        with yt_dlp.YoutubeDL(YDL_OPTS) as ydl:
            info = ydl.extract_info(url, download=False)
    except (DownloadError, ExtractorError) as e:
        logger.warning("yt-dlp could not resolve %s: %s", url, e)
        raise classify_error(str(e)) from e

    if info and info.get('entries'):
        info = next((entry for entry in info['entries'] if entry), None)

    media_url = _pick_media_url(info) if info else None
    if not media_url:
        raise NotFound(
            error="Video not found or unavailable",
            message=(
                "Unable to fetch video from the provided URL. "
                "The video might be private or the URL is invalid."
            ),
        )

    return ResolvedMedia(
        media_url=media_url,
        thumbnail=info.get('thumbnail'),
        title=info.get('title'),
        duration=info.get('duration'),
        username=info.get('uploader_id') or info.get('channel'),
    )


def extract_username(url: str) -> Optional[str]:
    # Post, reel and IGTV links carry no username in the path
    if re.search(r'instagram\.com/(?:p|reel|tv)/[^/]+', url):
        return None
    match = re.search(r'instagram\.com/([^/?#]+)', url)
    return match.group(1) if match else None


def determine_video_type(url: str) -> str:
    if '/reel/' in url:
        return 'reel'
    if '/tv/' in url:
        return 'igtv'
    return 'post'
