import pytest
from yt_dlp.utils import DownloadError

from instaclip import resolver
from instaclip.errors import NotFound, RateLimited, Unexpected, UpstreamUnavailable
from instaclip.resolver import classify_error, determine_video_type, extract_username, resolve


class FakeYoutubeDL:
    info = None
    error = None
    instances = []

    def __init__(self, opts):
        self.opts = opts
        self.calls = []
        FakeYoutubeDL.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def extract_info(self, url, download=True):
        self.calls.append((url, download))
        if self.error is not None:
            raise self.error
        return self.info


@pytest.fixture
def fake_ydl(monkeypatch):
    FakeYoutubeDL.info = None
    FakeYoutubeDL.error = None
    FakeYoutubeDL.instances = []
    monkeypatch.setattr(resolver.yt_dlp, 'YoutubeDL', FakeYoutubeDL)
    return FakeYoutubeDL


def test_resolve_uses_direct_url_without_downloading(fake_ydl):
    fake_ydl.info = {
        'url': 'https://scontent.cdninstagram.com/v/clip.mp4',
        'thumbnail': 'https://scontent.cdninstagram.com/v/thumb.jpg',
        'title': 'Video by someone',
        'duration': 9.2,
        'uploader_id': 'someone',
    }

    media = resolve('https://www.instagram.com/reel/abc/')

    assert media.media_url == 'https://scontent.cdninstagram.com/v/clip.mp4'
    assert media.thumbnail == 'https://scontent.cdninstagram.com/v/thumb.jpg'
    assert media.title == 'Video by someone'
    assert media.duration == 9.2
    assert media.username == 'someone'
    ydl = fake_ydl.instances[-1]
    assert ydl.calls == [('https://www.instagram.com/reel/abc/', False)]
    assert ydl.opts['skip_download'] is True


def test_resolve_prefers_muxed_format(fake_ydl):
    fake_ydl.info = {
        'formats': [
            {'url': 'https://scontent.cdninstagram.com/v/audio.m4a', 'vcodec': 'none', 'acodec': 'mp4a'},
            {'url': 'https://scontent.cdninstagram.com/v/muxed.mp4', 'vcodec': 'avc1', 'acodec': 'mp4a'},
            {'url': 'https://scontent.cdninstagram.com/v/video.mp4', 'vcodec': 'avc1', 'acodec': 'none'},
        ],
    }

    assert resolve('https://www.instagram.com/p/abc/').media_url == 'https://scontent.cdninstagram.com/v/muxed.mp4'


def test_resolve_takes_first_playlist_entry(fake_ydl):
    fake_ydl.info = {
        'entries': [
            None,
            {'url': 'https://scontent.cdninstagram.com/v/first.mp4', 'title': 'first'},
            {'url': 'https://scontent.cdninstagram.com/v/second.mp4', 'title': 'second'},
        ],
    }

    media = resolve('https://www.instagram.com/p/carousel/')

    assert media.media_url == 'https://scontent.cdninstagram.com/v/first.mp4'
    assert media.title == 'first'


@pytest.mark.parametrize('info', [None, {}, {'formats': []}, {'entries': [None]}])
def test_resolve_without_media_is_not_found(fake_ydl, info):
    fake_ydl.info = info

    with pytest.raises(NotFound) as excinfo:
        resolve('https://www.instagram.com/p/abc/')

    assert excinfo.value.error == 'Video not found or unavailable'


@pytest.mark.parametrize(
    'message, expected',
    [
        ('ERROR: [Instagram] abc: HTTP Error 401: Unauthorized', UpstreamUnavailable),
        ('ERROR: [Instagram] abc: Requested content is not available, login required', UpstreamUnavailable),
        ('ERROR: [Instagram] abc: HTTP Error 429: Too Many Requests', RateLimited),
        ('ERROR: [Instagram] abc: rate limit reached', RateLimited),
        ('ERROR: [Instagram] abc: HTTP Error 404: Not Found', NotFound),
        ('ERROR: [Instagram] abc: This content is private', NotFound),
        ('ERROR: [Instagram] abc: Something odd happened', Unexpected),
    ],
)
def test_resolve_classifies_download_errors(fake_ydl, message, expected):
    fake_ydl.error = DownloadError(message)

    with pytest.raises(expected):
        resolve('https://www.instagram.com/p/abc/')


def test_unclassified_error_keeps_message_generic():
    error = classify_error('Traceback: KeyError in extractor internals')
    assert isinstance(error, Unexpected)
    assert error.status_code == 500
    assert error.error == 'Failed to fetch video'
    assert 'KeyError' not in error.message


@pytest.mark.parametrize(
    'url, username',
    [
        ('https://www.instagram.com/reel/abc123/', None),
        ('https://www.instagram.com/p/abc123/', None),
        ('https://www.instagram.com/tv/abc123/', None),
        ('https://www.instagram.com/natgeo/', 'natgeo'),
        ('https://instagram.com/natgeo?igsh=xyz', 'natgeo'),
    ],
)
def test_extract_username(url, username):
    assert extract_username(url) == username


@pytest.mark.parametrize(
    'url, video_type',
    [
        ('https://www.instagram.com/reel/abc/', 'reel'),
        ('https://www.instagram.com/tv/abc/', 'igtv'),
        ('https://www.instagram.com/p/abc/', 'post'),
    ],
)
def test_determine_video_type(url, video_type):
    assert determine_video_type(url) == video_type
