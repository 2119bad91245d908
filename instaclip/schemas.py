from typing import Literal, Optional

from pydantic import BaseModel, HttpUrl, validator

ALLOWED_SOURCE_DOMAINS = ['instagram.com']


class FetchVideoRequest(BaseModel):
    url: HttpUrl

    @validator('url')
    def validate_url(cls, v):
        host = (v.host or '').lower()
        if not any(host == domain or host.endswith('.' + domain) for domain in ALLOWED_SOURCE_DOMAINS):
            raise ValueError('URL must be from Instagram (instagram.com)')
        return v


class VideoMetadata(BaseModel):
    url: str
    thumbnail: Optional[str] = None
    title: Optional[str] = None
    username: Optional[str] = None
    downloadUrl: str
    type: Optional[Literal['reel', 'igtv', 'post']] = None
    duration: Optional[float] = None


class ErrorResponse(BaseModel):
    error: str
    message: str
