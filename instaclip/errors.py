"""
Error taxonomy for the API.

Every error a client can see is a ClipError subclass carrying the HTTP status,
a short machine-readable label and a message safe to show to the user.
"""

from typing import Optional


class ClipError(Exception):
    status_code = 500
    error = "Unexpected error"
    message = "Something went wrong. Please try again."

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
    ):
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error is not None:
            self.error = error
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.error, "message": self.message}


class InvalidInput(ClipError):
    status_code = 400
    error = "Invalid URL"
    message = "Please provide a valid Instagram URL"


class NotFound(ClipError):
    status_code = 404
    error = "Video not found"
    message = "The video could not be found. It may be private, deleted, or the URL may be incorrect."


class RateLimited(ClipError):
    status_code = 429
    error = "Too many requests"
    message = "Instagram rate limit reached. Please wait a few minutes and try again."


class UpstreamUnavailable(ClipError):
    status_code = 503
    error = "Service temporarily unavailable"
    message = (
        "Instagram is currently blocking video downloads. "
        "Please try again later or use a different video URL."
    )


class MissingToken(ClipError):
    status_code = 400
    error = "Missing token"
    message = "Download token is required"


class InvalidOrExpiredToken(ClipError):
    status_code = 404
    error = "Invalid token"
    message = "Download token is invalid or expired"


class ForbiddenSource(ClipError):
    status_code = 403
    error = "Invalid source"
    message = "Download URL validation failed"


class UpstreamFailure(ClipError):
    status_code = 502
    error = "Download failed"
    message = "Unable to download video from the source"


class Unexpected(ClipError):
    status_code = 500
    error = "Download failed"
    message = "An error occurred while downloading the video"
