# File: app.py

import asyncio
import logging
import traceback
from contextlib import asynccontextmanager
from typing import Callable, Optional

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from instaclip import config
from instaclip.download_proxy import DownloadProxy
from instaclip.errors import ClipError, InvalidInput, Unexpected
from instaclip.logging_utils import configure_logging
from instaclip.resolver import ResolvedMedia, determine_video_type, extract_username, resolve
from instaclip.schemas import ErrorResponse, FetchVideoRequest, VideoMetadata
from instaclip.token_store import TokenStore, new_token

logger = logging.getLogger(__name__)

Resolver = Callable[[str], ResolvedMedia]

ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (400, 403, 404, 429, 500, 503)
}


def create_app(
    token_store: Optional[TokenStore] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    resolver: Optional[Resolver] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_client = app.state.http_client is None
        if owns_client:
            app.state.http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(config.UPSTREAM_TIMEOUT_SECONDS),
                follow_redirects=True,
            )
        app.state.token_store.start()
        try:
            yield
        finally:
            await app.state.token_store.stop()
            if owns_client:
                await app.state.http_client.aclose()
                app.state.http_client = None

    app = FastAPI(title="Instaclip API", lifespan=lifespan)
    app.state.token_store = token_store if token_store is not None else TokenStore()
    app.state.http_client = http_client
    app.state.resolver = resolver or resolve

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ClipError)
    async def clip_error_handler(request: Request, exc: ClipError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info("Rejected request to %s: %s", request.url.path, exc.errors())
        error = InvalidInput()
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}:\n{traceback.format_exc()}"
        )
        error = Unexpected("An unexpected error occurred. Please try again.", error="Internal server error")
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    _register_routes(app)
    return app


def get_token_store(request: Request) -> TokenStore:
    return request.app.state.token_store


def get_resolver(request: Request) -> Resolver:
    return request.app.state.resolver


def get_download_proxy(
    request: Request, token_store: TokenStore = Depends(get_token_store)
) -> DownloadProxy:
    return DownloadProxy(token_store, request.app.state.http_client)


def _register_routes(app: FastAPI) -> None:
    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.post(
        "/fetch-video",
        response_model=VideoMetadata,
        response_model_exclude_none=True,
        responses=ERROR_RESPONSES,
    )
    async def fetch_video(
        payload: FetchVideoRequest,
        token_store: TokenStore = Depends(get_token_store),
        resolver: Resolver = Depends(get_resolver),
    ):
        url = str(payload.url)
        media = await asyncio.to_thread(resolver, url)

        token = new_token()
        token_store.put(token, media.media_url)
        logger.info("Issued download token for %s", url)

        return VideoMetadata(
            url=url,
            thumbnail=media.thumbnail,
            title=media.title,
            username=extract_username(url) or media.username,
            downloadUrl=f"/download-video?token={token}",
            type=determine_video_type(url),
            duration=media.duration,
        )

    @app.get("/download-video", responses=ERROR_RESPONSES)
    async def download_video(
        token: Optional[str] = None,
        proxy: DownloadProxy = Depends(get_download_proxy),
    ):
        return await proxy.handle_download(token)


app = create_app()


def run_server():
    import uvicorn

    configure_logging(debug=config.DEBUG_MODE)
    logger.info("Starting server on http://%s:%s", config.HOST, config.PORT)
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_config=None)


if __name__ == "__main__":
    run_server()
