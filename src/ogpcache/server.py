"""HTTP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState inside the Starlette lifespan
- Map query parameters onto the cache pipeline
- Serialise OgpCacheError into the JSON error envelope
"""

from __future__ import annotations

import logging
import sys
from contextlib import AsyncExitStack, asynccontextmanager
from email.utils import format_datetime
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

import aiosqlite
import structlog
import uvicorn
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.responses import HTMLResponse, JSONResponse, Response
from starlette.routing import Route

from ogpcache import __version__
from ogpcache.cards import get_card, get_embed_html
from ogpcache.codec import ImageCodec
from ogpcache.config import Settings
from ogpcache.errors import ConfigurationError, ErrorCode, OgpCacheError
from ogpcache.extractor import OgpExtractor
from ogpcache.fetcher import Fetcher, build_http_client
from ogpcache.metadata import get_metadata, to_ogp
from ogpcache.models.requests import CardQuery, MetadataQuery
from ogpcache.renderer import Renderer
from ogpcache.state import AppState
from ogpcache.storage import Store
from ogpcache.thumbnails import get_thumbnail_bytes

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

    from pydantic import BaseModel
    from starlette.requests import Request

    from ogpcache.models.cache import ImageRecord

log = structlog.get_logger()

T = TypeVar("T", bound="BaseModel")

CACHE_CONTROL = "public, max-age=3600"

_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.EXTRACTION_FAILED: 422,
    ErrorCode.PROTOCOL_VIOLATION: 502,
    ErrorCode.FETCH_FAILED: 502,
    ErrorCode.ORIGIN_NOT_FOUND: 404,
    ErrorCode.URL_NOT_ALLOWED: 403,
    ErrorCode.CODEC_FAILED: 422,
    ErrorCode.RENDER_FAILED: 502,
    ErrorCode.INVALID_STYLE: 400,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.IMAGE_NOT_FOUND: 404,
    ErrorCode.CACHE_INCONSISTENT: 500,
}


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    if getattr(app.state, "ogp", None) is not None:
        # State injected by the caller (tests); nothing to own.
        yield
        return

    settings = Settings()
    log.info("server_starting", version=__version__)

    # Resources are released in reverse order, also when a later one fails to start.
    async with AsyncExitStack() as stack:
        http_client = await stack.enter_async_context(build_http_client(settings.fetcher))

        db_path = Path(settings.cache.db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await stack.enter_async_context(aiosqlite.connect(str(db_path)))
        store = Store(db)
        await store.init_db()

        renderer = Renderer(settings.renderer)
        stack.push_async_callback(renderer.close)
        await renderer.start()

        app.state.ogp = AppState(
            settings=settings,
            store=store,
            fetcher=Fetcher(http_client, settings.fetcher),
            extractor=OgpExtractor(),
            codec=ImageCodec(settings.image),
            renderer=renderer,
            http_client=http_client,
        )
        log.info("server_started", version=__version__, db_path=str(db_path))

        try:
            yield
        finally:
            app.state.ogp = None
            log.info("server_stopping")


# ---------------------------------------------------------------------------
# Request handling
# ---------------------------------------------------------------------------


def _serialise_error(error: OgpCacheError) -> JSONResponse:
    """Convert an OgpCacheError to the JSON error envelope."""
    return JSONResponse(error.to_dict(), status_code=_STATUS_BY_CODE.get(error.code, 500))


def _parse_query(model: type[T], request: Request) -> T:
    try:
        return model.model_validate(dict(request.query_params))
    except ValidationError as exc:
        raise ConfigurationError(
            str(exc),
            "Provide an absolute http(s) url and valid card options.",
            code=ErrorCode.INVALID_INPUT,
        ) from exc


def _image_response(record: ImageRecord, media_type: str) -> Response:
    headers = {"Cache-Control": CACHE_CONTROL}
    v = record.validators
    if v.etag:
        headers["ETag"] = v.etag if v.etag.startswith("W/") else f"W/{v.etag}"
    if v.last_modified is not None:
        headers["Last-Modified"] = format_datetime(v.last_modified, usegmt=True)
    return Response(record.image, media_type=media_type, headers=headers)


def _endpoint(
    name: str, handler: Callable[[Request, AppState], Awaitable[Response]]
) -> Callable[[Request], Awaitable[Response]]:
    async def endpoint(request: Request) -> Response:
        state: AppState = request.app.state.ogp
        structlog.contextvars.bind_contextvars(endpoint=name)
        try:
            return await handler(request, state)
        except OgpCacheError as exc:
            log.warning(
                "request_error",
                code=exc.code,
                message=exc.message,
                recoverable=exc.recoverable,
            )
            return _serialise_error(exc)
        except Exception:
            log.error("request_unexpected_error", exc_info=True)
            raise
        finally:
            structlog.contextvars.unbind_contextvars("endpoint")

    return endpoint


async def info(request: Request, state: AppState) -> Response:
    """Full metadata record, cache bookkeeping included."""
    query = _parse_query(MetadataQuery, request)
    record = await get_metadata(query.url, state)
    return JSONResponse(record.model_dump(mode="json"), headers={"Cache-Control": CACHE_CONTROL})


async def ogp(request: Request, state: AppState) -> Response:
    query = _parse_query(MetadataQuery, request)
    record = await get_metadata(query.url, state)
    return JSONResponse(
        to_ogp(record).model_dump(mode="json"), headers={"Cache-Control": CACHE_CONTROL}
    )


async def embed(request: Request, state: AppState) -> Response:
    query = _parse_query(MetadataQuery, request)
    html = await get_embed_html(query.url, state)
    return HTMLResponse(html, headers={"Cache-Control": CACHE_CONTROL})


async def thumb(request: Request, state: AppState) -> Response:
    record = await get_thumbnail_bytes(request.path_params["id"], state)
    return _image_response(record, state.codec.media_type)


async def image(request: Request, state: AppState) -> Response:
    query = _parse_query(CardQuery, request)
    _, record = await get_card(query.url, query.style, query.scale, query.css, state)
    return _image_response(record, state.codec.media_type)


def create_app(state: AppState | None = None) -> Starlette:
    """Build the ASGI app. Passing ``state`` skips resource creation."""
    app = Starlette(
        routes=[
            Route("/info", _endpoint("info", info)),
            Route("/ogp", _endpoint("ogp", ogp)),
            Route("/embed", _endpoint("embed", embed)),
            Route("/thumb/{id}", _endpoint("thumb", thumb)),
            Route("/image", _endpoint("image", image)),
        ],
        lifespan=lifespan,
    )
    app.state.ogp = state
    return app


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()
    _setup_logging(settings)

    uvicorn.run(
        create_app(),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )


if __name__ == "__main__":
    main()
