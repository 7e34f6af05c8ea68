"""Shared test fixtures for the ogpcache test suite."""

from __future__ import annotations

import io
from collections.abc import Callable
from html import escape

import aiosqlite
import httpx
import pytest
from PIL import Image

from ogpcache.codec import ImageCodec
from ogpcache.config import Settings
from ogpcache.extractor import OgpExtractor
from ogpcache.fetcher import Fetcher
from ogpcache.state import AppState
from ogpcache.storage import Store

PAGE_URL = "http://example.com/a"
CANONICAL_URL = "http://example.com/a/canonical"
THUMB_URL = "http://example.com/t.jpg"


def _encode(fmt: str, color: str = "red", size: tuple[int, int] = (8, 6)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, fmt)
    return buf.getvalue()


class FakeRenderer:
    """In-memory RendererProtocol that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, int, str]] = []

    async def render(self, html: str, scale: int, selector: str) -> bytes:
        self.calls.append((html, scale, selector))
        return _encode("PNG", "blue", (60 * scale, 30 * scale))


@pytest.fixture()
def jpeg_bytes() -> bytes:
    return _encode("JPEG")


@pytest.fixture()
def png_bytes() -> bytes:
    return _encode("PNG", "green")


@pytest.fixture()
def page_html() -> Callable[..., str]:
    """Factory for Open Graph tagged pages; pass ``None`` to omit a property."""

    def build(
        url: str | None = CANONICAL_URL,
        image: str | None = THUMB_URL,
        title: str = "Example A",
        description: str | None = "An example page",
        site_name: str | None = "Example",
    ) -> str:
        props = {
            "og:url": url,
            "og:image": image,
            "og:title": title,
            "og:type": "website",
            "og:description": description,
            "og:site_name": site_name,
            "og:locale": "en_US",
        }
        metas = "\n".join(
            f'<meta property="{key}" content="{escape(value)}">'
            for key, value in props.items()
            if value is not None
        )
        return f"<!DOCTYPE html><html><head>{metas}</head><body>hi</body></html>"

    return build


@pytest.fixture()
async def store():
    """In-memory SQLite store."""
    async with aiosqlite.connect(":memory:") as db:
        s = Store(db)
        await s.init_db()
        yield s


@pytest.fixture()
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture()
async def app_state(store: Store, renderer: FakeRenderer):
    """AppState with in-memory storage, a real fetcher (mock it with respx),
    the Pillow codec and a fake renderer."""
    settings = Settings()
    async with httpx.AsyncClient() as client:
        yield AppState(
            settings=settings,
            store=store,
            fetcher=Fetcher(client, settings.fetcher),
            extractor=OgpExtractor(),
            codec=ImageCodec(settings.image),
            renderer=renderer,
            http_client=client,
        )
