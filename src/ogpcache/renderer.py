"""Headless Chromium card renderer (Playwright async API).

One browser is launched at startup and shared; each render gets its own
context so the device scale factor can differ per request.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from ogpcache.config import RendererSettings
from ogpcache.errors import RenderFailure

if TYPE_CHECKING:
    from playwright.async_api import Browser, Playwright

log = structlog.get_logger()


class Renderer:
    """Playwright-backed implementation of RendererProtocol."""

    def __init__(self, settings: RendererSettings | None = None) -> None:
        self._settings = settings or RendererSettings()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def start(self) -> None:
        """Launch Chromium. Called once from the lifespan."""
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=True,
            args=self._settings.browser_args,
        )
        log.info("renderer_started", browser_version=self._browser.version)

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def render(self, html: str, scale: int, selector: str) -> bytes:
        """Rasterise ``html`` and return a transparent PNG of ``selector``."""
        if self._browser is None:
            raise RuntimeError("Renderer.start() has not been called")

        context = await self._browser.new_context(device_scale_factor=scale)
        try:
            page = await context.new_page()
            page.set_default_timeout(self._settings.timeout_ms)
            await page.set_content(html, wait_until="load")
            element = await page.query_selector(selector)
            if element is None:
                raise RenderFailure(
                    f"Rendered card has no element matching {selector!r}",
                    "Custom stylesheets must not hide the card element.",
                )
            return await element.screenshot(type="png", omit_background=True)
        except PlaywrightError as exc:
            raise RenderFailure(
                f"Card rendering failed: {exc}",
                "The rendering engine may be overloaded; try again later.",
                recoverable=True,
            ) from exc
        finally:
            await context.close()
