"""Application state container.

AppState is created once at server startup (inside the Starlette lifespan
context manager) and handed to every pipeline call. It is the only shared
state: there are no module-level caches.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from ogpcache.config import Settings
    from ogpcache.protocols import (
        CodecProtocol,
        ExtractorProtocol,
        FetcherProtocol,
        RendererProtocol,
        StoreProtocol,
    )


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every pipeline call."""

    settings: Settings
    store: StoreProtocol
    fetcher: FetcherProtocol
    extractor: ExtractorProtocol
    codec: CodecProtocol
    renderer: RendererProtocol | None = None
    http_client: httpx.AsyncClient | None = None

    @property
    def min_lifetime(self) -> timedelta:
        return timedelta(seconds=self.settings.cache.min_freshness_seconds)
