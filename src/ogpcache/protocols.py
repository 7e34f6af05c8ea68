"""Protocol interfaces for swappable collaborators.

The cache pipeline and AppState reference these protocols, not the concrete
implementations. This allows:
- Tests to use lightweight in-memory renderers and codecs
- Other storage backends (e.g. Postgres) to be swapped without changing
  the pipeline
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Protocol

if TYPE_CHECKING:
    from collections.abc import Mapping
    from contextlib import AbstractAsyncContextManager

    import httpx

    from ogpcache.models.cache import ImageRecord, MetadataRecord
    from ogpcache.models.ogp import OgpDocument

ImageTable = Literal["thumbnails", "cards"]


class StoreProtocol(Protocol):
    """Durable key-value storage for metadata and image records."""

    async def get_metadata(self, origin: str) -> MetadataRecord | None: ...

    async def upsert_metadata(self, record: MetadataRecord) -> bool: ...

    async def get_image(self, table: ImageTable, image_id: str) -> ImageRecord | None: ...

    async def upsert_image(self, table: ImageTable, record: ImageRecord) -> bool: ...


class FetcherProtocol(Protocol):
    """Outbound HTTP; yields the response before its body is read."""

    def send(
        self, url: str, headers: Mapping[str, str] | None = None
    ) -> AbstractAsyncContextManager[httpx.Response]: ...


class ExtractorProtocol(Protocol):
    """Open Graph extraction from raw HTML."""

    def parse(self, html: str | bytes, encoding: str | None = None) -> OgpDocument: ...


class RendererProtocol(Protocol):
    """Headless rasteriser returning a PNG of one DOM element."""

    async def render(self, html: str, scale: int, selector: str) -> bytes: ...


class CodecProtocol(Protocol):
    """Decodes arbitrary image bytes and re-encodes them in the stored format."""

    media_type: str

    def reencode(self, data: bytes) -> bytes: ...
