"""Thumbnail cache.

Thumbnails are keyed by a content address of their origin URL and refreshed
with the same conditional-request cycle as page metadata. The fetched payload
is decoded and re-encoded by the codec before it is stored.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from ogpcache.addressing import thumbnail_address
from ogpcache.errors import NotFound, ProtocolViolation
from ogpcache.models.cache import ImageRecord
from ogpcache.revalidation import revalidate

if TYPE_CHECKING:
    from ogpcache.state import AppState


async def get_thumbnail(origin_url: str, state: AppState) -> tuple[str, ImageRecord]:
    """Return ``(address, record)`` for the thumbnail at ``origin_url``."""
    address = thumbnail_address(origin_url)
    log = structlog.get_logger().bind(cache="thumbnails", url=origin_url, address=address)

    stored = await state.store.get_image("thumbnails", address)
    if stored is not None and stored.validators.is_fresh():
        log.debug("cache_hit")
        return address, stored

    log.info("cache_revalidating", stored=stored is not None)
    result = await revalidate(
        origin_url,
        stored.validators if stored is not None else None,
        state.fetcher,
        min_lifetime=state.min_lifetime,
    )

    if result.content is None:
        if stored is None:
            raise ProtocolViolation(
                f"Origin reported {origin_url} unchanged but no entry is stored",
                "Retry the request to fetch the resource unconditionally.",
            )
        record = stored.model_copy(update={"validators": result.validators})
    else:
        image = await asyncio.to_thread(state.codec.reencode, result.content)
        record = ImageRecord(
            id=address,
            url=origin_url,
            image=image,
            validators=result.validators,
        )
        log.info("thumbnail_encoded", source_length=len(result.content), length=len(image))

    await state.store.upsert_image("thumbnails", record)
    return address, record


async def get_thumbnail_bytes(address: str, state: AppState) -> ImageRecord:
    """Pass-through read of a stored thumbnail. No freshness check, no fetch."""
    record = await state.store.get_image("thumbnails", address)
    if record is None:
        raise NotFound(
            f"No thumbnail stored at {address}",
            "Thumbnail addresses come from the image field of a metadata response.",
        )
    return record
