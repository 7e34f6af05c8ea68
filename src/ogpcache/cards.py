"""Rendered card cache.

A card has no origin of its own: it is derived from a metadata record and its
thumbnail, so it is only reusable while it was rendered from the metadata
version that is current now. Stored cards carry the metadata's validators
verbatim, and a lookup compares them against the metadata record on every
request in addition to checking the card's own expiry.
"""

from __future__ import annotations

import asyncio
import base64
from typing import TYPE_CHECKING

import structlog

from ogpcache.addressing import card_address
from ogpcache.errors import CacheInconsistency, ConfigurationError, ErrorCode
from ogpcache.metadata import get_metadata
from ogpcache.models.cache import ImageRecord
from ogpcache.templates import CardStyle, parse_style, render_card_html

if TYPE_CHECKING:
    from ogpcache.models.cache import MetadataRecord
    from ogpcache.state import AppState


def _validate_options(
    style: str, scale: int, custom_css: str | None, state: AppState
) -> CardStyle:
    card_style = parse_style(style)
    max_scale = state.settings.renderer.max_scale
    if not 1 <= scale <= max_scale:
        raise ConfigurationError(
            f"Scale must be between 1 and {max_scale}, got {scale}",
            "Use an integer device-pixel ratio such as 1 or 2.",
            code=ErrorCode.INVALID_INPUT,
        )
    if card_style is CardStyle.CUSTOM and not custom_css:
        raise ConfigurationError(
            "The Custom style requires a stylesheet URL",
            "Pass the stylesheet with the css parameter.",
            code=ErrorCode.INVALID_INPUT,
        )
    return card_style


def is_reusable(card: ImageRecord | None, metadata: MetadataRecord) -> bool:
    """True when ``card`` is unexpired and rendered from the current metadata."""
    return (
        card is not None
        and card.validators.is_fresh()
        and card.validators.matches(metadata.validators)
    )


async def get_card(
    url: str,
    style: str,
    scale: int,
    custom_css: str | None,
    state: AppState,
) -> tuple[str, ImageRecord]:
    """Return ``(address, record)`` of the preview card for ``url``."""
    card_style = _validate_options(style, scale, custom_css, state)

    metadata = await get_metadata(url, state)
    address = card_address(metadata.url, card_style.value, scale, custom_css)
    log = structlog.get_logger().bind(cache="cards", url=url, address=address)

    stored = await state.store.get_image("cards", address)
    if stored is not None and is_reusable(stored, metadata):
        log.debug("cache_hit")
        return address, stored

    if stored is not None:
        log.info("card_outdated", expired=not stored.validators.is_fresh())

    thumbnail = await state.store.get_image("thumbnails", metadata.image)
    if thumbnail is None:
        raise CacheInconsistency(
            f"Thumbnail {metadata.image} referenced by {url} is not stored",
            "Retry once the metadata entry has been refreshed.",
            recoverable=True,
        )

    if state.renderer is None:
        raise RuntimeError("Renderer not initialized")

    data_uri = (
        f"data:{state.codec.media_type};base64,{base64.b64encode(thumbnail.image).decode('ascii')}"
    )
    html = render_card_html(metadata, data_uri, card_style, custom_css)
    png = await state.renderer.render(html, scale, state.settings.renderer.card_selector)
    image = await asyncio.to_thread(state.codec.reencode, png)

    record = ImageRecord(
        id=address,
        url=url,
        image=image,
        validators=metadata.validators,
    )
    log.info("card_rendered", style=card_style.value, scale=scale, length=len(image))
    await state.store.upsert_image("cards", record)
    return address, record


async def get_embed_html(url: str, state: AppState) -> str:
    """Embeddable HTML card that links the stored thumbnail instead of inlining it."""
    metadata = await get_metadata(url, state)
    return render_card_html(metadata, f"../thumb/{metadata.image}")
