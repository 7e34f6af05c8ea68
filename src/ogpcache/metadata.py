"""Metadata cache.

Keyed by the exact URL the caller asked for. A fresh record is served without
touching the network; otherwise the origin is revalidated. A 304 only moves
the record's expiry forward, anything else rebuilds the record from scratch
(no field of the old record survives) and refreshes its thumbnail.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import urljoin

import structlog

from ogpcache.errors import ExtractionError, ProtocolViolation
from ogpcache.models.cache import MetadataRecord
from ogpcache.models.ogp import Ogp
from ogpcache.revalidation import revalidate
from ogpcache.thumbnails import get_thumbnail

if TYPE_CHECKING:
    from ogpcache.state import AppState


async def get_metadata(url: str, state: AppState) -> MetadataRecord:
    """Return the metadata record for ``url``, refreshing it if stale."""
    log = structlog.get_logger().bind(cache="metadata", url=url)

    stored = await state.store.get_metadata(url)
    if stored is not None and stored.validators.is_fresh():
        log.debug("cache_hit")
        return stored

    log.info("cache_revalidating", stored=stored is not None)
    result = await revalidate(
        url,
        stored.validators if stored is not None else None,
        state.fetcher,
        min_lifetime=state.min_lifetime,
    )

    if result.content is None:
        if stored is None:
            raise ProtocolViolation(
                f"Origin reported {url} unchanged but no entry is stored",
                "Retry the request to fetch the resource unconditionally.",
            )
        record = stored.model_copy(update={"validators": result.validators})
    else:
        document = state.extractor.parse(result.content, result.encoding)
        if not document.url:
            raise ExtractionError(
                f"Page at {url} has no og:url",
                "Only pages that publish Open Graph metadata can be previewed.",
            )
        if not document.image:
            raise ExtractionError(
                f"Page at {url} has no og:image",
                "Only pages that publish an Open Graph image can be previewed.",
            )

        address, _ = await get_thumbnail(urljoin(url, document.image), state)
        record = MetadataRecord(
            origin=url,
            url=urljoin(url, document.url),
            title=document.title,
            type=document.type,
            image=address,
            site_name=document.metadata.get("og:site_name"),
            description=document.metadata.get("og:description"),
            locale=document.metadata.get("og:locale"),
            validators=result.validators,
        )
        log.info("metadata_extracted", canonical_url=record.url, thumbnail=address)

    await state.store.upsert_metadata(record)
    return record


def to_ogp(record: MetadataRecord) -> Ogp:
    """Public view of ``record`` with the thumbnail as a relative link."""
    return Ogp(
        url=record.url,
        title=record.title,
        type=record.type,
        image=f"thumb/{record.image}",
        site_name=record.site_name,
        description=record.description,
        locale=record.locale,
    )
