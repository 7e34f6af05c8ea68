from __future__ import annotations

from ogpcache.models.cache import ImageRecord, MetadataRecord, ValidatorSet
from ogpcache.models.ogp import Ogp, OgpDocument
from ogpcache.models.requests import CardQuery, MetadataQuery

__all__ = [
    # cache
    "ValidatorSet",
    "MetadataRecord",
    "ImageRecord",
    # ogp
    "OgpDocument",
    "Ogp",
    # requests
    "MetadataQuery",
    "CardQuery",
]
