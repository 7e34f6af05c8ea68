"""Deterministic content addresses for derived artifacts.

An address is a name-based UUID chain: the seed is folded with each part in
turn through UUIDv5, so the result depends on every part and on their order.
Each artifact class has its own seed, so thumbnails and cards never share a
key even for identical parts.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

THUMBNAIL_SEED = uuid.UUID("77a05c22-df4c-450a-927d-3df3ccb80004")
CARD_SEED = uuid.UUID("95dde42a-79e7-46c6-a9dc-25c8ed7cff73")


def derive(seed: uuid.UUID, parts: Sequence[str]) -> str:
    """Return the content address for ``parts`` under ``seed``."""
    current = seed
    for part in parts:
        current = uuid.uuid5(current, part)
    return str(current)


def thumbnail_address(origin_url: str) -> str:
    return derive(THUMBNAIL_SEED, [origin_url])


def card_address(url: str, style: str, scale: int, custom_css: str | None = None) -> str:
    parts = [url, style, str(scale)]
    if custom_css is not None:
        parts.append(custom_css)
    return derive(CARD_SEED, parts)
