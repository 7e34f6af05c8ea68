from __future__ import annotations

from pydantic import BaseModel, Field


class OgpDocument(BaseModel):
    """Open Graph fields parsed from an HTML page, before validation."""

    url: str | None = None
    title: str = ""
    type: str = ""
    image: str | None = None
    # Every og:* property found, first value wins: {"og:site_name": "Example"}
    metadata: dict[str, str] = Field(default_factory=dict)


class Ogp(BaseModel):
    """Public view of a metadata record, without cache bookkeeping."""

    url: str
    title: str
    type: str
    image: str  # Relative link to the thumbnail: "thumb/<address>"
    site_name: str | None = None
    description: str | None = None
    locale: str | None = None
