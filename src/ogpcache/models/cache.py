from __future__ import annotations

from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, model_validator


class ValidatorSet(BaseModel):
    """Revalidation state of one cached entity.

    ``issued_at``/``expires_at`` drive freshness; ``etag``/``last_modified``
    are the tokens replayed to the origin on the next conditional request.
    """

    model_config = ConfigDict(frozen=True)

    issued_at: datetime
    expires_at: datetime
    etag: str | None = None
    last_modified: datetime | None = None

    @model_validator(mode="after")
    def check_window(self) -> ValidatorSet:
        if self.expires_at < self.issued_at:
            raise ValueError("expires_at must not precede issued_at")
        return self

    def is_fresh(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(UTC)) < self.expires_at

    def extended(self, lifetime: timedelta, now: datetime | None = None) -> ValidatorSet:
        """Copy with only ``expires_at`` advanced to ``now + lifetime``."""
        return self.model_copy(update={"expires_at": (now or datetime.now(UTC)) + lifetime})

    def matches(self, other: ValidatorSet) -> bool:
        """True when both sets describe the same origin version."""
        return self.etag == other.etag and self.last_modified == other.last_modified


class MetadataRecord(BaseModel):
    """Open Graph metadata for one requested URL."""

    origin: str  # Exact URL requested by the caller (primary key)
    url: str  # og:url as published by the page
    title: str
    type: str
    image: str  # Content address of the thumbnail record
    site_name: str | None = None
    description: str | None = None
    locale: str | None = None
    validators: ValidatorSet


class ImageRecord(BaseModel):
    """Encoded image bytes; shared shape of thumbnails and rendered cards."""

    id: str  # Content address (primary key)
    url: str  # URL the image was derived from
    image: bytes
    validators: ValidatorSet
