from __future__ import annotations

from pydantic import BaseModel, field_validator


def _check_url(v: str) -> str:
    v = v.strip()
    if not v.startswith(("http://", "https://")):
        raise ValueError("url must be an absolute http or https URL")
    if len(v) > 2048:
        raise ValueError("url must not exceed 2048 characters")
    return v


class MetadataQuery(BaseModel):
    url: str

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _check_url(v)


class CardQuery(BaseModel):
    url: str
    style: str = "Landscape"
    scale: int = 1
    css: str | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _check_url(v)

    @field_validator("css")
    @classmethod
    def validate_css(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return _check_url(v)
