from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    PROTOCOL_VIOLATION = "PROTOCOL_VIOLATION"
    FETCH_FAILED = "FETCH_FAILED"
    ORIGIN_NOT_FOUND = "ORIGIN_NOT_FOUND"
    URL_NOT_ALLOWED = "URL_NOT_ALLOWED"
    CODEC_FAILED = "CODEC_FAILED"
    RENDER_FAILED = "RENDER_FAILED"
    INVALID_STYLE = "INVALID_STYLE"
    INVALID_INPUT = "INVALID_INPUT"
    IMAGE_NOT_FOUND = "IMAGE_NOT_FOUND"
    CACHE_INCONSISTENT = "CACHE_INCONSISTENT"


class OgpCacheError(Exception):
    """Base class for every expected failure of a single request.

    Caught by server.py and serialised into the JSON error envelope.
    Never catch this inside the pipeline. A failure aborts the request
    before anything is written, and the next request retries from scratch.
    """

    default_code: ErrorCode = ErrorCode.FETCH_FAILED

    def __init__(
        self,
        message: str,
        suggestion: str = "",
        *,
        code: ErrorCode | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }


class ExtractionError(OgpCacheError):
    """The page lacks the Open Graph fields needed to build a preview."""

    default_code = ErrorCode.EXTRACTION_FAILED


class ProtocolViolation(OgpCacheError):
    """A 304 arrived for a request that carried no validators."""

    default_code = ErrorCode.PROTOCOL_VIOLATION


class FetchFailure(OgpCacheError):
    """Non-2xx/non-304 origin response, transport error, or refused URL."""

    default_code = ErrorCode.FETCH_FAILED


class CodecFailure(OgpCacheError):
    default_code = ErrorCode.CODEC_FAILED


class RenderFailure(OgpCacheError):
    default_code = ErrorCode.RENDER_FAILED


class ConfigurationError(OgpCacheError):
    """Caller supplied an unusable parameter (unknown style, bad scale)."""

    default_code = ErrorCode.INVALID_STYLE


class NotFound(OgpCacheError):
    default_code = ErrorCode.IMAGE_NOT_FOUND


class CacheInconsistency(OgpCacheError):
    """A record that an upstream write should have created is missing."""

    default_code = ErrorCode.CACHE_INCONSISTENT
