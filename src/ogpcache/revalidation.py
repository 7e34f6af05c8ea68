"""Conditional refresh of a cached origin resource.

``revalidate`` is always a network round trip; deciding whether a stored
entry is fresh enough to skip it is the caller's job. The protocol replays
the stored validators, derives the lifetime of the answer from its headers
(clamped up to the freshness floor) and reports whether the origin changed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from email.utils import format_datetime, parsedate_to_datetime
from typing import TYPE_CHECKING

import structlog

from ogpcache.errors import ErrorCode, FetchFailure, ProtocolViolation
from ogpcache.models.cache import ValidatorSet

if TYPE_CHECKING:
    import httpx

    from ogpcache.protocols import FetcherProtocol

log = structlog.get_logger()

DEFAULT_MIN_LIFETIME = timedelta(hours=1)
# RFC 1123 date, the only Last-Modified form accepted. Day and month names are
# matched here rather than through strptime, whose %a/%b follow LC_TIME.
_RFC1123_RE = re.compile(
    r"(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun), (\d{2}) ([A-Z][a-z]{2}) (\d{4}) (\d{2}):(\d{2}):(\d{2}) GMT"
)
_MONTHS = {
    name: number
    for number, name in enumerate(
        ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"),
        start=1,
    )
}

_MAX_AGE_RE = re.compile(r"(?:^|,)\s*max-age\s*=\s*\"?(\d+)\"?\s*(?:,|$)", re.IGNORECASE)


@dataclass(frozen=True)
class Revalidation:
    """Outcome of one conditional fetch."""

    content: bytes | None  # None when the origin answered 304
    validators: ValidatorSet
    changed: bool
    encoding: str | None = None


def conditional_headers(previous: ValidatorSet | None) -> dict[str, str]:
    """Build If-None-Match / If-Modified-Since from stored validators."""
    headers: dict[str, str] = {}
    if previous is None:
        return headers
    if previous.etag:
        headers["If-None-Match"] = previous.etag
    if previous.last_modified is not None:
        headers["If-Modified-Since"] = format_datetime(
            previous.last_modified.astimezone(UTC), usegmt=True
        )
    return headers


def parse_max_age(cache_control: str | None) -> timedelta:
    """Return the advertised max-age, or zero when absent or malformed."""
    if not cache_control:
        return timedelta(0)
    match = _MAX_AGE_RE.search(cache_control)
    if match is None:
        return timedelta(0)
    return timedelta(seconds=int(match.group(1)))


def freshness_lifetime(
    cache_control: str | None, min_lifetime: timedelta = DEFAULT_MIN_LIFETIME
) -> timedelta:
    """Advertised max-age clamped upward to ``min_lifetime``."""
    return max(parse_max_age(cache_control), min_lifetime)


def parse_last_modified(value: str | None) -> datetime | None:
    """Parse a Last-Modified header in the fixed RFC 1123 form.

    Anything else (including the obsolete RFC 850 and asctime forms) is
    treated as absent rather than as an error.
    """
    if not value:
        return None
    match = _RFC1123_RE.fullmatch(value.strip())
    if match is None or match.group(2) not in _MONTHS:
        return None
    day, month, year, hour, minute, second = match.groups()
    try:
        return datetime(
            int(year), _MONTHS[month], int(day), int(hour), int(minute), int(second), tzinfo=UTC
        )
    except ValueError:
        return None


def parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _validators_from_response(
    response: httpx.Response, lifetime: timedelta, now: datetime
) -> ValidatorSet:
    issued_at = parse_date(response.headers.get("date")) or now
    return ValidatorSet(
        issued_at=issued_at,
        expires_at=issued_at + lifetime,
        etag=response.headers.get("etag") or None,
        last_modified=parse_last_modified(response.headers.get("last-modified")),
    )


async def revalidate(
    url: str,
    previous: ValidatorSet | None,
    fetcher: FetcherProtocol,
    *,
    min_lifetime: timedelta = DEFAULT_MIN_LIFETIME,
) -> Revalidation:
    """Conditionally fetch ``url`` against ``previous``.

    Raises ProtocolViolation on a 304 without ``previous`` and FetchFailure on
    any status other than 2xx/304. Never retries.
    """
    async with fetcher.send(url, conditional_headers(previous)) as response:
        now = datetime.now(UTC)
        lifetime = freshness_lifetime(response.headers.get("cache-control"), min_lifetime)

        if response.status_code == 304:
            if previous is None:
                raise ProtocolViolation(
                    f"Origin answered 304 Not Modified for {url} without a conditional request",
                    "The stored entry and its validators are out of sync.",
                )
            log.info("revalidate_not_modified", url=url, lifetime=lifetime.total_seconds())
            return Revalidation(
                content=None,
                validators=previous.extended(lifetime, now),
                changed=False,
            )

        if not response.is_success:
            if response.status_code == 404:
                raise FetchFailure(
                    f"HTTP 404 fetching {url}",
                    "The origin resource does not exist.",
                    code=ErrorCode.ORIGIN_NOT_FOUND,
                )
            raise FetchFailure(
                f"HTTP {response.status_code} fetching {url}",
                "The origin may be temporarily unavailable.",
                recoverable=response.status_code >= 500,
            )

        validators = _validators_from_response(response, lifetime, now)
        content = await response.aread()

    log.info(
        "revalidate_changed",
        url=url,
        status_code=response.status_code,
        content_length=len(content),
        etag=validators.etag,
    )
    return Revalidation(
        content=content,
        validators=validators,
        changed=True,
        encoding=response.charset_encoding,
    )
