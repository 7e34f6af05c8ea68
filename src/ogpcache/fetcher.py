"""HTTP origin fetcher with SSRF protection.

All network I/O towards origin pages and thumbnails goes through a single
Fetcher instance shared across requests. The Fetcher receives an
httpx.AsyncClient via constructor injection; the lifespan owns the client
lifecycle.

Responses are streamed: callers get the status and headers first and decide
whether to read the body at all.
"""

from __future__ import annotations

import ipaddress
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING
from urllib.parse import urljoin, urlparse

import httpx
import structlog

from ogpcache.config import FetcherSettings
from ogpcache.errors import ErrorCode, FetchFailure

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

log = structlog.get_logger()

PRIVATE_NETWORKS: list[ipaddress.IPv4Network | ipaddress.IPv6Network] = [
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("::/128"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
]


def build_http_client(settings: FetcherSettings | None = None) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    settings = settings or FetcherSettings()
    return httpx.AsyncClient(
        follow_redirects=False,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=settings.max_connections,
            max_keepalive_connections=settings.max_connections // 2,
        ),
    )


def is_url_allowed(url: str, *, check_private_ips: bool = True) -> bool:
    """Check whether an origin URL may be fetched.

    Only http(s) is accepted. Private, loopback, link-local, unspecified and
    reserved IP literals are refused when ``check_private_ips`` is set, also
    when written as IPv4-mapped IPv6 (``::ffff:127.0.0.1``).
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False

    if not check_private_ips:
        return True

    try:
        addr = ipaddress.ip_address(parsed.hostname)
    except ValueError:
        return True  # hostname is a domain name, not an IP

    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        addr = addr.ipv4_mapped
    if (
        addr.is_unspecified
        or addr.is_loopback
        or addr.is_private
        or addr.is_link_local
        or addr.is_reserved
    ):
        return False
    return not any(addr in net for net in PRIVATE_NETWORKS)


class Fetcher:
    """Origin fetcher with per-hop redirect validation."""

    def __init__(self, client: httpx.AsyncClient, settings: FetcherSettings | None = None) -> None:
        self._client = client
        self._settings = settings or FetcherSettings()

    @asynccontextmanager
    async def send(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Send a GET (with ``headers`` replayed on every hop) and yield the
        final, unread response.

        Redirects are followed manually so each hop is validated. The status
        code of the final response is the caller's to interpret; only refused
        URLs, redirect overflows and transport errors raise here.
        """
        current_url = url
        max_redirects = self._settings.max_redirects

        try:
            for hop in range(max_redirects + 1):
                if not is_url_allowed(
                    current_url, check_private_ips=self._settings.ssrf_private_ip_check
                ):
                    log.warning("ssrf_blocked", url=current_url)
                    raise FetchFailure(
                        f"URL not allowed: {current_url}",
                        "Only public http(s) URLs can be previewed.",
                        code=ErrorCode.URL_NOT_ALLOWED,
                    )

                request = self._client.build_request("GET", current_url, headers=headers)
                response = await self._client.send(request, stream=True)

                if response.is_redirect:
                    await response.aclose()
                    if hop == max_redirects:
                        raise FetchFailure(
                            f"Too many redirects fetching {url}",
                            "The origin has an unusually long redirect chain.",
                        )
                    current_url = urljoin(current_url, response.headers["location"])
                    continue

                log.debug(
                    "fetch_headers_received", url=current_url, status_code=response.status_code
                )
                try:
                    yield response
                finally:
                    await response.aclose()
                return

        except httpx.HTTPError as exc:
            raise FetchFailure(
                f"Network error fetching {url}: {exc}",
                "The origin may be temporarily unavailable.",
                recoverable=True,
            ) from exc
