"""Unit tests for ogpcache.fetcher."""

from __future__ import annotations

import httpx
import pytest
import respx

from ogpcache.config import FetcherSettings
from ogpcache.errors import ErrorCode, FetchFailure
from ogpcache.fetcher import Fetcher, build_http_client, is_url_allowed

# ---------------------------------------------------------------------------
# is_url_allowed
# ---------------------------------------------------------------------------


class TestIsUrlAllowed:
    def test_public_domain(self) -> None:
        assert is_url_allowed("https://example.com/page")

    def test_public_ip(self) -> None:
        assert is_url_allowed("http://93.184.216.34/")

    def test_non_http_scheme(self) -> None:
        assert not is_url_allowed("file:///etc/passwd")
        assert not is_url_allowed("ftp://example.com/a")

    def test_missing_host(self) -> None:
        assert not is_url_allowed("http:///nohost")

    @pytest.mark.parametrize(
        "url",
        [
            "http://10.0.0.1/secret",
            "http://172.16.0.1/secret",
            "http://192.168.1.1/secret",
            "http://127.0.0.1/secret",
            "http://169.254.169.254/latest/meta-data",
            "http://[::1]/secret",
            "http://[fc00::1]/secret",
            "http://0.0.0.0:8080/",
            "http://[::]/",
            "http://[::ffff:127.0.0.1]/",
            "http://[::ffff:10.0.0.1]/",
            "http://[::ffff:169.254.169.254]/latest/meta-data",
            "http://[fe80::1]/",
        ],
    )
    def test_private_ips_blocked(self, url: str) -> None:
        assert not is_url_allowed(url)

    def test_mapped_public_ip_allowed(self) -> None:
        assert is_url_allowed("http://[::ffff:93.184.216.34]/")

    def test_private_ip_check_disabled(self) -> None:
        assert is_url_allowed("http://127.0.0.1/", check_private_ips=False)


# ---------------------------------------------------------------------------
# build_http_client
# ---------------------------------------------------------------------------


class TestBuildHttpClient:
    def test_client_configuration(self) -> None:
        client = build_http_client(FetcherSettings(user_agent="test-agent/1"))
        assert isinstance(client, httpx.AsyncClient)
        # follow_redirects is False (we handle redirects manually)
        assert client.follow_redirects is False
        assert client.headers["user-agent"] == "test-agent/1"


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class TestFetcher:
    async def test_yields_unread_response(self) -> None:
        with respx.mock:
            respx.get("https://example.com/page").mock(
                return_value=httpx.Response(200, text="<html>hello</html>")
            )
            async with httpx.AsyncClient() as client:
                async with Fetcher(client).send("https://example.com/page") as response:
                    assert response.status_code == 200
                    assert await response.aread() == b"<html>hello</html>"

    async def test_passes_headers(self) -> None:
        with respx.mock:
            route = respx.get("https://example.com/page").mock(return_value=httpx.Response(304))
            async with httpx.AsyncClient() as client:
                async with Fetcher(client).send(
                    "https://example.com/page", {"If-None-Match": '"x"'}
                ) as response:
                    assert response.status_code == 304
            assert route.calls.last.request.headers["if-none-match"] == '"x"'

    async def test_error_status_is_returned_not_raised(self) -> None:
        with respx.mock:
            respx.get("https://example.com/missing").mock(return_value=httpx.Response(404))
            async with httpx.AsyncClient() as client:
                async with Fetcher(client).send("https://example.com/missing") as response:
                    assert response.status_code == 404

    async def test_network_error_raises_error(self) -> None:
        with respx.mock:
            respx.get("https://example.com/timeout").mock(
                side_effect=httpx.ConnectError("Connection refused")
            )
            async with httpx.AsyncClient() as client:
                with pytest.raises(FetchFailure) as exc_info:
                    async with Fetcher(client).send("https://example.com/timeout"):
                        pass
                assert exc_info.value.code == ErrorCode.FETCH_FAILED
                assert exc_info.value.recoverable is True

    async def test_redirect_followed(self) -> None:
        with respx.mock:
            respx.get("https://example.com/old").mock(
                return_value=httpx.Response(301, headers={"location": "https://example.com/new"})
            )
            respx.get("https://example.com/new").mock(
                return_value=httpx.Response(200, text="Redirected content")
            )
            async with httpx.AsyncClient() as client:
                async with Fetcher(client).send("https://example.com/old") as response:
                    assert await response.aread() == b"Redirected content"

    async def test_relative_redirect_resolved(self) -> None:
        with respx.mock:
            respx.get("https://example.com/old").mock(
                return_value=httpx.Response(302, headers={"location": "/new-path"})
            )
            respx.get("https://example.com/new-path").mock(
                return_value=httpx.Response(200, text="Relative redirect content")
            )
            async with httpx.AsyncClient() as client:
                async with Fetcher(client).send("https://example.com/old") as response:
                    assert await response.aread() == b"Relative redirect content"

    async def test_redirect_to_private_ip(self) -> None:
        with respx.mock:
            respx.get("https://example.com/redirect").mock(
                return_value=httpx.Response(301, headers={"location": "http://127.0.0.1/internal"})
            )
            async with httpx.AsyncClient() as client:
                with pytest.raises(FetchFailure) as exc_info:
                    async with Fetcher(client).send("https://example.com/redirect"):
                        pass
                assert exc_info.value.code == ErrorCode.URL_NOT_ALLOWED

    async def test_redirect_to_mapped_loopback(self) -> None:
        with respx.mock:
            respx.get("https://example.com/redirect").mock(
                return_value=httpx.Response(
                    302, headers={"location": "http://[::ffff:127.0.0.1]:8080/admin"}
                )
            )
            async with httpx.AsyncClient() as client:
                with pytest.raises(FetchFailure) as exc_info:
                    async with Fetcher(client).send("https://example.com/redirect"):
                        pass
                assert exc_info.value.code == ErrorCode.URL_NOT_ALLOWED

    async def test_too_many_redirects(self) -> None:
        with respx.mock(assert_all_called=False) as router:
            # 4 redirects (max is 3)
            for i in range(4):
                router.get(f"https://example.com/r{i}").mock(
                    return_value=httpx.Response(
                        301, headers={"location": f"https://example.com/r{i + 1}"}
                    )
                )
            router.get("https://example.com/r4").mock(return_value=httpx.Response(200, text="Final"))
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, FetcherSettings(max_redirects=3))
                with pytest.raises(FetchFailure) as exc_info:
                    async with fetcher.send("https://example.com/r0"):
                        pass
                assert exc_info.value.code == ErrorCode.FETCH_FAILED

    async def test_private_url_refused_before_request(self) -> None:
        async with httpx.AsyncClient() as client:
            with pytest.raises(FetchFailure) as exc_info:
                async with Fetcher(client).send("http://192.168.0.10/admin"):
                    pass
            assert exc_info.value.code == ErrorCode.URL_NOT_ALLOWED
