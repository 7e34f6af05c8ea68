"""Open Graph extraction.

Reads every ``<meta property="og:...">`` tag in a page. The first value of a
property wins, matching how social networks resolve duplicates. Validation of
required fields is left to the metadata cache.
"""

from __future__ import annotations

from bs4 import BeautifulSoup

from ogpcache.models.ogp import OgpDocument

_OG_PREFIX = "og:"


class OgpExtractor:
    """BeautifulSoup-backed implementation of ExtractorProtocol."""

    def parse(self, html: str | bytes, encoding: str | None = None) -> OgpDocument:
        if isinstance(html, bytes):
            soup = BeautifulSoup(html, "html.parser", from_encoding=encoding)
        else:
            soup = BeautifulSoup(html, "html.parser")

        metadata: dict[str, str] = {}
        for tag in soup.find_all("meta"):
            # Some sites publish OGP with name= instead of property=
            key = tag.get("property") or tag.get("name")
            content = tag.get("content")
            if not key or content is None:
                continue
            key = key.strip().lower()
            if key.startswith(_OG_PREFIX) and key not in metadata:
                metadata[key] = content.strip()

        return OgpDocument(
            url=metadata.get("og:url") or None,
            title=metadata.get("og:title", ""),
            type=metadata.get("og:type", ""),
            image=metadata.get("og:image") or metadata.get("og:image:url") or None,
            metadata=metadata,
        )
