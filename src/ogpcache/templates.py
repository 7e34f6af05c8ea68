"""HTML card templates.

All styles share one markup skeleton (the ``.ogp-card`` element is what the
renderer captures) and differ only in their stylesheet. ``Custom`` ships a
bare layout and links a caller-supplied stylesheet instead.
"""

from __future__ import annotations

from enum import StrEnum
from html import escape
from string import Template
from typing import TYPE_CHECKING

from ogpcache.errors import ConfigurationError, ErrorCode

if TYPE_CHECKING:
    from ogpcache.models.cache import MetadataRecord


class CardStyle(StrEnum):
    LANDSCAPE = "Landscape"
    PORTRAIT = "Portrait"
    COMPACT = "Compact"
    CUSTOM = "Custom"


_BASE_CSS = """
body {
    font-family: Arial, sans-serif;
    display: flex;
    justify-content: center;
    align-items: center;
    height: 100vh;
    margin: 0;
}
.ogp-card {
    background-color: #fff;
    overflow: hidden;
}
.ogp-card a {
    text-decoration: none;
    color: inherit;
}
.ogp-title { margin: 0 0 8px; }
"""

_STYLE_CSS: dict[CardStyle, str] = {
    CardStyle.LANDSCAPE: """
.ogp-card {
    border: 1px solid #ddd;
    border-radius: 8px;
    box-shadow: 0 2px 4px rgba(0, 0, 0, 0.1);
    width: 600px;
}
.ogp-image { width: 100%; height: auto; }
.ogp-content { padding: 16px; }
.ogp-title { font-size: 1.5em; }
.ogp-description { color: #555; margin: 0 0 16px; }
.ogp-site-name { font-size: 0.9em; color: #888; }
""",
    CardStyle.PORTRAIT: """
.ogp-card {
    border: 1px solid #ddd;
    border-radius: 12px;
    box-shadow: 0 2px 6px rgba(0, 0, 0, 0.12);
    width: 320px;
}
.ogp-image { width: 100%; aspect-ratio: 1 / 1; object-fit: cover; }
.ogp-content { padding: 12px 16px 16px; }
.ogp-title { font-size: 1.2em; }
.ogp-description { color: #555; font-size: 0.9em; margin: 0 0 12px; }
.ogp-site-name { font-size: 0.8em; color: #888; }
""",
    CardStyle.COMPACT: """
.ogp-card {
    border: 1px solid #ddd;
    border-radius: 6px;
    width: 560px;
}
.ogp-card a { display: flex; align-items: stretch; }
.ogp-image { width: 120px; height: 120px; object-fit: cover; flex: none; }
.ogp-content { padding: 10px 14px; overflow: hidden; }
.ogp-title {
    font-size: 1.05em;
    white-space: nowrap;
    text-overflow: ellipsis;
    overflow: hidden;
}
.ogp-description {
    color: #555;
    font-size: 0.85em;
    margin: 0 0 6px;
    max-height: 3.6em;
    overflow: hidden;
}
.ogp-site-name { font-size: 0.75em; color: #888; margin: 0; }
""",
    CardStyle.CUSTOM: "",
}

_PAGE = Template("""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>$title</title>
<style>$css</style>
$stylesheet
</head>
<body>
<div class="ogp-card">
    <a href="$url" target="_blank">
        <img src="$image" alt="" class="ogp-image">
        <div class="ogp-content">
            <h1 class="ogp-title">$title</h1>
            <p class="ogp-description">$description</p>
            <p class="ogp-site-name">$site_name</p>
        </div>
    </a>
</div>
</body>
</html>
""")


def parse_style(value: str) -> CardStyle:
    """Resolve a style name case-insensitively; unknown names are rejected."""
    for style in CardStyle:
        if style.value.lower() == value.strip().lower():
            return style
    raise ConfigurationError(
        f"Unknown card style: {value!r}",
        f"Use one of: {', '.join(s.value for s in CardStyle)}.",
    )


def render_card_html(
    metadata: MetadataRecord,
    image_src: str,
    style: CardStyle = CardStyle.LANDSCAPE,
    custom_css: str | None = None,
) -> str:
    """Compose the card page for ``metadata``.

    ``image_src`` is placed in the ``<img>`` as-is: a data URI when rendering,
    a relative thumbnail link when serving the embeddable page.
    """
    stylesheet = ""
    if style is CardStyle.CUSTOM:
        if not custom_css:
            raise ConfigurationError(
                "The Custom style requires a stylesheet URL",
                "Pass the stylesheet with the css parameter.",
                code=ErrorCode.INVALID_INPUT,
            )
        stylesheet = f'<link rel="stylesheet" href="{escape(custom_css)}">'

    return _PAGE.substitute(
        title=escape(metadata.title),
        url=escape(metadata.url),
        image=escape(image_src),
        description=escape(metadata.description or ""),
        site_name=escape(metadata.site_name or ""),
        css=_BASE_CSS + _STYLE_CSS[style],
        stylesheet=stylesheet,
    )
