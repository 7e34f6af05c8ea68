"""WebP image codec.

Every stored image goes through a full decode and re-encode, so whatever the
origin serves (JPEG, PNG, GIF, ...) is normalised to one format.
"""

from __future__ import annotations

import io

import structlog
from PIL import Image, UnidentifiedImageError

from ogpcache.config import ImageSettings
from ogpcache.errors import CodecFailure

log = structlog.get_logger()


class ImageCodec:
    """Pillow-backed implementation of CodecProtocol."""

    media_type = "image/webp"

    def __init__(self, settings: ImageSettings | None = None) -> None:
        self._settings = settings or ImageSettings()

    def reencode(self, data: bytes) -> bytes:
        """Decode ``data`` and return it encoded as WebP.

        Raises CodecFailure when the payload is not a decodable image or
        exceeds Pillow's pixel limit (``Image.MAX_IMAGE_PIXELS``).
        """
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                # WebP carries RGB(A) only; palette and CMYK sources are converted
                if img.mode not in ("RGB", "RGBA"):
                    has_alpha = img.mode in ("LA", "PA") or "transparency" in img.info
                    img = img.convert("RGBA" if has_alpha else "RGB")
                out = io.BytesIO()
                img.save(
                    out,
                    "WEBP",
                    quality=self._settings.quality,
                    lossless=self._settings.lossless,
                )
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            log.warning("codec_decode_failed", input_length=len(data), error=str(exc))
            raise CodecFailure(
                f"Could not decode image payload ({len(data)} bytes): {exc}",
                "The origin image is corrupt or in an unsupported format.",
            ) from exc
        return out.getvalue()
