"""
Blob storage for custom banner images.

Decodes base64 uploads, sniffs their real type from magic bytes, verifies
them with Pillow, and persists them under a configured directory. Callers get
back a durable public URL.
"""

import asyncio
import base64
import binascii
import logging
import re
import secrets
from io import BytesIO
from pathlib import Path
from typing import Optional, Protocol, Tuple, runtime_checkable

from PIL import Image, UnidentifiedImageError

from ..core.config import get_settings
from ..domain.errors import StorageUploadFailure, UnsupportedImage

logger = logging.getLogger(__name__)

# Magic-byte signatures for accepted image formats
_SIGNATURES = {
    "image/jpeg": [b"\xff\xd8\xff"],
    "image/png": [b"\x89PNG\r\n\x1a\n"],
    "image/webp": [b"RIFF"],  # Full check requires bytes 8-11 == "WEBP"
    "image/gif": [b"GIF87a", b"GIF89a"],
}

_MIME_TO_EXT = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

_DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")


@runtime_checkable
class BlobStorage(Protocol):
    """Durable binary object store."""

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Persist *data* under *key* and return its public URL."""
        ...


def sniff_mime(data: bytes) -> str:
    """Detect an image MIME type from magic bytes, or ``""`` if unknown."""
    header = data[:16]
    for mime, sigs in _SIGNATURES.items():
        for sig in sigs:
            if header[: len(sig)] == sig:
                if mime == "image/webp":
                    if len(header) >= 12 and header[8:12] == b"WEBP":
                        return mime
                    continue
                return mime
    return ""


def decode_image_payload(
    image_base64: str, declared_mime: str, max_bytes: Optional[int] = None
) -> Tuple[bytes, str]:
    """Decode a (possibly data-URL prefixed) base64 image.

    Returns:
        The raw bytes and the sniffed MIME type.

    Raises:
        UnsupportedImage: If the payload is not valid base64, is not an
            accepted image format, does not match the declared type, or is
            larger than the configured cap.
    """
    max_bytes = max_bytes or get_settings().max_image_bytes
    body = _DATA_URL_PREFIX.sub("", image_base64.strip())
    try:
        data = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError):
        raise UnsupportedImage("Image payload is not valid base64") from None

    if not data:
        raise UnsupportedImage("Image payload is empty")
    if len(data) > max_bytes:
        raise UnsupportedImage(
            f"Image is {len(data)} bytes, larger than the {max_bytes} byte limit"
        )

    detected = sniff_mime(data)
    if not detected:
        raise UnsupportedImage("Unrecognised image format")
    if declared_mime and declared_mime != detected:
        logger.warning(f"Declared MIME {declared_mime} differs from sniffed {detected}")
        if declared_mime not in _MIME_TO_EXT:
            raise UnsupportedImage(f"Unsupported content type {declared_mime}")

    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise UnsupportedImage(f"Corrupt image data: {e}") from None

    return data, detected


def build_image_key(owner_id: int, week_id: str, mime: str) -> str:
    """``custom-content/{owner}/{week}-{token}.{ext}``."""
    ext = _MIME_TO_EXT.get(mime, "png")
    return f"custom-content/{owner_id}/{week_id}-{secrets.token_urlsafe(12)}.{ext}"


class LocalBlobStorage:
    """BlobStorage writing under a local directory served at a public URL."""

    def __init__(self, root_dir: Path, public_base_url: str) -> None:
        self.root_dir = Path(root_dir).expanduser()
        self.public_base_url = public_base_url.rstrip("/")
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        path = (self.root_dir / key).resolve()
        if not path.is_relative_to(self.root_dir.resolve()):
            raise StorageUploadFailure(f"Storage key escapes root: {key}")
        return path

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        path = self._resolve(key)
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            logger.error(f"Failed to store blob {key}: {e}", exc_info=True)
            raise StorageUploadFailure(str(e)) from e
        logger.info(f"Stored blob {key} ({len(data)} bytes, {content_type})")
        return f"{self.public_base_url}/{key}"

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)


# Global blob storage instance
_blob_storage: Optional[BlobStorage] = None


def get_blob_storage() -> BlobStorage:
    """Get the global blob storage instance"""
    global _blob_storage
    if _blob_storage is None:
        settings = get_settings()
        _blob_storage = LocalBlobStorage(
            Path(settings.storage_dir), settings.storage_public_url
        )
    return _blob_storage
