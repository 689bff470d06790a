"""Image payload helpers: data URIs for vision input, PNG bytes from generation."""

from __future__ import annotations

import base64
import binascii
import io
import mimetypes
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from scriptbind.foundation.errors import FileError, MarshalError

FALLBACK_MIME = "application/octet-stream"


def detect_mime(data: bytes) -> str:
    """MIME type of image ``data`` sniffed from its content."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError):
        return FALLBACK_MIME
    return Image.MIME.get(fmt or "", FALLBACK_MIME)


def data_uri(data: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def image_data_uri(data: bytes) -> str:
    """Inline image bytes as ``data:<detected mime>;base64,...``."""
    return data_uri(data, detect_mime(data))


def image_file_uri(path: str) -> str:
    """Read an image file into ``data:<extension mime>;base64,...``.

    Raises:
        FileError: File cannot be read
    """
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as e:
        raise FileError(f"cannot read image file {p}: {e.strerror or e}") from e
    mime, _ = mimetypes.guess_type(p.name)
    return data_uri(data, mime or FALLBACK_MIME)


def decode_png(b64: str) -> bytes:
    """Decode a base64 image payload and re-encode it as PNG bytes.

    Raises:
        MarshalError: Payload is not base64 or not a readable image
    """
    try:
        raw = base64.b64decode(b64, validate=True)
        with Image.open(io.BytesIO(raw)) as img:
            out = io.BytesIO()
            img.save(out, format="PNG")
    except (binascii.Error, UnidentifiedImageError, OSError, ValueError) as e:
        raise MarshalError(f"cannot decode image: {e}") from e
    return out.getvalue()
