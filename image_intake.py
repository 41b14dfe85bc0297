#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Screenshot intake: pick an extension, reject non-images, convert TGA to PNG,
write the bytes under a generated name in the public upload directory.
"""

import io
import logging
import os
import secrets
from typing import Optional

from PIL import Image

from errors import UnsupportedImageType

logger = logging.getLogger(__name__)

UPLOAD_URL_PREFIX = "/uploads/"

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".tga"}

MIME_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/tga": ".tga",
    "image/x-tga": ".tga",
    "image/x-targa": ".tga",
}

# accepted without telling us the format; stored under FALLBACK_EXTENSION
GENERIC_MIMETYPES = {"application/octet-stream"}

FALLBACK_EXTENSION = ".bin"
LEGACY_EXTENSION = ".tga"


def new_token() -> str:
    return secrets.token_urlsafe(16)


def ext_from_filename(filename: Optional[str]) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    return ext if ext in ALLOWED_EXTENSIONS else ""


def _bare_mimetype(mimetype: Optional[str]) -> str:
    return (mimetype or "").split(";", 1)[0].strip().lower()


def ext_from_mimetype(mimetype: Optional[str]) -> str:
    return MIME_EXTENSIONS.get(_bare_mimetype(mimetype), "")


def resolve_extension(filename: Optional[str], mimetype: Optional[str]) -> str:
    """
    Filename extension first, then declared content type, then ".bin".
    Raises UnsupportedImageType when neither is on the allow-list
    (application/octet-stream counts as allowed, with no extension of its own).
    """
    by_name = ext_from_filename(filename)
    by_mime = ext_from_mimetype(mimetype)
    if not by_name and not by_mime and _bare_mimetype(mimetype) not in GENERIC_MIMETYPES:
        raise UnsupportedImageType(
            "Unsupported image type (allowing jpg/png/webp/tga): "
            f"filename={filename!r} content_type={mimetype!r}"
        )
    return by_name or by_mime or FALLBACK_EXTENSION


def tga_to_png(data: bytes) -> bytes:
    with Image.open(io.BytesIO(data)) as img:
        if img.mode not in ("RGB", "RGBA", "L", "LA", "P"):
            img = img.convert("RGBA")
        out = io.BytesIO()
        img.save(out, format="PNG")
    return out.getvalue()


def _write(upload_dir: str, filename: str, data: bytes) -> str:
    os.makedirs(upload_dir, exist_ok=True)
    with open(os.path.join(upload_dir, filename), "wb") as f:
        f.write(data)
    return UPLOAD_URL_PREFIX + filename


def store_image(
    data: bytes,
    filename: Optional[str],
    mimetype: Optional[str],
    upload_dir: str,
) -> str:
    """
    Store an uploaded screenshot and return its public URL path.

    TGA input is re-encoded as PNG; if that fails the original bytes are kept
    under the .tga name instead of failing the upload.
    """
    ext = resolve_extension(filename, mimetype)
    token = new_token()

    if ext == LEGACY_EXTENSION:
        try:
            png = tga_to_png(data)
        except Exception:
            logger.exception("TGA convert failed for %r, keeping original bytes", filename)
        else:
            return _write(upload_dir, f"{token}.png", png)

    return _write(upload_dir, f"{token}{ext}", data)
