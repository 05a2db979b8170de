"""
Centre-crop of reference images to a target aspect ratio (Pillow).

``Cropper`` is the collaborator signature the video workflow consumes;
:func:`center_crop` is the default implementation.
"""

from __future__ import annotations

import io
from typing import Callable

from PIL import Image, UnidentifiedImageError

from fleetprobe.errors import CropError

Cropper = Callable[[bytes, str], bytes]

_FORMATS = {"JPEG": "JPEG", "PNG": "PNG", "WEBP": "WEBP"}


def parse_aspect_ratio(label: str) -> float:
    """``"9:16"`` → ``0.5625`` (width / height)."""
    try:
        w, h = (float(part) for part in label.split(":", 1))
    except ValueError as exc:
        raise CropError(f"Invalid aspect ratio {label!r}") from exc
    if w <= 0 or h <= 0:
        raise CropError(f"Invalid aspect ratio {label!r}")
    return w / h


def center_crop(image_bytes: bytes, aspect_ratio: str) -> bytes:
    target = parse_aspect_ratio(aspect_ratio)
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise CropError(f"Cannot decode image: {exc}") from exc

    width, height = img.size
    if width / height > target:
        new_w, new_h = round(height * target), height
    else:
        new_w, new_h = width, round(width / target)
    left = (width - new_w) // 2
    top = (height - new_h) // 2
    cropped = img.crop((left, top, left + new_w, top + new_h))

    fmt = _FORMATS.get(img.format or "", "PNG")
    if fmt == "JPEG" and cropped.mode not in ("RGB", "L"):
        cropped = cropped.convert("RGB")
    out = io.BytesIO()
    cropped.save(out, format=fmt)
    return out.getvalue()
