"""
Helpers for multipart form handling shared by the routers.
"""

from __future__ import annotations

import math
from typing import Optional

from fastapi import UploadFile

from familytree.errors import PayloadTooLargeError, ValidationError
from familytree.storage import PhotoUpload


async def read_photo(
    file: Optional[UploadFile], max_bytes: int
) -> Optional[PhotoUpload]:
    """Read an optional uploaded image into memory, enforcing the size cap."""
    if file is None or not file.filename:
        return None
    data = await file.read()
    if not data:
        return None
    if len(data) > max_bytes:
        raise PayloadTooLargeError()
    return PhotoUpload(data=data, content_type=file.content_type)


def blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


def form_float(value: Optional[str], field_name: str) -> Optional[float]:
    value = blank_to_none(value)
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError as exc:
        raise ValidationError(f"{field_name} must be a number") from exc
    if not math.isfinite(number):
        raise ValidationError(f"{field_name} must be a finite number")
    return number
