"""Photo storage helpers.

Photos are addressed by a generated object key under the configured upload
base URL; the client uploads the bytes to the returned URL.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Protocol

import ulid

from app.domain.common.errors import ValidationFailed
from app.domain.identity.models import PhotoDescriptor
from app.settings import settings

DEFAULT_BUCKET_PREFIX = "photos"
ALLOWED_MIME_TYPES = {"image/jpeg", "image/png", "image/webp"}


def _mime_to_ext(mime: str) -> str:
	mapping = {
		"image/jpeg": ".jpg",
		"image/png": ".png",
		"image/webp": ".webp",
	}
	return mapping.get(mime.lower(), ".jpg")


def validate_upload(mime: str, size_bytes: int, *, allowed: Iterable[str] | None = None) -> None:
	allowed_set = set(allowed or ALLOWED_MIME_TYPES)
	if size_bytes <= 0:
		raise ValidationFailed("size_invalid")
	if size_bytes > settings.photo_max_bytes:
		raise ValidationFailed("size_exceeded")
	if mime.lower() not in allowed_set:
		raise ValidationFailed("mime_invalid")


def build_photo_key(user_id: str, photo_id: str, mime: str) -> str:
	return f"{DEFAULT_BUCKET_PREFIX}/{user_id}/{photo_id}{_mime_to_ext(mime)}"


class PhotoStorage(Protocol):
	async def store(self, user_id: str, *, mime: str, size_bytes: int) -> PhotoDescriptor: ...


class UploadUrlStorage:
	"""Allocates keys and public URLs under ``settings.upload_base_url``."""

	def __init__(self, base_url: str | None = None) -> None:
		self._base_url = (base_url or settings.upload_base_url).rstrip("/")

	async def store(self, user_id: str, *, mime: str, size_bytes: int) -> PhotoDescriptor:
		validate_upload(mime, size_bytes)
		photo_id = str(ulid.new())
		key = build_photo_key(user_id, photo_id, mime)
		return PhotoDescriptor(
			photo_id=photo_id,
			url=f"{self._base_url}/{key}",
			storage_key=key,
			uploaded_at=datetime.now(timezone.utc),
		)
