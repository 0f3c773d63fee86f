"""
Image hosting abstraction for S3-compatible storage and in-memory testing.
"""

from __future__ import annotations

import logging
import mimetypes
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from familytree.errors import ImageHostError
from familytree.records import PhotoRef

logger = logging.getLogger(__name__)

ALBUM_FOLDER = "family-album"
MEMBER_FOLDER = "family-album/members"
NODE_FOLDER = "family-tree"


@dataclass(frozen=True)
class UploadedImage:
    url: str
    public_id: str


@dataclass(frozen=True)
class PhotoUpload:
    """An image received from a client, not yet hosted."""

    data: bytes
    content_type: Optional[str] = None


class ImageHost(Protocol):
    """Defines the operations the API needs from image hosting."""

    def upload(
        self, data: bytes, folder: str, content_type: Optional[str] = None
    ) -> UploadedImage:
        ...

    def destroy(self, public_id: str) -> None:
        ...


def _object_key(folder: str, content_type: Optional[str]) -> str:
    extension = mimetypes.guess_extension(content_type or "") or ""
    return f"{folder.strip('/')}/{uuid.uuid4().hex}{extension}"


def host_photo(
    images: "ImageHost", upload: Optional[PhotoUpload], folder: str
) -> Optional[PhotoRef]:
    """Upload ``upload`` if given. Failures raise and abort the caller."""
    if upload is None:
        return None
    hosted = images.upload(upload.data, folder, upload.content_type)
    return PhotoRef(url=hosted.url, public_id=hosted.public_id)


def release_quietly(images: ImageHost, public_id: Optional[str]) -> None:
    """Destroy a hosted image, logging instead of raising on failure."""
    if not public_id:
        return
    try:
        images.destroy(public_id)
    except Exception as exc:
        logger.warning("Failed to release image %s: %s", public_id, exc)


@dataclass
class InMemoryImageHost:
    """Test double for image hosting."""

    base_url: str = "https://example.test/images"
    stored_objects: dict = field(default_factory=dict)
    fail_uploads: bool = False
    fail_destroys: bool = False

    def upload(
        self, data: bytes, folder: str, content_type: Optional[str] = None
    ) -> UploadedImage:
        if self.fail_uploads:
            raise ImageHostError()
        key = _object_key(folder, content_type)
        self.stored_objects[key] = data
        return UploadedImage(url=f"{self.base_url}/{key}", public_id=key)

    def destroy(self, public_id: str) -> None:
        if self.fail_destroys:
            raise ImageHostError("Photo delete failed")
        self.stored_objects.pop(public_id, None)


@dataclass
class S3ImageHost:
    """
    S3-compatible image host. Objects are written with a public-read ACL
    and served from ``public_base_url`` (defaults to the bucket endpoint).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str = ""

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )
        if not self.public_base_url:
            base = self.endpoint or f"https://s3.{self.region}.amazonaws.com"
            self.public_base_url = f"{base.rstrip('/')}/{self.bucket}"

    def upload(
        self, data: bytes, folder: str, content_type: Optional[str] = None
    ) -> UploadedImage:
        key = _object_key(folder, content_type)
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type or "application/octet-stream",
                ACL="public-read",
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Image upload to %s failed: %s", key, exc)
            raise ImageHostError() from exc
        return UploadedImage(
            url=f"{self.public_base_url.rstrip('/')}/{key}", public_id=key
        )

    def destroy(self, public_id: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=public_id)
        except (BotoCoreError, ClientError) as exc:
            raise ImageHostError("Photo delete failed") from exc
