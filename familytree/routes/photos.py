"""
Album photo routes.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from familytree.auth import get_current_user
from familytree.config import Settings, get_settings
from familytree.db import DbClient
from familytree.dependencies import get_db_client, get_image_host
from familytree.errors import NotFoundError, ValidationError
from familytree.records import PhotoRecord, UserRecord, new_id
from familytree.routes.uploads import read_photo
from familytree.schemas import MessageResponse, PhotoResponse
from familytree.storage import ALBUM_FOLDER, ImageHost, host_photo, release_quietly

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/photos", tags=["Photos"])


@router.post("/upload", response_model=PhotoResponse, status_code=201)
async def upload_photo(
    photo: Optional[UploadFile] = File(default=None),
    category: Optional[str] = Form(default=None),
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    images: ImageHost = Depends(get_image_host),
    settings: Settings = Depends(get_settings),
):
    upload = await read_photo(photo, settings.max_upload_bytes)
    if upload is None:
        raise ValidationError("No file uploaded")
    hosted = host_photo(images, upload, ALBUM_FOLDER)
    record = PhotoRecord(
        id=new_id(),
        owner_id=user.id,
        url=hosted.url,
        public_id=hosted.public_id,
        category=(category or "").strip() or "general",
    )
    db.create_photo(record)
    return PhotoResponse(**record.as_dict())


@router.get("", response_model=list[PhotoResponse])
@router.get("/", response_model=list[PhotoResponse], include_in_schema=False)
def list_photos(
    category: Optional[str] = Query(default=None),
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return [
        PhotoResponse(**photo.as_dict())
        for photo in db.list_photos(user.id, category or None)
    ]


@router.delete("/{photo_id}", response_model=MessageResponse)
def delete_photo(
    photo_id: str,
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    images: ImageHost = Depends(get_image_host),
):
    photo = db.get_photo(user.id, photo_id)
    if not photo or not db.delete_photo(user.id, photo_id):
        raise NotFoundError("Photo not found")
    release_quietly(images, photo.public_id)
    logger.info("Deleted photo %s for %s", photo_id, user.id)
    return MessageResponse(message="Deleted")
