"""
Userhub Backend — Upload Route Handlers
=========================================

What:  POST /api/upload (picture only) and POST /api/updateProfile (fields
       plus optional picture).
How:   Reads the multipart form, builds an UploadRequest and delegates to
       ProfileService. All error responses come from the global handlers.

Request Flow (POST /api/upload):
    1. Client sends multipart/form-data with `image` (file) and `userId`
    2. userId and file presence are checked
    3. ProfileService: intake → resize → public path → users.image
    4. 200 with {profilePicURL, message}
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.database import get_db_session
from userhub.dependencies import get_profile_service
from userhub.exceptions import InvalidInputError
from userhub.schemas.user import ErrorResponse, ProfileUpdateResponse, UploadResponse
from userhub.services.profile_service import ProfileService
from userhub.services.upload_service import UploadRequest, UploadService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Profile"])

_ERRORS = {
    400: {"description": "Missing userId, bad file type/size, or undecodable image", "model": ErrorResponse},
    404: {"description": "User not found", "model": ErrorResponse},
    500: {"description": "Storage or database failure", "model": ErrorResponse},
}


async def _read_upload(owner_id: Optional[str], image: UploadFile, max_size: int) -> UploadRequest:
    """
    Read at most `max_size + 1` bytes of the part.

    A part whose parsed size is already over the ceiling is not read at all;
    UploadService.accept() rejects it after the type check.
    """
    try:
        if image.size is not None and image.size > max_size:
            content = b""
        else:
            content = await image.read(max_size + 1)
    finally:
        await image.close()
    logger.info(
        "Received image for user %s: filename=%s, type=%s, size=%d bytes",
        owner_id,
        image.filename or "unknown",
        image.content_type or "unknown",
        image.size if image.size is not None else len(content),
    )
    return UploadRequest(
        owner_id=owner_id,
        raw_bytes=content,
        declared_mime_type=image.content_type,
        declared_filename=image.filename,
        declared_size=image.size,
    )


def _has_file(image: Optional[UploadFile]) -> bool:
    # Browsers send an empty part with no filename when no file was chosen
    return image is not None and bool(image.filename)


@router.post(
    "/upload",
    response_model=UploadResponse,
    responses=_ERRORS,
    summary="Upload a profile picture",
    description=(
        "Upload a JPEG, PNG or GIF (max 5MB). The image is resized to fit 800x800 "
        "and the user's profile is updated to point at it."
    ),
)
async def upload_image(
    image: Optional[UploadFile] = File(None, description="Image file (jpeg, jpg, png, gif)"),
    userId: Optional[str] = Form(None, description="Owner of the picture"),
    db: AsyncSession = Depends(get_db_session),
    profile_service: ProfileService = Depends(get_profile_service),
) -> UploadResponse:
    owner_id = UploadService.validate_owner(userId)
    if not _has_file(image):
        raise InvalidInputError(message="No file uploaded", field="image")

    upload = await _read_upload(owner_id, image, profile_service.upload_service.max_upload_size)
    reference = await profile_service.upload_picture(db, upload)
    return UploadResponse(profile_pic_url=reference.public_path)


@router.post(
    "/updateProfile",
    response_model=ProfileUpdateResponse,
    responses=_ERRORS,
    summary="Update profile fields and optionally the picture",
    description=(
        "Fields that are not sent keep their stored values. "
        "profilePicURL is null when no new image was uploaded."
    ),
)
async def update_profile(
    userId: Optional[str] = Form(None),
    name: Optional[str] = Form(None),
    lastname: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db_session),
    profile_service: ProfileService = Depends(get_profile_service),
) -> ProfileUpdateResponse:
    owner_id = UploadService.validate_owner(userId)
    upload = (
        await _read_upload(owner_id, image, profile_service.upload_service.max_upload_size)
        if _has_file(image)
        else None
    )

    image_path = await profile_service.update_profile_with_image(
        db,
        owner_id=owner_id,
        upload=upload,
        name=name,
        lastname=lastname,
        email=email,
        phone=phone,
    )
    return ProfileUpdateResponse(profile_pic_url=image_path)
