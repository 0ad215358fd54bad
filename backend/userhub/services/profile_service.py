"""
Userhub Backend — Profile Service (Orchestration Layer)
=========================================================

What:  Runs the profile-image ingestion pipeline and applies partial profile
       updates to the `users` table.
Why:   Keeps the upload routes thin; every step of the pipeline and its
       error behavior lives here.
Who:   Called by the upload and users route handlers.

Pipeline:
    UploadService.accept()           validate + store raw bytes     images/<key>
    → ImageService.resize_and_store() decode + resize + write     images/resized/<key>
    → BlobStore.get_url()             public path of the resized copy
    → update_profile()                point users.image at that path

Error Recovery:
    Every failure aborts the rest of the pipeline. Nothing is rolled back
    across stores: when the row update fails after the blob writes, the
    written objects stay behind as orphans. Superseded images are never
    deleted either.

Partial updates (COALESCE semantics):
    Only fields that were supplied are written. A field left out of the
    request keeps its stored value; `image` in particular is only ever
    replaced by a new upload, never reset to NULL.
"""

import logging
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.exceptions import (
    DatabaseError,
    InvalidInputError,
    NotFoundError,
)
from userhub.models.user import User
from userhub.schemas.user import UserPublic
from userhub.services.blob_store_base import BlobStore
from userhub.services.image_service import ImageService
from userhub.services.upload_service import (
    StoredImageReference,
    UploadRequest,
    UploadService,
)

logger = logging.getLogger(__name__)


class ProfileService:
    """
    Business logic for profile reads, partial updates and picture uploads.

    Args:
        blob_store:     Store that holds originals and resized copies
        upload_service: Intake policy and raw-bytes writer
        image_service:  Resize stage
    """

    def __init__(
        self,
        blob_store: BlobStore,
        upload_service: UploadService,
        image_service: ImageService,
    ):
        self.blob_store = blob_store
        self.upload_service = upload_service
        self.image_service = image_service

    async def store_image(self, upload: UploadRequest) -> StoredImageReference:
        """
        Intake → transform → resolve public path. Does not touch the database.

        Raises:
            InvalidInputError, UnsupportedMediaTypeError, PayloadTooLargeError,
            ImageDecodeError, TransformIOError, StoreUnavailableError
        """
        accepted = await self.upload_service.accept(upload)
        resized_key = await self.image_service.resize_and_store(
            accepted.object_key, accepted.raw_bytes
        )
        public_path = await self.blob_store.get_url(resized_key)
        return StoredImageReference(object_key=accepted.object_key, public_path=public_path)

    async def upload_picture(self, db: AsyncSession, upload: UploadRequest) -> StoredImageReference:
        """
        Image-only upload: store the picture and point the profile at it.

        Raises:
            Everything store_image() raises, plus NotFoundError when no user
            has the owner id and DatabaseError for other database failures.
        """
        reference = await self.store_image(upload)
        await self.update_profile(db, owner_id=upload.owner_id, image_path=reference.public_path)
        logger.info("Profile picture of user %s set to %s", upload.owner_id, reference.public_path)
        return reference

    async def update_profile_with_image(
        self,
        db: AsyncSession,
        owner_id: Optional[str],
        upload: Optional[UploadRequest] = None,
        name: Optional[str] = None,
        lastname: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Optional[str]:
        """
        Combined update: optional fields plus an optional new picture.

        Returns the new picture's public path, or None when no file was sent.
        """
        owner_id = UploadService.validate_owner(owner_id)
        image_path = None
        if upload is not None:
            reference = await self.store_image(upload)
            image_path = reference.public_path

        return await self.update_profile(
            db,
            owner_id=owner_id,
            name=name,
            lastname=lastname,
            email=email,
            phone=phone,
            image_path=image_path,
        )

    async def update_profile(
        self,
        db: AsyncSession,
        owner_id: Optional[str],
        name: Optional[str] = None,
        lastname: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        image_path: Optional[str] = None,
    ) -> Optional[str]:
        """
        Write the supplied fields of one user row; None means "keep".

        Returns:
            image_path (the new canonical reference), or None if no image
            was supplied.

        Raises:
            InvalidInputError: owner id missing, or email taken by another user
            NotFoundError: no user with this id
            DatabaseError: any other database failure
        """
        owner_id = UploadService.validate_owner(owner_id)
        supplied = {"name": name, "lastname": lastname, "email": email, "phone": phone}
        values = {field: value for field, value in supplied.items() if value is not None}
        if image_path is not None:
            values["image"] = image_path

        try:
            if values:
                result = await db.execute(
                    update(User).where(User.id == owner_id).values(**values)
                )
                matched = result.rowcount
            else:
                matched = await db.scalar(
                    select(func.count()).select_from(User).where(User.id == owner_id)
                )
            await db.flush()
        except IntegrityError:
            logger.warning("Profile update for %s violates a constraint", owner_id)
            raise InvalidInputError(message="Email is already in use", field="email")
        except SQLAlchemyError as e:
            logger.error("Database error updating profile %s: %s", owner_id, str(e))
            raise DatabaseError(
                message="Error updating the profile. Please try again.",
                context={"user_id": owner_id, "error_type": type(e).__name__},
            )

        if not matched:
            raise NotFoundError(resource="user", resource_id=owner_id)

        logger.info("Profile %s updated: %s", owner_id, ", ".join(sorted(values)) or "no fields")
        return image_path

    async def get_profile(self, db: AsyncSession, user_id: str) -> UserPublic:
        """
        Retrieve a single profile by id.

        Raises:
            NotFoundError: no such user (→ 404)
            DatabaseError: query failed (→ 500)
        """
        try:
            user = await db.get(User, user_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the profile. Please try again.",
                context={"user_id": user_id},
            )
        if user is None:
            raise NotFoundError(resource="user", resource_id=user_id)
        return UserPublic.model_validate(user)
