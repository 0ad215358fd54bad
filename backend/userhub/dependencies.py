"""
Userhub Backend — Dependency Wiring
=====================================

What:  Builds the per-application collaborators and exposes them to routes
       through FastAPI's dependency injection.
Why:   Routes never reach for module-level singletons. The app factory owns
       the Database, the BlobStore and the services, stores them on
       `app.state`, and these getters hand them out per request. Tests build
       an app with their own instances.
How:   `build_blob_store()` picks the backend from Settings;
       `get_current_identity()` resolves the caller once per request;
       `require_profile_access()` checks capabilities at the route boundary.
"""

import logging
from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.config import Settings
from userhub.database import get_db_session
from userhub.exceptions import AuthenticationError, AuthorizationError, DatabaseError
from userhub.models.user import User
from userhub.security import Capability, Identity, Role
from userhub.services.account_service import AccountService
from userhub.services.blob_store_base import BlobStore
from userhub.services.local_blob_store import LocalBlobStore
from userhub.services.profile_service import ProfileService
from userhub.services.s3_blob_store import S3BlobStore

logger = logging.getLogger(__name__)

AUTH_HEADER = "user_id"


def build_blob_store(settings: Settings) -> BlobStore:
    """Construct the configured blob backend."""
    if settings.storage_backend == "s3":
        return S3BlobStore(
            bucket=settings.s3_bucket,
            region=settings.aws_region,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            endpoint_url=settings.s3_endpoint_url,
            public_base_url=settings.s3_public_base_url,
            object_acls=settings.s3_object_acls,
            default_url_ttl=settings.signed_url_ttl,
        )
    return LocalBlobStore(
        media_root=settings.media_root,
        signing_secret=settings.signing_secret,
        url_prefix=settings.media_url_prefix,
        default_url_ttl=settings.signed_url_ttl,
    )


# ── App-state getters ─────────────────────────────────────────────────────

def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_profile_service(request: Request) -> ProfileService:
    return request.app.state.profile_service


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


# ── Authentication / Authorization ────────────────────────────────────────

async def get_current_identity(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Identity:
    """
    Resolve the caller from the `user_id` header.

    Raises:
        AuthenticationError: header missing or no such user
    """
    user_id = (request.headers.get(AUTH_HEADER) or "").strip()
    if not user_id:
        raise AuthenticationError()

    try:
        user = await db.get(User, user_id)
    except SQLAlchemyError as e:
        logger.error("Authentication lookup failed: %s", str(e))
        raise DatabaseError(context={"error_type": type(e).__name__})
    if user is None:
        raise AuthenticationError()

    identity = Identity(user_id=user.id, role=Role.parse(user.rol))
    request.state.identity = identity
    return identity


def require_profile_access(own: Capability, other: Capability) -> Callable:
    """
    Dependency factory for routes with a `{user_id}` path parameter.

    Acting on one's own profile needs `own`; on anyone else's, `other`.
    """

    async def checker(
        user_id: str,
        identity: Identity = Depends(get_current_identity),
    ) -> Identity:
        needed = own if identity.user_id == user_id else other
        if not identity.can(needed):
            logger.warning(
                "User %s (%s) denied %s on %s",
                identity.user_id,
                identity.role.value,
                needed.value,
                user_id,
            )
            raise AuthorizationError(capability=needed.value)
        return identity

    return checker
