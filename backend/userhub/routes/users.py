"""
Userhub Backend — Users Route Handlers
========================================

What:  GET /api/users/{user_id} — a single public profile.
Who:   Called by the frontend profile page after login or upload.

Access:
    The caller is identified by the `user_id` header. Reading one's own
    profile needs `read_own_profile`; reading anybody else's needs
    `read_any_profile` (admins only).
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.database import get_db_session
from userhub.dependencies import get_profile_service, require_profile_access
from userhub.schemas.user import ErrorResponse, UserPublic
from userhub.security import Capability
from userhub.services.profile_service import ProfileService

router = APIRouter(prefix="/api", tags=["Users"])


@router.get(
    "/users/{user_id}",
    response_model=UserPublic,
    responses={
        401: {"description": "Missing or unknown user_id header", "model": ErrorResponse},
        403: {"description": "Not allowed to read this profile", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Get a user profile",
    dependencies=[
        Depends(require_profile_access(Capability.READ_OWN_PROFILE, Capability.READ_ANY_PROFILE))
    ],
)
async def get_user(
    user_id: str,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
    profile_service: ProfileService = Depends(get_profile_service),
) -> UserPublic:
    profile = await profile_service.get_profile(db, user_id)
    # Profiles change on every update; never serve from a shared cache
    response.headers["Cache-Control"] = "private, no-cache"
    return profile
