"""
Userhub Backend — Pydantic Request/Response Schemas
=====================================================

What:  Pydantic models defining the API contract between frontend and backend.
Why:   Strict input validation, automatic serialization, and OpenAPI doc generation.
How:   FastAPI validates JSON bodies against the request models and serializes
       responses through the response models (by alias).

Wire names:
    The frontend contract predates this backend and uses `profilePicURL` and
    `id_usuario`. Python attributes stay snake_case; the wire names are the
    serialization aliases and are also accepted on validation (FastAPI
    re-validates a response after dumping it by alias).
"""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from userhub.security import Role


# ══════════════════════════════════════════════════════════════════════════
# Upload / Profile Responses
# ══════════════════════════════════════════════════════════════════════════


class UploadResponse(BaseModel):
    """
    What:  Returned by POST /api/upload after the image is stored and the
           profile row points at it.
    """
    model_config = ConfigDict(populate_by_name=True)

    profile_pic_url: str = Field(
        validation_alias=AliasChoices("profile_pic_url", "profilePicURL"),
        serialization_alias="profilePicURL",
        description="Public path of the resized profile image",
    )
    message: str = Field(default="Image uploaded and URL stored successfully")


class ProfileUpdateResponse(BaseModel):
    """
    What:  Returned by POST /api/updateProfile.

    profilePicURL is null when the request carried no new image.
    """
    model_config = ConfigDict(populate_by_name=True)

    profile_pic_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("profile_pic_url", "profilePicURL"),
        serialization_alias="profilePicURL",
        description="Public path of the new profile image, null if none was uploaded",
    )
    message: str = Field(default="Profile updated successfully")


# ══════════════════════════════════════════════════════════════════════════
# Accounts
# ══════════════════════════════════════════════════════════════════════════


class RegisterRequest(BaseModel):
    """
    What:  Body of POST /api/register.

    Why password max_length=72: bcrypt only hashes the first 72 bytes; longer
    inputs are rejected instead of silently truncated.
    """
    id: str = Field(min_length=1, max_length=64, description="Opaque user identifier")
    name: Optional[str] = Field(default=None, max_length=100)
    lastname: Optional[str] = Field(default=None, max_length=100)
    rol: Role = Field(default=Role.USER, description="Role name: admin or user")
    email: str = Field(min_length=3, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    password: str = Field(min_length=1, max_length=72)


class RegisterResponse(BaseModel):
    success: bool = True
    message: str = "User registered successfully"


class LoginRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)


class UserPublic(BaseModel):
    """
    What:  A user's profile as exposed to clients. Never includes the password hash.
    Who:   Embedded in LoginResponse and returned by GET /api/users/{id}.
    """
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str = Field(
        validation_alias=AliasChoices("id", "id_usuario"),
        serialization_alias="id_usuario",
    )
    name: Optional[str] = None
    lastname: Optional[str] = None
    email: str
    phone: Optional[str] = None
    rol: str
    image: Optional[str] = Field(default=None, description="Public path of the profile image")


class LoginResponse(BaseModel):
    success: bool = True
    message: str = "Login successful"
    user: UserPublic


# ══════════════════════════════════════════════════════════════════════════
# Error / Health
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Example:
        {
            "error": "unsupported_media_type",
            "message": "Only images are allowed (jpeg, jpg, png, gif)",
            "details": {"field": "image", "extension": ".bmp"},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    storage: str = Field(description="Blob store status: available, unavailable")
    storage_backend: str = Field(description="Configured blob backend: local or s3")
    uptime_seconds: float = Field(description="Seconds since service started")
    checked_at: datetime = Field(description="When this check ran (UTC)")
