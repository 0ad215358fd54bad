"""
Userhub Backend — Custom Exception Hierarchy
==============================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services, blob stores and dependencies; caught by global handlers.

Exception Hierarchy:
    UserhubError (base)
    ├── InvalidInputError            → 400 Bad Request (missing/invalid field)
    │   ├── UnsupportedMediaTypeError → 400 (extension or MIME type not allowed)
    │   └── PayloadTooLargeError      → 400 (file over the size ceiling)
    ├── ImageDecodeError             → 400 (bytes are not a supported image)
    ├── TransformIOError             → 500 (resized image could not be written)
    ├── StoreUnavailableError        → 500 (blob backend failed)
    ├── DatabaseError                → 500
    ├── NotFoundError                → 404
    ├── AuthenticationError          → 401
    └── AuthorizationError           → 403

    Nothing in this hierarchy is retried. Every error aborts the remainder of
    the pipeline for the request that raised it.
"""

from typing import Any, Dict, Optional


class UserhubError(Exception):
    """
    Base exception for all Userhub application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned for server errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class InvalidInputError(UserhubError):
    """
    Raised when client input fails validation.

    When:    Missing userId, missing file, duplicate registration email.
    HTTP:    400 Bad Request
    """

    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UnsupportedMediaTypeError(InvalidInputError):
    """
    Raised when the file extension or the declared MIME type is not allowed.

    Both checks must pass; failing either one raises this error.
    """

    error_code = "unsupported_media_type"

    def __init__(
        self,
        message: str = "Only images are allowed (jpeg, jpg, png, gif)",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, field="image", context=context)


class PayloadTooLargeError(InvalidInputError):
    """Raised when an upload exceeds the configured byte ceiling."""

    error_code = "payload_too_large"

    def __init__(
        self,
        max_size: int,
        actual_size: int,
        context: Optional[Dict[str, Any]] = None,
    ):
        max_mb = max_size / (1024 * 1024)
        ctx = context or {}
        ctx.update({"max_size": max_size, "actual_size": actual_size})
        super().__init__(
            message=(
                f"File size ({actual_size / (1024 * 1024):.1f}MB) exceeds "
                f"maximum of {max_mb:.0f}MB."
            ),
            field="image",
            context=ctx,
        )
        self.max_size = max_size
        self.actual_size = actual_size


class ImageDecodeError(UserhubError):
    """
    Raised when stored bytes cannot be decoded as a supported image.

    The response message is generic; the decoder's own error is kept in
    context for the server log.
    """

    def __init__(
        self,
        message: str = "The uploaded file could not be processed as an image.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class TransformIOError(UserhubError):
    """Raised when the resized image cannot be written to the blob store."""

    def __init__(
        self,
        message: str = "Failed to save the processed image. Please try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StoreUnavailableError(UserhubError):
    """
    Raised when the blob backend (disk or bucket) fails.

    Transient from the caller's point of view; surfaced as a 500 and logged.
    Blob stores never retry internally.
    """

    def __init__(
        self,
        message: str = "File storage is temporarily unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(UserhubError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic. Details are
    logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(UserhubError):
    """
    Raised when a requested resource does not exist.

    When:    Profile update or lookup for an unknown user id, missing blob.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class AuthenticationError(UserhubError):
    """Raised when the caller identity cannot be resolved (401)."""

    def __init__(
        self,
        message: str = "User not authenticated",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthorizationError(UserhubError):
    """Raised when the caller's role lacks the capability a route requires (403)."""

    def __init__(
        self,
        capability: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["capability"] = capability
        super().__init__(
            message="You do not have permission to perform this action",
            context=ctx,
        )
        self.capability = capability
