"""
Userhub Backend — User SQLAlchemy Model
=========================================

What:  ORM model representing the `users` table.
Why:   Maps Python objects to database rows for type-safe database operations.
Who:   Used by ProfileService, AccountService and the auth dependency; read by
       Alembic for migrations.

Table Design Rationale:
    - String primary key: user ids are opaque identifiers chosen by the client
      at registration time, not generated by the database.
    - email UNIQUE: login looks users up by email.
    - password: bcrypt hash, never the plain password.
    - image: public path of the current profile picture, NULL until the first
      upload. Only the upload pipeline writes it, and a profile update without
      a new file never resets it to NULL.
    - Portable column types (no PostgreSQL dialect types) so the same model
      runs on SQLite in tests.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, String, text
from sqlalchemy.orm import Mapped, mapped_column

from userhub.database import Base


class User(Base):
    """
    A registered account and its profile fields.

    Lifecycle:
        1. Created by POST /api/register (image = NULL)
        2. Profile fields updated field-by-field by POST /api/updateProfile
        3. image replaced by every successful upload; the old object is orphaned
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Opaque user identifier supplied at registration",
    )
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    lastname: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        comment="Login identifier",
    )
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Stored as a plain string; resolved to the Role enum at the auth boundary
    rol: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="user",
        server_default=text("'user'"),
        comment="Role name: admin, user",
    )
    password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="bcrypt password hash",
    )
    image: Mapped[Optional[str]] = mapped_column(
        String(512),
        nullable=True,
        default=None,
        comment="Public path of the current profile image",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<User(id='{self.id}', email='{self.email}', rol='{self.rol}')>"
