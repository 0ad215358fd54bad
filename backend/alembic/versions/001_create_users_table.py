"""Create users table

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the `users` table holding accounts and profile fields.
How:   Portable column types only, so the same migration applies to
       PostgreSQL in production and SQLite in development.

Rollback: downgrade() drops the table (destructive, all accounts lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column(
            "id",
            sa.String(64),
            nullable=False,
            comment="Opaque user identifier supplied at registration",
        ),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("lastname", sa.String(100), nullable=True),
        sa.Column("email", sa.String(255), nullable=False, comment="Login identifier"),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column(
            "rol",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'user'"),
            comment="Role name: admin, user",
        ),
        sa.Column("password", sa.String(255), nullable=False, comment="bcrypt password hash"),

        # NULL until the first successful upload
        sa.Column(
            "image",
            sa.String(512),
            nullable=True,
            comment="Public path of the current profile image",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )


def downgrade() -> None:
    """Drop the users table. Destructive: prefer a forward migration in production."""
    op.drop_table("users")
