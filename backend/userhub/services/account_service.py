"""
Userhub Backend — Account Service
===================================

What:  Registration and login.
How:   Passwords are hashed with bcrypt in a worker thread (hashing is
       deliberately slow and would otherwise stall the event loop).
Who:   Called by POST /api/register and POST /api/login.
"""

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.exceptions import AuthenticationError, DatabaseError, InvalidInputError
from userhub.models.user import User
from userhub.schemas.user import LoginRequest, RegisterRequest, UserPublic
from userhub.security import hash_password, verify_password

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, bcrypt_rounds: int = 10):
        self.bcrypt_rounds = bcrypt_rounds

    async def register(self, db: AsyncSession, payload: RegisterRequest) -> None:
        """
        Create a user row.

        Raises:
            InvalidInputError: email or id already registered ("User already exists")
            DatabaseError: any other database failure
        """
        try:
            existing = await db.scalar(select(User.id).where(User.email == payload.email))
        except SQLAlchemyError as e:
            logger.error("Database error checking email: %s", str(e))
            raise DatabaseError(context={"error_type": type(e).__name__})
        if existing is not None:
            raise InvalidInputError(message="User already exists", field="email")

        hashed = await asyncio.to_thread(hash_password, payload.password, self.bcrypt_rounds)
        db.add(
            User(
                id=payload.id,
                name=payload.name,
                lastname=payload.lastname,
                rol=payload.rol.value,
                email=payload.email,
                phone=payload.phone,
                password=hashed,
            )
        )
        try:
            await db.flush()
        except IntegrityError:
            # Same id registered concurrently or earlier
            raise InvalidInputError(message="User already exists", field="id")
        except SQLAlchemyError as e:
            logger.error("Database error registering user %s: %s", payload.id, str(e))
            raise DatabaseError(context={"error_type": type(e).__name__})

        logger.info("User registered: %s (rol=%s)", payload.id, payload.rol.value)

    async def login(self, db: AsyncSession, payload: LoginRequest) -> UserPublic:
        """
        Check credentials and return the user's public profile.

        Unknown email and wrong password produce the same error so the
        response does not reveal which emails are registered.
        """
        try:
            user = await db.scalar(select(User).where(User.email == payload.email))
        except SQLAlchemyError as e:
            logger.error("Database error during login: %s", str(e))
            raise DatabaseError(context={"error_type": type(e).__name__})

        if user is None or not await asyncio.to_thread(
            verify_password, payload.password, user.password
        ):
            logger.info("Failed login attempt")
            raise AuthenticationError(message="Invalid credentials")

        return UserPublic.model_validate(user)
