"""
Userhub Backend — Account Route Handlers
==========================================

What:  POST /api/register and POST /api/login.
How:   JSON bodies validated by Pydantic; AccountService does the work.
       Duplicate registrations answer 400, bad credentials answer 401.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.database import get_db_session
from userhub.dependencies import get_account_service
from userhub.schemas.user import (
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
)
from userhub.services.account_service import AccountService

router = APIRouter(prefix="/api", tags=["Accounts"])


@router.post(
    "/register",
    response_model=RegisterResponse,
    responses={400: {"description": "User already exists", "model": ErrorResponse}},
    summary="Register a new user",
)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
    account_service: AccountService = Depends(get_account_service),
) -> RegisterResponse:
    await account_service.register(db, payload)
    return RegisterResponse()


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={401: {"description": "Invalid credentials", "model": ErrorResponse}},
    summary="Log in with email and password",
)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
    account_service: AccountService = Depends(get_account_service),
) -> LoginResponse:
    user = await account_service.login(db, payload)
    return LoginResponse(user=user)
