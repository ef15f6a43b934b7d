"""API routes for user authentication, including token generation and user registration."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from ...core.config import Settings
from ...core.dependencies import get_database, get_settings
from . import schemas
from . import security as auth_security
from . import service as auth_service

logger = logging.getLogger(__name__)
router = APIRouter(
    tags=["Authentication"],
    prefix="/auth"
)


@router.post("/token", response_model=schemas.Token)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: Annotated[AsyncIOMotorDatabase, Depends(get_database)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    user = await auth_service.get_user_by_username(db, username=form_data.username)
    if not user or not auth_security.verify_password(form_data.password, user["hashed_password"]):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user",
        )
    access_token = auth_security.create_access_token(data={"sub": user["username"]}, settings=settings)
    logger.info(f"Issued access token for {user['username']}")
    return schemas.Token(access_token=access_token)


@router.post("/register", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(
    user_in: schemas.UserCreate,
    db: Annotated[AsyncIOMotorDatabase, Depends(get_database)],
):
    if await auth_service.get_user_by_username(db, username=user_in.username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already registered",
        )
    if await auth_service.get_user_by_email(db, email=user_in.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )
    try:
        user = await auth_service.create_user(
            db,
            username=user_in.username,
            email=user_in.email,
            hashed_password=auth_security.get_password_hash(user_in.password),
        )
    except DuplicateKeyError:
        # Lost a race with a concurrent registration
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username or email already registered",
        )
    return schemas.UserResponse.model_validate(user)


@router.get("/me", response_model=schemas.UserResponse)
async def read_current_user(
    current_user: Annotated[dict, Depends(auth_security.get_current_active_user)],
):
    return schemas.UserResponse.model_validate(current_user)
