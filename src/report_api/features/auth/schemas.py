"""Request and response bodies of the auth routes."""
import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

Role = Literal["customer", "admin"]


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, description="Plain password, stored only as a bcrypt hash")


class UserResponse(BaseModel):
    """A user document as exposed by the API; the password hash never leaves the service."""

    public_id: str = Field(..., description="KSUID of the user")
    username: str
    email: EmailStr
    role: Role
    is_active: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime

    model_config = ConfigDict(extra="ignore")


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    sub: Optional[str] = None
