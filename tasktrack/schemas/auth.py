"""Authentication and profile schemas."""
from pydantic import EmailStr
from datetime import datetime
from typing import Optional

from tasktrack.models import Account
from tasktrack.schemas.common import ApiModel


class RegisterRequest(ApiModel):
    username: str
    email: EmailStr
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(ApiModel):
    username: str
    password: str


class RefreshTokenRequest(ApiModel):
    """Body for refresh, logout and revoke-all-others."""
    refresh_token: str


class RevokeTokenRequest(ApiModel):
    token_id: int


class ChangePasswordRequest(ApiModel):
    current_password: str
    new_password: str


class UpdateProfileRequest(ApiModel):
    """Only the fields sent are applied; a name sent as null is cleared."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None


class UserResponse(ApiModel):
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: str
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> "UserResponse":
        return cls(
            id=account.id,
            username=account.username,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            full_name=account.full_name,
            is_active=account.is_active,
            last_login_at=account.last_login_at,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class LoginResponse(ApiModel):
    """Token pair plus the public profile."""
    access_token: str
    refresh_token: str
    expires_at: datetime
    user: UserResponse


class ActiveSessionResponse(ApiModel):
    id: int
    token_preview: str
    created_at: datetime
    expires_at: datetime
    is_current: bool
