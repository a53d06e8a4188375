"""Account model for SQLModel."""
from sqlmodel import SQLModel, Field
from datetime import datetime
from typing import Optional

from tasktrack.clock import utcnow
from tasktrack.models.types import UTCDateTime


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _clean_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class Account(SQLModel, table=True):
    """Account entity for authentication and task ownership."""
    __tablename__ = "accounts"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True, max_length=50)
    email: str = Field(unique=True, index=True, max_length=255)
    password_hash: str = Field(max_length=255)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    is_active: bool = Field(default=True, index=True)
    last_login_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    @classmethod
    def create(cls, username: str, email: str, password_hash: str,
               first_name: Optional[str] = None, last_name: Optional[str] = None) -> "Account":
        now = utcnow()
        return cls(
            username=username.strip(),
            email=normalize_email(email),
            password_hash=password_hash,
            first_name=_clean_name(first_name),
            last_name=_clean_name(last_name),
            is_active=True,
            created_at=now,
            updated_at=now,
        )

    @property
    def full_name(self) -> str:
        if not self.first_name and not self.last_name:
            return self.username
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def touch(self) -> None:
        self.updated_at = utcnow()

    def update_profile(self, first_name: Optional[str], last_name: Optional[str]) -> None:
        self.first_name = _clean_name(first_name)
        self.last_name = _clean_name(last_name)
        self.touch()

    def change_email(self, email: str) -> None:
        self.email = normalize_email(email)
        self.touch()

    def set_password_hash(self, password_hash: str) -> None:
        self.password_hash = password_hash
        self.touch()

    def record_login(self) -> None:
        self.last_login_at = utcnow()
        self.touch()

    def deactivate(self) -> None:
        self.is_active = False
        self.touch()

    def activate(self) -> None:
        self.is_active = True
        self.touch()
