"""Account service: registration, login, token refresh, profile and sessions."""
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any, Dict, List, Optional

from tasktrack.errors import (
    AccountDeactivated,
    DuplicateAccount,
    FieldError,
    InvalidCredentials,
    InvalidOrExpiredToken,
    NotFound,
    ValidationFailed,
)
from tasktrack.models import Account
from tasktrack.services.security import PASSWORD_MAX_LENGTH, TokenService, hash_password, verify_password
from tasktrack.services.session_directory import SessionDirectory
from tasktrack.stores.base import RecordStore
from tasktrack.utils.logger import get_audit_logger

logger = logging.getLogger(__name__)
audit = get_audit_logger("tasktrack.audit.auth")

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50
EMAIL_MAX_LENGTH = 255
NAME_MAX_LENGTH = 100
PASSWORD_MIN_LENGTH = 8


@dataclass(frozen=True)
class AuthResult:
    """Token pair handed to a client after login, registration or refresh."""
    access_token: str
    refresh_token: str
    expires_at: datetime
    account: Account


@dataclass(frozen=True)
class SessionView:
    id: int
    token_preview: str
    created_at: datetime
    expires_at: datetime
    is_current: bool


def _check_password(field: str, password: Optional[str], errors: List[FieldError]) -> None:
    if not password:
        errors.append(FieldError(field, "Password is required"))
    elif len(password) < PASSWORD_MIN_LENGTH:
        errors.append(FieldError(field, f"Password must be at least {PASSWORD_MIN_LENGTH} characters"))
    elif len(password) > PASSWORD_MAX_LENGTH:
        errors.append(FieldError(field, f"Password cannot exceed {PASSWORD_MAX_LENGTH} characters"))


def _check_name(field: str, label: str, value: Optional[str], errors: List[FieldError]) -> None:
    if value is not None and len(value.strip()) > NAME_MAX_LENGTH:
        errors.append(FieldError(field, f"{label} cannot exceed {NAME_MAX_LENGTH} characters"))


def _check_email(email: Optional[str], errors: List[FieldError]) -> None:
    if email is None or not email.strip():
        errors.append(FieldError("email", "Email is required"))
    elif len(email.strip()) > EMAIL_MAX_LENGTH:
        errors.append(FieldError("email", f"Email cannot exceed {EMAIL_MAX_LENGTH} characters"))


class AuthService:

    def __init__(self, store: RecordStore, tokens: TokenService, sessions: SessionDirectory):
        self.store = store
        self.tokens = tokens
        self.sessions = sessions

    async def _require_account(self, account_id: int) -> Account:
        account = await self.store.accounts.get(account_id)
        if account is None:
            raise NotFound("User not found")
        return account

    async def _open_session(self, account: Account) -> AuthResult:
        access_token, expires_at = self.tokens.issue_access_token(account.id, account.username)
        refresh_token = self.tokens.issue_refresh_token()
        await self.sessions.save(account.id, refresh_token, self.tokens.refresh_token_expiry())
        return AuthResult(access_token, refresh_token, expires_at, account)

    async def authenticate(self, username: str, password: str) -> AuthResult:
        """
        Log in with username and password.

        Raises:
            ValidationFailed: If either value is blank
            InvalidCredentials: Unknown username or wrong password
            AccountDeactivated: Correct password but the account is inactive
        """
        errors = []
        if not username or not username.strip():
            errors.append(FieldError("username", "Username is required"))
        if not password:
            errors.append(FieldError("password", "Password is required"))
        if errors:
            raise ValidationFailed(errors)

        username = username.strip()
        account = await self.store.accounts.get_by_username(username)
        if account is None or not verify_password(password, account.password_hash):
            audit.warning("login_failed", username=username)
            raise InvalidCredentials()

        if not account.is_active:
            audit.warning("login_rejected_inactive", account_id=account.id)
            raise AccountDeactivated()

        account.record_login()
        account = await self.store.accounts.update(account) or account

        result = await self._open_session(account)
        audit.info("login_succeeded", account_id=account.id, username=account.username)
        return result

    async def register(self, username: str, email: str, password: str,
                       first_name: Optional[str] = None, last_name: Optional[str] = None) -> AuthResult:
        """
        Create an account and log it in.

        Raises:
            ValidationFailed: On every field that breaks a rule
            DuplicateAccount: If the username or the email is taken
        """
        errors = []
        cleaned = (username or "").strip()
        if not cleaned:
            errors.append(FieldError("username", "Username is required"))
        elif not USERNAME_MIN_LENGTH <= len(cleaned) <= USERNAME_MAX_LENGTH:
            errors.append(FieldError(
                "username",
                f"Username must be between {USERNAME_MIN_LENGTH} and {USERNAME_MAX_LENGTH} characters",
            ))
        _check_email(email, errors)
        _check_password("password", password, errors)
        _check_name("firstName", "First name", first_name, errors)
        _check_name("lastName", "Last name", last_name, errors)
        if errors:
            raise ValidationFailed(errors)

        if await self.store.accounts.exists(cleaned, email):
            audit.warning("registration_rejected_duplicate", username=cleaned)
            raise DuplicateAccount()

        account = Account.create(
            username=cleaned,
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
        )
        account = await self.store.accounts.add(account)
        audit.info("account_registered", account_id=account.id, username=account.username)

        return await self.authenticate(cleaned, password)

    async def refresh(self, refresh_token: str) -> AuthResult:
        """
        Exchange an active refresh token for a new token pair.

        The old token is revoked and the new one saved under the account's
        session lock; a token that was rotated concurrently is rejected.

        Raises:
            InvalidOrExpiredToken: Unknown, revoked or expired token
            AccountDeactivated: The token's account is inactive
        """
        record = await self.sessions.find_active(refresh_token)
        if record is None:
            audit.warning("refresh_rejected", reason="inactive_token")
            raise InvalidOrExpiredToken()

        account = await self.store.accounts.get(record.account_id)
        if account is None:
            audit.warning("refresh_rejected", reason="missing_account", account_id=record.account_id)
            raise InvalidOrExpiredToken()
        if not account.is_active:
            audit.warning("refresh_rejected", reason="inactive_account", account_id=account.id)
            raise AccountDeactivated()

        access_token, expires_at = self.tokens.issue_access_token(account.id, account.username)
        new_refresh_token = self.tokens.issue_refresh_token()
        rotated = await self.sessions.rotate(
            refresh_token, account.id, new_refresh_token, self.tokens.refresh_token_expiry()
        )
        if not rotated:
            audit.warning("refresh_rejected", reason="already_rotated", account_id=account.id)
            raise InvalidOrExpiredToken()

        return AuthResult(access_token, new_refresh_token, expires_at, account)

    async def logout(self, refresh_token: Optional[str]) -> None:
        if not refresh_token or not refresh_token.strip():
            logger.warning("Logout called without a refresh token")
            return
        await self.sessions.revoke_by_token(refresh_token)

    async def validate_refresh_token(self, refresh_token: str) -> bool:
        return await self.sessions.is_active(refresh_token)

    async def get_profile(self, account_id: int) -> Account:
        return await self._require_account(account_id)

    async def update_profile(self, account_id: int, changes: Dict[str, Any]) -> Account:
        """
        Apply the profile fields present in changes.

        Keys are first_name, last_name and email. A name sent as None is
        cleared; email must be a non-empty address when sent.

        Raises:
            NotFound: If the account is gone
            ValidationFailed: On every field that breaks a rule
            DuplicateAccount: If another account holds the new email
        """
        account = await self._require_account(account_id)

        errors = []
        if "first_name" in changes:
            _check_name("firstName", "First name", changes["first_name"], errors)
        if "last_name" in changes:
            _check_name("lastName", "Last name", changes["last_name"], errors)
        if "email" in changes:
            _check_email(changes["email"], errors)
        if errors:
            raise ValidationFailed(errors)

        if "email" in changes:
            new_email = changes["email"].strip().lower()
            if new_email != account.email:
                holder = await self.store.accounts.get_by_email(new_email)
                if holder is not None and holder.id != account.id:
                    raise DuplicateAccount("Email already exists")
                account.change_email(new_email)

        if "first_name" in changes or "last_name" in changes:
            account.update_profile(
                changes.get("first_name", account.first_name),
                changes.get("last_name", account.last_name),
            )

        updated = await self.store.accounts.update(account)
        if updated is None:
            raise NotFound("User not found")
        logger.info("Account %s updated profile", account_id)
        return updated

    async def change_password(self, account_id: int, current_password: str, new_password: str) -> None:
        """
        Raises:
            NotFound: If the account is gone
            ValidationFailed: Wrong current password or unusable new one
        """
        account = await self._require_account(account_id)

        errors = []
        if not current_password:
            errors.append(FieldError("currentPassword", "Current password is required"))
        _check_password("newPassword", new_password, errors)
        if errors:
            raise ValidationFailed(errors)

        if not verify_password(current_password, account.password_hash):
            audit.warning("password_change_rejected", account_id=account_id)
            raise ValidationFailed.single("currentPassword", "Current password is incorrect")

        account.set_password_hash(hash_password(new_password))
        await self.store.accounts.update(account)
        audit.info("password_changed", account_id=account_id)

    async def deactivate(self, account_id: int) -> None:
        """Deactivate the account and end all of its sessions."""
        account = await self._require_account(account_id)
        account.deactivate()
        await self.store.accounts.update(account)
        revoked = await self.sessions.revoke_all(account_id)
        audit.info("account_deactivated", account_id=account_id, sessions_revoked=revoked)

    async def activate(self, account_id: int) -> None:
        account = await self._require_account(account_id)
        account.activate()
        await self.store.accounts.update(account)
        audit.info("account_activated", account_id=account_id)

    async def delete_account(self, account_id: int) -> None:
        if not await self.store.accounts.delete(account_id):
            raise NotFound("User not found")
        audit.info("account_deleted", account_id=account_id)

    async def list_sessions(self, account_id: int, current_token: Optional[str] = None) -> List[SessionView]:
        active = await self.sessions.list_active(account_id)
        return [
            SessionView(
                id=record.id,
                token_preview=record.preview,
                created_at=record.created_at,
                expires_at=record.expires_at,
                is_current=bool(current_token) and record.token == current_token,
            )
            for record in active
        ]

    async def revoke_session(self, account_id: int, token_id: int) -> None:
        await self.sessions.revoke_owned(account_id, token_id)

    async def revoke_other_sessions(self, account_id: int, current_token: str) -> int:
        if not current_token or not current_token.strip():
            raise ValidationFailed.single("refreshToken", "Refresh token is required")
        return await self.sessions.revoke_all_except(account_id, current_token)
