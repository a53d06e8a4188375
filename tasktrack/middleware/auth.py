"""Bearer token authentication dependency for FastAPI."""
from fastapi import HTTPException, Request, status
from pydantic import BaseModel
from typing import Optional


class CurrentUser(BaseModel):
    """Account information extracted from a validated access token."""
    account_id: int
    username: Optional[str] = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(request: Request) -> CurrentUser:
    """
    Validate the access token from the Authorization header.

    Only the token's signature, issuer, audience and expiry are checked;
    the account itself is not loaded.

    Raises:
        HTTPException: 401 if the header is missing or the token is not valid
    """
    auth_header = request.headers.get("authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise _unauthorized("Missing or invalid Authorization header")

    token = auth_header[7:].strip()  # Remove "Bearer " prefix

    claims = request.app.state.token_service.validate_access_token(token)
    if claims is None:
        raise _unauthorized("Invalid or expired access token")

    return CurrentUser(account_id=claims.account_id, username=claims.username)
