"""Authentication router: /api/auth."""
from fastapi import APIRouter, Depends, Header, Request, Response, status
from typing import List, Optional

from tasktrack.schemas.auth import (
    ActiveSessionResponse,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    RefreshTokenRequest,
    RegisterRequest,
    RevokeTokenRequest,
    UpdateProfileRequest,
    UserResponse,
)
from tasktrack.services.auth_service import AuthResult, AuthService
from tasktrack.middleware.auth import get_current_user, CurrentUser

router = APIRouter(tags=["Authentication"])  # No prefix since main.py adds /api/auth


def get_auth_service(request: Request) -> AuthService:
    """Dependency for getting the application's AuthService."""
    return request.app.state.auth_service


def _login_response(result: AuthResult) -> LoginResponse:
    return LoginResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        expires_at=result.expires_at,
        user=UserResponse.from_account(result.account),
    )


@router.post("/register", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    """Create an account and return a token pair for it."""
    result = await service.register(
        username=request.username,
        email=request.email,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
    )
    return _login_response(result)


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest, service: AuthService = Depends(get_auth_service)):
    result = await service.authenticate(request.username, request.password)
    return _login_response(result)


@router.post("/refresh", response_model=LoginResponse)
async def refresh(request: RefreshTokenRequest, service: AuthService = Depends(get_auth_service)):
    """Exchange a refresh token for a new pair; the old refresh token stops working."""
    result = await service.refresh(request.refresh_token)
    return _login_response(result)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(request: RefreshTokenRequest, service: AuthService = Depends(get_auth_service)):
    await service.logout(request.refresh_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/profile", response_model=UserResponse)
async def get_profile(
    current_user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    account = await service.get_profile(current_user.account_id)
    return UserResponse.from_account(account)


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    request: UpdateProfileRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    account = await service.update_profile(current_user.account_id, request.model_dump(exclude_unset=True))
    return UserResponse.from_account(account)


@router.delete("/profile", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    current_user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    """Delete the caller's account with all of its tasks and sessions."""
    await service.delete_account(current_user.account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/change-password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    request: ChangePasswordRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    await service.change_password(current_user.account_id, request.current_password, request.new_password)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/deactivate", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate(
    current_user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    """Deactivate the caller's account and revoke all of its sessions."""
    await service.deactivate(current_user.account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/sessions", response_model=List[ActiveSessionResponse])
async def list_sessions(
    current_user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
    x_refresh_token: Optional[str] = Header(None, alias="X-Refresh-Token"),
):
    """Active sessions, newest first. Send X-Refresh-Token to have the current one flagged."""
    sessions = await service.list_sessions(current_user.account_id, x_refresh_token)
    return [
        ActiveSessionResponse(
            id=session.id,
            token_preview=session.token_preview,
            created_at=session.created_at,
            expires_at=session.expires_at,
            is_current=session.is_current,
        )
        for session in sessions
    ]


@router.post("/sessions/revoke", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_session(
    request: RevokeTokenRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    await service.revoke_session(current_user.account_id, request.token_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/sessions/revoke-all-others", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_all_other_sessions(
    request: RefreshTokenRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    """Revoke every session except the one holding the refresh token in the body."""
    await service.revoke_other_sessions(current_user.account_id, request.refresh_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
