from datetime import datetime

from fastapi import APIRouter, Response
from pydantic import AliasChoices, BaseModel, Field

from tokengate.app import LoginResult, RefreshResult
from tokengate.config import Config
from tokengate.core.modules.user.models import UserView
from tokengate.web.deps import AppDep, AuthTokenDep, ConfigDep, CurrentUserDep, OptionalAuthTokenDep
from tokengate.web.openapi import ErrorResponse

router = APIRouter(tags=["auth"])


class LoginRequest(BaseModel):
    """Authentication request."""

    identifier: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("identifier", "username"),
        description="User id, username or email",
    )
    password: str = Field(..., description="Password for authentication")


class LogoutAllResponse(BaseModel):
    """Result of revoking every session of the current user."""

    revoked: int = Field(..., description="Number of sessions revoked")


def set_auth_cookie(response: Response, config: Config, token: str, expires_at: datetime) -> None:
    # Cookie is transport only; the token is re-validated on every request
    response.set_cookie(
        key=config.cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=config.cookie_secure,
        expires=expires_at,
    )


@router.post(
    "/auth/login",
    summary="Authenticate user",
    description="Authenticate with user id, username or email and password to receive an authentication token.",
    operation_id="login",
    responses={
        200: {"description": "Successfully authenticated"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
)
async def login(login_data: LoginRequest, app: AppDep, config: ConfigDep, response: Response) -> LoginResult:
    result = await app.login(login_data.identifier, login_data.password)
    set_auth_cookie(response, config, result.token, result.expires_at)
    return result


@router.get(
    "/auth/me",
    summary="Get current user",
    description="Validate the current token and return the user it belongs to.",
    operation_id="getCurrentUser",
    responses={
        200: {"description": "Current user profile"},
        401: {"model": ErrorResponse, "description": "Not authenticated, token expired or revoked"},
    },
)
async def me(current_user: CurrentUserDep) -> UserView:
    return current_user


@router.post(
    "/auth/refresh",
    summary="Rotate token",
    description="Exchange the current token for a new one with a fresh expiry. The old token stops working.",
    operation_id="refreshToken",
    responses={
        200: {"description": "Token rotated"},
        401: {"model": ErrorResponse, "description": "Not authenticated, token expired or revoked"},
    },
)
async def refresh(app: AppDep, auth_token: AuthTokenDep, config: ConfigDep, response: Response) -> RefreshResult:
    result = await app.refresh(auth_token)
    set_auth_cookie(response, config, result.token, result.expires_at)
    return result


@router.post(
    "/auth/logout",
    summary="End session",
    description="Invalidate the current authentication session, if any.",
    operation_id="logout",
    status_code=204,
    responses={
        204: {"description": "Successfully logged out"},
    },
)
async def logout(app: AppDep, auth_token: OptionalAuthTokenDep, config: ConfigDep, response: Response) -> None:
    if auth_token is not None:
        await app.logout(auth_token)
    response.delete_cookie(config.cookie_name)


@router.post(
    "/auth/logout-all",
    summary="End all sessions",
    description="Invalidate every session of the authenticated user.",
    operation_id="logoutAll",
    responses={
        200: {"description": "Sessions revoked"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def logout_all(app: AppDep, current_user: CurrentUserDep, config: ConfigDep, response: Response) -> LogoutAllResponse:
    revoked = await app.logout_all(current_user.id)
    response.delete_cookie(config.cookie_name)
    return LogoutAllResponse(revoked=revoked)
