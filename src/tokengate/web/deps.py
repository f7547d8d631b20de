from typing import Annotated, cast

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tokengate.app import App
from tokengate.config import Config
from tokengate.core.modules.session.models import AuthToken
from tokengate.core.modules.user.models import UserView
from tokengate.errors import AuthenticationError

# Security schemes
bearer_scheme = HTTPBearer(auto_error=False)


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


async def get_config(request: Request) -> Config:
    return cast(Config, request.app.state.config)


async def get_token_cookie(request: Request, config: Annotated[Config, Depends(get_config)]) -> str | None:
    return request.cookies.get(config.cookie_name)


async def get_optional_auth_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
    token_cookie: Annotated[str | None, Depends(get_token_cookie)] = None,
) -> AuthToken | None:
    """Read the auth token from Authorization Bearer header or cookie, without validating it."""

    # Check Bearer token first (preferred)
    if credentials and credentials.scheme.lower() == "bearer" and credentials.credentials:
        return AuthToken(credentials.credentials)

    # Fallback to cookie
    if token_cookie:
        return AuthToken(token_cookie)

    return None


async def get_auth_token(auth_token: Annotated[AuthToken | None, Depends(get_optional_auth_token)]) -> AuthToken:
    if auth_token is None:
        raise AuthenticationError("Not authenticated")
    return auth_token


async def get_current_user(
    app: Annotated[App, Depends(get_app)],
    auth_token: Annotated[AuthToken, Depends(get_auth_token)],
) -> UserView:
    """Validate the token against the store; client-held user data is never trusted."""
    return await app.validate(auth_token)


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
ConfigDep = Annotated[Config, Depends(get_config)]
AuthTokenDep = Annotated[AuthToken, Depends(get_auth_token)]
OptionalAuthTokenDep = Annotated[AuthToken | None, Depends(get_optional_auth_token)]
CurrentUserDep = Annotated[UserView, Depends(get_current_user)]
