"""Bearer-token guard for write endpoints."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.responses import PlainTextResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger

from .errors import AuthError

_bearer = HTTPBearer(auto_error=False)


async def require_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> str:
    """Reject the request before any handler runs unless the token is registered."""
    if credentials is None:
        logger.warning(f"Rejected {request.method} {request.url.path}: no bearer token")
        raise AuthError()

    db = request.app.state.db
    if not await db.token_exists(credentials.credentials):
        logger.warning(f"Rejected {request.method} {request.url.path}: unknown token")
        raise AuthError()
    return credentials.credentials


async def require_list_owner(
    list_name: str,
    request: Request,
    token: str = Depends(require_token),
) -> str:
    """A token registered to a user may only edit the list named after that user."""
    owner = await request.app.state.db.token_owner(token)
    if owner is not None and owner != list_name:
        logger.warning(f"User {owner!r} tried to edit custom list {list_name!r}")
        raise AuthError("HTTP Token: Not allowed to edit this list.")
    return token


async def auth_error_handler(request: Request, exc: AuthError) -> PlainTextResponse:
    return PlainTextResponse(
        f"{exc}\n",
        status_code=401,
        headers={"WWW-Authenticate": 'Bearer realm="Application"'},
    )
