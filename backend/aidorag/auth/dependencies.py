"""FastAPI dependencies for authentication."""

from typing import Annotated

from dependency_injector.wiring import Provide, inject
from fastapi import Depends, Header, HTTPException, status

from aidorag.auth.schemas import User
from aidorag.auth.supabase_client import SupabaseAuthClient, SupabaseAuthError
from aidorag.core.di_container import DIContainer


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _get_token_from_header(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Extract JWT token from Authorization header.

    Raises:
        HTTPException: If header is missing or malformed
    """
    if not authorization:
        raise _unauthorized("Missing Authorization header")

    if not authorization.startswith("Bearer "):
        raise _unauthorized('Authorization header must start with "Bearer "')

    token = authorization[7:].strip()
    if not token:
        raise _unauthorized("Token is empty")

    return token


@inject
async def get_current_user(
    token: Annotated[str, Depends(_get_token_from_header)],
    client: SupabaseAuthClient | None = Depends(Provide[DIContainer.auth_client]),  # noqa: B008
) -> User:
    """Get the currently authenticated user from JWT token.

    Raises:
        HTTPException: If auth is not configured or the token is rejected
    """
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication is not configured",
        )

    try:
        return await client.verify_token(token)
    except SupabaseAuthError as e:
        raise _unauthorized(e.message) from e


# Type alias for convenience
CurrentUser = Annotated[User, Depends(get_current_user)]
