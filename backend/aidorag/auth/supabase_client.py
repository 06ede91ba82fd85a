"""Access token verification against Supabase Auth."""

from typing import Any

import httpx

from aidorag.auth.schemas import User
from aidorag.core.logging import get_logger

logger = get_logger(__name__)

USER_ENDPOINT = "/auth/v1/user"


class SupabaseAuthError(Exception):
    """Token was rejected or could not be checked."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _parse_user(payload: Any) -> User:
    if not isinstance(payload, dict) or not payload.get("id"):
        raise SupabaseAuthError("Auth response did not include a user id")
    return User(id=str(payload["id"]), email=payload.get("email"))


class SupabaseAuthClient:
    """Resolves bearer tokens to document owners.

    Every upload and re-derivation request is scoped to the user returned
    here, so an unverifiable token never reaches the pipeline.
    """

    def __init__(self, url: str, service_key: str, timeout: float = 10.0):
        self.url = url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self._http: httpx.AsyncClient | None = None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self.url,
                headers={"apikey": self.service_key},
                timeout=self.timeout,
            )
        return self._http

    async def close(self) -> None:
        """Release the pooled HTTP connections."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def verify_token(self, token: str) -> User:
        """Return the user a JWT belongs to.

        Raises:
            SupabaseAuthError: If Supabase rejects the token or cannot be reached
        """
        try:
            response = await self._client().get(
                USER_ENDPOINT,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.RequestError as e:
            logger.error("auth_request_failed", error=str(e))
            raise SupabaseAuthError(f"Request to Supabase failed: {e}") from e

        if response.status_code != httpx.codes.OK:
            logger.info("auth_token_rejected", status_code=response.status_code)
            raise SupabaseAuthError("Invalid or expired token", status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise SupabaseAuthError("Auth response was not JSON") from e
        return _parse_user(payload)
