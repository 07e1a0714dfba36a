"""Bearer credential verification against the identity provider.

The provider exposes a GoTrue-style ``GET /auth/v1/user`` endpoint that
returns the user record for a valid access token.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

USER_ENDPOINT = "/auth/v1/user"


def extract_bearer(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer":
        return None
    token = token.strip()
    if not token or " " in token:
        return None
    return token


class IdentityVerifier:
    """Exchanges a bearer token for a caller identity. Never raises."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        *,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def verify(self, authorization: str | None) -> str | None:
        """Return the caller id for a valid credential, else ``None``."""
        token = extract_bearer(authorization)
        if token is None:
            return None

        headers = {"Authorization": f"Bearer {token}"}
        if self._api_key:
            headers["apikey"] = self._api_key

        try:
            response = await self._client.get(
                f"{self._base_url}{USER_ENDPOINT}", headers=headers
            )
        except httpx.HTTPError as exc:
            logger.warning("Identity provider request failed: %s", exc)
            return None

        if response.status_code != 200:
            logger.info("Identity provider rejected token (status=%d)", response.status_code)
            return None

        try:
            user = response.json()
        except ValueError:
            logger.warning("Identity provider returned a non-JSON body")
            return None

        user_id = user.get("id") if isinstance(user, dict) else None
        if not user_id:
            return None
        return str(user_id)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
