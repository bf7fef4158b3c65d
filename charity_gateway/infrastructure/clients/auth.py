"""Hosted identity provider client for resolving session tokens"""

import httpx
from charity_gateway.config import settings
from charity_gateway.domain.exceptions import AuthenticationError


class AuthClient:
    """Client for the hosted authentication API"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.auth_api_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def get_user_id(self, access_token: str) -> str:
        """
        Resolve a bearer token to the authenticated user's id.

        Raises:
            AuthenticationError: On rejected tokens, timeouts, or invalid responses
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(
                    f"{self.base_url}/auth/v1/user",
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                response.raise_for_status()
                user_id = response.json()["id"]
                if not user_id:
                    raise AuthenticationError("Identity provider returned an empty user id")
                return str(user_id)

            except httpx.TimeoutException as e:
                raise AuthenticationError(f"Auth API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise AuthenticationError(f"Auth API rejected token: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise AuthenticationError(f"Auth API unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise AuthenticationError(f"Invalid user payload from auth API: {e}") from e
