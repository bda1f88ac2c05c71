from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import quote, unquote
from uuid import UUID

import httpx
from fastapi import Header, HTTPException, status
from loguru import logger

from guide_bookings import settings
from guide_bookings.state_machine import Role


@dataclass
class CurrentUser:
    id: UUID
    username: str
    role: Role = Role.USER


def get_current_user(
    x_user_id: str = Header(...),
    x_username: str = Header(...),
    x_user_role: str = Header(default=Role.USER.value),
) -> CurrentUser:
    """
    Reads the identity headers injected by the gateway after authentication.
    The token has already been verified, we just trust these headers.
    """
    try:
        user_id = UUID(x_user_id)
        role = Role(x_user_role.strip().lower())
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity from gateway",
        ) from None

    return CurrentUser(id=user_id, username=unquote(x_username), role=role)


# ---------------------------------------------------------------------------
# UsersClient: thin async wrapper around users-ms internal API
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def _get_users_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.users_ms_url,
        timeout=httpx.Timeout(5.0),
        follow_redirects=True,
    )


class UsersClient:
    """
    Thin async wrapper around the users-ms internal API.
    Forwards the caller's identity headers so users-ms auth deps work normally.
    """

    @property
    def _client(self) -> httpx.AsyncClient:
        return _get_users_http_client()

    def _headers(self, user: CurrentUser) -> dict[str, str]:
        return {
            "X-User-Id": str(user.id),
            "X-Username": quote(user.username),
            "X-User-Role": user.role.value,
        }

    async def get_by_ids(self, user_ids: set[UUID], user: CurrentUser) -> list[dict]:
        """Bulk-fetch users by ID for name enrichment. Fails silently."""
        if not user_ids:
            return []
        try:
            params = [("ids", str(uid)) for uid in user_ids]
            resp = await self._client.get(
                "/users/bulk", params=params, headers=self._headers(user)
            )
            if resp.status_code >= 400 or not resp.content:
                logger.warning("users-ms bulk lookup returned {}", resp.status_code)
                return []
            return resp.json()
        except (httpx.RequestError, ValueError):
            logger.opt(exception=True).warning("users-ms bulk lookup failed")
            return []


_users_client = UsersClient()


def get_users_client() -> UsersClient:
    return _users_client
