"""Scoped credential storage for the current auth token."""

from typing import Optional

from storefront.cache.policy import TOKEN_KEY
from storefront.http.store import KeyValueStore
from storefront.utils.logger import get_logger

logger = get_logger("credentials")


class TokenStore:
    """
    Holds the bearer token the API client attaches to requests.

    The client clears it on HTTP 401; callers then prompt re-authentication.
    """

    def __init__(self, store: KeyValueStore, key: str = TOKEN_KEY):
        self._store = store
        self.key = key

    async def get_token(self) -> Optional[str]:
        token = await self._store.get(self.key)
        return token or None

    async def set_token(self, token: str) -> bool:
        """Store the token. Returns True when it replaced a different one."""
        if not token:
            raise ValueError("token must be a non-empty string")
        previous = await self.get_token()
        await self._store.set(self.key, token)
        return previous is not None and previous != token

    async def clear(self) -> None:
        removed = await self._store.delete(self.key)
        if removed:
            logger.info("credentials: token cleared key=%s", self.key)
