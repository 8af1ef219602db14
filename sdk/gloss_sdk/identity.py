"""
Identity provider interface for the Gloss SDK.

The controller key of the calling author is derived outside the SDK (by a
wallet or key manager). The SDK only asks for it, once per client.

Invariants:
    - get_controller_key() is called at most once per CachedIdentity
    - A failed lookup is not cached; the next call retries
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from typing import Optional, Protocol, runtime_checkable

from .errors import IdentityError

logger = logging.getLogger(__name__)


@runtime_checkable
class IdentityProvider(Protocol):
    """Source of the caller's controller (identity) key."""

    @abstractmethod
    async def get_controller_key(self) -> str:
        """Return the caller's identity key.

        Raises:
            IdentityError: If no key can be produced
        """
        ...


class StaticIdentityProvider:
    """Identity provider returning a fixed key (tests, scripts)."""

    def __init__(self, controller_key: str) -> None:
        if not controller_key:
            raise IdentityError("Controller key must be a non-empty string")
        self._controller_key = controller_key
        self.calls = 0

    async def get_controller_key(self) -> str:
        self.calls += 1
        return self._controller_key


class CachedIdentity:
    """Memoizes the controller key of an identity provider."""

    def __init__(self, provider: IdentityProvider) -> None:
        self._provider = provider
        self._key: Optional[str] = None

    @property
    def cached(self) -> Optional[str]:
        return self._key

    async def get(self) -> str:
        if self._key is None:
            key = await self._provider.get_controller_key()
            if not isinstance(key, str) or not key:
                raise IdentityError("Identity provider returned an empty controller key")
            self._key = key
            logger.debug("Identity key resolved")
        return self._key
