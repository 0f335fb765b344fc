"""Identity providers supplying the opaque per-session user id."""

from __future__ import annotations

import abc
import logging
import uuid
from typing import Optional

logger = logging.getLogger(__name__)


class IdentityProvider(metaclass=abc.ABCMeta):
    """Source of the identity that scopes history writes and reads."""

    @abc.abstractmethod
    async def resolve(self) -> str:
        """Return the session identity. Repeated calls return the same value."""
        raise NotImplementedError


class StaticIdentityProvider(IdentityProvider):
    """Identity supplied up front, e.g. from configuration."""

    def __init__(self, identity: str) -> None:
        if not identity or not identity.strip():
            raise ValueError("identity must be a non-empty string")
        self._identity = identity.strip()

    async def resolve(self) -> str:
        return self._identity


class AnonymousIdentityProvider(IdentityProvider):
    """Random identity generated once per session."""

    def __init__(self) -> None:
        self._identity: Optional[str] = None

    async def resolve(self) -> str:
        if self._identity is None:
            self._identity = str(uuid.uuid4())
            logger.info(f"Using anonymous identity {self._identity}")
        return self._identity


def identity_provider_for(identity: Optional[str]) -> IdentityProvider:
    """Return a static provider for ``identity`` or an anonymous one."""
    if identity and identity.strip():
        return StaticIdentityProvider(identity)
    return AnonymousIdentityProvider()
