"""Identity provider boundary.

Authentication and session management live outside the wiki store. The store
only consumes the current identity ({id, displayName, roles}) through an
IdentityProvider.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from .models import Identity


class IdentityProvider(ABC):
    """Supplies the identity acting on the store, or None when anonymous."""

    @abstractmethod
    def current_identity(self) -> Optional[Identity]:
        ...


class StaticIdentityProvider(IdentityProvider):
    """Identity provider returning a fixed identity.

    Used by the CLI (identity from environment) and by tests.

    Example:
        >>> provider = StaticIdentityProvider.of("u1", "Ada", roles=["admin"])
        >>> provider.current_identity().has_role("admin")
        True
    """

    def __init__(self, identity: Optional[Identity] = None):
        self._identity = identity

    @classmethod
    def of(cls, user_id: str, display_name: str, roles: Iterable[str] = ()) -> "StaticIdentityProvider":
        return cls(Identity(id=user_id, display_name=display_name, roles=frozenset(roles)))

    @classmethod
    def anonymous(cls) -> "StaticIdentityProvider":
        return cls(None)

    def current_identity(self) -> Optional[Identity]:
        return self._identity

    def switch(self, identity: Optional[Identity]) -> None:
        """Replace the acting identity."""
        self._identity = identity
