"""
Actor resolution.

Turns a (user id, anonymous token) pair into the actor an interaction is
attributed to. Anonymous tokens are never stored: only their keyed
HMAC-SHA256 digest is.
"""

import hashlib
import hmac
from dataclasses import dataclass
from typing import Any

from inkwell_core.exceptions import InteractionValidationError


@dataclass(frozen=True)
class AuthenticatedActor:
    """Logged-in user."""

    user_id: int

    @property
    def storage_key(self) -> str:
        return f"u:{self.user_id}"


@dataclass(frozen=True)
class AnonymousActor:
    """Anonymous client identified by a token digest."""

    digest: str

    @property
    def storage_key(self) -> str:
        return f"a:{self.digest}"


Actor = AuthenticatedActor | AnonymousActor


def coerce_id(value: Any) -> int:
    """Coerce an identifier to a non-negative int, 0 when unusable."""
    if isinstance(value, bool):
        return 0
    try:
        return abs(int(value))
    except (TypeError, ValueError):
        return 0


class ActorResolver:
    """Resolve request identity into a storage-safe actor."""

    def __init__(self, secret: str, max_token_length: int = 128) -> None:
        """
        Initialize actor resolver.

        Args:
            secret: Server-wide HMAC key.
            max_token_length: Longest accepted anonymous token.
        """
        self._secret = secret.encode("utf-8")
        self.max_token_length = max_token_length

    def hash_token(self, anonymous_token: str | None) -> str | None:
        """
        Digest an anonymous token.

        Args:
            anonymous_token: Client-opaque token.

        Returns:
            Hex HMAC-SHA256 digest, or None for empty or oversized tokens.
        """
        token = str(anonymous_token or "").strip()
        if not token or len(token) > self.max_token_length:
            return None
        return hmac.new(self._secret, token.encode("utf-8"), hashlib.sha256).hexdigest()

    def resolve(self, user_id: Any, anonymous_token: str | None = None) -> Actor | None:
        """
        Resolve the acting identity.

        A positive user id always wins and the token is ignored.

        Args:
            user_id: Authenticated user id (0 or None for anonymous).
            anonymous_token: Anonymous client token.

        Returns:
            The actor, or None when neither identity is usable.
        """
        uid = coerce_id(user_id)
        if uid > 0:
            return AuthenticatedActor(uid)

        digest = self.hash_token(anonymous_token)
        if digest is None:
            return None
        return AnonymousActor(digest)

    def require(self, user_id: Any, anonymous_token: str | None = None) -> Actor:
        """
        Resolve the acting identity for a write.

        Raises:
            InteractionValidationError: If no identity could be resolved.
        """
        actor = self.resolve(user_id, anonymous_token)
        if actor is None:
            raise InteractionValidationError("Missing or invalid identity", code="invalid_actor")
        return actor
