"""
Community provider implementation.

This provider allows open access with no authentication. Every request
acts as the single community user, and the collaborators are kept in
memory so that the service runs without an external backend.
"""

import logging
import threading
from typing import Any

from nimbletools_namespace_provisioner.collaborators import Collaborators
from nimbletools_namespace_provisioner.models import ResolutionContext, SshPair, User

logger = logging.getLogger(__name__)

COMMUNITY_USER_ID = "00000000-0000-0000-0000-000000000001"
COMMUNITY_USERNAME = "community"


class InMemoryPreferenceStore:
    """Preference store kept in process memory"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._preferences: dict[str, dict[str, str]] = {}

    def find(self, user_id: str) -> dict[str, str]:
        with self._lock:
            return dict(self._preferences.get(user_id, {}))

    def update(self, user_id: str, preferences: dict[str, str]) -> None:
        with self._lock:
            self._preferences[user_id] = dict(preferences)


class InMemoryUserDirectory:
    """User directory filled from authenticated requests"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, User] = {}

    def register(self, user: User) -> None:
        with self._lock:
            self._users[user.id] = user

    def get_by_id(self, user_id: str) -> User:
        with self._lock:
            try:
                return self._users[user_id]
            except KeyError:
                raise LookupError(f"User '{user_id}' not found") from None


class NoTokenManager:
    """Token manager without any stored tokens"""

    def get(self, ctx: ResolutionContext, scm_server_url: str) -> str | None:
        return None

    def store(self, ctx: ResolutionContext, scm_server_url: str) -> None:
        logger.debug("Community edition does not store tokens for %s", scm_server_url)

    def remove(self, ctx: ResolutionContext, scm_server_url: str) -> None:
        logger.debug("Community edition has no token to remove for %s", scm_server_url)


class NoSshKeyStore:
    """SSH key store without any keys"""

    def get_pairs(self, user_id: str, scope: str) -> list[SshPair]:
        return []


class CommunityProvider:
    """
    Community provider

    It simply implements the expected methods (duck typing).
    """

    def __init__(self, **kwargs: Any):
        """Initialize community provider."""
        self.config = kwargs
        self.user = User(
            id=str(kwargs.get("user_id", COMMUNITY_USER_ID)),
            name=str(kwargs.get("username", COMMUNITY_USERNAME)),
            email=str(kwargs.get("email", "")),
        )
        self.user_directory = InMemoryUserDirectory()
        self.user_directory.register(self.user)
        self._collaborators = Collaborators(
            preference_store=InMemoryPreferenceStore(),
            user_directory=self.user_directory,
            token_manager=NoTokenManager(),
            ssh_key_store=NoSshKeyStore(),
        )
        logger.info("Community provider initialized for user '%s'", self.user.name)

    async def validate_token(self, _token: str) -> dict[str, Any] | None:
        """
        Validate a token - always returns the community user.

        Args:
            token: Authentication token (ignored)

        Returns:
            User dictionary with community defaults
        """
        return {"user_id": self.user.id, "username": self.user.name, "email": self.user.email}

    async def check_permission(self, _user: dict[str, Any], _resource: str, _action: str) -> bool:
        """Check permissions - always allowed in community edition."""
        return True

    def collaborators(self) -> Collaborators:
        return self._collaborators

    async def initialize(self) -> None:
        """Initialize provider - no-op for community."""
        logger.info("Community provider ready")

    async def shutdown(self) -> None:
        """Shutdown provider - no-op for community."""
        logger.info("Community provider shutdown")
