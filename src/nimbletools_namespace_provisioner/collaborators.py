"""
Interfaces of the collaborators the provisioner consumes.

Implementations are duck-typed: anything exposing these methods can be
plugged in, typically by the configured provider.
"""

from dataclasses import dataclass, field
from typing import Protocol

from nimbletools_namespace_provisioner.models import GitUserData, ResolutionContext, SshPair, User


class PreferenceStore(Protocol):
    """Per-user key-value preference storage"""

    def find(self, user_id: str) -> dict[str, str]:
        """Return a copy of the user's preferences."""
        ...

    def update(self, user_id: str, preferences: dict[str, str]) -> None:
        """Replace the user's preferences."""
        ...


class UserDirectory(Protocol):
    """Lookup of user records"""

    def get_by_id(self, user_id: str) -> User:
        """Return the user or raise LookupError."""
        ...


class GitUserDataFetcher(Protocol):
    """Fetches the git identity of the current user from one SCM provider"""

    def fetch_git_user_data(self, ctx: ResolutionContext) -> GitUserData:
        """Raise ProviderUnavailableError when the provider cannot answer."""
        ...


class PersonalAccessTokenManager(Protocol):
    """Store of personal access tokens keyed by subject and SCM server URL"""

    def get(self, ctx: ResolutionContext, scm_server_url: str) -> str | None:
        """Return the stored token, validating it against the provider."""
        ...

    def store(self, ctx: ResolutionContext, scm_server_url: str) -> None:
        """Persist the token currently known for the SCM server."""
        ...

    def remove(self, ctx: ResolutionContext, scm_server_url: str) -> None:
        """Drop the stored token so a fresh one is requested next time."""
        ...


class SshKeyStore(Protocol):
    """Store of user SSH key pairs"""

    def get_pairs(self, user_id: str, scope: str) -> list[SshPair]:
        """Return the key pairs of the user for the given service scope."""
        ...


@dataclass
class Collaborators:
    """Collaborator implementations handed to the provisioning engine by a provider"""

    preference_store: PreferenceStore
    user_directory: UserDirectory
    token_manager: PersonalAccessTokenManager
    ssh_key_store: SshKeyStore
    git_user_data_fetchers: list[GitUserDataFetcher] = field(default_factory=list)
