"""
User profile and preferences Secrets mounted into workspaces
"""

import logging
import re

from kubernetes.client.models import V1ObjectMeta, V1Secret

from nimbletools_namespace_provisioner.collaborators import PreferenceStore, UserDirectory
from nimbletools_namespace_provisioner.configurators.base import (
    KubernetesConfigurator,
    encode_data,
)
from nimbletools_namespace_provisioner.constants import (
    DEV_WORKSPACE_MOUNT_AS_ANNOTATION,
    DEV_WORKSPACE_MOUNT_LABEL,
    DEV_WORKSPACE_MOUNT_PATH_ANNOTATION,
    DEV_WORKSPACE_WATCH_SECRET_LABEL,
    USER_PREFERENCES_SECRET_NAME,
    USER_PROFILE_SECRET_NAME,
)
from nimbletools_namespace_provisioner.exceptions import (
    InfrastructureError,
    handle_kubernetes_errors,
)
from nimbletools_namespace_provisioner.k8s_utils import KubernetesClients, create_or_replace
from nimbletools_namespace_provisioner.models import ResolutionContext, User

logger = logging.getLogger(__name__)

USER_PROFILE_MOUNT_PATH = "/config/user/profile"
USER_PREFERENCES_MOUNT_PATH = "/config/user/preferences"
PREFERENCE_NAME_MAX_LENGTH = 253

_INVALID_PREFERENCE_CHARS = re.compile(r"[^-._a-zA-Z0-9]+")
_REPEATED_DASHES = re.compile(r"-+")


def normalize_preference_name(name: str) -> str:
    """Turn a preference name into a valid Secret data key."""
    name = _INVALID_PREFERENCE_CHARS.sub("-", name)
    name = _REPEATED_DASHES.sub("-", name)
    return name[:PREFERENCE_NAME_MAX_LENGTH]


def mounted_secret(name: str, mount_path: str, data: dict[str, str], watch: bool) -> V1Secret:
    labels = {DEV_WORKSPACE_MOUNT_LABEL: "true"}
    if watch:
        labels[DEV_WORKSPACE_WATCH_SECRET_LABEL] = "true"
    return V1Secret(
        metadata=V1ObjectMeta(
            name=name,
            labels=labels,
            annotations={
                DEV_WORKSPACE_MOUNT_AS_ANNOTATION: "file",
                DEV_WORKSPACE_MOUNT_PATH_ANNOTATION: mount_path,
            },
        ),
        type="Opaque",
        data=data,
    )


class _UserSecretConfigurator(KubernetesConfigurator):
    def __init__(self, clients: KubernetesClients, user_directory: UserDirectory) -> None:
        super().__init__(clients)
        self.user_directory = user_directory

    def current_user(self, ctx: ResolutionContext) -> User:
        try:
            return self.user_directory.get_by_id(ctx.user_id)
        except LookupError as e:
            raise InfrastructureError(
                f"Could not find current user with id:{ctx.user_id}",
                operation="reading",
                resource=f"user:{ctx.user_id}",
                workspace_id=ctx.workspace_id,
            ) from e

    @handle_kubernetes_errors("writing", "secret")
    def write_secret(self, namespace: str, secret: V1Secret) -> None:
        create_or_replace(
            self.k8s_core.create_namespaced_secret,
            self.k8s_core.replace_namespaced_secret,
            secret.metadata.name,
            secret,
            namespace=namespace,
            _request_timeout=self.request_timeout,
        )


class UserProfileConfigurator(_UserSecretConfigurator):
    """Publishes the user's id, name and email to workspaces"""

    name = "user-profile"

    def configure(self, ctx: ResolutionContext, namespace: str) -> None:
        user = self.current_user(ctx)
        data = {
            "id": encode_data(user.id),
            "name": encode_data(user.name),
            "email": encode_data(user.email),
        }
        self.write_secret(
            namespace,
            mounted_secret(USER_PROFILE_SECRET_NAME, USER_PROFILE_MOUNT_PATH, data, watch=True),
        )


class UserPreferencesConfigurator(_UserSecretConfigurator):
    """Publishes the user's preferences to workspaces, one file per preference"""

    name = "user-preferences"

    def __init__(
        self,
        clients: KubernetesClients,
        user_directory: UserDirectory,
        preference_store: PreferenceStore,
    ) -> None:
        super().__init__(clients, user_directory)
        self.preference_store = preference_store

    def configure(self, ctx: ResolutionContext, namespace: str) -> None:
        user = self.current_user(ctx)
        preferences = self.preference_store.find(user.id)
        if not preferences:
            logger.warning(
                "Preferences of user with id:%s are empty, not creating the preferences secret",
                user.id,
            )
            return

        data = {
            normalize_preference_name(key): encode_data(value)
            for key, value in preferences.items()
        }
        self.write_secret(
            namespace,
            mounted_secret(
                USER_PREFERENCES_SECRET_NAME, USER_PREFERENCES_MOUNT_PATH, data, watch=False
            ),
        )
