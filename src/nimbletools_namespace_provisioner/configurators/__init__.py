"""
Configurators finishing the setup of a provisioned namespace
"""

from nimbletools_namespace_provisioner.collaborators import Collaborators
from nimbletools_namespace_provisioner.config import ProvisionerSettings
from nimbletools_namespace_provisioner.configurators.base import (
    ConfiguratorPipeline,
    KubernetesConfigurator,
    NamespaceConfigurator,
)
from nimbletools_namespace_provisioner.configurators.gitconfig import GitconfigConfigurator
from nimbletools_namespace_provisioner.configurators.scm_tokens import (
    GitCredentialsConfigurator,
    OAuthTokenSecretsConfigurator,
)
from nimbletools_namespace_provisioner.configurators.ssh_keys import (
    SshConfigConfigurator,
    SshKeysConfigurator,
)
from nimbletools_namespace_provisioner.configurators.user_data import (
    UserPreferencesConfigurator,
    UserProfileConfigurator,
)
from nimbletools_namespace_provisioner.configurators.user_permissions import (
    UserPermissionConfigurator,
)
from nimbletools_namespace_provisioner.configurators.workspace_objects import (
    CredentialsSecretConfigurator,
    PreferencesConfigMapConfigurator,
)
from nimbletools_namespace_provisioner.k8s_utils import KubernetesClients


def default_configurators(
    settings: ProvisionerSettings,
    clients: KubernetesClients,
    collaborators: Collaborators,
) -> list[NamespaceConfigurator]:
    """Built-in configurators in the order they run."""
    return [
        CredentialsSecretConfigurator(clients),
        PreferencesConfigMapConfigurator(clients),
        UserPermissionConfigurator(clients, settings.user_cluster_roles),
        UserProfileConfigurator(clients, collaborators.user_directory),
        UserPreferencesConfigurator(
            clients, collaborators.user_directory, collaborators.preference_store
        ),
        GitCredentialsConfigurator(clients, collaborators.token_manager),
        OAuthTokenSecretsConfigurator(clients, collaborators.token_manager),
        SshKeysConfigurator(clients, collaborators.ssh_key_store),
        SshConfigConfigurator(clients),
        GitconfigConfigurator(clients, collaborators.git_user_data_fetchers),
    ]


__all__ = [
    "ConfiguratorPipeline",
    "KubernetesConfigurator",
    "NamespaceConfigurator",
    "default_configurators",
]
