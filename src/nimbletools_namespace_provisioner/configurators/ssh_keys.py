"""
SSH key Secrets for git access from workspaces
"""

import logging
import re

from kubernetes.client.models import V1ObjectMeta, V1Secret

from nimbletools_namespace_provisioner.collaborators import SshKeyStore
from nimbletools_namespace_provisioner.configurators.base import (
    KubernetesConfigurator,
    decode_data,
    encode_data,
)
from nimbletools_namespace_provisioner.constants import (
    DEV_WORKSPACE_MOUNT_LABEL,
    DEV_WORKSPACE_MOUNT_PATH_ANNOTATION,
    DEV_WORKSPACE_SSH_SECRET_NAME,
    DEV_WORKSPACE_WATCH_SECRET_LABEL,
    SSH_KEY_SECRET_NAME,
)
from nimbletools_namespace_provisioner.exceptions import handle_kubernetes_errors
from nimbletools_namespace_provisioner.k8s_utils import (
    KubernetesClients,
    create_or_replace,
    read_or_none,
)
from nimbletools_namespace_provisioner.models import ResolutionContext, SshPair

logger = logging.getLogger(__name__)

SSH_BASE_CONFIG_PATH = "/etc/ssh/"
SSH_CONFIG_KEY = "ssh_config"
VCS_SCOPE = "vcs"
DEFAULT_KEY_PREFIX = "default-"
KEY_NAME_MAX_LENGTH = 253

CONFIG_KEY_PATTERN = re.compile(r"[-._a-zA-Z0-9]+")
VALID_DOMAIN_PATTERN = re.compile(
    r"[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*"
)

DEV_WORKSPACE_SSH_CONFIG = (
    "host *\n"
    "  IdentityFile /etc/ssh/dwo_ssh_key\n"
    "  StrictHostKeyChecking = no\n"
    "\n"
    "Include /etc/ssh/ssh_config.d/*.conf"
)


def is_valid_key_name(name: str) -> bool:
    """A key name must work both as a Secret data key and as an SSH host."""
    if not name or len(name) > KEY_NAME_MAX_LENGTH:
        return False
    return bool(CONFIG_KEY_PATTERN.fullmatch(name)) and bool(VALID_DOMAIN_PATTERN.fullmatch(name))


def build_host_config(name: str) -> str:
    host = "*" if name.startswith(DEFAULT_KEY_PREFIX) else name
    return f"host {host}\nIdentityFile {SSH_BASE_CONFIG_PATH}{name}\nStrictHostKeyChecking = no\n\n"


def build_ssh_secret_data(pairs: list[SshPair]) -> dict[str, str]:
    """Secret data holding each key pair and an ssh_config with one stanza per key."""
    data: dict[str, str] = {}
    ssh_config = []
    for pair in pairs:
        ssh_config.append(build_host_config(pair.name))
        if pair.private_key:
            data[pair.name] = encode_data(pair.private_key)
            data[f"{pair.name}.pub"] = encode_data(pair.public_key)
    data[SSH_CONFIG_KEY] = encode_data("".join(ssh_config))
    return data


class SshKeysConfigurator(KubernetesConfigurator):
    """Mounts the user's VCS SSH keys into workspaces under /etc/ssh"""

    name = "ssh-keys"

    def __init__(self, clients: KubernetesClients, ssh_key_store: SshKeyStore) -> None:
        super().__init__(clients)
        self.ssh_key_store = ssh_key_store

    def configure(self, ctx: ResolutionContext, namespace: str) -> None:
        pairs = self.ssh_key_store.get_pairs(ctx.user_id, VCS_SCOPE)

        invalid = [pair.name for pair in pairs if not is_valid_key_name(pair.name)]
        if invalid:
            logger.warning(
                "SSH keys %s have invalid names and can't be mounted to namespace '%s'",
                invalid,
                namespace,
            )
            pairs = [pair for pair in pairs if is_valid_key_name(pair.name)]

        if not pairs:
            return
        self.write_secret(namespace, pairs)

    @handle_kubernetes_errors("writing", "ssh key secret")
    def write_secret(self, namespace: str, pairs: list[SshPair]) -> None:
        secret = V1Secret(
            metadata=V1ObjectMeta(
                name=SSH_KEY_SECRET_NAME,
                labels={
                    DEV_WORKSPACE_MOUNT_LABEL: "true",
                    DEV_WORKSPACE_WATCH_SECRET_LABEL: "true",
                },
                annotations={DEV_WORKSPACE_MOUNT_PATH_ANNOTATION: SSH_BASE_CONFIG_PATH},
            ),
            type="Opaque",
            data=build_ssh_secret_data(pairs),
        )
        create_or_replace(
            self.k8s_core.create_namespaced_secret,
            self.k8s_core.replace_namespaced_secret,
            SSH_KEY_SECRET_NAME,
            secret,
            namespace=namespace,
            _request_timeout=self.request_timeout,
        )
        logger.info("Mounted %d SSH keys into namespace '%s'", len(pairs), namespace)


class SshConfigConfigurator(KubernetesConfigurator):
    """Rewrites the ssh_config of the DevWorkspace SSH Secret when it differs"""

    name = "ssh-config"

    @handle_kubernetes_errors("patching", "ssh config secret")
    def configure(self, ctx: ResolutionContext, namespace: str) -> None:
        secret = read_or_none(
            self.k8s_core.read_namespaced_secret,
            name=DEV_WORKSPACE_SSH_SECRET_NAME,
            namespace=namespace,
            _request_timeout=self.request_timeout,
        )
        if secret is None or not secret.data or SSH_CONFIG_KEY not in secret.data:
            return
        if decode_data(secret.data[SSH_CONFIG_KEY]).rstrip("\n") == DEV_WORKSPACE_SSH_CONFIG:
            return

        self.k8s_core.patch_namespaced_secret(
            name=DEV_WORKSPACE_SSH_SECRET_NAME,
            namespace=namespace,
            body={"data": {SSH_CONFIG_KEY: encode_data(DEV_WORKSPACE_SSH_CONFIG)}},
            _request_timeout=self.request_timeout,
        )
        logger.info(
            "Updated ssh_config of secret '%s' in namespace '%s'",
            DEV_WORKSPACE_SSH_SECRET_NAME,
            namespace,
        )
