"""
Git identity ConfigMap mounted into workspaces as /etc/gitconfig
"""

import logging
import re
from collections.abc import Sequence

from kubernetes.client.models import V1ConfigMap, V1ObjectMeta

from nimbletools_namespace_provisioner.collaborators import GitUserDataFetcher
from nimbletools_namespace_provisioner.configurators.base import KubernetesConfigurator
from nimbletools_namespace_provisioner.constants import (
    DEV_WORKSPACE_MOUNT_AS_ANNOTATION,
    DEV_WORKSPACE_MOUNT_LABEL,
    DEV_WORKSPACE_MOUNT_PATH_ANNOTATION,
    DEV_WORKSPACE_WATCH_CONFIGMAP_LABEL,
    GIT_USERDATA_CONFIGMAP_NAME,
)
from nimbletools_namespace_provisioner.exceptions import (
    ProviderUnavailableError,
    handle_kubernetes_errors,
)
from nimbletools_namespace_provisioner.k8s_utils import (
    KubernetesClients,
    create_or_replace,
    read_or_none,
)
from nimbletools_namespace_provisioner.models import ResolutionContext

logger = logging.getLogger(__name__)

CONFIGMAP_DATA_KEY = "gitconfig"
GITCONFIG_CONFIGMAP_LABELS = {
    DEV_WORKSPACE_MOUNT_LABEL: "true",
    DEV_WORKSPACE_WATCH_CONFIGMAP_LABEL: "true",
}
GITCONFIG_CONFIGMAP_ANNOTATIONS = {
    DEV_WORKSPACE_MOUNT_AS_ANNOTATION: "subpath",
    DEV_WORKSPACE_MOUNT_PATH_ANNOTATION: "/etc",
}
# Sections replaced when the identity is regenerated
REGENERATED_SECTIONS = ("user", "http")

USERNAME_PATTERN = re.compile(r"\[user\][\s\S]*?name\s*=\s*(?P<username>.*)")
EMAIL_PATTERN = re.compile(r"\[user\][\s\S]*?email\s*=\s*(?P<email>.*)")
EMPTY_STRING_PATTERN = re.compile(r"[\"']\s*[\"']")
SECTION_PATTERN = re.compile(r"\[(?P<section>[a-zA-Z0-9]+)\](\n\s*\S*\s*=.*)*")


def identity_from_gitconfig(gitconfig: str) -> tuple[str, str] | None:
    """Extract a non-empty (name, email) pair from the [user] section."""
    if "[user]" not in gitconfig:
        return None
    username = USERNAME_PATTERN.search(gitconfig)
    email = EMAIL_PATTERN.search(gitconfig)
    if username is None or email is None:
        return None
    name_value = username.group("username").strip()
    email_value = email.group("email").strip()
    if not name_value or not email_value:
        return None
    if EMPTY_STRING_PATTERN.fullmatch(name_value) or EMPTY_STRING_PATTERN.fullmatch(email_value):
        return None
    return name_value, email_value


def other_sections(gitconfig: str) -> list[str]:
    """Return the sections other than [user] and [http], verbatim."""
    return [
        match.group(0)
        for match in SECTION_PATTERN.finditer(gitconfig)
        if match.group("section") not in REGENERATED_SECTIONS
    ]


def user_section(username: str, email: str) -> str:
    return f"[user]\n\tname = {username}\n\temail = {email}"


class GitconfigConfigurator(KubernetesConfigurator):
    """
    Keeps a git identity in the gitconfig ConfigMap.

    The ConfigMap is only written when it holds no usable identity and one
    of the fetchers returns one. Other sections already stored are kept.
    """

    name = "gitconfig"

    def __init__(
        self, clients: KubernetesClients, fetchers: Sequence[GitUserDataFetcher] = ()
    ) -> None:
        super().__init__(clients)
        self.fetchers = list(fetchers)

    def configure(self, ctx: ResolutionContext, namespace: str) -> None:
        gitconfig = self.read_gitconfig(namespace)
        stored_identity = identity_from_gitconfig(gitconfig) if gitconfig else None
        if stored_identity is not None:
            logger.debug("Namespace '%s' already has a git identity", namespace)
            return

        fetched_identity = self.fetch_identity(ctx)
        if fetched_identity is None:
            return

        sections = [user_section(*fetched_identity)]
        if gitconfig:
            sections.extend(other_sections(gitconfig))
        self.write_gitconfig(namespace, "\n".join(sections))
        logger.info("Stored git identity of user '%s' in namespace '%s'", ctx.user_name, namespace)

    def fetch_identity(self, ctx: ResolutionContext) -> tuple[str, str] | None:
        """Ask each fetcher in turn, the first complete identity wins."""
        for fetcher in self.fetchers:
            try:
                data = fetcher.fetch_git_user_data(ctx)
            except ProviderUnavailableError as e:
                logger.debug("Git user data fetcher %s returned no data: %s", fetcher, e.message)
                continue
            if data.scm_username and data.scm_user_email:
                return data.scm_username, data.scm_user_email
        return None

    @handle_kubernetes_errors("reading", "gitconfig configmap")
    def read_gitconfig(self, namespace: str) -> str | None:
        config_map = read_or_none(
            self.k8s_core.read_namespaced_config_map,
            name=GIT_USERDATA_CONFIGMAP_NAME,
            namespace=namespace,
            _request_timeout=self.request_timeout,
        )
        if config_map is None or not config_map.data:
            return None
        return config_map.data.get(CONFIGMAP_DATA_KEY) or None

    @handle_kubernetes_errors("writing", "gitconfig configmap")
    def write_gitconfig(self, namespace: str, gitconfig: str) -> None:
        config_map = V1ConfigMap(
            metadata=V1ObjectMeta(
                name=GIT_USERDATA_CONFIGMAP_NAME,
                labels=dict(GITCONFIG_CONFIGMAP_LABELS),
                annotations=dict(GITCONFIG_CONFIGMAP_ANNOTATIONS),
            ),
            data={CONFIGMAP_DATA_KEY: gitconfig},
        )
        create_or_replace(
            self.k8s_core.create_namespaced_config_map,
            self.k8s_core.replace_namespaced_config_map,
            GIT_USERDATA_CONFIGMAP_NAME,
            config_map,
            namespace=namespace,
            _request_timeout=self.request_timeout,
        )
