"""
Personal access token hygiene for workspace namespaces
"""

import logging

from kubernetes.client.models import V1Secret

from nimbletools_namespace_provisioner.collaborators import PersonalAccessTokenManager
from nimbletools_namespace_provisioner.configurators.base import (
    KubernetesConfigurator,
    decode_data,
)
from nimbletools_namespace_provisioner.constants import (
    ANNOTATION_SCM_PERSONAL_ACCESS_TOKEN_NAME,
    ANNOTATION_SCM_URL,
    MERGED_GIT_CREDENTIALS_SECRET_NAME,
    OAUTH_2_PREFIX,
    PERSONAL_ACCESS_TOKEN_LABELS,
)
from nimbletools_namespace_provisioner.exceptions import (
    ProviderUnavailableError,
    ScmCommunicationError,
    handle_kubernetes_errors,
)
from nimbletools_namespace_provisioner.k8s_utils import (
    KubernetesClients,
    label_selector,
    read_or_none,
)
from nimbletools_namespace_provisioner.models import ResolutionContext

logger = logging.getLogger(__name__)


class _TokenSecretsConfigurator(KubernetesConfigurator):
    def __init__(
        self, clients: KubernetesClients, token_manager: PersonalAccessTokenManager
    ) -> None:
        super().__init__(clients)
        self.token_manager = token_manager

    @handle_kubernetes_errors("listing", "personal access token secrets")
    def token_secrets(self, namespace: str) -> list[V1Secret]:
        """List the personal access token Secrets that name their SCM server."""
        secrets = self.k8s_core.list_namespaced_secret(
            namespace=namespace,
            label_selector=label_selector(PERSONAL_ACCESS_TOKEN_LABELS),
            _request_timeout=self.request_timeout,
        )
        return [
            secret
            for secret in secrets.items or []
            if ANNOTATION_SCM_URL in (secret.metadata.annotations or {})
        ]


class OAuthTokenSecretsConfigurator(_TokenSecretsConfigurator):
    """
    Re-validates stored OAuth tokens against their SCM provider.

    A token the provider cannot be reached for is removed so that a fresh
    one is requested next time.
    """

    name = "oauth-token-secrets"

    def configure(self, ctx: ResolutionContext, namespace: str) -> None:
        for secret in self.token_secrets(namespace):
            annotations = secret.metadata.annotations
            token_name = annotations.get(ANNOTATION_SCM_PERSONAL_ACCESS_TOKEN_NAME, "")
            if not token_name.startswith(OAUTH_2_PREFIX):
                continue

            scm_url = annotations[ANNOTATION_SCM_URL]
            try:
                self.token_manager.get(ctx, scm_url)
            except ScmCommunicationError as e:
                logger.error(
                    "Could not validate OAuth token for %s, removing it: %s", scm_url, e.message
                )
                self.remove_token(ctx, scm_url)
            except ProviderUnavailableError as e:
                logger.error("Could not validate OAuth token for %s: %s", scm_url, e.message)

    def remove_token(self, ctx: ResolutionContext, scm_url: str) -> None:
        try:
            self.token_manager.remove(ctx, scm_url)
        except ProviderUnavailableError as e:
            logger.error("Could not remove OAuth token for %s: %s", scm_url, e.message)


class GitCredentialsConfigurator(_TokenSecretsConfigurator):
    """Stores tokens that are missing from the merged git credentials Secret"""

    name = "git-credentials"

    def configure(self, ctx: ResolutionContext, namespace: str) -> None:
        merged = self.merged_credentials(namespace)
        for secret in self.token_secrets(namespace):
            token = decode_data((secret.data or {}).get("token"))
            if merged is not None and token and token in merged:
                continue

            scm_url = secret.metadata.annotations[ANNOTATION_SCM_URL]
            try:
                self.token_manager.store(ctx, scm_url)
                logger.info("Stored git credentials for %s in namespace '%s'", scm_url, namespace)
            except ProviderUnavailableError as e:
                logger.warning("Could not store git credentials for %s: %s", scm_url, e.message)

    @handle_kubernetes_errors("reading", "merged git credentials secret")
    def merged_credentials(self, namespace: str) -> str | None:
        secret = read_or_none(
            self.k8s_core.read_namespaced_secret,
            name=MERGED_GIT_CREDENTIALS_SECRET_NAME,
            namespace=namespace,
            _request_timeout=self.request_timeout,
        )
        if secret is None:
            return None
        return decode_data((secret.data or {}).get("credentials"))
