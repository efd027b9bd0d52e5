"""
Create-once objects the workspace ServiceAccount is granted access to
"""

import logging

from kubernetes.client.models import V1ConfigMap, V1ObjectMeta, V1Secret

from nimbletools_namespace_provisioner.configurators.base import KubernetesConfigurator
from nimbletools_namespace_provisioner.constants import (
    CREDENTIALS_SECRET_NAME,
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    PREFERENCES_CONFIGMAP_NAME,
)
from nimbletools_namespace_provisioner.exceptions import handle_kubernetes_errors
from nimbletools_namespace_provisioner.k8s_utils import create_if_absent, read_or_none
from nimbletools_namespace_provisioner.models import ResolutionContext

logger = logging.getLogger(__name__)


class CredentialsSecretConfigurator(KubernetesConfigurator):
    """Ensures the empty workspace credentials Secret exists. An existing one is never touched."""

    name = "credentials-secret"

    @handle_kubernetes_errors("creating", "credentials secret")
    def configure(self, ctx: ResolutionContext, namespace: str) -> None:
        existing = read_or_none(
            self.k8s_core.read_namespaced_secret,
            name=CREDENTIALS_SECRET_NAME,
            namespace=namespace,
            _request_timeout=self.request_timeout,
        )
        if existing is not None:
            return

        secret = V1Secret(
            metadata=V1ObjectMeta(
                name=CREDENTIALS_SECRET_NAME,
                labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE},
            ),
            type="Opaque",
        )
        if create_if_absent(
            self.k8s_core.create_namespaced_secret,
            secret,
            namespace,
            _request_timeout=self.request_timeout,
        ):
            logger.info("Created secret '%s' in namespace '%s'", CREDENTIALS_SECRET_NAME, namespace)


class PreferencesConfigMapConfigurator(KubernetesConfigurator):
    """Ensures the empty workspace preferences ConfigMap exists"""

    name = "preferences-configmap"

    @handle_kubernetes_errors("creating", "preferences configmap")
    def configure(self, ctx: ResolutionContext, namespace: str) -> None:
        existing = read_or_none(
            self.k8s_core.read_namespaced_config_map,
            name=PREFERENCES_CONFIGMAP_NAME,
            namespace=namespace,
            _request_timeout=self.request_timeout,
        )
        if existing is not None:
            return

        config_map = V1ConfigMap(
            metadata=V1ObjectMeta(
                name=PREFERENCES_CONFIGMAP_NAME,
                labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE},
            )
        )
        if create_if_absent(
            self.k8s_core.create_namespaced_config_map,
            config_map,
            namespace,
            _request_timeout=self.request_timeout,
        ):
            logger.info(
                "Created configmap '%s' in namespace '%s'", PREFERENCES_CONFIGMAP_NAME, namespace
            )
