"""
Workspace ServiceAccount and its least-privilege role set.

The ServiceAccount the workspace pods run as gets a fixed catalog of
namespace Roles, each bound by a RoleBinding named after the
ServiceAccount, plus bindings to operator-declared ClusterRoles. Every
object has a stable name and is created or replaced, so preparing the
same namespace twice converges to the same set of objects.
"""

import logging
from dataclasses import dataclass
from typing import Any

from kubernetes.client.models import V1ObjectMeta, V1ServiceAccount

from nimbletools_namespace_provisioner.constants import (
    CONFIGMAPS_ROLE_NAME,
    CREDENTIALS_SECRET_NAME,
    EXEC_ROLE_NAME,
    METRICS_API_GROUP,
    METRICS_ROLE_NAME,
    PREFERENCES_CONFIGMAP_NAME,
    SECRETS_ROLE_NAME,
    VIEW_ROLE_NAME,
)
from nimbletools_namespace_provisioner.exceptions import (
    KubernetesInfrastructureError,
    handle_kubernetes_errors,
)
from nimbletools_namespace_provisioner.k8s_utils import (
    KubernetesClients,
    create_if_absent,
    read_or_none,
)
from nimbletools_namespace_provisioner.models import ResolutionContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleTemplate:
    """A namespace Role and the suffix of the binding that grants it"""

    name: str
    binding_suffix: str
    resources: tuple[str, ...]
    verbs: tuple[str, ...]
    api_groups: tuple[str, ...] = ("",)
    resource_names: tuple[str, ...] = ()


EXEC_ROLE = RoleTemplate(
    name=EXEC_ROLE_NAME,
    binding_suffix="exec",
    resources=("pods/exec",),
    verbs=("create",),
)
VIEW_ROLE = RoleTemplate(
    name=VIEW_ROLE_NAME,
    binding_suffix="view",
    resources=("pods", "services"),
    verbs=("list",),
)
METRICS_ROLE = RoleTemplate(
    name=METRICS_ROLE_NAME,
    binding_suffix="metrics",
    resources=("pods", "nodes"),
    verbs=("list", "get", "watch"),
    api_groups=(METRICS_API_GROUP,),
)
SECRETS_ROLE = RoleTemplate(
    name=SECRETS_ROLE_NAME,
    binding_suffix="secrets",
    resources=("secrets",),
    verbs=("get", "patch"),
    resource_names=(CREDENTIALS_SECRET_NAME,),
)
CONFIGMAPS_ROLE = RoleTemplate(
    name=CONFIGMAPS_ROLE_NAME,
    binding_suffix="configmaps",
    resources=("configmaps",),
    verbs=("get", "patch"),
    resource_names=(PREFERENCES_CONFIGMAP_NAME,),
)


class WorkspaceServiceAccount:
    """
    Common provisioning logic for the workspace ServiceAccount.

    Subclasses render Role and RoleBinding objects for one RBAC flavor by
    implementing apply_role, apply_role_binding and cluster_role_exists.
    """

    def __init__(
        self,
        clients: KubernetesClients,
        service_account_name: str,
        cluster_role_names: list[str] | None = None,
    ) -> None:
        self.clients = clients
        self.service_account_name = service_account_name
        self.cluster_role_names = list(cluster_role_names or [])

    def binding_name(self, suffix: str) -> str:
        return f"{self.service_account_name}-{suffix}"

    def prepare(self, ctx: ResolutionContext, namespace: str) -> None:
        """Ensure the ServiceAccount, the built-in roles and the cluster role bindings."""
        logger.debug(
            "Preparing service account '%s' in namespace '%s' for workspace '%s'",
            self.service_account_name,
            namespace,
            ctx.workspace_id,
        )
        self.ensure_service_account(namespace)

        self.ensure_role_with_binding(namespace, EXEC_ROLE)
        self.ensure_role_with_binding(namespace, VIEW_ROLE)
        self.ensure_metrics_role(namespace)
        self.ensure_role_with_binding(namespace, SECRETS_ROLE)
        self.ensure_role_with_binding(namespace, CONFIGMAPS_ROLE)

        self.ensure_cluster_role_bindings(namespace)

    @handle_kubernetes_errors("creating", "service account")
    def ensure_service_account(self, namespace: str) -> None:
        """Create the ServiceAccount unless it already exists. An existing one is left as is."""
        core = self.clients.core_v1
        existing = read_or_none(
            core.read_namespaced_service_account,
            name=self.service_account_name,
            namespace=namespace,
            _request_timeout=self.clients.request_timeout,
        )
        if existing is not None:
            return

        body = V1ServiceAccount(
            metadata=V1ObjectMeta(name=self.service_account_name),
            automount_service_account_token=True,
        )
        create_if_absent(
            core.create_namespaced_service_account,
            body,
            namespace,
            _request_timeout=self.clients.request_timeout,
        )
        logger.info(
            "Created service account '%s' in namespace '%s'", self.service_account_name, namespace
        )

    def ensure_role_with_binding(self, namespace: str, role: RoleTemplate) -> None:
        self.apply_role(namespace, role)
        self.apply_role_binding(
            namespace,
            role_name=role.name,
            binding_name=self.binding_name(role.binding_suffix),
            cluster_role=False,
        )

    def ensure_metrics_role(self, namespace: str) -> None:
        """Grant access to the metrics API if the cluster serves it and we may grant it."""
        try:
            if not self.supports_metrics_api():
                logger.debug("Metrics API is not available, skipping the metrics role")
                return
            self.ensure_role_with_binding(namespace, METRICS_ROLE)
        except KubernetesInfrastructureError as e:
            if not e.is_forbidden:
                raise
            logger.warning(
                "Unable to add metrics roles in namespace '%s' due to insufficient permissions. "
                "Workspace metrics will be disabled.",
                namespace,
            )

    @handle_kubernetes_errors("probing", "api group")
    def supports_metrics_api(self) -> bool:
        groups = self.clients.apis.get_api_versions(
            _request_timeout=self.clients.request_timeout
        )
        return any(group.name == METRICS_API_GROUP for group in groups.groups or [])

    def ensure_cluster_role_bindings(self, namespace: str) -> None:
        """
        Bind the declared cluster roles to the ServiceAccount.

        Bindings are numbered in declaration order, counting only cluster
        roles that exist, so the names stay stable between calls.
        """
        index = 0
        for cluster_role in self.cluster_role_names:
            if not self.cluster_role_exists(cluster_role):
                logger.warning(
                    "Unable to find the cluster role '%s'. Skip creating custom role binding.",
                    cluster_role,
                )
                continue
            self.apply_role_binding(
                namespace,
                role_name=cluster_role,
                binding_name=self.binding_name(f"cluster{index}"),
                cluster_role=True,
            )
            index += 1

    def apply_role(self, namespace: str, role: RoleTemplate) -> Any:
        raise NotImplementedError

    def apply_role_binding(
        self, namespace: str, role_name: str, binding_name: str, cluster_role: bool
    ) -> Any:
        raise NotImplementedError

    def cluster_role_exists(self, name: str) -> bool:
        raise NotImplementedError
