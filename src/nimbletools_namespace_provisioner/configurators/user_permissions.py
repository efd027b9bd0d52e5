"""
Grants the workspace owner configured cluster roles inside their namespace
"""

import logging

from kubernetes.client import RbacV1Subject
from kubernetes.client.models import V1ObjectMeta, V1RoleBinding, V1RoleRef

from nimbletools_namespace_provisioner.configurators.base import KubernetesConfigurator
from nimbletools_namespace_provisioner.constants import RBAC_API_GROUP
from nimbletools_namespace_provisioner.exceptions import handle_kubernetes_errors
from nimbletools_namespace_provisioner.k8s_utils import KubernetesClients, create_or_replace
from nimbletools_namespace_provisioner.models import ResolutionContext

logger = logging.getLogger(__name__)


class UserPermissionConfigurator(KubernetesConfigurator):
    """Binds each configured cluster role to the user with a RoleBinding of the same name"""

    name = "user-permissions"

    def __init__(self, clients: KubernetesClients, user_cluster_roles: list[str]) -> None:
        super().__init__(clients)
        self.user_cluster_roles = list(user_cluster_roles)

    def configure(self, ctx: ResolutionContext, namespace: str) -> None:
        for cluster_role in self.user_cluster_roles:
            self.bind(namespace, ctx.user_name, cluster_role)

    @handle_kubernetes_errors("binding", "user cluster role")
    def bind(self, namespace: str, user_name: str, cluster_role: str) -> V1RoleBinding:
        binding = V1RoleBinding(
            api_version=f"{RBAC_API_GROUP}/v1",
            kind="RoleBinding",
            metadata=V1ObjectMeta(name=cluster_role, namespace=namespace),
            role_ref=V1RoleRef(api_group=RBAC_API_GROUP, kind="ClusterRole", name=cluster_role),
            subjects=[RbacV1Subject(api_group=RBAC_API_GROUP, kind="User", name=user_name)],
        )
        rbac = self.clients.rbac_v1
        result = create_or_replace(
            rbac.create_namespaced_role_binding,
            rbac.replace_namespaced_role_binding,
            cluster_role,
            binding,
            namespace=namespace,
            _request_timeout=self.request_timeout,
        )
        logger.debug(
            "Bound cluster role '%s' to user '%s' in namespace '%s'",
            cluster_role,
            user_name,
            namespace,
        )
        return result
