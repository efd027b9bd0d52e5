"""
Workspace ServiceAccount provisioning with rbac.authorization.k8s.io objects
"""

from kubernetes.client import RbacV1Subject
from kubernetes.client.models import (
    V1ObjectMeta,
    V1PolicyRule,
    V1Role,
    V1RoleBinding,
    V1RoleRef,
)

from nimbletools_namespace_provisioner.constants import RBAC_API_GROUP
from nimbletools_namespace_provisioner.exceptions import handle_kubernetes_errors
from nimbletools_namespace_provisioner.k8s_utils import create_or_replace, read_or_none
from nimbletools_namespace_provisioner.rbac.service_account import (
    RoleTemplate,
    WorkspaceServiceAccount,
)


def build_role(namespace: str, role: RoleTemplate) -> V1Role:
    return V1Role(
        api_version=f"{RBAC_API_GROUP}/v1",
        kind="Role",
        metadata=V1ObjectMeta(name=role.name, namespace=namespace),
        rules=[
            V1PolicyRule(
                api_groups=list(role.api_groups),
                resources=list(role.resources),
                resource_names=list(role.resource_names) or None,
                verbs=list(role.verbs),
            )
        ],
    )


def build_role_binding(
    namespace: str,
    binding_name: str,
    role_name: str,
    cluster_role: bool,
    subject: RbacV1Subject,
) -> V1RoleBinding:
    return V1RoleBinding(
        api_version=f"{RBAC_API_GROUP}/v1",
        kind="RoleBinding",
        metadata=V1ObjectMeta(name=binding_name, namespace=namespace),
        role_ref=V1RoleRef(
            api_group=RBAC_API_GROUP,
            kind="ClusterRole" if cluster_role else "Role",
            name=role_name,
        ),
        subjects=[subject],
    )


class KubernetesRbacProvisioner(WorkspaceServiceAccount):
    """Workspace ServiceAccount with plain Kubernetes Roles and RoleBindings"""

    @handle_kubernetes_errors("applying", "role")
    def apply_role(self, namespace: str, role: RoleTemplate) -> V1Role:
        rbac = self.clients.rbac_v1
        return create_or_replace(
            rbac.create_namespaced_role,
            rbac.replace_namespaced_role,
            role.name,
            build_role(namespace, role),
            namespace=namespace,
            _request_timeout=self.clients.request_timeout,
        )

    @handle_kubernetes_errors("applying", "role binding")
    def apply_role_binding(
        self, namespace: str, role_name: str, binding_name: str, cluster_role: bool
    ) -> V1RoleBinding:
        subject = RbacV1Subject(
            kind="ServiceAccount", name=self.service_account_name, namespace=namespace
        )
        rbac = self.clients.rbac_v1
        return create_or_replace(
            rbac.create_namespaced_role_binding,
            rbac.replace_namespaced_role_binding,
            binding_name,
            build_role_binding(namespace, binding_name, role_name, cluster_role, subject),
            namespace=namespace,
            _request_timeout=self.clients.request_timeout,
        )

    @handle_kubernetes_errors("reading", "cluster role")
    def cluster_role_exists(self, name: str) -> bool:
        cluster_role = read_or_none(
            self.clients.rbac_v1.read_cluster_role,
            name=name,
            _request_timeout=self.clients.request_timeout,
        )
        return cluster_role is not None
