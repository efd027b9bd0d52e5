"""
Workspace ServiceAccount provisioning with authorization.openshift.io objects
"""

from typing import Any

from nimbletools_namespace_provisioner.constants import OPENSHIFT_AUTHORIZATION_GROUP
from nimbletools_namespace_provisioner.exceptions import handle_kubernetes_errors
from nimbletools_namespace_provisioner.k8s_utils import create_or_replace, read_or_none
from nimbletools_namespace_provisioner.rbac.service_account import (
    RoleTemplate,
    WorkspaceServiceAccount,
)

OPENSHIFT_AUTHORIZATION_VERSION = "v1"


def build_role(namespace: str, role: RoleTemplate) -> dict[str, Any]:
    rule: dict[str, Any] = {
        "apiGroups": list(role.api_groups),
        "resources": list(role.resources),
        "verbs": list(role.verbs),
    }
    if role.resource_names:
        rule["resourceNames"] = list(role.resource_names)
    return {
        "apiVersion": f"{OPENSHIFT_AUTHORIZATION_GROUP}/{OPENSHIFT_AUTHORIZATION_VERSION}",
        "kind": "Role",
        "metadata": {"name": role.name, "namespace": namespace},
        "rules": [rule],
    }


def build_role_binding(
    namespace: str,
    binding_name: str,
    role_name: str,
    cluster_role: bool,
    service_account_name: str,
) -> dict[str, Any]:
    role_ref: dict[str, Any] = {"name": role_name}
    if not cluster_role:
        role_ref["namespace"] = namespace
    return {
        "apiVersion": f"{OPENSHIFT_AUTHORIZATION_GROUP}/{OPENSHIFT_AUTHORIZATION_VERSION}",
        "kind": "RoleBinding",
        "metadata": {"name": binding_name, "namespace": namespace},
        "roleRef": role_ref,
        "subjects": [
            {"kind": "ServiceAccount", "name": service_account_name, "namespace": namespace}
        ],
        "userNames": [f"system:serviceaccount:{namespace}:{service_account_name}"],
    }


class OpenShiftRbacProvisioner(WorkspaceServiceAccount):
    """Workspace ServiceAccount with OpenShift Roles and RoleBindings"""

    def _custom_object_args(self, plural: str) -> dict[str, Any]:
        return {
            "group": OPENSHIFT_AUTHORIZATION_GROUP,
            "version": OPENSHIFT_AUTHORIZATION_VERSION,
            "plural": plural,
            "_request_timeout": self.clients.request_timeout,
        }

    @handle_kubernetes_errors("applying", "role")
    def apply_role(self, namespace: str, role: RoleTemplate) -> dict[str, Any]:
        custom = self.clients.custom
        return create_or_replace(
            custom.create_namespaced_custom_object,
            custom.replace_namespaced_custom_object,
            role.name,
            build_role(namespace, role),
            namespace=namespace,
            **self._custom_object_args("roles"),
        )

    @handle_kubernetes_errors("applying", "role binding")
    def apply_role_binding(
        self, namespace: str, role_name: str, binding_name: str, cluster_role: bool
    ) -> dict[str, Any]:
        custom = self.clients.custom
        return create_or_replace(
            custom.create_namespaced_custom_object,
            custom.replace_namespaced_custom_object,
            binding_name,
            build_role_binding(
                namespace, binding_name, role_name, cluster_role, self.service_account_name
            ),
            namespace=namespace,
            **self._custom_object_args("rolebindings"),
        )

    @handle_kubernetes_errors("reading", "cluster role")
    def cluster_role_exists(self, name: str) -> bool:
        cluster_role = read_or_none(
            self.clients.custom.get_cluster_custom_object,
            name=name,
            **self._custom_object_args("clusterroles"),
        )
        return cluster_role is not None
