"""
Workspace ServiceAccount RBAC provisioning
"""

import logging

from nimbletools_namespace_provisioner.config import ProvisionerSettings
from nimbletools_namespace_provisioner.k8s_utils import KubernetesClients
from nimbletools_namespace_provisioner.rbac.kubernetes import KubernetesRbacProvisioner
from nimbletools_namespace_provisioner.rbac.openshift import OpenShiftRbacProvisioner
from nimbletools_namespace_provisioner.rbac.service_account import WorkspaceServiceAccount

logger = logging.getLogger(__name__)

RBAC_PROVISIONERS: dict[str, type[WorkspaceServiceAccount]] = {
    "kubernetes": KubernetesRbacProvisioner,
    "openshift": OpenShiftRbacProvisioner,
}


def create_rbac_provisioner(
    settings: ProvisionerSettings, clients: KubernetesClients
) -> WorkspaceServiceAccount | None:
    """Build the RBAC provisioner for the configured flavor, None if RBAC is disabled."""
    if not settings.service_account_name:
        logger.info("No workspace service account configured, RBAC provisioning is disabled")
        return None
    provisioner_class = RBAC_PROVISIONERS[settings.rbac_flavor]
    return provisioner_class(
        clients,
        settings.service_account_name,
        settings.workspace_sa_cluster_roles,
    )


__all__ = [
    "KubernetesRbacProvisioner",
    "OpenShiftRbacProvisioner",
    "WorkspaceServiceAccount",
    "create_rbac_provisioner",
]
