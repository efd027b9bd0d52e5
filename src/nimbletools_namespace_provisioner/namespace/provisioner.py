"""
Ensures a workspace namespace exists with the expected labels and annotations
"""

import logging

from kubernetes.client.models import V1Namespace

from nimbletools_namespace_provisioner.exceptions import (
    InfrastructureError,
    KubernetesInfrastructureError,
)
from nimbletools_namespace_provisioner.models import ResolutionContext
from nimbletools_namespace_provisioner.namespace.naming import evaluate_annotations
from nimbletools_namespace_provisioner.namespace.store import NamespaceStore

logger = logging.getLogger(__name__)


class NamespaceProvisioner:
    """Creates or updates the namespace a workspace runs in"""

    def __init__(self, store: NamespaceStore, wait_timeout: int = 60) -> None:
        self.store = store
        self.wait_timeout = wait_timeout

    def ensure(
        self,
        ctx: ResolutionContext,
        name: str,
        can_create: bool,
        labels: dict[str, str],
        annotations: dict[str, str],
    ) -> V1Namespace:
        """
        Make sure the namespace exists.

        A missing namespace is created only when can_create is set, and the
        call returns once it is Active. An existing namespace gets missing
        labels and annotations merged in. Annotation values may use the
        <username> and <userid> placeholders.
        """
        annotations = evaluate_annotations(annotations, ctx)
        existing = self.store.read(name)

        if existing is None:
            if not can_create:
                raise InfrastructureError(
                    f"Namespace '{name}' does not exist and cannot be created "
                    f"for user '{ctx.user_name}'",
                    operation="creating",
                    resource=f"namespace:{name}",
                    workspace_id=ctx.workspace_id,
                    namespace=name,
                )
            logger.info("Creating namespace '%s' for user '%s'", name, ctx.user_name)
            created = self.store.create(name, labels, annotations)
            # a concurrent creator may have used other metadata
            self.store.merge_metadata(created, labels, annotations)
            return self.store.wait_until_active(created, self.wait_timeout)

        if labels or annotations:
            try:
                self.store.merge_metadata(existing, labels, annotations)
            except KubernetesInfrastructureError as e:
                if not e.is_forbidden:
                    raise
                logger.warning(
                    "Not allowed to label namespace '%s', leaving its metadata unchanged. "
                    "Grant the provisioner the 'patch' verb on namespaces to fix this.",
                    name,
                )
        return existing
