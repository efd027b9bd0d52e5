"""
Idempotent access to the cluster Namespace API
"""

import logging

from kubernetes import watch
from kubernetes.client.models import V1Namespace, V1ObjectMeta
from kubernetes.client.rest import ApiException

from nimbletools_namespace_provisioner.constants import NAMESPACE_PHASE_ACTIVE, PHASE_ATTRIBUTE
from nimbletools_namespace_provisioner.exceptions import (
    InfrastructureError,
    handle_kubernetes_errors,
)
from nimbletools_namespace_provisioner.k8s_utils import (
    KubernetesClients,
    label_selector,
    read_or_none,
)
from nimbletools_namespace_provisioner.models import NamespaceMeta

logger = logging.getLogger(__name__)


def as_namespace_meta(namespace: V1Namespace) -> NamespaceMeta:
    """Project a live Namespace object onto the NamespaceMeta read-model."""
    attributes: dict[str, str] = {}
    if namespace.status is not None and namespace.status.phase:
        attributes[PHASE_ATTRIBUTE] = namespace.status.phase
    return NamespaceMeta(name=namespace.metadata.name, attributes=attributes)


def _missing_entries(actual: dict[str, str] | None, wanted: dict[str, str]) -> dict[str, str]:
    actual = actual or {}
    return {key: value for key, value in wanted.items() if actual.get(key) != value}


class NamespaceStore:
    """Thin wrapper around Namespace get/list/create/patch/delete"""

    def __init__(self, clients: KubernetesClients) -> None:
        self.clients = clients
        self.k8s_core = clients.core_v1

    @handle_kubernetes_errors("reading", "namespace")
    def read(self, name: str) -> V1Namespace | None:
        return read_or_none(
            self.k8s_core.read_namespace,
            name=name,
            _request_timeout=self.clients.request_timeout,
        )

    def fetch(self, name: str) -> NamespaceMeta | None:
        """Fetch the namespace as a NamespaceMeta, None if it does not exist."""
        namespace = self.read(name)
        return as_namespace_meta(namespace) if namespace is not None else None

    def exists(self, name: str) -> bool:
        return self.read(name) is not None

    @handle_kubernetes_errors("listing", "namespaces")
    def list_labeled(self, labels: dict[str, str]) -> list[V1Namespace]:
        """List namespaces carrying all given labels."""
        namespaces = self.k8s_core.list_namespace(
            label_selector=label_selector(labels),
            _request_timeout=self.clients.request_timeout,
        )
        return list(namespaces.items or [])

    @handle_kubernetes_errors("creating", "namespace")
    def create(
        self, name: str, labels: dict[str, str], annotations: dict[str, str]
    ) -> V1Namespace:
        """Create the namespace; an already existing one is returned as is."""
        body = V1Namespace(
            metadata=V1ObjectMeta(
                name=name,
                labels=dict(labels) or None,
                annotations=dict(annotations) or None,
            )
        )
        try:
            created = self.k8s_core.create_namespace(
                body=body, _request_timeout=self.clients.request_timeout
            )
            logger.info("Created namespace %s", name)
            return created
        except ApiException as e:
            if e.status != 409:
                raise
        logger.info("Namespace %s was created concurrently, reusing it", name)
        existing = self.k8s_core.read_namespace(
            name=name, _request_timeout=self.clients.request_timeout
        )
        return existing

    @handle_kubernetes_errors("labeling", "namespace")
    def merge_metadata(
        self,
        namespace: V1Namespace,
        labels: dict[str, str],
        annotations: dict[str, str],
    ) -> bool:
        """
        Merge labels and annotations into an existing namespace.

        Only missing or different entries are patched, entries added by
        others are left in place. Returns True if a patch was sent.
        """
        missing_labels = _missing_entries(namespace.metadata.labels, labels)
        missing_annotations = _missing_entries(namespace.metadata.annotations, annotations)
        if not missing_labels and not missing_annotations:
            return False

        metadata: dict[str, dict[str, str]] = {}
        if missing_labels:
            metadata["labels"] = missing_labels
        if missing_annotations:
            metadata["annotations"] = missing_annotations

        self.k8s_core.patch_namespace(
            name=namespace.metadata.name,
            body={"metadata": metadata},
            _request_timeout=self.clients.request_timeout,
        )
        logger.info(
            "Merged labels %s and annotations %s into namespace %s",
            sorted(missing_labels),
            sorted(missing_annotations),
            namespace.metadata.name,
        )
        return True

    @handle_kubernetes_errors("deleting", "namespace")
    def delete(self, name: str) -> bool:
        """Delete the namespace. Returns False if it was already gone."""
        try:
            self.k8s_core.delete_namespace(
                name=name, _request_timeout=self.clients.request_timeout
            )
        except ApiException as e:
            if e.status == 404:
                return False
            raise
        logger.info("Deleted namespace %s", name)
        return True

    @handle_kubernetes_errors("waiting for", "namespace")
    def wait_until_active(self, namespace: V1Namespace, timeout: int) -> V1Namespace:
        """Block until the namespace phase is Active or the timeout expires."""
        if namespace.status is not None and namespace.status.phase == NAMESPACE_PHASE_ACTIVE:
            return namespace

        name = namespace.metadata.name
        w = watch.Watch()
        try:
            for event in w.stream(
                self.k8s_core.list_namespace,
                field_selector=f"metadata.name={name}",
                timeout_seconds=timeout,
            ):
                current = event["object"]
                if event["type"] == "DELETED":
                    raise InfrastructureError(
                        f"Namespace '{name}' was deleted while waiting for it to become active",
                        namespace=name,
                    )
                if current.status is not None and current.status.phase == NAMESPACE_PHASE_ACTIVE:
                    return current
        finally:
            w.stop()

        raise InfrastructureError(
            f"Waiting for namespace '{name}' to become active reached timeout",
            namespace=name,
        )
