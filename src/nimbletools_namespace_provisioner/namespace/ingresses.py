"""
Ingress helpers for workspace namespaces
"""

import logging
from collections.abc import Callable

from kubernetes import watch
from kubernetes.client.models import V1Ingress

from nimbletools_namespace_provisioner.exceptions import (
    InfrastructureError,
    handle_kubernetes_errors,
)
from nimbletools_namespace_provisioner.k8s_utils import KubernetesClients, read_or_none

logger = logging.getLogger(__name__)


class KubernetesIngresses:
    """Ingress operations scoped to one namespace"""

    def __init__(self, clients: KubernetesClients, namespace: str) -> None:
        self.clients = clients
        self.namespace = namespace
        self.k8s_networking = clients.networking_v1

    @handle_kubernetes_errors("reading", "ingress")
    def get(self, name: str) -> V1Ingress | None:
        return read_or_none(
            self.k8s_networking.read_namespaced_ingress,
            name=name,
            namespace=self.namespace,
            _request_timeout=self.clients.request_timeout,
        )

    @handle_kubernetes_errors("waiting for", "ingress")
    def wait(
        self, name: str, timeout: int, predicate: Callable[[V1Ingress], bool]
    ) -> V1Ingress:
        """
        Wait until the named ingress satisfies the predicate.

        The watch is stopped on every exit path. Raises InfrastructureError
        if the timeout expires or the ingress is deleted while waiting.
        """
        current = self.get(name)
        if current is not None and predicate(current):
            return current

        w = watch.Watch()
        try:
            for event in w.stream(
                self.k8s_networking.list_namespaced_ingress,
                namespace=self.namespace,
                field_selector=f"metadata.name={name}",
                timeout_seconds=timeout,
            ):
                ingress = event["object"]
                if event["type"] == "DELETED":
                    raise InfrastructureError(
                        f"Ingress '{name}' was removed while waiting for it",
                        namespace=self.namespace,
                    )
                if predicate(ingress):
                    logger.debug("Ingress '%s/%s' reached the expected state", self.namespace, name)
                    return ingress
        finally:
            w.stop()

        raise InfrastructureError(
            f"Waiting for ingress '{self.namespace}/{name}' reached timeout",
            namespace=self.namespace,
        )
