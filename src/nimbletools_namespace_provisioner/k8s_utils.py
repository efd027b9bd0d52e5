"""
Kubernetes utility functions shared across provisioning components
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from kubernetes import client, config
from kubernetes.client.rest import ApiException

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class KubernetesClients:
    """Kubernetes API clients used by the provisioner"""

    core_v1: client.CoreV1Api = field(default_factory=client.CoreV1Api)
    rbac_v1: client.RbacAuthorizationV1Api = field(default_factory=client.RbacAuthorizationV1Api)
    custom: client.CustomObjectsApi = field(default_factory=client.CustomObjectsApi)
    networking_v1: client.NetworkingV1Api = field(default_factory=client.NetworkingV1Api)
    apis: client.ApisApi = field(default_factory=client.ApisApi)
    request_timeout: float = 30.0


def load_kubernetes_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        config.load_kube_config()
        logger.info("Loaded local Kubernetes configuration")


def read_or_none(read: Callable[..., T], *args: Any, **kwargs: Any) -> T | None:
    """Call a read_* API method and map 404 to None."""
    try:
        return read(*args, **kwargs)
    except ApiException as e:
        if e.status == 404:
            return None
        raise


def create_or_replace(
    create: Callable[..., T],
    replace: Callable[..., T],
    name: str,
    body: Any,
    namespace: str | None = None,
    **kwargs: Any,
) -> T:
    """
    Create a named object, replacing it when it already exists.

    The object name is stable, so re-applying the same body converges to a
    single object instead of accumulating duplicates.
    """
    scope: dict[str, Any] = {} if namespace is None else {"namespace": namespace}
    try:
        return create(body=body, **scope, **kwargs)
    except ApiException as e:
        if e.status != 409:
            raise
    logger.debug("Object %s already exists, replacing it", name)
    return replace(name=name, body=body, **scope, **kwargs)


def create_if_absent(
    create: Callable[..., T], body: Any, namespace: str, **kwargs: Any
) -> T | None:
    """Create an object, treating an existing one as success. Returns None if it existed."""
    try:
        return create(namespace=namespace, body=body, **kwargs)
    except ApiException as e:
        if e.status != 409:
            raise
    return None


def label_selector(labels: dict[str, str]) -> str:
    """Render a label map as an equality-based selector."""
    return ",".join(f"{key}={value}" for key, value in labels.items())


def contains_all(actual: dict[str, str] | None, expected: dict[str, str]) -> bool:
    """Check if a label/annotation map contains all expected entries with exact values."""
    if not expected:
        return True
    if not actual:
        return False
    return all(actual.get(key) == value for key, value in expected.items())
