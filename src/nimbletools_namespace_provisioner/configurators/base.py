"""
Configurator interface and the pipeline running configurators in order
"""

import base64
import logging
from collections.abc import Sequence
from typing import Protocol

from nimbletools_namespace_provisioner.exceptions import provisioning_step
from nimbletools_namespace_provisioner.k8s_utils import KubernetesClients
from nimbletools_namespace_provisioner.models import ResolutionContext

logger = logging.getLogger(__name__)


class NamespaceConfigurator(Protocol):
    """An idempotent setup step run against a provisioned namespace"""

    name: str

    def configure(self, ctx: ResolutionContext, namespace: str) -> None: ...


class KubernetesConfigurator:
    """Base for configurators talking to the cluster"""

    name = "configurator"

    def __init__(self, clients: KubernetesClients) -> None:
        self.clients = clients
        self.k8s_core = clients.core_v1

    @property
    def request_timeout(self) -> float:
        return self.clients.request_timeout

    def configure(self, ctx: ResolutionContext, namespace: str) -> None:
        raise NotImplementedError


def encode_data(value: str) -> str:
    """Base64 encode a value for the data field of a Secret."""
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def decode_data(value: str | None) -> str:
    if not value:
        return ""
    return base64.b64decode(value).decode("utf-8")


class ConfiguratorPipeline:
    """
    Runs configurators in registration order.

    Configurators handle their own provider failures. Anything else a
    configurator raises stops the pipeline and is reported as an
    InfrastructureError naming the failing configurator. Every configurator
    is idempotent, so a failed run is completed by the next one.
    """

    def __init__(self, configurators: Sequence[NamespaceConfigurator]) -> None:
        self.configurators = list(configurators)

    @property
    def names(self) -> list[str]:
        return [configurator.name for configurator in self.configurators]

    def run(self, ctx: ResolutionContext, namespace: str) -> None:
        for configurator in self.configurators:
            logger.debug(
                "Running configurator '%s' in namespace '%s'", configurator.name, namespace
            )
            with provisioning_step(configurator.name, ctx.workspace_id, namespace):
                configurator.configure(ctx, namespace)
        logger.info(
            "Configured namespace '%s' with %d configurators", namespace, len(self.configurators)
        )
