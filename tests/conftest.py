"""Test configuration and fixtures."""

from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from kubernetes import client as k8s
from kubernetes.client.models import V1Namespace, V1NamespaceList, V1NamespaceStatus
from kubernetes.client.models import V1SecretList
from kubernetes.client.rest import ApiException

from nimbletools_namespace_provisioner.collaborators import Collaborators
from nimbletools_namespace_provisioner.config import ProvisionerSettings
from nimbletools_namespace_provisioner.k8s_utils import KubernetesClients
from nimbletools_namespace_provisioner.main import app
from nimbletools_namespace_provisioner.models import ResolutionContext, User
from nimbletools_namespace_provisioner.providers.community import (
    InMemoryPreferenceStore,
    InMemoryUserDirectory,
    NoSshKeyStore,
    NoTokenManager,
)


def _name_of(body: Any) -> str:
    if isinstance(body, dict):
        return str(body["metadata"]["name"])
    return str(body.metadata.name)


def _labels_of(body: Any) -> dict[str, str]:
    if isinstance(body, dict):
        return dict(body["metadata"].get("labels") or {})
    return dict(body.metadata.labels or {})


def _parse_selector(selector: str | None) -> dict[str, str]:
    if not selector:
        return {}
    return dict(item.split("=", 1) for item in selector.split(","))


def _matches(labels: dict[str, str] | None, selector: dict[str, str]) -> bool:
    labels = labels or {}
    return all(labels.get(key) == value for key, value in selector.items())


class FakeCluster:
    """
    Dictionary-backed cluster wired into mocked Kubernetes API objects.

    Operations listed in `forbidden` fail with 403, operations listed in
    `failures` raise the given exception.
    """

    def __init__(self) -> None:
        self.namespaces: dict[str, V1Namespace] = {}
        self.objects: dict[tuple[str, str, str], Any] = {}
        self.cluster_roles: set[str] = set()
        self.api_groups: list[str] = ["apps", "metrics.k8s.io"]
        self.forbidden: set[str] = set()
        self.failures: dict[str, Exception] = {}
        self.calls: list[str] = []

        self.core_v1 = MagicMock(spec=k8s.CoreV1Api)
        self.rbac_v1 = MagicMock(spec=k8s.RbacAuthorizationV1Api)
        self.custom = MagicMock(spec=k8s.CustomObjectsApi)
        self.networking_v1 = MagicMock(spec=k8s.NetworkingV1Api)
        self.apis = MagicMock(spec=k8s.ApisApi)
        self._wire()

    # -- helpers used by tests -------------------------------------------------

    def add_namespace(
        self,
        name: str,
        labels: dict[str, str] | None = None,
        annotations: dict[str, str] | None = None,
        phase: str = "Active",
    ) -> V1Namespace:
        namespace = V1Namespace(
            metadata=k8s.V1ObjectMeta(name=name, labels=labels, annotations=annotations),
            status=V1NamespaceStatus(phase=phase),
        )
        self.namespaces[name] = namespace
        return namespace

    def add_object(self, kind: str, namespace: str, body: Any) -> Any:
        self.objects[(kind, namespace, _name_of(body))] = body
        return body

    def get(self, kind: str, namespace: str, name: str) -> Any:
        return self.objects.get((kind, namespace, name))

    def names(self, kind: str, namespace: str) -> list[str]:
        return sorted(name for (k, ns, name) in self.objects if k == kind and ns == namespace)

    def forbid(self, *operations: str) -> None:
        self.forbidden.update(operations)

    def count(self, operation: str) -> int:
        return self.calls.count(operation)

    # -- wiring ----------------------------------------------------------------

    def _guard(self, operation: str, func: Any) -> Any:
        def call(*args: Any, **kwargs: Any) -> Any:
            self.calls.append(operation)
            if operation in self.forbidden:
                raise ApiException(status=403, reason="Forbidden")
            if operation in self.failures:
                raise self.failures[operation]
            return func(*args, **kwargs)

        return call

    def _wire(self) -> None:
        core = {
            "read_namespace": self._read_namespace,
            "list_namespace": self._list_namespace,
            "create_namespace": self._create_namespace,
            "patch_namespace": self._patch_namespace,
            "delete_namespace": self._delete_namespace,
            "read_namespaced_service_account": self._reader("serviceaccount"),
            "create_namespaced_service_account": self._creator("serviceaccount"),
            "read_namespaced_secret": self._reader("secret"),
            "create_namespaced_secret": self._creator("secret"),
            "replace_namespaced_secret": self._replacer("secret"),
            "patch_namespaced_secret": self._patch_secret,
            "list_namespaced_secret": self._list_secrets,
            "read_namespaced_config_map": self._reader("configmap"),
            "create_namespaced_config_map": self._creator("configmap"),
            "replace_namespaced_config_map": self._replacer("configmap"),
        }
        for operation, func in core.items():
            getattr(self.core_v1, operation).side_effect = self._guard(operation, func)

        rbac = {
            "create_namespaced_role": self._creator("role"),
            "replace_namespaced_role": self._replacer("role"),
            "create_namespaced_role_binding": self._creator("rolebinding"),
            "replace_namespaced_role_binding": self._replacer("rolebinding"),
            "read_cluster_role": self._read_cluster_role,
        }
        for operation, func in rbac.items():
            getattr(self.rbac_v1, operation).side_effect = self._guard(operation, func)

        custom = {
            "create_namespaced_custom_object": self._create_custom,
            "replace_namespaced_custom_object": self._replace_custom,
            "get_cluster_custom_object": self._get_cluster_custom,
        }
        for operation, func in custom.items():
            getattr(self.custom, operation).side_effect = self._guard(operation, func)

        self.apis.get_api_versions.side_effect = self._guard(
            "get_api_versions", self._api_versions
        )

    # -- namespaces ------------------------------------------------------------

    def _read_namespace(self, name: str, **_: Any) -> V1Namespace:
        if name not in self.namespaces:
            raise ApiException(status=404, reason="Not Found")
        return self.namespaces[name]

    def _list_namespace(self, label_selector: str | None = None, **_: Any) -> V1NamespaceList:
        selector = _parse_selector(label_selector)
        items = [ns for ns in self.namespaces.values() if _matches(ns.metadata.labels, selector)]
        return V1NamespaceList(items=items)

    def _create_namespace(self, body: V1Namespace, **_: Any) -> V1Namespace:
        name = body.metadata.name
        if name in self.namespaces:
            raise ApiException(status=409, reason="AlreadyExists")
        body.status = V1NamespaceStatus(phase="Active")
        self.namespaces[name] = body
        return body

    def _patch_namespace(self, name: str, body: dict[str, Any], **_: Any) -> V1Namespace:
        namespace = self._read_namespace(name)
        metadata = body.get("metadata", {})
        if "labels" in metadata:
            namespace.metadata.labels = {**(namespace.metadata.labels or {}), **metadata["labels"]}
        if "annotations" in metadata:
            namespace.metadata.annotations = {
                **(namespace.metadata.annotations or {}),
                **metadata["annotations"],
            }
        return namespace

    def _delete_namespace(self, name: str, **_: Any) -> None:
        if name not in self.namespaces:
            raise ApiException(status=404, reason="Not Found")
        del self.namespaces[name]

    # -- namespaced objects ----------------------------------------------------

    def _reader(self, kind: str) -> Any:
        def read(name: str, namespace: str, **_: Any) -> Any:
            found = self.get(kind, namespace, name)
            if found is None:
                raise ApiException(status=404, reason="Not Found")
            return found

        return read

    def _creator(self, kind: str) -> Any:
        def create(namespace: str, body: Any, **_: Any) -> Any:
            if (kind, namespace, _name_of(body)) in self.objects:
                raise ApiException(status=409, reason="AlreadyExists")
            return self.add_object(kind, namespace, body)

        return create

    def _replacer(self, kind: str) -> Any:
        def replace(name: str, namespace: str, body: Any, **_: Any) -> Any:
            if (kind, namespace, name) not in self.objects:
                raise ApiException(status=404, reason="Not Found")
            self.objects[(kind, namespace, name)] = body
            return body

        return replace

    def _patch_secret(self, name: str, namespace: str, body: dict[str, Any], **_: Any) -> Any:
        secret = self._reader("secret")(name, namespace)
        secret.data = {**(secret.data or {}), **body.get("data", {})}
        return secret

    def _list_secrets(self, namespace: str, label_selector: str | None = None, **_: Any) -> Any:
        selector = _parse_selector(label_selector)
        items = [
            body
            for (kind, ns, _name), body in self.objects.items()
            if kind == "secret" and ns == namespace and _matches(_labels_of(body), selector)
        ]
        return V1SecretList(items=items)

    # -- rbac ------------------------------------------------------------------

    def _read_cluster_role(self, name: str, **_: Any) -> Any:
        if name not in self.cluster_roles:
            raise ApiException(status=404, reason="Not Found")
        return k8s.V1ClusterRole(metadata=k8s.V1ObjectMeta(name=name))

    def _create_custom(
        self, group: str, version: str, namespace: str, plural: str, body: Any, **_: Any
    ) -> Any:
        return self._creator(f"{group}/{plural}")(namespace=namespace, body=body)

    def _replace_custom(
        self, group: str, version: str, namespace: str, plural: str, name: str, body: Any, **_: Any
    ) -> Any:
        return self._replacer(f"{group}/{plural}")(name=name, namespace=namespace, body=body)

    def _get_cluster_custom(
        self, group: str, version: str, plural: str, name: str, **_: Any
    ) -> Any:
        if name not in self.cluster_roles:
            raise ApiException(status=404, reason="Not Found")
        return {"metadata": {"name": name}}

    def _api_versions(self, **_: Any) -> Any:
        return SimpleNamespace(groups=[SimpleNamespace(name=name) for name in self.api_groups])


@pytest.fixture
def cluster() -> FakeCluster:
    """An empty fake cluster."""
    return FakeCluster()


@pytest.fixture
def clients(cluster: FakeCluster) -> KubernetesClients:
    """Kubernetes clients backed by the fake cluster."""
    return KubernetesClients(
        core_v1=cluster.core_v1,
        rbac_v1=cluster.rbac_v1,
        custom=cluster.custom,
        networking_v1=cluster.networking_v1,
        apis=cluster.apis,
        request_timeout=5.0,
    )


@pytest.fixture
def settings_factory():
    """Build provisioner settings with overrides."""

    def build(**overrides: Any) -> ProvisionerSettings:
        values: dict[str, Any] = {"namespace_default": "che-<username>"}
        values.update(overrides)
        return ProvisionerSettings(**values)

    return build


@pytest.fixture
def settings(settings_factory) -> ProvisionerSettings:
    return settings_factory()


@pytest.fixture
def alice() -> User:
    return User(id="alice-id", name="alice", email="alice@example.com")


@pytest.fixture
def ctx(alice: User) -> ResolutionContext:
    """Resolution context of alice starting workspace1234."""
    return ResolutionContext(workspace_id="workspace1234", user_id=alice.id, user_name=alice.name)


@pytest.fixture
def preference_store() -> InMemoryPreferenceStore:
    return InMemoryPreferenceStore()


@pytest.fixture
def user_directory(alice: User) -> InMemoryUserDirectory:
    directory = InMemoryUserDirectory()
    directory.register(alice)
    return directory


@pytest.fixture
def collaborators(preference_store, user_directory) -> Collaborators:
    """In-memory collaborators knowing about alice."""
    return Collaborators(
        preference_store=preference_store,
        user_directory=user_directory,
        token_manager=NoTokenManager(),
        ssh_key_store=NoSshKeyStore(),
    )


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def mock_auth_provider(collaborators):
    """Mock provider authenticating every request as alice."""

    class MockAuthProvider:
        def __init__(self) -> None:
            self.user: dict[str, Any] | None = {
                "user_id": "alice-id",
                "username": "alice",
                "email": "alice@example.com",
            }
            self.allowed = True

        async def validate_token(self, token: str) -> dict[str, Any] | None:
            return self.user

        async def check_permission(self, user: dict[str, Any], resource: str, action: str) -> bool:
            return self.allowed

        def collaborators(self) -> Collaborators:
            return collaborators

        async def initialize(self) -> None:
            pass

        async def shutdown(self) -> None:
            pass

    mock_provider = MockAuthProvider()
    with patch("nimbletools_namespace_provisioner.provider._provider", mock_provider):
        yield mock_provider
