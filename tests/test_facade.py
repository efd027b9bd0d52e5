"""Tests for the namespace provisioning facade."""

import pytest
from kubernetes.client.rest import ApiException

from nimbletools_namespace_provisioner.constants import (
    NAMESPACE_TEMPLATE_ATTRIBUTE,
    WORKSPACE_INFRASTRUCTURE_NAMESPACE_ATTRIBUTE,
)
from nimbletools_namespace_provisioner.exceptions import (
    InfrastructureError,
    KubernetesInfrastructureError,
    NamespaceValidationError,
)
from nimbletools_namespace_provisioner.facade import build_facade
from nimbletools_namespace_provisioner.models import (
    ResolutionContext,
    RuntimeIdentity,
    User,
    WorkspaceRef,
)

PREPARED_ANNOTATIONS = {"nimbletools.dev/username": "alice"}


@pytest.fixture
def make_facade(settings_factory, clients, collaborators):
    def build(**overrides):
        return build_facade(settings_factory(**overrides), clients, collaborators)

    return build


@pytest.fixture
def facade(make_facade):
    return make_facade(service_account_name="workspace")


class TestProvision:
    def test_provision_creates_and_prepares_namespace(self, facade, cluster, ctx):
        """Provision creates and prepares namespace."""
        meta = facade.provision(ctx)

        assert meta.name == "che-alice"
        assert meta.attributes == {"phase": "Active"}
        namespace = cluster.namespaces["che-alice"]
        assert namespace.metadata.labels == facade.settings.namespace_labels
        assert namespace.metadata.annotations == PREPARED_ANNOTATIONS

        assert cluster.get("serviceaccount", "che-alice", "workspace") is not None
        assert "workspace-exec" in cluster.names("rolebinding", "che-alice")
        assert cluster.get("secret", "che-alice", "workspace-credentials-secret") is not None
        assert cluster.get("secret", "che-alice", "user-profile") is not None

    def test_provision_is_idempotent(self, facade, cluster, ctx):
        """Test provisioning twice creates nothing new."""
        facade.provision(ctx)
        objects = set(cluster.objects)

        facade.provision(ctx)

        assert set(cluster.objects) == objects
        assert cluster.count("create_namespace") == 1

    def test_provisioned_namespace_is_resolved_again(self, facade, cluster, ctx):
        """Provisioned namespace is resolved again."""
        facade.provision(ctx)
        # the labeled namespace is found before the template is evaluated
        assert facade.resolver.find_prepared_namespaces(ctx) == ["che-alice"]
        assert facade.resolve(ctx) == "che-alice"

    def test_without_rbac(self, make_facade, cluster, ctx):
        """Test provisioning without a ServiceAccount configured."""
        facade = make_facade()
        assert facade.rbac_provisioner is None

        facade.provision(ctx)

        assert cluster.names("serviceaccount", "che-alice") == []

    def test_unlabeled_namespaces(self, make_facade, cluster, ctx):
        """Test unlabeled namespaces are created bare."""
        facade = make_facade(label_namespaces=False, annotate_namespaces=False)
        facade.provision(ctx)

        namespace = cluster.namespaces["che-alice"]
        assert namespace.metadata.labels is None
        assert namespace.metadata.annotations is None

    def test_creation_not_allowed(self, make_facade, cluster, ctx):
        """Test a missing namespace fails when creation is not allowed."""
        facade = make_facade(namespace_creation_allowed=False)

        with pytest.raises(InfrastructureError) as exc_info:
            facade.provision(ctx)

        assert exc_info.value.step == "namespace"
        assert exc_info.value.namespace == "che-alice"
        assert cluster.namespaces == {}

    def test_existing_namespace_without_creation(self, make_facade, cluster, ctx):
        """Existing namespace without creation."""
        cluster.add_namespace("che-alice")
        facade = make_facade(namespace_creation_allowed=False)

        assert facade.provision(ctx).name == "che-alice"

    def test_configurator_failure_names_step(self, facade, cluster, ctx):
        """Configurator failure names step."""
        cluster.failures["create_namespaced_secret"] = ApiException(status=500, reason="Boom")

        with pytest.raises(KubernetesInfrastructureError) as exc_info:
            facade.provision(ctx)

        error = exc_info.value
        assert error.step == "credentials-secret"
        assert error.namespace == "che-alice"
        assert error.workspace_id == ctx.workspace_id

    def test_rbac_failure_names_step(self, facade, cluster, ctx):
        """Rbac failure names step."""
        cluster.failures["create_namespaced_role"] = ApiException(status=500, reason="Boom")

        with pytest.raises(KubernetesInfrastructureError) as exc_info:
            facade.provision(ctx)

        assert exc_info.value.step == "service-account"


class TestListNamespaces:
    def test_default_namespace_when_nothing_prepared(self, facade, cluster, ctx):
        """Default namespace when nothing prepared."""
        metas = facade.list_namespaces(ctx)

        assert [meta.name for meta in metas] == ["che-alice"]
        assert metas[0].attributes == {"default": "true"}
        # listing never creates anything
        assert cluster.namespaces == {}

    def test_existing_default_namespace_reports_phase(self, facade, cluster, ctx):
        """Existing default namespace reports phase."""
        cluster.add_namespace("che-alice")
        metas = facade.list_namespaces(ctx)
        assert metas[0].attributes == {"phase": "Active", "default": "true"}

    def test_prepared_namespaces(self, facade, cluster, ctx):
        """Test labeled namespaces of the user are listed."""
        for name in ("team-b", "team-a"):
            cluster.add_namespace(
                name, labels=facade.settings.namespace_labels, annotations=PREPARED_ANNOTATIONS
            )

        metas = facade.list_namespaces(ctx)

        assert [meta.name for meta in metas] == ["team-a", "team-b"]
        assert all("default" not in meta.attributes for meta in metas)

    def test_suffixed_default_matches_provisioned_namespace(self, make_facade, cluster, ctx):
        """Repeated listings and a later provision agree on a suffixed default name."""
        cluster.add_namespace("alice-che")
        facade = make_facade(namespace_default="<username>_che")

        first = facade.list_namespaces(ctx)[0].name
        second = facade.list_namespaces(ctx)[0].name
        provisioned = facade.provision(ctx).name

        assert first.startswith("alice-che-")
        assert first == second == provisioned
        assert provisioned in cluster.namespaces


class TestNamespaceChecks:
    def test_resolved_namespace_is_allowed(self, facade, ctx):
        """Resolved namespace is allowed."""
        facade.check_if_namespace_is_allowed(ctx, "che-alice")

    def test_prepared_namespace_is_allowed(self, facade, cluster, ctx):
        """Prepared namespace is allowed."""
        for name in ("team-a", "team-b"):
            cluster.add_namespace(
                name, labels=facade.settings.namespace_labels, annotations=PREPARED_ANNOTATIONS
            )
        facade.check_if_namespace_is_allowed(ctx, "team-b")

    def test_foreign_namespace_is_rejected(self, facade, ctx):
        """Foreign namespace is rejected."""
        with pytest.raises(NamespaceValidationError, match="not available for user 'alice'"):
            facade.check_if_namespace_is_allowed(ctx, "che-bob")

    def test_check_does_not_record_preferences(self, facade, ctx, preference_store, cluster):
        """Validating a namespace leaves preferences and the cluster untouched."""
        facade.check_if_namespace_is_allowed(ctx, "che-alice")

        assert preference_store.find(ctx.user_id) == {}
        assert cluster.count("list_namespace") == 0

    def test_stored_namespace_is_allowed(self, facade, ctx, preference_store):
        """A namespace stored for the current template is accepted."""
        preference_store.update(
            ctx.user_id,
            {
                WORKSPACE_INFRASTRUCTURE_NAMESPACE_ATTRIBUTE: "che-alice-x1y2z3",
                NAMESPACE_TEMPLATE_ATTRIBUTE: "che-<username>",
            },
        )
        facade.check_if_namespace_is_allowed(ctx, "che-alice-x1y2z3")

    def test_can_create_resolved_namespace(self, facade):
        """Can create resolved namespace."""
        identity = RuntimeIdentity(workspace_id="ws-1", owner_id="alice-id", namespace="che-alice")
        assert facade.can_create_namespace(identity)

    def test_cannot_create_after_template_change(self, facade):
        """Cannot create after template change."""
        identity = RuntimeIdentity(workspace_id="ws-1", owner_id="alice-id", namespace="alice-che")
        assert not facade.can_create_namespace(identity)

    def test_cannot_create_when_disabled(self, make_facade):
        """Cannot create when disabled."""
        facade = make_facade(namespace_creation_allowed=False)
        identity = RuntimeIdentity(workspace_id="ws-1", owner_id="alice-id", namespace="che-alice")
        assert not facade.can_create_namespace(identity)


class TestWorkspaceNamespaces:
    def test_recorded_namespace(self, facade):
        """Test the namespace recorded on the workspace is used."""
        workspace = WorkspaceRef(
            id="ws-1", owner_id="alice-id", attributes={"infrastructureNamespace": "stored-ns"}
        )
        assert facade.get_namespace_name(workspace) == "stored-ns"

    def test_missing_namespace_is_resolved_for_owner(self, facade, cluster):
        """Missing namespace is resolved for owner."""
        workspace = WorkspaceRef(id="ws-1", owner_id="alice-id")

        assert facade.get_namespace_name(workspace) == "che-alice"
        # recovery does not create anything
        assert cluster.namespaces == {}

    def test_invalid_namespace_is_resolved_again(self, facade):
        """Invalid namespace is resolved again."""
        workspace = WorkspaceRef(
            id="ws-1", owner_id="alice-id", attributes={"infrastructureNamespace": "Bad_NS"}
        )
        assert facade.get_namespace_name(workspace) == "che-alice"

    def test_invalid_namespace_without_owner_is_kept(self, facade):
        """Invalid namespace without owner is kept."""
        workspace = WorkspaceRef(id="ws-1", attributes={"infrastructureNamespace": "Bad_NS"})
        assert facade.get_namespace_name(workspace) == "Bad_NS"

    def test_missing_namespace_without_owner(self, facade):
        """Missing namespace without owner."""
        with pytest.raises(InfrastructureError, match="has no owner"):
            facade.get_namespace_name(WorkspaceRef(id="ws-1"))

    def test_unknown_owner(self, facade):
        """Test an unknown workspace owner."""
        with pytest.raises(InfrastructureError, match="Could not find owner"):
            facade.get_namespace_name(WorkspaceRef(id="ws-1", owner_id="ghost"))

    def test_explicit_context_is_used(self, facade, user_directory):
        """Explicit context is used."""
        user_directory.register(User(id="bob-id", name="bob"))
        ctx = ResolutionContext(workspace_id="ws-1", user_id="bob-id", user_name="bob")
        assert facade.get_namespace_name(WorkspaceRef(id="ws-1"), ctx) == "che-bob"


class TestDeleteIfManaged:
    def test_managed_namespace_is_deleted(self, facade, cluster):
        """Managed namespace is deleted."""
        cluster.add_namespace("ws-1-ns")
        workspace = WorkspaceRef(
            id="ws-1", owner_id="alice-id", attributes={"infrastructureNamespace": "ws-1-ns"}
        )

        assert facade.delete_if_managed(workspace)
        assert "ws-1-ns" not in cluster.namespaces

    def test_shared_namespace_is_kept(self, facade, cluster):
        """Shared namespace is kept."""
        cluster.add_namespace("che-alice")
        workspace = WorkspaceRef(
            id="ws-1", owner_id="alice-id", attributes={"infrastructureNamespace": "che-alice"}
        )

        assert not facade.delete_if_managed(workspace)
        assert "che-alice" in cluster.namespaces

    def test_already_deleted_namespace(self, facade):
        """Test deleting a managed namespace that is already gone."""
        workspace = WorkspaceRef(
            id="ws-1", owner_id="alice-id", attributes={"infrastructureNamespace": "ws-1-ns"}
        )
        assert facade.delete_if_managed(workspace)

    def test_deletion_failure_names_step(self, facade, cluster):
        """Deletion failure names step."""
        cluster.add_namespace("ws-1-ns")
        cluster.failures["delete_namespace"] = ApiException(status=500, reason="Boom")
        workspace = WorkspaceRef(id="ws-1", attributes={"infrastructureNamespace": "ws-1-ns"})

        with pytest.raises(KubernetesInfrastructureError) as exc_info:
            facade.delete_if_managed(workspace)

        assert exc_info.value.step == "deletion"
        assert exc_info.value.namespace == "ws-1-ns"
