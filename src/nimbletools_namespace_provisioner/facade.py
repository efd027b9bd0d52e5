"""
Entry point of the provisioning engine.

The facade resolves the namespace of a workspace, makes sure it exists,
prepares the workspace ServiceAccount and runs the configurator pipeline.
It is driven by workspace start and recovery flows and by the HTTP routes.
"""

import logging

from kubernetes.client.models import V1Namespace

from nimbletools_namespace_provisioner.collaborators import Collaborators, UserDirectory
from nimbletools_namespace_provisioner.config import ProvisionerSettings
from nimbletools_namespace_provisioner.configurators import (
    ConfiguratorPipeline,
    default_configurators,
)
from nimbletools_namespace_provisioner.constants import (
    DEFAULT_ATTRIBUTE,
    WORKSPACE_INFRASTRUCTURE_NAMESPACE_ATTRIBUTE,
)
from nimbletools_namespace_provisioner.exceptions import (
    InfrastructureError,
    NamespaceValidationError,
    log_operation_start,
    log_operation_success,
    provisioning_step,
)
from nimbletools_namespace_provisioner.k8s_utils import KubernetesClients
from nimbletools_namespace_provisioner.models import (
    NamespaceMeta,
    ResolutionContext,
    RuntimeIdentity,
    WorkspaceRef,
)
from nimbletools_namespace_provisioner.namespace import (
    NameResolver,
    NamespaceProvisioner,
    NamespaceStore,
)
from nimbletools_namespace_provisioner.namespace.naming import (
    evaluate_placeholders,
    is_managed_namespace,
    is_valid_namespace_name,
)
from nimbletools_namespace_provisioner.rbac import WorkspaceServiceAccount, create_rbac_provisioner

logger = logging.getLogger(__name__)


class NamespaceProvisioningFacade:
    """Resolves, creates and prepares workspace namespaces"""

    def __init__(
        self,
        settings: ProvisionerSettings,
        store: NamespaceStore,
        resolver: NameResolver,
        namespace_provisioner: NamespaceProvisioner,
        rbac_provisioner: WorkspaceServiceAccount | None,
        pipeline: ConfiguratorPipeline,
        user_directory: UserDirectory,
    ) -> None:
        self.settings = settings
        self.store = store
        self.resolver = resolver
        self.namespace_provisioner = namespace_provisioner
        self.rbac_provisioner = rbac_provisioner
        self.pipeline = pipeline
        self.user_directory = user_directory

    def resolve(self, ctx: ResolutionContext) -> str:
        return self.resolver.resolve(ctx)

    def list_namespaces(self, ctx: ResolutionContext) -> list[NamespaceMeta]:
        """
        List the namespaces the user's workspaces may run in.

        These are the namespaces labeled for the user or, when there are
        none, the default namespace flagged with the 'default' attribute.
        The default namespace does not need to exist yet.
        """
        metas = []
        for name in self.resolver.find_prepared_namespaces(ctx):
            meta = self.store.fetch(name)
            if meta is not None:
                metas.append(meta)
        if metas:
            return metas
        return [self.default_namespace_meta(ctx)]

    def default_namespace_meta(self, ctx: ResolutionContext) -> NamespaceMeta:
        name = self.resolver.resolve_default(ctx)
        meta = self.store.fetch(name) or NamespaceMeta(name=name)
        meta.attributes[DEFAULT_ATTRIBUTE] = "true"
        return meta

    def check_if_namespace_is_allowed(self, ctx: ResolutionContext, namespace: str) -> None:
        """Raise NamespaceValidationError unless the user may use the namespace."""
        default = self.resolver.stored_namespace_name(ctx) or evaluate_placeholders(
            self.resolver.template, ctx
        )
        if namespace == default:
            return
        if namespace in self.resolver.find_prepared_namespaces(ctx):
            return
        raise NamespaceValidationError(
            f"User defined namespaces are not allowed. Namespace '{namespace}' "
            f"is not available for user '{ctx.user_name}'.",
            operation="validating",
            resource=f"namespace:{namespace}",
        )

    def can_create_namespace(self, identity: RuntimeIdentity) -> bool:
        """
        Check whether the namespace of a runtime may be created.

        Creation must be allowed and the namespace must still be the one the
        owner's identity resolves to, so a workspace created before the
        template changed does not get a namespace created for it.
        """
        if not self.settings.namespace_creation_allowed:
            return False
        owner_ctx = self.owner_context(identity.workspace_id, identity.owner_id)
        return self.resolver.resolve(owner_ctx) == identity.namespace

    def get_or_create(self, identity: RuntimeIdentity, ctx: ResolutionContext) -> V1Namespace:
        """Ensure the runtime namespace, its ServiceAccount and its configuration."""
        name = identity.namespace
        log_operation_start("provisioning", "namespace", name)

        with provisioning_step("namespace", ctx.workspace_id, name):
            can_create = self.can_create_namespace(identity)
            labels = self.settings.namespace_labels if self.settings.label_namespaces else {}
            annotations = (
                self.settings.namespace_annotations if self.settings.annotate_namespaces else {}
            )
            namespace = self.namespace_provisioner.ensure(
                ctx, name, can_create, labels, annotations
            )

        if self.rbac_provisioner is not None:
            with provisioning_step("service-account", ctx.workspace_id, name):
                self.rbac_provisioner.prepare(ctx, name)

        self.pipeline.run(ctx, name)

        log_operation_success("provisioning", "namespace", name)
        return namespace

    def provision(self, ctx: ResolutionContext) -> NamespaceMeta:
        """Resolve, create and prepare the namespace of the user."""
        with provisioning_step("resolution", ctx.workspace_id):
            name = self.resolver.resolve(ctx)

        identity = RuntimeIdentity(
            workspace_id=ctx.workspace_id, owner_id=ctx.user_id, namespace=name
        )
        self.get_or_create(identity, ctx)

        meta = self.store.fetch(name)
        if meta is None:
            raise InfrastructureError(
                "Not able to find the provisioned namespace",
                workspace_id=ctx.workspace_id,
                namespace=name,
            )
        return meta

    def get_namespace_name(
        self, workspace: WorkspaceRef, ctx: ResolutionContext | None = None
    ) -> str:
        """
        Return the namespace a stored workspace runs in.

        Workspaces created before the namespace was recorded, or recorded
        with a name that is no longer valid, are resolved again. The result
        is not written back to the workspace.
        """
        name = workspace.attributes.get(WORKSPACE_INFRASTRUCTURE_NAMESPACE_ATTRIBUTE)

        if not name:
            logger.warning(
                "Workspace '%s' has no namespace recorded, resolving it for its owner",
                workspace.id,
            )
            ctx = ctx or self.owner_context(workspace.id, workspace.owner_id)
            return self.resolver.resolve(ctx)

        if is_valid_namespace_name(name):
            return name

        if ctx is None and workspace.owner_id is None:
            logger.warning(
                "Workspace '%s' has invalid namespace '%s' recorded and no owner to resolve "
                "a replacement for, using it as is",
                workspace.id,
                name,
            )
            return name

        ctx = ctx or self.owner_context(workspace.id, workspace.owner_id)
        resolved = self.resolver.resolve(ctx)
        logger.warning(
            "Workspace '%s' has invalid namespace '%s' recorded, using '%s' instead",
            workspace.id,
            name,
            resolved,
        )
        return resolved

    def is_managed(self, namespace: str, workspace_id: str) -> bool:
        return is_managed_namespace(namespace, workspace_id)

    def delete_if_managed(
        self, workspace: WorkspaceRef, ctx: ResolutionContext | None = None
    ) -> bool:
        """Delete the workspace namespace if the workspace owns it. Returns True if deleted."""
        name = self.get_namespace_name(workspace, ctx)
        if not self.is_managed(name, workspace.id):
            logger.debug("Namespace '%s' is not managed by workspace '%s'", name, workspace.id)
            return False

        log_operation_start("deleting", "namespace", name)
        with provisioning_step("deletion", workspace.id, name):
            self.store.delete(name)
        log_operation_success("deleting", "namespace", name)
        return True

    def owner_context(self, workspace_id: str | None, owner_id: str | None) -> ResolutionContext:
        """Build a resolution context for the owner of a workspace."""
        if not owner_id:
            raise InfrastructureError(
                f"Workspace '{workspace_id}' has no owner to resolve its namespace for",
                workspace_id=workspace_id,
            )
        try:
            owner = self.user_directory.get_by_id(owner_id)
        except LookupError as e:
            raise InfrastructureError(
                f"Could not find owner '{owner_id}' of workspace '{workspace_id}'",
                workspace_id=workspace_id,
            ) from e
        return ResolutionContext(workspace_id=workspace_id, user_id=owner.id, user_name=owner.name)


def build_facade(
    settings: ProvisionerSettings,
    clients: KubernetesClients,
    collaborators: Collaborators,
) -> NamespaceProvisioningFacade:
    """Wire the engine from settings, cluster clients and collaborators."""
    store = NamespaceStore(clients)
    resolver = NameResolver(settings, store, collaborators.preference_store)
    pipeline = ConfiguratorPipeline(default_configurators(settings, clients, collaborators))
    logger.info("Namespace configurators: %s", ", ".join(pipeline.names))
    return NamespaceProvisioningFacade(
        settings=settings,
        store=store,
        resolver=resolver,
        namespace_provisioner=NamespaceProvisioner(store, settings.namespace_wait_timeout),
        rbac_provisioner=create_rbac_provisioner(settings, clients),
        pipeline=pipeline,
        user_directory=collaborators.user_directory,
    )
