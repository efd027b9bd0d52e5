"""
Namespace name resolution.

A workspace namespace name is found by the first strategy that succeeds:

1. a namespace already labeled and annotated as belonging to the user
2. the name stored in the user's preferences, if it was produced by the
   currently configured template
3. the configured template, evaluated for the user and normalized if needed
"""

import logging
from collections.abc import Callable

from nimbletools_namespace_provisioner.collaborators import PreferenceStore
from nimbletools_namespace_provisioner.config import ProvisionerSettings
from nimbletools_namespace_provisioner.constants import (
    NAMESPACE_TEMPLATE_ATTRIBUTE,
    WORKSPACE_INFRASTRUCTURE_NAMESPACE_ATTRIBUTE,
)
from nimbletools_namespace_provisioner.exceptions import (
    InfrastructureError,
    KubernetesInfrastructureError,
)
from nimbletools_namespace_provisioner.k8s_utils import contains_all
from nimbletools_namespace_provisioner.models import ResolutionContext
from nimbletools_namespace_provisioner.namespace.naming import (
    evaluate_annotations,
    evaluate_placeholders,
    generate_suffix,
    is_valid_namespace_name,
    normalize_namespace_name,
    with_suffix,
)
from nimbletools_namespace_provisioner.namespace.store import NamespaceStore

logger = logging.getLogger(__name__)


class NameResolver:
    """Derives the namespace name of a user's workspaces"""

    def __init__(
        self,
        settings: ProvisionerSettings,
        store: NamespaceStore,
        preference_store: PreferenceStore,
        suffix_generator: Callable[[], str] = generate_suffix,
    ) -> None:
        self.settings = settings
        self.store = store
        self.preference_store = preference_store
        self.suffix_generator = suffix_generator

    @property
    def template(self) -> str:
        return self.settings.namespace_default

    def resolve(self, ctx: ResolutionContext) -> str:
        """Return the namespace name for the context, writing it back to preferences if new."""
        prepared = self.find_prepared_namespaces(ctx)
        if prepared:
            if len(prepared) > 1:
                logger.info(
                    "User '%s' has %d labeled namespaces %s, using '%s'",
                    ctx.user_id,
                    len(prepared),
                    prepared,
                    prepared[0],
                )
            return prepared[0]
        return self.resolve_default(ctx)

    def resolve_default(self, ctx: ResolutionContext) -> str:
        """
        Return the stored namespace name or evaluate and record the default one.

        Recording the evaluated name keeps a suffixed name stable across calls.
        """
        stored = self.stored_namespace_name(ctx)
        if stored:
            logger.debug("Using namespace '%s' stored for user '%s'", stored, ctx.user_id)
            return stored

        name = self.evaluate_default_name(ctx)
        self._record_evaluated_name(ctx, name)
        return name

    def find_prepared_namespaces(self, ctx: ResolutionContext) -> list[str]:
        """
        List namespaces labeled for workspaces and annotated for this user.

        Names are sorted so the first match is stable across calls. A
        forbidden listing is treated as "nothing prepared".
        """
        labels = self.settings.namespace_labels
        if not labels:
            return []

        try:
            namespaces = self.store.list_labeled(labels)
        except KubernetesInfrastructureError as e:
            if not e.is_forbidden:
                raise
            logger.warning(
                "Not allowed to list namespaces while resolving namespace for user '%s', "
                "falling back to the stored or default namespace: %s",
                ctx.user_id,
                e.message,
            )
            return []

        annotations = evaluate_annotations(self.settings.namespace_annotations, ctx)
        return sorted(
            ns.metadata.name
            for ns in namespaces
            if contains_all(ns.metadata.annotations, annotations)
        )

    def stored_namespace_name(self, ctx: ResolutionContext) -> str | None:
        """Return the stored namespace name if the template that produced it is still current."""
        try:
            preferences = self.preference_store.find(ctx.user_id)
        except Exception as e:
            logger.error("Failed to read preferences of user '%s': %s", ctx.user_id, e)
            return None
        name = preferences.get(WORKSPACE_INFRASTRUCTURE_NAMESPACE_ATTRIBUTE)
        stored_template = preferences.get(NAMESPACE_TEMPLATE_ATTRIBUTE)
        if not name:
            return None
        if stored_template != self.template:
            logger.info(
                "Ignoring stored namespace '%s' of user '%s', it was produced by template '%s'",
                name,
                ctx.user_id,
                stored_template,
            )
            return None
        return name

    def evaluate_default_name(self, ctx: ResolutionContext) -> str:
        """
        Evaluate the default template for the context.

        A result that already satisfies the naming grammar is returned as is.
        Otherwise it is normalized and, if the normalized name is taken, a
        random suffix is appended until a free name is found.
        """
        evaluated = evaluate_placeholders(self.template, ctx)
        if is_valid_namespace_name(evaluated):
            return evaluated

        normalized = normalize_namespace_name(evaluated)
        if not normalized:
            raise InfrastructureError(
                f"Evaluated empty namespace name for workspace '{ctx.workspace_id}'",
                operation="resolving",
                resource="namespace",
                workspace_id=ctx.workspace_id,
            )

        candidate = normalized
        while self.store.exists(candidate):
            logger.debug("Namespace '%s' already exists, trying a suffixed name", candidate)
            candidate = with_suffix(normalized, self.suffix_generator())

        if candidate != evaluated:
            logger.info(
                "Namespace name '%s' evaluated from template '%s' is invalid, using '%s'",
                evaluated,
                self.template,
                candidate,
            )
        return candidate

    def _record_evaluated_name(self, ctx: ResolutionContext, name: str) -> None:
        try:
            preferences = self.preference_store.find(ctx.user_id)
            preferences[WORKSPACE_INFRASTRUCTURE_NAMESPACE_ATTRIBUTE] = name
            preferences[NAMESPACE_TEMPLATE_ATTRIBUTE] = self.template
            self.preference_store.update(ctx.user_id, preferences)
        except Exception as e:
            # The name is still usable, only the fast path is lost
            logger.error(
                "Failed to record namespace '%s' in preferences of user '%s': %s",
                name,
                ctx.user_id,
                e,
            )
