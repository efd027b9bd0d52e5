"""
Configuration for the namespace provisioner.

Settings are read from an optional YAML file (PROVISIONER_CONFIG) and
overridden by environment variables. Any invalid value is reported as a
ConfigurationError so that the process refuses to start.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from nimbletools_namespace_provisioner.constants import REQUIRED_NAMESPACE_NAME_PLACEHOLDERS
from nimbletools_namespace_provisioner.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

RBAC_FLAVORS = ("kubernetes", "openshift")

# Environment variable -> settings field
ENV_FIELDS = {
    "NAMESPACE_DEFAULT": "namespace_default",
    "NAMESPACE_CREATION_ALLOWED": "namespace_creation_allowed",
    "NAMESPACE_LABEL": "label_namespaces",
    "NAMESPACE_LABELS": "namespace_labels",
    "NAMESPACE_ANNOTATE": "annotate_namespaces",
    "NAMESPACE_ANNOTATIONS": "namespace_annotations",
    "SERVICE_ACCOUNT_NAME": "service_account_name",
    "WORKSPACE_SA_CLUSTER_ROLES": "workspace_sa_cluster_roles",
    "USER_CLUSTER_ROLES": "user_cluster_roles",
    "RBAC_FLAVOR": "rbac_flavor",
    "REQUEST_TIMEOUT": "request_timeout",
    "NAMESPACE_WAIT_TIMEOUT": "namespace_wait_timeout",
    "LOG_LEVEL": "log_level",
}


def parse_csv_map(value: str | None) -> dict[str, str]:
    """Parse 'k1=v1,k2=v2' into an ordered dict."""
    if not value:
        return {}
    result: dict[str, str] = {}
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        key, sep, item = entry.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid 'key=value' entry '{entry}'")
        result[key.strip()] = item.strip()
    return result


def parse_csv_list(value: str | None) -> list[str]:
    """Parse 'a,b,c' into an ordered list without blanks or duplicates."""
    if not value:
        return []
    result: list[str] = []
    for item in value.split(","):
        item = item.strip()
        if item and item not in result:
            result.append(item)
    return result


class ProvisionerSettings(BaseModel):
    """Provisioner configuration loaded once at process start"""

    namespace_default: str = Field(
        default="<username>-che",
        description="Namespace name template, must contain <username> or <userid>",
    )
    namespace_creation_allowed: bool = Field(
        default=True, description="Whether namespaces may be created for users"
    )
    label_namespaces: bool = Field(default=True, description="Stamp labels on namespaces")
    namespace_labels: dict[str, str] = Field(
        default_factory=lambda: {
            "app.kubernetes.io/part-of": "nimbletools.dev",
            "app.kubernetes.io/component": "workspaces-namespace",
        },
        description="Labels identifying workspace namespaces",
    )
    annotate_namespaces: bool = Field(default=True, description="Stamp annotations on namespaces")
    namespace_annotations: dict[str, str] = Field(
        default_factory=lambda: {"nimbletools.dev/username": "<username>"},
        description="Annotations identifying the namespace owner, values may use placeholders",
    )
    service_account_name: str = Field(
        default="", description="Workspace ServiceAccount name, empty disables RBAC provisioning"
    )
    workspace_sa_cluster_roles: list[str] = Field(
        default_factory=list, description="Cluster roles bound to the workspace ServiceAccount"
    )
    user_cluster_roles: list[str] = Field(
        default_factory=list, description="Cluster roles bound to the user in their namespace"
    )
    rbac_flavor: str = Field(default="kubernetes", description="RBAC object flavor")
    request_timeout: float = Field(default=30.0, gt=0, description="Per-request timeout (s)")
    namespace_wait_timeout: int = Field(
        default=60, gt=0, description="Seconds to wait for a new namespace to become active"
    )
    log_level: str = Field(default="INFO", description="Application log level")

    @field_validator("namespace_default")
    @classmethod
    def _require_placeholder(cls, value: str) -> str:
        if not value:
            raise ValueError("NAMESPACE_DEFAULT must be configured")
        if not any(p in value for p in REQUIRED_NAMESPACE_NAME_PLACEHOLDERS):
            raise ValueError(
                "Only 'per user' namespaces are allowed. Using the "
                f"{' or '.join(REQUIRED_NAMESPACE_NAME_PLACEHOLDERS)} placeholder is required "
                f"in NAMESPACE_DEFAULT. The current value is: '{value}'."
            )
        return value

    @field_validator("namespace_labels", "namespace_annotations", mode="before")
    @classmethod
    def _parse_map(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return parse_csv_map(value)
        return value

    @field_validator("workspace_sa_cluster_roles", "user_cluster_roles", mode="before")
    @classmethod
    def _parse_list(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return parse_csv_list(value)
        return value

    @field_validator("service_account_name", mode="before")
    @classmethod
    def _blank_service_account(cls, value: Any) -> Any:
        return (value or "").strip()

    @field_validator("rbac_flavor")
    @classmethod
    def _known_flavor(cls, value: str) -> str:
        value = value.lower()
        if value not in RBAC_FLAVORS:
            raise ValueError(f"RBAC_FLAVOR must be one of {', '.join(RBAC_FLAVORS)}")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return value.upper()


def load_config_file(config_path: str) -> dict[str, Any]:
    """Load settings overrides from a YAML file."""
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Provisioner configuration file not found at: {config_path}")

    logger.info("Loading provisioner config from: %s", config_path)
    with path.open() as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Provisioner configuration in {config_path} must be a mapping")
    return data


def load_settings(environ: dict[str, str] | None = None) -> ProvisionerSettings:
    """Build settings from the optional config file and the environment."""
    env = os.environ if environ is None else environ

    values: dict[str, Any] = {}
    config_path = env.get("PROVISIONER_CONFIG", "")
    if config_path:
        values.update(load_config_file(config_path))

    for env_name, field_name in ENV_FIELDS.items():
        if env_name in env:
            values[field_name] = env[env_name]

    try:
        settings = ProvisionerSettings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid provisioner configuration: {e}") from e

    logger.info(
        "Namespace template '%s', creation allowed: %s, service account: '%s'",
        settings.namespace_default,
        settings.namespace_creation_allowed,
        settings.service_account_name or "<disabled>",
    )
    return settings
