"""
Pluggable provider for authentication and user data.

A provider is any object with the methods below; nothing has to be
inherited. The class is named in the YAML file pointed to by
PROVIDER_CONFIG:

    class: nimbletools_namespace_provisioner.providers.community.CommunityProvider
    kwargs:
      username: community

Expected methods:
- async validate_token(token) -> {"user_id", "username", "email"} | None
- async check_permission(user, resource, action) -> bool
- collaborators() -> Collaborators
- async initialize() / async shutdown()
"""

import importlib
import logging
import os
from pathlib import Path
from typing import Any, Protocol, cast

import yaml

from nimbletools_namespace_provisioner.collaborators import Collaborators
from nimbletools_namespace_provisioner.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

REQUIRED_METHODS = (
    "validate_token",
    "check_permission",
    "collaborators",
    "initialize",
    "shutdown",
)


class ProviderProtocol(Protocol):
    async def validate_token(self, token: str) -> dict[str, Any] | None: ...

    async def check_permission(
        self, user: dict[str, Any], resource: str, action: str
    ) -> bool: ...

    def collaborators(self) -> Collaborators: ...

    async def initialize(self) -> None: ...

    async def shutdown(self) -> None: ...


_provider: ProviderProtocol | None = None


def load_provider_config() -> dict[str, Any]:
    """Read the provider YAML named by PROVIDER_CONFIG."""
    config_path = os.getenv("PROVIDER_CONFIG", "")
    if not config_path:
        raise ConfigurationError(
            "PROVIDER_CONFIG environment variable not set; "
            "it must name the provider configuration YAML file"
        )

    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Provider configuration file not found at: {config_path}")

    logger.info("Loading provider config from: %s", config_path)
    with path.open() as f:
        return cast("dict[str, Any]", yaml.safe_load(f) or {})


def _load_class(class_path: str) -> type:
    module_path, class_name = class_path.rsplit(".", 1)
    logger.debug("Importing provider module %s", module_path)
    return cast(type, getattr(importlib.import_module(module_path), class_name))


def configure() -> None:
    """Instantiate the configured provider and install it globally."""
    global _provider  # noqa: PLW0603

    config = load_provider_config()
    class_path = config.get("class")
    if not class_path:
        raise ConfigurationError("Provider class not specified in configuration")

    kwargs = config.get("kwargs") or {}
    if not isinstance(kwargs, dict):
        raise ConfigurationError(f"Provider kwargs must be a mapping, got {type(kwargs).__name__}")

    try:
        instance = _load_class(class_path)(**kwargs)
    except Exception as e:
        logger.error("Failed to configure provider %s: %s", class_path, e)
        raise ConfigurationError(f"Failed to load configured provider {class_path}: {e}") from e

    missing = [name for name in REQUIRED_METHODS if not callable(getattr(instance, name, None))]
    if missing:
        raise ConfigurationError(
            f"Provider {class_path} is missing required methods: {', '.join(missing)}"
        )

    _provider = cast(ProviderProtocol, instance)
    logger.info("Provider configured: %s", class_path)


def get_provider() -> ProviderProtocol:
    if _provider is None:
        configure()
    if _provider is None:
        raise ConfigurationError("Provider not configured")
    return _provider


async def validate_token(token: str) -> dict[str, Any] | None:
    return await get_provider().validate_token(token)


async def check_permission(user: dict[str, Any], resource: str, action: str) -> bool:
    return await get_provider().check_permission(user, resource, action)


def collaborators() -> Collaborators:
    """Collaborators supplied by the configured provider."""
    return get_provider().collaborators()


async def initialize() -> None:
    await get_provider().initialize()


async def shutdown() -> None:
    await get_provider().shutdown()
