"""FastAPI dependencies authenticating namespace requests."""

from nimbletools_namespace_provisioner.auth.base import (
    extract_token,
    get_current_user,
    get_resolution_context,
    require_permission,
)

__all__ = [
    "extract_token",
    "get_current_user",
    "get_resolution_context",
    "require_permission",
]
