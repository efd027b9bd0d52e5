"""
Request authentication for the namespace endpoints.

The configured provider validates the bearer token; the user it returns is
turned into the ResolutionContext the provisioning engine works with.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request

from nimbletools_namespace_provisioner import provider
from nimbletools_namespace_provisioner.exceptions import ProviderUnavailableError
from nimbletools_namespace_provisioner.models import ResolutionContext

logger = logging.getLogger(__name__)

User = dict[str, Any]


def extract_token(request: Request) -> str | None:
    """Bearer token of the request, if any."""
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(request: Request) -> User:
    try:
        user = await provider.validate_token(extract_token(request) or "")
    except ProviderUnavailableError as e:
        logger.error("Token validation unavailable: %s", e)
        raise HTTPException(status_code=503, detail="Authentication provider unavailable") from e

    if not user:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user


async def get_resolution_context(
    user: Annotated[User, Depends(get_current_user)],
    workspace_id: str | None = None,
) -> ResolutionContext:
    """
    Build the resolution context of the authenticated user.

    Args:
        user: User returned by the provider
        workspace_id: Optional workspace the request is made for

    Raises:
        HTTPException: 401 if the provider did not identify the user
    """
    user_id = user.get("user_id")
    username = user.get("username")
    if not user_id or not username:
        raise HTTPException(
            status_code=401, detail="User authentication failed: missing user_id or username"
        )
    return ResolutionContext(
        workspace_id=workspace_id, user_id=str(user_id), user_name=str(username)
    )


def require_permission(resource: str, action: str) -> Callable[..., Awaitable[User]]:
    """Dependency factory rejecting users the provider does not allow `action` on `resource`."""

    async def check(user: Annotated[User, Depends(get_current_user)]) -> User:
        if not await provider.check_permission(user, resource, action):
            logger.warning(
                "Permission denied for user %s: cannot %s %s",
                user.get("user_id", "unknown"),
                action,
                resource,
            )
            raise HTTPException(
                status_code=403, detail=f"Permission denied: cannot {action} {resource}"
            )
        return user

    return check
