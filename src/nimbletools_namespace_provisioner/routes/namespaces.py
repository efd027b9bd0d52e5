"""
Namespace Router for the namespace provisioner
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from nimbletools_namespace_provisioner import auth
from nimbletools_namespace_provisioner.exceptions import convert_to_http_exception
from nimbletools_namespace_provisioner.facade import NamespaceProvisioningFacade
from nimbletools_namespace_provisioner.models import NamespaceMetaResponse, ResolutionContext

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1/kubernetes/namespace", tags=["namespaces"])


def get_facade(request: Request) -> NamespaceProvisioningFacade:
    """Return the provisioning facade created at startup."""
    facade = getattr(request.app.state, "facade", None)
    if facade is None:
        raise HTTPException(status_code=503, detail="Namespace provisioner is not ready")
    return facade


@router.get("")
async def list_namespaces(
    ctx: ResolutionContext = Depends(auth.get_resolution_context),
    facade: NamespaceProvisioningFacade = Depends(get_facade),
) -> list[NamespaceMetaResponse]:
    """List the namespaces the user's workspaces may run in"""
    try:
        metas = await run_in_threadpool(facade.list_namespaces, ctx)
    except Exception as e:
        logger.error("Failed to list namespaces for user %s: %s", ctx.user_id, e)
        raise convert_to_http_exception(e) from e

    return [NamespaceMetaResponse.from_meta(meta) for meta in metas]


@router.post("/provision")
async def provision_namespace(
    _user: dict[str, Any] = Depends(auth.require_permission("namespaces", "create")),
    ctx: ResolutionContext = Depends(auth.get_resolution_context),
    facade: NamespaceProvisioningFacade = Depends(get_facade),
) -> NamespaceMetaResponse:
    """Resolve, create and configure the namespace of the user"""
    try:
        meta = await run_in_threadpool(facade.provision, ctx)
    except Exception as e:
        logger.error("Failed to provision namespace for user %s: %s", ctx.user_id, e)
        raise convert_to_http_exception(e) from e

    return NamespaceMetaResponse.from_meta(meta)
