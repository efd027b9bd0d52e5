"""
Discovers the API routers shipped in the routes package
"""

import importlib
import logging
from pathlib import Path

from fastapi import APIRouter, FastAPI

logger = logging.getLogger(__name__)

ROUTES_PACKAGE = "nimbletools_namespace_provisioner.routes"


def _route_modules() -> list[str]:
    routes_dir = Path(__file__).parent / "routes"
    if not routes_dir.exists():
        logger.warning("No routes package at %s", routes_dir)
        return []
    return sorted(
        f.stem
        for f in routes_dir.glob("*.py")
        if not f.name.startswith("_")
    )


def load_routes(app: FastAPI) -> list[str]:
    """
    Include the `router` of every public module under routes/, in name order.

    Modules that fail to import or expose no APIRouter are logged and skipped.
    Returns the stems of the included modules.
    """
    loaded = []
    for stem in _route_modules():
        module_name = f"{ROUTES_PACKAGE}.{stem}"

        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            logger.error("Skipping route module %s, import failed: %s", module_name, e)
            continue

        router = getattr(module, "router", None)
        if router is None:
            logger.debug("No router in %s", module_name)
            continue
        if not isinstance(router, APIRouter):
            logger.warning("Ignoring %s.router: %s is not an APIRouter", module_name, type(router))
            continue

        app.include_router(router)
        loaded.append(stem)
        logger.info("Included routes from %s", module_name)

    return loaded


def get_available_routes() -> list[str]:
    """Stems of the route modules load_routes would try."""
    return _route_modules()
