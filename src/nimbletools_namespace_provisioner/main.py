#!/usr/bin/env python3
"""
NimbleTools Namespace Provisioner
"""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI, Request

from nimbletools_namespace_provisioner import provider
from nimbletools_namespace_provisioner._version import __version__
from nimbletools_namespace_provisioner.config import load_settings
from nimbletools_namespace_provisioner.facade import build_facade
from nimbletools_namespace_provisioner.k8s_utils import KubernetesClients, load_kubernetes_config
from nimbletools_namespace_provisioner.models import HealthCheck
from nimbletools_namespace_provisioner.route_loader import load_routes

# Configure logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown"""
    logger.info("Starting NimbleTools Namespace Provisioner %s", __version__)

    # Invalid configuration stops the service from starting
    settings = load_settings()
    logging.getLogger().setLevel(settings.log_level)

    load_kubernetes_config()
    clients = KubernetesClients(request_timeout=settings.request_timeout)

    await provider.initialize()
    app.state.settings = settings
    app.state.facade = build_facade(settings, clients, provider.collaborators())

    yield

    await provider.shutdown()
    app.state.facade = None
    logger.info("Shutting down NimbleTools Namespace Provisioner")


app = FastAPI(
    title="NimbleTools Namespace Provisioner",
    description="Resolves, creates and prepares Kubernetes namespaces for workspaces",
    version=__version__,
    lifespan=lifespan,
)

# Dynamically load all route modules
load_routes(app)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with service info"""
    return {
        "name": "NimbleTools Namespace Provisioner",
        "version": __version__,
        "description": "Namespace resolution and provisioning for workspaces",
        "endpoints": ["/health", "/v1/kubernetes/namespace", "/v1/kubernetes/namespace/provision"],
    }


@app.get("/health")
async def health_check(request: Request) -> HealthCheck:
    """Health check endpoint"""
    ready = getattr(request.app.state, "facade", None) is not None
    return HealthCheck(
        status="healthy" if ready else "starting",
        version=__version__,
        details={"provisioner_ready": ready},
    )


def main() -> None:
    """Main entry point for the application."""
    port = int(os.getenv("PORT", "8080"))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    main()
