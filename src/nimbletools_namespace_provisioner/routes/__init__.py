"""
Routes module for the namespace provisioner
"""

from .namespaces import router as namespaces_router

__all__ = ["namespaces_router"]
