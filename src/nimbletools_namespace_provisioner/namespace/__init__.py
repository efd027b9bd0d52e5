"""
Namespace naming, resolution and creation
"""

from .provisioner import NamespaceProvisioner
from .resolver import NameResolver
from .store import NamespaceStore

__all__ = ["NameResolver", "NamespaceProvisioner", "NamespaceStore"]
