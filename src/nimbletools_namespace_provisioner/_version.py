"""Version information for nimbletools-namespace-provisioner."""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("nimbletools-namespace-provisioner")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.1.0+dev"
