"""skillforge: build pipeline for best-practice rule skills."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("skillforge")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
