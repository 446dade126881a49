"""cadre: hierarchical agent delegation and task boards."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("cadre")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
