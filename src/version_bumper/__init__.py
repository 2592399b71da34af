"""Core package exports for version-bumper."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version as metadata_version
from typing import TYPE_CHECKING, Any

__all__ = ["__version__", "VersionBumper"]

try:
    __version__ = metadata_version("version-bumper")
except PackageNotFoundError:  # pragma: no cover - fallback for editable installs
    __version__ = "0.0.0"

if TYPE_CHECKING:  # pragma: no cover
    from .api import VersionBumper


def __getattr__(name: str) -> Any:  # pragma: no cover - simple delegation
    if name == "VersionBumper":
        from .api import VersionBumper as _VersionBumper

        return _VersionBumper
    raise AttributeError(f"module 'version_bumper' has no attribute {name!r}")
