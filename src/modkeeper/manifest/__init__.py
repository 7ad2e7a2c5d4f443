"""Manifest module — ``.gitmodules`` and the local submodule config."""

from modkeeper.manifest.gitmodules import Manifest, normalize_path, paths_overlap
from modkeeper.manifest.local_config import LocalConfig

__all__ = ["LocalConfig", "Manifest", "normalize_path", "paths_overlap"]
