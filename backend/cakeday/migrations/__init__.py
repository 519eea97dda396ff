"""Schema migrations."""

from .runner import VERSIONS_DIR, MigrationRunner

__all__ = ["MigrationRunner", "VERSIONS_DIR"]
