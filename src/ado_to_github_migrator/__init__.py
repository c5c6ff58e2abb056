"""
Azure DevOps to GitHub Migration Tool

Migrates Azure DevOps work items to GitHub issues, preserving their
metadata in a follow-up comment and their relations as tasklists.
"""

from __future__ import annotations

from .cli import main
from .config import MigrationConfig
from .exceptions import ConfigurationError, IntegrityError, MigrationError
from .migrator import MigrationResult, Migrator
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "IntegrityError",
    "MigrationConfig",
    "MigrationError",
    "MigrationResult",
    "Migrator",
    "main",
    "setup_logging",
]
