"""
Custom exception classes for the Azure DevOps to GitHub migration tool.
"""

from __future__ import annotations


class MigrationError(Exception):
    """Base exception for migration errors."""


class ConfigurationError(MigrationError):
    """Raised when a required setting is missing or invalid."""


class IntegrityError(MigrationError):
    """Raised when source data or the migration map violates an invariant."""
