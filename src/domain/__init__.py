"""
Domain package for the batch export benchmark.

Exports the row model and the shared export configuration used across
strategies and the harness. Keep this package focused on data definitions and
validation concerns.
"""

from src.domain.models import AccountRow, ExportConfig

__all__ = [
    "AccountRow",
    "ExportConfig",
]
