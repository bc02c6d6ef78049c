"""
CLI runner module.

Provides commands:
- ingest: Extract files into a staged review session
- show: Print a staged session
- confirm: Create expenses from a session
- import: Ingest and confirm in one step
- categories / add-category: Category reference data
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
