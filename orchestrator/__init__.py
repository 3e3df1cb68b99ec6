"""
Orchestration package for the community migration.

This package walks the legacy hierarchy (communities, projects, submissions),
keeps the run state flushed to disk and aggregates the per-entity outcomes.
"""

from .migration_orchestrator import MigrationOrchestrator
from .migration_report import MigrationReport
from .state_guard import StateGuard

__all__ = [
    'MigrationOrchestrator',
    'MigrationReport',
    'StateGuard'
]
