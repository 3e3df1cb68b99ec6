"""
Migration report generator for aggregating per-entity outcomes.

This module collects the result of every community, project and submission
migration and formats them for console display and JSON export.
"""

import json
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from models import EntityKind, MigrationOutcome, MigrationResult

logger = logging.getLogger('community_cms_migrator.orchestrator.report')


class MigrationReport:
    """Aggregates migration outcomes into a report."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize migration report.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger('community_cms_migrator.orchestrator.report')
        self._counts: Dict[EntityKind, Dict[MigrationOutcome, int]] = defaultdict(lambda: defaultdict(int))
        self._problems: List[MigrationResult] = []

    def record(self, result: MigrationResult) -> None:
        """Count one entity outcome; anything not created or already done is listed."""
        self._counts[result.kind][result.outcome] += 1

        if result.outcome in (MigrationOutcome.SKIPPED, MigrationOutcome.MISSING, MigrationOutcome.FAILED):
            self._problems.append(result)

    def count(self, kind: EntityKind, outcome: MigrationOutcome) -> int:
        return self._counts[kind][outcome]

    @property
    def problems(self) -> List[MigrationResult]:
        return list(self._problems)

    def generate_report(
        self,
        duration: float,
        state_stats: Optional[Dict[str, Any]] = None,
        cache_stats: Optional[Dict[str, Any]] = None,
        dry_run: bool = False
    ) -> Dict[str, Any]:
        """
        Generate the report dictionary.

        Args:
            duration: Run duration in seconds
            state_stats: Statistics from the id mapping tracker
            cache_stats: Statistics from the image cache
            dry_run: Whether the run made no remote calls

        Returns:
            Migration report dictionary
        """
        entities = {}
        for kind in EntityKind:
            entities[kind.value] = {
                outcome.value: self._counts[kind][outcome] for outcome in MigrationOutcome
            }

        report = {
            'summary': {
                'duration': duration,
                'duration_formatted': self._format_duration(duration),
                'dry_run': dry_run,
                'total_created': sum(entities[kind.value]['created'] for kind in EntityKind),
                'total_problems': len(self._problems)
            },
            'entities': entities,
            'state': state_stats or {},
            'cache': cache_stats or {},
            'problems': [
                {
                    'kind': result.kind.value,
                    'legacy_id': result.legacy_id,
                    'outcome': result.outcome.value,
                    'message': result.message
                }
                for result in self._problems
            ],
            'timestamp': datetime.now().isoformat()
        }

        self.logger.info(
            f"Report generated: {report['summary']['total_created']} created, "
            f"{report['summary']['total_problems']} problems"
        )
        return report

    def format_console_report(self, report: Dict[str, Any]) -> str:
        """
        Format report for console display.

        Args:
            report: Migration report dictionary

        Returns:
            Formatted console string
        """
        sections = []

        sections.append("=" * 60)
        sections.append("MIGRATION REPORT")
        sections.append("=" * 60)
        sections.append("")

        summary = report.get('summary', {})
        sections.append("Summary:")
        sections.append(f"  Created:     {summary.get('total_created', 0)}")
        sections.append(f"  Problems:    {summary.get('total_problems', 0)}")
        sections.append(f"  Duration:    {summary.get('duration_formatted', '0s')}")
        if summary.get('dry_run'):
            sections.append("  Mode:        DRY RUN")
        sections.append("")

        sections.append("Entities:")
        sections.append("-" * 60)
        for kind, outcomes in report.get('entities', {}).items():
            parts = [f"{count} {outcome.replace('_', ' ')}" for outcome, count in outcomes.items() if count]
            sections.append(f"  {kind.capitalize():<12} {', '.join(parts) if parts else 'none'}")
        sections.append("")

        state = report.get('state', {})
        if state:
            sections.append("State:")
            sections.append("-" * 60)
            sections.append(f"  Processed:   {state.get('processed', 0)}")
            sections.append(f"  Failed:      {state.get('failed', 0)}")
            sections.append(f"  Missing:     {state.get('missing', 0)}")
            sections.append("")

        cache = report.get('cache', {})
        if cache:
            sections.append("Image Cache:")
            sections.append("-" * 60)
            sections.append(
                f"  {cache.get('hits', 0)} hits, {cache.get('original_hits', 0)} from originals, "
                f"{cache.get('misses', 0)} misses, {cache.get('invalidations', 0)} invalidated"
            )
            sections.append("")

        problems = report.get('problems', [])
        if problems:
            sections.append("Problems (first 20):")
            sections.append("-" * 60)
            for problem in problems[:20]:
                sections.append(
                    f"  [{problem['outcome']}] {problem['kind']} {problem['legacy_id']}: "
                    f"{problem.get('message') or ''}"
                )
            sections.append("")

        sections.append("=" * 60)
        return "\n".join(sections)

    def export_json_report(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export report to JSON file.

        Args:
            report: Migration report dictionary
            filepath: Output file path
        """
        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(report, f, indent=2, ensure_ascii=False, default=str)

            self.logger.info(f"JSON report exported to {filepath}")

        except OSError as e:
            self.logger.error(f"Failed to export JSON report: {str(e)}")

    @staticmethod
    def _format_duration(seconds: float) -> str:
        if seconds < 60:
            return f"{seconds:.1f}s"

        minutes = int(seconds // 60)
        seconds = int(seconds % 60)

        if minutes < 60:
            return f"{minutes}m {seconds}s"

        hours = minutes // 60
        minutes = minutes % 60
        return f"{hours}h {minutes}m {seconds}s"


__all__ = ['MigrationReport']
