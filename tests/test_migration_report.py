"""Tests for migration outcome aggregation."""

import json

from models import EntityKind, MigrationOutcome, MigrationResult
from orchestrator.migration_report import MigrationReport


def build_report():
    report = MigrationReport()
    report.record(MigrationResult(EntityKind.COMMUNITY, 'g1', MigrationOutcome.CREATED, new_id='c1'))
    report.record(MigrationResult(EntityKind.PROJECT, '1', MigrationOutcome.ALREADY_PROCESSED))
    report.record(MigrationResult(EntityKind.SUBMISSION, 's1', MigrationOutcome.CREATED))
    report.record(MigrationResult(EntityKind.SUBMISSION, 's2', MigrationOutcome.MISSING, message='not cached'))
    report.record(MigrationResult(EntityKind.SUBMISSION, 's3', MigrationOutcome.FAILED, message='HTTP 500'))
    return report


class TestMigrationReport:

    def test_counts(self):
        report = build_report()

        assert report.count(EntityKind.SUBMISSION, MigrationOutcome.CREATED) == 1
        assert report.count(EntityKind.PROJECT, MigrationOutcome.CREATED) == 0
        assert [problem.legacy_id for problem in report.problems] == ['s2', 's3']

    def test_generate_report(self):
        data = build_report().generate_report(75.0, state_stats={'processed': 3}, cache_stats={'hits': 2})

        assert data['summary']['total_created'] == 2
        assert data['summary']['total_problems'] == 2
        assert data['summary']['duration_formatted'] == '1m 15s'
        assert data['entities']['submission']['missing'] == 1
        assert data['state'] == {'processed': 3}
        assert data['problems'][1] == {
            'kind': 'submission',
            'legacy_id': 's3',
            'outcome': 'failed',
            'message': 'HTTP 500'
        }

    def test_console_report_lists_problems(self):
        generator = build_report()
        text = generator.format_console_report(generator.generate_report(5.0))

        assert 'MIGRATION REPORT' in text
        assert '[missing] submission s2: not cached' in text

    def test_export_json(self, tmp_path):
        generator = build_report()
        target = tmp_path / 'migration_report.json'

        generator.export_json_report(generator.generate_report(1.0), str(target))

        assert json.loads(target.read_text(encoding='utf-8'))['summary']['total_problems'] == 2
