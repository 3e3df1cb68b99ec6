"""Tests for the persisted id mapping and run state."""

import json

import pytest

from importers.id_mapping_tracker import IdMappingTracker, write_json_atomic
from models import LegacySubmission


@pytest.fixture
def paths(tmp_path):
    data = tmp_path / 'data'
    return {
        'mapping_path': str(data / 'idmap.json'),
        'failed_path': str(data / 'failed.json'),
        'missing_path': str(data / 'missing.json'),
        'autosave_mapping_path': str(data / 'idmap_auto.json'),
        'autosave_missing_path': str(data / 'missing_auto.json')
    }


def read(path):
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


class TestIdMappingTracker:

    def test_load_without_files_is_empty(self, paths):
        tracker = IdMappingTracker.load(**paths)

        assert tracker.to_dict() == {'guilds': {}, 'projects': {}, 'successfullyProcessed': []}
        assert tracker.failed == []
        assert tracker.missing == []

    def test_processed_ids_are_deduplicated_and_keep_type(self, paths):
        tracker = IdMappingTracker(**paths)
        tracker.record_processed(42)
        tracker.record_processed(42)
        tracker.record_processed('abc')

        assert tracker.is_processed(42)
        assert not tracker.is_processed('42')
        assert tracker.to_dict()['successfullyProcessed'] == [42, 'abc']

    def test_string_and_integer_ids_stay_distinct(self, paths):
        tracker = IdMappingTracker(**paths)
        tracker.record_processed('1')

        assert not tracker.is_processed(1)

        tracker.record_processed(1)
        tracker.flush()

        reloaded = IdMappingTracker.load(**paths)
        assert reloaded.is_processed('1')
        assert reloaded.is_processed(1)
        assert read(paths['mapping_path'])['successfullyProcessed'] == ['1', 1]

    def test_project_ids_normalise_to_strings(self, paths):
        tracker = IdMappingTracker(**paths)
        tracker.map_project(7, 'cms-7')

        assert tracker.get_project_id('7') == 'cms-7'
        assert tracker.get_project_id(7) == 'cms-7'
        assert tracker.to_dict()['projects'] == {'7': 'cms-7'}

    def test_flush_round_trip(self, paths):
        tracker = IdMappingTracker(**paths)
        tracker.map_community('g1', 'cms-g1')
        tracker.record_processed('g1')
        tracker.map_project(7, 'cms-7')
        tracker.record_processed(7)
        tracker.flush()

        reloaded = IdMappingTracker.load(**paths)
        assert reloaded.get_community_id('g1') == 'cms-g1'
        assert reloaded.get_project_id(7) == 'cms-7'
        assert reloaded.is_processed(7)
        assert read(paths['mapping_path'])['successfullyProcessed'] == ['g1', 7]

    def test_flush_writes_failed_only_when_asked(self, paths):
        tracker = IdMappingTracker(**paths)
        tracker.mark_failed('s1')

        tracker.flush()
        assert read(paths['missing_path']) == []
        with pytest.raises(FileNotFoundError):
            read(paths['failed_path'])

        tracker.flush(include_failed=True)
        assert read(paths['failed_path']) == ['s1']

    def test_failed_ids_are_loaded(self, paths):
        write_json_atomic(paths['failed_path'], ['s1', 's2'])

        tracker = IdMappingTracker.load(**paths)
        assert tracker.is_failed('s1')
        assert tracker.is_failed('s2')
        assert not tracker.is_failed('s3')

    def test_missing_report_starts_empty_each_run(self, paths):
        write_json_atomic(paths['missing_path'], [{'_id': {'$oid': 'old'}}])

        tracker = IdMappingTracker.load(**paths)
        assert tracker.missing == []

    def test_missing_report_keeps_full_record(self, paths):
        raw = {'_id': {'$oid': 's9'}, 'project': 7, 'type': 'image', 'src': 'https://s3.fr-par.scw.cloud/x.png'}
        tracker = IdMappingTracker(**paths)
        tracker.record_missing(LegacySubmission.from_dict(raw))
        tracker.record_missing(LegacySubmission.from_dict(raw))
        tracker.flush()

        assert tracker.is_missing('s9')
        assert read(paths['missing_path']) == [raw]

    def test_communities_alias_is_accepted(self, paths):
        write_json_atomic(paths['mapping_path'], {'communities': {'g1': 'cms-g1'}, 'projects': {}})

        tracker = IdMappingTracker.load(**paths)
        assert tracker.get_community_id('g1') == 'cms-g1'
        assert tracker.to_dict()['guilds'] == {'g1': 'cms-g1'}

    def test_autosave_uses_autosave_locations(self, paths):
        tracker = IdMappingTracker(**paths)
        tracker.map_community('g1', 'cms-g1')
        tracker.autosave()

        assert read(paths['autosave_mapping_path'])['guilds'] == {'g1': 'cms-g1'}
        assert read(paths['autosave_missing_path']) == []

    def test_invalid_mapping_file_raises(self, paths):
        write_json_atomic(paths['mapping_path'], ['not', 'an', 'object'])

        with pytest.raises(ValueError):
            IdMappingTracker.load(**paths)

    def test_corrupt_mapping_file_raises(self, paths, tmp_path):
        (tmp_path / 'data').mkdir(exist_ok=True)
        with open(paths['mapping_path'], 'w', encoding='utf-8') as f:
            f.write('{"guilds": ')

        with pytest.raises(ValueError):
            IdMappingTracker.load(**paths)

    def test_statistics(self, paths):
        tracker = IdMappingTracker(**paths)
        tracker.map_community('g1', 'x')
        tracker.record_processed('g1')
        tracker.mark_failed('s1')

        assert tracker.get_statistics() == {
            'communities': 1,
            'projects': 0,
            'processed': 1,
            'failed': 1,
            'missing': 0
        }


def test_write_json_atomic_leaves_no_temp_files(tmp_path):
    target = tmp_path / 'out' / 'state.json'
    write_json_atomic(str(target), {'a': 1})
    write_json_atomic(str(target), {'a': 2})

    assert read(str(target)) == {'a': 2}
    assert [p.name for p in (tmp_path / 'out').iterdir()] == ['state.json']
