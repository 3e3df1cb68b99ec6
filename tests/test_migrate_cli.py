"""Tests for the command-line entry point."""

import json
import sys

import pytest

import migrate


@pytest.fixture
def cms_env(monkeypatch):
    monkeypatch.setenv('CMS_URL', 'https://cms.example.com')
    monkeypatch.setenv('API_KEY', 'key')
    monkeypatch.setenv('BYPASS_KEY', 'bypass')
    monkeypatch.setenv('DEFAULT_MEDIA', 'media-1')


@pytest.fixture
def data_dir(tmp_path):
    data = tmp_path / 'data'
    data.mkdir()
    date = {'$date': {'$numberLong': '0'}}
    (data / 'guilds.json').write_text(json.dumps([
        {'_id': 'g1', 'name': 'One', 'description': '', 'image': 'https://s3.fr-par.scw.cloud/a.png', 'invite': '', 'debutDate': date}
    ]), encoding='utf-8')
    (data / 'projects.json').write_text(json.dumps([
        {'_id': 1, 'guild': 'g1', 'status': 'ongoing', 'title': 'A', 'shortDescription': '', 'description': '', 'date': date}
    ]), encoding='utf-8')
    (data / 'submissions.json').write_text(json.dumps([]), encoding='utf-8')
    return data


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, 'argv', ['migrate.py', *argv])
    return migrate.main()


def test_missing_configuration_exits_2(monkeypatch, tmp_path):
    for name in ('CMS_URL', 'API_KEY', 'BYPASS_KEY', 'DEFAULT_MEDIA'):
        monkeypatch.delenv(name, raising=False)

    assert run_cli(monkeypatch, '--config', str(tmp_path / 'absent.yaml')) == migrate.EXIT_CONFIG_ERROR


def test_missing_snapshot_exits_2(monkeypatch, tmp_path, cms_env):
    code = run_cli(
        monkeypatch,
        '--config', str(tmp_path / 'absent.yaml'),
        '--data-dir', str(tmp_path / 'empty')
    )

    assert code == migrate.EXIT_CONFIG_ERROR


def test_dry_run_completes_without_state_changes(monkeypatch, tmp_path, cms_env, data_dir):
    code = run_cli(
        monkeypatch,
        '--config', str(tmp_path / 'absent.yaml'),
        '--data-dir', str(data_dir),
        '--images-dir', str(tmp_path / 'images'),
        '--dry-run'
    )

    assert code == migrate.EXIT_OK
    assert not (data_dir / 'idmap.json').exists()
    report = json.loads((data_dir / 'migration_report.json').read_text(encoding='utf-8'))
    assert report['summary']['dry_run'] is True
    assert report['entities']['project']['dry_run'] == 1


def test_version(monkeypatch, capsys):
    with pytest.raises(SystemExit) as exc_info:
        run_cli(monkeypatch, '--version')

    assert exc_info.value.code == 0
    assert migrate.__version__ in capsys.readouterr().out
