"""Tests for configuration loading and validation."""

import argparse

import pytest

from config_loader import ConfigLoader, ConfigurationError, get_nested

ENV_NAMES = ('CMS_URL', 'API_KEY', 'BYPASS_KEY', 'DEFAULT_MEDIA')


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def cms_env(monkeypatch):
    monkeypatch.setenv('CMS_URL', 'https://cms.example.com')
    monkeypatch.setenv('API_KEY', 'key')
    monkeypatch.setenv('BYPASS_KEY', 'bypass')
    monkeypatch.setenv('DEFAULT_MEDIA', 'media-1')


def cli_args(**overrides):
    values = {'data_dir': None, 'images_dir': None, 'dry_run': None, 'autosave_interval': None, 'log_file': None}
    values.update(overrides)
    return argparse.Namespace(**values)


class TestLoad:

    def test_defaults_without_file(self, tmp_path):
        config = ConfigLoader.load(str(tmp_path / 'absent.yaml'))

        assert config['paths']['mapping'] == './data/idmap.json'
        assert config['migration']['legacy_host'] == 's3.fr-par.scw.cloud'
        assert config['migration']['autosave_interval'] == 5

    def test_environment_fallbacks(self, cms_env):
        config = ConfigLoader.load(None)

        assert config['cms']['base_url'] == 'https://cms.example.com'
        assert config['cms']['default_media'] == 'media-1'
        ConfigLoader.validate(config)

    def test_file_values_and_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv('MY_TOKEN', 'from-env')
        config_file = tmp_path / 'config.yaml'
        config_file.write_text(
            "cms:\n"
            "  base_url: https://cms.example.com\n"
            "  api_key: \"${MY_TOKEN}\"\n"
            "  bypass_key: b\n"
            "  default_media: m\n"
            "migration:\n"
            "  max_media_workers: 2\n",
            encoding='utf-8'
        )

        config = ConfigLoader.load(str(config_file))

        assert config['cms']['api_key'] == 'from-env'
        assert config['migration']['max_media_workers'] == 2
        # Untouched defaults survive the merge
        assert config['migration']['legacy_host'] == 's3.fr-par.scw.cloud'

    def test_file_value_wins_over_environment(self, tmp_path, cms_env):
        config_file = tmp_path / 'config.yaml'
        config_file.write_text("cms:\n  base_url: https://other.example.com\n", encoding='utf-8')

        assert ConfigLoader.load(str(config_file))['cms']['base_url'] == 'https://other.example.com'

    def test_non_mapping_file(self, tmp_path):
        config_file = tmp_path / 'config.yaml'
        config_file.write_text("- just\n- a list\n", encoding='utf-8')

        with pytest.raises(ConfigurationError):
            ConfigLoader.load(str(config_file))


class TestValidate:

    @pytest.mark.parametrize('missing', ENV_NAMES)
    def test_required_values(self, monkeypatch, cms_env, missing):
        monkeypatch.delenv(missing)

        with pytest.raises(ConfigurationError):
            ConfigLoader.validate(ConfigLoader.load(None))

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)

    def test_unsubstituted_variable(self, cms_env):
        config = ConfigLoader.load(None)
        config['cms']['api_key'] = '${NOT_SET_ANYWHERE}'

        with pytest.raises(ConfigurationError, match='NOT_SET_ANYWHERE'):
            ConfigLoader.validate(config)

    def test_invalid_url(self, cms_env):
        config = ConfigLoader.load(None)
        config['cms']['base_url'] = 'ftp://cms.example.com'

        with pytest.raises(ConfigurationError):
            ConfigLoader.validate(config)

    @pytest.mark.parametrize('path,value', [
        (('migration', 'autosave_interval'), 0),
        (('migration', 'max_media_workers'), 0),
        (('advanced', 'request_timeout'), -1),
    ])
    def test_non_positive_numbers(self, cms_env, path, value):
        config = ConfigLoader.load(None)
        config[path[0]][path[1]] = value

        with pytest.raises(ConfigurationError):
            ConfigLoader.validate(config)


class TestMergeWithArgs:

    def test_data_and_images_dirs(self):
        merged = ConfigLoader.merge_with_args(
            ConfigLoader.load(None),
            cli_args(data_dir='export', images_dir='pics')
        )

        assert merged['paths']['communities'].replace('\\', '/') == 'export/guilds.json'
        assert merged['paths']['mapping'].replace('\\', '/') == 'export/idmap.json'
        assert merged['paths']['cache_dir'].replace('\\', '/') == 'pics/cache'
        assert merged['paths']['originals_dir'].replace('\\', '/') == 'pics/orig'

    def test_flags_override(self):
        merged = ConfigLoader.merge_with_args(
            ConfigLoader.load(None),
            cli_args(dry_run=True, autosave_interval=2.5, log_file='run.log')
        )

        assert merged['migration']['dry_run'] is True
        assert merged['migration']['autosave_interval'] == 2.5
        assert merged['logging']['file'] == 'run.log'

    def test_unset_flags_keep_config(self):
        config = ConfigLoader.load(None)
        merged = ConfigLoader.merge_with_args(config, cli_args())

        assert merged == config
        assert merged is not config


def test_get_nested():
    config = {'cms': {'base_url': 'x'}}

    assert get_nested(config, 'cms.base_url') == 'x'
    assert get_nested(config, 'cms.missing', 'default') == 'default'
    assert get_nested(config, 'cms.base_url.deeper') is None
