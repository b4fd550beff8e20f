"""Unit tests for configuration system."""
import json
import os
from unittest.mock import patch

import pytest

from inkwell.config import AppSettings, Settings, SettingsStore, constants, merge_settings
from inkwell.errors import ParseError, ValidationError


class TestSettings:
    """Test environment Settings."""

    def test_home_dir_created(self, temp_dir):
        """Test that the home directory is created if it doesn't exist."""
        home = temp_dir / "home"
        settings = Settings(home_dir=home)

        assert home.exists()
        assert settings.settings_file == home.resolve() / constants.SETTINGS_FILE

    def test_env_prefix(self, temp_dir):
        with patch.dict(os.environ, {'INKWELL_HOME_DIR': str(temp_dir), 'INKWELL_LOG_LEVEL': 'debug'}):
            settings = Settings()

        assert settings.home_dir == temp_dir.resolve()
        assert settings.log_level == 'DEBUG'

    def test_invalid_log_level(self, temp_dir):
        with pytest.raises(ValueError, match="Log level must be one of"):
            Settings(home_dir=temp_dir, log_level='LOUD')


class TestAppSettings:
    """Test the settings document models."""

    def test_documented_defaults(self):
        settings = AppSettings()

        assert settings.ai.temperature == 0.7
        assert settings.ai.max_tokens == 2000
        assert set(settings.ai.engines) == {'openai', 'ollama', 'llamacpp', 'custom'}
        assert settings.editor.font_size == 16
        assert settings.editor.auto_save_interval == 30000
        assert settings.git.default_remote == 'origin'
        assert settings.git.default_branch == 'main'
        assert settings.recent_projects == []

    def test_camel_case_on_disk(self):
        data = AppSettings().to_json()

        assert 'recentProjects' in data
        assert 'autoSaveInterval' in data['editor']
        assert 'baseURL' in data['ai']['engines']['openai']

    def test_masked_hides_keys(self):
        settings = merge_settings(AppSettings(), {'ai': {'engines': {'openai': {'apiKey': 'sk-secret'}}}})
        masked = settings.masked()

        assert masked.ai.engines['openai'].api_key == constants.MASKED_API_KEY
        assert masked.ai.engines['ollama'].api_key == ''
        assert settings.ai.engines['openai'].api_key == 'sk-secret'


class TestMergeSettings:
    """Test field-by-field merging."""

    def test_missing_keys_filled_from_defaults(self):
        merged = merge_settings(AppSettings(), {'editor': {'fontSize': 20}})

        assert merged.editor.font_size == 20
        assert merged.editor.theme == constants.DEFAULT_THEME
        assert merged.ai.temperature == constants.DEFAULT_TEMPERATURE

    def test_unknown_keys_dropped(self):
        merged = merge_settings(AppSettings(), {'editor': {'blink': True}, 'bogus': {'x': 1}})

        assert 'blink' not in merged.to_json()['editor']
        assert 'bogus' not in merged.to_json()

    def test_python_names_accepted(self):
        merged = merge_settings(AppSettings(), {'editor': {'font_size': 12}})
        assert merged.editor.font_size == 12

    def test_user_defined_engine_kept(self):
        merged = merge_settings(AppSettings(), {'ai': {
            'engines': {'local': {'baseURL': 'http://localhost:9000/v1', 'model': 'mine'}},
            'selectedEngine': 'local',
        }})

        assert merged.ai.selected_engine == 'local'
        assert merged.ai.engines['local'].model == 'mine'
        assert 'openai' in merged.ai.engines

    def test_masked_key_keeps_current(self):
        current = merge_settings(AppSettings(), {'ai': {'engines': {'openai': {'apiKey': 'sk-secret'}}}})
        merged = merge_settings(current, {'ai': {'engines': {'openai': {'apiKey': constants.MASKED_API_KEY}}}})

        assert merged.ai.engines['openai'].api_key == 'sk-secret'

    def test_does_not_mutate_current(self):
        current = AppSettings()
        merge_settings(current, {'ai': {'engines': {'openai': {'model': 'other'}}}})
        assert current.ai.engines['openai'].model == constants.DEFAULT_ENGINES['openai']['model']

    def test_unknown_selected_engine(self):
        with pytest.raises(ValidationError):
            merge_settings(AppSettings(), {'ai': {'selectedEngine': 'nope'}})

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            merge_settings(AppSettings(), {'ai': {'temperature': 5}})
        with pytest.raises(ValidationError):
            merge_settings(AppSettings(), {'editor': 'not a section'})

    def test_recent_projects_capped(self):
        recent = [{'name': f'p{i}', 'path': f'/p{i}'} for i in range(15)]
        merged = merge_settings(AppSettings(), {'recentProjects': recent})
        assert len(merged.recent_projects) == constants.MAX_RECENT_PROJECTS


class TestSettingsStore:
    """Test settings persistence."""

    def test_missing_file_gives_defaults(self, temp_dir):
        store = SettingsStore(temp_dir / "settings.json")
        assert store.load() == AppSettings()

    def test_corrupt_file_gives_defaults(self, temp_dir):
        path = temp_dir / "settings.json"
        path.write_text("{nope", encoding='utf-8')
        assert SettingsStore(path).load() == AppSettings()

    def test_invalid_value_keeps_rest_of_file(self, temp_dir):
        path = temp_dir / "settings.json"
        path.write_text(json.dumps({
            'ai': {'engines': {'openai': {'apiKey': 'sk-secret'}}, 'temperature': 3},
            'editor': {'fontSize': 20},
        }), encoding='utf-8')
        loaded = SettingsStore(path).load()

        assert loaded.ai.engines['openai'].api_key == 'sk-secret'
        assert loaded.ai.temperature == constants.DEFAULT_TEMPERATURE
        assert loaded.editor.font_size == 20

    def test_update_after_invalid_value_keeps_api_key(self, temp_dir):
        path = temp_dir / "settings.json"
        path.write_text(json.dumps(
            {'ai': {'engines': {'openai': {'apiKey': 'sk-secret'}}, 'temperature': 3}}
        ), encoding='utf-8')
        SettingsStore(path).update({'editor': {'fontSize': 18}})

        data = json.loads(path.read_text(encoding='utf-8'))
        assert data['ai']['engines']['openai']['apiKey'] == 'sk-secret'
        assert data['ai']['temperature'] == constants.DEFAULT_TEMPERATURE
        assert data['editor']['fontSize'] == 18

    def test_unknown_selected_engine_on_disk_falls_back(self, temp_dir):
        path = temp_dir / "settings.json"
        path.write_text(json.dumps({'ai': {'selectedEngine': 'gone'}}), encoding='utf-8')
        assert SettingsStore(path).load().ai.selected_engine == constants.DEFAULT_ENGINE

    def test_update_refuses_to_overwrite_corrupt_file(self, temp_dir):
        path = temp_dir / "settings.json"
        path.write_text("{nope", encoding='utf-8')
        store = SettingsStore(path)

        with pytest.raises(ParseError):
            store.update({'editor': {'fontSize': 18}})
        with pytest.raises(ParseError):
            store.add_recent_project(temp_dir / "a")
        assert path.read_text(encoding='utf-8') == "{nope"

    def test_update_persists(self, temp_dir):
        path = temp_dir / "settings.json"
        store = SettingsStore(path)
        store.update({'general': {'language': 'zh'}})

        assert json.loads(path.read_text(encoding='utf-8'))['general']['language'] == 'zh'
        assert store.load().general.language == 'zh'

    def test_reset(self, temp_dir):
        store = SettingsStore(temp_dir / "settings.json")
        store.update({'editor': {'fontSize': 30}})
        assert store.reset().editor.font_size == constants.DEFAULT_FONT_SIZE

    def test_export_masks_keys_and_import_keeps_them(self, temp_dir):
        store = SettingsStore(temp_dir / "settings.json")
        store.update({'ai': {'engines': {'openai': {'apiKey': 'sk-secret'}}}, 'editor': {'fontSize': 18}})

        exported = store.export_to(temp_dir / "export.json")
        data = json.loads(exported.read_text(encoding='utf-8'))
        assert data['ai']['engines']['openai']['apiKey'] == constants.MASKED_API_KEY
        assert 'sk-secret' not in exported.read_text(encoding='utf-8')

        store.update({'editor': {'fontSize': 12}})
        imported = store.import_from(exported)
        assert imported.ai.engines['openai'].api_key == 'sk-secret'
        assert imported.editor.font_size == 18

    def test_recent_projects_most_recent_first(self, temp_dir):
        store = SettingsStore(temp_dir / "settings.json")
        store.add_recent_project(temp_dir / "a")
        store.add_recent_project(temp_dir / "b")
        recent = store.add_recent_project(temp_dir / "a")

        assert [item.name for item in recent] == ['a', 'b']
        assert [item.name for item in store.recent_projects()] == ['a', 'b']

    def test_recent_projects_capped(self, temp_dir):
        store = SettingsStore(temp_dir / "settings.json")
        for i in range(12):
            store.add_recent_project(temp_dir / f"p{i}")
        recent = store.recent_projects()

        assert len(recent) == constants.MAX_RECENT_PROJECTS
        assert recent[0].name == 'p11'
