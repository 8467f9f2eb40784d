"""Tests for configuration and persisted settings."""
from pathlib import Path

import pytest
from pydantic import ValidationError

from notekeeper.config import _USER_ENV, NotesConfig
from notekeeper.models.settings import AppSettings, Theme
from notekeeper.storage.settings_repository import SettingsRepository


class TestNotesConfig:
    """Tests for NotesConfig defaults, env handling and validation."""

    def test_user_env_path_is_correct(self):
        assert _USER_ENV == Path.home() / ".notekeeper" / ".env"

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NOTEKEEPER_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("NOTEKEEPER_AUTOSAVE_DEBOUNCE_MS", "250")
        monkeypatch.setenv("NOTEKEEPER_NEW_NOTE_POSITION", "tail")
        cfg = NotesConfig()
        assert cfg.data_dir == tmp_path
        assert cfg.autosave_debounce_ms == 250
        assert cfg.new_note_position == "tail"

    def test_user_env_file_picked_up(self, tmp_path, monkeypatch):
        from dotenv import load_dotenv

        user_env = tmp_path / ".env"
        user_env.write_text("NOTEKEEPER_MAX_BACKUPS=7\n")
        # Registers the variable with monkeypatch so it is removed afterwards
        monkeypatch.delenv("NOTEKEEPER_MAX_BACKUPS", raising=False)
        load_dotenv(user_env)
        assert NotesConfig().max_backups == 7

    def test_process_env_wins_over_env_file(self, tmp_path, monkeypatch):
        from dotenv import load_dotenv

        monkeypatch.setenv("NOTEKEEPER_MAX_BACKUPS", "4")
        user_env = tmp_path / ".env"
        user_env.write_text("NOTEKEEPER_MAX_BACKUPS=9\n")
        load_dotenv(user_env)  # won't override
        assert NotesConfig().max_backups == 4

    def test_paths_resolve_against_data_dir(self, tmp_path):
        cfg = NotesConfig(data_dir=tmp_path)
        assert cfg.get_notes_path() == tmp_path / "notes.json"
        assert cfg.get_settings_path() == tmp_path / "settings.json"
        assert cfg.get_backup_dir() == tmp_path / "backups"
        assert cfg.get_log_dir() == tmp_path / "logs"

    def test_absolute_paths_kept(self, tmp_path):
        elsewhere = tmp_path / "elsewhere" / "mine.json"
        cfg = NotesConfig(data_dir=tmp_path / "data", notes_file=elsewhere)
        assert cfg.get_notes_path() == elsewhere

    @pytest.mark.parametrize(
        "overrides",
        [
            {"autosave_debounce_ms": -1},
            {"autosave_debounce_ms": 500, "autosave_max_latency_ms": 100},
            {"save_max_retries": -1},
            {"max_backups": 0},
            {"order_key_spacing": 0},
            {"order_key_min_gap": 1.0, "order_key_spacing": 1.0},
            {"new_note_position": "middle"},
        ],
    )
    def test_invalid_values_rejected(self, tmp_path, overrides):
        with pytest.raises(ValidationError):
            NotesConfig(data_dir=tmp_path, **overrides)


class TestSettingsRepository:
    """Tests for loading and saving AppSettings."""

    def test_missing_file_gives_defaults(self, tmp_path):
        settings = SettingsRepository(tmp_path / "settings.json").load()
        assert settings == AppSettings()
        assert settings.auto_save is True
        assert settings.theme == Theme.DARK

    def test_round_trip(self, tmp_path):
        repo = SettingsRepository(tmp_path / "nested" / "settings.json")
        repo.save(AppSettings(auto_save=False, font_size=20, theme=Theme.LIGHT))
        loaded = repo.load()
        assert loaded.auto_save is False
        assert loaded.font_size == 20
        assert loaded.theme == Theme.LIGHT

    @pytest.mark.parametrize(
        "content", ["not json", '{"font_size": 1000}', '{"theme": "neon"}']
    )
    def test_invalid_file_gives_defaults(self, tmp_path, content):
        path = tmp_path / "settings.json"
        path.write_text(content)
        assert SettingsRepository(path).load() == AppSettings()

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text('{"auto_save": false, "legacy_option": 1}')
        assert SettingsRepository(path).load().auto_save is False

    def test_assignment_is_validated(self):
        settings = AppSettings()
        with pytest.raises(ValidationError):
            settings.font_size = 2

    def test_legacy_settings_file_upgraded(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(
            '{"dark_mode": false, "font_size": 18.0, "auto_save": false,'
            ' "show_word_count": true}'
        )
        settings = SettingsRepository(path).load()
        assert settings.theme == Theme.LIGHT
        assert settings.font_size == 18
        assert settings.auto_save is False
        assert settings.word_count_visible is True

    def test_fractional_font_size_keeps_other_settings(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text('{"font_size": 16.6, "auto_save": false}')
        settings = SettingsRepository(path).load()
        assert settings.font_size == 17
        assert settings.auto_save is False

    def test_current_keys_win_over_legacy_keys(self):
        settings = AppSettings.model_validate({"dark_mode": False, "theme": "dark"})
        assert settings.theme == Theme.DARK
