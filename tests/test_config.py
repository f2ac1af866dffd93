"""Tests for config loading and user overrides."""

import pytest

from sketchstudio.config import CONFIG_ENV, load_config


class TestLoadConfig:
    def test_packaged_defaults(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV, raising=False)
        config = load_config()
        assert config["max_retries"] == 2
        assert config["max_continuations"] == 3
        assert config["max_tokens"] == 16384
        assert config["mode"] == "sections"

    def test_user_file_overrides_defaults(self, tmp_path):
        path = tmp_path / "studio.yaml"
        path.write_text("provider: local\nmax_retries: 5\n")
        config = load_config(str(path))
        assert config["provider"] == "local"
        assert config["max_retries"] == 5
        assert config["max_continuations"] == 3

    def test_env_var_names_user_file(self, tmp_path, monkeypatch):
        path = tmp_path / "studio.yaml"
        path.write_text("mode: single\n")
        monkeypatch.setenv(CONFIG_ENV, str(path))
        assert load_config()["mode"] == "single"

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(str(path))
