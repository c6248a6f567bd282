"""
Tests for configuration loading and management.
"""

from pathlib import Path


class TestConfig:
    """Tests for Config dataclass."""

    def test_config_defaults(self):
        """Test default config values."""
        from squeezeclip.config import Config

        cfg = Config()

        assert cfg.output_dir == ""
        assert cfg.target_size == 50.0
        assert cfg.size_unit == "MB"
        assert cfg.max_fps is None
        assert cfg.ffmpeg_path == "ffmpeg"
        assert cfg.ffprobe_path == "ffprobe"
        assert cfg.video_codec == "libx264"
        assert cfg.audio_codec == "aac"
        assert cfg.preset == "slow"
        assert cfg.profile == "high"
        assert cfg.level == "4.2"
        assert cfg.progress is True
        assert cfg.debug is False

    def test_for_library_disables_progress(self):
        """Library use has no terminal UI."""
        from squeezeclip.config import Config

        cfg = Config.for_library(target_size=8)
        assert cfg.progress is False
        assert cfg.target_size == 8

    def test_apply_script_mode(self, monkeypatch):
        from squeezeclip.config import Config

        monkeypatch.setenv("NO_COLOR", "1")
        cfg = Config()
        cfg.apply_script_mode()
        assert cfg.progress is False

    def test_script_mode_env(self, monkeypatch):
        from squeezeclip.config import is_script_mode

        monkeypatch.setenv("SQUEEZECLIP_SCRIPT_MODE", "1")
        assert is_script_mode() is True


class TestXDGDirectories:
    """Tests for XDG directory functions."""

    def test_get_xdg_config_home_default(self, monkeypatch):
        """Test default config home."""
        from squeezeclip.config import get_xdg_config_home

        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        assert get_xdg_config_home() == Path.home() / ".config"

    def test_get_xdg_config_home_custom(self, monkeypatch, temp_dir):
        """Test custom config home."""
        from squeezeclip.config import get_xdg_config_home

        monkeypatch.setenv("XDG_CONFIG_HOME", str(temp_dir))
        assert get_xdg_config_home() == temp_dir

    def test_get_xdg_state_home_default(self, monkeypatch):
        """Test default state home."""
        from squeezeclip.config import get_xdg_state_home

        monkeypatch.delenv("XDG_STATE_HOME", raising=False)
        assert get_xdg_state_home() == Path.home() / ".local" / "state"

    def test_get_app_dirs(self, mock_xdg_dirs, temp_dir):
        """Test app directories creation."""
        from squeezeclip.config import get_app_dirs

        dirs = get_app_dirs()

        for key in ("config", "state", "logs", "cache", "passlog"):
            assert key in dirs
            assert dirs[key].exists()
        assert dirs["logs"] == temp_dir / "state" / "squeezeclip" / "logs"
        assert dirs["passlog"] == temp_dir / "cache" / "squeezeclip" / "passlog"


class TestConfigFileLoading:
    """Tests for configuration file loading."""

    def test_load_config_file_empty(self, temp_config_dir, temp_dir):
        """Test loading from empty directory."""
        from squeezeclip.config import load_config_file

        assert load_config_file(temp_config_dir, system_dir=temp_dir / "no-etc") == {}

    def test_load_config_file_ini(self, temp_config_dir, temp_dir):
        """Test loading INI config."""
        from squeezeclip.config import load_config_file

        ini_content = """
[target]
size = 8
unit = Mb

[encoding]
preset = fast
level = 4.1
"""
        (temp_config_dir / "config.ini").write_text(ini_content)

        config = load_config_file(temp_config_dir, system_dir=temp_dir / "no-etc")

        assert config["target"]["size"] == 8
        assert config["target"]["unit"] == "Mb"
        assert config["encoding"]["preset"] == "fast"
        assert config["encoding"]["level"] == 4.1

    def test_load_config_file_toml(self, temp_config_dir, temp_dir):
        """TOML wins over INI when a TOML parser is available."""
        from squeezeclip.config import TOML_AVAILABLE, load_config_file

        if not TOML_AVAILABLE:
            import pytest

            pytest.skip("no TOML parser")

        (temp_config_dir / "config.toml").write_text('[tools]\nffmpeg = "/opt/ffmpeg"\n')
        config = load_config_file(temp_config_dir, system_dir=temp_dir / "no-etc")
        assert config["tools"]["ffmpeg"] == "/opt/ffmpeg"

    def test_user_config_overrides_system(self, temp_config_dir, temp_dir):
        from squeezeclip.config import load_config_file

        system_dir = temp_dir / "etc"
        system_dir.mkdir()
        (system_dir / "config.ini").write_text("[target]\nsize = 10\nunit = KB\n")
        (temp_config_dir / "config.ini").write_text("[target]\nsize = 20\n")

        config = load_config_file(temp_config_dir, system_dir=system_dir)
        assert config["target"] == {"size": 20, "unit": "KB"}

    def test_broken_file_warns(self, temp_config_dir, temp_dir, capsys):
        from squeezeclip.config import TOML_AVAILABLE, load_config_file

        name = "config.toml" if TOML_AVAILABLE else "config.ini"
        (temp_config_dir / name).write_text("[target\nsize = = =\n")

        assert load_config_file(temp_config_dir, system_dir=temp_dir / "no-etc") == {}
        assert "Warning" in capsys.readouterr().err

    def test_apply_config_to_args(self):
        """Test applying file config to Config instance."""
        from squeezeclip.config import Config, apply_config_to_args

        file_config = {
            "output": {"dir": "/videos/out"},
            "target": {"size": 8, "unit": "MB", "max_fps": 30},
            "tools": {"ffmpeg": "/opt/ffmpeg"},
            "encoding": {"preset": "medium", "level": 4.1},
        }

        cfg = Config()
        apply_config_to_args(file_config, cfg)

        assert cfg.output_dir == "/videos/out"
        assert cfg.target_size == 8
        assert cfg.max_fps == 30
        assert cfg.ffmpeg_path == "/opt/ffmpeg"
        assert cfg.preset == "medium"
        assert cfg.level == "4.1"

    def test_cli_values_win(self):
        """Values changed on the command line are not overwritten."""
        from squeezeclip.config import Config, apply_config_to_args

        cfg = Config(target_size=25, preset="fast")
        apply_config_to_args({"target": {"size": 8}, "encoding": {"preset": "medium"}}, cfg)

        assert cfg.target_size == 25
        assert cfg.preset == "fast"

    def test_empty_file_values_ignored(self):
        from squeezeclip.config import Config, apply_config_to_args

        cfg = Config()
        apply_config_to_args({"output": {"dir": ""}}, cfg)
        assert cfg.output_dir == ""

    def test_save_default_config(self, temp_config_dir):
        """Test saving default config file."""
        from squeezeclip.config import TOML_AVAILABLE, save_default_config

        path = save_default_config(temp_config_dir)

        assert path.exists()
        content = path.read_text()
        assert "[target]" in content
        assert "libx264" in content

        if TOML_AVAILABLE:
            assert path.suffix == ".toml"
        else:
            assert path.suffix == ".ini"

    def test_save_default_config_keeps_existing(self, temp_config_dir):
        from squeezeclip.config import save_default_config

        path = save_default_config(temp_config_dir)
        path.write_text("# mine\n")
        save_default_config(temp_config_dir)
        assert path.read_text() == "# mine\n"


class TestParseIniValue:
    """Tests for INI value parsing."""

    def test_parse_bool(self):
        from squeezeclip.config import _parse_ini_value

        assert _parse_ini_value("true") is True
        assert _parse_ini_value("YES") is True
        assert _parse_ini_value("off") is False

    def test_parse_numbers(self):
        from squeezeclip.config import _parse_ini_value

        assert _parse_ini_value("42") == 42
        assert _parse_ini_value("4.2") == 4.2

    def test_parse_string(self):
        from squeezeclip.config import _parse_ini_value

        assert _parse_ini_value("libx264") == "libx264"
        assert _parse_ini_value("  ") == ""
