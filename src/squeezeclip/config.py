"""
Configuration management for squeezeclip.

Handles:
- XDG Base Directory locations (config, state/logs, cache/passlog)
- TOML/INI configuration file loading
- Config dataclass with all options
- Configuration merging (system -> user -> CLI)
- Automatic script mode detection
"""

import configparser
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

APP_NAME = "squeezeclip"

# -------------------- SCRIPT MODE DETECTION --------------------


def is_script_mode() -> bool:
    """
    Detect if terminal UI should be disabled.

    Returns True if:
    - stdout is not a TTY (piped or redirected)
    - NO_COLOR environment variable is set
    - SQUEEZECLIP_SCRIPT_MODE environment variable is set
    """
    try:
        if not sys.stdout.isatty():
            return True
    except Exception:
        return True

    if os.getenv("NO_COLOR") or os.getenv("SQUEEZECLIP_SCRIPT_MODE"):
        return True

    return False


# Try TOML support (Python 3.11+ or tomli package)
try:
    import tomllib  # Python 3.11+

    TOML_AVAILABLE = True
except ImportError:
    try:
        import tomli as tomllib  # pip install tomli

        TOML_AVAILABLE = True
    except ImportError:
        TOML_AVAILABLE = False


# -------------------- XDG DIRECTORIES --------------------


def get_xdg_config_home() -> Path:
    """Get XDG config home directory."""
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def get_xdg_state_home() -> Path:
    """Get XDG state home directory."""
    return Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))


def get_xdg_cache_home() -> Path:
    """Get XDG cache home directory."""
    return Path(os.environ.get("XDG_CACHE_HOME", Path.home() / ".cache"))


def get_app_dirs() -> Dict[str, Path]:
    """Return all application directories, creating them if needed."""
    dirs = {
        "config": get_xdg_config_home() / APP_NAME,
        "state": get_xdg_state_home() / APP_NAME,
        "logs": get_xdg_state_home() / APP_NAME / "logs",
        "cache": get_xdg_cache_home() / APP_NAME,
        "passlog": get_xdg_cache_home() / APP_NAME / "passlog",
    }
    for d in dirs.values():
        d.mkdir(parents=True, exist_ok=True)
    return dirs


# -------------------- CONFIGURATION DATACLASS --------------------


@dataclass
class Config:
    """All configuration options for squeezeclip."""

    # Output
    output_dir: str = ""

    # Target size
    target_size: float = 50.0
    size_unit: str = "MB"
    max_fps: Optional[float] = None  # None = keep probed frame rate

    # External tools
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    deps_dir: str = ""  # searched before PATH when set

    # Encoding constants
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    preset: str = "slow"
    profile: str = "high"
    level: str = "4.2"
    fallback_audio_kbps: int = 128  # audio stream present but no bit_rate reported

    # Passlog location ("" = XDG cache)
    passlog_dir: str = ""

    # UI
    progress: bool = True
    json_progress: bool = False
    debug: bool = False

    # Internationalization
    lang: Optional[str] = None

    def apply_script_mode(self) -> None:
        """Disable the interactive progress display when not attached to a terminal."""
        if is_script_mode():
            self.progress = False

    @classmethod
    def for_library(cls, **kwargs) -> "Config":
        """
        Create a Config instance for programmatic use (no terminal UI).

        Example:
            >>> config = Config.for_library(target_size=8, size_unit="MB")
        """
        defaults: Dict[str, Any] = {"progress": False}
        defaults.update(kwargs)
        return cls(**defaults)


# Global config instance (set by parse_args in cli.py)
CFG = Config()


# -------------------- CONFIG FILE LOADING --------------------


def _parse_ini_value(value: str):
    """Parse INI value: bool, int, float, or string."""
    v = value.strip()
    if not v:
        return ""
    if v.lower() in ("true", "yes", "on"):
        return True
    if v.lower() in ("false", "no", "off"):
        return False
    try:
        return int(v)
    except ValueError:
        pass
    try:
        return float(v)
    except ValueError:
        pass
    return v


def _load_ini_config(path: Path) -> Dict[str, Any]:
    """Load INI file and convert to nested dict."""
    cp = configparser.ConfigParser()
    cp.read(path)
    result: Dict[str, Any] = {}
    for section in cp.sections():
        result[section] = {key: _parse_ini_value(value) for key, value in cp.items(section)}
    return result


def _load_single_config(config_dir: Path) -> Dict[str, Any]:
    """Load config from a single directory (TOML or INI file)."""
    toml_path = config_dir / "config.toml"
    ini_path = config_dir / "config.ini"

    if TOML_AVAILABLE and toml_path.exists():
        try:
            with toml_path.open("rb") as f:
                return dict(tomllib.load(f))
        except Exception as e:
            print(f"Warning: Failed to load {toml_path}: {e}", file=sys.stderr)
            return {}
    elif ini_path.exists():
        try:
            return _load_ini_config(ini_path)
        except Exception as e:
            print(f"Warning: Failed to load {ini_path}: {e}", file=sys.stderr)
            return {}
    return {}


def _deep_merge_dicts(base: dict, override: dict) -> dict:
    """Deep merge two dicts, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


def load_config_file(config_dir: Path, system_dir: Path = Path("/etc") / APP_NAME) -> dict:
    """
    Load config with priority:
    1. User config: ~/.config/squeezeclip/config.toml (highest priority)
    2. System config: /etc/squeezeclip/config.toml (optional)
    """
    system_config = _load_single_config(system_dir) if system_dir.exists() else {}
    user_config = _load_single_config(config_dir)
    return _deep_merge_dicts(system_config, user_config)


def _get_default_config_toml() -> str:
    """Return default config as TOML string."""
    return """# squeezeclip configuration file
# This file is auto-generated on first run

[output]
# dir = "/home/me/Videos/compressed"

[target]
size = 50.0
unit = "MB"  # b, B, Kb, KB, Mb, MB, Gb, GB
# max_fps = 30

[tools]
ffmpeg = "ffmpeg"
ffprobe = "ffprobe"
# deps_dir = "/opt/ffmpeg/bin"

[encoding]
video_codec = "libx264"
audio_codec = "aac"
preset = "slow"
profile = "high"
level = "4.2"
fallback_audio_kbps = 128

[i18n]
# lang = "fr"
"""


def _get_default_config_ini() -> str:
    """Return default config as INI string."""
    return """# squeezeclip configuration file
# This file is auto-generated on first run

[output]
dir =

[target]
size = 50.0
unit = MB

[tools]
ffmpeg = ffmpeg
ffprobe = ffprobe

[encoding]
video_codec = libx264
audio_codec = aac
preset = slow
profile = high
level = 4.2
fallback_audio_kbps = 128
"""


def save_default_config(config_dir: Path) -> Path:
    """Create default config file (TOML if available, else INI). Returns path."""
    config_dir.mkdir(parents=True, exist_ok=True)

    if TOML_AVAILABLE:
        path = config_dir / "config.toml"
        if not path.exists():
            path.write_text(_get_default_config_toml())
    else:
        path = config_dir / "config.ini"
        if not path.exists():
            path.write_text(_get_default_config_ini())
    return path


# (section, key) in the config file -> Config attribute
CONFIG_FILE_MAPPINGS = {
    ("output", "dir"): "output_dir",
    ("target", "size"): "target_size",
    ("target", "unit"): "size_unit",
    ("target", "max_fps"): "max_fps",
    ("tools", "ffmpeg"): "ffmpeg_path",
    ("tools", "ffprobe"): "ffprobe_path",
    ("tools", "deps_dir"): "deps_dir",
    ("encoding", "video_codec"): "video_codec",
    ("encoding", "audio_codec"): "audio_codec",
    ("encoding", "preset"): "preset",
    ("encoding", "profile"): "profile",
    ("encoding", "level"): "level",
    ("encoding", "fallback_audio_kbps"): "fallback_audio_kbps",
    ("encoding", "passlog_dir"): "passlog_dir",
    ("i18n", "lang"): "lang",
}


def apply_config_to_args(file_config: dict, cfg: Config) -> None:
    """
    Apply file config values to a Config instance.

    A value is only taken from the file when the CLI left the attribute at its
    default, so explicit CLI arguments win.
    """
    default_cfg = Config()

    for (section, key), attr_name in CONFIG_FILE_MAPPINGS.items():
        if section not in file_config or key not in file_config[section]:
            continue

        file_val = file_config[section][key]
        if getattr(cfg, attr_name) != getattr(default_cfg, attr_name):
            continue
        if file_val == "":
            continue

        # INI values come back as int/float/str; keep text options textual
        if attr_name in ("level", "size_unit", "output_dir", "deps_dir", "passlog_dir"):
            file_val = str(file_val)
        setattr(cfg, attr_name, file_val)
