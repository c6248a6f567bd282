"""
Locating the ffmpeg and ffprobe executables.

A tool given as a bare name is searched in the configured deps directory
first, then on PATH. It only counts as usable when "<tool> -version" exits 0.
"""

import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from squeezeclip.config import CFG, Config


def run_quiet(cmd: List[str], timeout: float = 5.0) -> bool:
    """Run a command quietly, return True if successful."""
    try:
        p = subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, timeout=timeout)
        return p.returncode == 0
    except (OSError, subprocess.SubprocessError):
        return False


def _exe_name(name: str) -> str:
    return name + ".exe" if os.name == "nt" and not name.endswith(".exe") else name


def find_tool(name: str, deps_dir: Optional[str] = None) -> Optional[str]:
    """
    Return a runnable path for `name`, or None.

    Explicit paths (containing a separator) are used as given.
    """
    if os.sep in name or (os.altsep and os.altsep in name):
        return name if run_quiet([name, "-version"]) else None

    if deps_dir:
        local = Path(deps_dir).expanduser() / _exe_name(name)
        if local.is_file() and run_quiet([str(local), "-version"]):
            return str(local)

    found = shutil.which(name)
    if found and run_quiet([found, "-version"]):
        return found
    return None


def resolve_tools(cfg: Optional[Config] = None) -> Dict[str, Optional[str]]:
    """Resolve ffmpeg and ffprobe for `cfg`. Values are None when not usable."""
    if cfg is None:
        cfg = CFG
    return {
        "ffmpeg": find_tool(cfg.ffmpeg_path, cfg.deps_dir),
        "ffprobe": find_tool(cfg.ffprobe_path, cfg.deps_dir),
    }


def tool_version(path: str) -> str:
    """First line of "<tool> -version", or '' if unavailable."""
    try:
        result = subprocess.run([path, "-version"], capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.SubprocessError):
        return ""
    return result.stdout.split("\n")[0] if result.returncode == 0 and result.stdout else ""
