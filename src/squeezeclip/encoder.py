"""
Two-pass ffmpeg command building for squeezeclip.

Pass 1 only gathers rate-control statistics into the passlog; pass 2 reads
them back and writes the final file at the same video bitrate.
"""

from pathlib import Path
from typing import List, Optional

from squeezeclip.bitrate import format_fps, format_kbps
from squeezeclip.config import CFG, Config, get_app_dirs
from squeezeclip.probe import MediaInfo

PASSLOG_NAME = "ffmpeg2pass"


def get_passlog_prefix(cfg: Optional[Config] = None) -> Path:
    """
    Return the passlog prefix shared by both passes.

    ffmpeg appends "-0.log" (and "-0.log.mbtree" for x264) to this prefix.
    There is one prefix per configuration, so two pipelines must not encode
    into the same passlog directory at the same time.
    """
    if cfg is None:
        cfg = CFG

    if cfg.passlog_dir:
        passlog_dir = Path(cfg.passlog_dir).expanduser()
        passlog_dir.mkdir(parents=True, exist_ok=True)
    else:
        passlog_dir = get_app_dirs()["passlog"]
    return passlog_dir / PASSLOG_NAME


def cleanup_passlog(prefix: Path) -> int:
    """Remove passlog statistics files written under `prefix`. Returns count removed."""
    removed = 0
    for f in prefix.parent.glob(f"{prefix.name}-*.log*"):
        try:
            f.unlink()
            removed += 1
        except OSError:
            pass
    return removed


def build_pass1_cmd(
    inp: Path,
    info: MediaInfo,
    passlog: Path,
    cfg: Optional[Config] = None,
) -> List[str]:
    """Build the analysis pass: statistics only, no audio, output discarded."""
    if cfg is None:
        cfg = CFG

    args = [
        cfg.ffmpeg_path,
        "-y",
        "-i",
        str(inp),
        "-r",
        format_fps(info.fps),
        "-c:v",
        cfg.video_codec,
        "-b:v",
        format_kbps(info.video_bitrate_kbps),
        "-pass",
        "1",
        "-passlogfile",
        str(passlog),
        "-an",
        "-f",
        "null",
        "-",
    ]
    return args


def build_pass2_cmd(
    inp: Path,
    out: Path,
    info: MediaInfo,
    passlog: Path,
    cfg: Optional[Config] = None,
) -> List[str]:
    """Build the final pass: same video rate control, audio re-encoded, written to `out`."""
    if cfg is None:
        cfg = CFG

    args = [
        cfg.ffmpeg_path,
        "-y",
        "-i",
        str(inp),
        "-r",
        format_fps(info.fps),
        "-c:v",
        cfg.video_codec,
        "-b:v",
        format_kbps(info.video_bitrate_kbps),
        "-pass",
        "2",
        "-passlogfile",
        str(passlog),
        "-c:a",
        cfg.audio_codec,
        "-b:a",
        format_kbps(info.audio_bitrate_kbps),
        "-preset",
        cfg.preset,
        "-profile:v",
        cfg.profile,
        "-level",
        cfg.level,
        str(out),
    ]
    return args
