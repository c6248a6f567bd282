"""
Media metadata probing for squeezeclip.

Runs ffprobe on an input clip and reduces its JSON output to the handful of
values the bitrate budget and the encoder passes need.
"""

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from squeezeclip.errors import ProbeError

PROBE_ENTRIES = "format=duration:stream=index,codec_type,avg_frame_rate,width,height,bit_rate,sample_rate,channels"


@dataclass
class MediaInfo:
    """Probed properties of one input clip."""

    duration: float = 0.0  # seconds
    fps: float = 0.0
    width: int = 0
    height: int = 0
    audio_bitrate_kbps: int = 0  # 0 => no audio track
    video_bitrate_kbps: int = 0  # filled in by the bitrate calculation

    @property
    def has_audio(self) -> bool:
        return self.audio_bitrate_kbps > 0


def build_probe_cmd(path: Path, ffprobe: str = "ffprobe") -> List[str]:
    """Build the ffprobe command that reports duration and stream properties as JSON."""
    return [ffprobe, "-v", "error", "-show_entries", PROBE_ENTRIES, "-of", "json", str(path)]


def parse_frame_rate(rate: str) -> float:
    """
    Parse an ffprobe rational frame rate such as "30000/1001".

    Raises:
        ProbeError: the value is not "num/den" or the denominator is zero.
    """
    parts = str(rate).split("/")
    if len(parts) == 1:
        parts.append("1")
    if len(parts) != 2:
        raise ProbeError(f"Malformed frame rate: {rate!r}")
    try:
        num, den = float(parts[0]), float(parts[1])
    except ValueError:
        raise ProbeError(f"Malformed frame rate: {rate!r}") from None
    if den == 0:
        raise ProbeError(f"Invalid frame rate: {rate!r}")
    return num / den


def _first_stream(streams: List[Dict[str, Any]], codec_type: str) -> Optional[Dict[str, Any]]:
    for s in streams:
        if isinstance(s, dict) and s.get("codec_type") == codec_type:
            return s
    return None


def parse_probe_output(output: str, default_audio_kbps: int = 0) -> MediaInfo:
    """
    Turn ffprobe JSON output into a MediaInfo.

    Only the first video stream and the first audio stream are looked at.
    An audio stream without a reported bit rate gets `default_audio_kbps`;
    a missing audio stream leaves the audio bitrate at 0.

    Raises:
        ProbeError: the output is not a JSON object or holds malformed values.
    """
    try:
        root = json.loads(output)
    except (TypeError, ValueError) as e:
        raise ProbeError(f"ffprobe returned invalid JSON: {e}") from None
    if not isinstance(root, dict):
        raise ProbeError("ffprobe output is not a JSON object")

    info = MediaInfo()

    fmt = root.get("format") or {}
    if isinstance(fmt, dict) and fmt.get("duration") not in (None, "", "N/A"):
        try:
            info.duration = float(fmt["duration"])
        except (TypeError, ValueError):
            raise ProbeError(f"Malformed duration: {fmt['duration']!r}") from None

    streams = root.get("streams") or []
    if not isinstance(streams, list):
        raise ProbeError("ffprobe 'streams' is not a list")

    video = _first_stream(streams, "video")
    if video is not None:
        info.fps = parse_frame_rate(video.get("avg_frame_rate", ""))
        try:
            info.width = int(video.get("width") or 0)
            info.height = int(video.get("height") or 0)
        except (TypeError, ValueError):
            raise ProbeError("Malformed video dimensions") from None

    audio = _first_stream(streams, "audio")
    if audio is not None:
        bit_rate = audio.get("bit_rate")
        if bit_rate in (None, "", "N/A"):
            info.audio_bitrate_kbps = default_audio_kbps
        else:
            try:
                info.audio_bitrate_kbps = int(bit_rate) // 1000
            except (TypeError, ValueError):
                raise ProbeError(f"Malformed audio bit rate: {bit_rate!r}") from None

    return info


def probe_media(path: Path, ffprobe: str = "ffprobe", default_audio_kbps: int = 0, timeout: float = 60.0) -> MediaInfo:
    """
    Probe a file synchronously.

    The pipeline launches ffprobe asynchronously through the runner; this is
    the blocking equivalent for library use.
    """
    cmd = build_probe_cmd(path, ffprobe)
    try:
        result = subprocess.run(cmd, capture_output=True, timeout=timeout)
    except FileNotFoundError:
        raise ProbeError(f"ffprobe not found: {ffprobe}") from None
    except subprocess.TimeoutExpired:
        raise ProbeError(f"ffprobe timed out on {path}") from None

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise ProbeError(f"ffprobe failed (rc={result.returncode}): {stderr[:200]}")

    return parse_probe_output(result.stdout.decode("utf-8", errors="replace"), default_audio_kbps)
