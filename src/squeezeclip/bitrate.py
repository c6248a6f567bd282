"""
Bitrate budget calculation for squeezeclip.

Turns a requested output size into the video bitrate that, together with the
audio track, fills that size over the clip duration.
"""

from enum import Enum
from typing import List, Optional

from squeezeclip.errors import CalcError, ValidationError


class SizeUnit(Enum):
    """Target size units. Tokens are case-sensitive: 'b' is bits, 'B' is bytes."""

    BIT = "b"
    BYTE = "B"
    KILOBIT = "Kb"
    KILOBYTE = "KB"
    MEGABIT = "Mb"
    MEGABYTE = "MB"
    GIGABIT = "Gb"
    GIGABYTE = "GB"

    @property
    def bits(self) -> int:
        """Number of bits in one of this unit."""
        return _UNIT_BITS[self]

    @classmethod
    def parse(cls, token: str) -> "SizeUnit":
        """Return the unit for `token`, raising ValidationError when unknown."""
        if isinstance(token, SizeUnit):
            return token
        try:
            return cls(token)
        except ValueError:
            valid = ", ".join(u.value for u in cls)
            raise ValidationError(f"Unknown size unit {token!r} (expected one of: {valid})") from None

    @classmethod
    def tokens(cls) -> List[str]:
        return [u.value for u in cls]


_UNIT_BITS = {
    SizeUnit.BIT: 1,
    SizeUnit.BYTE: 8,
    SizeUnit.KILOBIT: 1_000,
    SizeUnit.KILOBYTE: 8_000,
    SizeUnit.MEGABIT: 1_000_000,
    SizeUnit.MEGABYTE: 8_000_000,
    SizeUnit.GIGABIT: 1_000_000_000,
    SizeUnit.GIGABYTE: 8_000_000_000,
}


def target_size_bits(target_size: float, unit: SizeUnit) -> int:
    """Convert a size expressed in `unit` to a whole number of bits."""
    return int(target_size * SizeUnit.parse(unit).bits)


def compute_target_video_bitrate_kbps(
    target_size: float,
    unit: SizeUnit,
    duration_sec: float,
    audio_bitrate_kbps: int,
) -> int:
    """
    Compute the video bitrate needed to hit a target output size.

    The audio track is assumed to be encoded at `audio_bitrate_kbps` for the
    whole duration; the remaining bits go to video.

    Args:
        target_size: Requested size, in `unit`.
        unit: SizeUnit (or its token).
        duration_sec: Clip duration in seconds.
        audio_bitrate_kbps: Audio bitrate; 0 means no audio track.

    Returns:
        Video bitrate in kbps, rounded to the nearest integer.

    Raises:
        CalcError: duration is not positive, or the audio alone does not fit.
    """
    if duration_sec <= 0:
        raise CalcError(f"Invalid duration ({duration_sec}s): cannot compute a bitrate")

    target_bits = target_size_bits(target_size, unit)
    audio_bits = audio_bitrate_kbps * 1000 * duration_sec
    video_bits = target_bits - audio_bits
    if video_bits < 0:
        raise CalcError(
            f"Target size is too small: audio at {audio_bitrate_kbps}k alone needs "
            f"{int(audio_bits)} bits, only {target_bits} available"
        )

    video_bitrate_kbps = round(video_bits / duration_sec / 1000)
    if video_bitrate_kbps < 1:
        raise CalcError("Target size is too small: video bitrate would round to 0k")
    return video_bitrate_kbps


def clamp_fps(probed_fps: float, max_fps: Optional[float]) -> float:
    """Return `max_fps` when it is set and lower than the probed rate."""
    if max_fps is not None and 0 < max_fps < probed_fps:
        return float(max_fps)
    return probed_fps


def format_fps(fps: float) -> str:
    """Format a frame rate for ffmpeg's -r option (29.97, 30, 23.976)."""
    return f"{fps:g}"


def format_kbps(kbps: int) -> str:
    """Format a bitrate for ffmpeg's -b:v / -b:a options."""
    return f"{int(kbps)}k"
