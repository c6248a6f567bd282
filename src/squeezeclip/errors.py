"""
Exception types for squeezeclip.

Every failure the pipeline can report derives from SqueezeError, so callers
can catch the whole family in one place.
"""


class SqueezeError(Exception):
    """Base class for all squeezeclip errors."""


class ValidationError(SqueezeError):
    """A batch submission was rejected before any job was created."""


class ProbeError(SqueezeError):
    """ffprobe could not be launched, failed, or returned unusable output."""


class CalcError(SqueezeError):
    """No usable video bitrate can be derived for the requested size."""


class EncodeError(SqueezeError):
    """An ffmpeg pass could not be launched or exited with an error."""
