"""
squeezeclip - Compress video clips to a target file size.

For each clip the tool reads duration and frame rate with ffprobe, derives
the video bitrate that fills the requested size after the audio track, and
encodes it in two ffmpeg passes (libx264 + AAC).

Example usage:
    # As a command-line tool
    $ squeezeclip clip.mp4 -o out -s 8 -u MB

    # As a Python module
    from squeezeclip import Config, JobPipeline

    pipeline = JobPipeline(Config.for_library(output_dir="out", target_size=8))
    pipeline.submit(["clip.mp4"])
    pipeline.run()
"""

__version__ = "1.0.0"
__author__ = "squeezeclip contributors"
__license__ = "MIT"
__url__ = "https://github.com/squeezeclip/squeezeclip"
__description__ = "Compress video clips to a target file size with two-pass ffmpeg encoding"

# Public API exports
from squeezeclip.bitrate import SizeUnit, clamp_fps, compute_target_video_bitrate_kbps
from squeezeclip.config import Config, get_app_dirs, load_config_file
from squeezeclip.encoder import build_pass1_cmd, build_pass2_cmd
from squeezeclip.errors import CalcError, EncodeError, ProbeError, SqueezeError, ValidationError
from squeezeclip.i18n import _, setup_i18n
from squeezeclip.json_progress import JSONProgressOutput
from squeezeclip.pipeline import JobPipeline, JobState, StatusSnapshot, VideoJob, assign_output_paths
from squeezeclip.probe import MediaInfo, parse_probe_output, probe_media
from squeezeclip.progress import ProgressTracker, parse_progress_time

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    "__url__",
    # Config
    "Config",
    "get_app_dirs",
    "load_config_file",
    # Errors
    "SqueezeError",
    "ValidationError",
    "ProbeError",
    "CalcError",
    "EncodeError",
    # Bitrate
    "SizeUnit",
    "compute_target_video_bitrate_kbps",
    "clamp_fps",
    # Probe
    "MediaInfo",
    "parse_probe_output",
    "probe_media",
    # Encoder
    "build_pass1_cmd",
    "build_pass2_cmd",
    # Progress
    "ProgressTracker",
    "parse_progress_time",
    # Pipeline
    "JobPipeline",
    "JobState",
    "StatusSnapshot",
    "VideoJob",
    "assign_output_paths",
    # i18n
    "_",
    "setup_i18n",
    # JSON progress
    "JSONProgressOutput",
]
