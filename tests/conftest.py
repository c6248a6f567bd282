"""
Pytest configuration and shared fixtures for squeezeclip tests.
"""

import json
import shutil
import subprocess
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Generator, List, Optional

import pytest

# Add src to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@dataclass
class FakeLaunch:
    """One command handed to FakeRunner.start()."""

    cmd: List[str]
    on_exit: Callable
    on_output: Optional[Callable]
    capture_stdout: bool
    log_path: Optional[Path]

    def emit(self, line: str) -> None:
        """Deliver one stderr line, as a reader thread would."""
        if self.on_output is not None:
            self.on_output(line)

    def finish(self, returncode: int = 0, stdout: str = "", error: Optional[str] = None) -> None:
        """Report process exit."""
        self.on_exit(returncode, stdout, error)


class FakeRunner:
    """Records launches instead of spawning processes."""

    def __init__(self):
        self.launches: List[FakeLaunch] = []

    def start(self, cmd, on_exit, on_output=None, capture_stdout=False, log_path=None):
        self.launches.append(FakeLaunch(list(cmd), on_exit, on_output, capture_stdout, log_path))
        return None

    @property
    def last(self) -> FakeLaunch:
        return self.launches[-1]

    @property
    def busy(self) -> bool:
        return False

    def wait(self, timeout=None) -> bool:
        return True


def make_probe_json(
    duration: Optional[str] = "120.0",
    frame_rate: Optional[str] = "30/1",
    audio_bit_rate: Optional[str] = "128000",
) -> str:
    """Build ffprobe JSON output like "-show_entries ... -of json" prints."""
    streams = []
    if frame_rate is not None:
        streams.append({"index": 0, "codec_type": "video", "avg_frame_rate": frame_rate, "width": 1920, "height": 1080})
    if audio_bit_rate is not None:
        audio = {"index": 1, "codec_type": "audio", "sample_rate": "48000", "channels": 2}
        if audio_bit_rate:
            audio["bit_rate"] = audio_bit_rate
        streams.append(audio)
    root = {"streams": streams, "format": {}}
    if duration is not None:
        root["format"]["duration"] = duration
    return json.dumps(root)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_config_dir(temp_dir: Path) -> Path:
    """Create a temporary config directory."""
    config_dir = temp_dir / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


@pytest.fixture
def mock_xdg_dirs(temp_dir: Path, monkeypatch):
    """Mock XDG directories to use temporary paths."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(temp_dir / "config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(temp_dir / "state"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(temp_dir / "cache"))


@pytest.fixture
def default_config():
    """Return a default Config instance for testing."""
    from squeezeclip.config import Config

    return Config()


@pytest.fixture
def output_dir(temp_dir: Path) -> Path:
    """Writable output directory."""
    out = temp_dir / "out"
    out.mkdir()
    return out


@pytest.fixture
def pipeline_config(temp_dir: Path, output_dir: Path):
    """Library config writing into output_dir with a private passlog directory."""
    from squeezeclip.config import Config

    return Config.for_library(
        output_dir=str(output_dir),
        target_size=50,
        size_unit="MB",
        passlog_dir=str(temp_dir / "passlog"),
    )


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def probe_json():
    """Factory for ffprobe JSON output."""
    return make_probe_json


@pytest.fixture
def fake_tools():
    """Tool resolver that always finds ffmpeg and ffprobe."""
    return lambda cfg: {"ffmpeg": "/usr/bin/ffmpeg", "ffprobe": "/usr/bin/ffprobe"}


@pytest.fixture
def pipeline(pipeline_config, fake_runner, fake_tools, temp_dir):
    """JobPipeline driven by FakeRunner, with per-job logs in temp_dir/logs."""
    from squeezeclip.pipeline import JobPipeline

    logs = temp_dir / "logs"
    logs.mkdir()
    return JobPipeline(
        cfg=pipeline_config,
        runner=fake_runner,
        get_log_path=lambda p: logs / f"{p.stem}.log",
        tool_resolver=fake_tools,
    )


@pytest.fixture(scope="session")
def test_data_dir() -> Path:
    """Return the test data directory path."""
    return Path(__file__).parent / "data"


@pytest.fixture(scope="session")
def test_sample_clip(test_data_dir: Path) -> Path:
    """
    Create a small test clip using ffmpeg.

    - H.264 video, 320x240 at 24 fps
    - AAC audio at 64k
    - 5 seconds duration
    """
    test_data_dir.mkdir(parents=True, exist_ok=True)
    clip_path = test_data_dir / "test_sample.mp4"

    if clip_path.exists() and clip_path.stat().st_size > 10000:
        return clip_path

    if not shutil.which("ffmpeg"):
        pytest.skip("ffmpeg not available for creating test files")

    cmd = [
        "ffmpeg",
        "-y",
        "-f",
        "lavfi",
        "-i",
        "testsrc=duration=5:size=320x240:rate=24",
        "-f",
        "lavfi",
        "-i",
        "sine=frequency=440:duration=5",
        "-c:v",
        "libx264",
        "-preset",
        "ultrafast",
        "-pix_fmt",
        "yuv420p",
        "-c:a",
        "aac",
        "-b:a",
        "64k",
        str(clip_path),
    ]

    try:
        result = subprocess.run(cmd, capture_output=True, timeout=120)
        if result.returncode != 0:
            pytest.skip(f"Failed to create test file: {result.stderr.decode()[:200]}")
    except subprocess.TimeoutExpired:
        pytest.skip("Timeout creating test file")
    except OSError as e:
        pytest.skip(f"Error creating test file: {e}")

    return clip_path
