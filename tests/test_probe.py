"""
Tests for ffprobe command building and output parsing.
"""

from pathlib import Path

import pytest


class TestBuildProbeCmd:
    def test_command_shape(self):
        from squeezeclip.probe import PROBE_ENTRIES, build_probe_cmd

        cmd = build_probe_cmd(Path("/videos/clip.mp4"), "/opt/ffprobe")
        assert cmd[0] == "/opt/ffprobe"
        assert cmd[-1] == "/videos/clip.mp4"
        assert cmd[cmd.index("-show_entries") + 1] == PROBE_ENTRIES
        assert cmd[cmd.index("-of") + 1] == "json"


class TestParseFrameRate:
    """Tests for parse_frame_rate."""

    def test_integer_rate(self):
        from squeezeclip.probe import parse_frame_rate

        assert parse_frame_rate("30/1") == 30.0

    def test_ntsc_rate(self):
        from squeezeclip.probe import parse_frame_rate

        assert parse_frame_rate("30000/1001") == pytest.approx(29.97, abs=0.001)

    def test_bare_number(self):
        from squeezeclip.probe import parse_frame_rate

        assert parse_frame_rate("25") == 25.0

    def test_zero_denominator(self):
        from squeezeclip.errors import ProbeError
        from squeezeclip.probe import parse_frame_rate

        with pytest.raises(ProbeError):
            parse_frame_rate("0/0")

    def test_malformed(self):
        from squeezeclip.errors import ProbeError
        from squeezeclip.probe import parse_frame_rate

        with pytest.raises(ProbeError):
            parse_frame_rate("abc/def")
        with pytest.raises(ProbeError):
            parse_frame_rate("1/2/3")


class TestParseProbeOutput:
    """Tests for parse_probe_output."""

    def test_full_output(self, probe_json):
        from squeezeclip.probe import parse_probe_output

        info = parse_probe_output(probe_json(duration="120.5", frame_rate="60/1", audio_bit_rate="192000"))
        assert info.duration == pytest.approx(120.5)
        assert info.fps == 60.0
        assert info.width == 1920
        assert info.height == 1080
        assert info.audio_bitrate_kbps == 192
        assert info.has_audio

    def test_audio_bitrate_truncates(self, probe_json):
        from squeezeclip.probe import parse_probe_output

        info = parse_probe_output(probe_json(audio_bit_rate="127999"))
        assert info.audio_bitrate_kbps == 127

    def test_no_audio_stream(self, probe_json):
        from squeezeclip.probe import parse_probe_output

        info = parse_probe_output(probe_json(audio_bit_rate=None), default_audio_kbps=128)
        assert info.audio_bitrate_kbps == 0
        assert not info.has_audio

    def test_audio_without_bit_rate_uses_fallback(self, probe_json):
        from squeezeclip.probe import parse_probe_output

        info = parse_probe_output(probe_json(audio_bit_rate=""), default_audio_kbps=128)
        assert info.audio_bitrate_kbps == 128

    def test_no_video_stream(self, probe_json):
        """Audio-only input parses with fps 0; the pipeline rejects it."""
        from squeezeclip.probe import parse_probe_output

        info = parse_probe_output(probe_json(frame_rate=None))
        assert info.fps == 0.0

    def test_missing_duration(self, probe_json):
        from squeezeclip.probe import parse_probe_output

        info = parse_probe_output(probe_json(duration=None))
        assert info.duration == 0.0

    def test_invalid_json(self):
        from squeezeclip.errors import ProbeError
        from squeezeclip.probe import parse_probe_output

        with pytest.raises(ProbeError):
            parse_probe_output("not json at all")

    def test_non_object_root(self):
        from squeezeclip.errors import ProbeError
        from squeezeclip.probe import parse_probe_output

        with pytest.raises(ProbeError):
            parse_probe_output("[1, 2, 3]")

    def test_malformed_duration(self):
        from squeezeclip.errors import ProbeError
        from squeezeclip.probe import parse_probe_output

        with pytest.raises(ProbeError):
            parse_probe_output('{"format": {"duration": "long"}, "streams": []}')


class TestProbeMedia:
    """Tests against a real ffprobe (skipped when ffmpeg is absent)."""

    def test_probe_sample(self, test_sample_clip):
        import shutil

        if not shutil.which("ffprobe"):
            pytest.skip("ffprobe not available")

        from squeezeclip.probe import probe_media

        info = probe_media(test_sample_clip)
        assert info.duration == pytest.approx(5.0, abs=0.2)
        assert info.fps == pytest.approx(24.0)
        assert info.has_audio

    def test_probe_missing_binary(self, temp_dir):
        from squeezeclip.errors import ProbeError
        from squeezeclip.probe import probe_media

        with pytest.raises(ProbeError):
            probe_media(temp_dir / "clip.mp4", ffprobe=str(temp_dir / "no-such-ffprobe"))
