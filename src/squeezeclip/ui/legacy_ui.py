"""
Legacy text-based status UI for squeezeclip.

Used when rich is not available or in non-interactive terminals.
"""

import shutil
import sys
from typing import Optional

from squeezeclip.i18n import _
from squeezeclip.pipeline import JobPipeline, JobState, StatusSnapshot


def term_width() -> int:
    """Get terminal width."""
    try:
        return shutil.get_terminal_size((120, 20)).columns
    except Exception:
        return 120


def mkbar(pct: int, width: int = 26) -> str:
    """Create a simple progress bar string."""
    pct = max(0, min(100, pct))
    filled = int(pct * width / 100)
    return "#" * filled + "-" * (width - filled)


def shorten(s: str, maxlen: int) -> str:
    """Shorten a string with ellipsis if too long."""
    if maxlen <= 0:
        return ""
    if len(s) <= maxlen:
        return s
    if maxlen <= 3:
        return s[:maxlen]
    return s[: maxlen - 3] + "..."


def fmt_hms(seconds: float) -> str:
    """Format seconds as HH:MM:SS."""
    if seconds < 0:
        seconds = 0
    s = int(round(seconds))
    return f"{s // 3600:02d}:{(s % 3600) // 60:02d}:{s % 60:02d}"


def format_status_line(st: StatusSnapshot, width: int, bar_width: int = 26) -> str:
    """One-line rendering of a status snapshot: bar, percent, step, file."""
    bar = mkbar(st.progress, bar_width)
    left = f"[{bar}] {st.progress:3d}% | {st.step} | ({st.file_index}/{st.file_count}) "
    avail = max(10, width - len(left) - 1)
    return left + shorten(st.file_name, avail)


class LegacyStatusUI:
    """Fallback status display when rich is not available."""

    def __init__(self, progress: bool = True, bar_width: int = 26, stream=None):
        self.stream = stream if stream is not None else sys.stdout
        try:
            tty = self.stream.isatty()
        except Exception:
            tty = False
        self.enabled = progress and tty
        self.bar_width = bar_width
        self._last_render: Optional[str] = None
        self._last_message = ""

    def attach(self, pipeline: JobPipeline) -> None:
        """Follow the status updates of `pipeline`."""
        pipeline.add_listener(self.on_status)

    def on_status(self, st: StatusSnapshot) -> None:
        """Print override messages once, redraw the progress line otherwise."""
        message = st.render() if (st.cancelled or st.override_message) else ""
        if message and message != self._last_message:
            self.log(message)
        self._last_message = message
        if not message:
            self.render(st)

    def render(self, st: StatusSnapshot) -> None:
        """Render progress line to terminal."""
        if not self.enabled:
            return

        line = format_status_line(st, term_width(), self.bar_width)
        pad = ""
        if self._last_render is not None and len(self._last_render) > len(line):
            pad = " " * (len(self._last_render) - len(line))
        if line != self._last_render:
            self.stream.write("\r" + line + pad)
            self.stream.flush()
            self._last_render = line

    def endline(self) -> None:
        """Clear the current progress line."""
        if not self.enabled or self._last_render is None:
            return
        self.stream.write("\r" + " " * len(self._last_render) + "\r")
        self.stream.flush()
        self._last_render = None

    def log(self, msg: str) -> None:
        """Print a log message, clearing progress line first."""
        self.endline()
        print(msg, file=self.stream, flush=True)

    def print_summary(self, pipeline: JobPipeline, total_time: float) -> None:
        """Print final summary."""
        self.endline()
        done = len(pipeline.ctx.completed)
        failed = 1 if pipeline.state == JobState.FAILED else 0
        self.log(
            f"{_('Compressed')}: {done}  {_('Failed')}: {failed}  "
            f"{_('Total')}: {pipeline.ctx.total_jobs}  {_('Total time')}: {fmt_hms(total_time)}"
        )
