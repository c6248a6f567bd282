"""
Progress tracking for squeezeclip.

ffmpeg prints a stats line such as

    frame=  123 fps= 60 q=28.0 size=    1024kB time=00:00:05.12 bitrate=1638.4kbits/s speed=1.00x

every half second on stderr. The time= field, relative to the clip duration,
gives the position inside the current pass. Each job counts as two equal
slices of the batch (pass 1 and pass 2), so the batch percentage is the
slices already done plus the fraction of the current one.
"""

import re
from typing import Optional

PROGRESS_MARKER = "frame="

# time=00:01:23.45 (some ffmpeg builds use a comma as decimal separator)
_TIME_RE = re.compile(r"time=\s*(\d+):(\d+):(\d+(?:[.,]\d+)?)")

# Only complete() reports 100; a pass still running tops out here
RUNNING_CEILING = 99.0

# Early stats lines report a few seconds before the encoder has settled
NOISE_FLOOR_SEC = 2.0


def is_progress_line(line: str) -> bool:
    """Return True if `line` is an ffmpeg per-frame stats line."""
    return line.lstrip().startswith(PROGRESS_MARKER)


def parse_progress_time(line: str) -> Optional[float]:
    """
    Return the elapsed seconds carried by a stats line, or None.

    Lines that do not start with the frame= marker, or that report
    time=N/A, carry no position.
    """
    if not is_progress_line(line):
        return None
    m = _TIME_RE.search(line)
    if not m:
        return None
    hours, minutes = int(m.group(1)), int(m.group(2))
    seconds = float(m.group(3).replace(",", "."))
    return hours * 3600 + minutes * 60 + seconds


def step_progress(job_index0: int, pass_number: int, total_jobs: int) -> float:
    """Percentage covered by the passes that finished before the current one."""
    if total_jobs <= 0:
        return 0.0
    step_value = 100.0 / (total_jobs * 2)
    return (job_index0 * 2 + (pass_number - 1)) * step_value


def relative_progress(elapsed_sec: float, duration_sec: float, total_jobs: int) -> float:
    """Percentage of the batch covered inside the current pass."""
    if duration_sec <= 0 or total_jobs <= 0 or elapsed_sec <= NOISE_FLOOR_SEC:
        return 0.0
    fraction = min(elapsed_sec / duration_sec, 1.0)
    return fraction * 100.0 / (total_jobs * 2)


class ProgressTracker:
    """
    Folds progress lines into a monotonic batch percentage.

    The watermark never goes down while a batch runs. Cancelling latches the
    tracker at 0 until the next batch calls reset().
    """

    def __init__(self):
        self.last_reported_percent = 0.0
        self.cancelled = False

    def reset(self) -> None:
        """Start a new batch."""
        self.last_reported_percent = 0.0
        self.cancelled = False

    def abort(self) -> float:
        """Latch cancellation and drop the watermark to zero."""
        self.cancelled = True
        self.last_reported_percent = 0.0
        return 0.0

    def complete(self) -> float:
        """Force the batch to 100%."""
        self.last_reported_percent = 100.0
        return 100.0

    def report(self, percent: float) -> float:
        """Apply the watermark to a percentage computed while a pass is running."""
        if self.cancelled:
            return 0.0
        percent = max(0.0, min(RUNNING_CEILING, percent))
        if percent < self.last_reported_percent:
            percent = self.last_reported_percent
        self.last_reported_percent = percent
        return percent

    def on_progress_line(
        self,
        raw_line: str,
        duration_sec: float,
        job_index0: int,
        pass_number: int,
        total_jobs: int,
    ) -> float:
        """
        Compute the batch percentage after one line of encoder output.

        Args:
            raw_line: Text read from ffmpeg's stderr.
            duration_sec: Duration of the clip being encoded.
            job_index0: Zero-based position of the job in the submitted batch.
            pass_number: 1 or 2.
            total_jobs: Number of jobs in the batch.

        Returns:
            Percentage in [0, 100].
        """
        relative = 0.0
        elapsed = parse_progress_time(raw_line)
        if elapsed is not None:
            relative = relative_progress(elapsed, duration_sec, total_jobs)
        return self.report(step_progress(job_index0, pass_number, total_jobs) + relative)

    @property
    def percent(self) -> int:
        """Watermark as the integer shown on a progress bar."""
        return 0 if self.cancelled else int(self.last_reported_percent)
