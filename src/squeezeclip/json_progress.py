"""
JSON progress output for squeezeclip.

This module provides structured JSON output for integration
with other applications (web UIs, monitoring tools, etc.).
One JSON object is written per line.
"""

import json
import sys
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from squeezeclip.pipeline import ACTIVE_STATES, JobPipeline, JobState, StatusSnapshot, VideoJob


@dataclass
class FileProgress:
    """Progress information for a single file."""

    filename: str
    filepath: str
    output_path: str
    status: str  # "queued", "probing", "pass1", "pass2", "done", "failed", "aborted"
    duration_sec: float = 0.0
    video_bitrate_kbps: int = 0
    error: Optional[str] = None


@dataclass
class JSONProgressState:
    """Complete state for JSON progress output."""

    version: str = "1.0"
    timestamp: float = field(default_factory=time.time)
    event: str = "progress"  # "start", "progress", "file_start", "file_done", "failed", "aborted", "complete"
    state: str = JobState.IDLE.value
    status: Dict[str, Any] = field(default_factory=dict)
    files: List[FileProgress] = field(default_factory=list)


class JSONProgressOutput:
    """Writes pipeline status updates to a stream as JSON lines."""

    def __init__(self, stream=sys.stdout):
        self.stream = stream
        self.state = JSONProgressState()
        self._batch_id = 0
        self._last_file: Optional[str] = None
        self._last_index = -1
        self._last_state: Optional[JobState] = None
        self._last_percent: int = -1

    def _emit(self, event: str, extra: Optional[Dict[str, Any]] = None) -> None:
        """Emit a JSON progress event."""
        self.state.timestamp = time.time()
        self.state.event = event
        output = asdict(self.state)
        if extra:
            output.update(extra)
        print(json.dumps(output), file=self.stream, flush=True)

    def start(self, jobs: List[VideoJob]) -> None:
        """Signal start of a batch."""
        self.state.files = [_file_progress(job, "queued") for job in jobs]
        self._last_file = None
        self._last_index = -1
        self._last_state = None
        self._last_percent = -1
        self._emit("start", {"total_files": len(jobs)})

    def attach(self, pipeline: JobPipeline) -> None:
        """Emit an event for every status update of `pipeline`."""
        pipeline.add_listener(lambda snapshot: self.update(pipeline, snapshot))

    def update(self, pipeline: JobPipeline, snapshot: StatusSnapshot) -> None:
        """Translate one status update into zero or one JSON events."""
        if pipeline.ctx.batch_id != self._batch_id:
            self._batch_id = pipeline.ctx.batch_id
            self.start(pipeline.jobs)

        state = pipeline.state
        job = pipeline.current_job

        self.state.state = state.value
        self.state.status = snapshot.to_dict()
        self._sync_files(pipeline)

        if state == JobState.ABORTED:
            if self._last_state != JobState.ABORTED:
                self._emit("aborted")
        elif state == JobState.FAILED:
            if self._last_state != JobState.FAILED:
                self._emit("failed", {"file": job.input_path.name if job else None, "error": snapshot.override_message})
        elif state == JobState.IDLE and self._last_state in ACTIVE_STATES:
            if self._last_file is not None:
                self._emit("file_done", {"file": Path(self._last_file).name})
                self._last_file = None
            self._emit("complete")
        elif job is not None and job.index != self._last_index:
            if self._last_file is not None:
                self._emit("file_done", {"file": Path(self._last_file).name})
            self._last_file = str(job.input_path)
            self._last_index = job.index
            self._emit("file_start", {"file": job.input_path.name})
        elif state != self._last_state or snapshot.progress != self._last_percent:
            self._emit("progress")

        self._last_state = state
        self._last_percent = snapshot.progress

    def _sync_files(self, pipeline: JobPipeline) -> None:
        files = self.state.files
        for job in pipeline.ctx.completed:
            if job.index < len(files):
                files[job.index].status = JobState.DONE.value
        for job in pipeline.jobs:
            if job.index >= len(files):
                continue
            fp = files[job.index]
            fp.status = job.state.value if job.state != JobState.IDLE else "queued"
            fp.duration_sec = job.video_info.duration
            fp.video_bitrate_kbps = job.video_info.video_bitrate_kbps
            fp.error = job.error
        if pipeline.state == JobState.ABORTED:
            for fp in self.state.files:
                if fp.status != JobState.DONE.value:
                    fp.status = JobState.ABORTED.value


def _file_progress(job: VideoJob, status: str) -> FileProgress:
    return FileProgress(
        filename=job.input_path.name,
        filepath=str(job.input_path),
        output_path=str(job.output_path),
        status=status,
    )
