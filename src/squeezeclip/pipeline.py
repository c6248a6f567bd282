"""
Job pipeline for squeezeclip.

A batch of input clips is compressed one clip at a time:

    Probing -> Pass 1 -> Pass 2 -> (next clip) ... -> Idle

External processes are started through a ProcessRunner and never waited on.
Their output and exit status come back as events that are queued and then
dispatched on the thread that owns the pipeline, so every state change
happens in one place (dispatch) and on one thread.

A failing clip stalls the batch: it stays at the head of the queue and
nothing else is started until the caller aborts or submits a new batch.
"""

import dataclasses
import os
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from queue import Empty, Queue
from typing import Callable, Deque, Dict, List, Optional, Sequence, Union

from squeezeclip.bitrate import SizeUnit, clamp_fps, compute_target_video_bitrate_kbps
from squeezeclip.config import CFG, Config
from squeezeclip.encoder import build_pass1_cmd, build_pass2_cmd, cleanup_passlog, get_passlog_prefix
from squeezeclip.errors import CalcError, EncodeError, ProbeError, SqueezeError, ValidationError
from squeezeclip.i18n import _
from squeezeclip.probe import MediaInfo, build_probe_cmd, parse_probe_output
from squeezeclip.progress import ProgressTracker
from squeezeclip.runner import ProcessRunner, log_command
from squeezeclip.tools import resolve_tools

PathLike = Union[str, Path]


class JobState(str, Enum):
    """Lifecycle of a job, and of the queue as seen through its head job."""

    IDLE = "idle"
    PROBING = "probing"
    PASS1 = "pass1"
    PASS2 = "pass2"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"


ACTIVE_STATES = (JobState.PROBING, JobState.PASS1, JobState.PASS2)


@dataclass
class VideoJob:
    """One input clip and where its compressed copy goes."""

    input_path: Path
    output_path: Path
    index: int  # zero-based position in the submitted batch
    video_info: MediaInfo = field(default_factory=MediaInfo)
    state: JobState = JobState.IDLE
    log_path: Optional[Path] = None
    error: Optional[str] = None


@dataclass
class StatusSnapshot:
    """What the display layer shows. Overwritten in place, never persisted."""

    file_name: str = ""
    file_index: int = 0  # 1-based
    file_count: int = 0
    step: str = ""
    target_size: str = ""
    ffmpeg_output: str = ""  # last raw line from the encoder
    override_message: str = ""  # replaces the structured fields when set
    cancelled: bool = False
    progress: int = 0

    def render(self) -> str:
        """Status text as shown in the status panel."""
        if self.cancelled:
            return _("ABORTED")
        if self.override_message:
            return self.override_message
        return "\n".join(
            [
                _("--Status--"),
                f"{_('File Name')} : {self.file_name}",
                f"{_('File')} {self.file_index}/{self.file_count}",
                f"{_('Current Step')} : {self.step}",
                f"{_('Target Size')} : {self.target_size}",
            ]
        )

    def to_dict(self) -> Dict[str, object]:
        return dataclasses.asdict(self)


# -------------------- EVENTS --------------------


@dataclass(frozen=True)
class ProbeCompleted:
    batch_id: int
    returncode: int
    output: str = ""
    error: Optional[str] = None


@dataclass(frozen=True)
class PassCompleted:
    batch_id: int
    pass_number: int
    returncode: int
    error: Optional[str] = None


@dataclass(frozen=True)
class ProgressLine:
    batch_id: int
    pass_number: int
    text: str


@dataclass(frozen=True)
class AbortRequested:
    pass


Event = Union[ProbeCompleted, PassCompleted, ProgressLine, AbortRequested]
StatusListener = Callable[[StatusSnapshot], None]


@dataclass
class PipelineContext:
    """All mutable state of one pipeline instance."""

    jobs: Deque[VideoJob] = field(default_factory=deque)
    completed: List[VideoJob] = field(default_factory=list)
    status: StatusSnapshot = field(default_factory=StatusSnapshot)
    tracker: ProgressTracker = field(default_factory=ProgressTracker)
    state: JobState = JobState.IDLE
    batch_id: int = 0
    total_jobs: int = 0
    target_size: float = 0.0
    size_unit: SizeUnit = SizeUnit.MEGABYTE
    max_fps: Optional[float] = None

    @property
    def cancelled(self) -> bool:
        return self.tracker.cancelled

    @property
    def head(self) -> Optional[VideoJob]:
        return self.jobs[0] if self.jobs else None


def assign_output_paths(inputs: Sequence[PathLike], output_dir: PathLike) -> List[Path]:
    """
    Pick an output path in `output_dir` for every input, in order.

    An input whose file name is already the tail of an earlier output path
    gets its batch index appended to the stem (clip.mp4 -> clip1.mp4).
    """
    out_dir = Path(output_dir).expanduser().absolute()
    assigned: List[Path] = []
    for i, inp in enumerate(inputs):
        name = Path(inp).name
        if any(str(p).endswith(name) for p in assigned):
            stem, suffix = Path(name).stem, Path(name).suffix
            assigned.append(out_dir / f"{stem}{i}{suffix}")
        else:
            assigned.append(out_dir / name)
    return assigned


class JobPipeline:
    """Drives a batch of clips through probe, pass 1 and pass 2."""

    def __init__(
        self,
        cfg: Optional[Config] = None,
        runner: Optional[ProcessRunner] = None,
        get_log_path: Optional[Callable[[Path], Path]] = None,
        tool_resolver: Optional[Callable[[Config], Dict[str, Optional[str]]]] = None,
        log: Optional[Callable[[str], None]] = None,
    ):
        self.cfg = cfg if cfg is not None else CFG
        self.runner = runner if runner is not None else ProcessRunner()
        self.get_log_path = get_log_path
        self.tool_resolver = tool_resolver if tool_resolver is not None else resolve_tools
        self.log = log

        self.ctx = PipelineContext()
        self._events: "Queue[Event]" = Queue()
        self._listeners: List[StatusListener] = []
        self._batch_cfg: Config = self.cfg
        self._passlog: Optional[Path] = None

    # -------------------- OBSERVATION --------------------

    def add_listener(self, listener: StatusListener) -> None:
        """Call `listener` with a copy of the status after every update."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        snapshot = self.status
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                pass  # a broken display must not stall the batch

    def _debug(self, msg: str) -> None:
        if self.log is not None and self._batch_cfg.debug:
            self.log(msg)

    @property
    def status(self) -> StatusSnapshot:
        return dataclasses.replace(self.ctx.status)

    @property
    def state(self) -> JobState:
        return self.ctx.state

    @property
    def jobs(self) -> List[VideoJob]:
        return list(self.ctx.jobs)

    @property
    def current_job(self) -> Optional[VideoJob]:
        return self.ctx.head

    @property
    def finished(self) -> bool:
        """True when nothing will happen until the caller acts again."""
        return self.ctx.state not in ACTIVE_STATES

    # -------------------- SUBMISSION --------------------

    def validate(
        self,
        inputs: Sequence[PathLike],
        output_dir: Optional[PathLike],
        target_size: float,
        size_unit: Union[str, SizeUnit],
    ) -> Dict[str, str]:
        """
        Check a submission without touching any state.

        Returns:
            The resolved tool paths {"ffmpeg": ..., "ffprobe": ...}.

        Raises:
            ValidationError: for the first violated precondition.
        """
        if not inputs:
            raise ValidationError(_("No video selected!"))

        if not output_dir or not Path(output_dir).expanduser().is_dir():
            raise ValidationError(_("The output folder is invalid!"))
        if not os.access(Path(output_dir).expanduser(), os.W_OK):
            raise ValidationError(_("The output folder is not writable!"))

        try:
            size_ok = float(target_size) > 0
        except (TypeError, ValueError):
            size_ok = False
        if not size_ok:
            raise ValidationError(_("You must set a valid target size!"))

        SizeUnit.parse(size_unit)

        tools = self.tool_resolver(self.cfg)
        if not tools.get("ffmpeg") or not tools.get("ffprobe"):
            raise ValidationError(_("Can't detect a valid ffmpeg or ffprobe instance, check the settings to set them!"))
        return {"ffmpeg": str(tools["ffmpeg"]), "ffprobe": str(tools["ffprobe"])}

    def submit(
        self,
        inputs: Sequence[PathLike],
        output_dir: Optional[PathLike] = None,
        target_size: Optional[float] = None,
        size_unit: Optional[Union[str, SizeUnit]] = None,
        max_fps: Optional[float] = None,
    ) -> List[VideoJob]:
        """
        Validate a batch, build its queue and start the first job.

        Values left as None come from the config. Starting a batch clears a
        previous abort and resets progress; events still arriving from an
        earlier batch are ignored.

        Raises:
            ValidationError: nothing was queued.
        """
        cfg = self.cfg
        if output_dir is None:
            output_dir = cfg.output_dir
        if target_size is None:
            target_size = cfg.target_size
        if size_unit is None:
            size_unit = cfg.size_unit
        if max_fps is None:
            max_fps = cfg.max_fps

        tools = self.validate(inputs, output_dir, target_size, size_unit)
        unit = SizeUnit.parse(size_unit)

        self._batch_cfg = dataclasses.replace(cfg, ffmpeg_path=tools["ffmpeg"], ffprobe_path=tools["ffprobe"])
        self._passlog = get_passlog_prefix(self._batch_cfg)

        ctx = self.ctx
        ctx.batch_id += 1
        ctx.tracker.reset()
        ctx.target_size = float(target_size)
        ctx.size_unit = unit
        ctx.max_fps = max_fps
        ctx.completed = []

        outputs = assign_output_paths(inputs, output_dir)
        ctx.jobs = deque(
            VideoJob(input_path=Path(inp).expanduser(), output_path=out, index=i)
            for i, (inp, out) in enumerate(zip(inputs, outputs))
        )
        ctx.total_jobs = len(ctx.jobs)
        ctx.state = JobState.IDLE

        ctx.status = StatusSnapshot(
            file_count=ctx.total_jobs,
            target_size=f"{ctx.target_size:g}{unit.value}",
            override_message=_("Preparing videos..."),
        )
        self._notify()

        self._start_next()
        return list(ctx.jobs)

    # -------------------- CANCELLATION --------------------

    def request_abort(self) -> None:
        """Cancel the batch now. Must be called from the owning thread; use post() otherwise."""
        self.dispatch(AbortRequested())

    # -------------------- EVENT LOOP --------------------

    def post(self, event: Event) -> None:
        """Queue an event. Safe to call from any thread."""
        self._events.put(event)

    def process_pending(self, timeout: Optional[float] = None) -> int:
        """
        Dispatch queued events.

        Args:
            timeout: Seconds to wait for the first event; None or 0 returns at once.

        Returns:
            Number of events dispatched.
        """
        try:
            event = self._events.get(timeout=timeout) if timeout else self._events.get_nowait()
        except Empty:
            return 0

        handled = 0
        while True:
            self.dispatch(event)
            handled += 1
            try:
                event = self._events.get_nowait()
            except Empty:
                return handled

    def run(self, poll_interval: float = 0.1) -> JobState:
        """Dispatch events until the batch completes, fails or is aborted."""
        while not self.finished:
            self.process_pending(timeout=poll_interval)
        return self.ctx.state

    def dispatch(self, event: Event) -> None:
        """Apply one event to the state machine."""
        if isinstance(event, AbortRequested):
            self._on_abort()
            return

        # Anything launched before an abort or by an older batch is dropped
        if self.ctx.cancelled or event.batch_id != self.ctx.batch_id:
            return

        if isinstance(event, ProgressLine):
            self._on_progress_line(event)
        elif isinstance(event, ProbeCompleted):
            self._on_probe_completed(event)
        elif isinstance(event, PassCompleted):
            self._on_pass_completed(event)

    # -------------------- TRANSITIONS --------------------

    def _start_next(self) -> None:
        ctx = self.ctx
        job = ctx.head
        if job is None:
            ctx.state = JobState.IDLE
            ctx.status.override_message = _("Successfully compressed all of the files!")
            ctx.status.progress = int(ctx.tracker.complete())
            self._notify()
            return
        self._start_probe(job)

    def _start_probe(self, job: VideoJob) -> None:
        ctx = self.ctx
        job.state = JobState.PROBING
        ctx.state = JobState.PROBING
        if self.get_log_path is not None:
            job.log_path = self.get_log_path(job.input_path)

        ctx.status.override_message = ""
        ctx.status.file_name = job.input_path.name
        ctx.status.file_index = ctx.total_jobs - len(ctx.jobs) + 1
        ctx.status.step = _("Retrieving video data")
        ctx.status.ffmpeg_output = ""
        self._notify()

        cmd = build_probe_cmd(job.input_path, self._batch_cfg.ffprobe_path)
        log_command(job.log_path, cmd)
        self._debug("$ " + " ".join(cmd))

        batch_id = ctx.batch_id
        self.runner.start(
            cmd,
            on_exit=lambda rc, out, err: self.post(ProbeCompleted(batch_id, rc, out, err)),
            capture_stdout=True,
            log_path=job.log_path,
        )

    def _on_probe_completed(self, event: ProbeCompleted) -> None:
        job = self.ctx.head
        if self.ctx.state != JobState.PROBING or job is None:
            return

        if event.error or event.returncode != 0:
            detail = event.error or f"rc={event.returncode}"
            self._fail(job, ProbeError(_("ffprobe error while retrieving the video data") + f" ({detail})"))
            return

        try:
            info = parse_probe_output(event.output, self._batch_cfg.fallback_audio_kbps)
            if info.fps <= 0:
                raise ProbeError(_("No video stream found"))
            info.video_bitrate_kbps = compute_target_video_bitrate_kbps(
                self.ctx.target_size, self.ctx.size_unit, info.duration, info.audio_bitrate_kbps
            )
            info.fps = clamp_fps(info.fps, self.ctx.max_fps)
        except (ProbeError, CalcError) as e:
            self._fail(job, e)
            return

        job.video_info = info
        self._start_pass(job, 1)

    def _start_pass(self, job: VideoJob, pass_number: int) -> None:
        ctx = self.ctx
        state = JobState.PASS1 if pass_number == 1 else JobState.PASS2
        job.state = state
        ctx.state = state
        ctx.status.step = _("Pass 1") if pass_number == 1 else _("Pass 2")
        ctx.status.ffmpeg_output = ""
        self._notify()

        if pass_number == 1:
            cmd = build_pass1_cmd(job.input_path, job.video_info, self._passlog, self._batch_cfg)
        else:
            cmd = build_pass2_cmd(
                job.input_path, job.output_path, job.video_info, self._passlog, self._batch_cfg
            )
        log_command(job.log_path, cmd)
        self._debug("$ " + " ".join(cmd))

        batch_id = ctx.batch_id
        self.runner.start(
            cmd,
            on_exit=lambda rc, _out, err: self.post(PassCompleted(batch_id, pass_number, rc, err)),
            on_output=lambda line: self.post(ProgressLine(batch_id, pass_number, line)),
            log_path=job.log_path,
        )

    def _current_pass(self) -> int:
        return 2 if self.ctx.state == JobState.PASS2 else 1

    def _on_progress_line(self, event: ProgressLine) -> None:
        ctx = self.ctx
        job = ctx.head
        if job is None or ctx.state not in (JobState.PASS1, JobState.PASS2):
            return
        if event.pass_number != self._current_pass():
            return

        ctx.status.ffmpeg_output = event.text
        percent = ctx.tracker.on_progress_line(
            event.text, job.video_info.duration, job.index, event.pass_number, ctx.total_jobs
        )
        ctx.status.progress = int(percent)
        self._notify()

    def _on_pass_completed(self, event: PassCompleted) -> None:
        ctx = self.ctx
        job = ctx.head
        if job is None or ctx.state not in (JobState.PASS1, JobState.PASS2):
            return
        if event.pass_number != self._current_pass():
            return

        if event.error or event.returncode != 0:
            detail = event.error or f"rc={event.returncode}"
            self._fail(job, EncodeError(_("ffmpeg error during pass") + f" {event.pass_number} ({detail})"))
            return

        if event.pass_number == 1:
            self._start_pass(job, 2)
            return

        if self._passlog is not None:
            cleanup_passlog(self._passlog)
        job.state = JobState.DONE
        ctx.jobs.popleft()
        ctx.completed.append(job)
        self._start_next()

    def _fail(self, job: VideoJob, error: SqueezeError) -> None:
        """Stop the batch on `job`; it stays at the head of the queue."""
        message = str(error)
        job.state = JobState.FAILED
        job.error = message
        self.ctx.state = JobState.FAILED
        self.ctx.status.override_message = message
        if job.log_path:
            try:
                with job.log_path.open("a", encoding="utf-8", errors="replace") as lf:
                    lf.write(f"ERROR: {message}\n")
            except OSError:
                pass
        self._notify()

    def _on_abort(self) -> None:
        ctx = self.ctx
        ctx.tracker.abort()
        for job in ctx.jobs:
            if job.state != JobState.DONE:
                job.state = JobState.ABORTED
        ctx.jobs.clear()
        ctx.state = JobState.ABORTED
        ctx.status.cancelled = True
        ctx.status.progress = 0
        self._notify()
