"""
Asynchronous external process launching for squeezeclip.

start() returns as soon as the process is spawned. A daemon reader thread
then forwards each line of output to a callback and reports the exit status
once the process ends. Callbacks run on the reader thread, so they should only
hand data over (the pipeline posts them to its event queue).
"""

import re
import shlex
import subprocess
import threading
import time
from pathlib import Path
from typing import Callable, Iterator, List, Optional

# on_exit(returncode, stdout_text, error_message)
ExitCallback = Callable[[int, str, Optional[str]], None]
OutputCallback = Callable[[str], None]

# ffmpeg rewrites its stats line with \r, plain messages end with \n
_LINE_SPLIT_RE = re.compile(rb"[\r\n]")

# Track all running ffmpeg/ffprobe processes for cleanup on interrupt
_active_processes: List[subprocess.Popen] = []
_processes_lock = threading.Lock()


def register_process(proc: subprocess.Popen) -> None:
    """Register a process for tracking."""
    with _processes_lock:
        _active_processes.append(proc)


def unregister_process(proc: subprocess.Popen) -> None:
    """Unregister a process from tracking."""
    with _processes_lock:
        if proc in _active_processes:
            _active_processes.remove(proc)


def active_process_count() -> int:
    """Number of tracked processes still running."""
    with _processes_lock:
        return sum(1 for p in _active_processes if p.poll() is None)


def terminate_all_processes(grace: float = 0.5) -> int:
    """
    Terminate every tracked process, killing those still alive after `grace` seconds.

    Returns the number of processes signalled.
    """
    with _processes_lock:
        procs = [p for p in _active_processes if p.poll() is None]

    for proc in procs:
        try:
            proc.terminate()
        except OSError:
            pass

    if procs:
        time.sleep(grace)

    for proc in procs:
        try:
            if proc.poll() is None:
                proc.kill()
        except OSError:
            pass

    return len(procs)


def iter_output_lines(stream) -> Iterator[str]:
    """Yield decoded, non-blank lines from a binary stream as soon as they are complete."""
    read = getattr(stream, "read1", stream.read)
    pending = b""
    while True:
        chunk = read(4096)
        if not chunk:
            break
        pending += chunk
        parts = _LINE_SPLIT_RE.split(pending)
        pending = parts.pop()
        for part in parts:
            if part.strip():
                yield part.decode("utf-8", errors="replace")
    if pending.strip():
        yield pending.decode("utf-8", errors="replace")


def _append_log(log_path: Optional[Path], text: str) -> None:
    if not log_path:
        return
    try:
        with log_path.open("a", encoding="utf-8", errors="replace") as lf:
            lf.write(text if text.endswith("\n") else text + "\n")
    except OSError:
        pass


def log_command(log_path: Optional[Path], args: List[str]) -> None:
    """Append the shell-quoted command line to a job log."""
    _append_log(log_path, "CMD: " + shlex.join(args))


def _read_failed(proc: subprocess.Popen, log_path: Optional[Path], exc: Exception) -> str:
    """Kill a process whose output can no longer be read and describe why."""
    if proc.poll() is None:
        proc.kill()
    message = f"cannot read output of pid {proc.pid}: {exc}"
    _append_log(log_path, "ERROR: " + message)
    return message


class ProcessRunner:
    """Launches processes without blocking and reports on them through callbacks."""

    def __init__(self):
        self._threads: List[threading.Thread] = []

    def start(
        self,
        cmd: List[str],
        on_exit: ExitCallback,
        on_output: Optional[OutputCallback] = None,
        capture_stdout: bool = False,
        log_path: Optional[Path] = None,
    ) -> Optional[subprocess.Popen]:
        """
        Spawn `cmd`.

        Args:
            cmd: Command and arguments.
            on_exit: Called once with (returncode, stdout, error). A launch
                failure reports returncode -1 and the OS error text.
            on_output: Called with each stderr line while the process runs.
            capture_stdout: Collect stdout and pass it to on_exit (ffprobe JSON).
            log_path: File that receives every stderr line.

        Returns:
            The Popen object, or None if the process could not be started.
        """
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE if capture_stdout else subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            _append_log(log_path, f"ERROR: cannot start {cmd[0]}: {e}")
            on_exit(-1, "", f"{cmd[0]}: {e.strerror or e}")
            return None

        register_process(proc)
        target = self._collect if capture_stdout else self._stream
        t = threading.Thread(
            target=target,
            args=(proc, on_exit, on_output, log_path),
            name=f"runner-{proc.pid}",
            daemon=True,
        )
        self._threads.append(t)
        t.start()
        return proc

    def _stream(self, proc, on_exit, on_output, log_path) -> None:
        error = None
        try:
            if proc.stderr is not None:
                for line in iter_output_lines(proc.stderr):
                    _append_log(log_path, line)
                    if on_output is not None:
                        on_output(line)
        except (OSError, ValueError) as e:
            error = _read_failed(proc, log_path, e)
        finally:
            proc.wait()
            unregister_process(proc)
            on_exit(proc.returncode, "", error)

    def _collect(self, proc, on_exit, on_output, log_path) -> None:
        try:
            out, err = proc.communicate()
        except (OSError, ValueError) as e:
            error = _read_failed(proc, log_path, e)
            proc.wait()
            on_exit(proc.returncode, "", error)
            return
        finally:
            unregister_process(proc)
        stderr_text = err.decode("utf-8", errors="replace") if err else ""
        if stderr_text:
            _append_log(log_path, stderr_text)
            if on_output is not None:
                for line in stderr_text.splitlines():
                    if line.strip():
                        on_output(line)
        on_exit(proc.returncode, out.decode("utf-8", errors="replace") if out else "", None)

    @property
    def busy(self) -> bool:
        """True while any reader thread is still attached to a process."""
        self._threads = [t for t in self._threads if t.is_alive()]
        return bool(self._threads)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for all launched processes to finish. Returns False on timeout."""
        deadline = None if timeout is None else time.time() + timeout
        for t in list(self._threads):
            remaining = None if deadline is None else max(0.0, deadline - time.time())
            t.join(remaining)
        return not self.busy
