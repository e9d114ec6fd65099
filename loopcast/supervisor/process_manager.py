"""
Process Supervisor
==================
Owns every external process loopcast starts:

- the media server (mediamtx), started once and gated on a readiness line
  in its stdout;
- one looping ffmpeg re-stream per valid video, each run by a tracked
  worker thread whose Future reports how the stream ended.

Nothing is restarted automatically. shutdown() kills everything and joins
the workers.
"""

import os
import subprocess
import threading
from collections import deque
from concurrent.futures import Future
from typing import Callable, Iterable, List, Optional, Sequence

from ..exceptions import ProbeError, ServerNotReadyError
from ..models.stream import ProcessState, StreamAssignment, StreamStatus
from ..scanner.inspector import Validator
from .readiness import ReadinessGate, ReadinessPredicate, marker_predicate

OUTPUT_TAIL_LINES = 50
KILL_WAIT_SEC = 5


def build_restream_command(source_path: str, stream_name: str,
                           rtsp_base_url: str = "rtsp://localhost:8554",
                           ffmpeg_bin: str = "ffmpeg") -> List[str]:
    """ffmpeg command looping source_path forever into <rtsp_base_url>/<stream_name>."""
    return [
        ffmpeg_bin,
        "-re",
        "-stream_loop", "-1",
        "-i", source_path,
        "-c:v", "libx264",
        "-x264opts", "bframes=0",
        "-g", "50",
        "-keyint_min", "50",
        "-c:a", "aac",
        "-f", "rtsp",
        "-rtsp_transport", "tcp",
        f"{rtsp_base_url.rstrip('/')}/{stream_name}",
    ]


def _kill(process: Optional[subprocess.Popen]) -> None:
    if process is None or process.poll() is not None:
        return
    try:
        process.kill()
        process.wait(timeout=KILL_WAIT_SEC)
    except (OSError, subprocess.TimeoutExpired) as e:
        print(f"⚠️ Could not kill process {process.pid}: {e}")


class ServerProcess:
    """
    The media server subprocess plus the thread reading its stdout.
    """
    def __init__(self, command: Sequence[str], predicate: ReadinessPredicate,
                 popen: Callable[..., subprocess.Popen] = subprocess.Popen,
                 echo: Optional[Callable[[str], None]] = print):
        self.command = list(command)
        self.gate = ReadinessGate(predicate, echo=echo)
        self.process: Optional[subprocess.Popen] = None
        self._popen = popen
        self._reader: Optional[threading.Thread] = None

    @property
    def state(self) -> ProcessState:
        return self.gate.state

    @property
    def ready(self) -> bool:
        return self.gate.state == ProcessState.READY

    def start_and_await_ready(self, timeout: Optional[float] = None) -> None:
        """
        Starts the server and blocks until its readiness line appears.
        Raises ServerNotReadyError if it exits first or the timeout passes.
        """
        self.gate.mark_starting()
        try:
            self.process = self._popen(
                self.command,
                stdout=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            self.gate.close()
            raise ServerNotReadyError(f"Error starting command {self.command[0]}: {e}") from e

        self._reader = threading.Thread(
            target=self.gate.watch,
            args=(self.process.stdout,),
            name="media-server-stdout",
            daemon=True,
        )
        self._reader.start()

        if self.gate.wait(timeout):
            print(f"✅ Media server ready (pid {self.process.pid})")
            return

        if self.gate.state == ProcessState.EXITED_WITHOUT_READY:
            code = self.process.poll()
            raise ServerNotReadyError(f"{self.command[0]} exited (status {code}) before becoming ready")
        raise ServerNotReadyError(f"{self.command[0]} not ready after {timeout}s")

    def terminate(self) -> None:
        """Forcibly stops the server. Final state is TERMINATED."""
        self.gate.terminate()
        _kill(self.process)
        if self._reader is not None:
            self._reader.join(timeout=KILL_WAIT_SEC)


class StreamHandle:
    """
    Tracks one looping re-stream: its command, live process, status and the
    Future resolved with the final StreamStatus when the worker finishes.
    """
    def __init__(self, assignment: StreamAssignment, source_path: str, command: List[str]):
        self.assignment = assignment
        self.source_path = source_path
        self.command = command
        self.future: "Future[StreamStatus]" = Future()
        self.process: Optional[subprocess.Popen] = None
        self.status = StreamStatus.PENDING
        self.returncode: Optional[int] = None
        self.error: Optional[str] = None
        self.output_tail = deque(maxlen=OUTPUT_TAIL_LINES)
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def stream_name(self) -> str:
        return self.assignment.stream_name

    def _set_status(self, status: StreamStatus, error: Optional[str] = None) -> bool:
        """Updates the status unless the stream was already terminated."""
        with self._lock:
            if self.status == StreamStatus.TERMINATED:
                return False
            self.status = status
            if error:
                self.error = error
            return True

    def terminate(self) -> None:
        """Kills the re-stream. Streams that already finished keep their status."""
        with self._lock:
            if self.status in (StreamStatus.PENDING, StreamStatus.RUNNING):
                self.status = StreamStatus.TERMINATED
            process = self.process
        _kill(process)

    def join(self, timeout: Optional[float] = None) -> Optional[StreamStatus]:
        if self._thread is not None:
            self._thread.join(timeout)
        if self.future.done():
            return self.future.result()
        return None


class ProcessSupervisor:
    """
    Starts and tears down the media server and the looping re-streams.
    """
    def __init__(self, validator: Validator,
                 rtsp_base_url: str = "rtsp://localhost:8554",
                 ffmpeg_bin: str = "ffmpeg",
                 probe_timeout: Optional[float] = None,
                 popen: Callable[..., subprocess.Popen] = subprocess.Popen):
        self.validator = validator
        self.rtsp_base_url = rtsp_base_url
        self.ffmpeg_bin = ffmpeg_bin
        self.probe_timeout = probe_timeout
        self._popen = popen
        self.server: Optional[ServerProcess] = None
        self.streams: List[StreamHandle] = []
        self._lock = threading.Lock()
        self._stopping = threading.Event()

    # ------------------------------------------------------------------
    # Media server
    # ------------------------------------------------------------------

    def start_server(self, command: Sequence[str], marker: str = "",
                     predicate: Optional[ReadinessPredicate] = None,
                     timeout: Optional[float] = None) -> ServerProcess:
        """Starts the media server and waits for readiness (see ServerProcess)."""
        if predicate is None:
            predicate = marker_predicate(marker)
        server = ServerProcess(command, predicate, popen=self._popen)
        with self._lock:
            self.server = server
        print(f"🚀 Starting media server: {' '.join(server.command)}")
        server.start_and_await_ready(timeout)
        return server

    # ------------------------------------------------------------------
    # Re-streams
    # ------------------------------------------------------------------

    def start_loop_stream(self, source_path: str, stream_name: str) -> StreamHandle:
        """
        Launches a tracked worker that re-validates source_path and then loops
        it into <rtsp_base_url>/<stream_name>. Never raises for launch
        failures; they end up on the handle.
        """
        assignment = StreamAssignment(stream_name=stream_name, source_file=os.path.basename(source_path))
        command = build_restream_command(source_path, stream_name, self.rtsp_base_url, self.ffmpeg_bin)
        handle = StreamHandle(assignment, source_path, command)

        thread = threading.Thread(
            target=self._run_stream,
            args=(handle,),
            name=f"stream-{stream_name}",
            daemon=True,
        )
        handle._thread = thread
        with self._lock:
            self.streams.append(handle)
        thread.start()
        return handle

    def start_streams(self, assignments: Iterable[StreamAssignment], video_dir: str) -> List[StreamHandle]:
        handles = []
        for assignment in assignments:
            source_path = os.path.join(video_dir, assignment.source_file)
            print(f"🎬 Streaming {assignment.source_file} -> {self.rtsp_base_url}/{assignment.stream_name}")
            handles.append(self.start_loop_stream(source_path, assignment.stream_name))
        return handles

    def _run_stream(self, handle: StreamHandle) -> None:
        if not handle.future.set_running_or_notify_cancel():
            return
        try:
            status = self._loop_stream(handle)
        except Exception as e:
            print(f"❌ Stream worker {handle.stream_name} crashed: {e}")
            handle._set_status(StreamStatus.FAILED, str(e))
            handle.future.set_exception(e)
            return
        handle.future.set_result(status)

    def _loop_stream(self, handle: StreamHandle) -> StreamStatus:
        if self._stopping.is_set():
            handle.terminate()
            return handle.status

        # The scan result may be stale by now
        try:
            corrupted = self.validator.is_corrupted(handle.source_path, self.probe_timeout)
        except ProbeError as e:
            print(f"❌ {handle.stream_name}: {e}")
            handle._set_status(StreamStatus.FAILED, str(e))
            return handle.status
        if corrupted:
            print(f"🚨 Video is corrupted, not streaming: {handle.source_path}")
            handle._set_status(StreamStatus.SKIPPED_CORRUPTED)
            return handle.status

        with self._lock:
            if self._stopping.is_set():
                handle.terminate()
                return handle.status
            try:
                process = self._popen(
                    handle.command,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    stdin=subprocess.DEVNULL,
                    text=True,
                    errors="replace",
                )
            except OSError as e:
                print(f"❌ Error starting command for {handle.stream_name}: {e}")
                handle._set_status(StreamStatus.FAILED, str(e))
                return handle.status
            handle.process = process
            handle._set_status(StreamStatus.RUNNING)

        # Keep draining so ffmpeg never blocks on a full pipe
        if process.stdout is not None:
            try:
                for line in process.stdout:
                    handle.output_tail.append(line.rstrip("\r\n"))
            except (OSError, ValueError):
                pass
        handle.returncode = process.wait()

        if handle.returncode != 0:
            output = "\n".join(handle.output_tail)
            if handle._set_status(StreamStatus.FAILED, f"exit status {handle.returncode}"):
                print(f"❌ Error running command for {handle.stream_name}: "
                      f"exit status {handle.returncode}, Output: {output}")
        else:
            handle._set_status(StreamStatus.EXITED)
        return handle.status

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def shutdown(self, join_timeout: float = KILL_WAIT_SEC) -> None:
        """Kills every re-stream and the media server, then joins the workers."""
        self._stopping.set()
        with self._lock:
            streams = list(self.streams)
            server = self.server

        for handle in streams:
            handle.terminate()
        if server is not None:
            server.terminate()
        for handle in streams:
            handle.join(join_timeout)
        print(f"🛑 Stopped {len(streams)} stream(s) and the media server.")
