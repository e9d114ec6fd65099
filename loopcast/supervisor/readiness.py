import threading
from typing import Callable, Iterable, Optional

from ..models.stream import ProcessState

ReadinessPredicate = Callable[[str], bool]


def marker_predicate(marker: str) -> ReadinessPredicate:
    """Exact substring match against a known log line."""
    return lambda line: marker in line


class ReadinessGate:
    """
    Single-count completion barrier fed with a process's output lines.

    NotStarted -> Starting -> (Ready | ExitedWithoutReady) -> Terminated

    wait() returns as soon as the predicate matches a line or the stream
    ends, whichever comes first. Lines keep being consumed after readiness
    so the writer never blocks on a full pipe.
    """
    def __init__(self, predicate: ReadinessPredicate, echo: Optional[Callable[[str], None]] = print):
        self.predicate = predicate
        self.echo = echo
        self.lines_seen = 0
        self._state = ProcessState.NOT_STARTED
        self._lock = threading.Lock()
        self._done = threading.Event()

    @property
    def state(self) -> ProcessState:
        with self._lock:
            return self._state

    def mark_starting(self) -> None:
        with self._lock:
            if self._state == ProcessState.NOT_STARTED:
                self._state = ProcessState.STARTING

    def feed(self, line: str) -> bool:
        """Consumes one output line; returns True if it made the gate ready."""
        line = line.rstrip("\r\n")
        if self.echo:
            self.echo(line)
        with self._lock:
            self.lines_seen += 1
            if self._state != ProcessState.STARTING or not self.predicate(line):
                return False
            self._state = ProcessState.READY
        self._done.set()
        return True

    def close(self) -> None:
        """The output stream ended."""
        with self._lock:
            if self._state in (ProcessState.NOT_STARTED, ProcessState.STARTING):
                self._state = ProcessState.EXITED_WITHOUT_READY
        self._done.set()

    def terminate(self) -> None:
        with self._lock:
            self._state = ProcessState.TERMINATED
        self._done.set()

    def watch(self, lines: Iterable[str]) -> None:
        """Reads the stream to the end. Meant to run on a dedicated thread."""
        self.mark_starting()
        try:
            for line in lines:
                self.feed(line)
        except (OSError, ValueError) as e:
            # ValueError: the pipe was closed under us during shutdown
            if self.state != ProcessState.TERMINATED:
                print(f"⚠️ Stopped reading server output: {e}")
        finally:
            self.close()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blocks until ready, stream end or timeout. True only when ready."""
        self._done.wait(timeout)
        return self.state == ProcessState.READY
