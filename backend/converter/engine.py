"""ffmpeg transcoding engine with a private working directory.

The engine is the shared, stateful collaborator every non-still conversion runs
through. Files are addressed by plain name inside the engine's working
directory; ffmpeg runs with that directory as its cwd.
"""
import logging
import re
import shutil
import subprocess
import tempfile
import threading
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from converter.config import ENGINE_TIMEOUT, FFMPEG_PATH, WORK_DIR
from converter.errors import EngineUnavailable

logger = logging.getLogger("converter.engine")

LogListener = Callable[[str], None]
ProgressListener = Callable[[float], None]

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d+):(\d+(?:\.\d+)?)")
_TIME_RE = re.compile(r"time=\s*(\d+):(\d+):(\d+(?:\.\d+)?)")

# stderr lines kept for error reports
_STDERR_TAIL = 20


class FFmpegError(RuntimeError):
    """ffmpeg exited non-zero or was killed."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


def _seconds(match: re.Match) -> float:
    h, m, s = match.groups()
    return int(h) * 3600 + int(m) * 60 + float(s)


def parse_duration(line: str) -> Optional[float]:
    match = _DURATION_RE.search(line)
    return _seconds(match) if match else None


def parse_time(line: str) -> Optional[float]:
    match = _TIME_RE.search(line)
    return _seconds(match) if match else None


class TranscodingEngine:
    """One ffmpeg handle: a working directory plus at most one running process."""

    def __init__(
        self,
        ffmpeg_path: str = FFMPEG_PATH,
        work_root: Optional[Path] = None,
        timeout: int = ENGINE_TIMEOUT,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout
        root = Path(work_root or WORK_DIR)
        root.mkdir(parents=True, exist_ok=True)
        self.work_dir = Path(tempfile.mkdtemp(prefix="engine-", dir=str(root)))
        self._process: Optional[subprocess.Popen] = None
        self._closed = False
        self._lock = threading.Lock()
        self._log_listeners: list[LogListener] = []
        self._progress_listeners: list[ProgressListener] = []
        logger.info("Transcoding engine ready in %s", self.work_dir)

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise EngineUnavailable("Transcoding engine has been torn down")

    def _path(self, name: str) -> Path:
        self._check_open()
        if not name or Path(name).name != name or name in (".", ".."):
            raise ValueError(f"Invalid engine file name: {name!r}")
        return self.work_dir / name

    def write_file(self, name: str, data: bytes) -> None:
        self._path(name).write_bytes(data)

    def read_file(self, name: str) -> bytes:
        return self._path(name).read_bytes()

    def delete_file(self, name: str) -> None:
        """Raises FileNotFoundError when the name does not exist."""
        self._path(name).unlink()

    def exists(self, name: str) -> bool:
        return self._path(name).is_file()

    def add_log_listener(self, listener: LogListener) -> None:
        self._log_listeners.append(listener)

    def remove_log_listener(self, listener: LogListener) -> None:
        if listener in self._log_listeners:
            self._log_listeners.remove(listener)

    def add_progress_listener(self, listener: ProgressListener) -> None:
        self._progress_listeners.append(listener)

    def remove_progress_listener(self, listener: ProgressListener) -> None:
        if listener in self._progress_listeners:
            self._progress_listeners.remove(listener)

    def _emit_log(self, line: str) -> None:
        for listener in list(self._log_listeners):
            listener(line)

    def _emit_progress(self, ratio: float) -> None:
        ratio = max(0.0, min(1.0, ratio))
        for listener in list(self._progress_listeners):
            listener(ratio)

    def run(self, args: list[str]) -> None:
        """Run ffmpeg with args inside the working directory and wait for it."""
        cmd = [self.ffmpeg_path, "-hide_banner", "-y", *args]
        with self._lock:
            self._check_open()
            try:
                process = subprocess.Popen(
                    cmd,
                    cwd=str(self.work_dir),
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.PIPE,
                    text=True,
                    errors="replace",
                )
            except FileNotFoundError as e:
                raise EngineUnavailable(f"ffmpeg not found at {self.ffmpeg_path}") from e
            self._process = process
        logger.debug("Running %s", " ".join(cmd))

        timed_out = threading.Event()

        def _kill_on_timeout():
            timed_out.set()
            process.kill()

        timer = threading.Timer(self.timeout, _kill_on_timeout)
        timer.daemon = True
        timer.start()
        duration: Optional[float] = None
        tail: list[str] = []
        try:
            for raw in process.stderr:
                line = raw.rstrip()
                if not line:
                    continue
                tail = (tail + [line])[-_STDERR_TAIL:]
                self._emit_log(line)
                if duration is None:
                    duration = parse_duration(line)
                position = parse_time(line)
                if position is not None and duration:
                    self._emit_progress(position / duration)
            returncode = process.wait()
        finally:
            timer.cancel()
            with self._lock:
                self._process = None
        stderr = "\n".join(tail)
        if timed_out.is_set():
            raise FFmpegError(f"ffmpeg timed out after {self.timeout}s", returncode, stderr)
        if returncode != 0:
            raise FFmpegError(stderr or f"ffmpeg exited with code {returncode}", returncode, stderr)
        self._emit_progress(1.0)

    def terminate(self) -> None:
        """Kill any running process and discard the working directory."""
        with self._lock:
            self._closed = True
            process = self._process
        if process is not None and process.poll() is None:
            logger.info("Killing running ffmpeg process (pid %s)", process.pid)
            process.kill()
        shutil.rmtree(self.work_dir, ignore_errors=True)
        self._log_listeners.clear()
        self._progress_listeners.clear()
        logger.info("Transcoding engine torn down")


class EngineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    TORN_DOWN = "torn_down"


def default_engine_factory() -> TranscodingEngine:
    if shutil.which(FFMPEG_PATH) is None:
        logger.error("ffmpeg not found. Install ffmpeg for video and audio conversion.")
        raise EngineUnavailable("ffmpeg not installed")
    return TranscodingEngine(FFMPEG_PATH, WORK_DIR, ENGINE_TIMEOUT)


class EngineManager:
    """Owns the shared engine handle so it is created once and reused across jobs."""

    def __init__(self, factory: Optional[Callable[[], TranscodingEngine]] = None):
        self._factory = factory or default_engine_factory
        self._engine: Optional[TranscodingEngine] = None
        self._state = EngineState.UNINITIALIZED
        self._lock = threading.Lock()

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def current(self) -> Optional[TranscodingEngine]:
        return self._engine

    def acquire(self) -> TranscodingEngine:
        with self._lock:
            if self._engine is None or self._engine.closed:
                if self._state == EngineState.TORN_DOWN:
                    logger.info("Recreating transcoding engine after teardown")
                self._engine = self._factory()
                self._state = EngineState.READY
            return self._engine

    def teardown(self) -> None:
        with self._lock:
            engine = self._engine
            self._engine = None
            self._state = EngineState.TORN_DOWN
        if engine is not None:
            engine.terminate()
