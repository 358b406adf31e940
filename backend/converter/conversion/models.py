"""Conversion job models."""
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

ProgressSink = Callable[[int], None]
LogSink = Callable[[str], None]


class JobStatus(str, Enum):
    PENDING = "pending"
    CONVERTING = "converting"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"


class Scenario(str, Enum):
    IMAGE_TO_IMAGE = "image_to_image"
    IMAGE_TO_VIDEO = "image_to_video"
    VIDEO_TO_IMAGE = "video_to_image"
    VIDEO_TO_VIDEO = "video_to_video"
    AUDIO_TO_AUDIO = "audio_to_audio"
    VIDEO_TO_AUDIO = "video_to_audio"
    ANIMATED_IMAGE_TO_VIDEO = "animated_image_to_video"
    VIDEO_TO_GIF = "video_to_gif"


@dataclass
class MediaFile:
    """An uploaded file: raw bytes plus the declared MIME type and name."""

    data: bytes
    mime_type: str
    name: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ConversionResult:
    data: bytes
    mime_type: str
    filename: str


class Job:
    """State of one conversion call.

    Owns the names of every intermediate resource it creates in the
    transcoding engine's working filesystem; all of them are deleted before
    the call returns. Progress reported through the job never goes backwards.
    """

    def __init__(
        self,
        source: MediaFile,
        target_format: str,
        on_progress: Optional[ProgressSink] = None,
        on_log: Optional[LogSink] = None,
    ):
        self.job_id = str(uuid.uuid4())
        self.source = source
        self.target_format = target_format
        self.scenario: Optional[Scenario] = None
        self.status = JobStatus.PENDING
        self.progress: int = 0
        self.error: Optional[str] = None
        self.resources: list[str] = []
        self._on_progress = on_progress
        self._on_log = on_log
        self._reported = False
        self._lock = threading.Lock()

    @property
    def prefix(self) -> str:
        return f"{self.job_id[:8]}_"

    def resource_name(self, name: str) -> str:
        return f"{self.prefix}{name}"

    @property
    def input_name(self) -> str:
        return self.resource_name(f"input_{safe_filename(self.source.name)}")

    @property
    def output_name(self) -> str:
        return self.resource_name(f"output.{self.target_format}")

    def register(self, name: str) -> str:
        with self._lock:
            if name not in self.resources:
                self.resources.append(name)
        return name

    def report_progress(self, percent: float) -> None:
        value = max(0, min(100, int(round(percent))))
        with self._lock:
            if self._reported and value <= self.progress:
                return
            self._reported = True
            self.progress = value
        if self._on_progress:
            self._on_progress(value)

    def log(self, message: str) -> None:
        if self._on_log:
            self._on_log(message)


def safe_filename(name: str) -> str:
    """Plain file name usable inside the engine's working filesystem."""
    base = Path(name or "").name
    s = "".join(c for c in base if c.isalnum() or c in "._-").strip("._") or "file"
    return s[-64:]


def output_filename(source_name: str, target_format: str) -> str:
    stem = Path(source_name or "").name.split(".")[0] or "converted"
    return f"{stem}.{target_format}"
