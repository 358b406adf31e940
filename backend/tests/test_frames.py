import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from conftest import FakeEngine, gif_bytes

from converter.conversion.cancellation import CancellationSignal
from converter.conversion.frames import FrameExtractionPipeline
from converter.conversion.models import Job, MediaFile, Scenario
from converter.conversion.still import StillImageEngine
from converter.errors import Cancelled


@pytest.fixture
def executor():
    with ThreadPoolExecutor(max_workers=4) as pool:
        yield pool


def _job(frames, progress=None, target="mp4"):
    job = Job(MediaFile(gif_bytes(frames), "image/gif", "anim.gif"), target, on_progress=progress)
    job.scenario = Scenario.ANIMATED_IMAGE_TO_VIDEO
    return job


def test_decode_frames_are_full_rgba_frames():
    frames = StillImageEngine.decode_frames(gif_bytes(5, size=(20, 10)))
    assert len(frames) == 5
    assert all(f.mode == "RGBA" and f.size == (20, 10) for f in frames)


def test_extract_registers_one_resource_per_frame(executor):
    progress = []
    job = _job(25, progress.append)
    engine = FakeEngine()
    signal = CancellationSignal()
    signal.start()
    pipeline = FrameExtractionPipeline(StillImageEngine(), executor, signal, batch_size=10)

    pattern = pipeline.extract(engine, job)

    assert pattern == f"{job.prefix}frame-%04d.png"
    frame_names = [n for n in job.resources if "frame-" in n]
    assert len(frame_names) == 25
    assert sorted(frame_names) == [f"{job.prefix}frame-{i:04d}.png" for i in range(25)]
    assert all(engine.files[n].startswith(b"\x89PNG") for n in frame_names)
    assert progress == [16, 32, 40]


def test_run_encodes_once_after_extraction(executor):
    progress = []
    job = _job(10, progress.append)
    engine = FakeEngine()
    signal = CancellationSignal()
    signal.start()
    pipeline = FrameExtractionPipeline(StillImageEngine(), executor, signal, batch_size=10)

    pipeline.run(engine, job)

    assert len(engine.runs) == 1
    args = engine.runs[0]
    assert args[:4] == ["-framerate", "25", "-i", f"{job.prefix}frame-%04d.png"]
    assert args[-1] == job.output_name
    assert job.output_name in job.resources
    assert progress == [40, 70, 100]


def test_cancel_between_batches_skips_encode(executor):
    signal = CancellationSignal()
    signal.start()

    def on_progress(value):
        if value >= 16:
            signal.cancel()

    job = _job(25, on_progress)
    engine = FakeEngine()
    pipeline = FrameExtractionPipeline(StillImageEngine(), executor, signal, batch_size=10)

    with pytest.raises(Cancelled):
        pipeline.run(engine, job)
    assert engine.runs == []
    assert len([n for n in job.resources if "frame-" in n]) == 10


def test_cancelled_frames_resolve_without_registering(executor):
    signal = CancellationSignal()
    signal.start()
    job = _job(3)
    engine = FakeEngine()
    pipeline = FrameExtractionPipeline(StillImageEngine(), executor, signal, batch_size=10)
    signal.cancel()

    frames = StillImageEngine.decode_frames(job.source.data)
    assert pipeline._run_batch(engine, job, frames, 0) == 0
    assert job.resources == []
    assert engine.written == []


class CountingStillEngine(StillImageEngine):
    """Tracks how many decoded frames are waiting to be written."""

    def __init__(self):
        self.pulled = 0
        self.encoded = 0
        self.peak = 0
        self._lock = threading.Lock()

    def iter_frames(self, data):
        for frame in super().iter_frames(data):
            with self._lock:
                self.pulled += 1
                self.peak = max(self.peak, self.pulled - self.encoded)
            yield frame

    def encode(self, image, target_format):
        data = super().encode(image, target_format)
        with self._lock:
            self.encoded += 1
        return data


def test_frame_count_reads_header():
    assert StillImageEngine.frame_count(gif_bytes(7)) == 7


def test_extract_holds_at_most_one_batch_of_decoded_frames(executor):
    still = CountingStillEngine()
    job = _job(25)
    engine = FakeEngine()
    signal = CancellationSignal()
    signal.start()
    pipeline = FrameExtractionPipeline(still, executor, signal, batch_size=10)

    pipeline.extract(engine, job)

    assert still.pulled == still.encoded == 25
    assert still.peak == 10
    assert len([n for n in job.resources if "frame-" in n]) == 25
