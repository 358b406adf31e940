"""Animated image -> video: per-frame extraction followed by one encode pass."""
import logging
from concurrent.futures import Executor, wait
from itertools import islice
from typing import Optional

from PIL import Image

from converter.config import FRAME_BATCH_SIZE
from converter.conversion.cancellation import CancellationSignal
from converter.conversion.invocation import FRAME_PATTERN, build_frame_sequence, frame_name
from converter.conversion.models import Job
from converter.conversion.runner import run_pass
from converter.conversion.still import StillImageEngine
from converter.engine import TranscodingEngine

logger = logging.getLogger("converter.frames")

# Progress share of frame extraction; the encode pass takes the rest.
EXTRACTION_SHARE = 40.0


class FrameExtractionPipeline:
    """Decomposes an animated image into numbered PNG frames and encodes them.

    Frames are written in batches: each batch is encoded concurrently on the
    executor and fully awaited before the next starts. Progress is reported by
    the calling thread after each batch. Frame timing is not preserved; the
    sequence is always encoded at FRAME_RATE.
    """

    def __init__(
        self,
        still: StillImageEngine,
        executor: Executor,
        signal: CancellationSignal,
        batch_size: int = FRAME_BATCH_SIZE,
    ):
        self.still = still
        self.executor = executor
        self.signal = signal
        self.batch_size = max(1, batch_size)

    def run(self, engine: TranscodingEngine, job: Job) -> None:
        pattern = self.extract(engine, job)
        args = build_frame_sequence(pattern, job.output_name, job.target_format)
        job.register(job.output_name)
        run_pass(engine, job, self.signal, args, EXTRACTION_SHARE, 100.0)

    def extract(self, engine: TranscodingEngine, job: Job) -> str:
        """Write every frame to the engine. Returns the ffmpeg input pattern.

        Frames are decoded lazily, at most batch_size at a time.
        """
        total = self.still.frame_count(job.source.data)
        job.log(f"Extracting {total} frame(s) from {job.source.name}")
        logger.info("Job %s: extracting %s frame(s) in batches of %s", job.job_id[:8], total, self.batch_size)

        frames = self.still.iter_frames(job.source.data)
        completed = 0
        offset = 0
        try:
            while True:
                self.signal.raise_if_cancelled()
                batch = list(islice(frames, self.batch_size))
                if not batch:
                    break
                completed += self._run_batch(engine, job, batch, offset)
                offset += len(batch)
                del batch
                self.signal.raise_if_cancelled()
                job.report_progress(min(completed / max(total, 1), 1.0) * EXTRACTION_SHARE)
        finally:
            frames.close()
        return job.resource_name(FRAME_PATTERN)

    def _run_batch(self, engine: TranscodingEngine, job: Job, batch: list[Image.Image], offset: int) -> int:
        futures = [
            self.executor.submit(self._write_frame, engine, frame, frame_name(job.prefix, offset + i))
            for i, frame in enumerate(batch)
        ]
        wait(futures)
        written = 0
        error: Optional[BaseException] = None
        for future in futures:
            exc = future.exception()
            if exc is not None:
                error = error or exc
                continue
            name = future.result()
            if name is not None:
                job.register(name)
                written += 1
        if error is not None:
            raise error
        return written

    def _write_frame(self, engine: TranscodingEngine, frame: Image.Image, name: str) -> Optional[str]:
        if self.signal.is_cancelled():
            return None
        engine.write_file(name, self.still.encode(frame, "png"))
        return name
