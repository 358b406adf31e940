"""Media conversion service: routes each job to the still-image or transcoding engine."""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from PIL import Image

from converter.config import FRAME_BATCH_SIZE, MAX_FILE_SIZE_BYTES, MAX_WORKERS
from converter.conversion.cancellation import CancellationSignal
from converter.conversion.classifier import (
    classify,
    normalize_format,
    output_mime_type,
    uses_still_engine,
)
from converter.conversion.frames import FrameExtractionPipeline
from converter.conversion.invocation import build, build_palette
from converter.conversion.lifecycle import cleanup
from converter.conversion.models import (
    ConversionResult,
    Job,
    JobStatus,
    LogSink,
    MediaFile,
    ProgressSink,
    Scenario,
    output_filename,
)
from converter.conversion.runner import run_pass
from converter.conversion.still import StillImageEngine
from converter.engine import EngineManager
from converter.errors import (
    Cancelled,
    ConversionError,
    EngineExecutionFailed,
    FileTooLarge,
)

logger = logging.getLogger("converter.service")

# Decoder, encoder and engine file failures reported as EngineExecutionFailed
_EXECUTION_ERRORS = (OSError, ValueError, Image.DecompressionBombError)

# Progress share of the palette generation pass for video -> GIF
PALETTE_SHARE = 20.0


class ConversionService:
    """Runs one conversion at a time against a shared transcoding engine.

    convert() calls are serialized on an internal lock because the engine's
    working directory is a single namespace. cancel() may be called from any
    thread and does not wait for that lock.
    """

    def __init__(
        self,
        engines: Optional[EngineManager] = None,
        still: Optional[StillImageEngine] = None,
        max_file_size: int = MAX_FILE_SIZE_BYTES,
        max_workers: int = MAX_WORKERS,
        batch_size: int = FRAME_BATCH_SIZE,
    ):
        self.engines = engines or EngineManager()
        self.still = still or StillImageEngine()
        self.signal = CancellationSignal(self.engines)
        self.max_file_size = max_file_size
        self._executor = ThreadPoolExecutor(max_workers=max_workers)
        self.frames = FrameExtractionPipeline(self.still, self._executor, self.signal, batch_size)
        self.current_job: Optional[Job] = None
        # Held for a whole job; cancel() stays outside it.
        self._job_lock = threading.Lock()
        logger.info("ConversionService initialized with max_workers=%s", max_workers)

    def convert(
        self,
        file: MediaFile,
        target_format: str,
        on_progress: Optional[ProgressSink] = None,
        on_log: Optional[LogSink] = None,
    ) -> ConversionResult:
        """Convert file to target_format and return the output bytes.

        Raises FileTooLarge before touching any engine, UnsupportedScenario or
        UnsupportedTargetFormat for impossible requests, EngineUnavailable,
        EngineExecutionFailed, or Cancelled.
        """
        fmt = normalize_format(target_format)
        if file.size > self.max_file_size:
            logger.warning("Rejected %s: %s bytes exceeds %s", file.name, file.size, self.max_file_size)
            raise FileTooLarge(file.size, self.max_file_size)

        job = Job(file, fmt, on_progress, on_log)
        with self._job_lock:
            return self._run_job(job)

    def _run_job(self, job: Job) -> ConversionResult:
        file = job.source
        fmt = job.target_format
        self.signal.start()
        self.current_job = job
        job.status = JobStatus.CONVERTING
        try:
            job.scenario = classify(file.mime_type, file.name, fmt)
            logger.info("Job %s: %s (%s) -> %s as %s", job.job_id[:8], file.name, file.mime_type, fmt, job.scenario.value)
            if uses_still_engine(job.scenario, file.mime_type, fmt):
                data = self._convert_still(job)
            else:
                data = self._convert_with_engine(job)
            job.report_progress(100)
            job.status = JobStatus.COMPLETED
            logger.info("Job %s completed: %s bytes", job.job_id[:8], len(data))
            return ConversionResult(
                data=data,
                mime_type=output_mime_type(fmt),
                filename=output_filename(file.name, fmt),
            )
        except Cancelled:
            job.status = JobStatus.CANCELLED
            logger.info("Job %s cancelled", job.job_id[:8])
            raise
        except ConversionError as e:
            job.status = JobStatus.FAILED
            job.error = str(e)
            logger.error("Job %s failed: %s", job.job_id[:8], e)
            raise
        except Exception as e:
            job.status = JobStatus.FAILED
            job.error = str(e)
            logger.exception("Conversion failed for %s: %s", file.name, e)
            raise
        finally:
            self.signal.finish()
            self.current_job = None

    def _convert_still(self, job: Job) -> bytes:
        self.signal.raise_if_cancelled()
        job.log(f"Converting {job.source.name} with the still-image engine")
        try:
            img = self.still.decode(job.source.data)
        except _EXECUTION_ERRORS as e:
            raise EngineExecutionFailed(f"Could not decode image: {e}", scenario=job.scenario) from e
        job.report_progress(50)
        self.signal.raise_if_cancelled()
        try:
            data = self.still.encode(img, job.target_format)
        except ConversionError:
            raise
        except _EXECUTION_ERRORS as e:
            raise EngineExecutionFailed(f"Could not encode image: {e}", scenario=job.scenario) from e
        finally:
            img.close()
        self.signal.raise_if_cancelled()
        return data

    def _convert_with_engine(self, job: Job) -> bytes:
        engine = self.engines.acquire()
        try:
            self.signal.raise_if_cancelled()
            if job.scenario == Scenario.ANIMATED_IMAGE_TO_VIDEO:
                self.frames.run(engine, job)
            else:
                engine.write_file(job.register(job.input_name), job.source.data)
                if job.scenario == Scenario.VIDEO_TO_GIF:
                    palette = job.register(job.resource_name("palette.png"))
                    job.log("Generating palette for GIF output")
                    run_pass(engine, job, self.signal, build_palette(job.input_name, palette), 0.0, PALETTE_SHARE)
                    args = build(job.scenario, job.input_name, job.output_name, job.target_format, palette_name=palette)
                    start = PALETTE_SHARE
                else:
                    args = build(job.scenario, job.input_name, job.output_name, job.target_format)
                    start = 0.0
                job.register(job.output_name)
                run_pass(engine, job, self.signal, args, start, 100.0)
            self.signal.raise_if_cancelled()
            return engine.read_file(job.output_name)
        except Cancelled:
            raise
        except Exception as e:
            if self.signal.is_cancelled():
                raise Cancelled() from e
            if isinstance(e, ConversionError):
                raise
            if isinstance(e, _EXECUTION_ERRORS):
                raise EngineExecutionFailed(str(e), scenario=job.scenario) from e
            raise
        finally:
            cleanup(engine, job.resources)

    def cancel(self) -> bool:
        """Stop the running job and discard the engine handle. Idempotent."""
        job = self.current_job
        if job is not None:
            logger.info("Cancelling job %s", job.job_id[:8])
        return self.signal.cancel()

    def shutdown(self) -> None:
        self.engines.teardown()
        self._executor.shutdown(wait=False)


# Singleton
_conversion_service: Optional[ConversionService] = None


def get_conversion_service() -> ConversionService:
    global _conversion_service
    if _conversion_service is None:
        _conversion_service = ConversionService()
    return _conversion_service
