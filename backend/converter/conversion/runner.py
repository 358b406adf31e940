"""Single ffmpeg pass on behalf of a job."""
import logging

from converter.conversion.cancellation import CancellationSignal
from converter.conversion.models import Job
from converter.engine import FFmpegError, TranscodingEngine
from converter.errors import Cancelled, EngineExecutionFailed, EngineUnavailable

logger = logging.getLogger("converter.runner")


def run_pass(
    engine: TranscodingEngine,
    job: Job,
    signal: CancellationSignal,
    args: list[str],
    start: float = 0.0,
    end: float = 100.0,
) -> None:
    """Run args on the engine, mapping its 0.0-1.0 progress into [start, end].

    Cancellation is checked before and after the call. An engine failure while
    the cancel flag is set is reported as Cancelled.
    """
    signal.raise_if_cancelled()

    def on_progress(ratio: float) -> None:
        job.report_progress(start + ratio * (end - start))

    def on_log(line: str) -> None:
        logger.debug("[ffmpeg %s] %s", job.job_id[:8], line)
        job.log(line)

    engine.add_progress_listener(on_progress)
    engine.add_log_listener(on_log)
    logger.info("Job %s running ffmpeg %s", job.job_id[:8], " ".join(args))
    try:
        engine.run(args)
    except (FFmpegError, EngineUnavailable) as e:
        if signal.is_cancelled():
            raise Cancelled() from e
        if isinstance(e, EngineUnavailable):
            raise
        raise EngineExecutionFailed(str(e), scenario=job.scenario, args=args) from e
    finally:
        engine.remove_progress_listener(on_progress)
        engine.remove_log_listener(on_log)
    signal.raise_if_cancelled()
