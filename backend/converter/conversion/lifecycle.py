"""Best-effort removal of a job's intermediate resources."""
import logging
from typing import Iterable, Optional

from converter.engine import TranscodingEngine

logger = logging.getLogger("converter.lifecycle")


def cleanup(engine: Optional[TranscodingEngine], names: Iterable[str]) -> int:
    """Delete every named resource from the engine's working filesystem.

    Never raises: missing files and a torn-down engine are logged as warnings.
    Returns the number of resources actually removed.
    """
    names = list(names)
    if engine is None or engine.closed:
        if names:
            logger.warning(
                "Engine unavailable, %s resource(s) left to its teardown: %s", len(names), ", ".join(names)
            )
        return 0
    removed = 0
    for name in names:
        try:
            engine.delete_file(name)
            removed += 1
        except FileNotFoundError:
            logger.warning("Could not remove %s: already gone", name)
        except Exception as e:
            logger.warning("Could not remove %s: %s", name, e)
    logger.debug("Removed %s of %s intermediate resource(s)", removed, len(names))
    return removed
