"""Media kind and conversion scenario classification."""
import logging
from pathlib import Path
from typing import Optional

from converter.config import (
    ANIMATED_IMAGE_TYPES,
    ANIMATED_STILL_SAFE_FORMATS,
    AUDIO_FORMATS,
    IMAGE_FORMATS,
    STILL_IMAGE_FORMATS,
    VIDEO_FORMATS,
)
from converter.conversion.models import MediaKind, Scenario
from converter.errors import UnsupportedScenario

logger = logging.getLogger("converter.classifier")

_MIME_PREFIXES = {
    "image/": MediaKind.IMAGE,
    "video/": MediaKind.VIDEO,
    "audio/": MediaKind.AUDIO,
}

# (input kind, target kind) -> scenario; pairs not listed are unsupported
_MATRIX = {
    (MediaKind.IMAGE, MediaKind.IMAGE): Scenario.IMAGE_TO_IMAGE,
    (MediaKind.IMAGE, MediaKind.VIDEO): Scenario.IMAGE_TO_VIDEO,
    (MediaKind.VIDEO, MediaKind.IMAGE): Scenario.VIDEO_TO_IMAGE,
    (MediaKind.VIDEO, MediaKind.VIDEO): Scenario.VIDEO_TO_VIDEO,
    (MediaKind.VIDEO, MediaKind.AUDIO): Scenario.VIDEO_TO_AUDIO,
    (MediaKind.AUDIO, MediaKind.AUDIO): Scenario.AUDIO_TO_AUDIO,
}


def normalize_format(target_format: str) -> str:
    return (target_format or "").strip().lower().lstrip(".")


def media_kind_for_mime(mime_type: str) -> Optional[MediaKind]:
    mime = (mime_type or "").strip().lower()
    for prefix, kind in _MIME_PREFIXES.items():
        if mime.startswith(prefix):
            return kind
    return None


def media_kind_for_format(target_format: str) -> Optional[MediaKind]:
    fmt = normalize_format(target_format)
    if fmt in VIDEO_FORMATS:
        return MediaKind.VIDEO
    if fmt in AUDIO_FORMATS:
        return MediaKind.AUDIO
    if fmt in IMAGE_FORMATS:
        return MediaKind.IMAGE
    return None


def is_animated_type(mime_type: str) -> bool:
    return (mime_type or "").strip().lower() in ANIMATED_IMAGE_TYPES


def classify(input_mime: str, input_filename: str, target_format: str) -> Scenario:
    """Pick the conversion scenario for an input/target pair.

    Animated image -> video and video -> GIF are checked before the general
    kind matrix. Raises UnsupportedScenario for any pairing without a path.
    """
    fmt = normalize_format(target_format)
    input_kind = media_kind_for_mime(input_mime)
    target_kind = media_kind_for_format(fmt)
    if input_kind is None or target_kind is None:
        raise UnsupportedScenario(input_mime, fmt)

    if is_animated_type(input_mime) and target_kind == MediaKind.VIDEO:
        scenario = Scenario.ANIMATED_IMAGE_TO_VIDEO
    elif input_kind == MediaKind.VIDEO and fmt == "gif":
        scenario = Scenario.VIDEO_TO_GIF
    else:
        scenario = _MATRIX.get((input_kind, target_kind))
        if scenario is None:
            raise UnsupportedScenario(input_mime, fmt)
    logger.debug("Classified %s (%s) -> %s as %s", input_filename, input_mime, fmt, scenario.value)
    return scenario


def uses_still_engine(scenario: Scenario, input_mime: str, target_format: str) -> bool:
    """True when the job goes to the still-image engine instead of ffmpeg."""
    if scenario != Scenario.IMAGE_TO_IMAGE:
        return False
    fmt = normalize_format(target_format)
    if fmt not in STILL_IMAGE_FORMATS:
        return False
    return not is_animated_type(input_mime) or fmt in ANIMATED_STILL_SAFE_FORMATS


def output_mime_type(target_format: str) -> str:
    fmt = normalize_format(target_format)
    kind = media_kind_for_format(fmt) or MediaKind.IMAGE
    return f"{kind.value}/{fmt}"


def available_formats(input_mime: str, filename: str = "") -> list[str]:
    """Target formats offered for an input, excluding its own extension."""
    kind = media_kind_for_mime(input_mime)
    if kind == MediaKind.AUDIO:
        formats = list(AUDIO_FORMATS)
    elif kind == MediaKind.VIDEO:
        formats = VIDEO_FORMATS + AUDIO_FORMATS
    elif kind == MediaKind.IMAGE:
        formats = IMAGE_FORMATS + VIDEO_FORMATS
    else:
        return []
    ext = Path(filename or "").suffix.lower().lstrip(".")
    return [f for f in formats if f != ext]
