"""Pillow-backed still-image engine: decode, frame coalescing and encode."""
import io
import logging
from typing import Iterator

from PIL import Image, ImageSequence

from converter.config import JPEG_QUALITY, STILL_IMAGE_FORMATS
from converter.conversion.classifier import normalize_format
from converter.errors import UnsupportedTargetFormat

logger = logging.getLogger("converter.still")

# Writers without alpha support
_RGB_ONLY = {"JPEG", "BMP"}


class StillImageEngine:
    """Handles static image decode/encode for the fast path and frame extraction."""

    @staticmethod
    def decode(data: bytes) -> Image.Image:
        img = Image.open(io.BytesIO(data))
        img.load()
        return img

    @staticmethod
    def frame_count(data: bytes) -> int:
        with Image.open(io.BytesIO(data)) as img:
            return getattr(img, "n_frames", 1)

    @staticmethod
    def iter_frames(data: bytes) -> Iterator[Image.Image]:
        """Yield each frame of an animated image as a full RGBA frame.

        Frames are decoded one at a time on demand. Pillow's GIF, APNG and
        WebP readers apply each frame's disposal and blend rules on seek, so
        the converted frame is self-contained.
        """
        with Image.open(io.BytesIO(data)) as img:
            for frame in ImageSequence.Iterator(img):
                yield frame.convert("RGBA")

    @staticmethod
    def decode_frames(data: bytes) -> list[Image.Image]:
        """Every frame at once; extraction uses iter_frames instead."""
        return list(StillImageEngine.iter_frames(data))

    @staticmethod
    def encode(image: Image.Image, target_format: str) -> bytes:
        fmt = normalize_format(target_format)
        save_format = STILL_IMAGE_FORMATS.get(fmt)
        if save_format is None:
            raise UnsupportedTargetFormat(fmt)
        Image.init()
        if save_format not in Image.SAVE:
            logger.warning("Pillow has no %s writer in this build", save_format)
            raise UnsupportedTargetFormat(fmt)

        out_img = image
        if save_format in _RGB_ONLY and image.mode not in ("RGB", "L"):
            out_img = image.convert("RGB")
        elif image.mode not in ("RGB", "RGBA", "L", "LA"):
            out_img = image.convert("RGBA")

        save_kw: dict = {"format": save_format}
        if save_format == "JPEG":
            save_kw.update(quality=JPEG_QUALITY, optimize=True)
        buf = io.BytesIO()
        out_img.save(buf, **save_kw)
        return buf.getvalue()
