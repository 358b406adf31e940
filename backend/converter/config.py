"""Application configuration. Loads from environment and .env file."""
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
# Load .env from cwd, then backend/.env, then project root .env
load_dotenv()
load_dotenv(BASE_DIR / ".env")
load_dotenv(BASE_DIR.parent / ".env")

# Transcoding engine working filesystem root (one private subdirectory per engine handle)
WORK_DIR = Path(os.getenv("WORK_DIR", str(BASE_DIR / "work")))
FFMPEG_PATH = os.getenv("FFMPEG_PATH", "ffmpeg")
ENGINE_TIMEOUT = int(os.getenv("ENGINE_TIMEOUT", "600"))

# Limits
MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB", "100"))
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024

# Conversion options
FRAME_BATCH_SIZE = int(os.getenv("FRAME_BATCH_SIZE", "10"))
FRAME_RATE = int(os.getenv("FRAME_RATE", "25"))
STILL_CLIP_SECONDS = int(os.getenv("STILL_CLIP_SECONDS", "5"))
AUDIO_BITRATE = os.getenv("AUDIO_BITRATE", "192k")
JPEG_QUALITY = int(os.getenv("JPEG_QUALITY", "90"))

# Target format tokens by media kind. gif is a video target.
IMAGE_FORMATS = ["png", "jpg", "jpeg", "webp", "bmp", "tiff", "avif", "ico"]
VIDEO_FORMATS = ["mp4", "webm", "mov", "mkv", "avi", "flv", "gif"]
AUDIO_FORMATS = ["mp3", "wav", "ogg", "aac", "m4a", "flac", "opus"]

# Input MIME types decoded frame by frame for image -> video
ANIMATED_IMAGE_TYPES = {"image/gif", "image/apng"}

# Still-image engine (Pillow) writers. Image -> image jobs whose target is listed
# here skip the transcoding engine.
STILL_IMAGE_FORMATS = {
    "png": "PNG",
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "webp": "WEBP",
    "bmp": "BMP",
    "tiff": "TIFF",
    "avif": "AVIF",
    "ico": "ICO",
}
# Targets for which an animated input may still use the still-image engine
# (first frame only). Lossy targets from animated inputs go through ffmpeg.
ANIMATED_STILL_SAFE_FORMATS = {"png", "bmp", "tiff"}

# Concurrency
MAX_WORKERS = int(os.getenv("MAX_WORKERS", str(min(32, (os.cpu_count() or 4) + 4))))

# Server (for uvicorn)
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
# CORS: comma-separated origins, e.g. "http://localhost:5173,http://127.0.0.1:5173"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",") if o.strip()]

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("converter")
