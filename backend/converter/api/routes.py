"""API routes for upload and conversion."""
import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from converter.config import AUDIO_FORMATS, IMAGE_FORMATS, MAX_FILE_SIZE_BYTES, VIDEO_FORMATS
from converter.conversion.classifier import available_formats
from converter.conversion.models import MediaFile
from converter.conversion.service import ConversionService, get_conversion_service
from converter.errors import (
    Cancelled,
    EngineExecutionFailed,
    EngineUnavailable,
    FileTooLarge,
    UnsupportedScenario,
    UnsupportedTargetFormat,
)

logger = logging.getLogger("converter.api")
router = APIRouter(prefix="/api", tags=["converter"])


@router.get("/health")
def health(svc: ConversionService = Depends(get_conversion_service)):
    return {"status": "ok", "engine": svc.engines.state.value}


@router.get("/limits")
def get_limits(svc: ConversionService = Depends(get_conversion_service)):
    """Return upload limits for the client."""
    return {
        "max_file_size_mb": svc.max_file_size // (1024 * 1024),
        "max_file_size_bytes": svc.max_file_size,
    }


@router.get("/formats")
def get_formats(
    mime_type: Optional[str] = Query(None, description="Input MIME type, e.g. video/mp4"),
    filename: str = Query("", description="Input file name; its extension is excluded"),
):
    if mime_type:
        return {"mime_type": mime_type, "targets": available_formats(mime_type, filename)}
    return {
        "image": IMAGE_FORMATS,
        "video": VIDEO_FORMATS,
        "audio": AUDIO_FORMATS,
    }


@router.post("/convert")
async def convert_file(
    file: UploadFile = File(...),
    target: str = Query(..., description="Target format, e.g. mp4, png, mp3"),
    svc: ConversionService = Depends(get_conversion_service),
):
    """Upload a single file and return it converted to the target format."""
    limit = svc.max_file_size or MAX_FILE_SIZE_BYTES
    chunks: list[bytes] = []
    total = 0
    while chunk := await file.read(1024 * 1024):
        total += len(chunk)
        if total > limit:
            raise HTTPException(413, f"File too large (max {limit // (1024 * 1024)} MB)")
        chunks.append(chunk)

    media = MediaFile(
        data=b"".join(chunks),
        mime_type=file.content_type or "application/octet-stream",
        name=file.filename or "upload",
    )
    try:
        result = await run_in_threadpool(svc.convert, media, target)
    except FileTooLarge as e:
        raise HTTPException(413, str(e))
    except (UnsupportedScenario, UnsupportedTargetFormat) as e:
        raise HTTPException(400, str(e))
    except Cancelled as e:
        raise HTTPException(409, str(e))
    except EngineUnavailable as e:
        raise HTTPException(503, str(e))
    except EngineExecutionFailed as e:
        logger.error("Conversion failed for %s: %s", media.name, e)
        raise HTTPException(500, f"Conversion failed: {e}")

    return Response(
        content=result.data,
        media_type=result.mime_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(result.filename)}"},
    )


@router.post("/cancel")
def cancel_conversion(svc: ConversionService = Depends(get_conversion_service)):
    """Cancel the running conversion. The engine is recreated on the next job."""
    svc.cancel()
    return {"status": "cancelled"}
