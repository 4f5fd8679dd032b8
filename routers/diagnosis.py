import io
import logging
from typing import Optional

from fastapi import APIRouter, File, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from PIL import Image, UnidentifiedImageError

from config import MAX_IMAGE_SIZE, _current_user_id
from llm import GENERIC_ERROR, LLMError, analyze_image
from security import _is_llm_call_allowed

logger = logging.getLogger(__name__)

router = APIRouter()

_MAX_IMAGE_DIMENSION = 8000  # pixels per side
_FORMATS = {"jpg": ("JPEG", "image/jpeg"), "png": ("PNG", "image/png"), "webp": ("WEBP", "image/webp")}


def _detect_image_ext(data: bytes) -> Optional[str]:
    if data.startswith(b"\xff\xd8\xff"):
        return "jpg"
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "png"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return None


async def _read_limited_upload(upload: UploadFile, max_bytes: int) -> Optional[bytes]:
    chunks = []
    total = 0
    while True:
        chunk = await upload.read(1024 * 1024)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            return None
        chunks.append(chunk)
    return b"".join(chunks)


def _error(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse({"ok": False, "error": message}, status_code=status_code)


@router.post("/api/ai-diagnosis")
async def api_ai_diagnosis(image: UploadFile = File(...)):
    uid = _current_user_id.get()
    data = await _read_limited_upload(image, MAX_IMAGE_SIZE)
    if data is None:
        return _error(f"Image must be under {MAX_IMAGE_SIZE // (1024 * 1024)} MB")
    if not data:
        return _error("Image is empty")
    ext = _detect_image_ext(data)
    if not ext:
        return _error("Unsupported image format")
    # Re-encode through Pillow: validates the payload and drops EXIF/metadata
    fmt, media_type = _FORMATS[ext]
    try:
        img = Image.open(io.BytesIO(data))
        if img.width > _MAX_IMAGE_DIMENSION or img.height > _MAX_IMAGE_DIMENSION:
            return _error(f"Image must be {_MAX_IMAGE_DIMENSION}px or smaller in each dimension")
        if fmt == "JPEG" and img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        buf = io.BytesIO()
        img.save(buf, format=fmt)
        data = buf.getvalue()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
        logger.warning("Rejected undecodable %s upload from user %s", ext, uid)
        return _error("Could not process image")

    if not _is_llm_call_allowed(uid):
        return _error("Too many requests", 429)
    try:
        analysis = await run_in_threadpool(analyze_image, data, media_type)
    except LLMError:
        logger.exception("Image analysis failed")
        return _error(GENERIC_ERROR, 502)
    return JSONResponse(analysis)
