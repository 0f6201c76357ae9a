"""Audio file helpers: storage naming, format names, duration probing."""

import io
import secrets
import time
from pathlib import PurePath
from uuid import UUID

import soundfile as sf

from callcoach.core.logging import get_logger

logger = get_logger(__name__)

EXTENSION_BY_MIME = {
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "audio/mp4": "m4a",
    "audio/flac": "flac",
    "audio/ogg": "ogg",
}


def file_extension(filename: str, mime_type: str) -> str:
    """Extension from the filename, falling back to one derived from the MIME type."""
    suffix = PurePath(filename or "").suffix.lstrip(".").lower()
    return suffix or EXTENSION_BY_MIME.get(mime_type, "bin")


def storage_path_for(owner_id: UUID, filename: str, mime_type: str) -> str:
    """``{owner_id}/{millis}_{random}.{ext}``; unique per call."""
    millis = int(time.time() * 1000)
    return f"{owner_id}/{millis}_{secrets.token_hex(6)}.{file_extension(filename, mime_type)}"


def probe_duration(data: bytes) -> float | None:
    """Duration in seconds, or None if the container cannot be decoded."""
    try:
        info = sf.info(io.BytesIO(data))
    except (RuntimeError, TypeError, ValueError) as e:
        # soundfile raises LibsndfileError (a RuntimeError) for unknown formats
        logger.debug("duration_probe_failed", error=str(e))
        return None
    if not info.samplerate:
        return None
    return round(info.frames / info.samplerate, 3)
