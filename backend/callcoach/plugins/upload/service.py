"""Upload stage: validate, store, probe and record an audio file."""

from dataclasses import dataclass
from uuid import UUID

from callcoach.core.errors import CallCoachError, PersistenceError, ValidationError
from callcoach.core.events.bus import EventBus
from callcoach.core.events.types import EventType
from callcoach.core.logging import get_logger
from callcoach.core.platform.base import ObjectStore
from callcoach.core.records import AssetSource, AudioAsset
from callcoach.core.repository import RecordRepository
from callcoach.core.workflow.progress import ProgressReporter
from callcoach.plugins.upload.media import file_extension, probe_duration, storage_path_for

logger = get_logger(__name__)

DEFAULT_ALLOWED_MIME_TYPES = (
    "audio/mpeg",
    "audio/wav",
    "audio/mp4",
    "audio/flac",
    "audio/ogg",
)
DEFAULT_MAX_BYTES = 25 * 1024 * 1024


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def validate_upload(
    file: UploadedFile,
    allowed_mime_types: tuple[str, ...] | list[str] = DEFAULT_ALLOWED_MIME_TYPES,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> None:
    """Raise ValidationError for an unsupported type, an empty file or an oversize file."""
    if file.content_type not in allowed_mime_types:
        raise ValidationError(
            "Invalid file type. Please upload an audio file (MP3, WAV, M4A, FLAC, OGG).",
            content_type=file.content_type,
        )
    if file.size == 0:
        raise ValidationError("File is empty")
    if file.size > max_bytes:
        raise ValidationError(
            f"File size must be less than {max_bytes // (1024 * 1024)}MB",
            size_bytes=file.size,
        )


class AudioAssetWriter:
    """Store bytes, then insert the row; remove the bytes if the insert fails.

    Shared by the Upload and Recording stages.
    """

    def __init__(
        self,
        storage: ObjectStore,
        repository: RecordRepository,
        event_bus: EventBus | None = None,
    ) -> None:
        self._storage = storage
        self._repository = repository
        self._event_bus = event_bus

    async def write(
        self,
        owner_id: UUID,
        filename: str,
        mime_type: str,
        data: bytes,
        source: AssetSource,
        progress: ProgressReporter,
        duration_seconds: float | None = None,
    ) -> AudioAsset:
        storage_path = storage_path_for(owner_id, filename, mime_type)

        await progress.advance(25, "Uploading audio")
        await self._storage.upload(storage_path, data, mime_type)
        await progress.advance(50, "Audio stored")

        if duration_seconds is None:
            duration_seconds = probe_duration(data)
        await progress.advance(75, "Audio inspected")

        row = AudioAsset.new_row(
            owner_id=owner_id,
            filename=filename,
            storage_path=storage_path,
            byte_size=len(data),
            duration_seconds=duration_seconds,
            format=file_extension(filename, mime_type),
            mime_type=mime_type,
            source=source,
        )
        try:
            asset = await self._repository.insert_audio_asset(row)
        except CallCoachError:
            await self._compensate(storage_path)
            raise
        except Exception as e:
            await self._compensate(storage_path)
            raise PersistenceError(f"Failed to save audio file record: {e}") from e

        await progress.advance(100, "Audio saved")

        logger.info(
            "audio_asset_created",
            audio_asset_id=str(asset.id),
            source=source.value,
            byte_size=asset.byte_size,
            duration_seconds=duration_seconds,
        )
        if self._event_bus is not None:
            await self._event_bus.emit(
                EventType.AUDIO_ASSET_CREATED,
                source=f"stage:{source.value}",
                payload={
                    "audio_asset_id": str(asset.id),
                    "filename": asset.filename,
                    "mime_type": asset.mime_type,
                    "byte_size": asset.byte_size,
                },
                user_id=owner_id,
            )
        return asset

    async def _compensate(self, storage_path: str) -> None:
        try:
            await self._storage.remove([storage_path])
        except CallCoachError as e:
            # The insert error is the one surfaced; this only leaves an orphan object
            logger.error("orphaned_audio_object", storage_path=storage_path, error=str(e))
        else:
            logger.info("stored_audio_removed_after_insert_failure", storage_path=storage_path)


class UploadStage:
    """Turns a user-supplied file into an AudioAsset."""

    def __init__(
        self,
        writer: AudioAssetWriter,
        allowed_mime_types: tuple[str, ...] | list[str] = DEFAULT_ALLOWED_MIME_TYPES,
        max_bytes: int = DEFAULT_MAX_BYTES,
    ) -> None:
        self._writer = writer
        self.allowed_mime_types = tuple(allowed_mime_types)
        self.max_bytes = max_bytes

    async def upload(
        self,
        owner_id: UUID,
        file: UploadedFile,
        progress: ProgressReporter,
    ) -> AudioAsset:
        validate_upload(file, self.allowed_mime_types, self.max_bytes)
        return await self._writer.write(
            owner_id=owner_id,
            filename=file.filename,
            mime_type=file.content_type,
            data=file.data,
            source=AssetSource.UPLOAD,
            progress=progress,
        )
