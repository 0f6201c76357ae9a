"""Upload plugin router."""

from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, File, HTTPException, Response, UploadFile, status

from callcoach.api.deps import CurrentController, ServicesDep
from callcoach.core.auth.dependencies import CurrentUser
from callcoach.core.records import AudioAsset
from callcoach.plugins.upload.service import UploadedFile

router = APIRouter()


def encode_filename_rfc2231(filename: str) -> str:
    """
    Filename parameter for Content-Disposition.

    ASCII names are quoted as-is; anything else uses the RFC 2231
    ``filename*=UTF-8''...`` form.
    """
    try:
        filename.encode("ascii")
        return f'filename="{filename}"'
    except UnicodeEncodeError:
        return f"filename*=UTF-8''{quote(filename.encode('utf-8'))}"


@router.post("/files", response_model=AudioAsset, status_code=status.HTTP_201_CREATED)
async def upload_file(
    controller: CurrentController,
    services: ServicesDep,
    file: UploadFile = File(...),
) -> AudioAsset:
    """
    Upload an audio file.

    The new file becomes the current item; with auto-chaining on,
    transcription starts in the background.
    """
    # One byte past the limit is enough for validation to reject the file
    content = await file.read(services.upload.max_bytes + 1)
    asset = await controller.upload(
        UploadedFile(
            filename=file.filename or "audio",
            content_type=file.content_type or "application/octet-stream",
            data=content,
        )
    )
    if asset is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An upload is already in progress",
        )
    return asset


@router.get("/files", response_model=list[AudioAsset])
async def list_files(user: CurrentUser, services: ServicesDep) -> list[AudioAsset]:
    return await services.repository.list_audio_assets(user.id)


@router.get("/files/{audio_asset_id}", response_model=AudioAsset)
async def get_file(audio_asset_id: UUID, user: CurrentUser, services: ServicesDep) -> AudioAsset:
    return await services.repository.get_owned_audio_asset(audio_asset_id, user.id)


@router.get("/files/{audio_asset_id}/content")
async def download_file(audio_asset_id: UUID, user: CurrentUser, services: ServicesDep) -> Response:
    """Stored bytes, for playback or download."""
    asset = await services.repository.get_owned_audio_asset(audio_asset_id, user.id)
    data = await services.platform.storage.download(asset.storage_path)
    return Response(
        content=data,
        media_type=asset.mime_type,
        headers={"Content-Disposition": f"inline; {encode_filename_rfc2231(asset.filename)}"},
    )
