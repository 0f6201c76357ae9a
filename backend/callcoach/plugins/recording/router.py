"""Recording plugin router."""

from typing import Any

from fastapi import APIRouter, HTTPException, Response, status

from callcoach.api.deps import CurrentController
from callcoach.core.errors import ValidationError
from callcoach.core.records import AudioAsset
from callcoach.core.workflow.controller import WorkflowController
from callcoach.plugins.recording.recorder import RECORDING_MIME_TYPE, AudioRecorder

router = APIRouter()


def _recorder(controller: WorkflowController) -> AudioRecorder:
    if controller.recorder is None:
        raise ValidationError("Recording is not available")
    return controller.recorder


@router.get("/recorder")
async def get_recorder(controller: CurrentController) -> dict[str, Any]:
    return _recorder(controller).snapshot()


@router.post("/recorder/start")
async def start_recording(controller: CurrentController) -> dict[str, Any]:
    """Open the microphone and start capturing. 409 if the device is unavailable."""
    recorder = _recorder(controller)
    await recorder.start()
    return recorder.snapshot()


@router.post("/recorder/pause")
async def pause_recording(controller: CurrentController) -> dict[str, Any]:
    recorder = _recorder(controller)
    await recorder.pause()
    return recorder.snapshot()


@router.post("/recorder/resume")
async def resume_recording(controller: CurrentController) -> dict[str, Any]:
    recorder = _recorder(controller)
    await recorder.resume()
    return recorder.snapshot()


@router.post("/recorder/stop")
async def stop_recording(controller: CurrentController) -> dict[str, Any]:
    recorder = _recorder(controller)
    await recorder.stop()
    return recorder.snapshot()


@router.get("/recorder/clip")
async def get_clip(controller: CurrentController) -> Response:
    """The stopped recording as WAV, for playback before saving."""
    clip = _recorder(controller).clip
    if clip is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No recording available")
    return Response(content=clip.data, media_type=RECORDING_MIME_TYPE)


@router.post("/recorder/save", response_model=AudioAsset, status_code=status.HTTP_201_CREATED)
async def save_recording(controller: CurrentController) -> AudioAsset:
    asset = await controller.save_recording()
    if asset is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A recording is already being saved",
        )
    return asset


@router.post("/recorder/discard")
async def discard_recording(controller: CurrentController) -> dict[str, Any]:
    recorder = _recorder(controller)
    await recorder.discard()
    return recorder.snapshot()
