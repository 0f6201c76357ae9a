"""Microphone recorder state machine.

    idle --start--> recording <--pause/resume--> paused
    recording|paused --stop--> stopped --save|discard--> idle

Captured frames are buffered in memory while recording and dropped while
paused. ``stop`` always releases the input device, even when nothing was
captured. The elapsed counter advances once per second while recording
and is what gets stored as the asset's duration.
"""

import asyncio
import io
import os
import tempfile
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable
from uuid import UUID

import numpy as np
import soundfile as sf

from callcoach.core.errors import DeviceError, ValidationError
from callcoach.core.events.bus import EventBus
from callcoach.core.events.types import EventType
from callcoach.core.logging import get_logger
from callcoach.core.records import AssetSource, AudioAsset
from callcoach.core.workflow.progress import ProgressReporter
from callcoach.plugins.recording.devices import InputStreamHandle, Microphone
from callcoach.plugins.upload.service import AudioAssetWriter

logger = get_logger(__name__)

RECORDING_MIME_TYPE = "audio/wav"


class RecorderState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"


class RecordedClip:
    """A finished recording, encoded as 16-bit PCM WAV."""

    def __init__(self, data: bytes, sample_rate: int, channels: int, frames: int) -> None:
        self.data = data
        self.sample_rate = sample_rate
        self.channels = channels
        self.frames = frames
        self._playback_path: Path | None = None

    @classmethod
    def encode(cls, chunks: list[np.ndarray], sample_rate: int, channels: int) -> "RecordedClip":
        if chunks:
            samples = np.concatenate(chunks, axis=0)
        else:
            samples = np.zeros((0, channels), dtype="float32")
        buffer = io.BytesIO()
        sf.write(buffer, samples, sample_rate, format="WAV", subtype="PCM_16")
        return cls(buffer.getvalue(), sample_rate, channels, len(samples))

    @property
    def size(self) -> int:
        return len(self.data)

    def playback_path(self) -> Path:
        """Local file for playback; created on first use, removed by ``release``."""
        if self._playback_path is None:
            fd, name = tempfile.mkstemp(prefix="callcoach-recording-", suffix=".wav")
            with os.fdopen(fd, "wb") as f:
                f.write(self.data)
            self._playback_path = Path(name)
        return self._playback_path

    def release(self) -> None:
        if self._playback_path is not None:
            self._playback_path.unlink(missing_ok=True)
            self._playback_path = None


class AudioRecorder:
    def __init__(
        self,
        writer: AudioAssetWriter,
        microphone_factory: Callable[[], Microphone],
        sample_rate: int = 44100,
        channels: int = 1,
        event_bus: EventBus | None = None,
        user_id: UUID | None = None,
        tick_interval: float = 1.0,
    ) -> None:
        self._writer = writer
        self._microphone_factory = microphone_factory
        self.sample_rate = sample_rate
        self.channels = channels
        self._event_bus = event_bus
        self._user_id = user_id
        self._tick_interval = tick_interval

        self._state = RecorderState.IDLE
        self._elapsed = 0
        self._chunks: list[np.ndarray] = []
        self._lock = threading.Lock()
        self._stream: InputStreamHandle | None = None
        self._ticker: asyncio.Task | None = None
        self._clip: RecordedClip | None = None

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def elapsed_seconds(self) -> int:
        return self._elapsed

    @property
    def clip(self) -> RecordedClip | None:
        return self._clip

    def snapshot(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "elapsed_seconds": self._elapsed,
            "has_clip": self._clip is not None,
            "clip_bytes": self._clip.size if self._clip else 0,
        }

    # === TRANSITIONS ===

    async def start(self) -> None:
        if self._state in (RecorderState.RECORDING, RecorderState.PAUSED):
            return
        self._drop_clip()
        with self._lock:
            self._chunks = []
        self._elapsed = 0

        try:
            stream = self._microphone_factory().open(
                self.sample_rate, self.channels, self._on_audio
            )
        except DeviceError:
            logger.warning("microphone_unavailable", user_id=str(self._user_id))
            raise
        except OSError as e:
            raise DeviceError("Failed to access microphone. Please check permissions.") from e

        try:
            stream.start()
        except Exception as e:
            # Release the acquired device
            stream.close()
            logger.warning("microphone_start_failed", user_id=str(self._user_id), error=str(e))
            if isinstance(e, DeviceError):
                raise
            raise DeviceError(
                "Failed to access microphone. Please check permissions.", reason=str(e)
            ) from e

        self._stream = stream
        self._state = RecorderState.RECORDING
        self._ticker = asyncio.ensure_future(self._run_ticker())
        logger.info("recording_started", user_id=str(self._user_id))
        await self._emit_state()

    async def pause(self) -> None:
        if self._state is not RecorderState.RECORDING:
            return
        self._state = RecorderState.PAUSED
        await self._emit_state()

    async def resume(self) -> None:
        if self._state is not RecorderState.PAUSED:
            return
        self._state = RecorderState.RECORDING
        await self._emit_state()

    async def stop(self) -> RecordedClip | None:
        if self._state not in (RecorderState.RECORDING, RecorderState.PAUSED):
            return None
        try:
            with self._lock:
                chunks, self._chunks = self._chunks, []
            self._clip = RecordedClip.encode(chunks, self.sample_rate, self.channels)
        finally:
            await self._release_stream()
            self._state = RecorderState.STOPPED
        logger.info(
            "recording_stopped",
            user_id=str(self._user_id),
            elapsed_seconds=self._elapsed,
            frames=self._clip.frames,
        )
        await self._emit_state()
        return self._clip

    async def save(self, owner_id: UUID, progress: ProgressReporter) -> AudioAsset:
        if self._state is not RecorderState.STOPPED or self._clip is None:
            raise ValidationError("No recording to save")
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        asset = await self._writer.write(
            owner_id=owner_id,
            filename=f"recording-{stamp}.wav",
            mime_type=RECORDING_MIME_TYPE,
            data=self._clip.data,
            source=AssetSource.RECORDING,
            progress=progress,
            duration_seconds=self._elapsed,
        )
        self._drop_clip()
        self._elapsed = 0
        self._state = RecorderState.IDLE
        await self._emit_state()
        return asset

    async def discard(self) -> None:
        await self._release_stream()
        with self._lock:
            self._chunks = []
        self._drop_clip()
        self._elapsed = 0
        self._state = RecorderState.IDLE
        await self._emit_state()

    async def close(self) -> None:
        await self._release_stream()
        self._drop_clip()

    # === INTERNALS ===

    def tick(self) -> None:
        """Advance the elapsed counter by one second if recording."""
        if self._state is RecorderState.RECORDING:
            self._elapsed += 1

    async def _run_ticker(self) -> None:
        while True:
            await asyncio.sleep(self._tick_interval)
            self.tick()

    def _on_audio(self, frames: np.ndarray) -> None:
        # Called from the audio thread
        if self._state is not RecorderState.RECORDING:
            return
        with self._lock:
            self._chunks.append(frames)

    async def _release_stream(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            await asyncio.gather(self._ticker, return_exceptions=True)
            self._ticker = None
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        try:
            stream.stop()
        finally:
            stream.close()

    def _drop_clip(self) -> None:
        if self._clip is not None:
            self._clip.release()
            self._clip = None

    async def _emit_state(self) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.emit(
            EventType.RECORDING_STATE_CHANGED,
            source="stage:recording",
            payload=self.snapshot(),
            user_id=self._user_id,
        )
