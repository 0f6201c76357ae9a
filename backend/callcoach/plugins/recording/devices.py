"""Microphone access.

``SoundDeviceMicrophone`` wraps a sounddevice ``InputStream``. The
sounddevice import is deferred to ``open()`` because loading it requires
the PortAudio shared library, which headless hosts may not have.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable

import numpy as np

from callcoach.core.errors import DeviceError
from callcoach.core.logging import get_logger

logger = get_logger(__name__)

AudioCallback = Callable[[np.ndarray], None]


class InputStreamHandle(ABC):
    """An opened capture stream."""

    @abstractmethod
    def start(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...


class Microphone(ABC):
    @abstractmethod
    def open(self, sample_rate: int, channels: int, callback: AudioCallback) -> InputStreamHandle:
        """Acquire the device. Raises DeviceError if it is unavailable."""
        ...


class _SoundDeviceStream(InputStreamHandle):
    def __init__(self, stream: Any, error_type: type[Exception]) -> None:
        self._stream = stream
        self._error_type = error_type

    def start(self) -> None:
        try:
            self._stream.start()
        except self._error_type as e:
            raise DeviceError(
                "Failed to access microphone. Please check permissions.", reason=str(e)
            ) from e

    def stop(self) -> None:
        self._stream.stop()

    def close(self) -> None:
        self._stream.close()


class SoundDeviceMicrophone(Microphone):
    """Default input device via sounddevice/PortAudio."""

    def __init__(self, device: int | str | None = None) -> None:
        self.device = device

    def open(self, sample_rate: int, channels: int, callback: AudioCallback) -> InputStreamHandle:
        try:
            import sounddevice as sd
        except OSError as e:
            raise DeviceError(f"Audio input is not available: {e}") from e

        def _on_audio(indata: np.ndarray, frames: int, time: Any, status: Any) -> None:
            if status:
                logger.debug("audio_input_status", status=str(status))
            callback(indata.copy())

        try:
            stream = sd.InputStream(
                samplerate=sample_rate,
                channels=channels,
                dtype="float32",
                callback=_on_audio,
                blocksize=0,
                device=self.device,
            )
        except (sd.PortAudioError, ValueError) as e:
            raise DeviceError(
                "Failed to access microphone. Please check permissions.", reason=str(e)
            ) from e
        return _SoundDeviceStream(stream, sd.PortAudioError)
