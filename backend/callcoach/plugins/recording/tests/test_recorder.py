"""Tests for the microphone recorder state machine."""

import io

import pytest
import soundfile as sf

from callcoach.core.errors import DeviceError, ValidationError
from callcoach.core.events.types import EventType, WorkflowStage
from callcoach.core.records import AssetSource
from callcoach.plugins.recording.recorder import AudioRecorder, RecordedClip, RecorderState
from tests.conftest import FakeMicrophone


@pytest.mark.plugin
class TestTransitions:
    @pytest.mark.asyncio
    async def test_start_opens_stream(self, recorder, microphone):
        await recorder.start()

        assert recorder.state is RecorderState.RECORDING
        assert microphone.stream.started is True
        await recorder.close()

    @pytest.mark.asyncio
    async def test_pause_while_idle_is_a_no_op(self, recorder):
        await recorder.pause()
        await recorder.resume()
        assert recorder.state is RecorderState.IDLE

    @pytest.mark.asyncio
    async def test_stop_while_idle_returns_none(self, recorder):
        assert await recorder.stop() is None
        assert recorder.state is RecorderState.IDLE

    @pytest.mark.asyncio
    async def test_second_start_is_ignored(self, recorder, microphone):
        await recorder.start()
        await recorder.start()

        assert len(microphone.streams) == 1
        await recorder.close()

    @pytest.mark.asyncio
    async def test_stop_releases_device(self, recorder, microphone):
        await recorder.start()
        microphone.stream.push(seconds=0.25)

        clip = await recorder.stop()

        assert recorder.state is RecorderState.STOPPED
        assert microphone.stream.stopped is True
        assert microphone.stream.closed is True
        assert clip.frames == int(0.25 * 44100)

    @pytest.mark.asyncio
    async def test_paused_frames_are_dropped(self, recorder, microphone):
        await recorder.start()
        microphone.stream.push(seconds=0.1)
        await recorder.pause()
        microphone.stream.push(seconds=1.0)
        await recorder.resume()
        microphone.stream.push(seconds=0.1)

        clip = await recorder.stop()

        assert clip.frames == 2 * int(0.1 * 44100)

    @pytest.mark.asyncio
    async def test_elapsed_counts_only_while_recording(self, recorder):
        await recorder.start()
        recorder.tick()
        recorder.tick()
        await recorder.pause()
        recorder.tick()
        await recorder.resume()
        recorder.tick()

        assert recorder.elapsed_seconds == 3
        await recorder.close()

    @pytest.mark.asyncio
    async def test_device_error_leaves_recorder_idle(self, writer, event_bus):
        recorder = AudioRecorder(writer, lambda: FakeMicrophone(fail=True), event_bus=event_bus)

        with pytest.raises(DeviceError, match="Please check permissions"):
            await recorder.start()

        assert recorder.state is RecorderState.IDLE

    @pytest.mark.asyncio
    async def test_os_error_becomes_device_error(self, writer):
        def broken_factory():
            raise OSError("PortAudio library not found")

        recorder = AudioRecorder(writer, broken_factory)

        with pytest.raises(DeviceError):
            await recorder.start()

    @pytest.mark.asyncio
    async def test_stream_start_failure_releases_device(self, writer):
        microphone = FakeMicrophone(start_error=RuntimeError("Error starting stream [PaErrorCode -9985]"))
        recorder = AudioRecorder(writer, lambda: microphone)

        with pytest.raises(DeviceError, match="Please check permissions") as exc_info:
            await recorder.start()

        assert microphone.stream.closed is True
        assert recorder.state is RecorderState.IDLE
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_sounddevice_start_error_becomes_device_error(self):
        from callcoach.plugins.recording.devices import _SoundDeviceStream

        class PortAudioError(Exception):
            pass

        class BrokenInputStream:
            def start(self):
                raise PortAudioError("Device unavailable")

        with pytest.raises(DeviceError):
            _SoundDeviceStream(BrokenInputStream(), PortAudioError).start()

    @pytest.mark.asyncio
    async def test_state_changes_are_published(self, recorder, event_bus):
        states = []
        event_bus.subscribe(EventType.RECORDING_STATE_CHANGED, lambda e: states.append(e.payload["state"]))

        await recorder.start()
        await recorder.pause()
        await recorder.stop()
        await recorder.discard()

        assert states == ["recording", "paused", "stopped", "idle"]


@pytest.mark.plugin
class TestSaveAndDiscard:
    @pytest.mark.asyncio
    async def test_save_writes_wav_asset(self, recorder, microphone, repository, auth_user, make_progress, platform):
        await recorder.start()
        microphone.stream.push(seconds=0.5)
        recorder.tick()
        await recorder.stop()
        clip_bytes = recorder.clip.data

        progress = make_progress(WorkflowStage.RECORDING)
        asset = await recorder.save(auth_user.id, progress)

        assert asset.source is AssetSource.RECORDING
        assert asset.mime_type == "audio/wav"
        assert asset.format == "wav"
        assert asset.duration_seconds == 1
        assert asset.filename.startswith("recording-") and asset.filename.endswith(".wav")
        assert progress.history == [25, 50, 75, 100]
        assert await platform.storage.download(asset.storage_path) == clip_bytes
        assert recorder.state is RecorderState.IDLE
        assert recorder.clip is None

    @pytest.mark.asyncio
    async def test_save_without_recording_is_rejected(self, recorder, auth_user, make_progress):
        with pytest.raises(ValidationError, match="No recording to save"):
            await recorder.save(auth_user.id, make_progress(WorkflowStage.RECORDING))

    @pytest.mark.asyncio
    async def test_save_while_recording_is_rejected(self, recorder, auth_user, make_progress):
        await recorder.start()
        with pytest.raises(ValidationError):
            await recorder.save(auth_user.id, make_progress(WorkflowStage.RECORDING))
        await recorder.close()

    @pytest.mark.asyncio
    async def test_discard_resets(self, recorder, microphone):
        await recorder.start()
        microphone.stream.push(seconds=0.1)
        await recorder.stop()

        await recorder.discard()

        assert recorder.snapshot() == {
            "state": "idle",
            "elapsed_seconds": 0,
            "has_clip": False,
            "clip_bytes": 0,
        }

    @pytest.mark.asyncio
    async def test_controller_saves_and_selects(self, controller, microphone):
        await controller.recorder.start()
        microphone.stream.push(seconds=0.1)
        await controller.recorder.stop()

        asset = await controller.save_recording()

        assert controller.audio_asset == asset
        assert controller.is_running(WorkflowStage.RECORDING) is False


@pytest.mark.plugin
class TestRecordedClip:
    def test_encode_produces_pcm16_wav(self):
        import numpy as np

        chunks = [np.zeros((800, 1), dtype="float32"), np.full((200, 1), 0.5, dtype="float32")]
        clip = RecordedClip.encode(chunks, 8000, 1)

        info = sf.info(io.BytesIO(clip.data))
        assert info.samplerate == 8000
        assert info.frames == 1000
        assert info.subtype == "PCM_16"

    def test_empty_recording_has_no_frames(self):
        clip = RecordedClip.encode([], 44100, 1)
        assert clip.frames == 0
        assert clip.data[:4] == b"RIFF"

    def test_playback_path_is_released(self):
        clip = RecordedClip.encode([], 8000, 1)
        path = clip.playback_path()
        assert path.read_bytes() == clip.data

        clip.release()

        assert not path.exists()


@pytest.mark.plugin
class TestRecordingPluginMetadata:
    def test_loads_after_upload(self):
        from callcoach.plugins.recording.plugin import RecordingPlugin

        metadata = RecordingPlugin().metadata
        assert metadata.priority == 15
        assert metadata.dependencies == ["upload"]
