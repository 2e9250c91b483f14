"""Microphone capture and speaker playback via sounddevice.

sounddevice is imported lazily so the rest of the package (and the test suite)
works on machines without PortAudio.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import numpy as np

from .playback import PlaybackScheduler

logger = logging.getLogger(__name__)

BlockCallback = Callable[[np.ndarray], None]


class MicrophoneUnavailable(RuntimeError):
    """Raised when the input device cannot be opened (missing or access denied)."""


class CaptureChannel:
    """Mono float32 input stream delivering fixed-size blocks."""

    def __init__(self, sample_rate: int, block_size: int, device: Optional[int] = None) -> None:
        self.sample_rate = sample_rate
        self.block_size = block_size
        self._device = device
        self._stream = None

    @property
    def active(self) -> bool:
        return self._stream is not None

    def start(self, on_block: BlockCallback) -> None:
        """Open the microphone; ``on_block`` runs on the audio driver thread."""
        import sounddevice as sd

        def _callback(indata, frames, time_info, status) -> None:  # noqa: ANN001
            if status:
                logger.debug("Capture status: %s", status)
            on_block(np.array(indata[:, 0], dtype=np.float32))

        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                blocksize=self.block_size,
                channels=1,
                dtype="float32",
                device=self._device,
                callback=_callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            raise MicrophoneUnavailable(f"Microphone unavailable: {exc}") from exc
        self._stream = stream
        logger.info("Capture started at %d Hz, %d frames per block", self.sample_rate, self.block_size)

    def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception:
            logger.exception("Failed to close capture stream")


class PlaybackChannel:
    """Output stream that mixes the scheduler's units at their start times.

    The channel clock is the number of frames rendered so far divided by the
    sample rate; units are placed on that clock, so a unit starting exactly where
    the previous one ends continues it without a gap.
    """

    def __init__(self, sample_rate: int, scheduler: PlaybackScheduler, device: Optional[int] = None) -> None:
        self.sample_rate = sample_rate
        self._scheduler = scheduler
        self._device = device
        self._frames_rendered = 0
        self._clock_lock = threading.Lock()
        self._stream = None

    @property
    def current_time(self) -> float:
        with self._clock_lock:
            return self._frames_rendered / self.sample_rate

    def render(self, frames: int) -> np.ndarray:
        """Mix the next ``frames`` samples and advance the clock."""
        with self._clock_lock:
            window_start = self._frames_rendered
            self._frames_rendered += frames
        window_end = window_start + frames
        out = np.zeros(frames, dtype=np.float32)
        finished = []

        for unit in self._scheduler.active_units():
            if unit.stopped:
                continue
            begin = int(round(unit.start * self.sample_rate))
            end = begin + len(unit.samples)
            lo = max(window_start, begin)
            hi = min(window_end, end)
            if lo < hi:
                out[lo - window_start:hi - window_start] += unit.samples[lo - begin:hi - begin]
            if end <= window_end:
                finished.append(unit)

        for unit in finished:
            self._scheduler.on_unit_finished(unit)
        return np.clip(out, -1.0, 1.0)

    def start(self) -> None:
        import sounddevice as sd

        def _callback(outdata, frames, time_info, status) -> None:  # noqa: ANN001
            if status:
                logger.debug("Playback status: %s", status)
            outdata[:, 0] = self.render(frames)

        stream = sd.OutputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype="float32",
            device=self._device,
            callback=_callback,
        )
        stream.start()
        self._stream = stream
        logger.info("Playback started at %d Hz", self.sample_rate)

    def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception:
            logger.exception("Failed to close playback stream")


class SoundDeviceAudio:
    """Opens the default (or chosen) sound devices for the bridge."""

    def __init__(self, input_device: Optional[int] = None, output_device: Optional[int] = None) -> None:
        self._input_device = input_device
        self._output_device = output_device

    def open_capture(self, sample_rate: int, block_size: int) -> CaptureChannel:
        return CaptureChannel(sample_rate, block_size, device=self._input_device)

    def open_playback(self, sample_rate: int, scheduler: PlaybackScheduler) -> PlaybackChannel:
        channel = PlaybackChannel(sample_rate, scheduler, device=self._output_device)
        channel.start()
        return channel
