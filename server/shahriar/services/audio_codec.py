"""PCM conversions between the sound card and the realtime speech API."""
from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Union

import numpy as np


@dataclass(frozen=True)
class AudioFrame:
    """One encoded microphone block ready to be sent upstream."""

    data: bytes
    sample_rate: int


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """Float samples in [-1, 1] to 16-bit little-endian PCM."""
    clipped = np.clip(np.asarray(samples, dtype=np.float32).reshape(-1), -1.0, 1.0)
    return (clipped * 32767.0).astype("<i2").tobytes()


def pcm16_to_float(pcm: bytes) -> np.ndarray:
    """16-bit little-endian PCM to float32 samples in [-1, 1]."""
    if len(pcm) % 2:
        pcm = pcm[:-1]
    ints = np.frombuffer(pcm, dtype="<i2")
    return ints.astype(np.float32) / 32768.0


def resample(samples: np.ndarray, src_rate: int, dst_rate: int) -> np.ndarray:
    """Linear-interpolation resampling of a mono float signal."""
    mono = np.asarray(samples, dtype=np.float32).reshape(-1)
    if src_rate == dst_rate or mono.size == 0:
        return mono
    dst_length = max(1, int(round(mono.size * dst_rate / src_rate)))
    src_positions = np.arange(mono.size, dtype=np.float64)
    dst_positions = np.linspace(0, mono.size - 1, dst_length, dtype=np.float64)
    return np.interp(dst_positions, src_positions, mono).astype(np.float32)


def encode_capture_block(block: np.ndarray, capture_rate: int, target_rate: int) -> AudioFrame:
    """Turn a raw microphone block into the PCM16 frame the remote side expects."""
    return AudioFrame(data=float_to_pcm16(resample(block, capture_rate, target_rate)), sample_rate=target_rate)


def decode_audio_chunk(payload: Union[bytes, str]) -> np.ndarray:
    """Decode an inline audio chunk (raw PCM16 or its base64 text) into samples.

    Samples keep the rate of the incoming PCM; the playback channel is opened
    at that rate.
    """
    if isinstance(payload, str):
        try:
            payload = base64.b64decode(payload, validate=True)
        except binascii.Error as exc:
            raise ValueError("audio payload is not valid base64") from exc
    return pcm16_to_float(payload)
