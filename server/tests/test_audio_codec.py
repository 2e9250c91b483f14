from __future__ import annotations

import base64

import numpy as np
import pytest

from shahriar.services.audio_codec import (
    decode_audio_chunk,
    encode_capture_block,
    float_to_pcm16,
    pcm16_to_float,
)


def test_capture_block_is_resampled_to_target_rate() -> None:
    block = np.zeros(4096, dtype=np.float32)

    frame = encode_capture_block(block, 16_000, 24_000)

    assert len(frame.data) == 6144 * 2
    assert frame.sample_rate == 24_000


def test_capture_block_same_rate_keeps_length() -> None:
    frame = encode_capture_block(np.zeros(4096, dtype=np.float32), 16_000, 16_000)
    assert len(frame.data) == 4096 * 2


def test_pcm_conversion_clips_out_of_range_samples() -> None:
    pcm = float_to_pcm16(np.array([2.0, -2.0, 0.0], dtype=np.float32))
    ints = np.frombuffer(pcm, dtype="<i2")

    assert ints.tolist() == [32767, -32767, 0]


def test_decode_accepts_raw_and_base64() -> None:
    pcm = np.array([0, 16384, -16384], dtype="<i2").tobytes()

    raw = decode_audio_chunk(pcm)
    text = decode_audio_chunk(base64.b64encode(pcm).decode("ascii"))

    assert np.allclose(raw, [0.0, 0.5, -0.5])
    assert np.array_equal(raw, text)


def test_decode_rejects_garbage_text() -> None:
    with pytest.raises(ValueError):
        decode_audio_chunk("not base64!!")


def test_odd_byte_count_is_trimmed() -> None:
    assert pcm16_to_float(b"\x00\x40\x00").tolist() == [0.5]
