from __future__ import annotations

from typing import Any, Callable, Optional

import numpy as np
import pytest

from shahriar.config import Settings
from shahriar.models.schemas import UserProfile
from shahriar.services.audio_io import MicrophoneUnavailable
from shahriar.services.realtime_vendor import LiveMessage, SessionHandlers, SessionOptions


class FakeCapture:
    def __init__(self, sample_rate: int, block_size: int, *, deny: bool = False) -> None:
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.deny = deny
        self.on_block: Optional[Callable[[np.ndarray], None]] = None
        self.closed = False

    def start(self, on_block: Callable[[np.ndarray], None]) -> None:
        if self.deny:
            raise MicrophoneUnavailable("Microphone unavailable: permission denied")
        self.on_block = on_block

    def feed(self, block: np.ndarray) -> None:
        assert self.on_block is not None
        self.on_block(block)

    def close(self) -> None:
        self.closed = True


class FakePlayback:
    def __init__(self, sample_rate: int, scheduler: Any) -> None:
        self.sample_rate = sample_rate
        self.scheduler = scheduler
        self.current_time = 0.0
        self.closed = False

    def close(self) -> None:
        self.closed = True


class FakeAudio:
    def __init__(self, *, deny_microphone: bool = False) -> None:
        self.deny_microphone = deny_microphone
        self.captures: list[FakeCapture] = []
        self.playbacks: list[FakePlayback] = []

    def open_capture(self, sample_rate: int, block_size: int) -> FakeCapture:
        capture = FakeCapture(sample_rate, block_size, deny=self.deny_microphone)
        self.captures.append(capture)
        return capture

    def open_playback(self, sample_rate: int, scheduler: Any) -> FakePlayback:
        playback = FakePlayback(sample_rate, scheduler)
        self.playbacks.append(playback)
        return playback


class FakeSession:
    def __init__(self) -> None:
        self.frames: list[Any] = []
        self.tool_results: list[tuple[str, str, dict[str, Any]]] = []
        self.close_calls = 0
        self.fail_sends = False

    async def send(self, frame: Any) -> None:
        if self.fail_sends:
            raise ConnectionError("socket gone")
        self.frames.append(frame)

    async def send_tool_result(self, call_id: str, name: str, payload: dict[str, Any]) -> None:
        self.tool_results.append((call_id, name, payload))

    async def close(self) -> None:
        self.close_calls += 1


class FakeConnector:
    def __init__(self, *, reject: Optional[Exception] = None) -> None:
        self.reject = reject
        self.options: Optional[SessionOptions] = None
        self.handlers: Optional[SessionHandlers] = None
        self.session = FakeSession()

    async def open(self, options: SessionOptions, handlers: SessionHandlers) -> FakeSession:
        self.options = options
        self.handlers = handlers
        if self.reject is not None:
            raise self.reject
        await handlers.on_open(self.session)
        return self.session

    async def push(self, message: LiveMessage) -> None:
        assert self.handlers is not None
        await self.handlers.on_message(message)


@pytest.fixture()
def bridge_settings() -> Settings:
    cfg = Settings()
    cfg.openai_api_key = "sk-test"
    cfg.capture_sample_rate = 16_000
    cfg.playback_sample_rate = 24_000
    cfg.realtime_input_sample_rate = 24_000
    cfg.capture_block_size = 4096
    return cfg


@pytest.fixture()
def user() -> UserProfile:
    return UserProfile(id="u1", phone="0912", name="Ali", custom_instructions="Speak slowly")
