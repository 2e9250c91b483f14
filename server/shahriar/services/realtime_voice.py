"""Realtime voice session management: microphone out, synthesized speech in."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np

from ..ai_agents.realtime_conversation import (
    KNOWLEDGE_BASE_TOOL,
    build_system_instruction,
    lookup_local_knowledge,
    search_knowledge_base,
)
from ..config import Settings, settings as default_settings
from ..models.schemas import UserProfile
from .audio_codec import decode_audio_chunk, encode_capture_block
from .audio_io import SoundDeviceAudio
from .playback import PlaybackScheduler, PlaybackState
from .realtime_vendor import LiveMessage, SessionHandlers, SessionOptions, VendorConnector, VendorSession
from .tasks import StaticTaskSource, TaskSource

logger = logging.getLogger(__name__)

CAPTURE_QUEUE_SIZE = 64


class BridgeError(RuntimeError):
    """Configuration problem detected before any session is attempted."""


@dataclass(frozen=True)
class BridgeState:
    connected: bool = False
    speaking: bool = False
    error: Optional[str] = None


class AudioBridge:
    """Relays microphone audio to a realtime session and plays the replies.

    Capture is full duplex: blocks are sent for as long as the session is open,
    whether or not the assistant is speaking. Every failure ends up in ``error``
    with ``connected`` false; reconnecting is left to the caller.
    """

    def __init__(
        self,
        connector: VendorConnector,
        *,
        audio: Any = None,
        tasks: Optional[TaskSource] = None,
        settings: Optional[Settings] = None,
        on_state_change: Optional[Callable[[BridgeState], None]] = None,
    ) -> None:
        self._connector = connector
        self._audio = audio if audio is not None else SoundDeviceAudio()
        self._tasks = tasks if tasks is not None else StaticTaskSource()
        self._settings = settings or default_settings
        self._on_state_change = on_state_change

        self.scheduler = PlaybackScheduler(on_state_change=self._on_playback_state)
        self._connected = False
        self._error: Optional[str] = None

        self._session: Optional[VendorSession] = None
        self._capture = None
        self._playback = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._frames: Optional[asyncio.Queue[np.ndarray]] = None
        self._streaming = False
        self._capture_task: Optional[asyncio.Task] = None
        # Bumped on every connect/disconnect so late reactions from an old session are ignored
        self._generation = 0
        self._background: set[asyncio.Task] = set()

    # --- State ------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def speaking(self) -> bool:
        return self.scheduler.speaking

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def state(self) -> BridgeState:
        return BridgeState(connected=self._connected, speaking=self.speaking, error=self._error)

    def _notify(self) -> None:
        if self._on_state_change is not None:
            self._on_state_change(self.state)

    def _on_playback_state(self, state: PlaybackState) -> None:
        # May run on the audio driver thread
        self._notify()

    # --- Public operations ----------------------------------------------

    async def connect(self, user: UserProfile) -> None:
        """Open the audio channels and a realtime session for ``user``."""
        if self._connected:
            logger.info("[Bridge] Already connected; ignoring connect request")
            return
        if self._session is not None or self._capture is not None:
            # Leftovers from a session that failed mid-way
            await self.disconnect()

        self._generation += 1
        generation = self._generation
        self._error = None
        self._notify()

        try:
            if not self._settings.openai_api_key:
                raise BridgeError("API key missing")

            self._loop = asyncio.get_running_loop()
            self._frames = asyncio.Queue(maxsize=CAPTURE_QUEUE_SIZE)
            self._capture = self._audio.open_capture(
                self._settings.capture_sample_rate, self._settings.capture_block_size
            )
            self._playback = self._audio.open_playback(self._settings.playback_sample_rate, self.scheduler)
            self._capture.start(self._on_capture_block)

            tasks = await self._tasks.list_tasks(user.id)
            options = SessionOptions(
                model=self._settings.realtime_model,
                voice=self._settings.realtime_voice,
                instructions=build_system_instruction(user, tasks),
                modalities=("audio",),
                tools=(search_knowledge_base,),
            )
            handlers = SessionHandlers(
                on_open=lambda session: self._handle_open(generation, session),
                on_message=lambda message: self._handle_message(generation, message),
                on_close=lambda: self._handle_close(generation),
                on_error=lambda error: self._handle_error(generation, error),
            )
            session = await self._connector.open(options, handlers)
            if generation == self._generation:
                self._session = session
        except Exception as exc:
            logger.exception("[Bridge] Failed to connect: %s", exc)
            self._stop_streaming()
            self._release_audio()
            self._session = None
            self._connected = False
            self._error = str(exc) or "Failed to connect"
            self._notify()

    async def disconnect(self) -> None:
        """Tear everything down. Safe to call at any time, any number of times."""
        self._generation += 1
        session, self._session = self._session, None
        if session is not None:
            task = asyncio.create_task(self._close_session(session))
            self._background.add(task)
            task.add_done_callback(self._background.discard)
        self._stop_streaming()
        self._release_audio()
        self.scheduler.interrupt()
        was_connected, self._connected = self._connected, False
        if was_connected or session is not None:
            logger.info("[Bridge] Disconnected")
        self._notify()

    # --- Session reactions ----------------------------------------------

    async def _handle_open(self, generation: int, session: VendorSession) -> None:
        if generation != self._generation:
            return
        logger.info("[Bridge] Connection opened")
        self._session = session
        self._connected = True
        self._streaming = True
        self._capture_task = asyncio.create_task(self._capture_loop(generation, session))
        self._notify()

    async def _handle_message(self, generation: int, message: LiveMessage) -> None:
        if generation != self._generation:
            return
        session = self._session

        for call in message.tool_calls:
            if call.name != KNOWLEDGE_BASE_TOOL:
                logger.warning("[Bridge] Ignoring call to unknown tool %s", call.name)
                continue
            query = str(call.arguments.get("query", ""))
            logger.info("[Bridge] Answering %s locally for %r", call.name, query)
            if session is not None:
                await session.send_tool_result(call.id, call.name, {"result": lookup_local_knowledge(query)})

        if message.audio and self._playback is not None:
            samples = decode_audio_chunk(message.audio)
            self.scheduler.schedule(samples, self._playback.sample_rate, self._playback.current_time)

        if message.interrupted:
            logger.info("[Bridge] Interrupted")
            self.scheduler.interrupt()

    async def _handle_close(self, generation: int) -> None:
        if generation != self._generation:
            return
        logger.info("[Bridge] Connection closed")
        self._stop_streaming()
        self.scheduler.interrupt()
        self._connected = False
        self._notify()

    async def _handle_error(self, generation: int, error: Any) -> None:
        if generation != self._generation:
            return
        logger.error("[Bridge] Session error: %s", error)
        self._stop_streaming()
        self._connected = False
        self._error = f"Connection error: {error}" if error else "Connection error"
        self._notify()

    # --- Capture --------------------------------------------------------

    def _on_capture_block(self, block: np.ndarray) -> None:
        """Called on the audio driver thread for every microphone block."""
        loop = self._loop
        if loop is None or not self._streaming:
            return
        try:
            loop.call_soon_threadsafe(self._enqueue_block, block)
        except RuntimeError:
            # Event loop already closed
            pass

    def _enqueue_block(self, block: np.ndarray) -> None:
        if not self._streaming or self._frames is None:
            return
        try:
            self._frames.put_nowait(block)
        except asyncio.QueueFull:
            logger.debug("[Bridge] Capture queue full, dropping a block")

    async def _capture_loop(self, generation: int, session: VendorSession) -> None:
        frames = self._frames
        if frames is None:
            return
        while True:
            block = await frames.get()
            if generation != self._generation or not self._streaming:
                break
            frame = encode_capture_block(
                block, self._settings.capture_sample_rate, self._settings.realtime_input_sample_rate
            )
            try:
                await session.send(frame)
            except Exception as exc:
                logger.warning("[Bridge] Stopped sending audio: %s", exc)
                self._streaming = False
                break

    def _stop_streaming(self) -> None:
        self._streaming = False
        task, self._capture_task = self._capture_task, None
        if task is not None and not task.done():
            task.cancel()

    # --- Resources ------------------------------------------------------

    def _release_audio(self) -> None:
        capture, self._capture = self._capture, None
        playback, self._playback = self._playback, None
        if capture is not None:
            capture.close()
        if playback is not None:
            playback.close()
        self._frames = None

    async def _close_session(self, session: VendorSession) -> None:
        try:
            await session.close()
        except Exception:
            logger.exception("[Bridge] Failed to close session")
