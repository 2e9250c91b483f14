"""Vendor-neutral seam around the realtime speech session.

The bridge only sees ``VendorConnector``/``VendorSession`` and ``LiveMessage``;
``OpenAIRealtimeConnector`` implements them with the openai-agents realtime
model and translates its events.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence

from agents.realtime.model import RealtimeModel, RealtimeModelConfig, RealtimeModelListener
from agents.realtime.model_events import RealtimeModelEvent
from agents.realtime.model_inputs import RealtimeModelSendAudio, RealtimeModelSendToolOutput
from agents.realtime.openai_realtime import OpenAIRealtimeWebSocketModel

from .audio_codec import AudioFrame

logger = logging.getLogger(__name__)


@dataclass
class ToolCall:
    """A function call requested by the remote model."""
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class LiveMessage:
    """One incoming message; any combination of the fields may be set."""
    tool_calls: list[ToolCall] = field(default_factory=list)
    audio: Optional[bytes] = None
    interrupted: bool = False


@dataclass
class SessionOptions:
    model: str
    voice: str
    instructions: str
    modalities: Sequence[str] = ("audio",)
    tools: Sequence[Any] = ()


class VendorSession(Protocol):
    async def send(self, frame: AudioFrame) -> None:
        ...

    async def send_tool_result(self, call_id: str, name: str, payload: dict[str, Any]) -> None:
        ...

    async def close(self) -> None:
        ...


@dataclass
class SessionHandlers:
    """The four reactions a session drives."""
    on_open: Callable[[VendorSession], Awaitable[None]]
    on_message: Callable[[LiveMessage], Awaitable[None]]
    on_close: Callable[[], Awaitable[None]]
    on_error: Callable[[Any], Awaitable[None]]


class VendorConnector(Protocol):
    async def open(self, options: SessionOptions, handlers: SessionHandlers) -> VendorSession:
        ...


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Could not parse tool arguments: %r", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


class _ModelListener(RealtimeModelListener):
    def __init__(self, session: "OpenAIRealtimeSession") -> None:
        self._session = session

    async def on_event(self, event: RealtimeModelEvent) -> None:
        await self._session.dispatch(event)


class OpenAIRealtimeSession:
    """``VendorSession`` backed by an openai-agents ``RealtimeModel``."""

    def __init__(self, model: RealtimeModel, handlers: SessionHandlers) -> None:
        self._model = model
        self._handlers = handlers
        # Tool outputs must reference the original call event
        self._pending_calls: dict[str, Any] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, frame: AudioFrame) -> None:
        if self._closed:
            return
        await self._model.send_event(RealtimeModelSendAudio(audio=frame.data, commit=False))

    async def send_tool_result(self, call_id: str, name: str, payload: dict[str, Any]) -> None:
        tool_call = self._pending_calls.pop(call_id, None)
        if tool_call is None:
            logger.warning("Dropping result for unknown tool call %s (%s)", call_id, name)
            return
        await self._model.send_event(
            RealtimeModelSendToolOutput(
                tool_call=tool_call,
                output=json.dumps(payload, ensure_ascii=False),
                start_response=True,
            )
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._model.close()
        finally:
            await self._handlers.on_close()

    async def dispatch(self, event: Any) -> None:
        """Translate one model event into the bridge's reactions."""
        event_type = getattr(event, "type", None)

        if event_type == "audio":
            await self._handlers.on_message(LiveMessage(audio=event.data))
        elif event_type == "audio_interrupted":
            await self._handlers.on_message(LiveMessage(interrupted=True))
        elif event_type == "function_call":
            self._pending_calls[event.call_id] = event
            call = ToolCall(id=event.call_id, name=event.name, arguments=_parse_arguments(event.arguments))
            await self._handlers.on_message(LiveMessage(tool_calls=[call]))
        elif event_type == "connection_status":
            if getattr(event, "status", None) == "disconnected" and not self._closed:
                self._closed = True
                await self._handlers.on_close()
        elif event_type == "error":
            await self._handlers.on_error(getattr(event, "error", None))
        elif event_type == "exception":
            await self._handlers.on_error(getattr(event, "exception", None))


class OpenAIRealtimeConnector:
    """Opens realtime sessions against the OpenAI realtime API."""

    def __init__(
        self,
        api_key: Optional[str],
        model_factory: Callable[[], RealtimeModel] = OpenAIRealtimeWebSocketModel,
    ) -> None:
        self._api_key = api_key
        self._model_factory = model_factory

    async def open(self, options: SessionOptions, handlers: SessionHandlers) -> OpenAIRealtimeSession:
        model = self._model_factory()
        session = OpenAIRealtimeSession(model, handlers)
        model.add_listener(_ModelListener(session))

        config: RealtimeModelConfig = {
            "initial_model_settings": {
                "model_name": options.model,
                "instructions": options.instructions,
                "voice": options.voice,
                "modalities": list(options.modalities),
                "input_audio_format": "pcm16",
                "output_audio_format": "pcm16",
                "tools": list(options.tools),
            },
        }
        if self._api_key:
            config["api_key"] = self._api_key

        logger.info("Opening realtime session (model=%s, voice=%s)", options.model, options.voice)
        await model.connect(config)
        await handlers.on_open(session)
        return session
