"""Command-line voice client: talk to Shahriar through the local microphone."""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import uuid
from datetime import datetime, timezone
from typing import Optional

import httpx

from .config import Settings, settings as default_settings
from .models.schemas import SessionRecord, UserProfile
from .services.api_client import BackendClient, BackendError
from .services.realtime_vendor import OpenAIRealtimeConnector
from .services.realtime_voice import AudioBridge, BridgeState
from .services.tasks import JsonTaskSource

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _print_state(state: BridgeState) -> None:
    if state.error:
        label = f"error: {state.error}"
    elif not state.connected:
        label = "disconnected"
    elif state.speaking:
        label = "speaking"
    else:
        label = "listening"
    print(f"[shahriar] {label}", flush=True)


def build_session_record(user: UserProfile, started_at: str, ended_at: str) -> SessionRecord:
    return SessionRecord(
        id=uuid.uuid4().hex,
        user_id=user.id,
        title=f"Voice conversation {started_at[:16].replace('T', ' ')}",
        mode="voice",
        startedAt=started_at,
        endedAt=ended_at,
    )


class SessionWatcher:
    """Prints bridge state changes and wakes the CLI once an armed session ends.

    State changes may arrive on the audio driver thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, stop: asyncio.Event) -> None:
        self._loop = loop
        self._stop = stop
        self.armed = False

    def __call__(self, state: BridgeState) -> None:
        _print_state(state)
        if self.armed and not state.connected:
            self._loop.call_soon_threadsafe(self._stop.set)


async def _wait_for_stop(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # add_signal_handler is unavailable on Windows; Ctrl+C still raises KeyboardInterrupt
            pass
    await stop.wait()


async def run_voice_session(args: argparse.Namespace, cfg: Optional[Settings] = None) -> int:
    cfg = cfg or default_settings
    async with BackendClient(args.api_url or cfg.api_base_url) as backend:
        try:
            user = await backend.login(args.phone, args.password)
        except BackendError as exc:
            print(f"Login failed: {exc.message}")
            return 1
        except httpx.HTTPError as exc:
            print(f"Backend unreachable: {exc}")
            return 1

        stop = asyncio.Event()
        watcher = SessionWatcher(asyncio.get_running_loop(), stop)
        bridge = AudioBridge(
            OpenAIRealtimeConnector(cfg.openai_api_key),
            tasks=JsonTaskSource(args.tasks or cfg.tasks_path),
            settings=cfg,
            on_state_change=watcher,
        )
        started_at = _now()
        await bridge.connect(user)
        if not bridge.connected:
            print(f"Could not connect: {bridge.error or 'unknown error'}")
            await bridge.disconnect()
            return 1

        print(f"Connected as {user.name}. Speak now, Ctrl+C to stop.", flush=True)
        watcher.armed = True
        if not bridge.connected:
            stop.set()
        try:
            await _wait_for_stop(stop)
        finally:
            watcher.armed = False
            await bridge.disconnect()
        if bridge.error:
            print(f"Session ended: {bridge.error}")

        record = build_session_record(user, started_at, _now())
        try:
            await backend.save_session(record)
        except (BackendError, httpx.HTTPError) as exc:
            logger.warning("Could not store session record: %s", exc)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Talk to the Shahriar voice assistant.")
    p.add_argument("--phone", required=True)
    p.add_argument("--password", required=True)
    p.add_argument("--api-url", default=None, help="Persistence service base URL")
    p.add_argument("--tasks", default=None, help="JSON file with per-user tasks")
    p.add_argument("--log-level", default=default_settings.log_level)
    args = p.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper())
    try:
        return asyncio.run(run_voice_session(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
