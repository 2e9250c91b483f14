from __future__ import annotations

import asyncio

from conftest import FakeAudio, FakeConnector
from shahriar.services.realtime_voice import AudioBridge, BridgeState
from shahriar.voice_client import SessionWatcher


def _run(coro):  # noqa: ANN001
    return asyncio.run(coro)


def _watched_bridge(connector, settings):  # noqa: ANN001, ANN202
    stop = asyncio.Event()
    watcher = SessionWatcher(asyncio.get_running_loop(), stop)
    bridge = AudioBridge(connector, audio=FakeAudio(), settings=settings, on_state_change=watcher)
    return bridge, watcher, stop


def test_remote_close_wakes_the_cli(bridge_settings, user) -> None:
    connector = FakeConnector()

    async def scenario() -> None:
        bridge, watcher, stop = _watched_bridge(connector, bridge_settings)
        await bridge.connect(user)
        watcher.armed = True
        await asyncio.sleep(0)
        assert not stop.is_set()

        await connector.handlers.on_close()
        await asyncio.wait_for(stop.wait(), timeout=1)
        await bridge.disconnect()

    _run(scenario())


def test_session_error_wakes_the_cli(bridge_settings, user) -> None:
    connector = FakeConnector()

    async def scenario() -> None:
        bridge, watcher, stop = _watched_bridge(connector, bridge_settings)
        await bridge.connect(user)
        watcher.armed = True

        await connector.handlers.on_error("socket reset")
        await asyncio.wait_for(stop.wait(), timeout=1)
        assert bridge.error == "Connection error: socket reset"
        await bridge.disconnect()

    _run(scenario())


def test_unarmed_watcher_ignores_disconnected_states(capsys) -> None:
    async def scenario() -> bool:
        stop = asyncio.Event()
        watcher = SessionWatcher(asyncio.get_running_loop(), stop)
        watcher(BridgeState(connected=False))
        watcher(BridgeState(connected=True, speaking=True))
        await asyncio.sleep(0)
        return stop.is_set()

    assert _run(scenario()) is False
    out = capsys.readouterr().out
    assert "[shahriar] disconnected" in out
    assert "[shahriar] speaking" in out
