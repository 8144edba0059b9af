"""Polymarket live-data WebSocket - advisory push channel that triggers intake reloads.

The channel is never authoritative: frames only say "something changed", and
the consumer re-fetches the list. Unparseable frames are dropped. When the
connection cannot be (re)established within the retry budget the listener
returns and the console falls back to manual refresh.
"""

from __future__ import annotations

import asyncio
import inspect
import json
from typing import Any, Awaitable, Callable, Union

import structlog
import websockets

log = structlog.get_logger(__name__)

DEFAULT_CHANNELS = ("markets", "orderbook")

ReloadCallback = Callable[[], Union[None, Awaitable[Any]]]


def subscribe_messages(channels: list[str] | tuple[str, ...] = DEFAULT_CHANNELS) -> list[str]:
    return [json.dumps({"type": "subscribe", "channels": [c]}) for c in channels]


def is_reload_trigger(raw: str | bytes, channels: list[str] | tuple[str, ...] = DEFAULT_CHANNELS) -> bool:
    """True when a frame announces a market/orderbook change. Malformed frames are ignored."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError, UnicodeDecodeError):
        return False
    return isinstance(data, dict) and data.get("type") in channels


async def _call(on_reload: ReloadCallback) -> None:
    ret = on_reload()
    if inspect.isawaitable(ret):
        await ret


async def run_push_listener(
    ws_url: str,
    on_reload: ReloadCallback,
    *,
    channels: list[str] | tuple[str, ...] = DEFAULT_CHANNELS,
    reconnect_base_delay_sec: float = 1.0,
    reconnect_max_delay_sec: float = 60.0,
    reconnect_max_retries: int = 5,
    stop_event: asyncio.Event | None = None,
) -> None:
    """
    Connect, subscribe to `channels`, and call on_reload() for each change notification.
    Runs until stop_event is set or the retry budget is spent (0 = retry forever).
    """
    stop = stop_event or asyncio.Event()
    delay = reconnect_base_delay_sec
    retries = 0

    while not stop.is_set():
        try:
            async with websockets.connect(
                ws_url,
                ping_interval=20,
                ping_timeout=20,
                close_timeout=5,
            ) as ws:
                delay = reconnect_base_delay_sec
                retries = 0
                for msg in subscribe_messages(channels):
                    await ws.send(msg)
                log.info("push_connected", url=ws_url, channels=list(channels))

                while not stop.is_set():
                    try:
                        raw = await asyncio.wait_for(ws.recv(), timeout=1.0)
                    except asyncio.TimeoutError:
                        continue
                    if is_reload_trigger(raw, channels):
                        await _call(on_reload)
        except asyncio.CancelledError:
            log.info("push_cancelled")
            break
        except Exception as e:
            log.warning("push_error", error=str(e), delay=delay)
            if reconnect_max_retries and retries >= reconnect_max_retries:
                log.warning("push_unavailable", msg="Falling back to manual refresh")
                break
            retries += 1
            await asyncio.sleep(delay)
            delay = min(delay * 2, reconnect_max_delay_sec)

    log.info("push_listener_stopped")
