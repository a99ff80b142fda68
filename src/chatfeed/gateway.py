"""Realtime channel client: connection lifecycle, reconnect backoff, frame dispatch."""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from collections.abc import Awaitable, Callable, Coroutine
from contextlib import AbstractAsyncContextManager
from typing import Any

import websockets
import websockets.asyncio.client

from chatfeed.config import config
from chatfeed.errors import ProtocolError
from chatfeed.models import events
from chatfeed.models.events import ErrorFrame, Frame, parse_frame

log = logging.getLogger(__name__)

FrameHandler = Callable[[Frame], Coroutine[Any, Any, None]]
StateListener = Callable[["ConnectionState"], None]
Connector = Callable[[str], AbstractAsyncContextManager[Any]]


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class Backoff:
    """Exponential reconnect delay in milliseconds."""

    def __init__(
        self,
        initial_ms: int | None = None,
        maximum_ms: int | None = None,
        multiplier: float | None = None,
    ) -> None:
        self.initial_ms = initial_ms if initial_ms is not None else config.realtime.initial_retry_ms
        self.maximum_ms = maximum_ms if maximum_ms is not None else config.realtime.max_retry_ms
        self.multiplier = multiplier if multiplier is not None else config.realtime.retry_multiplier
        self._current = self.initial_ms

    @property
    def current(self) -> int:
        return self._current

    def next_delay(self) -> int:
        """Return the delay to wait now and grow the next one."""
        delay = self._current
        self._current = min(int(delay * self.multiplier), self.maximum_ms)
        return delay

    def reset(self) -> None:
        self._current = self.initial_ms


class RealtimeChannel:
    """Keeps one WebSocket to the backend open and routes its frames.

    Usage::

        channel = RealtimeChannel()

        @channel.on("messages_update")
        async def on_update(frame):
            store.apply_update(frame.chat_id, frame.messages, frame.total)

        channel.start()
        await channel.subscribe(chat_id)
        ...
        await channel.close()

    The channel reconnects on its own until ``close()`` is called, and sends
    the current subscription again after every successful connect since the
    server forgets it with the socket.
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        connector: Connector | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        backoff: Backoff | None = None,
    ) -> None:
        self._url = url or config.server.ws_url
        self._connector: Connector = connector or websockets.asyncio.client.connect
        self._sleep = sleep
        self.backoff = backoff or Backoff()

        self._state = ConnectionState.DISCONNECTED
        self._ws: Any = None
        self._task: asyncio.Task | None = None
        self._reconnect_timer: asyncio.Future | None = None
        self._closed = True
        # chat the caller wants updates for, and the one the live socket has
        self._desired_chat: int | None = None
        self._sent_chat: int | None = None
        self._handlers: dict[str, list[FrameHandler]] = {}
        self._state_listeners: list[StateListener] = []

    # --- Registration ---

    def on(self, frame_type: str) -> Callable[[FrameHandler], FrameHandler]:
        """Decorator to register a frame handler."""
        def decorator(func: FrameHandler) -> FrameHandler:
            self._handlers.setdefault(frame_type, []).append(func)
            return func
        return decorator

    def add_handler(self, frame_type: str, handler: FrameHandler) -> None:
        """Register a frame handler programmatically."""
        self._handlers.setdefault(frame_type, []).append(handler)

    def on_state_change(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    # --- State ---

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def subscribed_chat(self) -> int | None:
        return self._desired_chat

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        log.debug("Realtime channel %s -> %s", self._state.value, state.value)
        self._state = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                log.exception("State listener failed")

    # --- Lifecycle ---

    def start(self) -> asyncio.Task:
        """Begin connecting in a background task. Idempotent while running."""
        if self._task is not None and not self._task.done():
            return self._task
        self._closed = False
        self._set_state(ConnectionState.CONNECTING)
        self._task = asyncio.create_task(self._run())
        return self._task

    async def close(self) -> None:
        """Stop reconnecting and close the socket."""
        self._closed = True
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
        ws = self._ws
        if ws is not None:
            try:
                await ws.close()
            except (OSError, websockets.exceptions.WebSocketException):
                log.debug("Error while closing realtime socket", exc_info=True)
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            if ws is None:
                # Still dialing or waiting out the backoff.
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._set_state(ConnectionState.DISCONNECTED)

    async def __aenter__(self) -> RealtimeChannel:
        self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # --- Subscription ---

    async def subscribe(self, chat_id: int) -> None:
        """Ask for updates on *chat_id*, replacing any previous subscription."""
        self._desired_chat = chat_id
        if self.is_connected and self._sent_chat != chat_id:
            if await self._send(events.subscribe(chat_id)):
                self._sent_chat = chat_id

    async def unsubscribe(self) -> None:
        self._desired_chat = None
        if self.is_connected:
            await self._send(events.unsubscribe())
        self._sent_chat = None

    async def _send(self, payload: dict[str, Any]) -> bool:
        ws = self._ws
        if ws is None:
            return False
        try:
            await ws.send(json.dumps(payload))
        except websockets.exceptions.ConnectionClosed:
            # The receive loop sees the close and reconnects; the
            # subscription goes out again on the next open.
            log.debug("Dropped %s frame on a closing socket", payload["type"])
            return False
        return True

    # --- Connection loop ---

    async def _run(self) -> None:
        try:
            while not self._closed:
                self._set_state(ConnectionState.CONNECTING)
                try:
                    async with self._connector(self._url) as ws:
                        self._ws = ws
                        await self._on_open()
                        await self._receive_loop(ws)
                except websockets.exceptions.ConnectionClosed as e:
                    log.info("Realtime channel closed: %s", e)
                except (OSError, TimeoutError, websockets.exceptions.WebSocketException) as e:
                    log.warning("Realtime channel connection failed: %s", e)
                except Exception:
                    log.exception("Unexpected realtime channel error")
                finally:
                    self._ws = None
                    self._sent_chat = None

                if self._closed:
                    break
                self._set_state(ConnectionState.RECONNECTING)
                delay_ms = self.backoff.next_delay()
                log.info("Reconnecting realtime channel in %d ms", delay_ms)
                self._reconnect_timer = asyncio.ensure_future(self._sleep(delay_ms / 1000))
                try:
                    await self._reconnect_timer
                except asyncio.CancelledError:
                    if self._closed:
                        break
                    raise
                finally:
                    self._reconnect_timer = None
        finally:
            if self._closed:
                self._set_state(ConnectionState.DISCONNECTED)

    async def _on_open(self) -> None:
        self._set_state(ConnectionState.CONNECTED)
        self.backoff.reset()
        log.info("Realtime channel connected to %s", self._url)
        if self._desired_chat is not None:
            chat_id = self._desired_chat
            if await self._send(events.subscribe(chat_id)):
                self._sent_chat = chat_id

    async def _receive_loop(self, ws: Any) -> None:
        # One frame at a time: handlers finish before the next recv.
        while not self._closed:
            raw = await ws.recv()
            await self._handle_raw(raw)

    async def _handle_raw(self, raw: str | bytes) -> None:
        try:
            if isinstance(raw, bytes):
                raw = raw.decode()
            frame = parse_frame(json.loads(raw))
        except (UnicodeDecodeError, ValueError, ProtocolError) as e:
            log.warning("Dropping malformed realtime frame: %s", e)
            return
        if type(frame) is Frame:
            log.debug("Ignoring unknown realtime frame type %r", frame.type)
            return
        if isinstance(frame, ErrorFrame):
            log.error("Realtime server error: %s", frame.message)
        await self._dispatch(frame)

    async def _dispatch(self, frame: Frame) -> None:
        handlers = self._handlers.get(frame.type, [])
        wildcard = self._handlers.get("*", [])
        for handler in [*handlers, *wildcard]:
            try:
                await handler(frame)
            except Exception:
                log.exception("Error in frame handler for %s", frame.type)
