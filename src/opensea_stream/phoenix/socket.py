"""aiohttp websocket implementation of the PhoenixTransport protocol."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import aiohttp

from opensea_stream.errors import TransportClosed, TransportRejected
from opensea_stream.models.message import TransportMessage
from opensea_stream.phoenix import serializer
from opensea_stream.phoenix.serializer import HEARTBEAT, PHOENIX_TOPIC, PHX_JOIN, PHX_LEAVE, PHX_REPLY

log = logging.getLogger(__name__)


def _redact(url: str) -> str:
    """Drop the query string (it carries the API key) for logging."""
    return urlunsplit(urlsplit(url)._replace(query=""))


class AiohttpPhoenixTransport:
    """One websocket connection speaking the Phoenix channel protocol.

    A reader task routes replies to the request that is waiting for them and
    queues everything else for receive(). A heartbeat task keeps the server
    from timing the socket out. There is no reconnection: when the socket
    closes, receive() raises TransportClosed from then on.
    """

    def __init__(
        self,
        url: str,
        heartbeat_interval: float = 30.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._url = url
        self._heartbeat_interval = heartbeat_interval
        self._session = session
        self._owns_session = session is None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._ref = 0
        self._pending: dict[str, asyncio.Future] = {}
        self._join_refs: dict[str, str] = {}
        self._inbox: asyncio.Queue[TransportMessage | None] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []
        self._closed = False

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed and not self._closed

    async def connect(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(self._url)
        except aiohttp.ClientError as exc:
            log.error("Connection to %s failed: %s", _redact(self._url), exc)
            if self._owns_session:
                await self._session.close()
            raise TransportClosed(f"cannot connect: {exc}") from exc

        log.info("Connected to %s", _redact(self._url))
        self._tasks = [
            asyncio.create_task(self._read_loop()),
            asyncio.create_task(self._heartbeat_loop()),
        ]

    async def join(
        self, topic: str, params: Mapping[str, Any], timeout: float,
    ) -> Mapping[str, Any]:
        join_ref = self._next_ref()
        # Frames sent right behind the join reply already carry this ref
        self._join_refs[topic] = join_ref
        try:
            reply = await self._request(
                topic, PHX_JOIN, dict(params), timeout, ref=join_ref, join_ref=join_ref,
            )
        except asyncio.TimeoutError:
            self._forget(topic, join_ref)
            raise TransportRejected(topic, "timeout") from None
        except BaseException:
            self._forget(topic, join_ref)
            raise

        status = reply.get("status")
        response = reply.get("response") or {}
        if status != "ok":
            reason = response.get("reason", status) if isinstance(response, Mapping) else status
            self._forget(topic, join_ref)
            raise TransportRejected(topic, str(reason), response)

        log.info("Joined %s", topic)
        return response

    async def leave(self, topic: str, timeout: float) -> None:
        join_ref = self._join_refs.pop(topic, None)
        try:
            await self._request(
                topic, PHX_LEAVE, {}, timeout, ref=self._next_ref(), join_ref=join_ref,
            )
        except asyncio.TimeoutError:
            log.warning("No reply to leave of %s", topic)
        log.info("Left %s", topic)

    async def send(self, topic: str, event: str, payload: Any) -> None:
        await self._send_frame(TransportMessage(
            topic=topic,
            event=event,
            payload=payload,
            ref=self._next_ref(),
            join_ref=self._join_refs.get(topic),
        ))

    async def receive(self) -> TransportMessage:
        message = await self._inbox.get()
        if message is None:
            # Leave the marker for any other waiting reader
            self._inbox.put_nowait(None)
            raise TransportClosed("connection closed")
        return message

    async def close(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        if self._ws is not None:
            await self._ws.close()
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._shutdown()

    # ── Internals ──────────────────────────────────────────

    def _next_ref(self) -> str:
        self._ref += 1
        return str(self._ref)

    async def _send_frame(self, message: TransportMessage) -> None:
        if not self.connected:
            raise TransportClosed("not connected")
        try:
            await self._ws.send_str(serializer.encode(message))
        except ConnectionError as exc:
            raise TransportClosed(str(exc)) from exc

    async def _request(
        self,
        topic: str,
        event: str,
        payload: Any,
        timeout: float,
        ref: str,
        join_ref: str | None = None,
    ) -> Mapping[str, Any]:
        """Send a message and wait for the phx_reply carrying the same ref."""
        reply = asyncio.get_running_loop().create_future()
        self._pending[ref] = reply
        try:
            await self._send_frame(TransportMessage(topic, event, payload, ref, join_ref))
            return await asyncio.wait_for(reply, timeout)
        finally:
            self._pending.pop(ref, None)

    async def _read_loop(self) -> None:
        ws = self._ws
        try:
            async for frame in ws:
                if frame.type == aiohttp.WSMsgType.TEXT:
                    self._handle_frame(frame.data)
                elif frame.type == aiohttp.WSMsgType.ERROR:
                    log.error("Websocket error: %s", ws.exception())
                    break
        finally:
            log.info("Connection to %s closed", _redact(self._url))
            self._shutdown()

    def _handle_frame(self, data: str) -> None:
        try:
            message = serializer.decode(data)
        except ValueError as exc:
            log.warning("Dropping undecodable frame: %s", exc)
            return

        if message.event == PHX_REPLY and message.ref in self._pending:
            reply = self._pending.pop(message.ref)
            if not reply.done():
                body = message.payload if isinstance(message.payload, Mapping) else {}
                reply.set_result(body)
            return

        if message.topic == PHOENIX_TOPIC:
            return  # heartbeat acks
        if not self._is_member(message):
            log.debug(
                "Dropping %s on %s from stale join %s", message.event, message.topic, message.join_ref,
            )
            return
        self._inbox.put_nowait(message)

    def _is_member(self, message: TransportMessage) -> bool:
        """False for frames tagged with a join of the topic that is no longer current."""
        return message.join_ref is None or message.join_ref == self._join_refs.get(message.topic)

    def _forget(self, topic: str, join_ref: str) -> None:
        if self._join_refs.get(topic) == join_ref:
            del self._join_refs[topic]

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_interval)
            try:
                await self._send_frame(TransportMessage(
                    topic=PHOENIX_TOPIC, event=HEARTBEAT, payload={}, ref=self._next_ref(),
                ))
            except TransportClosed:
                log.debug("Heartbeat stopped: connection closed")
                return

    def _shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        for reply in self._pending.values():
            if not reply.done():
                reply.set_exception(TransportClosed("connection closed"))
        self._pending.clear()
        self._inbox.put_nowait(None)
