"""
Newline-delimited JSON transport over TCP.

Inbound messages are ``{"type", "params", "commandId"}``. Replies are
``{"commandId", "status", "result"}`` for routed commands, or
``{"commandId", "status": "error", "message"}`` when a message cannot be
routed at all. Connection-level failures are treated as noise: they are
logged at debug level and dropped, never reported as command failures.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
import uuid
from dataclasses import dataclass, field

from bridge.router import CommandRouter
from bridge.schemas import Command, Response

logger = logging.getLogger(__name__)

_NOISE_TYPES: tuple[type[BaseException], ...] = (
    ConnectionError,
    asyncio.IncompleteReadError,
    TimeoutError,
    asyncio.TimeoutError,
)


DEFAULT_MESSAGE_LIMIT = 16 * 1024 * 1024


class MessageTooLargeError(ValueError):
    """A line exceeded the stream limit. The line has been discarded."""


def is_transport_noise(exc: BaseException) -> bool:
    """True for errors caused by the connection itself rather than a command."""
    return isinstance(exc, _NOISE_TYPES)


def encode_envelope(command_id: str, response: Response) -> dict[str, object]:
    return {
        "commandId": command_id,
        "status": "success" if response.success else "error",
        "result": response.to_payload(),
    }


def error_envelope(command_id: object, message: str) -> dict[str, object]:
    return {"commandId": command_id, "status": "error", "message": message}


async def read_message(reader: asyncio.StreamReader) -> bytes:
    """Read one newline-terminated message, or b"" at end of stream.

    An over-long line is drained up to and including its newline so the
    stream stays aligned, then MessageTooLargeError is raised.
    """
    try:
        return await reader.readuntil(b"\n")
    except asyncio.IncompleteReadError as exc:
        return exc.partial
    except asyncio.LimitOverrunError as exc:
        consumed = exc.consumed

    while True:
        await reader.readexactly(consumed)
        try:
            await reader.readuntil(b"\n")
        except asyncio.IncompleteReadError:
            break
        except asyncio.LimitOverrunError as exc:
            consumed = exc.consumed
            continue
        break
    raise MessageTooLargeError("Message too large")


@dataclass
class _Connection:
    writer: asyncio.StreamWriter
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class BridgeServer:
    """TCP server that feeds commands to a router and writes back responses."""

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 9080,
        read_timeout: float | None = None,
        limit: int = DEFAULT_MESSAGE_LIMIT,
    ) -> None:
        self.host = host
        self.port = port
        self.read_timeout = read_timeout
        self.limit = limit
        self.router: CommandRouter | None = None
        self._server: asyncio.Server | None = None
        self._connections: dict[str, _Connection] = {}
        self._client_ids = itertools.count(1)

    def bind(self, router: CommandRouter) -> None:
        self.router = router

    @property
    def client_count(self) -> int:
        return len(self._connections)

    async def start(self) -> None:
        if self.router is None:
            raise RuntimeError("BridgeServer has no router bound")
        self._server = await asyncio.start_server(
            self._handle_connection, self.host, self.port, limit=self.limit
        )
        sockets = self._server.sockets or []
        if sockets:
            self.port = sockets[0].getsockname()[1]
        logger.info("Bridge listening on %s:%d", self.host, self.port)

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        assert self._server is not None
        await self._server.serve_forever()

    async def stop(self) -> None:
        server, self._server = self._server, None
        if server is None:
            return
        server.close()
        for connection in list(self._connections.values()):
            connection.writer.close()
        await server.wait_closed()
        logger.info("Bridge stopped")

    async def send(self, client_id: str, command_id: str, response: Response) -> None:
        await self._write(client_id, encode_envelope(command_id, response))

    async def _read_line(self, reader: asyncio.StreamReader) -> bytes:
        if self.read_timeout is None:
            return await read_message(reader)
        return await asyncio.wait_for(read_message(reader), self.read_timeout)

    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        client_id = f"client-{next(self._client_ids)}"
        self._connections[client_id] = _Connection(writer)
        logger.info("Client %s connected", client_id)
        in_flight: set[asyncio.Task[None]] = set()
        try:
            while True:
                try:
                    line = await self._read_line(reader)
                except MessageTooLargeError as exc:
                    logger.warning("Discarded a message from %s over %d bytes", client_id, self.limit)
                    await self._write(client_id, error_envelope(None, str(exc)))
                    continue
                if not line:
                    break
                if not line.strip():
                    continue
                task = asyncio.create_task(self._process_line(client_id, line))
                in_flight.add(task)
                task.add_done_callback(in_flight.discard)
        except Exception as exc:
            if not is_transport_noise(exc):
                raise
            logger.debug("Dropped transport error from %s: %r", client_id, exc)
        finally:
            if in_flight:
                await asyncio.gather(*in_flight, return_exceptions=True)
            self._connections.pop(client_id, None)
            writer.close()
            with contextlib.suppress(*_NOISE_TYPES):
                await writer.wait_closed()
            logger.info("Client %s disconnected", client_id)

    async def _process_line(self, client_id: str, line: bytes) -> None:
        try:
            message = json.loads(line)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            await self._write(client_id, error_envelope(None, f"Invalid JSON: {exc}"))
            return
        if not isinstance(message, dict):
            await self._write(client_id, error_envelope(None, "Message must be a JSON object"))
            return

        try:
            command = Command.from_message(client_id, message)
        except ValueError as exc:
            await self._write(client_id, error_envelope(message.get("commandId"), str(exc)))
            return

        assert self.router is not None
        handled = await self.router.dispatch(command)
        if not handled:
            await self._write(
                client_id,
                error_envelope(command.command_id, f"Unknown command: {command.command_type}"),
            )

    async def _write(self, client_id: str, envelope: dict[str, object]) -> None:
        connection = self._connections.get(client_id)
        if connection is None:
            logger.debug("Client %s is gone; dropping reply %s", client_id, envelope.get("commandId"))
            return
        data = (json.dumps(envelope, default=str) + "\n").encode("utf-8")
        try:
            async with connection.lock:
                connection.writer.write(data)
                await connection.writer.drain()
        except Exception as exc:
            if not is_transport_noise(exc):
                raise
            logger.debug("Dropped reply to %s: %r", client_id, exc)


class BridgeClient:
    """Minimal client for a running bridge. Commands are sent one at a time."""

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 9080,
        timeout: float = 30.0,
        limit: int = DEFAULT_MESSAGE_LIMIT,
    ) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.limit = limit
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    async def __aenter__(self) -> BridgeClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def connect(self) -> None:
        self._reader, self._writer = await asyncio.wait_for(
            asyncio.open_connection(self.host, self.port, limit=self.limit), self.timeout
        )

    async def close(self) -> None:
        writer, self._writer = self._writer, None
        self._reader = None
        if writer is not None:
            writer.close()
            with contextlib.suppress(*_NOISE_TYPES):
                await writer.wait_closed()

    async def send_command(
        self,
        command_type: str,
        params: dict[str, object] | None = None,
        command_id: str | None = None,
    ) -> dict[str, object]:
        if self._reader is None or self._writer is None:
            raise RuntimeError("BridgeClient is not connected")
        command_id = command_id or f"cmd-{uuid.uuid4().hex[:12]}"
        message = {"type": command_type, "params": params or {}, "commandId": command_id}
        self._writer.write((json.dumps(message) + "\n").encode("utf-8"))
        await self._writer.drain()

        while True:
            line = await asyncio.wait_for(read_message(self._reader), self.timeout)
            if not line:
                raise ConnectionError("Bridge closed the connection")
            reply = json.loads(line)
            if isinstance(reply, dict) and reply.get("commandId") in (command_id, None):
                return reply
