"""Transports for sync messages. Delivery is in order per peer; there is no ack or retry."""

import asyncio
import itertools
import logging
from typing import Awaitable, Callable, Protocol, runtime_checkable

from modhost.net.messages import PluginEnable, PluginSync, ProtocolError, decode, encode

logger = logging.getLogger(__name__)

Message = PluginSync | PluginEnable
MessageHandler = Callable[[Message], Awaitable[None]]
PeerHandler = Callable[[str], Awaitable[None]]


@runtime_checkable
class Transport(Protocol):
    """Authoritative side of the sync channel."""

    def peers(self) -> list[str]: ...

    async def send(self, peer_id: str, message: Message) -> None: ...

    async def broadcast(self, message: Message) -> None: ...


class _PeerEvents:
    def __init__(self) -> None:
        self._on_connect: PeerHandler | None = None
        self._on_disconnect: PeerHandler | None = None

    def set_connect_handler(self, handler: PeerHandler | None) -> None:
        self._on_connect = handler

    def set_disconnect_handler(self, handler: PeerHandler | None) -> None:
        self._on_disconnect = handler

    async def _fire(self, handler: PeerHandler | None, peer_id: str) -> None:
        if handler is None:
            return
        try:
            await handler(peer_id)
        except Exception as e:
            logger.exception("Peer handler failed for %s: %s", peer_id, e)


class LocalTransport(_PeerEvents):
    """In-process peers (listen server, tests). Frames still go through the codec."""

    def __init__(self) -> None:
        super().__init__()
        self._peers: dict[str, MessageHandler] = {}

    async def connect(self, peer_id: str, handler: MessageHandler) -> None:
        self._peers[peer_id] = handler
        await self._fire(self._on_connect, peer_id)

    async def disconnect(self, peer_id: str) -> None:
        if self._peers.pop(peer_id, None) is not None:
            await self._fire(self._on_disconnect, peer_id)

    def peers(self) -> list[str]:
        return list(self._peers)

    async def send(self, peer_id: str, message: Message) -> None:
        handler = self._peers.get(peer_id)
        if handler is None:
            return
        await handler(decode(encode(message)))

    async def broadcast(self, message: Message) -> None:
        for peer_id in list(self._peers):
            await self.send(peer_id, message)


class StreamServer(_PeerEvents):
    """Newline-delimited JSON over TCP. One writer per connected peer."""

    def __init__(self, host: str = "127.0.0.1", port: int = 0) -> None:
        super().__init__()
        self._host = host
        self._port = port
        self._server: asyncio.Server | None = None
        self._writers: dict[str, asyncio.StreamWriter] = {}
        self._ids = itertools.count(1)

    @property
    def port(self) -> int:
        """Bound port (useful when constructed with port 0)."""
        if self._server and self._server.sockets:
            return self._server.sockets[0].getsockname()[1]
        return self._port

    async def start(self) -> None:
        self._server = await asyncio.start_server(
            self._handle_connection, self._host, self._port
        )
        logger.info("Sync server listening on %s:%d", self._host, self.port)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        for writer in list(self._writers.values()):
            writer.close()
        self._writers.clear()
        await self._server.wait_closed()
        self._server = None
        logger.info("Sync server stopped")

    def peers(self) -> list[str]:
        return list(self._writers)

    async def send(self, peer_id: str, message: Message) -> None:
        writer = self._writers.get(peer_id)
        if writer is None:
            return
        try:
            writer.write(encode(message))
            await writer.drain()
        except (ConnectionError, OSError) as e:
            logger.warning("Dropping peer %s: %s", peer_id, e)
            await self._drop(peer_id)

    async def broadcast(self, message: Message) -> None:
        for peer_id in list(self._writers):
            await self.send(peer_id, message)

    async def _drop(self, peer_id: str) -> None:
        writer = self._writers.pop(peer_id, None)
        if writer is None:
            return
        writer.close()
        await self._fire(self._on_disconnect, peer_id)

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        peer_id = f"peer-{next(self._ids)}"
        self._writers[peer_id] = writer
        logger.info("Peer %s connected from %s", peer_id, writer.get_extra_info("peername"))
        await self._fire(self._on_connect, peer_id)
        try:
            # Peers never send; reading only detects the disconnect.
            while await reader.readline():
                pass
        except (ConnectionError, OSError):
            pass
        finally:
            await self._drop(peer_id)
            logger.info("Peer %s disconnected", peer_id)


class StreamClient:
    """Peer side: connect, then hand every decoded message to handler in arrival order."""

    def __init__(self, host: str, port: int, handler: MessageHandler) -> None:
        self._host = host
        self._port = port
        self._handler = handler
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    async def connect(self) -> None:
        self._reader, self._writer = await asyncio.open_connection(self._host, self._port)
        logger.info("Connected to sync server %s:%d", self._host, self._port)

    async def run(self) -> None:
        """Read until the server closes the connection."""
        if self._reader is None:
            await self.connect()
        assert self._reader is not None
        while True:
            line = await self._reader.readline()
            if not line:
                break
            try:
                message = decode(line)
            except ProtocolError as e:
                logger.warning("Dropping frame: %s", e)
                continue
            try:
                await self._handler(message)
            except Exception as e:
                logger.exception("Sync handler failed for %s: %s", message.kind, e)
        logger.info("Sync server closed the connection")

    async def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except (ConnectionError, OSError):
                pass
            self._writer = None
            self._reader = None
