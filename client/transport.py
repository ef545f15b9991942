"""WebSocket transport used by the client session (aiohttp)."""
from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, Optional, Protocol

import aiohttp

from core.logging_config import get_logger


logger = get_logger(__name__)


class SocketTransport(Protocol):
    """One open socket. ``receive`` returns None once the socket is closed."""

    async def send(self, message: dict) -> None: ...

    async def receive(self) -> Optional[dict]: ...

    async def close(self) -> None: ...


TransportFactory = Callable[[str], Awaitable[SocketTransport]]


class AiohttpSocketTransport:
    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse) -> None:
        self._session = session
        self._ws = ws

    @classmethod
    async def open(cls, url: str, *, timeout: float = 20.0) -> "AiohttpSocketTransport":
        session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None, connect=timeout))
        try:
            ws = await session.ws_connect(url, autoping=True)
        except Exception:
            await session.close()
            raise
        return cls(session, ws)

    async def send(self, message: dict) -> None:
        await self._ws.send_json(message)

    async def receive(self) -> Optional[dict]:
        while True:
            msg = await self._ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    data: Any = json.loads(msg.data)
                except ValueError:
                    logger.warning("socket_bad_frame", size=len(msg.data))
                    continue
                if isinstance(data, dict):
                    return data
                continue
            if msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING,
                            aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                return None
            # binary frames are not part of the protocol

    async def close(self) -> None:
        try:
            if not self._ws.closed:
                await self._ws.close()
        finally:
            await self._session.close()


def aiohttp_transport_factory(timeout: float = 20.0) -> TransportFactory:
    async def factory(url: str) -> SocketTransport:
        return await AiohttpSocketTransport.open(url, timeout=timeout)

    return factory
