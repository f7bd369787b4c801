import logging
from typing import Optional

import aiohttp

logger = logging.getLogger(__name__)


class WebSocketTransport:
    """
    Thin adapter over an aiohttp client WebSocket.

    Owns its ClientSession so that closing the transport releases every
    network resource it holds.
    """

    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse):
        self._session = session
        self._ws = ws

    @classmethod
    async def open(cls, url: str, verify_ssl: bool = False) -> "WebSocketTransport":
        """
        Opens a WebSocket to ``url``.

        Raises:
            aiohttp.ClientError: The handshake failed or the host refused.
        """
        session = aiohttp.ClientSession()
        try:
            # The device does not negotiate permessage-deflate.
            ws = await session.ws_connect(url, ssl=verify_ssl, compress=0)
        except BaseException:
            await session.close()
            raise
        logger.debug(f"WebSocket open: {url}")
        return cls(session, ws)

    @property
    def closed(self) -> bool:
        return self._ws.closed

    @property
    def close_code(self) -> Optional[int]:
        return self._ws.close_code

    async def send(self, text: str) -> None:
        await self._ws.send_str(text)

    async def receive(self) -> Optional[str]:
        while True:
            msg = await self._ws.receive()

            if msg.type == aiohttp.WSMsgType.TEXT:
                return msg.data
            if msg.type == aiohttp.WSMsgType.BINARY:
                return msg.data.decode("utf-8", errors="replace")
            if msg.type == aiohttp.WSMsgType.ERROR:
                logger.warning(f"WebSocket error: {self._ws.exception()}")
                return None
            if msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                return None
            # PING/PONG are answered by aiohttp itself.

    async def close(self, code: int = 1000) -> None:
        try:
            if not self._ws.closed:
                await self._ws.close(code=code)
        finally:
            await self._session.close()
