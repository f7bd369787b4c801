from typing import Awaitable, Callable, Optional, Protocol, runtime_checkable

@runtime_checkable
class Transport(Protocol):
    """
    Defines the methods the connection manager needs from a socket.
    The aiohttp WebSocket is the production one; tests supply fakes.
    """
    @property
    def closed(self) -> bool: ...

    @property
    def close_code(self) -> Optional[int]: ...

    async def send(self, text: str) -> None: ...

    async def receive(self) -> Optional[str]:
        """Next text frame, or None once the socket has closed."""
        ...

    async def close(self, code: int = 1000) -> None: ...


# Opens a transport to the given URL or raises.
TransportFactory = Callable[[str], Awaitable[Transport]]
