import asyncio
import functools
import logging
from typing import Any, Callable, Mapping, Optional, Set, Tuple

from .events import EventChannel, TrackerEvent
from .protocols import Transport, TransportFactory
from .state import DeviceStatus
from .transport import WebSocketTransport
from ..configs import ConnectionSettings
from ..errors import TransportError
from ..models.events import Ready
from ..protocol import codec

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000


class ConnectionManager:
    """
    Owns the device socket and the live DeviceStatus.

    AUTHORITY on: which endpoint is in use, when to reconnect, and what goes
    out on the wire. Every outbound command passes through ``send()``.
    """

    def __init__(
        self,
        settings: ConnectionSettings,
        channel: EventChannel,
        transport_factory: Optional[TransportFactory] = None,
        frame_handler: Optional[Callable[[str], None]] = None,
        on_open: Optional[Callable[[], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            settings: Endpoints, timeouts and the reconnect budget.
            channel: Where connection and status events are published.
            transport_factory: Opens a transport for a URL. Defaults to an
                aiohttp WebSocket.
            frame_handler: Called with every inbound text frame, in order.
            on_open: Called once per successful connection.
            on_close: Called whenever the transport goes away.
        """
        self._settings = settings
        self._channel = channel
        self._factory: TransportFactory = transport_factory or functools.partial(
            WebSocketTransport.open, verify_ssl=settings.verify_ssl
        )
        self.frame_handler = frame_handler
        self.on_open = on_open
        self.on_close = on_close

        self._status = DeviceStatus.DISCONNECTED
        self._transport: Optional[Transport] = None
        self._endpoint: Optional[str] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._connect_lock = asyncio.Lock()
        self._closing = False

        # Reconnect state
        self._reconnect_count = 0
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._reconnect_task: Optional[asyncio.Task] = None

        self._active_sends: Set[asyncio.Task] = set()

    # --- Status ---

    @property
    def status(self) -> DeviceStatus:
        return self._status

    def set_status(self, status: DeviceStatus) -> None:
        if status is self._status:
            return
        logger.debug(f"Status changed: {self._status} -> {status}")
        self._status = status
        self._channel.emit(TrackerEvent.STATUS_CHANGED, status)

    @property
    def is_open(self) -> bool:
        return self._transport is not None and not self._transport.closed

    @property
    def endpoint(self) -> Optional[str]:
        """The URL of the open connection, if any."""
        return self._endpoint if self.is_open else None

    @property
    def reconnect_count(self) -> int:
        return self._reconnect_count

    # --- Connect / Disconnect ---

    async def connect(self) -> None:
        """
        Opens the first reachable endpoint.

        A failed sweep over all endpoints is retried after
        ``reconnect_delay_s`` while the reconnect budget lasts.

        Raises:
            TransportError: Every attempt failed, or ``disconnect()`` was
                called while connecting.
        """
        async with self._connect_lock:
            if self.is_open:
                logger.debug("Already connected.")
                return

            self._closing = False
            while True:
                try:
                    transport, url = await self._open_first()
                except TransportError:
                    if self._closing or self._reconnect_count >= self._settings.reconnect_attempts:
                        self._reconnect_count = 0
                        self.set_status(DeviceStatus.DISCONNECTED)
                        raise
                    self._reconnect_count += 1
                    logger.warning(
                        f"Retrying in {self._settings.reconnect_delay_s:.1f}s "
                        f"(attempt {self._reconnect_count}/{self._settings.reconnect_attempts})."
                    )
                    await asyncio.sleep(self._settings.reconnect_delay_s)
                    if self._closing:
                        self._reconnect_count = 0
                        raise TransportError("Connection cancelled by disconnect().")
                    continue

                if self._closing:
                    await self._close_quietly(transport)
                    raise TransportError("Connection cancelled by disconnect().")

                self._on_opened(transport, url)
                return

    async def disconnect(self) -> None:
        """Closes the connection normally. No automatic reconnect follows."""
        self._closing = True
        self._cancel_reconnect()

        transport, self._transport = self._transport, None
        reader, self._reader_task = self._reader_task, None
        self._endpoint = None

        if reader and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

        if transport:
            logger.info("Closing connection to eye tracker.")
            await self._close_quietly(transport)

        self._notify_closed()
        self.set_status(DeviceStatus.DISCONNECTED)
        self._channel.emit(TrackerEvent.DISCONNECTED)

    async def _open_first(self) -> Tuple[Transport, str]:
        """One sweep over the configured endpoints, in order."""
        self.set_status(DeviceStatus.CONNECTING)
        endpoints = self._settings.endpoints
        timeout = self._settings.connect_timeout_s

        for url in endpoints:
            if self._closing:
                break
            logger.info(f"Attempting connection to {url}")
            try:
                transport = await asyncio.wait_for(self._factory(url), timeout=timeout)
                return transport, url
            except asyncio.TimeoutError:
                logger.warning(f"Connection to {url} timed out after {timeout:.1f}s.")
            except Exception as e:
                logger.warning(f"Connection to {url} failed: {e}")

        raise TransportError(f"Failed to connect to eye tracker. Tried: {', '.join(endpoints)}")

    def _on_opened(self, transport: Transport, url: str) -> None:
        self._transport = transport
        self._endpoint = url
        self._reconnect_count = 0
        self._reader_task = asyncio.get_running_loop().create_task(
            self._read_loop(transport), name="iris-tracker-reader"
        )
        logger.info(f"Connected to eye tracker at {url}")

        self.set_status(DeviceStatus.CONNECTED)
        self._channel.emit(TrackerEvent.CONNECTED)
        self._channel.emit(TrackerEvent.READY, Ready(initialized=True))

        if self.on_open:
            self.on_open()

    # --- Inbound ---

    async def _read_loop(self, transport: Transport) -> None:
        """Hands every inbound frame to the frame handler, in arrival order."""
        try:
            while True:
                text = await transport.receive()
                if text is None:
                    break
                if self.frame_handler is None:
                    continue
                try:
                    self.frame_handler(text)
                except Exception:
                    logger.exception("Unhandled error while processing a device frame.")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Connection lost: {e}")

        code = transport.close_code
        await self._close_quietly(transport)
        self._handle_closed(transport, code)

    def _handle_closed(self, transport: Transport, code: Optional[int]) -> None:
        if transport is not self._transport:
            return  # Already replaced or torn down by disconnect().

        self._transport = None
        self._reader_task = None
        self._endpoint = None
        logger.info(f"Connection closed (code={code}).")

        self._notify_closed()
        self.set_status(DeviceStatus.DISCONNECTED)
        self._channel.emit(TrackerEvent.DISCONNECTED)

        if not self._closing and code != NORMAL_CLOSURE:
            self._schedule_reconnect()

    def _notify_closed(self) -> None:
        if self.on_close:
            try:
                self.on_close()
            except Exception:
                logger.exception("Error in connection close hook.")

    # --- Reconnect ---

    def _schedule_reconnect(self) -> None:
        attempts = self._settings.reconnect_attempts
        if self._reconnect_count >= attempts:
            logger.error(f"Connection lost and no reconnect attempts left ({attempts}).")
            self._reconnect_count = 0
            return

        self._reconnect_count += 1
        logger.info(
            f"Reconnecting in {self._settings.reconnect_delay_s:.1f}s "
            f"(attempt {self._reconnect_count}/{attempts})."
        )
        self._reconnect_handle = asyncio.get_running_loop().call_later(
            self._settings.reconnect_delay_s, self._start_reconnect
        )

    def _start_reconnect(self) -> None:
        self._reconnect_handle = None
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect())

    async def _reconnect(self) -> None:
        try:
            await self.connect()
        except TransportError as e:
            logger.error(f"Reconnection failed: {e}")
            self._channel.emit(TrackerEvent.ERROR, e)
        finally:
            self._reconnect_task = None

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None
        task = self._reconnect_task
        if task and task is not asyncio.current_task():
            task.cancel()
        self._reconnect_task = None

    # --- Outbound ---

    def send(self, command: Mapping[str, Any]) -> bool:
        """
        Writes one command frame. Does nothing when the socket is not open;
        commands are never queued for a later connection.

        Returns:
            True if the frame was handed to the transport.
        """
        transport = self._transport
        if transport is None or transport.closed:
            logger.debug(f"Dropping '{command.get('req_cmd')}': not connected.")
            return False

        frame = codec.encode(command)
        task = asyncio.get_running_loop().create_task(self._write(transport, frame, command.get("req_cmd")))
        self._active_sends.add(task)
        task.add_done_callback(self._active_sends.discard)
        return True

    async def _write(self, transport: Transport, frame: str, name: Any) -> None:
        try:
            await transport.send(frame)
            logger.debug(f"Sent command: {name}")
        except Exception as e:
            logger.warning(f"Failed to send '{name}': {e}")

    @staticmethod
    async def _close_quietly(transport: Transport) -> None:
        try:
            await transport.close(code=NORMAL_CLOSURE)
        except Exception as e:
            logger.debug(f"Error while closing transport: {e}")
