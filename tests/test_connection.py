import asyncio
import unittest
from unittest.mock import MagicMock

from iris_tracker.configs import ConnectionSettings
from iris_tracker.core.connection import ConnectionManager
from iris_tracker.core.events import EventChannel, TrackerEvent
from iris_tracker.core.state import DeviceStatus
from iris_tracker.errors import TransportError
from iris_tracker.models import Ready
from tests.fakes import FakeFactory, Recorder, wait_until

PRIMARY = "ws://127.0.0.1:9000"
FALLBACK = "ws://127.0.0.1:9001"


class ConnectionManagerTest(unittest.IsolatedAsyncioTestCase):

    def make(self, endpoints=(PRIMARY, FALLBACK), reconnect_attempts=3, timeout=0.5, **factory_args):
        self.factory = FakeFactory(**factory_args)
        self.channel = EventChannel()
        self.frames = []
        self.on_open = MagicMock()
        self.on_close = MagicMock()
        settings = ConnectionSettings(
            endpoints=list(endpoints),
            connect_timeout_s=timeout,
            reconnect_attempts=reconnect_attempts,
            reconnect_delay_s=0,
        )
        self.manager = ConnectionManager(
            settings,
            self.channel,
            transport_factory=self.factory,
            frame_handler=self.frames.append,
            on_open=self.on_open,
            on_close=self.on_close,
        )
        self.events = {event: self.channel.on(event, Recorder()) for event in TrackerEvent}
        return self.manager

    async def asyncTearDown(self):
        await self.manager.disconnect()

    async def test_connects_to_first_endpoint(self):
        manager = self.make()
        await manager.connect()

        self.assertTrue(manager.is_open)
        self.assertEqual(manager.endpoint, PRIMARY)
        self.assertEqual(self.factory.calls, [PRIMARY])
        self.assertIs(manager.status, DeviceStatus.CONNECTED)
        self.assertEqual(
            self.events[TrackerEvent.STATUS_CHANGED].payloads,
            [DeviceStatus.CONNECTING, DeviceStatus.CONNECTED],
        )
        self.assertEqual(self.events[TrackerEvent.CONNECTED].count, 1)
        self.assertEqual(self.events[TrackerEvent.READY].payloads, [Ready(initialized=True)])
        self.on_open.assert_called_once_with()

    async def test_falls_back_to_next_endpoint(self):
        manager = self.make(refuse={PRIMARY})
        await manager.connect()

        self.assertEqual(self.factory.calls, [PRIMARY, FALLBACK])
        self.assertEqual(manager.endpoint, FALLBACK)

    async def test_timed_out_endpoint_is_skipped(self):
        manager = self.make(timeout=0.05, hang={PRIMARY})
        await manager.connect()
        self.assertEqual(manager.endpoint, FALLBACK)

    async def test_connect_fails_after_bounded_retries(self):
        manager = self.make(reconnect_attempts=2, refuse={PRIMARY, FALLBACK})

        with self.assertRaises(TransportError) as ctx:
            await manager.connect()

        self.assertIn(PRIMARY, str(ctx.exception))
        self.assertIn(FALLBACK, str(ctx.exception))
        # One initial sweep plus two retries, two endpoints each.
        self.assertEqual(len(self.factory.calls), 6)
        self.assertIs(manager.status, DeviceStatus.DISCONNECTED)
        self.assertEqual(manager.reconnect_count, 0)
        self.on_open.assert_not_called()

    async def test_connect_when_open_is_a_no_op(self):
        manager = self.make()
        await manager.connect()
        await manager.connect()
        self.assertEqual(len(self.factory.calls), 1)

    async def test_frames_are_delivered_in_order(self):
        manager = self.make()
        await manager.connect()

        for text in ("a", "b", "c"):
            self.factory.last.feed(text)

        await wait_until(lambda: len(self.frames) == 3)
        self.assertEqual(self.frames, ["a", "b", "c"])

    async def test_handler_errors_do_not_stop_reading(self):
        manager = self.make()
        seen = []

        def handler(text):
            seen.append(text)
            if text == "bad":
                raise RuntimeError("handler bug")

        manager.frame_handler = handler
        await manager.connect()
        self.factory.last.feed("bad")
        self.factory.last.feed("good")

        await wait_until(lambda: seen == ["bad", "good"])
        self.assertTrue(manager.is_open)

    async def test_send_encodes_commands(self):
        manager = self.make()
        await manager.connect()

        self.assertTrue(manager.send({"req_cmd": "startTracker"}))
        await wait_until(lambda: self.factory.last.sent)
        self.assertEqual(self.factory.last.sent, [{"req_cmd": "startTracker"}])

    async def test_send_without_connection_is_dropped(self):
        manager = self.make()
        self.assertFalse(manager.send({"req_cmd": "startTracker"}))

    async def test_abnormal_close_reconnects(self):
        manager = self.make()
        await manager.connect()
        first = self.factory.last

        first.drop(code=1006)

        await wait_until(lambda: len(self.factory.transports) == 2 and manager.is_open)
        self.assertIsNot(self.factory.last, first)
        self.assertEqual(self.events[TrackerEvent.DISCONNECTED].count, 1)
        self.assertEqual(self.events[TrackerEvent.CONNECTED].count, 2)
        self.on_close.assert_called_once_with()
        self.assertEqual(manager.reconnect_count, 0)

    async def test_normal_close_does_not_reconnect(self):
        manager = self.make()
        await manager.connect()

        self.factory.last.drop(code=1000)

        await wait_until(lambda: manager.status is DeviceStatus.DISCONNECTED)
        await asyncio.sleep(0.02)
        self.assertEqual(len(self.factory.calls), 1)
        self.assertEqual(self.events[TrackerEvent.DISCONNECTED].count, 1)

    async def test_reconnect_attempts_are_bounded(self):
        manager = self.make(endpoints=(PRIMARY,), reconnect_attempts=2)
        await manager.connect()

        self.factory.refuse.add(PRIMARY)
        self.factory.last.drop(code=1006)

        await wait_until(lambda: self.events[TrackerEvent.ERROR].count == 1)
        await asyncio.sleep(0.02)

        # The initial connection plus at most two attempts.
        self.assertEqual(len(self.factory.calls), 3)
        self.assertIsInstance(self.events[TrackerEvent.ERROR].payloads[0], TransportError)
        self.assertIs(manager.status, DeviceStatus.DISCONNECTED)
        self.assertEqual(manager.reconnect_count, 0)

    async def test_disconnect_is_final(self):
        manager = self.make()
        await manager.connect()
        transport = self.factory.last

        await manager.disconnect()

        self.assertTrue(transport.closed)
        self.assertEqual(transport.close_code, 1000)
        self.assertFalse(manager.is_open)
        self.assertIsNone(manager.endpoint)
        self.assertIs(manager.status, DeviceStatus.DISCONNECTED)
        self.assertEqual(self.events[TrackerEvent.DISCONNECTED].count, 1)
        self.on_close.assert_called_once_with()

        await asyncio.sleep(0.02)
        self.assertEqual(len(self.factory.calls), 1)
        self.assertFalse(manager.send({"req_cmd": "startTracker"}))

    async def test_disconnect_without_connection_still_notifies(self):
        manager = self.make()
        await manager.disconnect()
        self.assertEqual(self.events[TrackerEvent.DISCONNECTED].count, 1)
        self.assertIs(manager.status, DeviceStatus.DISCONNECTED)


if __name__ == "__main__":
    unittest.main()
