import unittest
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch
from sglove.gatt.presentation import Format, PresentationInfo
from sglove.smart_glove import SmartGlove
from tests.fake_bleak_client import (
    FakeBleakClient,
    TEMPERATURE_PRESENTATION,
    UUID_ACCEL_X,
    UUID_BATTERY_LEVEL,
    UUID_HUMIDITY,
    UUID_LED,
    UUID_MODEL_NUMBER,
    UUID_TEMPERATURE,
)
from sglove.gatt.value_codec import encode_value


class TestSmartGlove(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.patcher = patch("sglove.smart_glove.BleakClient")
        self.MockBleakClient = self.patcher.start()

        self.fake_bleak_client = FakeBleakClient("test_address")
        self.MockBleakClient.return_value = self.fake_bleak_client

        self.on_value_updated = MagicMock()
        self.on_export = MagicMock()
        self.glove = SmartGlove(
            address="test_address",
            on_value_updated=self.on_value_updated,
            on_export=self.on_export,
        )
        # Route the disconnect callback of the fake client to the glove
        self.fake_bleak_client._disconnected_callback = self.glove._on_disconnect
        await self.glove.connect()

    async def asyncTearDown(self):
        await self.glove.disconnect()
        self.patcher.stop()

    async def test_connect_registers_supported_characteristics(self):
        self.assertTrue(self.glove.is_connected)
        snapshot = self.glove.snapshot()
        self.assertEqual(
            [(e.service_name, e.name) for e in snapshot],
            [
                ("Battery", "Level"),
                ("Environmental Sensor", "Temperature"),
                ("Environmental Sensor", "Humidity"),
                ("Inertial Measurement Unit", "Acceleration X"),
            ],
        )
        self.assertEqual([e.last_value for e in snapshot], ["80", "23.45", "41.50", "1"])
        self.assertEqual([e.unit_label for e in snapshot], ["%", "°C", "%", "m/s2"])

    async def test_initial_values_reported(self):
        self.on_value_updated.assert_any_call(UUID_BATTERY_LEVEL, "80", "%")
        self.on_value_updated.assert_any_call(UUID_TEMPERATURE, "23.45", "°C")

    async def test_unsupported_service_is_skipped(self):
        self.assertNotIn(UUID_MODEL_NUMBER, self.glove.registry)

    async def test_writable_characteristic_is_a_control(self):
        self.assertEqual(self.glove.writable_characteristics, {UUID_LED: "LED"})
        self.assertNotIn(UUID_LED, self.glove.registry)
        self.assertTrue(self.fake_bleak_client.is_notifying(UUID_LED))

    async def test_notifications_update_values(self):
        self.fake_bleak_client.set_value(UUID_TEMPERATURE, encode_value(-5.5, TEMPERATURE_PRESENTATION))
        self.fake_bleak_client.set_value(UUID_BATTERY_LEVEL, bytearray([79]))
        self.assertEqual(self.glove.drain_notifications(), 2)
        self.assertEqual(self.glove.registry.get(UUID_TEMPERATURE).last_value, "-5.50")
        self.assertEqual(self.glove.registry.get(UUID_BATTERY_LEVEL).last_value, "79")
        self.on_value_updated.assert_called_with(UUID_BATTERY_LEVEL, "79", "%")

    async def test_short_notification_reads_as_zero(self):
        with self.assertLogs("sglove.gatt.value_codec", level="WARNING"):
            self.fake_bleak_client.set_value(UUID_HUMIDITY, bytearray([0x01]))
            self.glove.drain_notifications()
        self.assertEqual(self.glove.registry.get(UUID_HUMIDITY).last_value, "0.00")

    async def test_unknown_characteristic_update_is_ignored(self):
        with self.assertLogs("sglove.smart_glove", level="WARNING"):
            self.assertIsNone(self.glove.update_value("unknown", b"\x01"))

    async def test_malformed_presentation_descriptor_is_skipped(self):
        await self.glove.disconnect()
        service = self.fake_bleak_client.services[0]
        self.fake_bleak_client.add_characteristic(
            service, "00002a1a-0000-1000-8000-00805f9b34fb", "Broken", None, bytearray([1]),
            raw_presentation=bytearray([0x04, 0x00, 0xAD]),
        )
        with self.assertLogs("sglove.smart_glove", level="WARNING"):
            await self.glove.connect()
        self.assertNotIn("00002a1a-0000-1000-8000-00805f9b34fb", self.glove.registry)
        self.assertEqual(len(self.glove.registry), 4)

    async def test_toggle_inverts_first_byte(self):
        state = await self.glove.toggle(UUID_LED)
        self.assertTrue(state)
        self.assertEqual(self.fake_bleak_client.writes[-1], (UUID_LED, b"\x01", False))
        state = await self.glove.toggle(UUID_LED)
        self.assertFalse(state)
        self.assertEqual(self.fake_bleak_client.get_value(UUID_LED), bytearray([0x00]))

    async def test_toggle_unknown_control(self):
        with self.assertRaises(KeyError):
            await self.glove.toggle(UUID_TEMPERATURE)

    async def test_toggle_requires_connection(self):
        await self.glove.disconnect()
        with self.assertRaises(ConnectionError):
            await self.glove.toggle(UUID_LED)

    async def test_disconnect_exports_log_and_clears_registry(self):
        t0 = datetime(2025, 6, 1, 12, 0, 0)
        self.glove.log.start(3_600_000)
        self.glove.log.tick(t0)
        self.glove.log.tick(t0 + timedelta(seconds=1))

        self.fake_bleak_client.drop_connection()

        self.assertFalse(self.glove.is_connected)
        self.assertFalse(self.glove.log.is_logging)
        self.on_export.assert_called_once()
        csv_text = self.on_export.call_args[0][0]
        lines = csv_text.split("\n")
        self.assertEqual(lines[0], "Timestamp,Battery,Environmental Sensor,Environmental Sensor,Inertial Measurement Unit,")
        self.assertEqual(lines[3], "2025/06/01 12:00:00,80,23.45,41.50,1,")
        self.assertEqual(len(self.glove.registry), 0)
        self.assertEqual(self.glove.writable_characteristics, {})

    async def test_reconnect_starts_with_fresh_registry(self):
        await self.glove.disconnect()
        await self.glove.connect()
        self.assertEqual(len(self.glove.registry), 4)

    async def test_reconnect_discards_pending_notifications(self):
        self.fake_bleak_client.set_value(UUID_BATTERY_LEVEL, bytearray([11]))
        await self.glove.disconnect()
        self.fake_bleak_client.set_value(UUID_BATTERY_LEVEL, bytearray([50]), notify=False)
        await self.glove.connect()
        self.assertEqual(self.glove.drain_notifications(), 0)
        self.assertEqual(self.glove.registry.get(UUID_BATTERY_LEVEL).last_value, "50")

    async def test_characteristic_without_name_is_ignored(self):
        await self.glove.disconnect()
        service = self.fake_bleak_client.services[0]
        self.fake_bleak_client.add_characteristic(
            service, "00002a1b-0000-1000-8000-00805f9b34fb", None,
            PresentationInfo(Format.UINT8, 0, 0x27AD), bytearray([1]),
        )
        await self.glove.connect()
        self.assertNotIn("00002a1b-0000-1000-8000-00805f9b34fb", self.glove.registry)

    async def test_accelerometer_float(self):
        self.fake_bleak_client.set_value(UUID_ACCEL_X, encode_value(-9.81, PresentationInfo(Format.FLOAT32, 0, 0x2713)))
        self.glove.drain_notifications()
        self.assertEqual(self.glove.registry.get(UUID_ACCEL_X).last_value, "-10")

    @patch("sglove.smart_glove.discover_glove_devices")
    async def test_discover(self, mock_discover):
        mock_discover.return_value = ["device"]
        devices = await SmartGlove.discover()
        self.assertEqual(devices, ["device"])
        mock_discover.assert_called_once_with("SmartGlove", 10.0)


if __name__ == "__main__":
    unittest.main()
