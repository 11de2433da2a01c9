import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from dbus_next.errors import DBusError
from dbus_next.signature import Variant

from battery import ChargingState, DeviceQueryFailed, NoBatteryFound
from upower_api import UPowerWrapper, snapshot_from_properties


def device_props(type_=2, state=2, percentage=42.0, time_to_full=0, power_supply=True):
    return {
        "Type": Variant("u", type_),
        "State": Variant("u", state),
        "Percentage": Variant("d", percentage),
        "TimeToFull": Variant("x", time_to_full),
        "PowerSupply": Variant("b", power_supply),
    }


class TestSnapshotFromProperties(unittest.TestCase):

    def test_discharging_battery(self):
        snapshot = snapshot_from_properties(device_props(state=2, percentage=42.0))
        self.assertEqual(snapshot.state, ChargingState.DISCHARGING)
        self.assertAlmostEqual(snapshot.charge, 0.42)
        self.assertIsNone(snapshot.time_to_full)

    def test_charging_with_estimate(self):
        snapshot = snapshot_from_properties(device_props(state=1, time_to_full=7500))
        self.assertEqual(snapshot.state, ChargingState.CHARGING)
        self.assertEqual(snapshot.time_to_full, 7500.0)

    def test_state_mapping(self):
        expected = {
            0: ChargingState.UNKNOWN,
            3: ChargingState.EMPTY,
            4: ChargingState.FULL,
            5: ChargingState.UNKNOWN,
            6: ChargingState.UNKNOWN,
            42: ChargingState.UNKNOWN,
        }
        for state, charging_state in expected.items():
            self.assertEqual(snapshot_from_properties(device_props(state=state)).state, charging_state)

    def test_plain_values_and_clamping(self):
        snapshot = snapshot_from_properties({"State": 4, "Percentage": 100.5})
        self.assertEqual(snapshot.state, ChargingState.FULL)
        self.assertEqual(snapshot.charge, 1.0)


class TestUPowerWrapper(unittest.IsolatedAsyncioTestCase):

    def make_wrapper(self, devices):
        upower = UPowerWrapper()
        upower.bus = MagicMock()

        manager = MagicMock()
        manager.call_enumerate_devices = AsyncMock(return_value=list(devices))

        async def get_interface(path, interface):
            if path == "/org/freedesktop/UPower":
                return manager
            props = MagicMock()
            props.call_get_all = AsyncMock(return_value=devices[path])
            return props

        upower._get_interface = AsyncMock(side_effect=get_interface)
        return upower

    async def test_connect_failure_is_a_read_error(self):
        with patch("upower_api.MessageBus") as bus_cls:
            bus_cls.return_value.connect = AsyncMock(side_effect=FileNotFoundError("no socket"))
            with self.assertRaises(DeviceQueryFailed):
                await UPowerWrapper().read()

    async def test_closed_socket_is_wrapped(self):
        upower = self.make_wrapper({})
        upower._get_interface = AsyncMock(side_effect=EOFError())
        with self.assertRaises(DeviceQueryFailed):
            await upower.read()
        self.assertIsNone(upower.device_path)

    async def test_reconnects_after_bus_lost(self):
        upower = self.make_wrapper(
            {"/org/freedesktop/UPower/devices/battery_BAT0": device_props(percentage=55.0)}
        )
        upower.device_path = "/org/freedesktop/UPower/devices/battery_BAT0"
        upower.bus = MagicMock(connected=False)
        new_bus = MagicMock(connected=True)

        with patch("upower_api.MessageBus") as bus_cls:
            bus_cls.return_value.connect = AsyncMock(return_value=new_bus)
            with self.assertLogs("battery-monitor.upower", level="WARNING"):
                snapshot = await upower.read()

        self.assertIs(upower.bus, new_bus)
        self.assertAlmostEqual(snapshot.charge, 0.55)

    async def test_picks_first_power_supply_battery(self):
        upower = self.make_wrapper(
            {
                "/org/freedesktop/UPower/devices/line_power_AC": device_props(type_=1),
                "/org/freedesktop/UPower/devices/battery_hidpp": device_props(power_supply=False),
                "/org/freedesktop/UPower/devices/battery_BAT0": device_props(percentage=80.0),
            }
        )
        snapshot = await upower.read()
        self.assertEqual(upower.device_path, "/org/freedesktop/UPower/devices/battery_BAT0")
        self.assertAlmostEqual(snapshot.charge, 0.8)

    async def test_no_battery(self):
        upower = self.make_wrapper({"/org/freedesktop/UPower/devices/line_power_AC": device_props(type_=1)})
        with self.assertRaises(NoBatteryFound):
            await upower.read()

    async def test_bus_error_is_wrapped_and_path_dropped(self):
        upower = self.make_wrapper({})
        upower.device_path = "/org/freedesktop/UPower/devices/battery_BAT0"
        upower._get_interface = AsyncMock(
            side_effect=DBusError("org.freedesktop.DBus.Error.ServiceUnknown", "upower is gone")
        )
        with self.assertRaises(DeviceQueryFailed) as ctx:
            await upower.read()
        self.assertIn("upower is gone", str(ctx.exception))
        self.assertIsNone(upower.device_path)


if __name__ == '__main__':
    unittest.main()
