import logging

from dbus_next.aio.message_bus import MessageBus
from dbus_next.constants import BusType
from dbus_next.signature import Variant

from battery import (
    BatterySnapshot,
    ChargingState,
    DeviceQueryFailed,
    NoBatteryFound,
)

UPOWER_NAME = "org.freedesktop.UPower"
UPOWER_PATH = "/org/freedesktop/UPower"
UPOWER_DEVICE = "org.freedesktop.UPower.Device"
DBUS_PROPERTIES = "org.freedesktop.DBus.Properties"

DEVICE_TYPE_BATTERY = 2

# UPower device State enum. Pending charge/discharge have no counterpart here.
STATES = {
    0: ChargingState.UNKNOWN,
    1: ChargingState.CHARGING,
    2: ChargingState.DISCHARGING,
    3: ChargingState.EMPTY,
    4: ChargingState.FULL,
    5: ChargingState.UNKNOWN,
    6: ChargingState.UNKNOWN,
}

logger = logging.getLogger("battery-monitor.upower")


def get_value(prop_value):
    return prop_value.value if isinstance(prop_value, Variant) else prop_value


def snapshot_from_properties(props) -> BatterySnapshot:
    """Build a snapshot from the result of Properties.GetAll on a UPower device."""
    state = STATES.get(int(get_value(props.get("State", 0))), ChargingState.UNKNOWN)

    # 0 means UPower has no estimate
    time_to_full = int(get_value(props.get("TimeToFull", 0)))

    return BatterySnapshot(
        state=state,
        time_to_full=float(time_to_full) if time_to_full > 0 else None,
        charge=float(get_value(props.get("Percentage", 0.0))) / 100,
    )


class UPowerWrapper:
    def __init__(self) -> None:
        self.bus = None
        self.device_path = None

    async def connect(self):
        try:
            self.bus = await MessageBus(bus_type=BusType.SYSTEM).connect()
        except Exception as e:
            self.bus = None
            raise DeviceQueryFailed(f"cannot connect to system bus: {e}") from e

    async def _get_interface(self, path, interface):
        introspection = await self.bus.introspect(UPOWER_NAME, path)
        proxy = self.bus.get_proxy_object(UPOWER_NAME, path, introspection)
        return proxy.get_interface(interface)

    async def _get_properties(self, path):
        props_interface = await self._get_interface(path, DBUS_PROPERTIES)
        return await props_interface.call_get_all(UPOWER_DEVICE)

    async def find_battery(self):
        """Return the object path of the first battery that powers the system."""
        upower = await self._get_interface(UPOWER_PATH, UPOWER_NAME)
        for path in await upower.call_enumerate_devices():
            props = await self._get_properties(path)
            if (
                get_value(props.get("Type")) == DEVICE_TYPE_BATTERY
                and get_value(props.get("PowerSupply", True))
            ):
                logger.debug(f"Using battery at {path}")
                return path
        raise NoBatteryFound()

    async def read(self) -> BatterySnapshot:
        # A dropped bus is replaced on the next read
        if self.bus is None or not self.bus.connected:
            if self.bus is not None:
                logger.warning("System bus connection lost, reconnecting")
            self.device_path = None
            await self.connect()

        try:
            if self.device_path is None:
                self.device_path = await self.find_battery()
            props = await self._get_properties(self.device_path)
        except NoBatteryFound:
            raise
        except Exception as e:
            # dbus_next fails pending calls with EOFError when the socket closes
            self.device_path = None
            raise DeviceQueryFailed(e) from e

        return snapshot_from_properties(props)
