import logging

from dbus_next.aio.message_bus import MessageBus
from dbus_next.constants import BusType
from dbus_next.errors import AuthError, DBusError, InterfaceNotFoundError, InvalidAddressError
from dbus_next.signature import Variant

NTFY_NAME = "org.freedesktop.Notifications"
NTFY_PATH = "/org/freedesktop/Notifications"

APP_NAME = "Battery Monitor"

URGENCY_LOW = 0
URGENCY_NORMAL = 1
URGENCY_CRITICAL = 2

logger = logging.getLogger("battery-monitor.notify")


class NotifyError(Exception):
    """Exception raised when a notification could not be displayed."""

    pass


class Notifier:
    def __init__(self):
        self.bus = None
        self.interface = None

    @property
    def connected(self):
        return self.interface is not None and self.bus is not None and self.bus.connected

    async def connect(self):
        self.bus = None
        self.interface = None
        try:
            session_bus = await MessageBus(bus_type=BusType.SESSION).connect()
            ntfy_introspect = await session_bus.introspect(NTFY_NAME, NTFY_PATH)
            ntfy_proxy = session_bus.get_proxy_object(
                NTFY_NAME, NTFY_PATH, ntfy_introspect
            )
            self.interface = ntfy_proxy.get_interface(NTFY_NAME)
            self.bus = session_bus
            return True
        except (
            InterfaceNotFoundError,
            DBusError,
            InvalidAddressError,
            AuthError,
            OSError,
            EOFError,
        ) as e:
            logger.error(f"Notification setup failed: {e}")
            return False

    async def send(
        self,
        summary,
        body,
        timeout_ms=5000,
        urgency=URGENCY_NORMAL,
        icon="battery-caution",
    ):
        # the service may have come back since the last attempt
        if not self.connected and not await self.connect():
            raise NotifyError("Notification interface not connected. Cannot send.")

        hints = {"urgency": Variant("y", urgency)}

        try:
            # replaces_id 0: every notification gets its own popup
            new_id = await self.interface.call_notify(
                APP_NAME,
                0,
                icon,
                summary,
                body,
                [],
                hints,
                timeout_ms,
            )
        except Exception as e:
            self.interface = None
            raise NotifyError(f"Failed to send notification: {e}") from e

        logger.debug(f"Notification {new_id} sent: {summary}")
        return new_id
