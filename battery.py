from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ChargingState(Enum):
    UNKNOWN = "Unknown"
    CHARGING = "Charging"
    DISCHARGING = "Discharging"
    FULL = "Full"
    EMPTY = "Empty"


@dataclass(frozen=True)
class BatterySnapshot:
    state: ChargingState
    time_to_full: Optional[float]  # seconds
    charge: float = 0.0

    def __post_init__(self):
        # frozen, so bypass __setattr__ to clamp
        object.__setattr__(self, "charge", min(1.0, max(0.0, float(self.charge))))


class ReadError(Exception):
    """Base class for failures to read the battery."""

    pass


class NoBatteryFound(ReadError):
    """Exception raised when no monitorable battery is found."""

    def __init__(self, message="No battery detected on this system."):
        super().__init__(message)


class DeviceQueryFailed(ReadError):
    """Exception raised when querying the power daemon fails."""

    def __init__(self, details):
        super().__init__(f"Battery query failed: {details}")
        self.details = details
