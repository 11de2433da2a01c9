import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from battery import BatterySnapshot, ChargingState, ReadError
from notify import NotifyError, URGENCY_CRITICAL, URGENCY_LOW

# --- constants ---
NOTIFICATION_TIMEOUT = 3000  # ms
LOOP_WAIT_TIME = 1.0  # seconds
CRITICAL_CHARGE = 0.15

logger = logging.getLogger("battery-monitor")


@dataclass(frozen=True)
class NotificationRequest:
    title: str
    body: str
    timeout_ms: int = NOTIFICATION_TIMEOUT
    urgency: int = URGENCY_LOW
    icon: str = "battery"


def state_changed_notification(
    state: ChargingState, time_to_full: Optional[float]
) -> NotificationRequest:
    body = ""
    if time_to_full is not None:
        # minute-of-hour only, hours are dropped
        body = f"{(int(time_to_full) // 60) % 60}m"
    return NotificationRequest(title=f"Battery state - {state.value}", body=body)


def low_charge_notification(charge: float) -> NotificationRequest:
    return NotificationRequest(
        title="Battery charge is critically low",
        body=f"charge - {charge * 100:g}%",
        urgency=URGENCY_CRITICAL,
        icon="battery-caution",
    )


@dataclass
class MonitorState:
    last_snapshot: BatterySnapshot
    low_notified: bool = False


# --- Main Class ---
class BatteryMonitor:
    """Polls a battery reader and notifies on state changes and critical charge.

    ``reader`` needs an async ``read()`` returning a BatterySnapshot or raising
    ReadError. ``notifier`` needs an async ``send(summary, body, timeout_ms,
    urgency, icon)`` raising NotifyError on failure.
    """

    def __init__(self, reader, notifier, poll_interval: float = LOOP_WAIT_TIME) -> None:
        self.reader = reader
        self.notifier = notifier
        self.poll_interval = poll_interval
        self.state: Optional[MonitorState] = None

        # Set from the event loop's signal handler, read once per tick.
        self._stop_requested = False

    async def initialize(self):
        """Seed the monitor from a first read. ReadError propagates to the caller."""
        snapshot = await self.reader.read()
        # The low flag starts cleared even when the first reading is already critical.
        self.state = MonitorState(last_snapshot=snapshot, low_notified=False)
        logger.debug(f"got initial battery state {snapshot}")
        return snapshot

    def evaluate_state(self, snapshot: BatterySnapshot) -> List[NotificationRequest]:
        """Compare ``snapshot`` to the last one and advance the state.

        Requires a seeded monitor, see ``initialize``.
        """
        if self.state is None:
            raise RuntimeError("monitor is not initialized")
        old = self.state.last_snapshot
        requests = []

        logger.debug(f"Status: {snapshot.charge:.0%} [{snapshot.state.value}]")

        if snapshot.state != old.state:
            requests.append(
                state_changed_notification(snapshot.state, snapshot.time_to_full)
            )
            logger.debug(f"new battery state {snapshot.state.value}")

        if snapshot.charge <= CRITICAL_CHARGE:
            if not self.state.low_notified:
                requests.append(low_charge_notification(snapshot.charge))
                self.state.low_notified = True
                logger.debug(f"charge is lower than 15% - {snapshot.charge}")
        else:
            self.state.low_notified = False

        self.state.last_snapshot = snapshot
        return requests

    async def tick(self):
        try:
            snapshot = await self.reader.read()
        except ReadError as e:
            logger.error(f"Read error: {e}")
            return []

        if self.state is None:
            # first successful read only seeds the state
            self.state = MonitorState(last_snapshot=snapshot, low_notified=False)
            return []

        requests = self.evaluate_state(snapshot)
        for request in requests:
            try:
                await self.notifier.send(
                    request.title,
                    request.body,
                    timeout_ms=request.timeout_ms,
                    urgency=request.urgency,
                    icon=request.icon,
                )
            except NotifyError as e:
                logger.error(f"Notification error: {e}")
        return requests

    async def run(self):
        if self.state is None:
            await self.initialize()

        logger.info(f"start fetching state every {self.poll_interval}s")
        while True:
            await asyncio.sleep(self.poll_interval)
            if self._stop_requested:
                logger.info("stop requested. exiting...")
                break
            await self.tick()

    def stop(self):
        self._stop_requested = True
