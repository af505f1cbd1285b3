import asyncio
import enum
import math
import threading
from collections import OrderedDict
from datetime import datetime
from typing import Callable, Dict, Optional

from sglove.common.logging import get_logger
from sglove.data.csv_export import format_timestamp, render_csv
from sglove.data.registry import CharacteristicRegistry

L = get_logger(__name__)


class LogState(enum.Enum):
    """Enum representing the state of the log accumulator."""

    IDLE = "idle"
    LOGGING = "logging"


class LogAccumulator:
    """Periodically captures registry values into a timestamped log.

    Rows are keyed by a one-second resolution timestamp, so two ticks inside
    the same second leave a single row holding the later values.
    """

    def __init__(
        self,
        registry: CharacteristicRegistry,
        on_export: Optional[Callable[[str], None]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initializes the accumulator.
        Args:
            registry (CharacteristicRegistry): Source of the values to capture.
            on_export (callable, optional): Receives the CSV text when logging stops.
            clock (callable, optional): Returns the local time used for row timestamps.
        """
        self._registry = registry
        self._on_export = on_export
        self._clock = clock
        self._rows: "OrderedDict[str, Dict[str, str]]" = OrderedDict()
        self._state = LogState.IDLE
        self._task: Optional[asyncio.Task] = None
        self._lock = threading.RLock()

    @property
    def state(self) -> LogState:
        return self._state

    @property
    def is_logging(self) -> bool:
        return self._state == LogState.LOGGING

    @property
    def rows(self) -> "OrderedDict[str, Dict[str, str]]":
        """Returns a copy of the captured rows."""
        with self._lock:
            return OrderedDict((ts, dict(row)) for ts, row in self._rows.items())

    def start(self, period_ms) -> bool:
        """Clears the log and starts capturing a row every period_ms.

        Must be called from a running event loop.

        Returns:
            False if logging was already in progress.
        """
        if not math.isfinite(period_ms) or period_ms <= 0:
            raise ValueError(f"Log period must be a positive number, got {period_ms} ms")
        if self.is_logging:
            L.warning("Logging already in progress, ignoring start request")
            return False

        loop = asyncio.get_running_loop()
        with self._lock:
            self._rows.clear()
            self._state = LogState.LOGGING
        self._task = loop.create_task(self._run(period_ms / 1000.0))
        L.info(f"Logging started with a period of {period_ms} ms")
        return True

    async def _run(self, period):
        while True:
            await asyncio.sleep(period)
            try:
                self.tick()
            except Exception as e:
                L.error(f"Failed to capture log row: {e}")

    def tick(self, now: Optional[datetime] = None):
        """Captures the current value of every registered characteristic."""
        if not self.is_logging:
            return
        entry = {e.id: e.last_value for e in self._registry.snapshot()}
        timestamp = format_timestamp(now if now is not None else self._clock())
        with self._lock:
            if timestamp in self._rows:
                L.debug(f"Overwriting log row {timestamp}")
            self._rows[timestamp] = entry

    def stop(self) -> Optional[str]:
        """Stops logging and exports the captured rows.

        No tick runs once this returns. If any rows were captured they are
        rendered as CSV and handed to on_export.

        Returns:
            The CSV text, or None if nothing was exported.
        """
        if not self.is_logging:
            return None

        if self._task is not None:
            self._task.cancel()
            self._task = None

        with self._lock:
            self._state = LogState.IDLE
            if not self._rows:
                L.info("Logging stopped, no rows captured")
                return None
            csv_text = render_csv(self._registry.snapshot(), self._rows)
            count = len(self._rows)

        L.info(f"Logging stopped, exporting {count} rows")
        if self._on_export:
            self._on_export(csv_text)
        return csv_text
