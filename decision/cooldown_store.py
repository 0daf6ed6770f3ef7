# decision/cooldown_store.py

import threading
from datetime import datetime, timedelta


class CooldownStore:
    """
    Last scale-down timestamp per resource name.

    Entries are created on the first recorded scale-down and kept for the
    lifetime of the process. One lock guards the whole map, so readers never
    observe a partial update and a recorded timestamp is visible to every
    caller once record_scale_down returns.

    Two concurrent requests for the same resource can both read "not in
    cooldown" before either records. The store does not prevent that.
    """

    def __init__(self):
        self._last_scale_down: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def record_scale_down(self, resource_id: str, timestamp: datetime) -> None:
        with self._lock:
            self._last_scale_down[resource_id] = timestamp

    def last_scale_down(self, resource_id: str) -> datetime | None:
        with self._lock:
            return self._last_scale_down.get(resource_id)

    def time_since_last_scale_down(self, resource_id: str, now: datetime) -> timedelta | None:
        """Return now minus the recorded scale-down time, or None if nothing is recorded."""
        last = self.last_scale_down(resource_id)
        if last is None:
            return None
        return now - last

    def __len__(self):
        with self._lock:
            return len(self._last_scale_down)
