# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Listener registry for step index changes.

Consumers learn about a recomputed index only through this channel.
A single registry is shared by every collector in the process; it is
created on first use and lives until the process exits.
"""

import logging
import threading
from typing import List, Optional

from bdd_steps.steps.protocol import StepListener, StepsChangedEvent

logger = logging.getLogger(__name__)


class ChangeNotifier:
    """Registry of step listeners with synchronous broadcast.

    Registration and removal are guarded by a lock. A broadcast snapshots
    the listener list first, so listeners added while it runs are not
    guaranteed to receive that event. Broadcasts are serialized so events
    reach each listener in publication order.
    """

    def __init__(self):
        self._listeners: List[StepListener] = []
        self._lock = threading.Lock()
        self._broadcast_lock = threading.RLock()

    def register(self, listener: StepListener) -> None:
        """Register a listener. Registering it again is a no-op."""
        with self._lock:
            if any(existing is listener for existing in self._listeners):
                return
            self._listeners.append(listener)
        logger.debug(f"Registered step listener: {listener!r}")

    def unregister(self, listener: StepListener) -> bool:
        """Remove a listener.

        Returns:
            True if the listener was registered
        """
        with self._lock:
            for i, existing in enumerate(self._listeners):
                if existing is listener:
                    del self._listeners[i]
                    logger.debug(f"Unregistered step listener: {listener!r}")
                    return True
        return False

    @property
    def listeners(self) -> List[StepListener]:
        with self._lock:
            return list(self._listeners)

    def notify(self, event: StepsChangedEvent) -> int:
        """Deliver an event to every registered listener in registration order.

        A listener that raises is logged and skipped; the remaining
        listeners still receive the event.

        Returns:
            Number of listeners that handled the event without error
        """
        delivered = 0
        with self._broadcast_lock:
            for listener in self.listeners:
                try:
                    listener.on_steps_changed(event)
                    delivered += 1
                except Exception as e:
                    logger.warning(f"Step listener {listener!r} failed: {e}", exc_info=True)
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()


# Process-wide registry
_change_notifier: Optional[ChangeNotifier] = None
_notifier_lock = threading.Lock()


def get_change_notifier() -> ChangeNotifier:
    """Get the process-wide change notifier.

    Returns:
        The singleton notifier instance
    """
    global _change_notifier
    with _notifier_lock:
        if _change_notifier is None:
            _change_notifier = ChangeNotifier()
        return _change_notifier


def reset_change_notifier() -> None:
    """Reset the process-wide change notifier.

    Useful for testing.
    """
    global _change_notifier
    with _notifier_lock:
        _change_notifier = None
