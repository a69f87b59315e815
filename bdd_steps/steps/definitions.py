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

"""Step definitions service for editor integration.

Provides a high-level API following the Facade pattern: run a
collection pass, publish the result as the current index and tell
every listener about it.
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional, Union

from bdd_steps.steps.collector import StepCollector
from bdd_steps.steps.index import StepIndex
from bdd_steps.steps.notifier import ChangeNotifier, get_change_notifier
from bdd_steps.steps.protocol import (
    ProgressHandle,
    Project,
    Step,
    StepKeyword,
    StepListener,
    StepsChangedEvent,
)

logger = logging.getLogger(__name__)


class StepDefinitions:
    """Keeps the current step index and publishes updates.

    The current index is always frozen. Readers holding an older index
    keep a consistent view; a new pass replaces the reference, it never
    edits the published index.
    """

    def __init__(
        self,
        collector: StepCollector,
        notifier: Optional[ChangeNotifier] = None,
    ):
        """Initialize the service.

        Args:
            collector: Collector used for every pass
            notifier: Listener registry (uses the process-wide one if not provided)
        """
        self._collector = collector
        self._notifier = notifier or get_change_notifier()
        self._current = StepIndex().freeze()
        self._lock = threading.Lock()
        # Held across swap and broadcast so events leave in publication order
        self._publish_lock = threading.RLock()
        self._started_passes = 0
        self._published_pass = 0

    @property
    def current(self) -> StepIndex:
        """The most recently published index."""
        with self._lock:
            return self._current

    @property
    def notifier(self) -> ChangeNotifier:
        return self._notifier

    def get_steps(
        self,
        project: Project,
        feature_file: Optional[Union[str, Path]] = None,
        progress: Optional[ProgressHandle] = None,
    ) -> StepIndex:
        """Recompute the step index and notify listeners.

        A pass that finishes after a later-started pass has already been
        published is discarded: it is returned to the caller but neither
        becomes current nor reaches listeners.

        Args:
            project: Project to scan
            feature_file: Feature file that triggered the refresh
            progress: Progress/cancellation handle

        Returns:
            The (frozen) index built by this pass
        """
        with self._lock:
            self._started_passes += 1
            pass_number = self._started_passes

        index = self._collector.collect(project, feature_file, progress).freeze()

        with self._publish_lock:
            with self._lock:
                if pass_number < self._published_pass:
                    logger.debug(
                        f"Discarding pass {pass_number} for {project.name}, "
                        f"pass {self._published_pass} already published"
                    )
                    return index
                self._published_pass = pass_number
                self._current = index

            event = StepsChangedEvent(
                index=index,
                project=project.name,
                trigger_file=str(feature_file) if feature_file is not None else None,
                cancelled=index.cancelled,
            )
            self.notify_listeners(event)
        return index

    def add_step_listener(self, listener: StepListener) -> None:
        self._notifier.register(listener)

    def remove_step_listener(self, listener: StepListener) -> None:
        self._notifier.unregister(listener)

    def notify_listeners(self, event: StepsChangedEvent) -> None:
        delivered = self._notifier.notify(event)
        logger.debug(f"Steps changed event for {event.project} delivered to {delivered} listeners")

    def find_step(self, line: str) -> Optional[Step]:
        """Navigate from a feature-file step line to its implementation.

        Args:
            line: Step line from a feature file

        Returns:
            The first matching step in index order, or None
        """
        matches = self.current.find_matching(line)
        return matches[0] if matches else None

    def suggest(self, prefix: str, keyword: Optional[StepKeyword] = None) -> List[Step]:
        """Content-assist proposals for a partially typed step line."""
        return self.current.suggest(prefix, keyword)
