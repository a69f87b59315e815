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

"""File watching trigger for step index refreshes.

Saving a step file, replacing a dependency archive or editing the
settings file schedules a debounced refresh of the step index.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, FrozenSet, List, Optional, Set

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from bdd_steps.config.settings import SETTINGS_FILE_NAME, YamlPreferenceSource
from bdd_steps.project.ignore_patterns import DEFAULT_SKIP_DIRS, get_effective_skip_dirs
from bdd_steps.project.model import load_project
from bdd_steps.steps.definitions import StepDefinitions
from bdd_steps.steps.protocol import Project

logger = logging.getLogger(__name__)

DEFAULT_FILE_PATTERNS = ["*.py", "*.whl", "*.zip", "*.egg", SETTINGS_FILE_NAME]


class StepFileHandler(FileSystemEventHandler):
    """Collects relevant file events and fires one debounced callback."""

    def __init__(
        self,
        on_change: Callable[[Set[str]], None],
        file_patterns: Optional[List[str]] = None,
        debounce_delay: float = 0.5,
        root: Optional[Path] = None,
        skip_dirs: FrozenSet[str] = DEFAULT_SKIP_DIRS,
    ):
        """Initialize file handler.

        Args:
            on_change: Callback receiving the set of changed paths
            file_patterns: File patterns to react to
            debounce_delay: Seconds to wait for more events before firing
            root: Watched root; only directories below it are checked for skipping
            skip_dirs: Directory names whose events are ignored
        """
        super().__init__()
        self.root = root
        self.skip_dirs = skip_dirs
        self.on_change = on_change
        self.file_patterns = file_patterns or DEFAULT_FILE_PATTERNS
        self._debounce_delay = debounce_delay
        self._debounce_lock = threading.Lock()
        self._pending_changes: Set[str] = set()
        self._debounce_timer: Optional[threading.Timer] = None

    def _should_process(self, path: str) -> bool:
        path_obj = Path(path)
        parts = path_obj.parts
        if self.root is not None:
            try:
                parts = path_obj.relative_to(self.root).parts
            except ValueError:
                pass
        for part in parts[:-1]:
            if part in self.skip_dirs or (part.startswith(".") and part not in (".", "..")):
                return False
        return any(path_obj.match(pattern) for pattern in self.file_patterns)

    def _debounced_notify(self) -> None:
        with self._debounce_lock:
            changes = set(self._pending_changes)
            self._pending_changes.clear()
            self._debounce_timer = None

        if not changes:
            return
        try:
            self.on_change(changes)
        except Exception as e:
            logger.warning(f"Error in step refresh callback: {e}")

    def _schedule_notification(self, path: str) -> None:
        with self._debounce_lock:
            self._pending_changes.add(path)

            if self._debounce_timer:
                self._debounce_timer.cancel()

            self._debounce_timer = threading.Timer(self._debounce_delay, self._debounced_notify)
            self._debounce_timer.daemon = True
            self._debounce_timer.start()

    def flush(self) -> None:
        """Fire the pending callback now instead of waiting for the timer."""
        with self._debounce_lock:
            if self._debounce_timer:
                self._debounce_timer.cancel()
                self._debounce_timer = None
        self._debounced_notify()

    def cancel(self) -> None:
        with self._debounce_lock:
            if self._debounce_timer:
                self._debounce_timer.cancel()
                self._debounce_timer = None
            self._pending_changes.clear()

    def _handle(self, event) -> None:
        if event.is_directory:
            return
        for path in (event.src_path, getattr(event, "dest_path", "")):
            if path and self._should_process(str(path)):
                self._schedule_notification(str(path))

    def on_modified(self, event) -> None:
        self._handle(event)

    def on_created(self, event) -> None:
        self._handle(event)

    def on_deleted(self, event) -> None:
        self._handle(event)

    def on_moved(self, event) -> None:
        self._handle(event)


class StepFileWatcher:
    """Refreshes a project's step index when its files change.

    Every refresh rebuilds the project through ``project_loader`` first,
    so archives matching the configured globs and layout settings edited
    since the last pass are picked up. Without a loader, a watcher given
    preferences rebuilds the project from them; otherwise the project is
    kept as given.

    Usage:
        watcher = StepFileWatcher(definitions, project, preferences)
        watcher.start()
        ...
        watcher.stop()
    """

    def __init__(
        self,
        definitions: StepDefinitions,
        project: Project,
        preferences: Optional[YamlPreferenceSource] = None,
        debounce_delay: float = 0.5,
        project_loader: Optional[Callable[[], Project]] = None,
    ):
        self.definitions = definitions
        self.project = project
        self.preferences = preferences
        if project_loader is None and preferences is not None:
            project_loader = self._load_from_preferences
        self.project_loader = project_loader
        self.handler = StepFileHandler(
            self.refresh,
            debounce_delay=debounce_delay,
            root=project.root,
            skip_dirs=get_effective_skip_dirs(project.skip_dirs),
        )
        self._observer: Optional[Observer] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def _load_from_preferences(self) -> Project:
        return load_project(self.project.root, self.preferences.settings)

    def refresh(self, changed: Set[str]) -> None:
        """Reload preferences if needed, rebuild the project and recompute the index."""
        if self.preferences is not None and any(
            Path(path).name == SETTINGS_FILE_NAME for path in changed
        ):
            self.preferences.reload()
        if self.project_loader is not None:
            self.project = self.project_loader()
            self.handler.skip_dirs = get_effective_skip_dirs(self.project.skip_dirs)
        logger.debug(f"Refreshing steps for {self.project.name}: {len(changed)} changed files")
        self.definitions.get_steps(self.project)

    def start(self) -> None:
        with self._lock:
            if self._observer is not None:
                return
            observer = Observer()
            observer.schedule(self.handler, str(self.project.root), recursive=True)
            observer.daemon = True
            observer.start()
            self._observer = observer
        logger.info(f"Watching {self.project.root} for step changes")

    def stop(self) -> None:
        with self._lock:
            observer = self._observer
            self._observer = None
        if observer is None:
            return
        self.handler.cancel()
        observer.stop()
        observer.join(timeout=5)
        logger.info(f"Stopped watching {self.project.root}")
