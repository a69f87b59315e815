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

"""Wiring of the step discovery services for a project root.

Builds the default collaborators (filesystem project model, tree-sitter
and archive extractors, YAML-backed preferences) and hands them to the
collector and definitions service.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from bdd_steps.config.settings import YamlPreferenceSource
from bdd_steps.extractors.archive import ArchiveStepExtractor
from bdd_steps.extractors.source import TreeSitterStepExtractor
from bdd_steps.project.model import FilesystemProjectModel, load_project
from bdd_steps.steps.collector import StepCollector
from bdd_steps.steps.definitions import StepDefinitions
from bdd_steps.steps.notifier import ChangeNotifier
from bdd_steps.steps.protocol import Project
from bdd_steps.steps.watcher import StepFileWatcher

logger = logging.getLogger(__name__)


@dataclass
class StepServices:
    """Step discovery services bound to one project."""

    project: Project
    preferences: YamlPreferenceSource
    collector: StepCollector
    definitions: StepDefinitions

    def reload_project(self) -> Project:
        """Rebuild the project from the current settings.

        Re-resolves source roots and archive globs, and applies the
        settings' skip directories and worker count.
        """
        settings = self.preferences.settings
        self.project = load_project(self.project.root, settings)
        self.collector.max_workers = max(1, settings.max_workers)
        return self.project

    def create_watcher(self, debounce_delay: float = 0.5) -> StepFileWatcher:
        return StepFileWatcher(
            self.definitions,
            self.project,
            preferences=self.preferences,
            debounce_delay=debounce_delay,
            project_loader=self.reload_project,
        )


def create_step_services(
    root: Union[str, Path],
    notifier: Optional[ChangeNotifier] = None,
) -> StepServices:
    """Create the step discovery services for a project root.

    Args:
        root: Project root directory (holds ``.bdd-steps.yaml`` if configured)
        notifier: Listener registry (uses the process-wide one if not provided)

    Returns:
        Wired services; call ``definitions.get_steps(project)`` to index
    """
    preferences = YamlPreferenceSource.for_project_root(root)
    settings = preferences.settings
    project = load_project(Path(root), settings)

    collector = StepCollector(
        project_model=FilesystemProjectModel(),
        source_extractor=TreeSitterStepExtractor(),
        archive_extractor=ArchiveStepExtractor(),
        preferences=preferences,
        max_workers=settings.max_workers,
    )
    logger.debug(
        f"Created step services for {project.name}: "
        f"{len(project.source_roots)} source roots, {len(project.archives)} archives"
    )
    return StepServices(
        project=project,
        preferences=preferences,
        collector=collector,
        definitions=StepDefinitions(collector, notifier),
    )
