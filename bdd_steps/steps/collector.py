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

"""Step collection across project source and dependency archives.

A pass walks the project's package fragments in enumeration order,
keeps those admitted by the scope filter, and extracts steps from each
unit with the extractor matching the fragment's origin. Failures
shrink the result instead of aborting it:

- project cannot be queried    -> empty index
- one fragment cannot be read  -> fragment skipped
- one unit cannot be extracted -> unit skipped
- cancellation                 -> partial index
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from bdd_steps.errors import PackageRetrievalError, ProjectQueryError, UnitExtractionError
from bdd_steps.steps.index import StepIndex
from bdd_steps.steps.protocol import (
    ArchiveUnitExtractor,
    CompiledUnit,
    PackageFragment,
    PackageOrigin,
    PreferenceSource,
    ProgressHandle,
    Project,
    ProjectModel,
    SourceUnit,
    SourceUnitExtractor,
    Step,
)
from bdd_steps.steps.scope import PackageScopeConfig, PackageScopeFilter

logger = logging.getLogger(__name__)


def _cancelled(progress: Optional[ProgressHandle]) -> bool:
    return progress is not None and progress.is_cancelled()


def caller_location_for(trigger_file: Optional[Union[str, Path]]) -> Optional[str]:
    """Folder of the triggering feature file, as a POSIX path."""
    if trigger_file is None:
        return None
    return Path(os.path.abspath(trigger_file)).parent.as_posix()


class StepCollector:
    """Collects step definitions for a project.

    Collaborators are injected at construction, so the preference storage
    and project model can be swapped without subclassing.

    Attributes:
        max_workers: Fragments extracted concurrently (1 = sequential)
    """

    def __init__(
        self,
        project_model: ProjectModel,
        source_extractor: SourceUnitExtractor,
        archive_extractor: ArchiveUnitExtractor,
        preferences: PreferenceSource,
        scope_filter: Optional[PackageScopeFilter] = None,
        max_workers: int = 1,
    ):
        """Initialize the collector.

        Args:
            project_model: Enumerates fragments and units
            source_extractor: Extracts steps from editable source units
            archive_extractor: Extracts steps from archive members
            preferences: Scoping preferences, snapshotted once per pass
            scope_filter: Package scoping rules (default rules if omitted)
            max_workers: Worker threads for fragment extraction
        """
        self._model = project_model
        self._source_extractor = source_extractor
        self._archive_extractor = archive_extractor
        self._preferences = preferences
        self._scope_filter = scope_filter or PackageScopeFilter()
        self.max_workers = max(1, max_workers)

    def collect(
        self,
        project: Project,
        trigger_file: Optional[Union[str, Path]] = None,
        progress: Optional[ProgressHandle] = None,
    ) -> StepIndex:
        """Run one collection pass.

        Never raises: every failure degrades to a smaller index and a
        log entry.

        Args:
            project: Project to scan
            trigger_file: Feature file that triggered the pass, if any
            progress: Polled between units for cancellation

        Returns:
            A fresh index, ordered by fragment enumeration then unit order
        """
        start_time = time.time()
        index = StepIndex()

        try:
            if not self._model.is_supported_project_kind(project):
                logger.debug(f"Project {project.name} is not a supported kind, skipping")
                return index
        except Exception as e:
            logger.error(f"Cannot query project {project.name}: {e}")
            return index

        config = self._snapshot_config()

        try:
            fragments = list(self._model.list_package_fragments(project))
        except ProjectQueryError as e:
            logger.error(f"Cannot enumerate packages of {project.name}: {e}")
            return index
        except Exception as e:
            logger.error(f"Unexpected error enumerating packages of {project.name}: {e}")
            return index

        caller_location = caller_location_for(trigger_file)
        selected = [
            fragment
            for fragment in fragments
            if self._scope_filter.include_fragment(fragment, caller_location, config)
        ]
        logger.debug(
            f"{len(selected)} of {len(fragments)} packages in scope for {project.name}"
        )

        if self.max_workers > 1 and len(selected) > 1:
            complete = self._collect_parallel(project, selected, index, progress)
        else:
            complete = True
            for fragment in selected:
                steps, fragment_complete = self._collect_fragment(project, fragment, progress)
                index.add_all(steps)
                if not fragment_complete:
                    complete = False
                    break

        # Only a pass that actually stopped early is reported as cancelled
        index.cancelled = not complete
        if index.cancelled:
            logger.info(f"Step collection for {project.name} cancelled, {len(index)} steps kept")
        else:
            elapsed = time.time() - start_time
            logger.info(
                f"Collected {len(index)} steps for {project.name} "
                f"from {len(selected)} packages in {elapsed:.3f}s"
            )
        return index

    def _snapshot_config(self) -> PackageScopeConfig:
        try:
            return PackageScopeConfig.from_preferences(self._preferences)
        except Exception as e:
            logger.error(f"Cannot read step preferences, using defaults: {e}")
            return PackageScopeConfig()

    def _collect_parallel(
        self,
        project: Project,
        fragments: Sequence[PackageFragment],
        index: StepIndex,
        progress: Optional[ProgressHandle],
    ) -> bool:
        # Results are merged here, in enumeration order, by this thread only
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(fragments))) as pool:
            futures = [
                pool.submit(self._collect_fragment, project, fragment, progress)
                for fragment in fragments
            ]
            complete = True
            for future in futures:
                steps, fragment_complete = future.result()
                index.add_all(steps)
                complete = complete and fragment_complete
        return complete

    def _collect_fragment(
        self,
        project: Project,
        fragment: PackageFragment,
        progress: Optional[ProgressHandle],
    ) -> Tuple[List[Step], bool]:
        """Extract the steps of one fragment. Never raises.

        Returns:
            The fragment's steps, and False if cancellation cut it short
        """
        if _cancelled(progress):
            return [], False

        try:
            units = list(self._model.list_units(fragment))
        except PackageRetrievalError as e:
            logger.warning(f"Skipping package {fragment.name!r}: {e}")
            return [], True
        except Exception as e:
            logger.warning(f"Unexpected error listing package {fragment.name!r}: {e}")
            return [], True

        steps: List[Step] = []
        for unit in units:
            if _cancelled(progress):
                return steps, False
            try:
                steps.extend(self._extract_unit(project, fragment, unit, progress))
            except UnitExtractionError as e:
                logger.warning(f"Skipping unit: {e}")
            except Exception as e:
                logger.warning(f"Unexpected error extracting {unit}: {e}", exc_info=True)
            if progress is not None:
                progress.advance(1)
        return steps, True

    def _extract_unit(
        self,
        project: Project,
        fragment: PackageFragment,
        unit: Union[SourceUnit, CompiledUnit],
        progress: Optional[ProgressHandle],
    ) -> Sequence[Step]:
        if fragment.origin is PackageOrigin.SOURCE:
            return self._source_extractor.extract_steps(project, unit, progress)
        return self._archive_extractor.extract_steps(fragment, unit)
