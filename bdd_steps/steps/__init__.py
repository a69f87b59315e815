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

"""Step definition discovery, indexing and change notification.

Example usage:
    from bdd_steps.steps import StepCollector, StepDefinitions

    collector = StepCollector(model, source_extractor, archive_extractor, preferences)
    definitions = StepDefinitions(collector)
    definitions.add_step_listener(listener)

    index = definitions.get_steps(project, feature_file="features/cart.feature")
    step = definitions.find_step("Given a cart with 3 items")
"""

from bdd_steps.steps.collector import StepCollector
from bdd_steps.steps.definitions import StepDefinitions
from bdd_steps.steps.index import StepIndex
from bdd_steps.steps.notifier import ChangeNotifier, get_change_notifier, reset_change_notifier
from bdd_steps.steps.progress import ProgressMonitor
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
    StepKeyword,
    StepListener,
    StepMatcher,
    StepsChangedEvent,
)
from bdd_steps.steps.scope import PackageScopeConfig, PackageScopeFilter, ScopeRule

__all__ = [
    "ArchiveUnitExtractor",
    "ChangeNotifier",
    "CompiledUnit",
    "PackageFragment",
    "PackageOrigin",
    "PackageScopeConfig",
    "PackageScopeFilter",
    "PreferenceSource",
    "ProgressHandle",
    "ProgressMonitor",
    "Project",
    "ProjectModel",
    "ScopeRule",
    "SourceUnit",
    "SourceUnitExtractor",
    "Step",
    "StepCollector",
    "StepDefinitions",
    "StepIndex",
    "StepKeyword",
    "StepListener",
    "StepMatcher",
    "StepsChangedEvent",
    "get_change_notifier",
    "reset_change_notifier",
]
