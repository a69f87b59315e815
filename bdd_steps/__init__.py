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

"""Step definition index for BDD editor tooling.

Discovers behave and pytest-bdd step definitions in a project's source
and in dependency archives, keeps one deduplicated, ordered index of
them, and notifies listeners whenever the index is recomputed.

Package Structure:
    steps/          - Index, scoping rules, collector, notifier, watcher
    project/        - Filesystem project model
    extractors/     - Tree-sitter (source) and ast (archive) step extraction
    config/         - YAML settings and preference sources
    errors.py       - Exception types
    service_provider.py - Default wiring for a project root

Usage:
    from bdd_steps import create_step_services

    services = create_step_services("path/to/project")
    services.definitions.add_step_listener(listener)
    index = services.definitions.get_steps(services.project)
"""

from bdd_steps.errors import (
    PackageRetrievalError,
    ProjectQueryError,
    StepIndexError,
    UnitExtractionError,
)
from bdd_steps.service_provider import StepServices, create_step_services
from bdd_steps.steps import (
    ChangeNotifier,
    Step,
    StepCollector,
    StepDefinitions,
    StepIndex,
    StepsChangedEvent,
    get_change_notifier,
)

__version__ = "0.1.0"

__all__ = [
    "ChangeNotifier",
    "PackageRetrievalError",
    "ProjectQueryError",
    "Step",
    "StepCollector",
    "StepDefinitions",
    "StepIndex",
    "StepIndexError",
    "StepServices",
    "StepsChangedEvent",
    "UnitExtractionError",
    "create_step_services",
    "get_change_notifier",
]
