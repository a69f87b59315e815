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

"""Exception types raised by step discovery collaborators.

None of these escape a collection pass: the collector catches them,
logs them and degrades to a smaller index.
"""


class StepIndexError(Exception):
    """Base class for step discovery errors."""


class ProjectQueryError(StepIndexError):
    """The project cannot be introspected (missing root, unreadable layout)."""


class PackageRetrievalError(StepIndexError):
    """The units of a single package fragment cannot be listed."""


class UnitExtractionError(StepIndexError):
    """A single source or compiled unit cannot be read or parsed.

    Attributes:
        unit: Display name of the failing unit
    """

    def __init__(self, unit: str, message: str):
        super().__init__(f"{unit}: {message}")
        self.unit = unit
