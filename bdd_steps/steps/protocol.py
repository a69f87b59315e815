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

"""Step discovery protocol types.

Defines the step data model and the collaborator interfaces the
collector depends on. Concrete collaborators live in
``bdd_steps.project``, ``bdd_steps.config`` and ``bdd_steps.extractors``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Pattern, Protocol, Sequence, Union, runtime_checkable

if TYPE_CHECKING:
    from bdd_steps.steps.index import StepIndex

logger = logging.getLogger(__name__)


class StepKeyword(Enum):
    """Decorator keyword a step was registered with."""

    GIVEN = "given"
    WHEN = "when"
    THEN = "then"
    STEP = "step"  # Matches any keyword


class StepMatcher(Enum):
    """How the pattern text is interpreted when matching feature lines."""

    RE = "re"  # Regular expression
    PARSE = "parse"  # parse-style "{name}" fields
    STRING = "string"  # Exact text


class PackageOrigin(Enum):
    """Where a package fragment comes from."""

    SOURCE = "source"  # Editable project source
    ARCHIVE = "archive"  # Pre-built dependency archive


# Leading Gherkin keyword of a feature-file step line
_FEATURE_KEYWORD = re.compile(r"^\s*(?:Given|When|Then|And|But|\*)\s+")
_PARSE_FIELD = re.compile(r"\{[^{}]*\}")


def strip_step_keyword(line: str) -> str:
    """Strip the Gherkin keyword from a feature-file step line.

    >>> strip_step_keyword("  Given a user named {name}")
    'a user named {name}'
    """
    return _FEATURE_KEYWORD.sub("", line, count=1).strip()


@lru_cache(maxsize=2048)
def _compile(text: str, matcher: StepMatcher) -> Optional[Pattern[str]]:
    if matcher is StepMatcher.RE:
        source = text
    elif matcher is StepMatcher.PARSE:
        pieces = _PARSE_FIELD.split(text)
        source = "(.+?)".join(re.escape(piece) for piece in pieces)
    else:
        source = re.escape(text)
    try:
        return re.compile(source)
    except re.error as e:
        logger.debug(f"Pattern {text!r} does not compile: {e}")
        return None


@dataclass(frozen=True)
class Step:
    """A discovered step definition.

    Identity is the pattern text plus the origin signature; everything
    else is descriptive and ignored by equality, so the same function
    found in project source and in an archive is one step.
    """

    text: str  # Pattern text as written in the decorator
    source: str  # Origin signature, e.g. "shop.steps.cart.CartSteps.add_item"
    keyword: StepKeyword = field(default=StepKeyword.STEP, compare=False)
    matcher: StepMatcher = field(default=StepMatcher.PARSE, compare=False)
    package: str = field(default="", compare=False)
    origin: PackageOrigin = field(default=PackageOrigin.SOURCE, compare=False)
    file_path: str = field(default="", compare=False)
    line_number: int = field(default=0, compare=False)

    def matches(self, line: str) -> bool:
        """Check whether a feature-file step line is implemented by this step.

        Args:
            line: Step line, with or without its Gherkin keyword

        Returns:
            True if the pattern matches the whole step text
        """
        pattern = _compile(self.text, self.matcher)
        if pattern is None:
            return False
        return pattern.fullmatch(strip_step_keyword(line)) is not None


@dataclass(frozen=True)
class PackageFragment:
    """A named group of units from project source or an archive."""

    name: str  # Dotted package name ("" for top-level modules)
    origin: PackageOrigin
    path: str  # Declared path: directory, or "<archive>!/<dir>"
    root: Path  # Source root or archive file the fragment belongs to


@dataclass(frozen=True)
class SourceUnit:
    """One editable source file."""

    path: Path
    module: str  # Dotted module name
    package: str = ""


@dataclass(frozen=True)
class CompiledUnit:
    """One member of a dependency archive."""

    archive: Path
    member: str  # Archive member name, e.g. "vendor/steps/login.py"
    module: str
    package: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.archive}!/{self.member}"


Unit = Union[SourceUnit, CompiledUnit]


@dataclass(frozen=True)
class Project:
    """A project whose step definitions are indexed.

    Attributes:
        name: Project name
        root: Project root directory
        source_roots: Directories holding editable source
        archives: Dependency archives to scan
        skip_dirs: Extra directory names pruned from source roots
    """

    name: str
    root: Path
    source_roots: tuple[Path, ...] = ()
    archives: tuple[Path, ...] = ()
    skip_dirs: tuple[str, ...] = ()


@dataclass(frozen=True)
class StepsChangedEvent:
    """Broadcast after a collection pass publishes a new index."""

    index: "StepIndex"
    project: str
    trigger_file: Optional[str] = None
    cancelled: bool = False


@runtime_checkable
class ProgressHandle(Protocol):
    """Progress/cancellation handle polled between units."""

    def is_cancelled(self) -> bool:
        ...

    def advance(self, amount: int = 1) -> None:
        ...


@runtime_checkable
class ProjectModel(Protocol):
    """Enumerates the packages and units visible to a project."""

    def is_supported_project_kind(self, project: Project) -> bool:
        """Whether step discovery applies to this project."""
        ...

    def list_package_fragments(self, project: Project) -> Sequence[PackageFragment]:
        """List package fragments in a stable enumeration order.

        Raises:
            ProjectQueryError: If the project cannot be introspected
        """
        ...

    def list_units(self, fragment: PackageFragment) -> Sequence[Unit]:
        """List the units of one fragment in a stable order.

        Raises:
            PackageRetrievalError: If the fragment cannot be read
        """
        ...


@runtime_checkable
class SourceUnitExtractor(Protocol):
    """Extracts steps from one editable source file."""

    def extract_steps(
        self, project: Project, unit: SourceUnit, progress: Optional[ProgressHandle]
    ) -> Sequence[Step]:
        """Raises UnitExtractionError if the unit cannot be read."""
        ...


@runtime_checkable
class ArchiveUnitExtractor(Protocol):
    """Extracts steps from one archive member."""

    def extract_steps(self, fragment: PackageFragment, unit: CompiledUnit) -> Sequence[Step]:
        """Raises UnitExtractionError if the member cannot be read or parsed."""
        ...


@runtime_checkable
class PreferenceSource(Protocol):
    """User preferences controlling package scoping."""

    def get_external_package_names(self) -> str:
        ...

    def get_restrict_to_caller_package(self) -> bool:
        ...

    def get_allowed_package_names(self) -> str:
        ...


@runtime_checkable
class StepListener(Protocol):
    """Receives an event whenever the step index is recomputed."""

    def on_steps_changed(self, event: StepsChangedEvent) -> None:
        ...
