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

"""Insertion-ordered, deduplicated container of discovered steps."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from bdd_steps.steps.protocol import Step, StepKeyword, strip_step_keyword


class StepIndex:
    """Ordered set of steps.

    Uniqueness is defined purely by Step equality (pattern text plus
    origin signature), whichever source contributed the step. The first
    insertion wins and keeps its position.

    Once published an index is frozen; a new pass always builds a fresh
    index instead of mutating the previous one.

    Attributes:
        cancelled: True if the pass that built this index stopped early
    """

    def __init__(self, steps: Optional[Iterable[Step]] = None):
        self.cancelled = False
        self._steps: Dict[Step, None] = {}
        self._lock = threading.Lock()
        self._frozen = False
        if steps is not None:
            self.add_all(steps)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "StepIndex":
        """Reject further mutation. Returns self for chaining."""
        self._frozen = True
        return self

    def _check_mutable(self) -> None:
        if self._frozen:
            raise TypeError("StepIndex is frozen")

    def add(self, step: Step) -> bool:
        """Add a step unless an equal one is already present.

        Returns:
            True if the step was inserted
        """
        with self._lock:
            self._check_mutable()
            if step in self._steps:
                return False
            self._steps[step] = None
            return True

    def add_all(self, steps: Iterable[Step]) -> int:
        """Add steps in iteration order.

        Returns:
            Number of steps actually inserted
        """
        added = 0
        with self._lock:
            self._check_mutable()
            for step in steps:
                if step not in self._steps:
                    self._steps[step] = None
                    added += 1
        return added

    def merge(self, other: "StepIndex") -> int:
        """Append the steps of another index, keeping this index's order first."""
        return self.add_all(other.snapshot())

    def snapshot(self) -> Tuple[Step, ...]:
        """Read-only ordered view of the current membership."""
        with self._lock:
            return tuple(self._steps)

    def find_matching(self, line: str) -> List[Step]:
        """Steps whose pattern matches a feature-file step line."""
        return [step for step in self.snapshot() if step.matches(line)]

    def suggest(self, prefix: str, keyword: Optional[StepKeyword] = None) -> List[Step]:
        """Content-assist candidates for a partially typed step line.

        Args:
            prefix: Text typed so far (Gherkin keyword optional)
            keyword: Only return steps registered for this keyword
                (steps registered with ``@step`` always qualify)

        Returns:
            Steps whose pattern text starts with the prefix, case-insensitive
        """
        needle = strip_step_keyword(prefix).lower()
        result = []
        for step in self.snapshot():
            if keyword is not None and step.keyword not in (keyword, StepKeyword.STEP):
                continue
            if step.text.lower().startswith(needle):
                result.append(step)
        return result

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(self.snapshot())

    def __contains__(self, step: object) -> bool:
        return step in self._steps

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"StepIndex({len(self)} steps, {state})"
