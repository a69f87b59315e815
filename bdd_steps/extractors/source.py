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

"""Tree-sitter based step extraction for editable source files.

Tree-sitter recovers from syntax errors, so a file being edited still
yields the steps of its well-formed functions.
"""

from __future__ import annotations

import ast
import logging
from typing import TYPE_CHECKING, List, Optional, Tuple

from bdd_steps.errors import UnitExtractionError
from bdd_steps.extractors.keywords import (
    DEFAULT_MATCHER,
    parser_matcher,
    step_keyword,
    step_signature,
)
from bdd_steps.extractors.tree_sitter_manager import get_parser
from bdd_steps.steps.protocol import (
    PackageOrigin,
    ProgressHandle,
    Project,
    SourceUnit,
    Step,
    StepMatcher,
)

if TYPE_CHECKING:
    from tree_sitter import Node

logger = logging.getLogger(__name__)

_STRING_NODES = ("string", "concatenated_string")


def _text(node: "Node") -> str:
    return node.text.decode("utf-8", errors="ignore")


def _string_literal(node: "Node") -> Optional[str]:
    """Value of a string literal node, None for f-strings and bytes."""
    if node.type not in _STRING_NODES:
        return None
    try:
        value = ast.literal_eval(_text(node))
    except (ValueError, SyntaxError):
        return None
    return value if isinstance(value, str) else None


def _first_positional(arguments: Optional["Node"]) -> Optional["Node"]:
    if arguments is None:
        return None
    for child in arguments.named_children:
        if child.type in ("keyword_argument", "comment"):
            continue
        return child
    return None


def _pattern_argument(arguments: Optional["Node"]) -> Optional[Tuple[str, StepMatcher]]:
    """Pattern text and matcher from a step decorator's arguments."""
    argument = _first_positional(arguments)
    if argument is None:
        return None

    literal = _string_literal(argument)
    if literal is not None:
        return literal, DEFAULT_MATCHER

    if argument.type == "call":
        function = argument.child_by_field_name("function")
        matcher = parser_matcher(_text(function)) if function is not None else None
        if matcher is None:
            return None
        inner = _first_positional(argument.child_by_field_name("arguments"))
        literal = _string_literal(inner) if inner is not None else None
        if literal is not None:
            return literal, matcher
    return None


def _enclosing_classes(node: "Node") -> List[str]:
    scopes = []
    parent = node.parent
    while parent is not None:
        if parent.type == "class_definition":
            name = parent.child_by_field_name("name")
            if name is not None:
                scopes.append(_text(name))
        parent = parent.parent
    scopes.reverse()
    return scopes


class TreeSitterStepExtractor:
    """Extracts step definitions from Python source files."""

    def __init__(self, language: str = "python"):
        self.language = language

    def extract_steps(
        self,
        project: Project,
        unit: SourceUnit,
        progress: Optional[ProgressHandle] = None,
    ) -> List[Step]:
        """Extract the steps defined in one source file.

        Args:
            project: Project the unit belongs to
            unit: Source file to parse
            progress: Checked before parsing

        Returns:
            Steps in source order

        Raises:
            UnitExtractionError: If the file cannot be read or parsed
        """
        if progress is not None and progress.is_cancelled():
            return []

        try:
            content = unit.path.read_bytes()
        except OSError as e:
            raise UnitExtractionError(str(unit.path), f"cannot read file: {e}") from e

        try:
            tree = get_parser(self.language).parse(content)
        except Exception as e:
            raise UnitExtractionError(str(unit.path), f"parse failed: {e}") from e

        steps = self.extract_from_tree(tree.root_node, unit)
        logger.debug(f"Found {len(steps)} steps in {unit.path} ({project.name})")
        return steps

    def extract_from_tree(self, root: "Node", unit: SourceUnit) -> List[Step]:
        steps: List[Step] = []
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "decorated_definition":
                steps.extend(self._steps_for_definition(node, unit))
            # Reversed so children are visited in source order
            stack.extend(reversed(node.children))
        return steps

    def _steps_for_definition(self, node: "Node", unit: SourceUnit) -> List[Step]:
        definition = node.child_by_field_name("definition")
        if definition is None or definition.type != "function_definition":
            return []
        name_node = definition.child_by_field_name("name")
        if name_node is None:
            return []

        source = step_signature(unit.module, _enclosing_classes(node), _text(name_node))
        steps = []
        for decorator in node.children:
            if decorator.type != "decorator" or not decorator.named_children:
                continue
            expression = decorator.named_children[0]
            if expression.type != "call":
                continue
            function = expression.child_by_field_name("function")
            keyword = step_keyword(_text(function)) if function is not None else None
            if keyword is None:
                continue
            pattern = _pattern_argument(expression.child_by_field_name("arguments"))
            if pattern is None:
                logger.debug(f"Step decorator without literal pattern at {unit.path}:{source}")
                continue
            text, matcher = pattern
            steps.append(
                Step(
                    text=text,
                    source=source,
                    keyword=keyword,
                    matcher=matcher,
                    package=unit.package,
                    origin=PackageOrigin.SOURCE,
                    file_path=str(unit.path),
                    line_number=name_node.start_point[0] + 1,
                )
            )
        return steps
