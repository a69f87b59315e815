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

"""Step extraction for members of dependency archives.

Archive members are released code, so they are parsed with Python's
own ``ast`` module; a member that fails to parse is reported instead of
being partially recovered.
"""

import ast
import logging
import zipfile
from typing import List, Optional, Tuple, Union

from bdd_steps.errors import UnitExtractionError
from bdd_steps.extractors.keywords import (
    DEFAULT_MATCHER,
    parser_matcher,
    step_keyword,
    step_signature,
)
from bdd_steps.steps.protocol import (
    CompiledUnit,
    PackageFragment,
    PackageOrigin,
    Step,
    StepMatcher,
)

logger = logging.getLogger(__name__)

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]


def _dotted_name(node: ast.expr) -> Optional[str]:
    """Dotted name of a Name/Attribute chain, e.g. ``behave.given``."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = _dotted_name(node.value)
        return f"{base}.{node.attr}" if base else node.attr
    return None


def _string_constant(node: Optional[ast.expr]) -> Optional[str]:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value
    return None


def _pattern_argument(call: ast.Call) -> Optional[Tuple[str, StepMatcher]]:
    if not call.args:
        return None
    argument = call.args[0]

    literal = _string_constant(argument)
    if literal is not None:
        return literal, DEFAULT_MATCHER

    if isinstance(argument, ast.Call):
        name = _dotted_name(argument.func)
        matcher = parser_matcher(name) if name else None
        literal = _string_constant(argument.args[0]) if argument.args else None
        if matcher is not None and literal is not None:
            return literal, matcher
    return None


class _StepVisitor(ast.NodeVisitor):
    """Collects step functions, tracking enclosing classes."""

    def __init__(self, fragment: PackageFragment, unit: CompiledUnit):
        self.fragment = fragment
        self.unit = unit
        self.scopes: List[str] = []
        self.steps: List[Step] = []

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self.scopes.append(node.name)
        self.generic_visit(node)
        self.scopes.pop()

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._collect(node)
        self.generic_visit(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._collect(node)
        self.generic_visit(node)

    def _collect(self, node: FunctionNode) -> None:
        source = step_signature(self.unit.module, self.scopes, node.name)
        for decorator in node.decorator_list:
            if not isinstance(decorator, ast.Call):
                continue
            name = _dotted_name(decorator.func)
            keyword = step_keyword(name) if name else None
            if keyword is None:
                continue
            pattern = _pattern_argument(decorator)
            if pattern is None:
                continue
            text, matcher = pattern
            self.steps.append(
                Step(
                    text=text,
                    source=source,
                    keyword=keyword,
                    matcher=matcher,
                    package=self.fragment.name,
                    origin=PackageOrigin.ARCHIVE,
                    file_path=self.unit.display_name,
                    line_number=node.lineno,
                )
            )


class ArchiveStepExtractor:
    """Extracts step definitions from ``.py`` members of zip-based archives."""

    def extract_steps(self, fragment: PackageFragment, unit: CompiledUnit) -> List[Step]:
        """Extract the steps defined in one archive member.

        Args:
            fragment: Package fragment the member belongs to
            unit: Archive member to read

        Returns:
            Steps in source order

        Raises:
            UnitExtractionError: If the member cannot be read or parsed
        """
        try:
            with zipfile.ZipFile(unit.archive) as zf:
                content = zf.read(unit.member)
        except (OSError, KeyError, zipfile.BadZipFile) as e:
            raise UnitExtractionError(unit.display_name, f"cannot read member: {e}") from e

        try:
            tree = ast.parse(content, filename=unit.display_name)
        except (SyntaxError, ValueError) as e:
            raise UnitExtractionError(unit.display_name, f"parse failed: {e}") from e

        visitor = _StepVisitor(fragment, unit)
        visitor.visit(tree)
        logger.debug(f"Found {len(visitor.steps)} steps in {unit.display_name}")
        return visitor.steps
