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

"""Filesystem-backed project model.

Enumerates package fragments from two places:

- source roots: every directory holding ``.py`` files is a fragment,
  named by its dotted path relative to the root
- archives (``.whl``, ``.zip``, ``.egg``): every member directory holding
  ``.py`` files is a fragment, with ``<archive>!/<dir>`` as its path

Enumeration is sorted so repeated passes see the same order.
"""

from __future__ import annotations

import logging
import os
import zipfile
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Sequence

from bdd_steps.config.settings import SETTINGS_FILE_NAME, StepSettings
from bdd_steps.errors import PackageRetrievalError, ProjectQueryError
from bdd_steps.project.ignore_patterns import (
    get_effective_skip_dirs,
    is_metadata_member,
    should_skip_dir,
)
from bdd_steps.steps.protocol import (
    CompiledUnit,
    PackageFragment,
    PackageOrigin,
    Project,
    SourceUnit,
    Unit,
)

logger = logging.getLogger(__name__)

# Files indicating a Python project root
PROJECT_MARKERS = (
    "pyproject.toml",
    "setup.py",
    "setup.cfg",
    "requirements.txt",
    SETTINGS_FILE_NAME,
)

ARCHIVE_SUFFIXES = (".whl", ".zip", ".egg")

_ARCHIVE_SEPARATOR = "!/"


def module_name(package: str, stem: str) -> str:
    """Dotted module name of a file in a package.

    >>> module_name("shop.steps", "cart")
    'shop.steps.cart'
    >>> module_name("shop.steps", "__init__")
    'shop.steps'
    """
    if stem == "__init__":
        return package
    return f"{package}.{stem}" if package else stem


def _dotted(parts: Iterable[str]) -> str:
    return ".".join(part for part in parts if part not in ("", "."))


def load_project(root: Path, settings: Optional[StepSettings] = None) -> Project:
    """Build a project from its root directory and settings.

    Archive globs are resolved at call time, so calling it again picks up
    archives added since.

    Args:
        root: Project root directory
        settings: Step settings (loaded from the root if not provided)

    Returns:
        Project with resolved source roots and archives
    """
    root = Path(os.path.abspath(root))
    if settings is None:
        settings = StepSettings.from_yaml(root / SETTINGS_FILE_NAME)

    source_roots = tuple(
        dict.fromkeys(Path(os.path.normpath(root / entry)) for entry in settings.source_roots)
    )

    archives: Dict[Path, None] = {}
    for pattern in settings.archives:
        for match in sorted(root.glob(pattern)):
            if match.is_file() and match.suffix in ARCHIVE_SUFFIXES:
                archives[Path(os.path.normpath(match))] = None

    return Project(
        name=root.name,
        root=root,
        source_roots=source_roots,
        archives=tuple(archives),
        skip_dirs=tuple(settings.skip_dirs),
    )


class FilesystemProjectModel:
    """Project model over source directories and zip-based archives."""

    def __init__(self, extra_skip_dirs: Optional[Iterable[str]] = None):
        self._skip_dirs = get_effective_skip_dirs(extra_skip_dirs)

    def is_supported_project_kind(self, project: Project) -> bool:
        root = project.root
        if not root.is_dir():
            return False
        return any((root / marker).exists() for marker in PROJECT_MARKERS)

    def list_package_fragments(self, project: Project) -> Sequence[PackageFragment]:
        if not project.root.is_dir():
            raise ProjectQueryError(f"Project root {project.root} is not a directory")

        fragments: List[PackageFragment] = []
        for source_root in project.source_roots:
            fragments.extend(self._source_fragments(source_root, project.skip_dirs))
        for archive in project.archives:
            fragments.extend(self._archive_fragments(archive))
        return fragments

    def list_units(self, fragment: PackageFragment) -> Sequence[Unit]:
        if fragment.origin is PackageOrigin.SOURCE:
            return self._source_units(fragment)
        return self._archive_units(fragment)

    def _source_fragments(
        self, source_root: Path, project_skip_dirs: Sequence[str] = ()
    ) -> List[PackageFragment]:
        skip_dirs = self._skip_dirs | frozenset(project_skip_dirs)
        if not source_root.is_dir():
            logger.warning(f"Source root {source_root} does not exist, skipping")
            return []

        def on_error(error: OSError) -> None:
            logger.warning(f"Cannot read {error.filename}: {error.strerror}")

        fragments = []
        for dirpath, dirnames, filenames in os.walk(source_root, onerror=on_error):
            dirnames[:] = sorted(d for d in dirnames if not should_skip_dir(d, skip_dirs))
            if not any(name.endswith(".py") for name in filenames):
                continue
            directory = Path(dirpath)
            fragments.append(
                PackageFragment(
                    name=_dotted(directory.relative_to(source_root).parts),
                    origin=PackageOrigin.SOURCE,
                    path=directory.as_posix(),
                    root=source_root,
                )
            )
        return fragments

    def _archive_fragments(self, archive: Path) -> List[PackageFragment]:
        try:
            members = self._archive_members(archive)
        except PackageRetrievalError as e:
            logger.warning(f"Skipping archive: {e}")
            return []

        directories: Dict[PurePosixPath, None] = {}
        for member in members:
            directories.setdefault(PurePosixPath(member).parent, None)

        return [
            PackageFragment(
                name=_dotted(directory.parts),
                origin=PackageOrigin.ARCHIVE,
                path=f"{archive.as_posix()}{_ARCHIVE_SEPARATOR}{directory.as_posix()}",
                root=archive,
            )
            for directory in directories
        ]

    def _source_units(self, fragment: PackageFragment) -> List[SourceUnit]:
        directory = Path(fragment.path)
        try:
            files = sorted(
                entry for entry in directory.iterdir() if entry.suffix == ".py" and entry.is_file()
            )
        except OSError as e:
            raise PackageRetrievalError(f"Cannot list {directory}: {e}") from e
        return [
            SourceUnit(path=f, module=module_name(fragment.name, f.stem), package=fragment.name)
            for f in files
        ]

    def _archive_units(self, fragment: PackageFragment) -> List[CompiledUnit]:
        directory = PurePosixPath(fragment.path.split(_ARCHIVE_SEPARATOR, 1)[1])
        units = []
        for member in self._archive_members(fragment.root):
            path = PurePosixPath(member)
            if path.parent == directory:
                units.append(
                    CompiledUnit(
                        archive=fragment.root,
                        member=member,
                        module=module_name(fragment.name, path.stem),
                        package=fragment.name,
                    )
                )
        return units

    def _archive_members(self, archive: Path) -> List[str]:
        """Sorted ``.py`` members of an archive, metadata excluded."""
        try:
            with zipfile.ZipFile(archive) as zf:
                names = zf.namelist()
        except (OSError, zipfile.BadZipFile) as e:
            raise PackageRetrievalError(f"Cannot open archive {archive}: {e}") from e
        return sorted(
            name for name in names if name.endswith(".py") and not is_metadata_member(name)
        )
