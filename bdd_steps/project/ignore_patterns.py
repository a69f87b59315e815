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

"""Directory and archive-member filtering for step discovery.

Hidden directories (starting with '.') are skipped by convention, as
are the non-hidden directories listed in DEFAULT_SKIP_DIRS. Archive
metadata directories never hold step definitions.
"""

from pathlib import PurePosixPath
from typing import FrozenSet, Iterable, Optional

DEFAULT_SKIP_DIRS: FrozenSet[str] = frozenset(
    {
        "__pycache__",
        "venv",
        "env",
        "node_modules",
        "build",
        "dist",
        "htmlcov",
        "site-packages",
    }
)

# Archive directories that carry packaging metadata only
METADATA_DIR_SUFFIXES = (".dist-info", ".egg-info", ".data")
METADATA_DIR_NAMES = frozenset({"EGG-INFO"})


def get_effective_skip_dirs(extra_skip_dirs: Optional[Iterable[str]] = None) -> FrozenSet[str]:
    """Default skip directories plus any project-specific extras."""
    if not extra_skip_dirs:
        return DEFAULT_SKIP_DIRS
    return DEFAULT_SKIP_DIRS | frozenset(extra_skip_dirs)


def should_skip_dir(name: str, skip_dirs: FrozenSet[str] = DEFAULT_SKIP_DIRS) -> bool:
    """Check if a directory is pruned while walking a source root.

    >>> should_skip_dir(".git")
    True
    >>> should_skip_dir("steps")
    False
    >>> should_skip_dir("mypkg.egg-info")
    True
    """
    if name.startswith("."):
        return True
    return name in skip_dirs or name.endswith(METADATA_DIR_SUFFIXES)


def is_metadata_member(member: str) -> bool:
    """Check if an archive member lives in a packaging metadata directory."""
    for part in PurePosixPath(member).parts[:-1]:
        if part in METADATA_DIR_NAMES or part.endswith(METADATA_DIR_SUFFIXES):
            return True
    return False
