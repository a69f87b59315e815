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

"""Package scoping rules for step discovery.

Decides which package fragments are scanned, from the user's scoping
preferences and the location of the feature file that triggered the
pass. Rules are evaluated in a fixed order per package origin and a
package is included only when every rule for its origin passes:

Editable source:
    1. caller_package   - restrict to packages at or under the caller
    2. allowed_packages - explicit allow-list, layered on top of (1)

Compiled archive:
    1. external_packages - name must match a configured external package
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from bdd_steps.steps.protocol import PackageFragment, PackageOrigin, PreferenceSource

logger = logging.getLogger(__name__)

# Preference strings have historically used both separators
_TOKEN_SEPARATORS = re.compile(r"[,;]")


def split_package_names(value: Optional[str]) -> Tuple[str, ...]:
    """Split a preference string into trimmed, non-blank package names.

    >>> split_package_names(" com.vendor.steps, com.lib ;; ")
    ('com.vendor.steps', 'com.lib')
    """
    if not value:
        return ()
    tokens = (token.strip() for token in _TOKEN_SEPARATORS.split(value))
    return tuple(token for token in tokens if token)


def matches_package_prefix(name: str, prefixes: Iterable[str]) -> bool:
    """Case-sensitive exact-or-prefix match against any entry."""
    return any(name == prefix or name.startswith(prefix) for prefix in prefixes)


def is_within(path: str, location: str) -> bool:
    """Whether ``path`` equals ``location`` or lies beneath it."""
    candidate = PurePosixPath(path).parts
    base = PurePosixPath(location).parts
    return candidate[: len(base)] == base


@dataclass(frozen=True)
class PackageScopeConfig:
    """Snapshot of the scoping preferences for one collection pass."""

    external_packages: Tuple[str, ...] = ()
    restrict_to_caller_package: bool = False
    allowed_packages: Tuple[str, ...] = ()

    @classmethod
    def from_preferences(cls, preferences: PreferenceSource) -> "PackageScopeConfig":
        """Read every preference once.

        Blank or whitespace-only tokens are dropped, so a malformed value
        degrades to "no constraint" instead of failing the pass. Sources
        offering a ``snapshot()`` are read through it so a concurrent
        reload cannot tear the values.
        """
        snapshot = getattr(preferences, "snapshot", None)
        if callable(snapshot):
            preferences = snapshot()
        return cls(
            external_packages=split_package_names(preferences.get_external_package_names()),
            restrict_to_caller_package=bool(preferences.get_restrict_to_caller_package()),
            allowed_packages=split_package_names(preferences.get_allowed_package_names()),
        )


@dataclass(frozen=True)
class PackageCandidate:
    """Inputs a scope rule decides on."""

    name: str
    path: str
    caller_location: Optional[str]


ScopePredicate = Callable[[PackageCandidate, PackageScopeConfig], bool]


@dataclass(frozen=True)
class ScopeRule:
    """A named inclusion predicate."""

    name: str
    predicate: ScopePredicate

    def __call__(self, candidate: PackageCandidate, config: PackageScopeConfig) -> bool:
        return self.predicate(candidate, config)


def _caller_package(candidate: PackageCandidate, config: PackageScopeConfig) -> bool:
    if not config.restrict_to_caller_package or candidate.caller_location is None:
        return True
    return is_within(candidate.path, candidate.caller_location)


def _allowed_packages(candidate: PackageCandidate, config: PackageScopeConfig) -> bool:
    if not config.allowed_packages:
        return True
    return matches_package_prefix(candidate.name, config.allowed_packages)


def _external_packages(candidate: PackageCandidate, config: PackageScopeConfig) -> bool:
    if not config.external_packages:
        return False
    return matches_package_prefix(candidate.name, config.external_packages)


DEFAULT_RULES: Dict[PackageOrigin, List[ScopeRule]] = {
    PackageOrigin.SOURCE: [
        ScopeRule("caller_package", _caller_package),
        ScopeRule("allowed_packages", _allowed_packages),
    ],
    PackageOrigin.ARCHIVE: [
        ScopeRule("external_packages", _external_packages),
    ],
}


class PackageScopeFilter:
    """Evaluates the scoping rules for a package."""

    def __init__(self, rules: Optional[Dict[PackageOrigin, List[ScopeRule]]] = None):
        self._rules = rules if rules is not None else DEFAULT_RULES

    def include_package(
        self,
        origin: PackageOrigin,
        package_name: str,
        package_path: str,
        caller_location: Optional[str],
        config: PackageScopeConfig,
    ) -> bool:
        """Decide whether a package is scanned for steps.

        Args:
            origin: Editable source or compiled archive
            package_name: Dotted package name
            package_path: Declared path of the package
            caller_location: Folder of the triggering feature file, if any
            config: Preference snapshot for this pass

        Returns:
            True if every rule for the origin passes
        """
        candidate = PackageCandidate(package_name, package_path, caller_location)
        for rule in self._rules.get(origin, []):
            if not rule(candidate, config):
                logger.debug(f"Package {package_name!r} ({origin.value}) excluded by {rule.name}")
                return False
        return True

    def include_fragment(
        self,
        fragment: PackageFragment,
        caller_location: Optional[str],
        config: PackageScopeConfig,
    ) -> bool:
        return self.include_package(
            fragment.origin, fragment.name, fragment.path, caller_location, config
        )
