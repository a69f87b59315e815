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

"""Step discovery settings.

Settings live in a ``.bdd-steps.yaml`` file at the project root:

```yaml
external_packages: "com.vendor.steps, com.lib"
restrict_to_caller_package: true
allowed_packages: "shop.steps; shop.shared"
source_roots: [src, features]
archives: ["libs/*.whl"]
skip_dirs: [fixtures]
max_workers: 4
```

Package lists may also be given as YAML lists. A missing or unreadable
file yields default settings.
"""

import logging
import threading
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = ".bdd-steps.yaml"


class StepSettings(BaseModel):
    """User settings for step discovery.

    Implements the preference source interface directly, so a settings
    object can be handed to a collector as is.
    """

    external_packages: str = Field(
        default="",
        description="Package name prefixes to scan inside dependency archives (comma separated)",
    )
    restrict_to_caller_package: bool = Field(
        default=False,
        description="Only scan source packages at or below the feature file's folder",
    )
    allowed_packages: str = Field(
        default="",
        description="Source package name prefixes allowed to contribute steps (; separated)",
    )
    source_roots: List[str] = Field(
        default_factory=lambda: ["."], description="Source roots relative to the project root"
    )
    archives: List[str] = Field(
        default_factory=list, description="Archive glob patterns relative to the project root"
    )
    skip_dirs: List[str] = Field(
        default_factory=list, description="Extra directory names skipped in source roots"
    )
    max_workers: int = Field(default=1, ge=1, description="Packages extracted concurrently")

    @field_validator("external_packages", "allowed_packages", mode="before")
    @classmethod
    def _join_package_list(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return ", ".join(str(item) for item in value)
        return value

    def get_external_package_names(self) -> str:
        return self.external_packages

    def get_restrict_to_caller_package(self) -> bool:
        return self.restrict_to_caller_package

    def get_allowed_package_names(self) -> str:
        return self.allowed_packages

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "StepSettings":
        """Load settings from a YAML file.

        Args:
            path: Settings file

        Returns:
            Loaded settings, or defaults if the file is missing or invalid
        """
        path = Path(path)
        if not path.exists():
            return cls()

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load step settings from {path}: {e}")
            return cls()

        if data is None:
            return cls()
        if not isinstance(data, dict):
            logger.error(f"Step settings in {path} must be a mapping, got {type(data).__name__}")
            return cls()

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            logger.error(f"Invalid step settings in {path}: {e}")
            return cls()

    def save_yaml(self, path: Union[str, Path]) -> None:
        """Write settings to a YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False)


class YamlPreferenceSource:
    """Preference source backed by a settings file.

    The file is read on construction and on ``reload()`` only. Each reload
    swaps in a complete settings object, so a pass reading preferences
    never sees a mix of old and new values.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._settings = StepSettings.from_yaml(self.path)

    @classmethod
    def for_project_root(cls, root: Union[str, Path]) -> "YamlPreferenceSource":
        return cls(Path(root) / SETTINGS_FILE_NAME)

    @property
    def settings(self) -> StepSettings:
        with self._lock:
            return self._settings

    def snapshot(self) -> StepSettings:
        """Settings object for one collection pass."""
        return self.settings

    def reload(self) -> StepSettings:
        settings = StepSettings.from_yaml(self.path)
        with self._lock:
            self._settings = settings
        logger.debug(f"Reloaded step settings from {self.path}")
        return settings

    def get_external_package_names(self) -> str:
        return self.settings.external_packages

    def get_restrict_to_caller_package(self) -> bool:
        return self.settings.restrict_to_caller_package

    def get_allowed_package_names(self) -> str:
        return self.settings.allowed_packages


def load_settings(root: Optional[Union[str, Path]] = None) -> StepSettings:
    """Load settings for a project root (defaults to the working directory)."""
    base = Path(root) if root is not None else Path.cwd()
    return StepSettings.from_yaml(base / SETTINGS_FILE_NAME)
