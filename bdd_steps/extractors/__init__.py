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

"""Step extractors for editable source files and archive members."""

from bdd_steps.extractors.archive import ArchiveStepExtractor
from bdd_steps.extractors.source import TreeSitterStepExtractor

__all__ = ["ArchiveStepExtractor", "TreeSitterStepExtractor"]
