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

import threading
from typing import Dict

from tree_sitter import Language, Parser

# Language package mapping for tree-sitter 0.25+
# Format: "language_name": ("module_name", "function_name")
LANGUAGE_MODULES: Dict[str, tuple] = {
    "python": ("tree_sitter_python", "language"),
}

_language_cache: Dict[str, Language] = {}
_language_lock = threading.Lock()

# Parsers are not safe to share between threads
_local = threading.local()


def get_language(language: str) -> Language:
    """
    Loads a tree-sitter Language object from its pre-compiled grammar package.
    """
    with _language_lock:
        if language in _language_cache:
            return _language_cache[language]

        module_info = LANGUAGE_MODULES.get(language)
        if not module_info:
            raise ValueError(f"Unsupported language for tree-sitter: {language}")

        module_name, func_name = module_info
        try:
            language_module = __import__(module_name)
        except ImportError:
            raise ImportError(
                f"Language package '{module_name}' not installed. "
                f"Install it with: pip install {module_name.replace('_', '-')}"
            )

        lang = Language(getattr(language_module, func_name)())
        _language_cache[language] = lang
        return lang


def get_parser(language: str = "python") -> Parser:
    """
    Returns a tree-sitter Parser for the calling thread.
    """
    parsers = getattr(_local, "parsers", None)
    if parsers is None:
        parsers = _local.parsers = {}
    if language not in parsers:
        parsers[language] = Parser(get_language(language))
    return parsers[language]
