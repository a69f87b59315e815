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

"""Decorator vocabulary shared by the step extractors.

Recognizes behave and pytest-bdd step decorators:

    @given("a user named {name}")
    @when(parsers.re(r"they add (?P<count>\\d+) items?"))
    @behave.then("the cart is empty")
"""

from typing import Dict, Optional, Sequence

from bdd_steps.steps.protocol import StepKeyword, StepMatcher

# Decorator name (lower-cased, last dotted component) -> keyword
STEP_DECORATORS: Dict[str, StepKeyword] = {
    "given": StepKeyword.GIVEN,
    "when": StepKeyword.WHEN,
    "then": StepKeyword.THEN,
    "step": StepKeyword.STEP,
}

# pytest-bdd parser factory name -> matcher
PARSER_FACTORIES: Dict[str, StepMatcher] = {
    "re": StepMatcher.RE,
    "parse": StepMatcher.PARSE,
    "cfparse": StepMatcher.PARSE,
    "string": StepMatcher.STRING,
}

# Bare string arguments use behave's default matcher
DEFAULT_MATCHER = StepMatcher.PARSE


def step_keyword(decorator_name: str) -> Optional[StepKeyword]:
    """Keyword for a decorator name such as ``given`` or ``behave.Then``."""
    return STEP_DECORATORS.get(decorator_name.rsplit(".", 1)[-1].lower())


def parser_matcher(factory_name: str) -> Optional[StepMatcher]:
    """Matcher for a parser factory such as ``parsers.re``."""
    return PARSER_FACTORIES.get(factory_name.rsplit(".", 1)[-1])


def step_signature(module: str, scopes: Sequence[str], function: str) -> str:
    """Origin signature of a step function.

    >>> step_signature("shop.steps.cart", ["CartSteps"], "add_item")
    'shop.steps.cart.CartSteps.add_item'
    """
    return ".".join(part for part in (module, *scopes, function) if part)
