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

"""Unit tests for Step identity and StepIndex."""

import pytest

from bdd_steps.steps.index import StepIndex
from bdd_steps.steps.protocol import (
    PackageOrigin,
    Step,
    StepKeyword,
    StepMatcher,
    strip_step_keyword,
)


def _step(text, source="shop.steps.cart.add_item", **kwargs):
    return Step(text=text, source=source, **kwargs)


class TestStepIdentity:
    """Step equality is pattern text plus origin signature."""

    def test_equal_across_origins(self):
        from_source = _step("a cart", origin=PackageOrigin.SOURCE, file_path="src/cart.py")
        from_archive = _step(
            "a cart", origin=PackageOrigin.ARCHIVE, file_path="libs/shop.whl!/cart.py"
        )

        assert from_source == from_archive
        assert hash(from_source) == hash(from_archive)

    def test_different_signature_not_equal(self):
        assert _step("a cart") != _step("a cart", source="shop.steps.other.add_item")

    def test_different_text_not_equal(self):
        assert _step("a cart") != _step("an empty cart")

    def test_immutable(self):
        step = _step("a cart")
        with pytest.raises(AttributeError):
            step.text = "changed"


class TestStepMatching:
    """Tests for matching feature-file lines against patterns."""

    def test_strip_step_keyword(self):
        assert strip_step_keyword("  Given a cart") == "a cart"
        assert strip_step_keyword("And a cart") == "a cart"
        assert strip_step_keyword("* a cart") == "a cart"
        assert strip_step_keyword("a cart") == "a cart"

    def test_parse_pattern(self):
        step = _step("a cart with {count:d} items", matcher=StepMatcher.PARSE)

        assert step.matches("Given a cart with 3 items")
        assert not step.matches("Given a cart with items")

    def test_regex_pattern(self):
        step = _step(r"^the total is (?P<total>\d+)$", matcher=StepMatcher.RE)

        assert step.matches("Then the total is 42")
        assert not step.matches("Then the total is forty")

    def test_string_pattern_is_exact(self):
        step = _step("the cart is empty (really)", matcher=StepMatcher.STRING)

        assert step.matches("Then the cart is empty (really)")
        assert not step.matches("Then the cart is empty")

    def test_invalid_regex_never_matches(self):
        step = _step("broken (pattern", matcher=StepMatcher.RE)

        assert not step.matches("Given broken (pattern")


class TestStepIndex:
    """Tests for the ordered, deduplicated step container."""

    def test_add_ignores_duplicates(self):
        index = StepIndex()

        assert index.add(_step("a cart")) is True
        assert index.add(_step("a cart", line_number=99)) is False
        assert len(index) == 1

    def test_first_insertion_wins(self):
        index = StepIndex()
        index.add(_step("a cart", origin=PackageOrigin.SOURCE))
        index.add(_step("a cart", origin=PackageOrigin.ARCHIVE))

        assert index.snapshot()[0].origin == PackageOrigin.SOURCE

    def test_preserves_insertion_order(self):
        steps = [_step(text) for text in ("c", "a", "b")]
        index = StepIndex(steps)

        assert [s.text for s in index.snapshot()] == ["c", "a", "b"]

    def test_add_all_counts_new_steps(self):
        index = StepIndex([_step("a")])

        added = index.add_all([_step("a"), _step("b"), _step("b"), _step("c")])

        assert added == 2
        assert [s.text for s in index] == ["a", "b", "c"]

    def test_merge_appends_after_existing(self):
        first = StepIndex([_step("a"), _step("b")])
        second = StepIndex([_step("b"), _step("c")])

        assert first.merge(second) == 1
        assert [s.text for s in first] == ["a", "b", "c"]

    def test_snapshot_is_read_only_copy(self):
        index = StepIndex([_step("a")])
        snapshot = index.snapshot()
        index.add(_step("b"))

        assert isinstance(snapshot, tuple)
        assert len(snapshot) == 1

    def test_contains(self):
        index = StepIndex([_step("a")])

        assert _step("a", line_number=10) in index
        assert _step("b") not in index

    def test_frozen_index_rejects_mutation(self):
        index = StepIndex([_step("a")]).freeze()

        assert index.frozen
        with pytest.raises(TypeError):
            index.add(_step("b"))
        with pytest.raises(TypeError):
            index.add_all([_step("c")])
        assert len(index) == 1

    def test_find_matching(self):
        index = StepIndex(
            [
                _step("a cart with {n} items", source="s.one"),
                _step("a user named {name}", source="s.two"),
                _step(r"a cart with \d+ items", source="s.three", matcher=StepMatcher.RE),
            ]
        )

        matches = index.find_matching("Given a cart with 2 items")

        assert [s.source for s in matches] == ["s.one", "s.three"]

    def test_suggest_by_prefix_and_keyword(self):
        index = StepIndex(
            [
                _step("a cart", source="s.given", keyword=StepKeyword.GIVEN),
                _step("a checkout", source="s.when", keyword=StepKeyword.WHEN),
                _step("a coupon", source="s.any", keyword=StepKeyword.STEP),
                _step("the total", source="s.then", keyword=StepKeyword.THEN),
            ]
        )

        assert [s.source for s in index.suggest("Given A C")] == ["s.given", "s.when", "s.any"]
        assert [s.source for s in index.suggest("a c", StepKeyword.GIVEN)] == [
            "s.given",
            "s.any",
        ]
