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

"""Unit tests for StepCollector using stub collaborators."""

from pathlib import Path

import pytest

from bdd_steps.config.settings import StepSettings
from bdd_steps.errors import PackageRetrievalError, ProjectQueryError, UnitExtractionError
from bdd_steps.steps.collector import StepCollector, caller_location_for
from bdd_steps.steps.progress import ProgressMonitor
from bdd_steps.steps.protocol import (
    CompiledUnit,
    PackageFragment,
    PackageOrigin,
    Project,
    SourceUnit,
    Step,
)

PROJECT = Project(name="shop", root=Path("/proj"))


def _source_fragment(name):
    path = "/proj/src/" + name.replace(".", "/")
    return PackageFragment(
        name=name, origin=PackageOrigin.SOURCE, path=path, root=Path("/proj/src")
    )


def _archive_fragment(name):
    archive = Path("/libs/vendor.whl")
    return PackageFragment(
        name=name,
        origin=PackageOrigin.ARCHIVE,
        path=f"{archive.as_posix()}!/{name.replace('.', '/')}",
        root=archive,
    )


class _StubProjectModel:
    """Fragments and units declared up front; units may be an exception to raise."""

    def __init__(self, fragments=None, units=None, supported=True, fragments_error=None):
        self.fragments = fragments or []
        self.units = units or {}
        self.supported = supported
        self.fragments_error = fragments_error

    def is_supported_project_kind(self, project):
        if isinstance(self.supported, Exception):
            raise self.supported
        return self.supported

    def list_package_fragments(self, project):
        if self.fragments_error is not None:
            raise self.fragments_error
        return list(self.fragments)

    def list_units(self, fragment):
        units = self.units.get(fragment.name, [])
        if isinstance(units, Exception):
            raise units
        return units


class _StubSourceExtractor:
    """Returns the steps registered for a module, or raises the registered error."""

    def __init__(self, steps_by_module, on_extract=None):
        self.steps_by_module = steps_by_module
        self.on_extract = on_extract
        self.calls = []

    def extract_steps(self, project, unit, progress):
        self.calls.append(unit.module)
        if self.on_extract is not None:
            self.on_extract(unit)
        result = self.steps_by_module.get(unit.module, [])
        if isinstance(result, Exception):
            raise result
        return result


class _StubArchiveExtractor:
    def __init__(self, steps_by_module):
        self.steps_by_module = steps_by_module
        self.calls = []

    def extract_steps(self, fragment, unit):
        self.calls.append(unit.module)
        result = self.steps_by_module.get(unit.module, [])
        if isinstance(result, Exception):
            raise result
        return result


def _source_unit(module, package):
    path = Path(f"/proj/src/{module.replace('.', '/')}.py")
    return SourceUnit(path=path, module=module, package=package)


def _compiled_unit(module, package):
    return CompiledUnit(
        archive=Path("/libs/vendor.whl"),
        member=f"{module.replace('.', '/')}.py",
        module=module,
        package=package,
    )


def _steps(module, *texts):
    return [Step(text=text, source=f"{module}.step_{i}") for i, text in enumerate(texts)]


def _collector(model, source_steps=None, archive_steps=None, settings=None, **kwargs):
    return StepCollector(
        project_model=model,
        source_extractor=_StubSourceExtractor(source_steps or {}),
        archive_extractor=_StubArchiveExtractor(archive_steps or {}),
        preferences=settings or StepSettings(),
        **kwargs,
    )


@pytest.fixture
def shop_model():
    fragments = [
        _source_fragment("shop.steps"),
        _source_fragment("shop.checkout"),
        _archive_fragment("vendor.steps"),
        _archive_fragment("other.lib"),
    ]
    units = {
        "shop.steps": [
            _source_unit("shop.steps.cart", "shop.steps"),
            _source_unit("shop.steps.user", "shop.steps"),
        ],
        "shop.checkout": [_source_unit("shop.checkout.pay", "shop.checkout")],
        "vendor.steps": [_compiled_unit("vendor.steps.common", "vendor.steps")],
        "other.lib": [_compiled_unit("other.lib.util", "other.lib")],
    }
    return _StubProjectModel(fragments, units)


SHOP_SOURCE_STEPS = {
    "shop.steps.cart": _steps("shop.steps.cart", "a cart", "an item"),
    "shop.steps.user": _steps("shop.steps.user", "a user"),
    "shop.checkout.pay": _steps("shop.checkout.pay", "they pay"),
}
SHOP_ARCHIVE_STEPS = {
    "vendor.steps.common": _steps("vendor.steps.common", "a vendor step"),
    "other.lib.util": _steps("other.lib.util", "never collected"),
}


class TestCollectorBasics:
    """Tests for the collection pass."""

    def test_collects_source_and_configured_archives_in_order(self, shop_model):
        collector = _collector(
            shop_model,
            SHOP_SOURCE_STEPS,
            SHOP_ARCHIVE_STEPS,
            StepSettings(external_packages="vendor"),
        )

        index = collector.collect(PROJECT)

        assert [s.text for s in index] == [
            "a cart",
            "an item",
            "a user",
            "they pay",
            "a vendor step",
        ]

    def test_archives_skipped_without_external_packages(self, shop_model):
        collector = _collector(shop_model, SHOP_SOURCE_STEPS, SHOP_ARCHIVE_STEPS)

        index = collector.collect(PROJECT)

        assert "a vendor step" not in [s.text for s in index]
        assert collector._archive_extractor.calls == []

    def test_unsupported_project_yields_empty_index(self, shop_model):
        shop_model.supported = False
        collector = _collector(shop_model, SHOP_SOURCE_STEPS)

        assert len(collector.collect(PROJECT)) == 0

    def test_project_query_error_yields_empty_index(self, shop_model):
        shop_model.fragments_error = ProjectQueryError("broken build metadata")
        collector = _collector(shop_model, SHOP_SOURCE_STEPS)

        assert len(collector.collect(PROJECT)) == 0

    def test_supported_check_error_yields_empty_index(self, shop_model):
        shop_model.supported = OSError("permission denied")
        collector = _collector(shop_model, SHOP_SOURCE_STEPS)

        assert len(collector.collect(PROJECT)) == 0

    def test_returns_fresh_unfrozen_index(self, shop_model):
        collector = _collector(shop_model, SHOP_SOURCE_STEPS)

        first = collector.collect(PROJECT)
        second = collector.collect(PROJECT)

        assert first is not second
        assert not first.frozen


class TestCollectorDeterminism:
    """Repeated passes produce the same membership and order."""

    def test_idempotent(self, shop_model):
        collector = _collector(
            shop_model,
            SHOP_SOURCE_STEPS,
            SHOP_ARCHIVE_STEPS,
            StepSettings(external_packages="vendor"),
        )

        first = collector.collect(PROJECT).snapshot()
        second = collector.collect(PROJECT).snapshot()

        assert first == second
        assert [s.source for s in first] == [s.source for s in second]

    def test_parallel_matches_sequential_order(self, shop_model):
        settings = StepSettings(external_packages="vendor")
        sequential = _collector(shop_model, SHOP_SOURCE_STEPS, SHOP_ARCHIVE_STEPS, settings)
        parallel = _collector(
            shop_model, SHOP_SOURCE_STEPS, SHOP_ARCHIVE_STEPS, settings, max_workers=4
        )

        expected = [s.source for s in sequential.collect(PROJECT)]

        for _ in range(5):
            assert [s.source for s in parallel.collect(PROJECT)] == expected


class TestCollectorDeduplication:
    """The same step reachable through source and archive is indexed once."""

    def test_source_and_archive_duplicate(self):
        class _ByOriginModel(_StubProjectModel):
            def list_units(self, fragment):
                if fragment.origin is PackageOrigin.ARCHIVE:
                    return [_compiled_unit("shop.steps.shared", "shop.steps")]
                return [_source_unit("shop.steps.shared", "shop.steps")]

        model = _ByOriginModel([_source_fragment("shop.steps"), _archive_fragment("shop.steps")])
        signature = "shop.steps.shared.a_shared_step"
        collector = _collector(
            model,
            {"shop.steps.shared": [Step(text="a shared step", source=signature)]},
            {
                "shop.steps.shared": [
                    Step(text="a shared step", source=signature, origin=PackageOrigin.ARCHIVE)
                ]
            },
            StepSettings(external_packages="shop"),
        )

        index = collector.collect(PROJECT)

        assert len(index) == 1
        assert index.snapshot()[0].origin is PackageOrigin.SOURCE
        assert collector._archive_extractor.calls == ["shop.steps.shared"]

    def test_package_matching_several_external_entries_collected_once(self):
        package = "com.vendor.steps.impl"
        module = f"{package}.login"
        model = _StubProjectModel(
            [_archive_fragment(package)], {package: [_compiled_unit(module, package)]}
        )
        collector = _collector(
            model,
            archive_steps={module: _steps(module, "a login")},
            settings=StepSettings(external_packages="com.vendor, com.vendor.steps"),
        )

        index = collector.collect(PROJECT)

        assert len(index) == 1
        assert collector._archive_extractor.calls == [module]


class TestCollectorFailureIsolation:
    """Unit and package failures shrink the index without aborting the pass."""

    def test_one_failing_compiled_unit_of_five(self):
        modules = [f"vendor.steps.m{i}" for i in range(5)]
        model = _StubProjectModel(
            [_archive_fragment("vendor.steps")],
            {"vendor.steps": [_compiled_unit(m, "vendor.steps") for m in modules]},
        )
        archive_steps = {m: _steps(m, f"step from {m}") for m in modules}
        archive_steps["vendor.steps.m2"] = UnitExtractionError(
            "vendor.whl!/vendor/steps/m2.py", "bad data"
        )
        collector = _collector(
            model, archive_steps=archive_steps, settings=StepSettings(external_packages="vendor")
        )

        index = collector.collect(PROJECT)

        assert [s.text for s in index] == [
            "step from vendor.steps.m0",
            "step from vendor.steps.m1",
            "step from vendor.steps.m3",
            "step from vendor.steps.m4",
        ]

    def test_unexpected_unit_error_is_skipped(self, shop_model):
        source_steps = dict(SHOP_SOURCE_STEPS)
        source_steps["shop.steps.cart"] = ValueError("unexpected")
        collector = _collector(shop_model, source_steps)

        index = collector.collect(PROJECT)

        assert [s.text for s in index] == ["a user", "they pay"]

    def test_package_retrieval_error_skips_package(self, shop_model):
        shop_model.units["shop.steps"] = PackageRetrievalError("cannot list")
        collector = _collector(shop_model, SHOP_SOURCE_STEPS)

        index = collector.collect(PROJECT)

        assert [s.text for s in index] == ["they pay"]

    def test_failing_preferences_fall_back_to_defaults(self, shop_model):
        class BrokenPreferences:
            def get_external_package_names(self):
                raise OSError("store unavailable")

            def get_restrict_to_caller_package(self):
                return False

            def get_allowed_package_names(self):
                return ""

        collector = StepCollector(
            shop_model,
            _StubSourceExtractor(SHOP_SOURCE_STEPS),
            _StubArchiveExtractor(SHOP_ARCHIVE_STEPS),
            BrokenPreferences(),
        )

        index = collector.collect(PROJECT)

        assert len(index) == 4


class TestCollectorScoping:
    """Scope rules applied by the collector."""

    def test_restrict_to_caller_package(self, shop_model):
        collector = _collector(
            shop_model, SHOP_SOURCE_STEPS, settings=StepSettings(restrict_to_caller_package=True)
        )

        index = collector.collect(PROJECT, trigger_file="/proj/src/shop/checkout/pay.feature")

        assert [s.text for s in index] == ["they pay"]

    def test_allowed_packages(self, shop_model):
        collector = _collector(
            shop_model, SHOP_SOURCE_STEPS, settings=StepSettings(allowed_packages="shop.steps")
        )

        index = collector.collect(PROJECT)

        assert [s.text for s in index] == ["a cart", "an item", "a user"]

    def test_caller_location_for(self):
        assert caller_location_for("/proj/features/cart.feature") == "/proj/features"
        assert caller_location_for(None) is None


class TestCollectorCancellation:
    """Cancellation returns the partial index."""

    def test_cancel_between_units(self, shop_model):
        progress = ProgressMonitor()

        def cancel_after_cart(unit):
            if unit.module == "shop.steps.cart":
                progress.cancel()

        collector = StepCollector(
            shop_model,
            _StubSourceExtractor(SHOP_SOURCE_STEPS, on_extract=cancel_after_cart),
            _StubArchiveExtractor({}),
            StepSettings(),
        )

        index = collector.collect(PROJECT, progress=progress)

        assert [s.text for s in index] == ["a cart", "an item"]
        assert progress.worked == 1
        assert index.cancelled

    def test_cancel_after_last_unit_is_not_flagged(self, shop_model):
        progress = ProgressMonitor()

        def cancel_after_pay(unit):
            if unit.module == "shop.checkout.pay":
                progress.cancel()

        collector = StepCollector(
            shop_model,
            _StubSourceExtractor(SHOP_SOURCE_STEPS, on_extract=cancel_after_pay),
            _StubArchiveExtractor({}),
            StepSettings(),
        )

        index = collector.collect(PROJECT, progress=progress)

        assert progress.is_cancelled()
        assert not index.cancelled
        assert [s.text for s in index] == ["a cart", "an item", "a user", "they pay"]

    def test_parallel_cancel_is_flagged(self, shop_model):
        progress = ProgressMonitor()

        def cancel_after_cart(unit):
            if unit.module == "shop.steps.cart":
                progress.cancel()

        collector = StepCollector(
            shop_model,
            _StubSourceExtractor(SHOP_SOURCE_STEPS, on_extract=cancel_after_cart),
            _StubArchiveExtractor({}),
            StepSettings(),
            max_workers=2,
        )

        index = collector.collect(PROJECT, progress=progress)

        assert index.cancelled
        assert "a user" not in [s.text for s in index]

    def test_cancelled_before_start(self, shop_model):
        progress = ProgressMonitor()
        progress.cancel()
        collector = _collector(shop_model, SHOP_SOURCE_STEPS)

        index = collector.collect(PROJECT, progress=progress)

        assert len(index) == 0
        assert index.cancelled

    def test_progress_counts_units(self, shop_model):
        progress = ProgressMonitor()
        collector = _collector(shop_model, SHOP_SOURCE_STEPS)

        collector.collect(PROJECT, progress=progress)

        assert progress.worked == 3
