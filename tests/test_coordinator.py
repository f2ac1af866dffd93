"""Tests for the section coordinator: ordered commits, skip isolation, cancellation."""

import threading
import time

import pytest

from sketchstudio.agents.coordinator import DETAILS_MARKER, SectionCoordinator, append_fragment, initial_code
from sketchstudio.errors import Cancelled, StructureExhausted
from sketchstudio.models import SectionPlan, SketchPlan
from sketchstudio.utils.cancel import CancelToken
from tests.conftest import FakeCompiler

CONTOURS = "let outline : sketch = stroke from (0, 0) to (10, 10)\ntrace outline"


def _plan(*titles, neighbors=None):
    neighbors = neighbors or {}
    return SketchPlan(
        title="Test",
        contour_code=CONTOURS,
        sections=tuple(SectionPlan(t, f"{t} details", tuple(neighbors.get(t, ()))) for t in titles),
    )


def _fragments(mapping):
    """expand callable returning a fixed fragment per section title."""

    def _expand(plan, section):
        value = mapping[section.title]
        if isinstance(value, BaseException):
            raise value
        return value

    return _expand


def _validate_with(compiler):
    return lambda candidate, section: compiler.compile(candidate, f"expanded_{section.slug}")


class TestCodeAssembly:
    def test_initial_code_has_marker(self):
        assert initial_code("trace a") == f"trace a\n\n{DETAILS_MARKER}\n"

    def test_append_fragment_labels_section(self):
        assert append_fragment("base", "Tower", "trace t") == "base\n\n# Section: Tower\ntrace t"


class TestSectionCoordinator:
    def test_all_sections_incorporated_in_order(self):
        plan = _plan("One", "Two", "Three")
        coordinator = SectionCoordinator(
            _fragments({"One": "trace one", "Two": "trace two", "Three": "trace three"}),
            _validate_with(FakeCompiler()),
        )

        result = coordinator.run(plan)

        assert result.report() == {"One": "incorporated", "Two": "incorporated", "Three": "incorporated"}
        assert result.code.index("trace one") < result.code.index("trace two") < result.code.index("trace three")
        assert result.code.startswith(CONTOURS)

    def test_middle_section_failure_skipped(self):
        """Section 2 of 3 fails whole-artifact validation and never reaches the code."""
        plan = _plan("One", "Two", "Three")
        compiler = FakeCompiler()
        coordinator = SectionCoordinator(
            _fragments({"One": "trace one", "Two": "trace BROKEN", "Three": "trace three"}),
            _validate_with(compiler),
        )

        result = coordinator.run(plan)

        assert result.report() == {"One": "incorporated", "Two": "skipped", "Three": "incorporated"}
        assert "trace one" in result.code
        assert "trace three" in result.code
        assert "BROKEN" not in result.code
        skipped = result.sections[1]
        assert skipped.diagnostics == ("error: unexpected token in expanded_two",)

    def test_section_three_validated_against_last_committed_code(self):
        plan = _plan("One", "Two", "Three")
        compiler = FakeCompiler()
        coordinator = SectionCoordinator(
            _fragments({"One": "trace one", "Two": "trace BROKEN", "Three": "trace three"}),
            _validate_with(compiler),
        )

        coordinator.run(plan)

        third_candidate = compiler.calls[2][1]
        assert "trace one" in third_candidate
        assert "BROKEN" not in third_candidate

    def test_failure_does_not_alter_unrelated_sections(self):
        sections = {"A": "trace a", "B": "trace BROKEN", "C": "trace c", "D": "trace d"}
        with_failure = SectionCoordinator(_fragments(sections), _validate_with(FakeCompiler())).run(
            _plan("A", "B", "C", "D")
        )
        without = SectionCoordinator(_fragments(sections), _validate_with(FakeCompiler())).run(
            _plan("A", "C", "D")
        )

        assert with_failure.code == without.code
        report = with_failure.report()
        del report["B"]
        assert report == without.report()

    def test_expansion_error_skips_section(self, quiet_log, log_stream):
        plan = _plan("One", "Two")
        error = StructureExhausted("no code", phase="section 'One'", attempts=3)
        coordinator = SectionCoordinator(
            _fragments({"One": error, "Two": "trace two"}),
            _validate_with(FakeCompiler()),
            log=quiet_log,
        )

        result = coordinator.run(plan)

        assert result.report() == {"One": "skipped", "Two": "incorporated"}
        assert "no code" in result.sections[0].reason
        assert "Failed to expand section One" in log_stream.getvalue()

    def test_no_sections_returns_contours_with_marker(self):
        result = SectionCoordinator(_fragments({}), _validate_with(FakeCompiler())).run(_plan())
        assert result.code == initial_code(CONTOURS)
        assert result.report() == {}

    def test_cancel_propagates_and_stops(self):
        cancel = CancelToken()
        plan = _plan("One", "Two")

        def _expand(plan, section):
            cancel.cancel()
            return "trace x"

        with pytest.raises(Cancelled):
            SectionCoordinator(_expand, _validate_with(FakeCompiler())).run(plan, cancel=cancel)

    def test_cancelled_from_expand_is_not_a_skip(self):
        coordinator = SectionCoordinator(_fragments({"One": Cancelled()}), _validate_with(FakeCompiler()))
        with pytest.raises(Cancelled):
            coordinator.run(_plan("One"))

    def test_parallel_generation_keeps_commit_order(self):
        plan = _plan("Slow", "Fast", "Broken")
        active = []
        peak = []
        lock = threading.Lock()

        def _expand(plan, section):
            with lock:
                active.append(section.title)
                peak.append(len(active))
            time.sleep(0.2 if section.title == "Slow" else 0.01)
            with lock:
                active.remove(section.title)
            return "trace BROKEN" if section.title == "Broken" else f"trace {section.slug}"

        compiler = FakeCompiler()
        result = SectionCoordinator(_expand, _validate_with(compiler), workers=3).run(plan)

        assert [s.title for s in result.sections] == ["Slow", "Fast", "Broken"]
        assert result.report() == {"Slow": "incorporated", "Fast": "incorporated", "Broken": "skipped"}
        assert result.code.index("trace slow") < result.code.index("trace fast")
        assert max(peak) > 1
