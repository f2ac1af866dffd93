"""Tests for graph routing: _route_entry, _route_after_contours, _set_contour_failed."""

from sketchstudio.graph import _route_after_contours, _route_entry, _set_contour_failed
from sketchstudio.models import CompileOutcome
from sketchstudio.state import initial_state


class TestRouteEntry:
    def test_sections_mode_plans_first(self):
        assert _route_entry(initial_state("a cat")) == "planning"

    def test_single_mode_sketches_directly(self):
        assert _route_entry(initial_state("a cat", mode="single")) == "sketching"


class TestRouteAfterContours:
    def test_success_goes_to_expand(self):
        state = initial_state("a cat")
        state["contour_outcome"] = CompileOutcome(True, svg_path="c.svg")
        assert _route_after_contours(state) == "expand"

    def test_failure_stops(self):
        state = initial_state("a cat")
        state["contour_outcome"] = CompileOutcome(False, errors=("bad",))
        assert _route_after_contours(state) == "contour_failed"

    def test_missing_outcome_stops(self):
        assert _route_after_contours(initial_state("a cat")) == "contour_failed"


class TestSetContourFailed:
    def test_sets_status(self):
        assert _set_contour_failed(initial_state("a cat")) == {"status": "contour_failed"}
