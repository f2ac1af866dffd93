"""Studio state: single source of truth passed through the graph."""

from typing import Literal, Optional, TypedDict

from sketchstudio.models import AccumulatedArtifact, CompileOutcome, ParsedArtifact, SketchPlan


class StudioState(TypedDict):
    description: str  # Original request. Immutable after init.
    request_from: str  # Who asked for the sketch (e.g. a social handle); may be empty.
    mode: Literal["sections", "single"]
    title: str
    sketch_dir: str  # Per-sketch folder name under the output directory.
    plan: Optional[SketchPlan]
    sketch: Optional[ParsedArtifact]  # Single-mode artifact.
    contour_outcome: Optional[CompileOutcome]
    accumulated: Optional[AccumulatedArtifact]
    final_code: str
    final_outcome: Optional[CompileOutcome]
    status: Literal["in_progress", "complete", "contour_failed"]


def initial_state(description: str, mode: str = "sections", request_from: str = "") -> StudioState:
    return {
        "description": description,
        "request_from": request_from,
        "mode": mode,
        "title": "",
        "sketch_dir": "",
        "plan": None,
        "sketch": None,
        "contour_outcome": None,
        "accumulated": None,
        "final_code": "",
        "final_outcome": None,
        "status": "in_progress",
    }
