"""Output formatter: per-sketch folders and a Markdown run summary."""

import re
from pathlib import Path

from sketchstudio.state import StudioState

SUMMARY_NAME = "summary.md"
MAX_DIR_LEN = 50


def sanitize(title: str) -> str:
    """Lowercase, spaces to underscores, keep [a-z0-9_-], cap at 50 chars."""
    name = (title or "").lower().replace(" ", "_")
    name = re.sub(r"[^a-z0-9_-]", "", name)
    return name[:MAX_DIR_LEN] or "sketch"


def allocate_sketch_dir(output_dir: Path, title: str) -> Path:
    """Create a non-conflicting folder for this sketch under `output_dir`."""
    stem = sanitize(title)
    path = Path(output_dir) / stem
    counter = 1
    while path.exists():
        counter += 1
        path = Path(output_dir) / f"{stem}_{counter}"
    path.mkdir(parents=True)
    return path


def _render_outcome(lines: list, heading: str, outcome) -> None:
    lines.append(f"## {heading}")
    lines.append("")
    if outcome is None:
        lines.append("*Not run.*")
    elif outcome.success:
        if outcome.svg_path:
            lines.append(f"- **SVG:** `{outcome.svg_path}`")
        if outcome.gcode_path:
            lines.append(f"- **G-code:** `{outcome.gcode_path}`")
        for warning in outcome.warnings:
            lines.append(f"- **Warning:** {warning}")
    else:
        lines.append("Compilation failed:")
        lines.append("")
        for line in outcome.errors or outcome.diagnostics:
            lines.append(f"- {line}")
    lines.append("")


def render_summary(state: StudioState) -> str:
    """Render the final studio state as a Markdown summary."""
    lines = []
    plan = state.get("plan")
    sketch = state.get("sketch")

    lines.append(f"# {state.get('title') or 'Untitled Sketch'}")
    lines.append("")
    lines.append(f"**Request:** {state.get('description', '')}")
    if state.get("request_from"):
        lines.append(f"**Requested by:** {state['request_from']}")
    lines.append(f"**Mode:** {state.get('mode', 'sections')}")
    lines.append(f"**Status:** {state.get('status', 'in_progress')}")
    lines.append("")

    summary = (plan.summary if plan else "") or (sketch.summary if sketch else "")
    if summary:
        lines.append("## Summary")
        lines.append("")
        lines.append(summary)
        lines.append("")

    details = {}
    if plan is not None:
        details = {"subject": plan.subject, "perspective": plan.perspective, "style": plan.style}
        details.update(plan.metadata)
    elif sketch is not None:
        details = dict(sketch.metadata)
    details = {key: value for key, value in details.items() if value}
    if details:
        lines.append("## Metadata")
        lines.append("")
        for key, value in details.items():
            lines.append(f"- **{key}:** {value}")
        lines.append("")

    if plan is not None:
        _render_outcome(lines, "Contours", state.get("contour_outcome"))

        accumulated = state.get("accumulated")
        decisions = {s.title: s for s in accumulated.sections} if accumulated else {}
        if plan.sections:
            lines.append("## Sections")
            lines.append("")
            lines.append("| Section | Neighbors | Result |")
            lines.append("|---------|-----------|--------|")
            for section in plan.sections:
                outcome = decisions.get(section.title)
                if outcome is None:
                    result = "not attempted"
                elif outcome.incorporated:
                    result = "incorporated"
                else:
                    result = f"skipped ({outcome.reason})" if outcome.reason else "skipped"
                neighbors = ", ".join(section.neighbors) or "-"
                lines.append(f"| {section.title} | {neighbors} | {result} |")
            lines.append("")

    _render_outcome(lines, "Final Artifact", state.get("final_outcome"))
    return "\n".join(lines)


def write_summary(state: StudioState, sketch_dir: Path) -> Path:
    """Write the Markdown summary into the sketch folder and return its path."""
    path = Path(sketch_dir) / SUMMARY_NAME
    path.write_text(render_summary(state), encoding="utf-8")
    return path
