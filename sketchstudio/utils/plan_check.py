"""Plan check: deterministic, informational review of a sketch plan.

Returns a list of issues. Nothing here blocks a run: neighbor titles may
legitimately refer to parts of the drawing that are not separate sections.
"""

from sketchstudio.models import SketchPlan


def check_plan(plan: SketchPlan) -> list[str]:
    """Return a list of issue strings. Empty list = no findings."""
    issues = []

    if not plan.sections:
        issues.append("Plan defines no sections; only the contours will be drawn.")
        return issues

    titles = {section.title for section in plan.sections}

    for section in plan.sections:
        if not section.description:
            issues.append(f"Section '{section.title}' has no description.")
        for neighbor in section.neighbors:
            if neighbor == section.title:
                issues.append(f"Section '{section.title}' lists itself as a neighbor.")
            elif neighbor not in titles:
                issues.append(
                    f"Section '{section.title}' neighbors '{neighbor}' "
                    "which is not a section in this plan."
                )

    return issues
