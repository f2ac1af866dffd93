"""LangGraph StateGraph definition for the studio pipeline.

sections mode:  planning -> contours -> expand -> final
                                  \\-> contour_failed
single mode:    sketching -> final

Node names must differ from state keys, hence "planning"/"sketching".
"""

from langgraph.graph import END, START, StateGraph

from sketchstudio.state import StudioState


def _route_entry(state: StudioState) -> str:
    """Conditional entry: pick the pipeline for the requested mode."""
    return "sketching" if state["mode"] == "single" else "planning"


def _route_after_contours(state: StudioState) -> str:
    """Section expansion needs compiled contours to align against."""
    outcome = state.get("contour_outcome")
    if outcome is not None and outcome.success:
        return "expand"
    return "contour_failed"


def _set_contour_failed(state: StudioState) -> dict:
    return {"status": "contour_failed"}


def build_graph(nodes):
    """Wire the studio's node callables into a compiled graph.

    `nodes` provides plan_node, contours_node, expand_node, sketch_node and
    final_node, each taking the state and returning a partial update.
    """
    workflow = StateGraph(StudioState)

    workflow.add_node("planning", nodes.plan_node)
    workflow.add_node("contours", nodes.contours_node)
    workflow.add_node("expand", nodes.expand_node)
    workflow.add_node("sketching", nodes.sketch_node)
    workflow.add_node("final", nodes.final_node)
    workflow.add_node("contour_failed", _set_contour_failed)

    workflow.add_conditional_edges(
        START,
        _route_entry,
        {"planning": "planning", "sketching": "sketching"},
    )

    workflow.add_edge("planning", "contours")
    workflow.add_conditional_edges(
        "contours",
        _route_after_contours,
        {"expand": "expand", "contour_failed": "contour_failed"},
    )
    workflow.add_edge("expand", "final")
    workflow.add_edge("sketching", "final")
    workflow.add_edge("final", END)
    workflow.add_edge("contour_failed", END)

    return workflow.compile()
