"""Studio: composition root that runs the generation graph end to end."""

import time
from dataclasses import dataclass
from pathlib import Path

from sketchstudio.agents.artist import Artist
from sketchstudio.agents.coordinator import SectionCoordinator
from sketchstudio.agents.turn import TurnBudget
from sketchstudio.compiler import CompileOptions, SketchCompiler
from sketchstudio.errors import ContourCompileError, TurnError
from sketchstudio.gateway import build_gateway
from sketchstudio.graph import build_graph
from sketchstudio.models import AccumulatedArtifact, CompileOutcome, SketchPlan
from sketchstudio.state import StudioState, initial_state
from sketchstudio.utils.cancel import CancelToken
from sketchstudio.utils.formatter import allocate_sketch_dir, sanitize, write_summary
from sketchstudio.utils.langspec import load_lang_spec
from sketchstudio.utils.log import StudioLog, truncate
from sketchstudio.utils.plan_check import check_plan
from sketchstudio.utils.validator import validate_input

CONTOURS_NAME = "contours"
FINAL_NAME = "final"


@dataclass(frozen=True)
class StudioResult:
    title: str
    sketch_dir: Path
    status: str
    summary_path: Path
    plan: SketchPlan | None
    accumulated: AccumulatedArtifact | None
    final_code: str
    final_outcome: CompileOutcome | None

    @property
    def report(self) -> dict[str, str]:
        return self.accumulated.report() if self.accumulated else {}


class Studio:
    """Sequences planning, contour compile, section expansion and final compile.

    Collaborators (gateway, compiler, log, cancel token) can be injected;
    otherwise they are built from `config`.
    """

    def __init__(
        self,
        config: dict,
        *,
        gateway=None,
        compiler=None,
        lang_spec: str | None = None,
        log: StudioLog | None = None,
        cancel: CancelToken | None = None,
        api_key: str | None = None,
    ):
        self.config = config
        self.verbose = bool(config.get("verbose", False))
        self.log = log or StudioLog(verbose=self.verbose)
        self.cancel = cancel or CancelToken()

        self.output_dir = Path(config.get("output_dir", "./output")).expanduser().resolve()
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.gateway = gateway or build_gateway(config, api_key=api_key, log=self.log.child("gateway"))
        self.compiler = compiler or SketchCompiler(config.get("compiler_path", ""), str(self.output_dir))
        self.artist = Artist(
            self.gateway,
            lang_spec or load_lang_spec(),
            TurnBudget.from_config(config),
            log=self.log.child("artist"),
        )
        self.coordinator = SectionCoordinator(
            self._expand_section,
            self._validate_candidate,
            log=self.log,
            workers=config.get("expand_workers", 1),
        )
        self.graph = build_graph(self)
        self._sketch_dir = ""

    # --- helpers ---

    def _options(self) -> CompileOptions:
        return CompileOptions(gen_svg=True, gen_gcode=True, sub_dir=self._sketch_dir)

    def _sketch_path(self) -> Path:
        return self.output_dir / self._sketch_dir

    def _save_debug(self, filename: str, content: str) -> None:
        if not self.verbose:
            return
        path = self._sketch_path() / filename
        path.write_text(content, encoding="utf-8")
        self.log.debug(f"Saved {path}")

    def _open_sketch_dir(self, title: str) -> str:
        self._sketch_dir = allocate_sketch_dir(self.output_dir, title).name
        return self._sketch_dir

    def _expand_section(self, plan, section) -> str:
        code, _ = self.artist.expand_section(plan, section, cancel=self.cancel)
        return code

    def _validate_candidate(self, candidate: str, section) -> CompileOutcome:
        name = f"expanded_{sanitize(section.title)}"
        outcome = self.compiler.compile(candidate, name, self._options(), cancel=self.cancel)
        if not outcome.success:
            self._save_debug(f"{name}_failed.sketch", candidate)
        return outcome

    # --- graph nodes ---

    def plan_node(self, state: StudioState) -> dict:
        self.log.phase("PHASE 1: Planning")
        plan, turn = self.artist.plan(state["description"], cancel=self.cancel)
        sketch_dir = self._open_sketch_dir(plan.title)

        self.log.info(f"Title: {plan.title}")
        self.log.info(f"Output folder: {sketch_dir}")
        self.log.info(f"Summary: {truncate(plan.summary, 100)}")
        self.log.info(f"Sections: {len(plan.sections)}")
        for section in plan.sections:
            self.log.section(section.title, truncate(section.description, 60))
        for issue in check_plan(plan):
            self.log.warn(issue)
        self._save_debug("plan_raw.txt", turn.text)

        return {"plan": plan, "title": plan.title, "sketch_dir": sketch_dir}

    def contours_node(self, state: StudioState) -> dict:
        self.log.phase("PHASE 2: Compiling Contours")
        plan = state["plan"]
        with self.log.step("Compiling contours"):
            outcome = self.compiler.compile(plan.contour_code, CONTOURS_NAME, self._options(), cancel=self.cancel)
        self.log.compilation(outcome)
        if not outcome.success:
            self.log.warn(f"Failed contour code kept at: {self._sketch_path() / (CONTOURS_NAME + '.sketch')}")
        return {"contour_outcome": outcome}

    def expand_node(self, state: StudioState) -> dict:
        self.log.phase("PHASE 3: Expanding Sections")
        accumulated = self.coordinator.run(state["plan"], cancel=self.cancel)
        return {"accumulated": accumulated, "final_code": accumulated.code}

    def sketch_node(self, state: StudioState) -> dict:
        self.log.phase("PHASE 1: Creating Sketch")
        sketch, turn = self.artist.create_sketch(
            state["description"],
            validate=lambda code: self.compiler.validate(code, cancel=self.cancel),
            cancel=self.cancel,
        )
        sketch_dir = self._open_sketch_dir(sketch.title)
        self.log.info(f"Title: {sketch.title}")
        self.log.info(f"Output folder: {sketch_dir}")
        self.log.info(f"Attempts used: {turn.attempts}")
        self._save_debug("sketch_raw.txt", turn.text)
        return {"sketch": sketch, "title": sketch.title, "sketch_dir": sketch_dir, "final_code": sketch.code}

    def final_node(self, state: StudioState) -> dict:
        self.log.phase("PHASE 4: Final Compilation")
        with self.log.step("Compiling final sketch"):
            outcome = self.compiler.compile(state["final_code"], FINAL_NAME, self._options(), cancel=self.cancel)
        self.log.compilation(outcome)
        return {"final_outcome": outcome, "status": "complete"}

    # --- entry point ---

    def generate(self, description: str, request_from: str = "", mode: str | None = None) -> StudioResult:
        """Run the full pipeline for one request.

        Raises ContourCompileError if the plan's contours do not compile (the
        summary and contour source are still written), TurnError/GatewayError
        for unrecoverable model failures, and Cancelled on cancellation.
        """
        description = validate_input(description)
        mode = mode or self.config.get("mode", "sections")
        if mode not in ("sections", "single"):
            raise ValueError(f"Unknown mode '{mode}'. Use 'sections' or 'single'.")

        started = time.monotonic()
        self._sketch_dir = ""
        self.log.banner("Starting sketch generation", f"Description: {truncate(description, 200)}")

        try:
            state = self.graph.invoke(initial_state(description, mode, request_from))
        except TurnError as exc:
            # Planning failures happen before the sketch folder exists; this lands in output_dir.
            self._save_debug(f"{sanitize(exc.phase)}_failed_raw.txt", exc.raw_response)
            raise
        sketch_path = self._sketch_path()
        summary_path = write_summary(state, sketch_path)

        if state["status"] == "contour_failed":
            outcome = state["contour_outcome"]
            raise ContourCompileError(
                list(outcome.errors or outcome.diagnostics),
                source_path=str(sketch_path / f"{CONTOURS_NAME}.sketch"),
            )

        final = state["final_outcome"]
        self.log.info("")
        self.log.banner(
            "Generation Complete",
            f"Total time: {time.monotonic() - started:.2f}s",
            f"Output folder: {sketch_path}",
            f"Final SVG: {final.svg_path if final else ''}",
        )
        return StudioResult(
            title=state["title"],
            sketch_dir=sketch_path,
            status=state["status"],
            summary_path=summary_path,
            plan=state["plan"],
            accumulated=state["accumulated"],
            final_code=state["final_code"],
            final_outcome=final,
        )
