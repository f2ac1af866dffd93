"""Section coordinator: expands plan sections and merges them into one artifact.

Sections are committed strictly in plan order. Each candidate (accumulated
code + new fragment) is validated as a whole; a failing section is skipped
and the next one builds on the last committed code. Fragment generation may
run ahead in a thread pool because it only sees the original contours.
"""

from concurrent.futures import ThreadPoolExecutor

from sketchstudio.errors import StudioError
from sketchstudio.models import AccumulatedArtifact, SectionOutcome, SketchPlan
from sketchstudio.utils.cancel import checkpoint

DETAILS_MARKER = "# === EXPANDED DETAILS ==="


def initial_code(contours: str) -> str:
    return f"{contours}\n\n{DETAILS_MARKER}\n"


def append_fragment(base: str, title: str, fragment: str) -> str:
    return f"{base}\n\n# Section: {title}\n{fragment}"


class SectionCoordinator:
    """One pass over a plan's sections.

    Args:
        expand: (plan, section) -> fragment code. May raise StudioError.
        validate: (candidate code, section) -> CompileOutcome.
        workers: >1 generates fragments concurrently; commits stay ordered.
    """

    def __init__(self, expand, validate, log=None, workers: int = 1):
        self.expand = expand
        self.validate = validate
        self.log = log
        self.workers = max(1, int(workers))

    def _generate(self, plan, section):
        """Return (fragment, None) or (None, error message)."""
        try:
            return self.expand(plan, section), None
        except StudioError as exc:
            return None, str(exc)

    def _fragments(self, plan: SketchPlan, executor):
        """Yield (section, fragment, error) in plan order."""
        if executor is None:
            for section in plan.sections:
                yield (section, *self._generate(plan, section))
            return
        futures = [executor.submit(self._generate, plan, section) for section in plan.sections]
        for section, future in zip(plan.sections, futures):
            yield (section, *future.result())

    def run(self, plan: SketchPlan, cancel=None) -> AccumulatedArtifact:
        accumulated = AccumulatedArtifact(code=initial_code(plan.contour_code))
        total = len(plan.sections)

        executor = ThreadPoolExecutor(max_workers=self.workers) if self.workers > 1 and total > 1 else None
        try:
            for index, (section, fragment, error) in enumerate(self._fragments(plan, executor), start=1):
                checkpoint(cancel)
                if self.log is not None:
                    self.log.info("")
                    self.log.info(f"[{index}/{total}] Expanding: {section.title}")
                accumulated = self._commit_or_skip(accumulated, section, fragment, error)
        finally:
            if executor is not None:
                executor.shutdown(wait=False, cancel_futures=True)

        if self.log is not None:
            self.log.info(
                f"Sections incorporated: {len(accumulated.incorporated)}/{total}"
                + (f" (skipped: {', '.join(accumulated.skipped)})" if accumulated.skipped else "")
            )
        return accumulated

    def _commit_or_skip(self, accumulated, section, fragment, error) -> AccumulatedArtifact:
        if error is not None:
            if self.log is not None:
                self.log.error(f"Failed to expand section {section.title}: {error}")
            return accumulated.skip(SectionOutcome(section.title, False, reason=error))

        candidate = append_fragment(accumulated.code, section.title, fragment)
        try:
            outcome = self.validate(candidate, section)
        except StudioError as exc:
            if self.log is not None:
                self.log.error(f"Compilation error for {section.title}: {exc}")
            return accumulated.skip(SectionOutcome(section.title, False, fragment, reason=str(exc)))

        if not outcome.success:
            if self.log is not None:
                self.log.warn(f"Section {section.title} failed to compile: {list(outcome.errors)}")
            return accumulated.skip(
                SectionOutcome(
                    section.title,
                    False,
                    fragment,
                    diagnostics=tuple(outcome.errors),
                    reason="candidate did not compile",
                )
            )

        if self.log is not None:
            self.log.compilation(outcome)
        return accumulated.commit(candidate, SectionOutcome(section.title, True, fragment))
