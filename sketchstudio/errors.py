"""Error taxonomy for the generation pipeline."""


class StudioError(RuntimeError):
    """Base class for every terminal or recoverable pipeline failure."""


class Cancelled(Exception):
    """Raised at a suspension point once cancellation has been requested.

    Not a StudioError: section-level isolation catches StudioError and must
    never swallow a cancellation.
    """


class GatewayError(StudioError):
    """The completion service could not be reached or rejected the request."""


class CompilerError(StudioError):
    """The external compiler could not be located or run."""


class MalformedResponse(StudioError):
    """A response is missing one or more mandatory structural markers."""

    def __init__(self, missing: list[str], detail: str = ""):
        self.missing = list(missing)
        self.detail = detail
        message = detail or "missing required tag(s): " + ", ".join(
            f"<{tag}>" for tag in self.missing
        )
        super().__init__(message)


class TurnError(StudioError):
    """A turn exhausted its retry budget without producing a usable artifact."""

    def __init__(
        self,
        message: str,
        *,
        phase: str,
        attempts: int,
        raw_response: str = "",
        diagnostics: list[str] | None = None,
    ):
        self.phase = phase
        self.attempts = attempts
        self.raw_response = raw_response
        self.diagnostics = list(diagnostics or [])
        super().__init__(f"{phase}: {message}")


class StructureExhausted(TurnError):
    """Could not obtain well-formed output within the retry budget."""


class ValidationExhausted(TurnError):
    """Output never passed validation within the retry budget."""


class ContourCompileError(StudioError):
    """The plan's contour code did not compile; nothing to expand against."""

    def __init__(self, diagnostics: list[str], source_path: str = ""):
        self.diagnostics = list(diagnostics)
        self.source_path = source_path
        joined = "; ".join(self.diagnostics) or "unknown error"
        super().__init__(f"contour compilation failed: {joined}")
