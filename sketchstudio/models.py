"""Value types shared across the pipeline. All are immutable once built."""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class Message:
    role: str  # "user" | "assistant"
    content: str

    def as_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Completion:
    """One gateway response."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    truncated: bool = False
    stop_reason: str = ""
    model: str = ""
    duration: float = 0.0


def _freeze(mapping: Mapping[str, str] | None) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class ParsedArtifact:
    """A titled code artifact extracted from a response.

    Parsers never build one with an empty title or empty code.
    """

    title: str
    code: str
    summary: str = ""
    metadata: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.title.strip() or not self.code.strip():
            raise ValueError("ParsedArtifact requires a non-empty title and code.")
        object.__setattr__(self, "metadata", _freeze(self.metadata))


@dataclass(frozen=True)
class SectionPlan:
    title: str
    description: str = ""
    neighbors: tuple[str, ...] = ()

    @property
    def slug(self) -> str:
        """Variable-name prefix suggested to the model for this section."""
        return self.title.strip().lower().replace(" ", "_")


@dataclass(frozen=True)
class SketchPlan:
    title: str
    contour_code: str
    summary: str = ""
    subject: str = ""
    perspective: str = ""
    style: str = ""
    metadata: Mapping[str, str] = field(default_factory=dict)
    sections: tuple[SectionPlan, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "metadata", _freeze(self.metadata))
        object.__setattr__(self, "sections", tuple(self.sections))

    @property
    def code(self) -> str:
        return self.contour_code


@dataclass(frozen=True)
class CompileOutcome:
    """Result of one compiler invocation.

    `diagnostics` keeps every stderr line in order; `errors` and `warnings`
    are the same lines split by keyword.
    """

    success: bool
    diagnostics: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    svg_path: str = ""
    gcode_path: str = ""
    stdout: str = ""
    stderr: str = ""

    @property
    def artifact_path(self) -> str:
        return self.svg_path or self.gcode_path


@dataclass(frozen=True)
class SectionOutcome:
    title: str
    incorporated: bool
    fragment: str = ""
    diagnostics: tuple[str, ...] = ()
    reason: str = ""


@dataclass(frozen=True)
class AccumulatedArtifact:
    """Running combined code plus the per-section decision so far."""

    code: str
    sections: tuple[SectionOutcome, ...] = ()

    def commit(self, code: str, outcome: SectionOutcome) -> "AccumulatedArtifact":
        return replace(self, code=code, sections=self.sections + (outcome,))

    def skip(self, outcome: SectionOutcome) -> "AccumulatedArtifact":
        return replace(self, sections=self.sections + (outcome,))

    @property
    def incorporated(self) -> list[str]:
        return [s.title for s in self.sections if s.incorporated]

    @property
    def skipped(self) -> list[str]:
        return [s.title for s in self.sections if not s.incorporated]

    def report(self) -> dict[str, str]:
        return {
            s.title: "incorporated" if s.incorporated else "skipped"
            for s in self.sections
        }
