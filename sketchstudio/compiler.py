"""Compile gate: wraps the external SketchLang compiler executable."""

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from sketchstudio.errors import Cancelled, CompilerError
from sketchstudio.models import CompileOutcome
from sketchstudio.utils.cancel import POLL_SECONDS

VALIDATE_NAME = "_validate_temp"
_ARTIFACT_SUFFIXES = (".sketch", ".svg", ".txt")


@dataclass(frozen=True)
class CompileOptions:
    gen_svg: bool = True
    gen_gcode: bool = True
    sub_dir: str = ""
    position: tuple[float, float] | None = None  # -pos x,y in mm
    size: tuple[float, float] | None = None  # -size w,h in mm


class Compiler(Protocol):
    def compile(self, code: str, name: str, options: CompileOptions | None = None, cancel=None) -> CompileOutcome:
        ...

    def validate(self, code: str, cancel=None) -> tuple[bool, list[str]]:
        ...


def classify(stderr: str) -> tuple[list[str], list[str], list[str]]:
    """Split stderr into (all lines, errors, warnings) by keyword."""
    lines, errors, warnings = [], [], []
    for line in (stderr or "").splitlines():
        line = line.strip()
        if not line:
            continue
        lines.append(line)
        if "warning" in line.lower():
            warnings.append(line)
        else:
            errors.append(line)
    return lines, errors, warnings


def _fmt_pair(pair: tuple[float, float]) -> str:
    return f"{pair[0]:g},{pair[1]:g}"


class SketchCompiler:
    """Runs `<exe> <name>.sketch -o <name> [flags]` inside the output directory.

    Each call is independent: the source is written fresh, the process is
    run once, and nothing is carried over between calls.
    """

    def __init__(self, executable: str, output_dir: str):
        exe = Path(executable).expanduser().resolve()
        if not exe.is_file():
            raise CompilerError(f"compiler not found at: {exe}")
        self.executable = exe
        self.output_dir = Path(output_dir).expanduser().resolve()

    def work_dir(self, options: CompileOptions) -> Path:
        path = self.output_dir / options.sub_dir if options.sub_dir else self.output_dir
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CompilerError(f"failed to create output directory: {exc}") from exc
        return path

    def build_args(self, name: str, options: CompileOptions) -> list[str]:
        args = [str(self.executable), f"{name}.sketch", "-o", name]
        if options.position is not None:
            args += ["-pos", _fmt_pair(options.position)]
        if options.size is not None:
            args += ["-size", _fmt_pair(options.size)]
        if options.gen_gcode:
            args.append("--gcode")
        if options.gen_svg:
            args.append("--svg")
        if not options.gen_gcode and not options.gen_svg:
            args += ["--gcode", "--svg"]
        return args

    def _run(self, args: list[str], cwd: Path, cancel) -> tuple[int, str, str]:
        try:
            proc = subprocess.Popen(
                args,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as exc:
            raise CompilerError(f"unable to run compiler '{self.executable}': {exc}") from exc

        while True:
            try:
                stdout, stderr = proc.communicate(timeout=POLL_SECONDS)
                return proc.returncode, stdout or "", stderr or ""
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.cancelled:
                    proc.kill()
                    proc.communicate()
                    raise Cancelled("compilation cancelled")

    def compile(self, code, name, options=None, cancel=None) -> CompileOutcome:
        options = options or CompileOptions()
        if cancel is not None:
            cancel.raise_if_cancelled()
        work_dir = self.work_dir(options)

        source = work_dir / f"{name}.sketch"
        try:
            source.write_text(code, encoding="utf-8")
        except OSError as exc:
            raise CompilerError(f"failed to write input file: {exc}") from exc

        returncode, stdout, stderr = self._run(self.build_args(name, options), work_dir, cancel)
        lines, errors, warnings = classify(stderr)

        if returncode != 0:
            if not errors:
                message = f"compiler exited with status {returncode}"
                errors.append(message)
                lines.append(message)
            return CompileOutcome(
                success=False,
                diagnostics=tuple(lines),
                errors=tuple(errors),
                warnings=tuple(warnings),
                stdout=stdout,
                stderr=stderr,
            )

        svg = work_dir / f"{name}.svg"
        gcode = work_dir / f"{name}.txt"
        svg_path = str(svg) if svg.exists() else ""
        gcode_path = str(gcode) if gcode.exists() else ""

        wants_any = not options.gen_svg and not options.gen_gcode
        success = (
            (options.gen_svg and bool(svg_path))
            or (options.gen_gcode and bool(gcode_path))
            or (wants_any and bool(svg_path or gcode_path))
        )
        return CompileOutcome(
            success=success,
            diagnostics=tuple(lines),
            errors=tuple(errors),
            warnings=tuple(warnings),
            svg_path=svg_path,
            gcode_path=gcode_path,
            stdout=stdout,
            stderr=stderr,
        )

    def validate(self, code, cancel=None) -> tuple[bool, list[str]]:
        """Compile into throwaway files and report (ok, errors)."""
        try:
            outcome = self.compile(code, VALIDATE_NAME, CompileOptions(), cancel=cancel)
        finally:
            self.cleanup(VALIDATE_NAME)
        return outcome.success, list(outcome.errors)

    def cleanup(self, name: str, sub_dir: str = "") -> None:
        work_dir = self.output_dir / sub_dir if sub_dir else self.output_dir
        for suffix in _ARTIFACT_SUFFIXES:
            (work_dir / f"{name}{suffix}").unlink(missing_ok=True)

    def _read_artifact(self, code, name, sub_dir, *, svg: bool) -> str:
        options = CompileOptions(gen_svg=svg, gen_gcode=not svg, sub_dir=sub_dir)
        outcome = self.compile(code, name, options)
        if not outcome.success:
            raise CompilerError(f"compilation failed: {list(outcome.errors)}")
        path = outcome.svg_path if svg else outcome.gcode_path
        if not path:
            raise CompilerError(f"no {'SVG' if svg else 'G-code'} output generated")
        return Path(path).read_text(encoding="utf-8")

    def compile_to_svg(self, code: str, name: str, sub_dir: str = "") -> str:
        return self._read_artifact(code, name, sub_dir, svg=True)

    def compile_to_gcode(self, code: str, name: str, sub_dir: str = "") -> str:
        return self._read_artifact(code, name, sub_dir, svg=False)
