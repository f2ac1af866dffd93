"""Shared fixtures for the Sketch Studio test suite."""

import io
import sys
from unittest.mock import patch

import pytest

from sketchstudio.models import CompileOutcome, Completion
from sketchstudio.utils.log import StudioLog


PLAN_RESPONSE = """\
<plan>
<title>Lighthouse at Dusk</title>
<summary>A lighthouse on a rocky point under an evening sky.</summary>
<subject>Lighthouse</subject>
<perspective>Three-quarter view from the shore</perspective>
<style>Hatched ink</style>
<metadata>
mood: calm
canvas: 200x200
</metadata>
<sections>
<section>
<title>Tower</title>
<description>Tapered tower body with a lantern room</description>
<neighbors>Rocks, Sky</neighbors>
</section>
<section>
<title>Rocks</title>
<description>Jagged rocks around the base</description>
<neighbors>Tower</neighbors>
</section>
<section>
<title>Sky</title>
<description>Streaked clouds and light beams</description>
<neighbors>Tower</neighbors>
</section>
</sections>
</plan>

<contours>
let tower_base : sketch = stroke from (80, 160) to (120, 160)
trace tower_base
</contours>
"""

SKETCH_RESPONSE = """\
<title>A Single Line</title>
<summary>One straight horizontal line across the canvas.</summary>
<metadata>
<subject>Line</subject>
<perspective>Flat</perspective>
<style>Minimal</style>
</metadata>
<code>
let line : sketch = stroke from (10, 100) to (190, 100)
trace line
</code>
"""

SKETCH_MISSING_TITLE = """\
<summary>One straight line.</summary>
<code>
let line : sketch = stroke from (10, 100) to (190, 100)
trace line
</code>
"""


def fragment_response(code: str) -> str:
    return f"<code>\n{code}\n</code>"


def completion(content: str, truncated: bool = False, input_tokens: int = 10, output_tokens: int = 20) -> Completion:
    return Completion(
        content=content,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        truncated=truncated,
        stop_reason="max_tokens" if truncated else "end_turn",
    )


class ScriptedGateway:
    """CompletionGateway double that replays a fixed script.

    Script items are strings, Completions, or exceptions (raised when reached).
    Every call is recorded as (system, messages, max_tokens).
    """

    def __init__(self, script):
        self.script = list(script)
        self.calls = []

    def complete(self, system, messages, max_tokens, cancel=None):
        self.calls.append((system, list(messages), max_tokens))
        if not self.script:
            raise AssertionError("ScriptedGateway ran out of responses")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, Completion):
            return item
        return completion(item)


class RoutingGateway:
    """Gateway double that answers by matching a substring of the last user message."""

    def __init__(self, routes: dict, default: str = ""):
        self.routes = routes
        self.default = default
        self.calls = []

    def complete(self, system, messages, max_tokens, cancel=None):
        self.calls.append((system, list(messages), max_tokens))
        prompt = messages[-1].content
        for needle, reply in self.routes.items():
            if needle in prompt:
                if isinstance(reply, BaseException):
                    raise reply
                return completion(reply)
        return completion(self.default)


class FakeCompiler:
    """In-memory Compiler double: code containing BROKEN fails, WARN adds a warning."""

    def __init__(self, output_dir=None):
        self.output_dir = output_dir
        self.calls = []

    def compile(self, code, name, options=None, cancel=None):
        self.calls.append((name, code))
        warnings = ("warning: unused variable",) if "WARN" in code else ()
        if "BROKEN" in code:
            error = f"error: unexpected token in {name}"
            return CompileOutcome(False, diagnostics=warnings + (error,), errors=(error,), warnings=warnings)
        sub = getattr(options, "sub_dir", "") or ""
        base = f"{self.output_dir}/{sub}/{name}" if self.output_dir else name
        return CompileOutcome(
            True,
            diagnostics=warnings,
            warnings=warnings,
            svg_path=f"{base}.svg",
            gcode_path=f"{base}.txt",
        )

    def validate(self, code, cancel=None):
        outcome = self.compile(code, "_validate_temp", cancel=cancel)
        return outcome.success, list(outcome.errors)


FAKE_COMPILER_SCRIPT = """\
#!{python}
import sys
import time

source = open(sys.argv[1]).read()
out = sys.argv[3]
if "SLOW" in source:
    time.sleep(10)
if "WARN" in source:
    sys.stderr.write("warning: unused variable 'x'\\n")
if "BROKEN" in source:
    sys.stderr.write("line 1: syntax error near BROKEN\\n")
    sys.exit(1)
if "SILENT_FAIL" in source:
    sys.exit(2)
if "--svg" in sys.argv:
    open(out + ".svg", "w").write("<svg></svg>")
if "--gcode" in sys.argv:
    open(out + ".txt", "w").write("G0 X0 Y0")
"""


@pytest.fixture
def compiler_exe(tmp_path):
    """A stand-in compiler executable that mimics the real CLI contract."""
    exe = tmp_path / "fake_compiler"
    exe.write_text(FAKE_COMPILER_SCRIPT.format(python=sys.executable))
    exe.chmod(0o755)
    return exe


@pytest.fixture
def log_stream():
    return io.StringIO()


@pytest.fixture
def quiet_log(log_stream):
    return StudioLog(out=log_stream, verbose=True)


@pytest.fixture
def mock_config(tmp_path):
    """Patch the config singleton with test-friendly values."""
    test_config = {
        "provider": "anthropic",
        "model": "test-model",
        "max_tokens": 1024,
        "max_retries": 2,
        "max_continuations": 3,
        "llm_max_retries": 0,
        "llm_backoff_seconds": 0,
        "compiler_path": "",
        "output_dir": str(tmp_path / "output"),
        "mode": "sections",
        "expand_workers": 1,
        "verbose": False,
    }
    with patch("sketchstudio.config._config", test_config):
        yield test_config
