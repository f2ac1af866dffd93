"""Artist agent: turns descriptions and plan sections into SketchLang via the LLM.

Three turn types share the same orchestrator:
- plan: title, summary, metadata, sections with neighbors, and contour code
- expand_section: new detail code for one section, aligned to the contours
- create_sketch: one complete, detailed sketch (optionally compile-validated)
"""

from sketchstudio.agents.turn import TurnBudget, run_turn
from sketchstudio.models import SectionPlan, SketchPlan
from sketchstudio.utils.parsing import fragment_parser, parse_plan, parse_sketch

CONSTRAINTS = """\
CRITICAL SketchLang constraints (violations will cause compilation errors):
- NO dot notation (vec.x, vec.y) - this does NOT exist
- NO variable reassignment - each variable can only be assigned once
- NO functions or loops - only let bindings and render commands
- Variables must be declared with type: let name : type = value
- Valid types are: number, vec, sketch
- Vectors are created with parentheses: (x, y)"""

PLAN_SYSTEM_PROMPT = """\
You are an expert artist creating sketches using SketchLang, a domain-specific language for pen plotter artwork.

Here is the SketchLang reference:

{lang}

When given a sketch request, you will:
1. Create a detailed plan with title, summary, subject, perspective, and style
2. Define logical sections of the sketch with titles, descriptions, and neighbor relationships
3. Write initial contour SketchLang code that outlines the major shapes

Format your response as follows:

<plan>
<title>Your Sketch Title</title>
<summary>A detailed description of what the sketch depicts</summary>
<subject>The main subject matter</subject>
<perspective>The viewing angle/perspective</perspective>
<style>The artistic style (minimalist, detailed, expressive, etc.)</style>
<metadata>
key1: value1
key2: value2
</metadata>
<sections>
<section>
<title>Section Name</title>
<description>What this section contains</description>
<neighbors>Neighbor1, Neighbor2</neighbors>
</section>
</sections>
</plan>

<contours>
# Your SketchLang code here
# Use comments to mark section boundaries
</contours>

Important notes:
- Coordinates are in mm, typical canvas is 200x200mm
- Use comments liberally to label sections
- Keep contours simple but well defined - details will be added later
- Think about how sections connect at boundaries
- Every section title must be unique

{constraints}
- NO duplicate strokes
- Use unique variable names (e.g., prefix with section name)"""

EXPAND_SYSTEM_PROMPT = """\
You are a detail-focused artist adding depth to sketch sections using SketchLang.

Here is the SketchLang reference:

{lang}

Your task is to expand a section with detailed strokes. You should:
1. Add detail strokes for textures and features
2. Use dashes for shading and tone
3. Maintain consistency with the overall style
4. Ensure strokes align with neighboring sections at boundaries

Provide your SketchLang code inside <code> tags:

<code>
# Your detailed SketchLang code
</code>

Important:
- Do NOT repeat the existing contour code - only write NEW code for this section
- Use trace for clean lines, draw for hand-drawn feel, scribble for sketchy areas
- Dashes orient based on nearby strokes (flow field)
- Use descriptive comments
- Prefix variable names with section name to avoid conflicts (e.g., arm_base, arm_stroke1)

{constraints}"""

SKETCH_SYSTEM_PROMPT = """\
You are an expert sketch artist using SketchLang.

{lang}

Create a COMPLETE, EXTREMELY DETAILED sketch. Include all details, shading, and textures.

FORMAT:
<title>SKETCH TITLE</title>
<summary>Description of the sketch and subject placement.</summary>
<metadata>
<subject>Main subject</subject>
<perspective>View angle</perspective>
<style>Art style</style>
</metadata>
<code>
# Complete SketchLang code with ALL details
</code>

REQUIREMENTS:
- Complete sketch with full detail in one response
- Meaningful anchor point names throughout
- Vector math: let pos : vec = (center of shape) + (offset_x, offset_y)
- Use "center of" for derived positions
- trace = precise lines, draw = organic, scribble = textured
- Use dashes for shading

{constraints}"""

PLAN_USER_PROMPT = """\
Create a sketch plan for the following request:

{description}

Remember to:
1. Provide a detailed summary and metadata
2. Break the sketch into logical sections
3. Create initial contour SketchLang code that outlines the main shapes
4. Use comments in your SketchLang code to label sections"""

EXPAND_USER_PROMPT = """\
Expand this section of the sketch with detailed SketchLang code.

SKETCH OVERVIEW:
Title: {plan.title}
Summary: {plan.summary}
Style: {plan.style}
Perspective: {plan.perspective}

SECTION TO EXPAND:
Title: {section.title}
Description: {section.description}{neighbors}

EXISTING CONTOUR CODE (for reference - do NOT repeat this, only add new code):
{contours}

Write NEW SketchLang code for this section only. Add strokes for details, shading with dashes, and fine details. Your code will be APPENDED to the existing code, so:
- Do NOT redeclare existing variables
- Use unique variable names (prefix with section name, e.g., {section.slug}_point1)
- Reference existing variables if needed for alignment"""

PLAN_TAGS = "<plan> (with <title> and <sections>) and <contours>"
SKETCH_TAGS = "<title>, <summary>, <metadata>, and <code>"
FRAGMENT_TAGS = "<code>"


class Artist:
    """Builds prompts for each kind of turn and runs them through `run_turn`."""

    def __init__(self, gateway, lang_spec: str, budget: TurnBudget | None = None, log=None):
        self.gateway = gateway
        self.lang = lang_spec
        self.budget = budget or TurnBudget()
        self.log = log

    def _format(self, template: str) -> str:
        return template.format(lang=self.lang, constraints=CONSTRAINTS)

    def _logged_turn(self, name: str, system: str, user: str, parse, **kwargs):
        def _go():
            return run_turn(self.gateway, system, user, parse, self.budget, log=self.log, **kwargs)

        if self.log is None:
            return _go()
        with self.log.step(name):
            return _go()

    def plan(self, description: str, cancel=None):
        """Return (SketchPlan, TurnResult) for a sketch request."""
        result = self._logged_turn(
            "Creating sketch plan",
            self._format(PLAN_SYSTEM_PROMPT),
            PLAN_USER_PROMPT.format(description=description),
            parse_plan,
            cancel=cancel,
            phase="planning",
            required_tags=PLAN_TAGS,
        )
        return result.artifact, result

    def expand_section(self, plan: SketchPlan, section: SectionPlan, cancel=None):
        """Return (fragment code, TurnResult) for one section.

        The prompt always carries the plan's original contour code, never the
        accumulated code, so its size does not grow with earlier sections.
        """
        neighbors = ""
        if section.neighbors:
            neighbors = (
                f"\nThis section connects to: {', '.join(section.neighbors)}. "
                "Ensure your strokes align at boundaries."
            )
        user = EXPAND_USER_PROMPT.format(
            plan=plan, section=section, neighbors=neighbors, contours=plan.contour_code
        )
        result = self._logged_turn(
            f"Expanding section: {section.title}",
            self._format(EXPAND_SYSTEM_PROMPT),
            user,
            fragment_parser(section.title),
            cancel=cancel,
            phase=f"section '{section.title}'",
            required_tags=FRAGMENT_TAGS,
        )
        return result.artifact.code, result

    def create_sketch(self, description: str, validate=None, cancel=None):
        """Return (ParsedArtifact, TurnResult) for a complete single-request sketch."""
        result = self._logged_turn(
            "Creating sketch",
            self._format(SKETCH_SYSTEM_PROMPT),
            description,
            parse_sketch,
            validate=validate,
            cancel=cancel,
            phase="sketch",
            required_tags=SKETCH_TAGS,
        )
        return result.artifact, result
