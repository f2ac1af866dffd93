"""Structured-response extraction: tags first, fenced blocks and comment tags as fallbacks.

Everything here is pure text in, structured values out.
"""

import re

from sketchstudio.errors import MalformedResponse
from sketchstudio.models import ParsedArtifact, SectionPlan, SketchPlan

_FENCE_RE = re.compile(r"```(?:sketchlang|sketch)?[ \t]*\n(.*?)\n[ \t]*```", re.DOTALL | re.IGNORECASE)

RECOGNIZED_METADATA = ("subject", "perspective", "style")


def _tag_re(tag: str) -> re.Pattern:
    return re.compile(rf"<{tag}>(.*?)</{tag}>", re.DOTALL | re.IGNORECASE)


def extract_tag(text: str, tag: str) -> str:
    """Return the stripped body of the first <tag>...</tag> block, or ''."""
    match = _tag_re(tag).search(text or "")
    return match.group(1).strip() if match else ""


def extract_all_tags(text: str, tag: str) -> list[str]:
    return [m.strip() for m in _tag_re(tag).findall(text or "")]


def extract_fenced(text: str) -> str:
    match = _FENCE_RE.search(text or "")
    return match.group(1).strip() if match else ""


def extract_code(text: str, tags: tuple[str, ...] = ("code",)) -> str:
    """Try each explicit content tag in order, then fall back to a fenced block."""
    for tag in tags:
        code = extract_tag(text, tag)
        if code:
            return code
    return extract_fenced(text)


def extract_comment_tag(code: str, tag: str) -> str:
    """Find `tag` written inside SketchLang comments.

    Handles the one-line form `# <title>Foo</title>` and the block form where
    the opening and closing markers sit on separate comment lines.
    """
    inline = re.search(rf"#\s*<{tag}>(.+?)</{tag}>", code or "", re.IGNORECASE)
    if inline:
        return inline.group(1).strip()

    open_re = re.compile(rf"#\s*<{tag}>", re.IGNORECASE)
    close_re = re.compile(rf"#?\s*</{tag}>", re.IGNORECASE)
    collected = []
    inside = False
    for line in (code or "").splitlines():
        if not inside:
            found = open_re.search(line)
            if found:
                inside = True
                rest = line[found.end():].strip()
                if rest:
                    collected.append(rest)
            continue
        if close_re.search(line):
            break
        cleaned = line.strip().removeprefix("#").strip()
        if cleaned:
            collected.append(cleaned)
    return "\n".join(collected).strip()


def parse_neighbors(text: str) -> tuple[str, ...]:
    """Split a comma-separated neighbor list, keeping first-seen order."""
    seen = []
    for name in (text or "").split(","):
        name = name.strip()
        if name and name not in seen:
            seen.append(name)
    return tuple(seen)


def parse_metadata(block: str) -> dict[str, str]:
    """Read recognized sub-tags and free-form `key: value` lines from a metadata block."""
    metadata = {}
    for key in RECOGNIZED_METADATA:
        value = extract_tag(block, key)
        if value:
            metadata[key] = value

    free_form = block or ""
    for key in RECOGNIZED_METADATA:
        free_form = _tag_re(key).sub("", free_form)
    for line in free_form.splitlines():
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        key, value = key.strip(), value.strip()
        if key and value and key not in metadata:
            metadata[key] = value
    return metadata


def _first_non_empty(*values: str) -> str:
    for value in values:
        if value:
            return value
    return ""


def parse_sketch(text: str) -> ParsedArtifact:
    """Parse a single-shot sketch response (<title>, <summary>, <metadata>, <code>)."""
    code = extract_code(text, ("code",))
    if not code:
        raise MalformedResponse(["code"], "no <code> block found")

    title = _first_non_empty(extract_tag(text, "title"), extract_comment_tag(code, "title"))
    if not title:
        raise MalformedResponse(["title"], "no <title> found")

    summary = _first_non_empty(extract_tag(text, "summary"), extract_comment_tag(code, "summary"))
    metadata = {
        key: value
        for key, value in parse_metadata(extract_tag(text, "metadata")).items()
        if key in RECOGNIZED_METADATA
    }
    return ParsedArtifact(title=title, code=code, summary=summary, metadata=metadata)


def _parse_section(block: str) -> SectionPlan | None:
    title = extract_tag(block, "title")
    if not title:
        return None
    return SectionPlan(
        title=title,
        description=extract_tag(block, "description"),
        neighbors=parse_neighbors(extract_tag(block, "neighbors")),
    )


def parse_plan(text: str) -> SketchPlan:
    """Parse a planning response: a <plan> block plus <contours> code."""
    plan_body = extract_tag(text, "plan")
    if not plan_body:
        raise MalformedResponse(["plan"], "no <plan> section found")

    # Section blocks carry their own <title>; strip them before reading the plan title.
    sections_body = extract_tag(plan_body, "sections")
    header = _tag_re("sections").sub("", plan_body)

    title = extract_tag(header, "title")
    missing = []
    if not title:
        missing.append("title")

    contours = extract_code(text, ("contours", "code"))
    if not contours:
        missing.append("contours")
    if missing:
        raise MalformedResponse(missing)

    sections = []
    seen = set()
    for block in extract_all_tags(sections_body, "section"):
        section = _parse_section(block)
        if section is None:
            continue
        if section.title in seen:
            raise MalformedResponse(
                ["section"],
                f"duplicate section title '{section.title}'; every <section> needs a unique <title>",
            )
        seen.add(section.title)
        sections.append(section)

    metadata = parse_metadata(extract_tag(header, "metadata"))
    return SketchPlan(
        title=title,
        contour_code=contours,
        summary=extract_tag(header, "summary"),
        subject=_first_non_empty(extract_tag(header, "subject"), metadata.pop("subject", "")),
        perspective=_first_non_empty(extract_tag(header, "perspective"), metadata.pop("perspective", "")),
        style=_first_non_empty(extract_tag(header, "style"), metadata.pop("style", "")),
        metadata=metadata,
        sections=tuple(sections),
    )


def fragment_parser(default_title: str):
    """Build a parser for section-expansion responses.

    Only code is mandatory; the title falls back to a comment tag and then to
    the section's own title.
    """

    def _parse(text: str) -> ParsedArtifact:
        code = extract_code(text, ("code",))
        if not code:
            raise MalformedResponse(["code"], "no <code> block found")
        title = _first_non_empty(
            extract_tag(text, "title"), extract_comment_tag(code, "title"), default_title
        )
        if not title:
            raise MalformedResponse(["title"], "no <title> found")
        return ParsedArtifact(title=title, code=code, summary=extract_comment_tag(code, "summary"))

    return _parse
