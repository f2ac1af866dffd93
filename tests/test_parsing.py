"""Tests for structured-response extraction: tags, fences, comment tags, plans."""

import pytest

from sketchstudio.errors import MalformedResponse
from sketchstudio.utils.parsing import (
    extract_code,
    extract_comment_tag,
    extract_fenced,
    extract_tag,
    fragment_parser,
    parse_metadata,
    parse_neighbors,
    parse_plan,
    parse_sketch,
)
from tests.conftest import PLAN_RESPONSE, SKETCH_MISSING_TITLE, SKETCH_RESPONSE


class TestExtractTag:
    def test_returns_stripped_body(self):
        assert extract_tag("<title>  Hello  </title>", "title") == "Hello"

    def test_case_insensitive_and_multiline(self):
        assert extract_tag("<CODE>\nline1\nline2\n</CODE>", "code") == "line1\nline2"

    def test_first_match_wins(self):
        assert extract_tag("<title>A</title><title>B</title>", "title") == "A"

    def test_missing_returns_empty(self):
        assert extract_tag("no tags here", "title") == ""
        assert extract_tag(None, "title") == ""


class TestExtractCode:
    def test_prefers_explicit_tag_over_fence(self):
        text = "<code>tagged</code>\n```sketchlang\nfenced\n```"
        assert extract_code(text) == "tagged"

    def test_falls_back_to_sketchlang_fence(self):
        text = "Here you go:\n```sketchlang\ntrace line\n```\nDone."
        assert extract_code(text) == "trace line"

    def test_falls_back_to_plain_fence(self):
        assert extract_fenced("```\ndraw x\n```") == "draw x"

    def test_tags_tried_in_order(self):
        text = "<code>second</code><contours>first</contours>"
        assert extract_code(text, ("contours", "code")) == "first"

    def test_empty_tag_falls_through(self):
        assert extract_code("<code>   </code>```\nfenced\n```") == "fenced"

    def test_nothing_found(self):
        assert extract_code("just prose") == ""


class TestExtractCommentTag:
    def test_inline_form(self):
        code = "# <title>Tower Detail</title>\ntrace x"
        assert extract_comment_tag(code, "title") == "Tower Detail"

    def test_block_form(self):
        code = "# <summary>\n# Bricks and windows\n# on the tower\n# </summary>\ntrace x"
        assert extract_comment_tag(code, "summary") == "Bricks and windows\non the tower"

    def test_block_form_strips_one_comment_marker(self):
        code = "# <summary>\n## Heading\n#   indented\n# </summary>"
        assert extract_comment_tag(code, "summary") == "# Heading\nindented"

    def test_absent(self):
        assert extract_comment_tag("trace x", "title") == ""


class TestHelpers:
    def test_neighbors_split_and_deduped(self):
        assert parse_neighbors(" Rocks, Sky ,Rocks,, ") == ("Rocks", "Sky")

    def test_neighbors_empty(self):
        assert parse_neighbors("") == ()

    def test_metadata_mixes_sub_tags_and_key_values(self):
        block = "<subject>Cat</subject>\nmood: sleepy\nnot a pair\n"
        assert parse_metadata(block) == {"subject": "Cat", "mood": "sleepy"}

    def test_metadata_sub_tag_wins_over_free_form(self):
        block = "<style>Ink</style>\nstyle: pencil"
        assert parse_metadata(block)["style"] == "Ink"


class TestParseSketch:
    def test_valid_response(self):
        artifact = parse_sketch(SKETCH_RESPONSE)
        assert artifact.title == "A Single Line"
        assert artifact.code.startswith("let line : sketch")
        assert artifact.summary.startswith("One straight")
        assert dict(artifact.metadata) == {"subject": "Line", "perspective": "Flat", "style": "Minimal"}

    def test_missing_code_raises(self):
        with pytest.raises(MalformedResponse) as exc_info:
            parse_sketch("<title>Nothing</title>")
        assert exc_info.value.missing == ["code"]

    def test_missing_title_raises(self):
        with pytest.raises(MalformedResponse) as exc_info:
            parse_sketch(SKETCH_MISSING_TITLE)
        assert exc_info.value.missing == ["title"]

    def test_title_from_comment_fallback(self):
        text = "```sketchlang\n# <title>Fence Title</title>\ntrace x\n```"
        assert parse_sketch(text).title == "Fence Title"

    def test_unrecognized_metadata_dropped(self):
        text = SKETCH_RESPONSE.replace("<style>Minimal</style>", "<style>Minimal</style>\nmood: calm")
        assert "mood" not in parse_sketch(text).metadata


class TestParsePlan:
    def test_valid_plan(self):
        plan = parse_plan(PLAN_RESPONSE)
        assert plan.title == "Lighthouse at Dusk"
        assert plan.subject == "Lighthouse"
        assert plan.style == "Hatched ink"
        assert plan.contour_code.startswith("let tower_base")
        assert [s.title for s in plan.sections] == ["Tower", "Rocks", "Sky"]
        assert plan.sections[0].neighbors == ("Rocks", "Sky")
        assert dict(plan.metadata) == {"mood": "calm", "canvas": "200x200"}

    def test_plan_title_not_taken_from_section(self):
        text = PLAN_RESPONSE.replace("<title>Lighthouse at Dusk</title>", "")
        with pytest.raises(MalformedResponse) as exc_info:
            parse_plan(text)
        assert exc_info.value.missing == ["title"]

    def test_missing_plan_block(self):
        with pytest.raises(MalformedResponse) as exc_info:
            parse_plan("<contours>trace x</contours>")
        assert exc_info.value.missing == ["plan"]

    def test_missing_contours(self):
        text = PLAN_RESPONSE.split("<contours>")[0]
        with pytest.raises(MalformedResponse) as exc_info:
            parse_plan(text)
        assert exc_info.value.missing == ["contours"]

    def test_contours_from_code_tag(self):
        text = PLAN_RESPONSE.replace("<contours>", "<code>").replace("</contours>", "</code>")
        assert parse_plan(text).contour_code.startswith("let tower_base")

    def test_untitled_sections_dropped(self):
        text = PLAN_RESPONSE.replace("<title>Sky</title>", "")
        assert [s.title for s in parse_plan(text).sections] == ["Tower", "Rocks"]

    def test_duplicate_section_titles_rejected(self):
        text = PLAN_RESPONSE.replace("<title>Sky</title>", "<title>Rocks</title>")
        with pytest.raises(MalformedResponse) as exc_info:
            parse_plan(text)
        assert exc_info.value.missing == ["section"]
        assert "Rocks" in str(exc_info.value)

    def test_plan_without_sections(self):
        text = PLAN_RESPONSE.split("<sections>")[0] + "</plan>\n<contours>trace x</contours>"
        plan = parse_plan(text)
        assert plan.sections == ()


class TestFragmentParser:
    def test_code_only_uses_default_title(self):
        artifact = fragment_parser("Tower")("<code>trace t</code>")
        assert artifact.title == "Tower"
        assert artifact.code == "trace t"

    def test_comment_title_preferred_over_default(self):
        artifact = fragment_parser("Tower")("<code>\n# <title>Tower Bricks</title>\ntrace t\n</code>")
        assert artifact.title == "Tower Bricks"

    def test_missing_code_raises(self):
        with pytest.raises(MalformedResponse) as exc_info:
            fragment_parser("Tower")("I could not draw that.")
        assert exc_info.value.missing == ["code"]
