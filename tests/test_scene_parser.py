"""Unit tests for the production-script parser.

Tests cover:
- Parsing well-formed beat blocks
- Summary tag extraction and removal
- Fallbacks for every field the model may omit
- Panel number conversion
"""

import pytest

from src.agents.scene_parser import (
    DEFAULT_CONTEXT_UPDATE,
    DEFAULT_DURATION_LABEL,
    DEFAULT_PAGES_LABEL,
    extract_summary,
    parse_panel_numbers,
    parse_production_script,
    parse_scene_block,
    split_blocks,
)


WELL_FORMED_RESPONSE = """Scene 1: The Silent Rooftop
Panels: 1, 2
Duration: 18 sec
Voice:
"Raat gehri thi. Shehar so raha tha."
---
Scene 2: **A Blade in the Dark**
Panels: 3
Duration: 22 sec
Voice:
"Ek chamak... aur sab kuch badal gaya."
---
[SUMMARY]A lone swordsman watches the city before an ambush.[/SUMMARY]
"""


class TestParseProductionScript:
    """Test parsing of full batch responses."""

    def test_single_block_round_trip(self):
        text = 'Scene 1: T\nPanels: 2, 3\nDuration: 12 sec\nVoice:\n"hello"\n---'

        parsed = parse_production_script(text)

        assert len(parsed.scenes) == 1
        scene = parsed.scenes[0]
        assert scene.id == 1
        assert scene.title == "T"
        assert scene.panel_indices == [1, 2]
        assert scene.pages_label == "Panels 2, 3"
        assert scene.duration_label == "12 sec"
        assert scene.voice_over == "hello"

    def test_well_formed_response(self):
        parsed = parse_production_script(WELL_FORMED_RESPONSE)

        assert [scene.id for scene in parsed.scenes] == [1, 2]
        assert parsed.scenes[0].title == "The Silent Rooftop"
        assert parsed.scenes[1].title == "A Blade in the Dark"
        assert parsed.scenes[1].panel_indices == [2]
        assert parsed.context_update == "A lone swordsman watches the city before an ambush."
        assert parsed.summary_found is True

    def test_summary_never_leaks_into_scenes(self):
        text = 'Scene 1: T\nPanels: 1\nDuration: 5 sec\nVoice:\n"body" [SUMMARY] X [/SUMMARY]'

        parsed = parse_production_script(text)

        assert parsed.context_update == "X"
        assert len(parsed.scenes) == 1
        assert "SUMMARY" not in parsed.scenes[0].voice_over
        assert "X" not in parsed.scenes[0].voice_over
        assert parsed.scenes[0].voice_over == "body"

    def test_ids_start_at_first_id(self):
        parsed = parse_production_script(WELL_FORMED_RESPONSE, first_id=7)
        assert [scene.id for scene in parsed.scenes] == [7, 8]

    def test_empty_response(self):
        parsed = parse_production_script("")

        assert parsed.scenes == []
        assert parsed.context_update == DEFAULT_CONTEXT_UPDATE
        assert parsed.summary_found is False

    def test_none_response(self):
        parsed = parse_production_script(None)
        assert parsed.scenes == []

    def test_blank_blocks_dropped(self):
        text = "---\n\n---\nScene 1: Only\nPanels: 1\nDuration: 3 sec\nVoice:\nx\n---\n   \n---"

        parsed = parse_production_script(text)

        assert len(parsed.scenes) == 1
        assert parsed.scenes[0].id == 1
        assert parsed.scenes[0].title == "Only"

    def test_garbage_text_yields_fallback_scene(self):
        parsed = parse_production_script("I could not read these panels, sorry.")

        assert len(parsed.scenes) == 1
        scene = parsed.scenes[0]
        assert scene.title == "Production Beat 1"
        assert scene.pages_label == DEFAULT_PAGES_LABEL
        assert scene.panel_indices == []
        assert scene.duration_label == DEFAULT_DURATION_LABEL
        assert scene.voice_over == ""


class TestParseSceneBlock:
    """Test single-block parsing and fallbacks."""

    def test_missing_voice_line(self):
        scene = parse_scene_block("Scene 1: Quiet\nPanels: 1\nDuration: 9 sec", 1)

        assert scene.voice_over == ""
        assert scene.title == "Quiet"

    def test_voice_prefix_case_insensitive(self):
        scene = parse_scene_block('Scene 1: A\nPanels: 1\nDuration: 9 sec\nVOICE:\n"loud"', 1)
        assert scene.voice_over == "loud"

    def test_voice_text_on_same_line(self):
        scene = parse_scene_block('Scene 1: A\nPanels: 1\nDuration: 9 sec\nVoice: "inline start\nsecond line"', 1)
        assert scene.voice_over == "inline start\nsecond line"

    def test_multiline_voice_keeps_newlines(self):
        scene = parse_scene_block('Scene 1: A\nPanels: 1\nDuration: 9 sec\nVoice:\n"one\ntwo\nthree"', 1)
        assert scene.voice_over == "one\ntwo\nthree"

    def test_missing_title_uses_fallback(self):
        scene = parse_scene_block("Panels: 1\nDuration: 9 sec", 4)
        assert scene.title == "Production Beat 4"

    def test_empty_title_uses_fallback(self):
        scene = parse_scene_block("Scene 2:   \nPanels: 1\nDuration: 9 sec", 2)
        assert scene.title == "Production Beat 2"

    def test_markdown_emphasis_stripped_from_title(self):
        scene = parse_scene_block("**Scene 1: The Chase**\nPanels: 1\nDuration: 9 sec", 1)
        assert scene.title == "The Chase"

    def test_fields_read_positionally(self):
        """Duration on the panels line is not picked up as a duration."""
        scene = parse_scene_block("Scene 1: A\nDuration: 9 sec\nPanels: 1", 1)

        assert scene.panel_indices == []
        assert scene.pages_label == DEFAULT_PAGES_LABEL
        assert scene.duration_label == DEFAULT_DURATION_LABEL

    def test_missing_duration_uses_fallback(self):
        scene = parse_scene_block("Scene 1: A\nPanels: 1", 1)
        assert scene.duration_label == "15 sec"


class TestExtractSummary:
    """Test summary tag handling."""

    def test_summary_trimmed_and_removed(self):
        context, remaining, found = extract_summary("...body... [SUMMARY]  X  [/SUMMARY]")

        assert context == "X"
        assert found is True
        assert "[SUMMARY]" not in remaining
        assert remaining.strip() == "...body..."

    def test_multiline_summary(self):
        context, _, _ = extract_summary("[SUMMARY]line one\nline two[/SUMMARY]")
        assert context == "line one\nline two"

    def test_missing_summary_uses_default(self):
        context, remaining, found = extract_summary("no tags here")

        assert context == DEFAULT_CONTEXT_UPDATE
        assert remaining == "no tags here"
        assert found is False

    def test_empty_summary_uses_default(self):
        context, _, found = extract_summary("body [SUMMARY]   [/SUMMARY]")

        assert context == DEFAULT_CONTEXT_UPDATE
        assert found is False

    def test_all_tagged_regions_removed(self):
        context, remaining, _ = extract_summary("a [SUMMARY]first[/SUMMARY] b [SUMMARY]second[/SUMMARY] c")

        assert context == "first"
        assert "first" not in remaining
        assert "second" not in remaining


class TestSplitBlocks:
    """Test delimiter handling."""

    def test_longer_dash_runs_are_delimiters(self):
        assert split_blocks("a\n-----\nb") == ["a", "b"]

    def test_inline_dashes_are_not_delimiters(self):
        assert split_blocks("wait --- what\nnext") == ["wait --- what\nnext"]


class TestParsePanelNumbers:
    """Test 1-based to 0-based panel conversion."""

    @pytest.mark.parametrize("text,expected", [
        ("1", [0]),
        ("2, 3", [1, 2]),
        ("4 and 5", [3, 4]),
        ("Panel 7", [6]),
        ("", []),
        ("none", []),
    ])
    def test_conversion(self, text, expected):
        assert parse_panel_numbers(text) == expected

    def test_panel_zero_skipped(self):
        assert parse_panel_numbers("0, 1") == [0]


class TestLineEndings:
    """Test responses with Windows or old Mac line endings."""

    CRLF_RESPONSE = (
        'Scene 1: A\r\nPanels: 1\r\nDuration: 5 sec\r\nVoice:\r\n"a"\r\n---\r\n'
        'Scene 2: B\r\nPanels: 2\r\nDuration: 6 sec\r\nVoice:\r\n"b"\r\n---\r\n'
        '[SUMMARY]Two beats.[/SUMMARY]\r\n'
    )

    def test_crlf_response_split_into_scenes(self):
        parsed = parse_production_script(self.CRLF_RESPONSE)

        assert [scene.title for scene in parsed.scenes] == ["A", "B"]
        assert [scene.voice_over for scene in parsed.scenes] == ["a", "b"]
        assert [scene.panel_indices for scene in parsed.scenes] == [[0], [1]]
        assert parsed.scenes[1].duration_label == "6 sec"
        assert parsed.context_update == "Two beats."

    def test_crlf_voice_keeps_plain_newlines(self):
        parsed = parse_production_script('Scene 1: A\r\nPanels: 1\r\nDuration: 5 sec\r\nVoice:\r\n"one\r\ntwo"')
        assert parsed.scenes[0].voice_over == "one\ntwo"

    def test_bare_carriage_returns(self):
        parsed = parse_production_script('Scene 1: A\rPanels: 1\rDuration: 5 sec\rVoice:\r"a"\r---\rScene 2: B\rPanels: 2')
        assert [scene.title for scene in parsed.scenes] == ["A", "B"]
