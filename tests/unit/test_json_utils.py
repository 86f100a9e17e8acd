"""
Unit tests for src/common/json_utils.py

Tests layered JSON parsing for LLM outputs including:
- Strict parsing and markdown code block extraction
- Balanced extraction that ignores brackets inside strings
- Truncation repair (cut back to the last complete element, inject fields)
- json-repair fallback for malformed but complete payloads
- Error handling for inputs with no JSON
"""

import pytest

from src.common.json_utils import (
    close_open_brackets,
    extract_json_fragment,
    load_llm_json,
    parse_llm_json,
    repair_truncated_json,
    strip_markdown_blocks,
)


# ===== TESTS: Strict Parsing =====

class TestStrictParsing:
    """Tests for well-formed payloads."""

    def test_parses_simple_json(self):
        """Should parse simple valid JSON."""
        assert parse_llm_json('{"key": "value"}') == {"key": "value"}

    def test_reports_strict_strategy(self):
        """Valid JSON should not be flagged as repaired."""
        result = load_llm_json('{"message": "hola"}')
        assert result.strategy == "strict"
        assert result.repaired is False
        assert result.truncated is False

    def test_strips_json_markdown_block(self):
        """Should strip ```json ... ``` wrapper."""
        assert parse_llm_json('```json\n{"key": "value"}\n```') == {"key": "value"}

    def test_extracts_object_from_surrounding_prose(self):
        """Should find the payload inside free text."""
        text = 'Claro, aquí tienes: {"message": "hola", "nextPhase": "exploration"} ¡Suerte!'
        assert parse_llm_json(text) == {"message": "hola", "nextPhase": "exploration"}

    def test_parses_array_payload(self):
        """Should extract an array when '[' is the opener."""
        result = load_llm_json('Preguntas: [{"question": "a"}, {"question": "b"}]', "[")
        assert result.value == [{"question": "a"}, {"question": "b"}]


# ===== TESTS: Extraction =====

class TestExtractJsonFragment:
    """Tests for balanced, string-aware extraction."""

    def test_ignores_braces_inside_strings(self):
        """Braces in string values must not end the object early."""
        fragment, complete = extract_json_fragment('x {"message": "usa {llaves} aquí"} y')
        assert fragment == '{"message": "usa {llaves} aquí"}'
        assert complete is True

    def test_handles_escaped_quotes(self):
        """Escaped quotes inside strings should not toggle string state."""
        fragment, complete = extract_json_fragment('{"message": "dijo \\"hola\\" {"}')
        assert complete is True
        assert fragment.endswith("}")

    def test_returns_first_object_only(self):
        """Only the first balanced object is returned."""
        fragment, _ = extract_json_fragment('{"a": 1} {"b": 2}')
        assert fragment == '{"a": 1}'

    def test_reports_unterminated_fragment(self):
        """A fragment that never closes is returned with complete=False."""
        fragment, complete = extract_json_fragment('{"message": "hola", "nextPhase": "career_match')
        assert complete is False
        assert fragment.startswith('{"message"')

    def test_raises_when_no_opener(self):
        """Text with no object should raise ValueError."""
        with pytest.raises(ValueError, match="No JSON object"):
            extract_json_fragment("no hay json aquí")


# ===== TESTS: Truncation Repair =====

class TestTruncationRepair:
    """Tests for replies cut off before their closing bracket."""

    def test_drops_field_truncated_mid_value(self):
        """The documented example: the truncated phase field is dropped."""
        result = load_llm_json('{"message":"hola","nextPhase":"career_match')
        assert result.value == {"message": "hola"}
        assert result.strategy == "truncation_repair"
        assert result.truncated is True

    def test_keeps_complete_nested_elements(self):
        """Elements before the cut survive, including closed nested objects."""
        text = '{"message": "hola", "careerSuggestions": [{"careerId": "1"}, {"careerId": "2", "name": "Mate'
        result = load_llm_json(text)
        assert result.value["message"] == "hola"
        assert result.value["careerSuggestions"] == [{"careerId": "1"}, {"careerId": "2"}]

    def test_injects_fields_from_hook(self):
        """Fields returned by the truncation hook are added at top level."""
        text = '{"message": "listo", "careerSuggestions": [{"careerId": "1"}, {"careerId": "2"'
        result = load_llm_json(text, on_truncation=lambda fragment: {"nextPhase": "complete"})
        assert result.value["nextPhase"] == "complete"
        assert result.value["careerSuggestions"] == [{"careerId": "1"}]

    def test_hook_not_called_for_complete_payload(self):
        """The hook only runs for truncated fragments."""
        calls = []
        load_llm_json('{"message": "hola"}', on_truncation=lambda fragment: calls.append(fragment))
        assert calls == []

    def test_repairs_truncated_array(self):
        """Truncated arrays keep their complete items."""
        result = load_llm_json('[{"question": "a"}, {"question": "b", "importance"', "[")
        assert result.value == [{"question": "a"}, {"question": "b"}]

    def test_repair_returns_none_when_nothing_parses(self):
        """Unrepairable fragments yield None rather than raising."""
        assert repair_truncated_json("{'broken") is None


class TestCloseOpenBrackets:
    """Tests for bracket closing."""

    def test_closes_nested_structures_in_order(self):
        assert close_open_brackets('{"a": [1, {"b": 2') == '{"a": [1, {"b": 2}]}'

    def test_terminates_open_string(self):
        assert close_open_brackets('{"a": "ho') == '{"a": "ho"}'

    def test_drops_dangling_separator(self):
        assert close_open_brackets('{"a": 1,') == '{"a": 1}'

    def test_fills_missing_value(self):
        assert close_open_brackets('{"a":') == '{"a": null}'


# ===== TESTS: json-repair Fallback =====

class TestLibraryRepair:
    """Tests for malformed but complete payloads."""

    def test_repairs_single_quotes_and_trailing_comma(self):
        """Should repair single quotes plus a trailing comma."""
        result = load_llm_json("{'name': 'test',}")
        assert result.value == {"name": "test"}
        assert result.strategy == "json_repair"

    def test_repairs_trailing_comma_in_array(self):
        """Should repair trailing comma in an array."""
        assert parse_llm_json('{"items": [1, 2, 3,]}') == {"items": [1, 2, 3]}


# ===== TESTS: Error Handling =====

class TestErrorHandling:
    """Tests for inputs with no recoverable payload."""

    def test_raises_on_empty_string(self):
        with pytest.raises(ValueError, match="Empty input"):
            parse_llm_json("")

    def test_raises_on_whitespace_only(self):
        with pytest.raises(ValueError, match="Empty input"):
            parse_llm_json("   \n\t  ")

    def test_raises_on_plain_text(self):
        with pytest.raises(ValueError):
            parse_llm_json("Lo siento, no puedo ayudarte con eso.")


class TestStripMarkdownBlocks:
    """Tests for the markdown wrapper helper."""

    def test_strips_plain_fence(self):
        assert strip_markdown_blocks('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_leaves_plain_text(self):
        assert strip_markdown_blocks("  hola  ") == "hola"
