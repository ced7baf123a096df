"""Tests for stripping unsupported JSON schema keywords from tool declarations."""

from shared.helper.schema_sanitizer import sanitize, sanitize_for_provider

SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "title": "Args",
    "additionalProperties": False,
    "properties": {
        "title": {"type": "string", "default": "untitled"},
        "limit": {"type": "integer", "exclusiveMinimum": 0},
        "tags": {"type": "array", "items": {"type": "string", "const": "x"}},
    },
    "required": ["title"],
}


class TestSanitize:
    def test_google(self):
        result = sanitize_for_provider(SCHEMA, "google")

        assert result == {
            "type": "object",
            "properties": {
                "title": {"type": "string"},
                "limit": {"type": "integer"},
                "tags": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["title"],
        }

    def test_property_names_are_kept(self):
        """A property called like a keyword is not removed."""
        result = sanitize({"properties": {"default": {"type": "string", "default": "a"}}}, ["default"])
        assert result == {"properties": {"default": {"type": "string"}}}

    def test_input_is_not_modified(self):
        sanitize_for_provider(SCHEMA, "google")
        assert "$schema" in SCHEMA
        assert SCHEMA["properties"]["title"]["default"] == "untitled"

    def test_openai_only_drops_schema_uri(self):
        result = sanitize_for_provider(SCHEMA, "openai")

        assert "$schema" not in result
        assert result["additionalProperties"] is False
        assert result["properties"]["limit"]["exclusiveMinimum"] == 0

    def test_unknown_provider(self):
        assert sanitize_for_provider(SCHEMA, "other") == SCHEMA

    def test_lists_and_scalars(self):
        assert sanitize([{"title": "a", "type": "string"}, 3], ["title"]) == [{"type": "string"}, 3]
        assert sanitize("text", ["title"]) == "text"
