"""Removal of JSON schema keywords a chat provider rejects in tool declarations.

Tool schemas discovered from MCP servers are written for generic JSON
schema consumers. Gemini in particular rejects declarations containing
keywords outside its OpenAPI subset, so they are stripped before a tool is
handed to the provider.
"""

from typing import Any, Iterable

SCHEMA_DENYLIST: dict[str, frozenset[str]] = {
    "google": frozenset({
        "$schema",
        "$id",
        "$ref",
        "$defs",
        "$comment",
        "definitions",
        "additionalProperties",
        "unevaluatedProperties",
        "patternProperties",
        "propertyNames",
        "exclusiveMinimum",
        "exclusiveMaximum",
        "const",
        "default",
        "examples",
        "title",
        "if",
        "then",
        "else",
        "not",
        "contentEncoding",
        "contentMediaType",
    }),
    "openai": frozenset({"$schema"}),
    "ollama": frozenset({"$schema"}),
}


def sanitize(schema: Any, denylist: Iterable[str]) -> Any:
    """Return a copy of ``schema`` without any denylisted keyword, at any depth.

    Keys of a ``properties`` mapping are property names, not keywords, and are
    always kept.

    Args:
        schema (Any): A JSON schema (or any fragment of one).
        denylist (Iterable[str]): Keywords to remove.

    Returns:
        Any: The sanitized copy. The input is not modified.
    """
    return _sanitize(schema, frozenset(denylist))


def sanitize_for_provider(schema: Any, provider: str) -> Any:
    return sanitize(schema, SCHEMA_DENYLIST.get(provider, frozenset()))


def _sanitize(node: Any, denylist: frozenset[str]) -> Any:
    if isinstance(node, list):
        return [_sanitize(item, denylist) for item in node]
    if not isinstance(node, dict):
        return node

    cleaned: dict = {}
    for key, value in node.items():
        if key in denylist:
            continue
        if key == "properties" and isinstance(value, dict):
            cleaned[key] = {name: _sanitize(prop, denylist) for name, prop in value.items()}
        else:
            cleaned[key] = _sanitize(value, denylist)
    return cleaned
