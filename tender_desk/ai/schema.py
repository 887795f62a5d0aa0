"""Provider-agnostic response schemas.

A ``SchemaSpec`` is written once per business call and translated by each
adapter: OpenAI, DeepSeek and Anthropic get a JSON-Schema dict (as a prompt
instruction), Gemini gets its own response-schema dialect.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class SchemaType(str, Enum):
    OBJECT = "object"
    ARRAY = "array"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"


@dataclass
class SchemaSpec:
    type: SchemaType
    properties: dict[str, SchemaSpec] = field(default_factory=dict)
    items: Optional[SchemaSpec] = None
    required: list[str] = field(default_factory=list)
    enum: Optional[list[str]] = None
    description: Optional[str] = None

    def to_json_schema(self) -> dict[str, Any]:
        return self._render(str.lower)

    def to_gemini_schema(self) -> dict[str, Any]:
        """Gemini spells the type names in upper case."""
        return self._render(str.upper)

    def _render(self, case) -> dict[str, Any]:
        out: dict[str, Any] = {"type": case(self.type.value)}
        if self.description:
            out["description"] = self.description
        if self.enum:
            out["enum"] = list(self.enum)
        if self.properties:
            out["properties"] = {name: prop._render(case) for name, prop in self.properties.items()}
        if self.items is not None:
            out["items"] = self.items._render(case)
        if self.required:
            out["required"] = list(self.required)
        return out


def string_schema(description: str | None = None, enum: list[str] | None = None) -> SchemaSpec:
    return SchemaSpec(SchemaType.STRING, enum=enum, description=description)


def number_schema(description: str | None = None) -> SchemaSpec:
    return SchemaSpec(SchemaType.NUMBER, description=description)


def array_schema(items: SchemaSpec, description: str | None = None) -> SchemaSpec:
    return SchemaSpec(SchemaType.ARRAY, items=items, description=description)


def object_schema(properties: dict[str, SchemaSpec], required: list[str] | None = None) -> SchemaSpec:
    return SchemaSpec(SchemaType.OBJECT, properties=properties, required=list(required or []))


# ── JSON coercion ───────────────────────────────────────────────────

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?```$", re.DOTALL)


def coerce_json(text: str) -> str:
    """Return ``text`` reduced to one valid JSON document.

    Models asked for JSON still wrap it in code fences or add a sentence of
    preamble. Fences are stripped first; failing that, the span from the
    first ``{``/``[`` to the last matching ``}``/``]`` is tried.

    Raises:
        ValueError: no JSON document could be recovered.
    """
    candidate = (text or "").strip()
    fenced = _FENCE_RE.match(candidate)
    if fenced:
        candidate = fenced.group(1).strip()

    try:
        json.loads(candidate)
        return candidate
    except json.JSONDecodeError:
        pass

    starts = [i for i in (candidate.find("{"), candidate.find("[")) if i != -1]
    if starts:
        start = min(starts)
        closer = "}" if candidate[start] == "{" else "]"
        end = candidate.rfind(closer)
        if end > start:
            snippet = candidate[start:end + 1]
            try:
                json.loads(snippet)
                return snippet
            except json.JSONDecodeError:
                pass
    raise ValueError(f"Response is not valid JSON: {candidate[:80]!r}")
