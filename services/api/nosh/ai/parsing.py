"""Tagged parsing of generation output.

Generation output is untrusted text. Callers get back either ``Valid(data)``
or ``Invalid(reason, snippet)`` and decide what a failure means for them.
"""

import json
from dataclasses import dataclass
from typing import Any, Type, Union

from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..core.text import strip_code_fences

SNIPPET_CHARS = 200


@dataclass(frozen=True)
class Valid:
    data: Any


@dataclass(frozen=True)
class Invalid:
    reason: str
    snippet: str = ""


ParseResult = Union[Valid, Invalid]


def _embedded_json(text: str):
    """Last resort: the outermost {...} or [...] span inside surrounding prose."""
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start = text.find(open_ch)
        end = text.rfind(close_ch)
        if start != -1 and end > start:
            try:
                return json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                continue
    raise ValueError("no embedded JSON")


def parse_generation_output(text: str) -> ParseResult:
    cleaned = strip_code_fences(text or "")
    if not cleaned:
        return Invalid("AI returned no content")

    try:
        return Valid(json.loads(cleaned))
    except json.JSONDecodeError as e:
        try:
            return Valid(_embedded_json(cleaned))
        except ValueError:
            return Invalid(f"JSON parse error: {e}", cleaned[:SNIPPET_CHARS])


def validate_into(result: ParseResult, model: Type[BaseModel]) -> ParseResult:
    """Validate a Valid result into ``model``; Invalid passes through."""
    if isinstance(result, Invalid):
        return result
    try:
        return Valid(model.model_validate(result.data))
    except PydanticValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        loc = ".".join(str(p) for p in first.get("loc", ()))
        reason = f"Schema validation error: {e.error_count()} error(s), first at '{loc}': {first.get('msg', '')}"
        return Invalid(reason, json.dumps(result.data, default=str)[:SNIPPET_CHARS])
