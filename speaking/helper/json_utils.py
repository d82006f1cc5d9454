# speaking/helper/json_utils.py
import json
import re
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import MalformedResponse

T = TypeVar("T", bound=BaseModel)

# Non-greedy, newline-agnostic fence capture (first fenced block only)
_JSON_FENCE_RE = re.compile(
    r"```(?:json)?\s*(.*?)\s*```",
    re.DOTALL | re.IGNORECASE,
)


def extract_json_object(text: str) -> str:
    """
    Extract the first JSON object likely to be valid.

    Strategy:
    1) If a ```json ... ``` fence exists, return its content.
    2) Else, return substring from first '{' to last '}' (inclusive).
    3) Else, return stripped original text.
    """
    m = _JSON_FENCE_RE.search(text)
    if m:
        return m.group(1).strip()

    start = text.find("{")
    end = text.rfind("}")

    if start != -1 and end != -1 and end > start:
        return text[start : end + 1]

    return text.strip()


def parse_model_strict(raw: str, model_cls: Type[T]) -> T:
    """
    Parse LLM output into a Pydantic model, tolerating fences and preambles.

    Raises:
        MalformedResponse: output is not a JSON object or does not match the schema.
    """
    json_str = extract_json_object(raw or "")

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"Model output is not valid JSON: {e}", raw_output=raw) from e

    if not isinstance(data, dict):
        raise MalformedResponse(
            f"Model output is JSON {type(data).__name__}, expected an object",
            raw_output=raw,
        )

    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise MalformedResponse(
            f"Model output does not match {model_cls.__name__}: {e.error_count()} error(s)",
            raw_output=raw,
        ) from e
