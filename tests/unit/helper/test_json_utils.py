# tests/unit/helper/test_json_utils.py
"""Unit tests for json_utils.py."""

import pytest
from pydantic import BaseModel

from speaking.errors import MalformedResponse
from speaking.helper.json_utils import extract_json_object, parse_model_strict


class MyModel(BaseModel):
    name: str
    value: int


class TestExtractJsonObject:
    def test_extract_json(self):
        raw = "Here is the JSON:\n```json\n{\"name\": \"test\"}\n```\nHope it helps."
        assert extract_json_object(raw) == '{"name": "test"}'

    def test_extract_braces_without_fence(self):
        raw = 'Sure! {"name": "x", "value": 1} done'
        assert extract_json_object(raw) == '{"name": "x", "value": 1}'

    def test_returns_cleaned_if_no_match(self):
        raw = "Just text"
        assert extract_json_object(raw) == "Just text"


class TestParseModelStrict:
    def test_valid_parsing(self):
        result = parse_model_strict('{"name": "test", "value": 123}', MyModel)
        assert result.name == "test"
        assert result.value == 123

    def test_invalid_json(self):
        with pytest.raises(MalformedResponse) as exc:
            parse_model_strict("Not JSON", MyModel)
        assert exc.value.raw_output == "Not JSON"

    def test_not_an_object(self):
        with pytest.raises(MalformedResponse):
            parse_model_strict("[1, 2]", MyModel)

    def test_validation_error(self):
        with pytest.raises(MalformedResponse):
            parse_model_strict('{"name": "test"}', MyModel)
