"""Tests for batch result parsing and image extraction."""

import json

from rugbatch.batch.results import extract_images, parse_result_line
from tests.conftest import PNG_B64, result_line


def response_line(key, parts):
    return json.dumps(
        {"key": key, "response": {"candidates": [{"content": {"parts": parts}}]}}
    )


class TestParseResultLine:
    def test_image(self):
        image, error = parse_result_line(result_line("rug-A1"), "line-1")
        assert error is None
        assert image.key == "rug-A1"
        assert image.mime_type == "image/png"
        assert image.data == PNG_B64
        assert image.description == "A living room"

    def test_snake_case_inline_data(self):
        line = response_line(
            "rug-A1", [{"inline_data": {"mime_type": "image/jpeg", "data": PNG_B64}}]
        )
        image, error = parse_result_line(line, "line-1")
        assert image.mime_type == "image/jpeg"
        assert image.filename == "rug-A1.jpg"

    def test_parse_error(self):
        image, error = parse_result_line("{not json", "line-4")
        assert image is None
        assert error.startswith("line-4: Parse error")

    def test_batch_error(self):
        line = json.dumps({"key": "rug-A1", "error": {"message": "Safety block"}})
        _, error = parse_result_line(line, "line-1")
        assert error == "rug-A1: Batch error - Safety block"

    def test_no_candidates(self):
        line = json.dumps({"key": "rug-A1", "response": {"candidates": []}})
        assert parse_result_line(line, "line-1")[1] == "rug-A1: No candidates in response"

    def test_no_parts(self):
        line = response_line("rug-A1", [])
        assert parse_result_line(line, "line-1")[1] == "rug-A1: No parts in response"

    def test_text_only(self):
        line = response_line("rug-A1", [{"text": "I cannot draw that"}])
        assert parse_result_line(line, "line-1")[1] == "rug-A1: Text-only response"

    def test_missing_key_uses_fallback(self):
        line = json.dumps({"response": {"candidates": []}})
        assert parse_result_line(line, "line-9")[1].startswith("line-9:")

    def test_malformed_response_shapes(self):
        lines = [
            json.dumps({"key": "rug-A1", "response": "oops"}),
            json.dumps({"key": "rug-A1", "response": {"candidates": "none"}}),
            json.dumps({"key": "rug-A1", "response": {"candidates": ["x"]}}),
            json.dumps({"key": "rug-A1", "response": {"candidates": [{"content": []}]}}),
            response_line("rug-A1", ["just text"]),
            response_line("rug-A1", [{"inlineData": {"data": 5}}, {"text": 7}]),
        ]
        errors = [parse_result_line(line, "line-1")[1] for line in lines]
        assert errors[:5] == ["rug-A1: Malformed response"] * 5
        assert errors[5] == "rug-A1: No image data found"

    def test_non_string_key_uses_fallback(self):
        line = json.dumps({"key": 42, "response": {"candidates": []}})
        assert parse_result_line(line, "line-3")[1] == "line-3: No candidates in response"


class TestExtractImages:
    def test_mixed_results(self):
        jsonl = "\n".join(
            [
                result_line("rug-A1"),
                "",
                json.dumps({"key": "rug-B2", "error": {"message": "quota"}}),
                result_line("rug-C3"),
            ]
        )
        extraction = extract_images(jsonl, {"rug-A1": "A1"})
        assert extraction.total_lines == 3
        assert [i.sku for i in extraction.images] == ["A1", "C3"]
        assert extraction.errors == ["rug-B2: Batch error - quota"]

    def test_default_description(self):
        line = response_line("rug-A1", [{"inlineData": {"mimeType": "image/png", "data": "eA=="}}])
        extraction = extract_images(line)
        assert extraction.images[0].description == "Generated room scene with rug"

    def test_empty(self):
        extraction = extract_images("")
        assert extraction.total_lines == 0
        assert extraction.images == []

    def test_malformed_lines_keep_good_images(self):
        jsonl = "\n".join(
            [
                result_line("rug-A1"),
                json.dumps({"key": "rug-B2", "response": "oops"}),
                response_line("rug-C3", [{"text": "room"}, "not a part"]),
            ]
        )
        extraction = extract_images(jsonl)
        assert [i.sku for i in extraction.images] == ["A1"]
        assert extraction.errors == [
            "rug-B2: Malformed response",
            "rug-C3: Malformed response",
        ]
