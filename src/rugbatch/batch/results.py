"""Extract generated images from batch results JSONL."""

import json
import logging

from rugbatch.models.batch import ExtractedImage, ExtractionResult

logger = logging.getLogger(__name__)


def _inline_data(part: dict) -> dict | None:
    data = part.get("inlineData") or part.get("inline_data")
    if isinstance(data, dict) and isinstance(data.get("data"), str) and data["data"]:
        return data
    return None


def parse_result_line(line: str, fallback_key: str) -> tuple[ExtractedImage | None, str | None]:
    """Parse one results line into an image or an error message."""
    try:
        result = json.loads(line)
    except json.JSONDecodeError as e:
        return None, f"{fallback_key}: Parse error - {e.msg}"
    if not isinstance(result, dict):
        return None, f"{fallback_key}: Unexpected result type"

    key = result.get("key")
    if not isinstance(key, str) or not key:
        key = fallback_key
    if result.get("error"):
        error = result["error"]
        message = error.get("message", "") if isinstance(error, dict) else str(error)
        return None, f"{key}: Batch error - {message}"

    response = result.get("response") or {}
    if not isinstance(response, dict):
        return None, f"{key}: Malformed response"
    candidates = response.get("candidates") or []
    if not isinstance(candidates, list):
        return None, f"{key}: Malformed response"
    if not candidates:
        return None, f"{key}: No candidates in response"

    candidate = candidates[0]
    if not isinstance(candidate, dict):
        return None, f"{key}: Malformed response"
    content = candidate.get("content")
    if content is not None and not isinstance(content, dict):
        return None, f"{key}: Malformed response"
    parts = (content or {}).get("parts")
    if not parts:
        return None, f"{key}: No parts in response"
    if not isinstance(parts, list) or not all(isinstance(p, dict) for p in parts):
        return None, f"{key}: Malformed response"

    text = ""
    for part in parts:
        inline = _inline_data(part)
        if inline is not None:
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            return (
                ExtractedImage(key=key, mime_type=mime_type, data=inline["data"], description=text),
                None,
            )
        if isinstance(part.get("text"), str):
            text += part["text"]

    if text:
        return None, f"{key}: Text-only response"
    return None, f"{key}: No image data found"


def extract_images(
    jsonl: str, key_to_sku: dict[str, str] | None = None, chunk_index: int = 0
) -> ExtractionResult:
    """Pull every generated image out of a results file.

    Never raises for per-line problems; they are reported in ``errors``.
    """
    key_to_sku = key_to_sku or {}
    lines = [line for line in jsonl.splitlines() if line.strip()]
    extraction = ExtractionResult(total_lines=len(lines))
    for i, line in enumerate(lines):
        image, error = parse_result_line(line, fallback_key=f"line-{i + 1}")
        if error:
            extraction.errors.append(error)
            continue
        image.sku = key_to_sku.get(image.key, image.key.removeprefix("rug-"))
        if not image.description:
            image.description = "Generated room scene with rug"
        extraction.images.append(image)

    logger.info(
        f"Chunk {chunk_index + 1}: {len(extraction.images)} images, "
        f"{len(extraction.errors)} errors from {extraction.total_lines} results"
    )
    return extraction
