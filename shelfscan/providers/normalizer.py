"""
Response Normalizer

Turns loosely-typed backend JSON into the strict detection schema:
- Readability prefix extraction ("[partial] ", "[uncertain] ", "[unreadable]")
- Confidence and bounding box coercion and clamping
- JSON payload extraction from free text

Backend output types are never trusted: numbers may arrive as strings,
fields may be missing, and markers may be echoed in the wrong field.
"""

import json
import math
import re
from typing import Any, Optional

from loguru import logger

from shelfscan.providers.errors import MalformedResponseError
from shelfscan.providers.types import (
    BoundingBox,
    DetectedBook,
    ReadabilityStatus,
    SingleBookResult,
    clamp_unit,
)


READABILITY_MARKERS = {
    "[partial]": ReadabilityStatus.PARTIAL,
    "[uncertain]": ReadabilityStatus.UNCERTAIN,
    "[unreadable]": ReadabilityStatus.UNREADABLE,
}

# Anything that looks like a bracketed marker at the start of a field
PREFIX_LIKE_PATTERN = re.compile(r"^\[([^\[\]]{1,24})\]")

MARKER_STRIP_PATTERN = re.compile(r"^\[(?:partial|uncertain|unreadable)\]\s*", re.IGNORECASE)

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)

DEFAULT_POSITION = {"x": 0.0, "y": 0.0, "width": 0.1, "height": 0.1}


# =============================================================================
# Readability
# =============================================================================

def extract_readability_status(raw_title: Optional[str]) -> tuple[str, ReadabilityStatus]:
    """
    Split a raw title into clean text and readability status.

    Exactly one leading marker is interpreted. Case-variant markers
    (e.g. "[Partial]") are honored but logged as contract drift, so a
    flagged detection is never reported as clear.

    Args:
        raw_title: Title as returned by the backend

    Returns:
        (clean_title, status)
    """
    text = (raw_title or "").strip()

    for marker, status in READABILITY_MARKERS.items():
        if text.startswith(marker):
            return _strip_extra_markers(text[len(marker):].strip()), status

    lowered = text.lower()
    for marker, status in READABILITY_MARKERS.items():
        if lowered.startswith(marker):
            logger.warning(
                f"Prompt contract: case-variant readability marker {text[:len(marker)]!r}"
            )
            return _strip_extra_markers(text[len(marker):].strip()), status

    prefix = PREFIX_LIKE_PATTERN.match(text)
    if prefix:
        logger.warning(
            f"Prompt contract: unrecognized title prefix [{prefix.group(1)}] in {text!r}"
        )

    return text, ReadabilityStatus.CLEAR


def _strip_extra_markers(text: str) -> str:
    if MARKER_STRIP_PATTERN.match(text):
        logger.warning(f"Prompt contract: stacked readability markers in {text!r}")
        return clean_field(text)
    return text


def clean_field(value: Optional[str]) -> Optional[str]:
    """Remove readability markers from a field without extracting a status."""
    if not value:
        return value
    cleaned = value.strip()
    while MARKER_STRIP_PATTERN.match(cleaned):
        cleaned = MARKER_STRIP_PATTERN.sub("", cleaned, count=1).strip()
    return cleaned


# =============================================================================
# Scalar coercion
# =============================================================================

def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def coerce_confidence(value: Any) -> Optional[float]:
    """Parse confidence into [0, 1]; unparseable or missing means unknown."""
    number = _to_float(value)
    if number is None:
        if value is not None:
            logger.debug(f"Discarding unparseable confidence {value!r}")
        return None
    return clamp_unit(number)


def coerce_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in ("null", "none", "n/a"):
        return None
    return text


def coerce_year(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    match = re.search(r"\d{3,4}", str(value))
    return int(match.group(0)) if match else None


def normalize_bounding_box(position: Any) -> BoundingBox:
    """Build a clamped BoundingBox from an untyped position object."""
    if not isinstance(position, dict):
        if position is not None:
            logger.warning(f"Prompt contract: position is not an object: {position!r}")
        position = {}

    values = {}
    for key, default in DEFAULT_POSITION.items():
        number = _to_float(position.get(key))
        values[key] = default if number is None else number

    return BoundingBox(**values)


# =============================================================================
# Payloads
# =============================================================================

def parse_json_payload(text: Optional[str]) -> dict:
    """
    Extract the JSON object from backend text output.

    Tolerates code fences and leading/trailing prose.

    Raises:
        MalformedResponseError: If no JSON object can be parsed
    """
    if not text or not text.strip():
        raise MalformedResponseError("Empty response content")

    candidate = text.strip()
    fenced = CODE_FENCE_PATTERN.search(candidate)
    if fenced:
        candidate = fenced.group(1).strip()

    if not candidate.startswith("{"):
        start, end = candidate.find("{"), candidate.rfind("}")
        if start == -1 or end <= start:
            raise MalformedResponseError("No JSON object in response")
        candidate = candidate[start:end + 1]

    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Invalid JSON in response: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedResponseError("Response JSON is not an object")

    return payload


def normalize_detected_book(raw: dict) -> DetectedBook:
    """Normalize one entry of the ``books`` array."""
    raw_title = raw.get("title")
    if raw_title is not None and not isinstance(raw_title, str):
        raw_title = str(raw_title)

    title, status = extract_readability_status(raw_title)

    if not title and status != ReadabilityStatus.UNREADABLE:
        logger.warning(
            f"Prompt contract: detection without readable title text "
            f"(raw={raw_title!r}), marking unreadable"
        )
        status = ReadabilityStatus.UNREADABLE

    author = coerce_str(raw.get("author"))
    if author:
        author = clean_field(author) or None

    return DetectedBook(
        title=title,
        author=author,
        isbn=coerce_str(raw.get("isbn")),
        position=normalize_bounding_box(raw.get("position")),
        confidence=coerce_confidence(raw.get("confidence")),
        readability_status=status,
    )


def normalize_shelf_payload(payload: dict, max_books: Optional[int] = None) -> list[DetectedBook]:
    """
    Normalize a shelf analysis payload into detections.

    Args:
        payload: Parsed backend JSON
        max_books: Safety limit on returned detections

    Raises:
        MalformedResponseError: If the ``books`` array is missing
    """
    raw_books = payload.get("books")
    if not isinstance(raw_books, list):
        raise MalformedResponseError("Response is missing the 'books' array")

    books = []
    for index, raw in enumerate(raw_books):
        if not isinstance(raw, dict):
            logger.warning(f"Prompt contract: books[{index}] is not an object, skipping")
            continue
        books.append(normalize_detected_book(raw))

    if max_books is not None and len(books) > max_books:
        logger.warning(f"Truncating {len(books)} detections to limit of {max_books}")
        books = books[:max_books]

    return books


def normalize_single_book_payload(payload: dict) -> SingleBookResult:
    """Normalize a single cover payload."""
    title = clean_field(coerce_str(payload.get("title"))) or "Unknown"
    author = clean_field(coerce_str(payload.get("author"))) or None

    return SingleBookResult(
        title=title,
        author=author,
        isbn=coerce_str(payload.get("isbn")),
        publisher=coerce_str(payload.get("publisher")),
        year=coerce_year(payload.get("year")),
        category=coerce_str(payload.get("category")),
        language=coerce_str(payload.get("language")),
    )
