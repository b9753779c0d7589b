"""
Field extraction from recognized text

Recognition output from field photos is noisy: lines are split at random,
punctuation is dropped and unrelated numbers show up everywhere. The
extractors below recover the plus-code (with its trailing address), the
coordinate pair and the capture timestamp using patterns constrained to
the deployment region. Every extractor returns None when nothing matches;
the "Not found" sentinel is applied only in to_record().
"""

from typing import List, NamedTuple, Optional, Tuple
import re

from geotag_ocr.models.records import ExtractedRecord, NOT_FOUND

LATITUDE_RANGE: Tuple[float, float] = (23.0, 37.0)
LONGITUDE_RANGE: Tuple[float, float] = (60.0, 78.0)

_WHITESPACE = re.compile(r'\s+')

PLUS_CODE_PATTERN = re.compile(r'[A-Z0-9]{4,8}\+[A-Z0-9]{2,4}', re.IGNORECASE | re.ASCII)

# Repeated (separators, token of 2+ alphanumerics) groups right after the code
ADDRESS_SUFFIX_PATTERN = re.compile(r'(?:[\s,]+[A-Za-z0-9]{2,})*', re.ASCII)
_TRAILING_SEPARATORS = re.compile(r'[,\s]+$')

COORDINATE_PATTERN = re.compile(r'-?\d{1,3}[.,]\d{3,12}', re.ASCII)

# Checked in order, first hit wins
TIMESTAMP_PATTERNS = [
    # 12h time, date
    re.compile(r'(\d{1,2}:\d{2}(?::\d{2})?\s?(?:AM|PM))\s+(\d{1,2}/\d{1,2}/\d{2,4})', re.IGNORECASE | re.ASCII),
    # date, time with optional AM/PM
    re.compile(r'(\d{1,2}/\d{1,2}/\d{2,4})\s+(\d{1,2}:\d{2}(?::\d{2})?\s?(?:AM|PM)?)', re.IGNORECASE | re.ASCII),
    # 24h time, date
    re.compile(r'(\d{2}:\d{2}(?::\d{2})?)\s+(\d{1,2}/\d{1,2}/\d{2,4})', re.IGNORECASE | re.ASCII),
    # date, 24h time
    re.compile(r'(\d{1,2}/\d{1,2}/\d{2,4})\s+(\d{2}:\d{2}(?::\d{2})?)', re.IGNORECASE | re.ASCII),
]


class ExtractionResult(NamedTuple):
    plus_code: Optional[str]
    latitude: Optional[str]
    longitude: Optional[str]
    timestamp: Optional[str]


def normalize_text(raw_text: str) -> str:
    """Collapse newlines and whitespace runs into single spaces"""
    return _WHITESPACE.sub(' ', raw_text.replace('\n', ' '))


def extract_plus_code(text: str) -> Optional[str]:
    """
    Find the first plus-code and append the address that follows it

    "9AB8+2X Lahore, Punjab" keeps the whole run of 2+ character tokens
    after the code, stopping at the first token that breaks the shape.
    """
    match = PLUS_CODE_PATTERN.search(text)
    if not match:
        return None

    code = match.group(0).strip()
    suffix = ADDRESS_SUFFIX_PATTERN.match(text, match.end()).group(0)

    return code + _TRAILING_SEPARATORS.sub('', suffix)


def find_coordinates(text: str) -> List[float]:
    """All coordinate-shaped numbers, left to right, with ',' read as '.'"""
    return [float(token.replace(',', '.')) for token in COORDINATE_PATTERN.findall(text)]


def _first_in_range(values: List[float], bounds: Tuple[float, float]) -> Optional[str]:
    low, high = bounds
    for value in values:
        if low <= value <= high:
            return format_number(value)
    return None


def format_number(value: float) -> str:
    """Shortest decimal form, without a trailing '.0' for whole numbers"""
    text = repr(value)
    return text[:-2] if text.endswith('.0') else text


def extract_coordinates(
    text: str,
    latitude_range: Tuple[float, float] = LATITUDE_RANGE,
    longitude_range: Tuple[float, float] = LONGITUDE_RANGE
) -> Tuple[Optional[str], Optional[str]]:
    """First candidate inside each range, chosen independently"""
    candidates = find_coordinates(text)
    return (
        _first_in_range(candidates, latitude_range),
        _first_in_range(candidates, longitude_range),
    )


def extract_timestamp(text: str) -> Optional[str]:
    for pattern in TIMESTAMP_PATTERNS:
        match = pattern.search(text)
        if match:
            return f"{match.group(1)} {match.group(2)}".strip()
    return None


def extract(
    raw_text: str,
    latitude_range: Tuple[float, float] = LATITUDE_RANGE,
    longitude_range: Tuple[float, float] = LONGITUDE_RANGE
) -> ExtractionResult:
    """
    Recover plus-code, latitude, longitude and timestamp from raw text

    Deterministic and side-effect free. Never raises for string input.
    """
    text = normalize_text(raw_text)
    latitude, longitude = extract_coordinates(text, latitude_range, longitude_range)

    return ExtractionResult(
        plus_code=extract_plus_code(text),
        latitude=latitude,
        longitude=longitude,
        timestamp=extract_timestamp(text),
    )


def to_record(image_name: str, raw_text: str, result: ExtractionResult) -> ExtractedRecord:
    """Build the output record, filling unmatched fields with the sentinel"""
    return ExtractedRecord(
        image_name=image_name,
        plus_code=result.plus_code or NOT_FOUND,
        latitude=result.latitude or NOT_FOUND,
        longitude=result.longitude or NOT_FOUND,
        timestamp=result.timestamp or NOT_FOUND,
        original_text=raw_text,
    )
