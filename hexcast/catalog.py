"""
catalog.py — The 64-hexagram reference table.

Rows come from a loosely typed spreadsheet feed whose column names drift
("Number", "No", "Hexagram" ...). `normalize_row` is the only place that knows
about that; everything downstream works with `HexagramRecord`.

Lookups never raise: an empty, partial or malformed catalog simply produces
no match, so a cast can always complete.
"""

from __future__ import annotations
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import requests

from .config import DEFAULT_CATALOG_URL, HTTP_TIMEOUT
from .lines import LINES_PER_HEXAGRAM, Line
from .resolver import signature_key

logger = logging.getLogger(__name__)

# Monogram glyphs used in the feed's "Lines" column
SOLID_GLYPH = "⚊"
BROKEN_GLYPH = "⚋"

_KEY_JUNK = re.compile(r"[^a-z0-9]+")
_LEADING_INT = re.compile(r"^[+-]?\d+")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class HexagramRecord:
    """One row of the reference table. Read-only."""
    number: Optional[int]
    name: str
    nature: str = ""
    essence: str = ""
    description: str = ""
    image_url: Optional[str] = None
    lines_binary: str = ""
    changing_lines: Tuple[str, ...] = ("",) * LINES_PER_HEXAGRAM
    judgment: str = ""
    image_text: str = ""
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def signature(self) -> str:
        """`lines_binary` with whitespace removed, ready for key comparison."""
        return _WHITESPACE.sub("", self.lines_binary or "")

    def summary(self) -> Dict[str, Any]:
        return {"number": self.number, "name": self.name}


# === Row normalisation ===
def normalize_key(key: object) -> str:
    return _KEY_JUNK.sub("_", str(key).lower()).strip("_")


def clean(value: object) -> str:
    return "" if value is None else str(value).strip()


def _first(mapping: Mapping[str, Any], *keys: str) -> Any:
    """First truthy value among `keys`, else None."""
    for key in keys:
        value = mapping.get(key)
        if value:
            return value
    return None


def parse_number(value: object) -> Optional[int]:
    """Leading-integer parse; 0 or unparseable gives None."""
    match = _LEADING_INT.match(clean(value))
    if not match:
        return None
    return int(match.group()) or None


def glyphs_to_binary(value: object) -> str:
    return clean(value).replace(SOLID_GLYPH, "1").replace(BROKEN_GLYPH, "0").strip()


def normalize_row(row: Optional[Mapping[str, Any]]) -> HexagramRecord:
    """Turn one raw feed row into a HexagramRecord."""
    row = row if isinstance(row, Mapping) else {}
    m: Dict[str, Any] = {normalize_key(key): value for key, value in row.items()}

    changing = tuple(
        clean(_first(m, f"cl{n}", f"cl_{n}", f"changing_line_{n}"))
        for n in range(1, LINES_PER_HEXAGRAM + 1)
    )

    return HexagramRecord(
        number=parse_number(_first(m, "number", "no", "hexagram")),
        name=clean(_first(m, "name", "title")),
        nature=clean(_first(m, "nature", "trigrams", "image")),
        essence=clean(_first(m, "essence", "judgment", "judgement", "meaning")),
        description=clean(_first(m, "description", "summary", "overview", "image_text", "imagetext")),
        image_url=clean(_first(m, "image", "image_url")) or None,
        lines_binary=glyphs_to_binary(m.get("lines")),
        changing_lines=changing,
        judgment=clean(_first(m, "judgment", "judgement", "meaning", "essence")),
        image_text=clean(_first(m, "image_text", "imagetext", "description")),
        raw=dict(row),
    )


def _sort_key(record: HexagramRecord):
    return (record.number is None, record.number or 0)


def parse_catalog(rows: Iterable[Any]) -> List[HexagramRecord]:
    """Normalise rows, drop nameless ones, order by number (unnumbered last)."""
    records = [normalize_row(row) for row in (rows or [])]
    named = [record for record in records if record.name]
    dropped = len(records) - len(named)
    if dropped:
        logger.debug("Dropped %d catalog rows without a name", dropped)
    return sorted(named, key=_sort_key)


# === Loading ===
def fetch_catalog(
    url: str = DEFAULT_CATALOG_URL,
    session: Optional[requests.Session] = None,
    timeout: float = HTTP_TIMEOUT,
) -> List[HexagramRecord]:
    """Download and parse the feed. Any failure is logged and yields []."""
    http = session or requests
    try:
        response = http.get(url, timeout=timeout)
        response.raise_for_status()
        rows = response.json()
    except requests.exceptions.RequestException as e:
        logger.warning("Catalog request failed: %s", e)
        return []
    except ValueError as e:
        logger.warning("Catalog response was not JSON: %s", e)
        return []
    if not isinstance(rows, list):
        logger.warning("Catalog response was %s, expected a list of rows", type(rows).__name__)
        return []
    records = parse_catalog(rows)
    logger.info("Loaded %d hexagrams from %s", len(records), url)
    return records


def load_catalog_file(path: Union[str, Path]) -> List[HexagramRecord]:
    """Read the same row format from a local JSON file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            rows = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Failed to load catalog file %s: %s", path, e)
        return []
    if not isinstance(rows, list):
        logger.warning("Catalog file %s does not hold a list of rows", path)
        return []
    return parse_catalog(rows)


def load_catalog(source: Union[str, Path], session: Optional[requests.Session] = None) -> List[HexagramRecord]:
    """Dispatch on source: http(s) URLs are fetched, anything else is a file path."""
    text = str(source)
    if text.startswith(("http://", "https://")):
        return fetch_catalog(text, session=session)
    return load_catalog_file(text)


class CatalogCache:
    """Loads the catalog once and keeps it for the session."""

    def __init__(self, source: Union[str, Path] = DEFAULT_CATALOG_URL, session: Optional[requests.Session] = None):
        self.source = source
        self.session = session
        self._records: Optional[List[HexagramRecord]] = None

    @property
    def loaded(self) -> bool:
        return self._records is not None

    def get(self) -> List[HexagramRecord]:
        if self._records is None:
            records = load_catalog(self.source, session=self.session)
            # an empty result is indistinguishable from a failed fetch; retry next time
            if records:
                self._records = records
            return records
        return self._records

    def refresh(self) -> List[HexagramRecord]:
        self._records = None
        return self.get()


# === Lookups ===
def find_by_signature(lines: Sequence[Line], catalog: Optional[Sequence[HexagramRecord]]) -> Optional[HexagramRecord]:
    """First record whose line signature equals the key of `lines`."""
    if not catalog or not isinstance(catalog, (list, tuple)):
        return None
    key = signature_key(lines)
    for record in catalog:
        binary = getattr(record, "lines_binary", None)
        if isinstance(binary, str) and _WHITESPACE.sub("", binary) == key:
            return record
    return None


def find_by_number(catalog: Optional[Sequence[HexagramRecord]], number: int) -> Optional[str]:
    """Name of the first record with this number."""
    if not isinstance(catalog, (list, tuple)):
        return None
    for record in catalog:
        if getattr(record, "number", None) == number:
            return getattr(record, "name", None)
    return None


def get_record(catalog: Optional[Sequence[HexagramRecord]], number: int) -> Optional[HexagramRecord]:
    if not isinstance(catalog, (list, tuple)):
        return None
    for record in catalog:
        if getattr(record, "number", None) == number:
            return record
    return None
