"""Independent extractors for the descriptive fields of a result sheet.

Each field is read by an ordered list of strategies; the first one that
returns a value wins. Keeping every heuristic as its own object lets the
priority order be tested and tuned without touching the others.
"""

from __future__ import annotations

import datetime
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from regatta_config import DEFAULT_CONFIG, EngineConfig
from regatta_extract import PAGE_MARKER_RE
from regatta_models import FormatProfile, ParsedDocument

logger = logging.getLogger(__name__)

_NAME_MIN = 6
_NAME_MAX = 59

_EVENT_KEYWORDS = r"(?:Preis|Pokal|Cup|Trophy|Regatta|Festival|Meisterschaft|Championships?)"
_EVENT_YEAR_RE = re.compile(
    rf"(?<![\w'\-])((?:[^\W\d_][\w'\-]*\s+){{0,6}}?[^\W\d_]*{_EVENT_KEYWORDS}[\s\-]*\d{{4}})(?!\d)",
    re.IGNORECASE,
)
_COMPOUND_NAME_RE = re.compile(
    r"(?<!\w)([^\W\d_]+(?:pokal|cup|preis|trophy|regatta|meisterschaft))",
    re.IGNORECASE,
)
_RESULTS_HEADING_RE = re.compile(r"\b(?:Final\s+)?Overall\s+Results\b|^Results\b", re.IGNORECASE)
_PAGE_WORD_RE = re.compile(r"\b(?:Seite|Page)\s+\d", re.IGNORECASE)
_BARE_NUMBER_RE = re.compile(r"^\d+\s*$")
_NR_LABEL_RE = re.compile(r"^Nr\.?\s", re.IGNORECASE)

BOAT_CLASSES: list[tuple[str, str]] = [
    ("Optimist A", r"\bOptimist\s*A\b"),
    ("Optimist B", r"\bOptimist\s*B\b"),
    ("Optimist", r"\bOptimist|\bOpti\b"),
    ("ILCA 4", r"\bILCA\s*4\b"),
    ("ILCA 6", r"\bILCA\s*6\b"),
    ("ILCA 7", r"\bILCA\s*7\b"),
    ("Laser", r"\bLaser\b"),
    ("420", r"\b420(?:er)?\b"),
    ("470", r"\b470(?:er)?\b"),
    ("29er", r"\b29er\b"),
    ("49er", r"\b49er\b"),
    ("Europe", r"\bEurope\b"),
    ("Finn", r"\bFinn\b"),
    ("OK-Jolle", r"\bOK[\-\s]?Jolle\b"),
    ("Pirat", r"\bPirat\b"),
    ("Korsar", r"\bKorsar\b"),
    ("O'pen Skiff", r"\bO'?pen\s*Skiff\b"),
]
_BOAT_CLASS_RE = re.compile(
    "|".join(f"(?P<c{i}>{pattern})" for i, (_, pattern) in enumerate(BOAT_CLASSES)),
    re.IGNORECASE,
)

MONTHS: dict[str, int] = {
    "JAN": 1, "JANUAR": 1, "JANUARY": 1,
    "FEB": 2, "FEBRUAR": 2, "FEBRUARY": 2,
    "MÄR": 3, "MÄRZ": 3, "MAERZ": 3, "MRZ": 3, "MAR": 3, "MARCH": 3,
    "APR": 4, "APRIL": 4,
    "MAI": 5, "MAY": 5,
    "JUN": 6, "JUNI": 6, "JUNE": 6,
    "JUL": 7, "JULI": 7, "JULY": 7,
    "AUG": 8, "AUGUST": 8,
    "SEP": 9, "SEPT": 9, "SEPTEMBER": 9,
    "OKT": 10, "OKTOBER": 10, "OCT": 10, "OCTOBER": 10,
    "NOV": 11, "NOVEMBER": 11,
    "DEZ": 12, "DEZEMBER": 12, "DEC": 12, "DECEMBER": 12,
}
_MONTH_ALTERNATION = "|".join(sorted(MONTHS, key=len, reverse=True))
_TEXT_DATE_RE = re.compile(
    rf"(?<!\d)(\d{{1,2}})[.\s\-/]*({_MONTH_ALTERNATION})\.?(?![^\W\d_])[\s\-/.,]*(\d{{4}})(?!\d)",
    re.IGNORECASE,
)
_ISO_DATE_RE = re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)")
_NUMERIC_DATE_RE = re.compile(r"(?<![\d.])(\d{1,2})[./\-](\d{1,2})[./\-](\d{4}|\d{2})(?!\d|\.\d)")

_RACE_RE = re.compile(r"\b(?:R|Race\s*|WF\s*|Wettfahrt\s*)(\d{1,2})\b", re.IGNORECASE)


class FieldStrategy:
    """One heuristic for one field; returns None when it does not apply."""

    name = "strategy"

    def try_extract(self, document: ParsedDocument) -> Any | None:
        raise NotImplementedError


def first_match(strategies: Sequence[FieldStrategy], document: ParsedDocument) -> Any | None:
    for strategy in strategies:
        value = strategy.try_extract(document)
        if value is not None:
            logger.debug("%s -> %r", strategy.name, value)
            return value
    return None


def _acceptable_name(value: str) -> str | None:
    value = value.strip()
    return value if _NAME_MIN <= len(value) <= _NAME_MAX else None


def _is_title_line(text: str) -> bool:
    return (
        8 < len(text) < 50
        and "http" not in text
        and not PAGE_MARKER_RE.match(text)
        and not _PAGE_WORD_RE.search(text)
        and not _BARE_NUMBER_RE.match(text)
        and not _NR_LABEL_RE.match(text)
    )


class VendorTitleStrategy(FieldStrategy):
    """Vendor sheets print the event title right above the results heading."""

    name = "vendor-title"

    def try_extract(self, document: ParsedDocument) -> str | None:
        heading = next(
            (i for i, line in enumerate(document.lines) if _RESULTS_HEADING_RE.search(line.full_text.strip())),
            None,
        )
        if heading is None:
            return None
        for line in reversed(document.lines[:heading]):
            text = line.full_text.strip()
            if not text or "manage2sail" in text.lower():
                continue
            if _is_title_line(text):
                return _acceptable_name(text)
            return None
        return None


class EventYearStrategy(FieldStrategy):
    """'Kieler Woche Cup 2025', 'Herbstpokal 2024'."""

    name = "event-year"

    def try_extract(self, document: ParsedDocument) -> str | None:
        for line in document.lines:
            m = _EVENT_YEAR_RE.search(line.full_text)
            if m:
                value = _acceptable_name(m.group(1))
                if value:
                    return value
        return None


class CompoundNameStrategy(FieldStrategy):
    name = "compound-name"

    def try_extract(self, document: ParsedDocument) -> str | None:
        for line in document.lines:
            m = _COMPOUND_NAME_RE.search(line.full_text)
            if m:
                value = _acceptable_name(m.group(1))
                if value:
                    return value
        return None


@dataclass
class TitleLineStrategy(FieldStrategy):
    scan_lines: int = 10
    name: str = "title-line"

    def try_extract(self, document: ParsedDocument) -> str | None:
        for _, line in document.head(self.scan_lines):
            text = line.full_text.strip()
            if _is_title_line(text):
                return text
        return None


class TextualMonthDateStrategy(FieldStrategy):
    """Day, month name, year: no day/month order ambiguity."""

    name = "textual-month-date"

    def try_extract(self, document: ParsedDocument) -> datetime.date | None:
        for m in _TEXT_DATE_RE.finditer(document.text):
            month = MONTHS.get(m.group(2).upper())
            if month is None:
                continue
            try:
                return datetime.date(int(m.group(3)), month, int(m.group(1)))
            except ValueError:
                continue
        return None


class IsoDateStrategy(FieldStrategy):
    name = "iso-date"

    def try_extract(self, document: ParsedDocument) -> datetime.date | None:
        for m in _ISO_DATE_RE.finditer(document.text):
            try:
                return datetime.date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
            except ValueError:
                continue
        return None


class NumericDateStrategy(FieldStrategy):
    """Day-first numeric dates; two-digit years are taken as 20xx."""

    name = "numeric-date"

    def try_extract(self, document: ParsedDocument) -> datetime.date | None:
        for m in _NUMERIC_DATE_RE.finditer(document.text):
            year = m.group(3)
            if len(year) == 2:
                year = "20" + year
            try:
                return datetime.date(int(year), int(m.group(2)), int(m.group(1)))
            except ValueError:
                continue
        return None


def name_strategies(profile: FormatProfile, config: EngineConfig = DEFAULT_CONFIG) -> list[FieldStrategy]:
    strategies: list[FieldStrategy] = []
    if profile.vendor:
        strategies.append(VendorTitleStrategy())
    strategies.extend([EventYearStrategy(), CompoundNameStrategy(), TitleLineStrategy(config.title_scan_lines)])
    return strategies


DATE_STRATEGIES: list[FieldStrategy] = [TextualMonthDateStrategy(), IsoDateStrategy(), NumericDateStrategy()]


def extract_regatta_name(
    document: ParsedDocument,
    profile: FormatProfile,
    config: EngineConfig = DEFAULT_CONFIG,
) -> str | None:
    return first_match(name_strategies(profile, config), document)


def placeholder_name(boat_class: str | None, today: datetime.date | None = None) -> str:
    if boat_class:
        return f"Regatta ({boat_class})"
    today = today or datetime.date.today()
    return f"Regatta {today:%d.%m.%Y}"


def extract_boat_class(document: ParsedDocument) -> str | None:
    m = _BOAT_CLASS_RE.search(document.text)
    if not m or m.lastgroup is None:
        return None
    return BOAT_CLASSES[int(m.lastgroup[1:])][0]


def extract_date(document: ParsedDocument) -> datetime.date | None:
    return first_match(DATE_STRATEGIES, document)


def extract_race_count(document: ParsedDocument, config: EngineConfig = DEFAULT_CONFIG) -> int:
    """Highest race number seen; races are numbered from 1 without gaps."""
    numbers = {int(m.group(1)) for m in _RACE_RE.finditer(document.text)}
    valid = [n for n in numbers if 0 < n < config.max_race_number]
    return max(valid) if valid else 0


@dataclass(frozen=True)
class ExtractedFields:
    regatta_name: str | None = None
    boat_class: str | None = None
    date: datetime.date | None = None
    race_count: int = 0


def extract_fields(
    document: ParsedDocument,
    profile: FormatProfile,
    config: EngineConfig = DEFAULT_CONFIG,
) -> ExtractedFields:
    return ExtractedFields(
        regatta_name=extract_regatta_name(document, profile, config),
        boat_class=extract_boat_class(document),
        date=extract_date(document),
        race_count=extract_race_count(document, config),
    )
