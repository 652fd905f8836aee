from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, replace

from regatta_config import DEFAULT_CONFIG, EngineConfig
from regatta_context import is_plausible_rank, numbers_before, pick_rank
from regatta_extract import PAGE_MARKER_RE, extract_numbers
from regatta_models import (
    CandidateRow,
    FormatKind,
    FormatProfile,
    Line,
    NumberRole,
    NumberToken,
    ParsedDocument,
    RosterEntry,
    TargetEntry,
)

logger = logging.getLogger(__name__)

_SAIL = r"(?<![\d./\-])(?P<sail>\d{4,6})\b"
_EXPLICIT_COUNT_RE = re.compile(
    r"(\d+)\s*(?:Entries|Teilnehmer|Meldungen|Boote|Participants|Starters)\b", re.IGNORECASE
)


@dataclass(frozen=True)
class RowShape:
    """A regex describing how one participant row is laid out."""

    name: str
    pattern: re.Pattern


START_NUMBER_SHAPES: list[RowShape] = [
    RowShape(
        "rank-start-sail",
        re.compile(
            r"^\s*(?P<rank>\d{1,3})\s+(?P<start>\d+)\s+(?:(?P<country>[A-Z]{2,3})\s*)?" + _SAIL
        ),
    ),
    RowShape("leading-rank", re.compile(r"^\s*(?P<rank>\d{1,3})\b.*?" + _SAIL)),
]

RANK_SHAPES: list[RowShape] = [
    RowShape(
        "rank-first",
        re.compile(r"^\s*(?P<rank>\d{1,3})\s+.*?(?:(?P<country>[A-Z]{2,3})\s*)?" + _SAIL),
    ),
    RowShape(
        "rank-country-sail",
        re.compile(r"\b(?P<rank>\d{1,3})\s+(?P<country>[A-Z]{2,3})\s*(?P<sail>\d{3,6})\b"),
    ),
]


def shapes_for(profile: FormatProfile) -> list[RowShape]:
    if profile.kind is FormatKind.START_NUMBER_PREFIXED:
        return START_NUMBER_SHAPES
    return RANK_SHAPES


def _tag(line: Line, m: re.Match) -> tuple[NumberToken, ...]:
    offsets = {m.start("rank"): NumberRole.RANK, m.start("sail"): NumberRole.SAIL_NUMBER}
    if "start" in m.re.groupindex and m.group("start") is not None:
        offsets[m.start("start")] = NumberRole.START_NUMBER
    return tuple(
        NumberToken(n.value, n.raw_text, n.offset, n.x0, n.x1, offsets.get(n.offset, NumberRole.OTHER))
        for n in extract_numbers(line)
    )


def match_row(
    index: int,
    line: Line,
    shapes: list[RowShape],
    config: EngineConfig = DEFAULT_CONFIG,
) -> CandidateRow | None:
    """Apply the row shapes in order; the first plausible one wins."""
    for shape in shapes:
        m = shape.pattern.search(line.full_text)
        if not m:
            continue
        rank = int(m.group("rank"))
        if not is_plausible_rank(rank, config.max_roster_rank):
            continue
        country = m.groupdict().get("country") or config.default_country
        return CandidateRow(index, line, _tag(line, m), rank, country + m.group("sail"))
    return None


def header_ranked(
    row: CandidateRow,
    document: ParsedDocument,
    profile: FormatProfile,
    config: EngineConfig = DEFAULT_CONFIG,
) -> CandidateRow:
    """Re-read the rank from the column under the rank header, as the target row is."""
    sail_at = next((n.offset for n in row.numbers if n.role is NumberRole.SAIL_NUMBER), None)
    if sail_at is None:
        return row
    chosen, method = pick_rank(tuple(numbers_before(row.line, sail_at)), profile, document, config)
    if (
        method != "rank-header"
        or chosen.value == row.rank
        or not is_plausible_rank(chosen.value, config.max_roster_rank)
    ):
        return row

    numbers: list[NumberToken] = []
    for n in row.numbers:
        if n.offset == chosen.offset:
            n = replace(n, role=NumberRole.RANK)
        elif n.role is NumberRole.RANK:
            n = replace(n, role=NumberRole.OTHER)
        numbers.append(n)
    return replace(row, numbers=tuple(numbers), rank=chosen.value)


def build_roster(
    document: ParsedDocument,
    profile: FormatProfile,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[CandidateRow]:
    """Every participant row of the document, first mention per sail number."""
    shapes = shapes_for(profile)
    rows: list[CandidateRow] = []
    seen: set[str] = set()
    for index, line in enumerate(document.lines):
        if line.is_blank or PAGE_MARKER_RE.match(line.full_text.strip()):
            continue
        row = match_row(index, line, shapes, config)
        if row is None or row.sail_number in seen:
            continue
        if profile.has_explicit_rank_header:
            row = header_ranked(row, document, profile, config)
        seen.add(row.sail_number)
        rows.append(row)

    logger.debug("Roster: %d participants (%s)", len(rows), profile.kind.value)
    return rows


def roster_entries(rows: list[CandidateRow]) -> tuple[RosterEntry, ...]:
    entries = [RosterEntry(row.rank, row.sail_number) for row in rows if row.rank is not None]
    return tuple(sorted(entries, key=lambda e: e.rank))


def explicit_entry_count(document: ParsedDocument, config: EngineConfig = DEFAULT_CONFIG) -> int:
    """'45 Entries', '32 Teilnehmer' and the like."""
    for m in _EXPLICIT_COUNT_RE.finditer(document.text):
        count = int(m.group(1))
        if 0 < count < config.max_explicit_entries:
            return count
    return 0


def highest_unique_rank(ranks: list[int]) -> int:
    """Largest rank that occurs exactly once; duplicates come from OCR noise or tie columns."""
    if not ranks:
        return 0
    counts = Counter(ranks)
    unique = [rank for rank, count in counts.items() if count == 1]
    return max(unique) if unique else max(ranks)


def estimate_total(
    roster: tuple[RosterEntry, ...],
    profile: FormatProfile,
    document: ParsedDocument,
    config: EngineConfig = DEFAULT_CONFIG,
) -> int:
    if not roster:
        return explicit_entry_count(document, config)

    highest = highest_unique_rank([entry.rank for entry in roster])
    found = len(roster)
    if (
        profile.kind is FormatKind.START_NUMBER_PREFIXED
        and highest > found * config.bow_number_ratio
        and found > config.min_roster_for_ratio
    ):
        logger.warning("Highest rank %d implausible for %d rows, likely bow numbers", highest, found)
        return found
    return highest


def rank_exceeds_total(rank: int | None, total: int) -> bool:
    return rank is not None and total > 0 and rank > total


def align_target_row(
    rows: list[CandidateRow],
    line_index: int,
    target: TargetEntry,
    digits: str,
) -> list[CandidateRow]:
    """Give the roster row of the target's line the target's rank and sail key."""
    if not digits:
        return rows
    return [
        replace(row, rank=target.rank, sail_number=target.sail_number)
        if row.line_index == line_index and row.sail_number.endswith(digits)
        else row
        for row in rows
    ]


def include_target(
    roster: tuple[RosterEntry, ...],
    target: TargetEntry | None,
) -> tuple[RosterEntry, ...]:
    """Make sure the target sail number appears in the roster exactly once, with its rank."""
    if target is None:
        return roster
    entries = [entry for entry in roster if entry.sail_number != target.sail_number]
    entries.append(RosterEntry(target.rank, target.sail_number))
    return tuple(sorted(entries, key=lambda e: e.rank))
