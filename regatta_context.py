from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from regatta_config import DEFAULT_CONFIG, EngineConfig
from regatta_extract import PAGE_MARKER_RE, extract_numbers
from regatta_format import is_rank_label
from regatta_models import (
    CandidateRow,
    FormatKind,
    FormatProfile,
    Line,
    NumberRole,
    NumberToken,
    ParsedDocument,
    RankSelection,
)

logger = logging.getLogger(__name__)

_LEADING_RANK_RE = re.compile(r"^\s*(\d{1,3})\b")
_COUNTRY_PREFIX_RE = re.compile(r"^([A-Z]{2,3})(?=\d)")
_COUNTRY_BEFORE_RE = re.compile(r"(?<![A-Za-z])([A-Z]{2,3})$")
_MAX_RANK_DIGITS = 4


@dataclass(frozen=True)
class SailTarget:
    """The queried sail number in the forms the row search needs."""

    raw: str
    normalized: str
    digits: str
    country: str | None = None

    @classmethod
    def from_raw(cls, raw: str) -> SailTarget:
        normalized = re.sub(r"\s+", "", raw).upper()
        digits = re.sub(r"\D", "", raw)
        m = _COUNTRY_PREFIX_RE.match(normalized)
        return cls(raw=raw, normalized=normalized, digits=digits, country=m.group(1) if m else None)

    @property
    def is_empty(self) -> bool:
        return not self.normalized


def is_plausible_rank(value: int | None, limit: int) -> bool:
    return value is not None and 0 < value <= limit


def _line_matches(line: Line, target: SailTarget) -> bool:
    if target.digits and target.digits in line.full_text:
        return True
    upper = line.full_text.upper()
    if target.normalized in upper:
        return True
    return target.normalized in re.sub(r"\s+", "", upper)


def locate_row(document: ParsedDocument, target: SailTarget) -> CandidateRow | None:
    """Return the first line mentioning the target sail number.

    Result lists are rank ordered, so later mentions (sponsor lists, protest
    notes) never win over the first one.
    """
    if target.is_empty:
        return None
    for index, line in enumerate(document.lines):
        if line.is_blank or PAGE_MARKER_RE.match(line.full_text.strip()):
            continue
        if _line_matches(line, target):
            logger.debug("Sail %s found on line %d: %r", target.normalized, index, line.full_text[:120])
            return CandidateRow(index, line, tuple(extract_numbers(line)))
    logger.debug("Sail %s not found in %d lines", target.normalized, len(document.lines))
    return None


def sail_offset(line: Line, target: SailTarget) -> int | None:
    """Character offset where the sail number starts on *line*."""
    if target.digits:
        position = line.full_text.find(target.digits)
        if position != -1:
            return position
    if not target.normalized:
        return None
    pattern = r"\s*".join(re.escape(ch) for ch in target.normalized)
    m = re.search(pattern, line.full_text, re.IGNORECASE)
    return m.start() if m else None


def numbers_before(line: Line, offset: int) -> list[NumberToken]:
    return [n for n in extract_numbers(line, max_digits=_MAX_RANK_DIGITS) if n.offset < offset]


def canonical_sail(line: Line, target: SailTarget, default_country: str) -> str:
    """Country code plus digits, the same key the roster uses."""
    if not target.digits:
        return target.normalized
    offset = sail_offset(line, target)
    if offset is not None:
        m = _COUNTRY_BEFORE_RE.search(line.full_text[:offset].rstrip())
        if m:
            return m.group(1) + target.digits
    return (target.country or default_country) + target.digits


def find_column_header(header: Line, x0: float, x1: float, phrase_gap: float) -> str | None:
    """Return the header phrase above the column spanning [x0, x1].

    Adjacent header tokens (gap <= *phrase_gap*) are joined, so multi-word
    labels like 'Bug Nr.' are read whole even if only one word overlaps.
    """
    match_idx = None
    for i, token in enumerate(header.tokens):
        if token.x1 > x0 and token.x0 < x1:
            match_idx = i
            break

    if match_idx is None:
        return None

    phrase_tokens = [header.tokens[match_idx]]
    i = match_idx - 1
    while i >= 0:
        gap = phrase_tokens[0].x0 - header.tokens[i].x1
        if gap <= phrase_gap:
            phrase_tokens.insert(0, header.tokens[i])
            i -= 1
        else:
            break

    i = match_idx + 1
    while i < len(header.tokens):
        gap = header.tokens[i].x0 - phrase_tokens[-1].x1
        if gap <= phrase_gap:
            phrase_tokens.append(header.tokens[i])
            i += 1
        else:
            break

    return " ".join(t.text for t in phrase_tokens)


def pick_rank(
    candidates: tuple[NumberToken, ...],
    profile: FormatProfile,
    document: ParsedDocument,
    config: EngineConfig,
) -> tuple[NumberToken | None, str]:
    if not candidates:
        return None, "none"
    if len(candidates) == 1:
        return candidates[0], "single"
    if profile.kind is FormatKind.START_NUMBER_PREFIXED:
        return candidates[0], "start-number-first"

    if profile.has_explicit_rank_header and profile.header_index is not None:
        header = document.lines[profile.header_index]
        gap = config.phrase_gap if document.layout else 1.0
        for number in candidates:
            phrase = find_column_header(header, number.x0, number.x1, gap)
            if phrase is not None and is_rank_label(phrase):
                logger.debug("Rank column %r holds %d", phrase, number.value)
                return number, "rank-header"

    return candidates[0], "first-number"


def leading_token_rank(line: Line, limit: int) -> int | None:
    m = _LEADING_RANK_RE.match(line.full_text)
    if not m:
        return None
    value = int(m.group(1))
    return value if is_plausible_rank(value, limit) else None


def select_rank(
    document: ParsedDocument,
    row: CandidateRow,
    target: SailTarget,
    profile: FormatProfile,
    config: EngineConfig = DEFAULT_CONFIG,
) -> RankSelection:
    """Decide which number before the sail number is the placement."""
    offset = sail_offset(row.line, target)
    candidates = tuple(numbers_before(row.line, offset)) if offset is not None else ()
    chosen, method = pick_rank(candidates, profile, document, config)

    rank = chosen.value if chosen is not None else None
    if rank is not None and not is_plausible_rank(rank, config.max_rank):
        logger.warning("Discarding implausible rank %d for sail %s", rank, target.normalized)
        rank = None

    if rank is None:
        fallback = leading_token_rank(row.line, config.max_roster_rank)
        if fallback is not None:
            logger.debug("Falling back to leading token %d", fallback)
            return RankSelection(fallback, candidates, "leading-token")
        return RankSelection(None, candidates, "none")

    logger.debug("Rank %d chosen by %s from %s", rank, method, [n.value for n in candidates])
    return RankSelection(rank, candidates, method)


def tag_target_row(
    row: CandidateRow,
    target: SailTarget,
    selection: RankSelection,
    profile: FormatProfile,
    sail_number: str,
) -> CandidateRow:
    """Attach role guesses to the numbers of the target row."""
    offset = sail_offset(row.line, target)
    rank_offset = next(
        (n.offset for n in selection.candidates if n.value == selection.rank), None
    )
    if selection.method == "leading-token":
        rank_offset = row.numbers[0].offset if row.numbers else None
    start_offset = None
    if profile.kind is FormatKind.START_NUMBER_PREFIXED and len(selection.candidates) >= 2:
        start_offset = selection.candidates[1].offset

    tagged: list[NumberToken] = []
    for number in row.numbers:
        if offset is not None and number.offset == offset:
            role = NumberRole.SAIL_NUMBER
        elif rank_offset is not None and number.offset == rank_offset:
            role = NumberRole.RANK
        elif start_offset is not None and number.offset == start_offset:
            role = NumberRole.START_NUMBER
        else:
            role = NumberRole.OTHER
        tagged.append(
            NumberToken(number.value, number.raw_text, number.offset, number.x0, number.x1, role)
        )

    return CandidateRow(row.line_index, row.line, tuple(tagged), selection.rank, sail_number)
