"""Turn a regatta result sheet into a ranking record for one sail number.

Pipeline, one pass per document:
  1. build_document      : positioned fragments or plain text -> ParsedDocument
  2. classify_format     : start-number vs. rank-first tables, vendor fingerprint
  3. locate_row          : first line mentioning the sail number
  4. select_rank         : which number before the sail number is the rank
  5. extract_fields      : name, class, date, race count (independent)
  6. build_roster        : every participant row, deduplicated by sail number
  7. cross-check         : target rank against the participant estimate

The engine never raises for bad input: every failure is folded into a
ParseResult with low confidence and a feedback message.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from regatta_config import DEFAULT_CONFIG, EngineConfig
from regatta_context import (
    SailTarget,
    canonical_sail,
    is_plausible_rank,
    locate_row,
    select_rank,
    tag_target_row,
)
from regatta_extract import document_fingerprint, fragments_to_document, text_to_document
from regatta_fields import extract_fields, placeholder_name
from regatta_format import classify_format
from regatta_models import (
    Confidence,
    Correction,
    Fragment,
    ParsedDocument,
    ParseResult,
    RankSelection,
    TargetEntry,
)
from regatta_roster import (
    align_target_row,
    build_roster,
    estimate_total,
    include_target,
    rank_exceeds_total,
    roster_entries,
)

logger = logging.getLogger(__name__)

Source = str | Sequence


def _is_fragment_like(item: object) -> bool:
    return isinstance(item, Fragment) or (
        isinstance(item, (tuple, list)) and bool(item) and isinstance(item[0], str)
    )


def build_document(source: Source, config: EngineConfig = DEFAULT_CONFIG) -> ParsedDocument:
    """Accept plain text, one page of fragments, or a list of pages."""
    if isinstance(source, str):
        return text_to_document(source)
    items = list(source)
    if not items:
        return ParsedDocument(())
    if _is_fragment_like(items[0]):
        return fragments_to_document([items], config)
    return fragments_to_document(items, config)


def _absent(feedback: str) -> ParseResult:
    return ParseResult(success=False, confidence=Confidence.LOW, feedback=feedback)


def _correction_for(
    corrections: Mapping[str, Correction] | None,
    document: ParsedDocument,
    target: SailTarget,
    config: EngineConfig,
) -> Correction | None:
    if not corrections:
        return None
    correction = corrections.get(document_fingerprint(document, config.fingerprint_chars))
    if correction is None:
        return None
    stored = SailTarget.from_raw(correction.sail_number)
    if stored.digits != target.digits or not is_plausible_rank(correction.rank, config.max_rank):
        return None
    return correction


def _confidence(selection: RankSelection) -> Confidence:
    if selection.method == "single":
        return Confidence.HIGH
    if selection.method in ("start-number-first", "rank-header", "first-number"):
        return Confidence.MEDIUM
    return Confidence.LOW


def _selection_feedback(selection: RankSelection) -> str | None:
    if selection.method in ("start-number-first", "rank-header", "first-number"):
        seen = ", ".join(str(n.value) for n in selection.candidates)
        return (
            f"Multiple numbers before the sail number ({seen}), took {selection.rank}. "
            "Please check the rank."
        )
    if selection.method == "leading-token":
        return f"Rank {selection.rank} guessed from the leading token of the row. Please check the rank."
    return None


def parse_regatta(
    source: Source,
    sail_number: str,
    config: EngineConfig | None = None,
    corrections: Mapping[str, Correction] | None = None,
) -> ParseResult:
    """Parse *source* and report the placement of *sail_number*.

    *source* is either reconstructed text or positioned fragments, as a flat
    list for one page or a list of pages. *corrections* maps document
    fingerprints to ranks a human confirmed earlier.
    """
    config = config or DEFAULT_CONFIG
    if not source or not sail_number or not str(sail_number).strip():
        return _absent("No text or no sail number supplied")

    try:
        return _parse(source, str(sail_number), config, corrections)
    except Exception as exc:
        logger.exception("Parsing failed for sail %s", sail_number)
        return _absent(f"Parsing failed: {exc}")


def _parse(
    source: Source,
    sail_number: str,
    config: EngineConfig,
    corrections: Mapping[str, Correction] | None,
) -> ParseResult:
    document = build_document(source, config)
    if not document.text.strip():
        return _absent("No text or no sail number supplied")

    target = SailTarget.from_raw(sail_number)
    profile = classify_format(document, config)
    fields = extract_fields(document, profile, config)

    participant: TargetEntry | None = None
    confidence = Confidence.LOW
    feedback: str | None = None

    row = locate_row(document, target)
    correction = _correction_for(corrections, document, target, config)
    if correction is not None:
        sail = canonical_sail(row.line, target, config.default_country) if row else target.normalized
        participant = TargetEntry(correction.rank, sail)
        confidence = Confidence.HIGH
        logger.debug("Using learned correction: rank %d", correction.rank)
    elif row is not None:
        selection = select_rank(document, row, target, profile, config)
        sail = canonical_sail(row.line, target, config.default_country)
        tagged = tag_target_row(row, target, selection, profile, sail)
        if tagged.rank is not None:
            participant = TargetEntry(tagged.rank, sail)
            confidence = _confidence(selection)
            feedback = _selection_feedback(selection)
        else:
            feedback = (
                f'Sail number "{sail_number}" found, but no placement could be derived. '
                "Please enter it manually."
            )
    else:
        feedback = f'Sail number "{sail_number}" not found.'

    rows = build_roster(document, profile, config)
    if participant is not None and row is not None:
        rows = align_target_row(rows, row.line_index, participant, target.digits)
    roster = roster_entries(rows)
    total = estimate_total(roster, profile, document, config)

    if participant is not None and rank_exceeds_total(participant.rank, total):
        logger.warning("Rank %d exceeds participant estimate %d", participant.rank, total)
        feedback = f"Please double check: rank {participant.rank} of {total} participants?"
        confidence = Confidence.LOW

    result = ParseResult(
        success=participant is not None,
        regatta_name=fields.regatta_name or placeholder_name(fields.boat_class),
        boat_class=fields.boat_class,
        date=fields.date,
        race_count=fields.race_count,
        total_participants=total,
        participant=participant,
        all_results=include_target(roster, participant),
        confidence=confidence,
        feedback=feedback,
        format_kind=profile.kind,
    )
    logger.debug(
        "Result: %s rank=%s of %d (%s)",
        result.regatta_name,
        participant.rank if participant else None,
        total,
        confidence.value,
    )
    return result
