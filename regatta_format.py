from __future__ import annotations

import logging
import re

from regatta_config import DEFAULT_CONFIG, EngineConfig
from regatta_models import FormatKind, FormatProfile, ParsedDocument

logger = logging.getLogger(__name__)

_VENDOR_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"manage2sail", re.IGNORECASE), "manage2sail"),
    (re.compile(r"Final Overall Results"), "manage2sail"),
    (re.compile(r"Discard rule"), "manage2sail"),
]

START_NUMBER_RE = re.compile(
    r"\b(?:bug\.?\s*nr|start\.?\s*nr|startnummer|start\s*no|bow\s*(?:no|nr|number))\b\.?",
    re.IGNORECASE,
)
RANK_LABEL_RE = re.compile(
    r"(?<!\w)(?:Rk\.?|Rang|Platz|Position|Pos\.?|Place|Rank|Pl\.)(?!\w)",
    re.IGNORECASE,
)
_BARE_NR_RE = re.compile(r"(?<!\w)Nr(?!\w)\.?", re.IGNORECASE)
_NR_QUALIFIERS = {"bug", "start", "segel", "sail", "bow"}


def detect_vendor(document: ParsedDocument) -> str | None:
    text = document.text
    for pattern, vendor in _VENDOR_PATTERNS:
        if pattern.search(text):
            return vendor
    return None


def has_rank_label(text: str) -> bool:
    """Rank header words, including a bare 'Nr.' not qualified as bow or sail number."""
    if RANK_LABEL_RE.search(text):
        return True
    for m in _BARE_NR_RE.finditer(text):
        before = text[: m.start()].rstrip(" .-").split()
        if not before or before[-1].lower() not in _NR_QUALIFIERS:
            return True
    return False


def is_rank_label(text: str) -> bool:
    """True for a header phrase naming the placement column, not the bow number."""
    return has_rank_label(text) and not START_NUMBER_RE.search(text)


def classify_format(document: ParsedDocument, config: EngineConfig = DEFAULT_CONFIG) -> FormatProfile:
    """Pick the column convention of the result table.

    The start-number check runs first: those sheets carry a bow number column
    right after the rank, which otherwise reads like a second rank candidate.
    """
    vendor = detect_vendor(document)
    head = document.head(config.header_scan_lines)

    start_index = next((i for i, line in head if START_NUMBER_RE.search(line.full_text)), None)
    rank_index = next((i for i, line in head if has_rank_label(line.full_text)), None)

    if start_index is not None:
        profile = FormatProfile(
            kind=FormatKind.START_NUMBER_PREFIXED,
            has_explicit_rank_header=rank_index is not None,
            vendor=vendor,
            header_index=start_index,
        )
    elif rank_index is not None:
        profile = FormatProfile(
            kind=FormatKind.RANK_PREFIXED,
            has_explicit_rank_header=True,
            vendor=vendor,
            header_index=rank_index,
        )
    else:
        profile = FormatProfile(kind=FormatKind.UNKNOWN, vendor=vendor)

    logger.debug("Format profile: %s", profile)
    return profile
