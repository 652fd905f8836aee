from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Fragment:
    """A positioned run of text as delivered by direct extraction or OCR.

    ``y`` uses bottom-origin page coordinates: larger values sit higher on the page.
    """

    text: str
    x: float
    y: float
    x1: float | None = None


@dataclass(frozen=True)
class Token:
    """A fragment or word placed on a reconstructed line."""

    text: str
    x0: float
    x1: float
    offset: int


@dataclass(frozen=True)
class Line:
    """One reconstructed row of the result sheet."""

    full_text: str
    tokens: tuple[Token, ...] = ()
    y: float | None = None
    page: int = 1

    @property
    def is_blank(self) -> bool:
        return not self.full_text.strip()


@dataclass(frozen=True)
class ParsedDocument:
    """Ordered lines of one document, built once per parse."""

    lines: tuple[Line, ...]
    layout: bool = False

    @property
    def text(self) -> str:
        return "\n".join(line.full_text for line in self.lines)

    def head(self, count: int) -> list[tuple[int, Line]]:
        """Return the first *count* non-blank lines with their indices."""
        found: list[tuple[int, Line]] = []
        for index, line in enumerate(self.lines):
            if line.is_blank:
                continue
            found.append((index, line))
            if len(found) >= count:
                break
        return found


class FormatKind(Enum):
    START_NUMBER_PREFIXED = "start_number_prefixed"
    RANK_PREFIXED = "rank_prefixed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class FormatProfile:
    """Detected table convention of a result sheet."""

    kind: FormatKind = FormatKind.UNKNOWN
    has_explicit_rank_header: bool = False
    vendor: str | None = None
    header_index: int | None = None


class NumberRole(Enum):
    RANK = "rank"
    START_NUMBER = "start_number"
    SAIL_NUMBER = "sail_number"
    OTHER = "other"


@dataclass(frozen=True)
class NumberToken:
    """An integer found on a line, with its character offset and rendered x-range."""

    value: int
    raw_text: str
    offset: int
    x0: float
    x1: float
    role: NumberRole = NumberRole.OTHER


@dataclass(frozen=True)
class CandidateRow:
    """A line that plausibly describes one participant."""

    line_index: int
    line: Line
    numbers: tuple[NumberToken, ...] = ()
    rank: int | None = None
    sail_number: str | None = None


@dataclass(frozen=True)
class RankSelection:
    """Which number of the target row was taken as the rank, and why."""

    rank: int | None
    candidates: tuple[NumberToken, ...] = ()
    method: str = "none"


@dataclass(frozen=True)
class RosterEntry:
    rank: int
    sail_number: str


@dataclass(frozen=True)
class TargetEntry:
    rank: int
    sail_number: str


@dataclass(frozen=True)
class Correction:
    """A rank confirmed by a human for one document and sail number."""

    sail_number: str
    rank: int


class Confidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class ParseResult:
    """Provisional ranking record for one competitor.

    Callers copy the fields into their own editable form; the record itself
    is never mutated after the engine returns it.
    """

    success: bool = False
    regatta_name: str = ""
    boat_class: str | None = None
    date: datetime.date | None = None
    race_count: int = 0
    total_participants: int = 0
    participant: TargetEntry | None = None
    all_results: tuple[RosterEntry, ...] = field(default_factory=tuple)
    confidence: Confidence = Confidence.LOW
    feedback: str | None = None
    format_kind: FormatKind = FormatKind.UNKNOWN

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "regattaName": self.regatta_name,
            "boatClass": self.boat_class,
            "date": self.date.isoformat() if self.date else None,
            "raceCount": self.race_count,
            "totalParticipants": self.total_participants,
            "participant": (
                {"rank": self.participant.rank, "sailNumber": self.participant.sail_number}
                if self.participant
                else None
            ),
            "allResults": [
                {"rank": entry.rank, "sailNumber": entry.sail_number} for entry in self.all_results
            ],
            "confidence": self.confidence.value,
            "feedback": self.feedback,
            "format": self.format_kind.value,
        }
