from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EngineConfig:
    """Tunable thresholds of the result-sheet parser.

    The defaults were tuned on a small set of German and manage2sail result
    lists. Override single values with ``dataclasses.replace``.
    """

    # page units; matches the default font rendering scale of most result PDFs
    vertical_tolerance: float = 5.0
    row_gap: float = 30.0
    # max gap between tokens of one header phrase in layout mode (pt)
    phrase_gap: float = 20.0

    max_rank: int = 500
    max_roster_rank: int = 300
    default_country: str = "GER"

    header_scan_lines: int = 20
    title_scan_lines: int = 10
    max_race_number: int = 20

    bow_number_ratio: float = 1.5
    min_roster_for_ratio: int = 10
    max_explicit_entries: int = 500

    min_text_chars: int = 200
    fingerprint_chars: int = 100


DEFAULT_CONFIG = EngineConfig()
