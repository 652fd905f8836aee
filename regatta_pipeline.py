from __future__ import annotations

import argparse
import json
import logging
import sys
import warnings
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path

import pdfplumber
from pdfminer.pdfparser import PDFSyntaxError
from pdfplumber.utils.exceptions import PdfminerException

from regatta_config import DEFAULT_CONFIG, EngineConfig
from regatta_engine import build_document, parse_regatta
from regatta_extract import chars_to_fragments, document_fingerprint, page_marker
from regatta_models import Correction, Fragment, ParseResult

logging.getLogger("pdfminer").setLevel(logging.ERROR)
warnings.filterwarnings("ignore", module="pdfminer")

logger = logging.getLogger(__name__)

OcrEngine = Callable[[object], str]


@dataclass(frozen=True)
class PipelineOutcome:
    result: ParseResult
    source: str


def extract_fragments(pdf_path: str | Path) -> list[list[Fragment]] | None:
    """Positioned word fragments per page, or None if the PDF cannot be read."""
    try:
        with pdfplumber.open(pdf_path) as pdf:
            return [chars_to_fragments(page.chars, page.height) for page in pdf.pages]
    except (PDFSyntaxError, PdfminerException) as exc:
        logger.warning("Direct text extraction failed for %s: %s", pdf_path, exc)
        return None


def ocr_text(pdf_path: str | Path, ocr: OcrEngine, resolution: int = 144) -> str | None:
    """Render every page and hand the image to *ocr*; pages joined with markers."""
    try:
        with pdfplumber.open(pdf_path) as pdf:
            parts: list[str] = []
            for page in pdf.pages:
                image = page.to_image(resolution=resolution).original
                parts.append((ocr(image) or "").rstrip("\n"))
                parts.append(page_marker(page.page_number))
    except (PDFSyntaxError, PdfminerException) as exc:
        logger.warning("Could not render %s for OCR: %s", pdf_path, exc)
        return None
    return "\n".join(parts) + "\n"


def _char_count(pages: list[list[Fragment]] | None) -> int:
    if not pages:
        return 0
    return sum(len(frag.text) for page in pages for frag in page)


def parse_pdf(
    pdf_path: str | Path,
    sail_number: str,
    ocr: OcrEngine | None = None,
    config: EngineConfig | None = None,
    corrections: dict[str, Correction] | None = None,
) -> PipelineOutcome:
    """Direct extraction first; OCR as a full, independent retry.

    The OCR result wins when it locates the participant or when direct
    extraction produced too little text to parse at all.
    """
    config = config or DEFAULT_CONFIG
    pages = extract_fragments(pdf_path)
    result: ParseResult | None = None
    source = "none"

    if _char_count(pages) >= config.min_text_chars:
        result = parse_regatta(pages, sail_number, config, corrections)
        source = "direct"
    else:
        logger.info("Only %d characters extracted from %s", _char_count(pages), pdf_path)

    if ocr is not None and (result is None or result.participant is None):
        text = ocr_text(pdf_path, ocr)
        if text and text.strip():
            ocr_result = parse_regatta(text, sail_number, config, corrections)
            if result is None or ocr_result.participant is not None:
                result, source = ocr_result, "ocr"

    if result is None:
        result = ParseResult(feedback="No text extracted from PDF. Please enter the data manually.")
    return PipelineOutcome(result, source)


def load_corrections(path: str | Path) -> dict[str, Correction]:
    path = Path(path)
    if not path.exists():
        return {}
    raw = json.loads(path.read_text(encoding="utf-8"))
    return {
        key: Correction(sail_number=str(value["sail_number"]), rank=int(value["rank"]))
        for key, value in raw.items()
    }


def save_correction(path: str | Path, fingerprint: str, correction: Correction) -> None:
    """Remember a manually confirmed rank for the document keyed by *fingerprint*."""
    path = Path(path)
    stored = load_corrections(path)
    stored[fingerprint] = correction
    payload = {key: {"sail_number": c.sail_number, "rank": c.rank} for key, c in stored.items()}
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


def _print_entry(label: str, value: object, note: str = "") -> None:
    suffix = f"  ({note})" if note else ""
    print(f"  {label:<20} {value}{suffix}")


def print_report(outcome: PipelineOutcome, verbose: bool = False) -> None:
    result = outcome.result
    print("=" * 64)
    print("RESULTS")
    print("=" * 64)

    _print_entry("Regatta:", result.regatta_name)
    _print_entry("Class:", result.boat_class or "-")
    _print_entry("Date:", result.date.isoformat() if result.date else "-")
    _print_entry("Races:", result.race_count or "-")
    _print_entry("Participants:", result.total_participants or "-")
    if result.participant:
        _print_entry("Rank:", result.participant.rank, result.participant.sail_number)
    else:
        _print_entry("Rank:", "-")
    _print_entry("Confidence:", result.confidence.value, f"{outcome.source}, {result.format_kind.value}")
    if result.feedback:
        print(f"\n  {result.feedback}")

    if verbose and result.all_results:
        print(f"\nRoster ({len(result.all_results)}):\n")
        for entry in result.all_results:
            print(f"  #{entry.rank:<4} {entry.sail_number}")
    print()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Find the placement of one sail number in a regatta result sheet.",
    )
    parser.add_argument("document", help="Path to the result PDF (or text file with --text)")
    parser.add_argument("sail_number", help="Sail number to look up, e.g. 'GER 1234'")
    parser.add_argument("--text", action="store_true", help="Treat the input as extracted plain text")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument(
        "--max-rank",
        type=int, default=DEFAULT_CONFIG.max_rank, metavar="N",
        help=f"Discard ranks above N (default: {DEFAULT_CONFIG.max_rank})",
    )
    parser.add_argument(
        "--vertical-tolerance",
        type=float, default=DEFAULT_CONFIG.vertical_tolerance, metavar="PT",
        help=f"Max y-distance of fragments on one line (default: {DEFAULT_CONFIG.vertical_tolerance})",
    )
    parser.add_argument("--corrections", metavar="FILE", help="JSON file of learned corrections")
    parser.add_argument(
        "--learn-rank",
        type=int, metavar="N",
        help="Store N as the confirmed rank for this document (needs --corrections)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show the full roster and debug logging",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    path = Path(args.document)
    if not path.exists():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1
    if args.learn_rank is not None and not args.corrections:
        print("Error: --learn-rank needs --corrections FILE", file=sys.stderr)
        return 1

    config = replace(
        DEFAULT_CONFIG, max_rank=args.max_rank, vertical_tolerance=args.vertical_tolerance
    )
    corrections = load_corrections(args.corrections) if args.corrections else None

    if args.text:
        text = path.read_text(encoding="utf-8")
        outcome = PipelineOutcome(parse_regatta(text, args.sail_number, config, corrections), "text")
    else:
        outcome = parse_pdf(path, args.sail_number, config=config, corrections=corrections)

    if args.learn_rank is not None:
        source = text if args.text else extract_fragments(path)
        if not source:
            print("Error: no text to fingerprint in this document", file=sys.stderr)
            return 1
        fingerprint = document_fingerprint(build_document(source, config), config.fingerprint_chars)
        save_correction(args.corrections, fingerprint, Correction(args.sail_number, args.learn_rank))
        print(f"Stored rank {args.learn_rank} for {args.sail_number}")

    if args.json:
        print(json.dumps(outcome.result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print_report(outcome, verbose=args.verbose)
    return 0


if __name__ == "__main__":
    sys.exit(main())
