from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Iterable, Sequence

from regatta_config import DEFAULT_CONFIG, EngineConfig
from regatta_models import Fragment, Line, NumberToken, ParsedDocument, Token

logger = logging.getLogger(__name__)

PAGE_MARKER_RE = re.compile(r"^-{3}\s*(?:Page|Seite)\s+\d+\s+(?:End|Ende)\s*-{3}$", re.IGNORECASE)

_WORD_RE = re.compile(r"\S+")
_INT_RE = re.compile(r"\b(\d{1,6})\b")
_DEFAULT_CHAR_WIDTH = 5.0


def chars_to_fragments(chars: list[dict], page_height: float) -> list[Fragment]:
    """Group pdfplumber ``page.chars`` into word fragments.

    Characters are bucketed by rounded ``top`` and split into words on explicit
    spaces and on x-gaps wider than 1.5 average character widths, since many
    result lists position columns by coordinate instead of inserting spaces.
    The returned ``y`` is flipped to bottom-origin coordinates.
    """
    by_y: dict[int, list[dict]] = defaultdict(list)
    for c in chars:
        by_y[round(c["top"])].append(c)

    fragments: list[Fragment] = []
    for y_key in sorted(by_y.keys()):
        row = sorted(by_y[y_key], key=lambda c: c["x0"])
        y = float(page_height) - y_key
        current_text = ""
        current_x0 = 0.0
        current_x1 = 0.0

        for c in row:
            ch = c["text"]
            gap = c["x0"] - current_x1 if current_text else 0.0
            avg_char_width = (
                (current_x1 - current_x0) / len(current_text) if current_text else _DEFAULT_CHAR_WIDTH
            )
            is_gap = gap > max(avg_char_width * 1.5, 4.0)

            if ch.isspace() or is_gap:
                if current_text:
                    fragments.append(Fragment(current_text, current_x0, y, current_x1))
                    current_text = ""
                if ch.isspace():
                    continue

            if not current_text:
                current_x0 = c["x0"]
            current_text += ch
            current_x1 = c["x1"]

        if current_text:
            fragments.append(Fragment(current_text, current_x0, y, current_x1))

    return fragments


def as_fragment(item: Fragment | Sequence) -> Fragment:
    """Accept a Fragment or a ``(text, x, y[, x1])`` tuple."""
    if isinstance(item, Fragment):
        return item
    x1 = float(item[3]) if len(item) > 3 and item[3] is not None else None
    return Fragment(str(item[0]), float(item[1]), float(item[2]), x1)


def page_marker(page_number: int) -> str:
    return f"--- Page {page_number} End ---"


def _text_line(text: str, page: int, y: float | None = None) -> Line:
    tokens = tuple(
        Token(m.group(), float(m.start()), float(m.end()), m.start()) for m in _WORD_RE.finditer(text)
    )
    return Line(text, tokens, y, page)


def _assemble_line(row: list[Fragment], page: int) -> Line:
    if not row:
        return Line("", (), None, page)

    tokens: list[Token] = []
    parts: list[str] = []
    offset = 0
    for frag in sorted(row, key=lambda f: f.x):
        text = frag.text.strip()
        if not text:
            continue
        if parts:
            offset += 1
        x1 = frag.x1 if frag.x1 is not None else frag.x + len(text) * _DEFAULT_CHAR_WIDTH
        tokens.append(Token(text, frag.x, x1, offset))
        parts.append(text)
        offset += len(text)

    return Line(" ".join(parts), tuple(tokens), row[0].y, page)


def _page_lines(fragments: list[Fragment], page: int, config: EngineConfig) -> list[Line]:
    ordered = sorted(fragments, key=lambda f: (-f.y, f.x))
    rows: list[list[Fragment]] = []
    last_y: float | None = None

    for frag in ordered:
        if last_y is None or abs(frag.y - last_y) > config.vertical_tolerance:
            if last_y is not None and last_y - frag.y > config.row_gap:
                rows.append([])
            rows.append([frag])
        else:
            rows[-1].append(frag)
        last_y = frag.y

    return [_assemble_line(row, page) for row in rows]


def fragments_to_document(
    pages: Iterable[Iterable[Fragment | Sequence]],
    config: EngineConfig = DEFAULT_CONFIG,
) -> ParsedDocument:
    """Rebuild the visual rows of every page from positioned fragments.

    Pages are concatenated in order, each followed by a page-boundary marker line.
    """
    page_fragments = [[as_fragment(item) for item in page] for page in pages]
    if not any(page_fragments):
        return ParsedDocument((), layout=True)

    lines: list[Line] = []
    for page_number, fragments in enumerate(page_fragments, 1):
        lines.extend(_page_lines(fragments, page_number, config))
        lines.append(_text_line(page_marker(page_number), page_number))

    logger.debug("Rebuilt %d lines from %d pages", len(lines), len(page_fragments))
    return ParsedDocument(tuple(lines), layout=True)


def text_to_document(text: str) -> ParsedDocument:
    """Line-split mode for callers that only have reconstructed text."""
    lines: list[Line] = []
    page = 1
    for raw in text.splitlines():
        raw = raw.rstrip()
        lines.append(_text_line(raw, page))
        if PAGE_MARKER_RE.match(raw.strip()):
            page += 1
    return ParsedDocument(tuple(lines), layout=False)


def _token_at(line: Line, offset: int) -> Token | None:
    for token in line.tokens:
        if token.offset <= offset < token.offset + len(token.text):
            return token
    return None


def extract_numbers(line: Line, max_digits: int = 6) -> list[NumberToken]:
    """Return the integer tokens of *line* in reading order."""
    numbers: list[NumberToken] = []
    for m in _INT_RE.finditer(line.full_text):
        raw = m.group(1)
        if len(raw) > max_digits:
            continue
        token = _token_at(line, m.start())
        if token is not None:
            x0, x1 = token.x0, token.x1
        else:
            x0, x1 = float(m.start()), float(m.end())
        numbers.append(NumberToken(int(raw), raw, m.start(), x0, x1))
    return numbers


def document_fingerprint(document: ParsedDocument, length: int = 100) -> str:
    """Key a document by its opening text, lowercased and without whitespace."""
    return re.sub(r"\s", "", document.text[:length]).lower()
