"""
Split raw lease text into clause-sized chunks for retrieval.

Sections are cut at legal headings (ARTICLE, SECTION, 1.1 Title, EXHIBIT ...),
then packed paragraph by paragraph, falling back to sentences for very long
paragraphs, up to MAX_CHUNK_CHARS each.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

MAX_CHUNK_CHARS = 1200
MIN_SECTION_CHARS = 50
MIN_CHUNK_CHARS = 80
MIN_TEXT_CHARS = 100
MIN_ALPHA_RATIO = 0.3
MAX_LABEL_CHARS = 80

_HEADING_PATTERNS = [
    re.compile(r"^ARTICLE\s+([IVXLCDM]+|\d+|ONE|TWO|THREE|FOUR|FIVE|SIX|SEVEN|EIGHT|NINE|TEN)[.:\s]", re.I),
    re.compile(r"^SECTION\s+\d+(\.\d+)*[.:\s]", re.I),
    re.compile(r"^\d+\.\d+(\.\d+)*\s+[A-Z]"),
    re.compile(r"^\d+\.\s+[A-Z][A-Z\s]+"),
    re.compile(r"^\([a-z]\)\s+[A-Z]"),
    re.compile(r"^\([ivx]+\)\s+[A-Z]", re.I),
    re.compile(r"^EXHIBIT\s+[A-Z]", re.I),
    re.compile(r"^SCHEDULE\s+[\dA-Z]", re.I),
]
_SIGNATURE_BLOCK = re.compile(r"^(IN WITNESS WHEREOF|SIGNATURES?|DATE:|WITNESS:)", re.I)
_SENTENCE_SPLIT = re.compile(r"(?<=\.)\s+(?=[A-Z])|(?<=;)\s+")


@dataclass
class ClauseChunk:
    text: str
    section_label: Optional[str] = None


def is_heading(line: str) -> bool:
    s = line.strip()
    if len(s) < 3 or len(s) > 150:
        return False
    return any(p.match(s) for p in _HEADING_PATTERNS)


def _label(line: str) -> str:
    s = line.strip()
    return s if len(s) <= MAX_LABEL_CHARS else s[: MAX_LABEL_CHARS - 3] + "..."


def _split_sections(raw_text: str) -> List[tuple[Optional[str], str]]:
    sections: List[tuple[Optional[str], str]] = []
    heading: Optional[str] = None
    lines: List[str] = []
    for line in raw_text.splitlines():
        if is_heading(line):
            if lines:
                sections.append((heading, "\n".join(lines)))
            heading, lines = _label(line), [line]
        else:
            lines.append(line)
    if lines:
        sections.append((heading, "\n".join(lines)))
    return sections


def _pack(pieces: List[str], sep: str, max_chars: int) -> List[str]:
    """Greedy packing; a single piece longer than max_chars is kept whole."""
    out: List[str] = []
    buf = ""
    for piece in pieces:
        candidate = f"{buf}{sep}{piece}" if buf else piece
        if len(candidate) > max_chars and buf:
            out.append(buf)
            buf = piece
        else:
            buf = candidate
    if buf:
        out.append(buf)
    return out


def _split_section(content: str, label: Optional[str], max_chars: int) -> List[ClauseChunk]:
    cleaned = re.sub(r"\n{3,}", "\n\n", content).strip()
    if len(cleaned) < MIN_SECTION_CHARS:
        return []
    if len(cleaned) <= max_chars:
        return [ClauseChunk(cleaned, label)]

    pieces: List[str] = []
    for para in (p.strip() for p in re.split(r"\n\n+", cleaned)):
        if not para:
            continue
        if len(para) > max_chars:
            sentences = [s for s in _SENTENCE_SPLIT.split(para) if s.strip()]
            pieces.extend(_pack(sentences, " ", max_chars))
        else:
            pieces.append(para)
    return [
        ClauseChunk(text.strip(), label)
        for text in _pack(pieces, "\n\n", max_chars)
        if len(text.strip()) >= MIN_SECTION_CHARS
    ]


def _keep(chunk: ClauseChunk) -> bool:
    text = chunk.text
    if len(text) < MIN_CHUNK_CHARS:
        return False
    alpha = len(re.sub(r"[^a-zA-Z]", "", text))
    if alpha / max(len(text), 1) < MIN_ALPHA_RATIO:
        return False
    return not _SIGNATURE_BLOCK.match(text.strip())


def chunk_lease_text(raw_text: str, max_chars: int = MAX_CHUNK_CHARS) -> List[ClauseChunk]:
    if not raw_text or len(raw_text) < MIN_TEXT_CHARS:
        return []
    chunks = [
        chunk
        for label, content in _split_sections(raw_text)
        for chunk in _split_section(content, label, max_chars)
    ]
    return [c for c in chunks if _keep(c)]
