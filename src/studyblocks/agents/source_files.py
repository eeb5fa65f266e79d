"""
Source-file loading for summary generation.

Lecture material arrives as text, Markdown, PDF or Word files. This module
turns each one into a :class:`SourceDocument`: the candidate-file record the
materializer matches hints against, plus the plain text handed to the
generation model.

Extraction
----------
TXT / MD
    Read as UTF-8.
PDF
    One ``[Page N]`` section per non-empty page, via ``pdfplumber``. The page
    tags let the model cite page numbers in its image requests.
DOCX
    Non-empty paragraphs joined by blank lines, via ``python-docx``.

All functions are pure apart from reading the file: no LLM calls, no
blackboard writes.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

import pdfplumber
from docx import Document
from pydantic import BaseModel, ConfigDict, Field

TEXT_SUFFIXES = frozenset({".txt", ".md", ".markdown"})
SUPPORTED_SUFFIXES = TEXT_SUFFIXES | {".pdf", ".docx"}


class SourceFile(BaseModel):
    """A candidate input file that materialized blocks may point back to."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stable identifier of the file.")
    name: str = Field(..., description="Display name, usually the file name.")
    url: str = Field(..., description="Where the file can be fetched from.")


class SourceDocument(BaseModel):
    """A loaded input file and its extracted text."""

    file: SourceFile
    text: str = Field(default="", description="Extracted plain text.")

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


def _normalize_path(path: str | Path) -> Path:
    """Resolve ``path`` and make sure it exists.

    Raises
    ------
    FileNotFoundError
        If the path does not exist.
    """
    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise FileNotFoundError(f"Input path does not exist: {p}")
    return p


def extract_text_file(path: Path) -> str:
    return path.read_text(encoding="utf-8").strip()


def extract_pdf(path: Path) -> str:
    """Page-tagged text of every non-empty PDF page."""
    sections: list[str] = []
    with pdfplumber.open(path) as pdf:
        for page_index, page in enumerate(pdf.pages, start=1):
            text = (page.extract_text() or "").strip()
            if text:
                sections.append(f"[Page {page_index}]\n{text}")
    return "\n\n".join(sections)


def extract_docx(path: Path) -> str:
    document = Document(str(path))
    paragraphs: Iterable[str] = ((p.text or "").strip() for p in document.paragraphs)
    return "\n\n".join(p for p in paragraphs if p)


def source_file_for(path: str | Path) -> SourceFile:
    """Candidate-file record for a local path (``file://`` URL)."""
    p = Path(path).expanduser().resolve()
    return SourceFile(id=p.name, name=p.name, url=p.as_uri())


def load_source(path: str | Path) -> SourceDocument:
    """Load one input file.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist.
    ValueError
        If the suffix is not one of :data:`SUPPORTED_SUFFIXES`.
    """
    p = _normalize_path(path)
    suffix = p.suffix.lower()
    if suffix in TEXT_SUFFIXES:
        text = extract_text_file(p)
    elif suffix == ".pdf":
        text = extract_pdf(p)
    elif suffix == ".docx":
        text = extract_docx(p)
    else:
        raise ValueError(
            f"Unsupported input type {suffix or '(none)'!r}; "
            f"expected one of {sorted(SUPPORTED_SUFFIXES)}"
        )
    return SourceDocument(file=source_file_for(p), text=text)


def load_sources(paths: Sequence[str | Path]) -> list[SourceDocument]:
    """Load several input files, preserving the given order."""
    return [load_source(p) for p in paths]


__all__ = [
    "SUPPORTED_SUFFIXES",
    "SourceDocument",
    "SourceFile",
    "load_source",
    "load_sources",
    "source_file_for",
]
