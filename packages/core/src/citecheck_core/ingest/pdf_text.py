from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import fitz


@dataclass(frozen=True)
class PdfText:
    path: str
    page_count: int
    pages: list[str]

    @property
    def text(self) -> str:
        return "\n".join(self.pages)

    @property
    def has_text(self) -> bool:
        return any(page.strip() for page in self.pages)


def read_pdf_text(pdf_path: str | Path) -> PdfText:
    path = Path(pdf_path)
    if not path.is_file():
        raise FileNotFoundError(f"PDF not found: {path}")
    with fitz.open(path) as doc:
        pages = [page.get_text() for page in doc]
    return PdfText(path=str(path), page_count=len(pages), pages=pages)


def extract_pdf_text(pdf_path: str | Path) -> str:
    return read_pdf_text(pdf_path).text
