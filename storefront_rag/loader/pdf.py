"""PDF manual fetcher using PyPDF2."""

from pathlib import Path
from typing import List
import re
import PyPDF2
from .base import BaseFetcher, Document

_PARAGRAPH_BREAK_RE = re.compile(r'\n\s*\n+')


def split_paragraphs(text: str, min_length: int = 50) -> List[str]:
    """
    Split extracted text on blank lines.

    Paragraphs shorter than min_length (headers, page numbers) are dropped.
    """
    paragraphs = (p.strip() for p in _PARAGRAPH_BREAK_RE.split(text))
    return [p for p in paragraphs if len(p) > min_length]


class PDFFetcher(BaseFetcher):
    """Load a PDF and emit one Document per paragraph."""

    def __init__(self, path: str, id_prefix: str = "instr", min_length: int = 50):
        """
        Args:
            path: Path to PDF file
            id_prefix: Prefix for Document ids ({prefix}:{n})
            min_length: Minimum paragraph length kept
        """
        self.path = Path(path)
        self.id_prefix = id_prefix
        self.min_length = min_length

    def read_text(self) -> str:
        """
        Extract the full text of the PDF.

        Raises:
            FileNotFoundError: If PDF not found
            ValueError: If PDF invalid
        """
        if not self.path.exists():
            raise FileNotFoundError(f"PDF not found: {self.path}")

        try:
            with open(self.path, 'rb') as f:
                pdf_reader = PyPDF2.PdfReader(f)
                pages = [page.extract_text() or '' for page in pdf_reader.pages]
        except PyPDF2.errors.PdfReadError as e:
            raise ValueError(f"Invalid PDF: {e}")

        return '\n\n'.join(pages)

    def documents(self) -> List[Document]:
        paragraphs = split_paragraphs(self.read_text(), self.min_length)
        return [
            Document(
                id=f"{self.id_prefix}:{i}",
                text=paragraph,
                metadata={'source': 'pdf', 'path': str(self.path)},
            )
            for i, paragraph in enumerate(paragraphs)
        ]
