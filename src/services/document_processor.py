"""
PDF text extraction.
"""

import io
import logging

from pypdf import PdfReader

LOGGER = logging.getLogger("pdfquiz.pdf")


class ExtractionError(ValueError):
    """Raised when a PDF cannot be read or parsed."""


class PDFProcessor:
    """Extracts text from PDF files."""

    def extract_pages_from_bytes(self, data: bytes) -> list[str]:
        """
        Extract per-page text from PDF bytes.

        Returns:
            One string per page, in page order. Pages without text yield "".
        """
        if not data:
            raise ExtractionError("File is empty and cannot be processed.")

        try:
            reader = PdfReader(io.BytesIO(data))
        except Exception as e:
            raise ExtractionError(f"Unable to parse PDF (possibly corrupted): {e!s}") from e

        pages: list[str] = []
        try:
            for page in reader.pages:
                pages.append((page.extract_text() or "").strip())
        except Exception as e:
            raise ExtractionError(f"Error extracting page text: {e!s}") from e

        LOGGER.debug("Extracted %d pages", len(pages))
        return pages

    def extract_text_from_bytes(self, data: bytes) -> str:
        """
        Extract the text of every page, each page followed by a blank line.

        Raises:
            ExtractionError: If the data is empty, corrupted, or cannot be read.
        """
        return "".join(f"{page}\n\n" for page in self.extract_pages_from_bytes(data))
