"""Resume document parsing utilities.

Supports PDF (text extraction with OCR fallback for scanned files) and plain
text / markdown uploads.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, BinaryIO

import pdfplumber
import pytesseract
from pdf2image import convert_from_bytes
from pypdf import PdfReader

from .config import settings

logger = logging.getLogger(__name__)


class FileType(str, Enum):
    """Supported file types."""
    PDF = "pdf"
    TEXT = "text"
    MARKDOWN = "markdown"
    UNKNOWN = "unknown"


class ParseError(Exception):
    """Raised when document parsing fails."""
    pass


@dataclass
class ParsedDocument:
    """Result of document parsing."""
    text: str
    file_type: FileType
    metadata: dict[str, Any] = field(default_factory=dict)
    confidence: float = 1.0


def detect_file_type(filename: str, content: bytes | None = None) -> FileType:
    """Detect file type from filename or content.

    Args:
        filename: Original filename
        content: Optional file content for magic number detection

    Returns:
        Detected FileType
    """
    filename_lower = filename.lower()

    if filename_lower.endswith('.pdf'):
        return FileType.PDF
    elif filename_lower.endswith('.txt'):
        return FileType.TEXT
    elif filename_lower.endswith(('.md', '.markdown')):
        return FileType.MARKDOWN

    # Magic number detection if content provided
    if content and content.startswith(b'%PDF'):
        return FileType.PDF

    return FileType.UNKNOWN


def _join_pages(pages: list[str | None]) -> str:
    return "\n\n".join(text for text in pages if text)


def extract_text_from_pdf_native(file_obj: BinaryIO) -> tuple[str, float]:
    """Extract text from PDF using native text extraction.

    Args:
        file_obj: Binary file object

    Returns:
        Tuple of (extracted_text, confidence_score)
    """
    try:
        # pdfplumber keeps reading order better than pypdf
        with pdfplumber.open(file_obj) as pdf:
            text = _join_pages([page.extract_text() for page in pdf.pages])

        if len(text.strip()) > 100:
            return text, 0.95
        elif len(text.strip()) > 20:
            return text, 0.7
        return text, 0.3

    except Exception as e:
        logger.warning(f"pdfplumber extraction failed: {e}, trying pypdf")

    try:
        file_obj.seek(0)
        reader = PdfReader(file_obj)
        text = _join_pages([page.extract_text() for page in reader.pages])
        return text, 0.8 if len(text.strip()) > 100 else 0.5
    except Exception as e:
        logger.error(f"pypdf extraction also failed: {e}")
        return "", 0.0


def extract_text_from_pdf_ocr(file_content: bytes) -> tuple[str, float]:
    """Extract text from a scanned PDF with Tesseract.

    Args:
        file_content: PDF file content as bytes

    Returns:
        Tuple of (extracted_text, confidence_score)

    Raises:
        ParseError: If the PDF cannot be rasterized or OCR is unavailable
    """
    try:
        images = convert_from_bytes(file_content, dpi=settings.ocr.dpi, fmt='jpeg')
    except Exception as e:
        raise ParseError(f"OCR processing failed: {e}") from e

    if not images:
        logger.warning("No images extracted from PDF")
        return "", 0.0

    logger.info(f"Running OCR on {len(images)} pages")
    text_parts = []
    confidences = []

    for idx, image in enumerate(images):
        try:
            ocr_data = pytesseract.image_to_data(
                image,
                lang=settings.ocr.tesseract_lang,
                output_type=pytesseract.Output.DICT,
            )
        except pytesseract.TesseractError as e:
            logger.error(f"OCR failed for page {idx + 1}: {e}")
            continue
        except pytesseract.TesseractNotFoundError as e:
            raise ParseError("Tesseract is not installed") from e

        words = [w for w in ocr_data['text'] if w.strip()]
        if words:
            text_parts.append(" ".join(words))
            conf_values = [float(c) for c in ocr_data['conf'] if float(c) >= 0]
            if conf_values:
                confidences.append(sum(conf_values) / len(conf_values) / 100.0)

    text = "\n\n".join(text_parts)
    confidence = sum(confidences) / len(confidences) if confidences else 0.0
    logger.info(f"OCR completed. Extracted {len(text)} chars with confidence {confidence:.2f}")
    return text, confidence


def parse_pdf(file_obj: BinaryIO, filename: str) -> ParsedDocument:
    """Parse PDF with text extraction + OCR fallback.

    Raises:
        ParseError: If no text can be extracted
    """
    text, confidence = extract_text_from_pdf_native(file_obj)
    method = "native"

    if settings.ocr.enabled and (confidence < settings.ocr.confidence_threshold or len(text.strip()) < 50):
        logger.info(f"Native extraction confidence {confidence:.2f} too low, trying OCR")
        file_obj.seek(0)
        try:
            text_ocr, conf_ocr = extract_text_from_pdf_ocr(file_obj.read())
        except ParseError as e:
            if not text.strip():
                raise
            logger.warning(f"OCR unavailable, keeping native text: {e}")
        else:
            if conf_ocr > confidence or len(text_ocr) > len(text):
                text, confidence, method = text_ocr, conf_ocr, "ocr"

    if not text.strip():
        raise ParseError("No text could be extracted from PDF")

    return ParsedDocument(
        text=text,
        file_type=FileType.PDF,
        confidence=confidence,
        metadata={"filename": filename, "method": method},
    )


def parse_text(file_obj: BinaryIO, filename: str, file_type: FileType = FileType.TEXT) -> ParsedDocument:
    """Decode a plain-text or markdown upload.

    Raises:
        ParseError: If the file is empty
    """
    raw = file_obj.read()
    try:
        text = raw.decode('utf-8-sig')
    except UnicodeDecodeError:
        logger.warning(f"{filename} is not valid UTF-8, decoding as latin-1")
        text = raw.decode('latin-1')

    if not text.strip():
        raise ParseError(f"{filename} is empty")

    return ParsedDocument(text=text, file_type=file_type, metadata={"filename": filename, "method": "text"})


def parse_file(file_obj: BinaryIO, filename: str) -> ParsedDocument:
    """Parse an uploaded resume based on its type.

    Args:
        file_obj: Binary file object
        filename: Original filename

    Returns:
        ParsedDocument with the extracted text

    Raises:
        ParseError: If file type unsupported or parsing fails
    """
    file_type = detect_file_type(filename)

    if file_type == FileType.PDF:
        return parse_pdf(file_obj, filename)
    elif file_type in (FileType.TEXT, FileType.MARKDOWN):
        return parse_text(file_obj, filename, file_type)
    else:
        raise ParseError(f"Unsupported file type: {filename}")
