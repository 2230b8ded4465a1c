"""
File Upload Utility - Extract text from resume files.

Supported formats:
- PDF (.pdf) using PyPDF2, with an optional OCR fallback (pdfplumber + Pillow + pytesseract)
- Word (.docx) using python-docx
- Plain Text (.txt)

Max file size: settings.max_upload_mb (50MB)

Unreadable files produce empty text rather than an exception; the
CV structurer decides that empty text is an ExtractionFailed.
"""

import io
import logging
from typing import Tuple

import pdfplumber
import pytesseract
from docx import Document
from fastapi import UploadFile
from PIL import Image
from PyPDF2 import PdfReader

from app.core.config import get_settings
from app.core.errors import ValidationFailed

settings = get_settings()
logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'.pdf', '.docx', '.txt'}
_MIME_TO_EXTENSION = {
    "application/pdf": ".pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "text/plain": ".txt",
}


def get_file_extension(filename: str) -> str:
    """Get lowercase file extension."""
    if not filename or '.' not in filename:
        return ''
    return '.' + filename.rsplit('.', 1)[1].lower()


def resolve_file_type(filename: str, content_type: str = None) -> str:
    """Extension first, declared MIME type as a fallback."""
    ext = get_file_extension(filename)
    if ext in ALLOWED_EXTENSIONS:
        return ext
    if content_type:
        for mime, mapped in _MIME_TO_EXTENSION.items():
            if mime in content_type:
                return mapped
    return ext


def validate_upload(filename: str, content: bytes, content_type: str = None) -> str:
    """
    Check name, type and size before any extraction.

    Returns:
        Resolved extension
    Raises:
        ValidationFailed (400 / 413)
    """
    if not filename:
        raise ValidationFailed("No filename provided")

    if len(content) > settings.max_upload_bytes:
        raise ValidationFailed(
            f"File exceeds {settings.max_upload_mb}MB limit", status_code=413
        )

    ext = resolve_file_type(filename, content_type)
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationFailed(f"Unsupported file type '{ext}'. Allowed: PDF, DOCX, TXT")
    return ext


async def read_upload(file: UploadFile) -> Tuple[bytes, str]:
    """Read an UploadFile fully and validate it."""
    content = await file.read()
    validate_upload(file.filename, content, file.content_type)
    return content, file.filename


def extract_text(content: bytes, filename: str, content_type: str = None) -> str:
    """
    Extract plain text from a resume binary.

    Raises ValidationFailed for oversize/unsupported input; returns ""
    when the document has no readable text layer.
    """
    ext = validate_upload(filename, content, content_type)

    if ext == '.pdf':
        text = extract_from_pdf(content)
        if not text.strip() and settings.ocr_fallback_enabled:
            text = extract_from_pdf_ocr(content)
    elif ext == '.docx':
        text = extract_from_docx(content)
    else:  # .txt
        text = extract_from_txt(content)

    return text


def truncate_text(text: str, limit: int = None) -> str:
    """Bounded prefix handed to the LLM (cost control + context limits)."""
    return (text or "")[:limit or settings.parse_char_limit]


def extract_from_pdf(content: bytes) -> str:
    """Extract text from PDF bytes."""
    try:
        reader = PdfReader(io.BytesIO(content))
        text_parts = []
        for page in reader.pages:
            page_text = page.extract_text()
            if page_text:
                text_parts.append(page_text)
        return '\n'.join(text_parts)
    except Exception as e:
        logger.warning("Error reading PDF: %s", e)
        return ""


def extract_from_pdf_ocr(content: bytes) -> str:
    """Rasterize each page and OCR it. Best effort: failures yield ""."""
    try:
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            parts = []
            for page in pdf.pages:
                rendered = page.to_image(resolution=300).original
                image = rendered if isinstance(rendered, Image.Image) else Image.open(io.BytesIO(rendered))
                parts.append(pytesseract.image_to_string(image.convert("L")))
        return '\n'.join(parts)
    except Exception as e:
        logger.info("OCR fallback failed: %s", e)
        return ""


def extract_from_docx(content: bytes) -> str:
    """Extract text from DOCX bytes."""
    try:
        doc = Document(io.BytesIO(content))
        text_parts = []

        # Extract paragraphs
        for para in doc.paragraphs:
            if para.text.strip():
                text_parts.append(para.text)

        # Extract tables
        for table in doc.tables:
            for row in table.rows:
                row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if row_text:
                    text_parts.append(' | '.join(row_text))

        return '\n'.join(text_parts)
    except Exception as e:
        logger.warning("Error reading DOCX: %s", e)
        return ""


def extract_from_txt(content: bytes) -> str:
    """Extract text from TXT bytes."""
    for encoding in ['utf-8', 'cp1252']:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return content.decode('latin-1')


def get_supported_formats() -> dict:
    """Get info about supported file formats."""
    return {
        "supported_formats": [
            {"extension": ".pdf", "available": True, "name": "PDF"},
            {"extension": ".docx", "available": True, "name": "Word Document"},
            {"extension": ".txt", "available": True, "name": "Plain Text"}
        ],
        "max_size_mb": settings.max_upload_mb,
        "ocr_fallback": settings.ocr_fallback_enabled,
    }
