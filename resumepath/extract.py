import io
import os
from typing import Optional

import docx
import fitz  # PyMuPDF

from resumepath import settings


class ResumeExtractionError(Exception):
    """Raised when an uploaded file cannot be turned into text."""


class UploadRejected(ValueError):
    """Raised when an upload fails validation; the message is user-facing."""


INVALID_TYPE_MESSAGE = "Invalid file type. Only TXT, PDF, and DOCX files are allowed."


def file_extension(filename: Optional[str]) -> str:
    return os.path.splitext(filename or "")[1].lower()


def validate_upload(filename: Optional[str], content_type: Optional[str], size: int) -> None:
    if file_extension(filename) not in settings.ALLOWED_EXTENSIONS:
        raise UploadRejected(INVALID_TYPE_MESSAGE)
    ct = (content_type or "").split(";")[0].strip().lower()
    if ct and ct not in settings.ALLOWED_MIME_TYPES:
        raise UploadRejected(INVALID_TYPE_MESSAGE)
    if size > settings.MAX_UPLOAD_BYTES:
        raise UploadRejected(f"File too large. Maximum size is {settings.MAX_UPLOAD_MB}MB.")
    if size == 0:
        raise UploadRejected("Uploaded file is empty")


# ---------------------------------------------------------------------------
# bytes -> text
# ---------------------------------------------------------------------------
def extract_text_pdf(pdf_bytes: bytes) -> str:
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        return "\n".join([p.get_text("text") for p in doc])


def extract_text_docx(docx_bytes: bytes) -> str:
    document = docx.Document(io.BytesIO(docx_bytes))
    return "\n".join([paragraph.text for paragraph in document.paragraphs])


def extract_text_txt(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _kind(filename: Optional[str], content_type: Optional[str]) -> Optional[str]:
    ext = file_extension(filename)
    ct = (content_type or "").split(";")[0].strip().lower()
    if ext == ".pdf" or ct == settings.MIME_PDF:
        return "pdf"
    if ext == ".docx" or ct == settings.MIME_DOCX:
        return "docx"
    if ext == ".txt" or ct == settings.MIME_TXT:
        return "txt"
    return None


def extract_text(data: bytes, filename: Optional[str], content_type: Optional[str] = None) -> str:
    kind = _kind(filename, content_type)
    if kind is None:
        raise ResumeExtractionError(INVALID_TYPE_MESSAGE)
    extractor = {"pdf": extract_text_pdf, "docx": extract_text_docx, "txt": extract_text_txt}[kind]
    try:
        return extractor(data)
    except Exception as e:
        raise ResumeExtractionError(f"Failed to extract text from {kind.upper()} file: {e}") from e
