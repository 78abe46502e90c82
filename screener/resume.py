import io
import logging

from docx import Document
from pypdf import PdfReader

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
SUPPORTED_MIME_TYPES = (PDF_MIME, DOCX_MIME)


class ExtractionError(Exception):
    """Base class for resume text extraction errors"""
    pass


class UnsupportedType(ExtractionError):
    """The uploaded file is neither a PDF nor a DOCX document"""
    pass


class EmptyContent(ExtractionError):
    """The document parsed but contained no text (e.g. a scanned PDF)"""
    pass


class ExtractionFailure(ExtractionError):
    """The document could not be parsed"""
    pass


def extract_text_from_pdf(file_bytes: bytes) -> str:
    pdf = PdfReader(io.BytesIO(file_bytes))
    pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(pages)


def extract_text_from_docx(file_bytes: bytes) -> str:
    doc = Document(io.BytesIO(file_bytes))
    paragraphs = [p.text for p in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            paragraphs.extend(cell.text for cell in row.cells)
    return "\n".join(paragraphs)


def extract_text(file_bytes: bytes, mime_type: str) -> str:
    """
    Extract raw text from a PDF or DOCX resume.

    Raises UnsupportedType for any other mime type, EmptyContent when no text
    is found and ExtractionFailure when the parser chokes on the file.
    """
    if mime_type == PDF_MIME:
        parser = extract_text_from_pdf
    elif mime_type == DOCX_MIME:
        parser = extract_text_from_docx
    else:
        raise UnsupportedType("Unsupported file type. Please upload PDF or DOCX.")

    try:
        text = parser(file_bytes)
    except Exception as e:
        logger.error(f"Failed to parse {mime_type} document: {e}")
        raise ExtractionFailure(f"Could not read the uploaded document: {e}") from e

    if not text.strip():
        raise EmptyContent("No text found in the uploaded file. PDF might be scanned.")
    logger.info(f"Extracted {len(text)} characters from {mime_type} document")
    return text
