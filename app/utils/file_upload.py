"""
File Upload Utility - Read resume uploads and extract their text.

Supported formats:
- PDF (.pdf) using PyPDF2
- Word (.docx) using python-docx
- Plain Text (.txt)

Max file size: 5MB (MAX_UPLOAD_SIZE_MB)

Logos are images (.jpg, .jpeg, .png, .webp) up to 2MB.
"""

import io
from typing import Optional, Tuple
from urllib.parse import quote
from fastapi import UploadFile, HTTPException
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError
from docx import Document

from app.core.config import get_settings

ALLOWED_EXTENSIONS = {'.pdf', '.docx', '.txt'}

CONTENT_TYPES = {
    '.pdf': 'application/pdf',
    '.docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    '.txt': 'text/plain',
}

LOGO_CONTENT_TYPES = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.webp': 'image/webp',
}
LOGO_MAX_BYTES = 2 * 1024 * 1024


def get_file_extension(filename: str) -> str:
    """Get lowercase file extension."""
    if '.' not in filename:
        return ''
    return '.' + filename.rsplit('.', 1)[1].lower()


def content_disposition(filename: str, disposition: str = "inline") -> str:
    """
    Content-Disposition header value safe for any filename.

    Headers are latin-1 on the wire, so the plain `filename` gets an ASCII
    fallback and the real name travels in RFC 5987 `filename*`.
    """
    fallback = filename.encode("ascii", "replace").decode("ascii")
    fallback = fallback.replace('"', "'").replace("\\", "_").replace("\r", "").replace("\n", "")
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


async def read_upload(file: UploadFile, allowed_extensions, max_bytes: Optional[int] = None) -> Tuple[bytes, str]:
    """
    Read an upload after validating name, type and size.

    Returns:
        Tuple of (content, extension)
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    ext = get_file_extension(file.filename)
    if ext not in allowed_extensions:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type '{ext}'. Allowed: {', '.join(sorted(allowed_extensions))}"
        )

    content = await file.read()

    settings = get_settings()
    limit = max_bytes or settings.max_upload_size_bytes
    if len(content) > limit:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {limit // (1024 * 1024)}MB"
        )
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    return content, ext


async def extract_resume(file: UploadFile) -> Tuple[bytes, str, str]:
    """
    Read a resume upload and extract its text.

    Returns:
        Tuple of (content, extension, extracted_text)

    Raises:
        HTTPException on validation/extraction errors
    """
    content, ext = await read_upload(file, ALLOWED_EXTENSIONS)

    if ext == '.pdf':
        text = extract_from_pdf(content)
    elif ext == '.docx':
        text = extract_from_docx(content)
    else:  # .txt
        text = extract_from_txt(content)

    if not text.strip():
        raise HTTPException(
            status_code=400,
            detail="Could not extract text from file. File may be empty or corrupted."
        )

    return content, ext, text


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
    except (PdfReadError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Error reading PDF: {str(e)}")


def extract_from_docx(content: bytes) -> str:
    """Extract text from DOCX bytes, paragraphs first then table cells."""
    try:
        doc = Document(io.BytesIO(content))
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Error reading DOCX: {str(e)}")

    text_parts = [para.text for para in doc.paragraphs if para.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if row_text:
                text_parts.append(' | '.join(row_text))
    return '\n'.join(text_parts)


def extract_from_txt(content: bytes) -> str:
    """Extract text from TXT bytes."""
    for encoding in ['utf-8', 'latin-1']:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise HTTPException(status_code=400, detail="Could not decode text file")


def get_supported_formats() -> dict:
    """Get info about supported resume formats."""
    return {
        "supported_formats": [
            {"extension": ".pdf", "name": "PDF"},
            {"extension": ".docx", "name": "Word Document"},
            {"extension": ".txt", "name": "Plain Text"}
        ],
        "max_size_mb": get_settings().max_upload_size_mb
    }
