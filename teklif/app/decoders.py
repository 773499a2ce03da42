"""Adapters around the spreadsheet, document and OCR libraries.

Each decoder takes the raw upload bytes and either returns plain data or
raises :class:`DecodeError`; callers turn that into a status message.
"""

from __future__ import annotations

from io import BytesIO
from typing import Any, List, Optional
from zipfile import BadZipFile

import pytesseract
from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from PIL import Image, UnidentifiedImageError

from teklif.shared.catalog import cell_text

DEFAULT_OCR_LANG = "tur"


class DecodeError(Exception):
    """An uploaded asset could not be turned into text or rows."""


def _trim_row(values) -> List[Any]:
    row = list(values)
    while row and (row[-1] is None or (isinstance(row[-1], str) and not row[-1].strip())):
        row.pop()
    return row


def decode_workbook(data: bytes) -> List[List[Any]]:
    """Return the rows of the first worksheet with trailing blank cells removed.

    Fully blank rows come back as empty lists so row positions are kept.
    """
    try:
        workbook = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, ValueError, OSError) as exc:
        raise DecodeError(f"Çalışma kitabı okunamadı: {exc}") from exc
    try:
        if not workbook.worksheets:
            return []
        sheet = workbook.worksheets[0]
        return [_trim_row(values) for values in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def rows_to_text(rows: List[List[Any]]) -> str:
    """Flatten every non-empty cell, row by row, into newline separated text."""
    cells = [cell_text(value) for row in rows for value in row if value is not None]
    return "\n".join(cell for cell in cells if cell.strip())


def extract_document_text(data: bytes) -> str:
    """Raw text of a ``.docx`` file: paragraphs first, then table cells."""
    try:
        document = Document(BytesIO(data))
    except (PackageNotFoundError, BadZipFile, KeyError, ValueError) as exc:
        raise DecodeError(f"Belge okunamadı: {exc}") from exc

    parts = [paragraph.text for paragraph in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            for cell in row.cells:
                parts.append(cell.text)
    return "\n".join(part for part in parts if part.strip())


def recognize_image(data: bytes, lang: str = DEFAULT_OCR_LANG, tesseract_cmd: Optional[str] = None) -> str:
    if tesseract_cmd:
        pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
    try:
        with Image.open(BytesIO(data)) as image:
            return pytesseract.image_to_string(image, lang=lang)
    except UnidentifiedImageError as exc:
        raise DecodeError(f"Görsel tanınamadı: {exc}") from exc
    except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError, RuntimeError) as exc:
        raise DecodeError(f"OCR başarısız: {exc}") from exc
