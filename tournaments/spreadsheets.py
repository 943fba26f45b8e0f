"""Spreadsheet import and export for student rosters and entry lists."""
from __future__ import annotations

import io
import logging
import numbers
import re
import zipfile
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Iterable

import pandas as pd
from django.db import DatabaseError, transaction
from openpyxl.utils.exceptions import InvalidFileException

from . import models
from .services import EXPORT_COLUMNS

logger = logging.getLogger(__name__)

EMPTY_FILE_MESSAGE = "File appears empty or missing headers."

SERIAL_EPOCH = date(1899, 12, 30)
SERIAL_MAX_DAYS = 60000

ISO_DATE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:[ T][\d:.]*)?$")
NUMERIC_RE = re.compile(r"^\d+(?:\.\d+)?$")
DAY_FIRST_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
LEADING_NUMBER_RE = re.compile(r"^\s*(\d+(?:\.\d*)?|\.\d+)")

COLUMN_KEYWORDS: dict[str, tuple[str, ...]] = {
    "name": ("name", "student", "athlete"),
    "gender": ("gender", "sex"),
    "rank": ("rank", "belt", "grade"),
    "weight": ("weight", "kg"),
    "dob": ("dob", "birth", "date"),
}

VALID_RANKS = (
    "white",
    "yellow",
    "orange",
    "green",
    "blue",
    "purple",
    "brown",
    "black",
    "shodan",
    "nidan",
    "sandan",
)

GENDER_ALIASES = {
    "m": "male",
    "male": "male",
    "man": "male",
    "boy": "male",
    "f": "female",
    "female": "female",
    "woman": "female",
    "girl": "female",
}

TEMPLATE_HEADERS = ("Name", "Gender", "Rank", "Weight", "Date of Birth")
MAX_WEIGHT = Decimal("999.99")


# Dates ------------------------------------------------------------------


def serial_to_iso(serial) -> str | None:
    """Convert a spreadsheet day serial (days since 1899-12-30) to ISO format."""

    try:
        days = int(float(serial) // 1)
    except (TypeError, ValueError, OverflowError):
        return None
    if days < 1 or days > SERIAL_MAX_DAYS:
        return None
    return (SERIAL_EPOCH + timedelta(days=days)).isoformat()


def _calendar_date(year: int, month: int, day: int) -> str | None:
    if not 1900 <= year <= 2100:
        return None
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def normalize_dob(value) -> str | None:
    """Best-effort conversion of a date-of-birth cell to ``YYYY-MM-DD``.

    Accepts date objects, ISO strings, spreadsheet serial numbers (as numbers
    or numeric strings) and day-first ``DD/MM/YYYY`` or ``DD-MM-YYYY`` text.
    Returns ``None`` for anything else.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        if pd.isna(value):
            return None
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        return serial_to_iso(value)

    text = str(value).strip()
    if not text:
        return None

    match = ISO_DATE_RE.match(text)
    if match:
        try:
            return date.fromisoformat(match.group(1)).isoformat()
        except ValueError:
            return None

    if NUMERIC_RE.match(text):
        iso = serial_to_iso(text)
        if iso:
            return iso

    match = DAY_FIRST_RE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return _calendar_date(year, month, day)

    return None


# Parsing ----------------------------------------------------------------


def _clean_cell(value):
    if value is None:
        return None
    if pd.isna(value):
        return None
    if isinstance(value, str):
        return value.strip() or None
    return value


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _read_csv(upload) -> pd.DataFrame:
    """Read a CSV roster; cells past the header row's width are dropped."""

    options = {"header": None, "dtype": str, "keep_default_na": False}
    width = pd.read_csv(upload, nrows=1, **options).shape[1]
    upload.seek(0)
    return pd.read_csv(
        upload,
        engine="python",
        index_col=False,
        on_bad_lines=lambda cells: cells[:width],
        **options,
    )


def read_rows(upload) -> list[list]:
    """Read an uploaded ``.xlsx`` or ``.csv`` file into non-empty rows of cells."""

    filename = (getattr(upload, "name", "") or "").lower()
    try:
        if filename.endswith(".csv"):
            frame = _read_csv(upload)
        elif filename.endswith(".xlsx"):
            frame = pd.read_excel(upload, engine="openpyxl", header=None)
        else:
            raise ValueError("Upload an .xlsx or .csv file.")
    except pd.errors.EmptyDataError as exc:
        raise ValueError(EMPTY_FILE_MESSAGE) from exc
    except (pd.errors.ParserError, zipfile.BadZipFile, InvalidFileException, UnicodeDecodeError) as exc:
        logger.warning("Unable to read spreadsheet %s: %s", filename, exc)
        raise ValueError("Unable to read the uploaded file.") from exc

    rows = []
    for record in frame.itertuples(index=False, name=None):
        cells = [_clean_cell(value) for value in record]
        if any(cell is not None for cell in cells):
            rows.append(cells)
    if len(rows) < 2:
        raise ValueError(EMPTY_FILE_MESSAGE)
    return rows


def match_columns(headers: Iterable) -> dict[str, int | None]:
    """Map each student field to the first header containing one of its keywords."""

    lowered = [_cell_text(header).lower() for header in headers]
    columns: dict[str, int | None] = {}
    for field, keywords in COLUMN_KEYWORDS.items():
        columns[field] = next(
            (index for index, header in enumerate(lowered) if any(keyword in header for keyword in keywords)),
            None,
        )
    return columns


def normalize_gender(value) -> str:
    text = _cell_text(value).lower()
    return GENDER_ALIASES.get(text, text)


def parse_weight(value) -> Decimal | None:
    """Return the leading numeric part of a weight cell, like ``45 kg`` → ``45``."""

    match = LEADING_NUMBER_RE.match(_cell_text(value))
    if not match:
        return None
    try:
        return Decimal(match.group(1)).quantize(Decimal("0.01"))
    except InvalidOperation:
        return None


def validate_row(row: dict) -> dict[str, str]:
    """Soft checks for an import row; the returned warnings are keyed by field."""

    warnings: dict[str, str] = {}
    gender = row.get("gender") or ""
    if gender and gender not in models.Student.Gender.values:
        warnings["gender"] = "Unknown gender (use male or female)"

    rank = (row.get("rank") or "").lower()
    if rank and not any(valid in rank for valid in VALID_RANKS):
        warnings["rank"] = f"Unknown rank format. valid: {', '.join(VALID_RANKS[:3])}..."

    weight = row.get("weight") or ""
    if weight:
        parsed = parse_weight(weight)
        if parsed is None:
            warnings["weight"] = "Invalid weight format (must be a number)"
        elif parsed > MAX_WEIGHT:
            warnings["weight"] = "Weight is out of range"

    dob = row.get("dob") or ""
    if dob and not normalize_dob(dob):
        warnings["dob"] = "Invalid date format (use YYYY-MM-DD)"
    return warnings


def build_row(*, name="", gender="", rank="", weight="", dob=None) -> dict:
    """Normalise raw cell values into a session-safe review row with warnings."""

    row = {
        "name": _cell_text(name),
        "gender": normalize_gender(gender),
        "rank": _cell_text(rank),
        "weight": _cell_text(weight),
        "dob": normalize_dob(dob) or _cell_text(dob),
    }
    row["warnings"] = validate_row(row)
    return row


def parse_student_rows(upload) -> list[dict]:
    """Parse an uploaded roster into review rows; rows without a name are dropped."""

    rows = read_rows(upload)
    columns = match_columns(rows[0])
    if columns["name"] is None:
        raise ValueError("Could not find a name column in the header row.")

    def _pick(cells: list, field: str):
        index = columns[field]
        if index is None or index >= len(cells):
            return None
        return cells[index]

    parsed = []
    for cells in rows[1:]:
        row = build_row(
            name=_pick(cells, "name"),
            gender=_pick(cells, "gender"),
            rank=_pick(cells, "rank"),
            weight=_pick(cells, "weight"),
            dob=_pick(cells, "dob"),
        )
        if row["name"]:
            parsed.append(row)
    return parsed


# Import -----------------------------------------------------------------


def student_fields(row: dict) -> dict[str, object]:
    """Model field values for a review row, omitting any field with a warning."""

    name = (row.get("name") or "").strip()
    if not name:
        raise ValueError("Name is required.")
    warnings = row.get("warnings")
    if warnings is None:
        warnings = validate_row(row)

    fields: dict[str, object] = {"name": name}
    if row.get("gender") and "gender" not in warnings:
        fields["gender"] = row["gender"]
    if row.get("rank") and "rank" not in warnings:
        fields["rank"] = row["rank"].strip()
    if row.get("weight") and "weight" not in warnings:
        fields["weight"] = parse_weight(row["weight"])
    if row.get("dob") and "dob" not in warnings:
        fields["date_of_birth"] = date.fromisoformat(normalize_dob(row["dob"]))
    return fields


def import_students(dojo: models.Dojo, rows: Iterable[dict]) -> dict[str, object]:
    """Create students in ``dojo`` row by row; a failed row does not stop the rest."""

    created = 0
    errors: list[str] = []
    details: list[dict[str, object]] = []
    for index, row in enumerate(rows, start=1):
        label = (row.get("name") or "").strip() or "unnamed"
        try:
            with transaction.atomic():
                student = models.Student.objects.create(dojo=dojo, **student_fields(row))
        except (DatabaseError, ValueError, InvalidOperation) as exc:
            logger.warning("Row %d (%s) failed to import into dojo %s: %s", index, label, dojo.pk, exc)
            errors.append(f"Row {index}: could not import {label}.")
            details.append({"row": index, "name": label, "status": "error"})
            continue
        created += 1
        details.append({"row": index, "name": student.name, "status": "success"})
    logger.info("Imported %d student(s) into dojo %s with %d error(s)", created, dojo.pk, len(errors))
    return {"created": created, "errors": errors, "details": details}


# Export -----------------------------------------------------------------


def _workbook_bytes(frame: pd.DataFrame, sheet_name: str) -> bytes:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()


def entries_workbook(rows: list[dict[str, str]]) -> bytes:
    return _workbook_bytes(pd.DataFrame(rows, columns=list(EXPORT_COLUMNS)), "Entries")


def entries_csv(rows: list[dict[str, str]]) -> str:
    buffer = io.StringIO()
    pd.DataFrame(rows, columns=list(EXPORT_COLUMNS)).to_csv(buffer, index=False)
    return buffer.getvalue()


def template_workbook() -> bytes:
    return _workbook_bytes(pd.DataFrame(columns=list(TEMPLATE_HEADERS)), "Template")
