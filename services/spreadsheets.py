"""Excel/CSV import and export for scholar and examination data (pandas + openpyxl)."""
import io
import logging
import re
import zipfile
from datetime import date, datetime, timedelta
from pathlib import Path

import pandas as pd

from services import department_mapping as dm
from services.scholar_fields import header_aliases
from utils.helpers import clean_text

log = logging.getLogger(__name__)

MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
EXCEL_EPOCH = date(1899, 12, 30)

DATE_COLUMNS = ("date_of_birth",)
MONTH_YEAR_COLUMNS = ("ug_month_year", "pg_month_year", "other_month_year")

EXAM_HEADER_ALIASES = {
    "application_no": ("application no", "application number", "applicationno", "app no", "application_no"),
    "registered_name": ("registered name", "name", "scholar name", "candidate name", "registered_name"),
    "faculty": ("faculty", "faculty name", "select institution", "institution"),
    "institution": ("institute", "institution name"),
    "program": ("program", "select program", "programme", "course name"),
    "department": ("department", "dept", "department name"),
    "program_type": ("type", "program type", "study type", "mode"),
    "written_marks": ("written marks", "written", "written test", "written_marks", "written exam marks"),
    "interview_marks": ("interview marks", "interview", "viva", "interview_marks", "viva marks"),
    "email": ("email", "email id"),
    "mobile_number": ("mobile", "mobile number", "phone"),
}


class SpreadsheetError(Exception):
    pass


def read_sheet(path, max_rows=20000):
    """Return the first sheet as a list of {header: value} dicts with blank rows dropped."""
    path = Path(path)
    if not path.exists():
        raise SpreadsheetError(f"file not found: {path}")

    try:
        if path.suffix.lower() == ".csv":
            df = pd.read_csv(path, dtype=object)
        else:
            df = pd.read_excel(path, sheet_name=0, dtype=object, engine="openpyxl")
    except (ValueError, OSError, zipfile.BadZipFile) as e:
        raise SpreadsheetError(f"could not read {path.name}: {e}") from e

    df = df.head(max_rows).dropna(axis=0, how="all")
    df.columns = [str(c).strip() for c in df.columns]
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


def _resolve_columns(headers, aliases):
    """Map sheet headers to db columns using a {lower header: column} table."""
    mapping = {}
    for header in headers:
        column = aliases.get(header.strip().lower())
        if column and column not in mapping.values():
            mapping[header] = column
    return mapping


def convert_excel_date(value):
    """Normalise a date cell to DD-MM-YYYY (Excel serials, datetimes and ISO strings)."""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.strftime("%d-%m-%Y")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if 0 < value < 100000:
            return (EXCEL_EPOCH + timedelta(days=int(value))).strftime("%d-%m-%Y")
        return str(value)
    text = clean_text(value)
    if not text:
        return None
    if re.fullmatch(r"\d+(\.0+)?", text):
        return convert_excel_date(float(text))
    text = text.split(" ")[0]
    parts = re.split(r"[-/]", text)
    if len(parts) == 3:
        if len(parts[0]) <= 2 and len(parts[1]) <= 2 and len(parts[2]) == 4:
            return "-".join(p.zfill(2) for p in parts[:2]) + f"-{parts[2]}"
        if len(parts[0]) == 4:
            return f"{parts[2].zfill(2)}-{parts[1].zfill(2)}-{parts[0]}"
    return text


def convert_month_year(value):
    """Normalise a completion date to the "Mon-YY" form, e.g. "Jun-19"."""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return f"{MONTHS[value.month - 1]}-{value.strftime('%y')}"
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if 0 < value < 100000:
            return convert_month_year(EXCEL_EPOCH + timedelta(days=int(value)))
        return str(value)
    text = clean_text(value)
    if not text:
        return None
    if re.fullmatch(r"[A-Za-z]{3}-\d{2}", text):
        return text
    parts = re.split(r"[-/]", text.split(" ")[0])
    month = year = None
    if len(parts) == 3 and len(parts[2]) == 4 and len(parts[0]) <= 2:
        month, year = parts[1], parts[2]
    elif len(parts) == 3 and len(parts[0]) == 4:
        month, year = parts[1], parts[0]
    elif len(parts) == 2 and len(parts[1]) == 4 and parts[0].isdigit():
        month, year = parts[0], parts[1]
    if month and month.isdigit() and 1 <= int(month) <= 12:
        return f"{MONTHS[int(month) - 1]}-{year[-2:]}"
    return text


def clean_phone_number(value):
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip().strip("'\"").strip()
    if text.endswith(".0"):
        text = text[:-2]
    return text or None


def _cell(value):
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.strftime("%d-%m-%Y")
    text = clean_text(value)
    return text or None


def scholar_rows_from_records(records):
    """Map raw sheet records to scholar column dicts, inferring type, faculty and department."""
    if not records:
        return []
    mapping = _resolve_columns(records[0].keys(), header_aliases())
    rows = []
    for record in records:
        row = {}
        for header, column in mapping.items():
            value = record.get(header)
            if column in DATE_COLUMNS:
                row[column] = convert_excel_date(value)
            elif column in MONTH_YEAR_COLUMNS:
                row[column] = convert_month_year(value)
            elif column == "mobile_number":
                row[column] = clean_phone_number(value)
            else:
                row[column] = _cell(value)
        if not any(row.values()):
            continue

        program = row.get("program")
        row["program_type"] = dm.classify_program_type(row.get("program_type"), program)
        row["faculty"] = (
            dm.normalize_faculty(row.get("faculty"))
            or dm.faculty_from_program(program, row.get("institution"))
            or row.get("faculty")
        )
        if not row.get("department") and program:
            row["department"] = dm.department_name_from_program(program)
        rows.append(row)
    return rows


def import_scholars(path):
    rows = scholar_rows_from_records(read_sheet(path))
    usable = [row for row in rows if row.get("registered_name") or row.get("application_no")]
    if not usable:
        raise SpreadsheetError("No scholar rows found in the uploaded sheet")
    log.info("✅ Parsed %s scholar row(s) from %s", len(usable), Path(path).name)
    return usable


def read_examination_sheet(path):
    records = read_sheet(path)
    if not records:
        raise SpreadsheetError("The examination sheet is empty")
    aliases = {alias: column for column, names in EXAM_HEADER_ALIASES.items() for alias in names}
    mapping = _resolve_columns(records[0].keys(), aliases)
    if "registered_name" not in mapping.values() and "application_no" not in mapping.values():
        raise SpreadsheetError("Examination sheet needs an Application No or Name column")

    rows = []
    for record in records:
        row = {column: _cell(record.get(header)) for header, column in mapping.items()}
        if not (row.get("registered_name") or row.get("application_no")):
            continue
        row["faculty"] = dm.normalize_faculty(row.get("faculty")) or dm.faculty_from_program(row.get("program"))
        row["program_type"] = dm.classify_program_type(row.get("program_type"), row.get("program"))
        if not row.get("department") and row.get("program"):
            row["department"] = dm.department_name_from_program(row["program"])
        rows.append(row)
    return rows


def export_rows(rows, columns, sheet_name="Scholars"):
    """Build an xlsx workbook from rows; `columns` is a list of (key, header) pairs."""
    data = [{header: (row.get(key) if row.get(key) is not None else "") for key, header in columns} for row in rows]
    df = pd.DataFrame(data, columns=[header for _, header in columns])
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name[:31])
    buffer.seek(0)
    return buffer.getvalue()
