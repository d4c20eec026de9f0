"""Entrance question papers, up to three sets per department."""
import logging

from services import department_mapping as dm
from services.errors import NotFoundError, PermissionDenied, ValidationError
from utils.database import build_update, execute_write, fetch_one, fetch_rows
from utils.helpers import clean_text, timestamp

log = logging.getLogger(__name__)

SET_COLUMNS = ("set1", "set2", "set3")
SEPARATOR = " | "


def parse_set(value):
    """Split a stored "filename | url" value; a bare value is treated as the url."""
    text = clean_text(value)
    if not text:
        return {"filename": "", "url": ""}
    if "|" not in text:
        return {"filename": text.rsplit("/", 1)[-1], "url": text}
    filename, url = text.split("|", 1)
    return {"filename": filename.strip(), "url": url.strip()}


def format_set(filename, url):
    filename, url = clean_text(filename), clean_text(url)
    if not url:
        raise ValidationError("A question paper set needs a file url")
    return f"{filename or url.rsplit('/', 1)[-1]}{SEPARATOR}{url}"


def _decorate(row):
    for column in SET_COLUMNS:
        row[f"{column}_file"] = parse_set(row.get(column))
    return row


def _scope_filters(user):
    role = (user or {}).get("role")
    if role == "coordinator":
        return ["faculty = %s"], [dm.normalize_faculty(user.get("faculty"))]
    if role == "department":
        return ["department_code = %s"], [(user.get("department_code") or "").upper()]
    return [], []


def _check_scope(row, user):
    role = (user or {}).get("role")
    if role == "coordinator" and row.get("faculty") != dm.normalize_faculty(user.get("faculty")):
        raise PermissionDenied("Question paper belongs to another faculty")
    if role == "department" and (row.get("department_code") or "") != (user.get("department_code") or "").upper():
        raise PermissionDenied("Question paper belongs to another department")


def get_paper(paper_id, user=None):
    row = fetch_one("SELECT * FROM question_papers WHERE id = %s", (paper_id,))
    if not row:
        raise NotFoundError(f"Question paper {paper_id} not found")
    _check_scope(row, user)
    return _decorate(row)


def paper_for_file(filename, user=None):
    """The paper holding an uploaded set file, checked against the user's scope."""
    needle = f"%/{filename}"
    rows = fetch_rows(
        "SELECT * FROM question_papers WHERE set1 LIKE %s OR set2 LIKE %s OR set3 LIKE %s", (needle, needle, needle)
    )
    for row in rows:
        if any(parse_set(row.get(column))["url"].rsplit("/", 1)[-1] == filename for column in SET_COLUMNS):
            _check_scope(row, user)
            return _decorate(row)
    raise NotFoundError("Question paper file not found")


def list_papers(user=None, faculty=None, search=None):
    where, params = _scope_filters(user)
    if faculty:
        where.append("faculty = %s")
        params.append(dm.normalize_faculty(faculty))
    if search:
        needle = f"%{search.strip().lower()}%"
        where.append("(LOWER(COALESCE(title, '')) LIKE %s OR LOWER(COALESCE(department, '')) LIKE %s)")
        params.extend([needle, needle])
    clause = " AND ".join(where) or "1=1"
    rows = fetch_rows(f"SELECT * FROM question_papers WHERE {clause} ORDER BY faculty, department", tuple(params))
    return [_decorate(row) for row in rows]


def create_paper(data, user=None):
    faculty = dm.normalize_faculty(data.get("faculty"))
    department = clean_text(data.get("department"))
    if user and user.get("role") in ("coordinator", "department"):
        faculty = dm.normalize_faculty(user.get("faculty"))
    if user and user.get("role") == "department":
        department = user.get("department") or department
    if not faculty or not department:
        raise ValidationError("Faculty and department are required")
    code = dm.department_short_code(department, faculty)

    values = {
        "faculty": faculty,
        "department": department,
        "department_code": code,
        "title": clean_text(data.get("title")) or f"{department} question paper",
        "uploaded_by": (user or {}).get("email"),
    }
    for column in SET_COLUMNS:
        if data.get(column):
            values[column] = _set_value(data[column])
    now = timestamp()
    values.update({"created_at": now, "updated_at": now})
    paper_id, _ = execute_write(
        f"INSERT INTO question_papers ({', '.join(values)}) VALUES ({', '.join(['%s'] * len(values))})",
        tuple(values.values()),
    )
    log.info("✅ Question paper %s created for %s", paper_id, department)
    return paper_id


def _set_value(value):
    if isinstance(value, dict):
        return format_set(value.get("filename"), value.get("url"))
    parsed = parse_set(value)
    return format_set(parsed["filename"], parsed["url"])


def update_paper(paper_id, data, user=None):
    get_paper(paper_id, user)
    values = {}
    if "title" in data:
        values["title"] = clean_text(data["title"])
    for column in SET_COLUMNS:
        if column in data:
            values[column] = _set_value(data[column]) if data[column] else None
    if not values:
        raise ValidationError("No question paper fields supplied")
    values["updated_at"] = timestamp()
    query, params = build_update("question_papers", "id", paper_id, values)
    execute_write(query, params)
    return get_paper(paper_id, user)


def attach_set(paper_id, slot, filename, url, user=None):
    column = f"set{slot}"
    if column not in SET_COLUMNS:
        raise ValidationError("Set must be 1, 2 or 3")
    return update_paper(paper_id, {column: {"filename": filename, "url": url}}, user)


def delete_paper(paper_id, user=None):
    get_paper(paper_id, user)
    execute_write("DELETE FROM question_papers WHERE id = %s", (paper_id,))


def statistics(user=None):
    papers = list_papers(user)
    sets_filled = sum(1 for paper in papers for column in SET_COLUMNS if paper.get(column))
    by_faculty = {}
    for paper in papers:
        by_faculty[paper.get("faculty")] = by_faculty.get(paper.get("faculty"), 0) + 1
    return {
        "papers": len(papers),
        "sets_filled": sets_filled,
        "complete": sum(1 for paper in papers if all(paper.get(column) for column in SET_COLUMNS)),
        "by_faculty": by_faculty,
    }
