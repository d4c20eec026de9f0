"""Dashboard figures for the director, coordinators and departments."""
from services import department_mapping as dm
from services import workflow as wf
from utils.database import fetch_rows


def _scholar_rows(faculty=None):
    if faculty:
        return fetch_rows(
            "SELECT * FROM scholar_applications WHERE faculty = %s", (dm.normalize_faculty(faculty),)
        )
    return fetch_rows("SELECT * FROM scholar_applications")


def _is_full_time(program_type):
    value = (program_type or "").strip().lower()
    return value in ("full time", "ft")


def _is_part_time(program_type):
    return "part time" in (program_type or "").lower()


def faculty_counts(rows=None):
    rows = _scholar_rows() if rows is None else rows
    counts = {faculty: {"total": 0, "full_time": 0, "part_time": 0} for faculty in dm.FACULTIES}
    for row in rows:
        faculty = dm.normalize_faculty(row.get("faculty"))
        if faculty not in counts:
            continue
        counts[faculty]["total"] += 1
        if _is_full_time(row.get("program_type")):
            counts[faculty]["full_time"] += 1
        elif _is_part_time(row.get("program_type")):
            counts[faculty]["part_time"] += 1
    return counts


def department_counts(faculty=None, rows=None):
    rows = _scholar_rows(faculty) if rows is None else rows
    counts = {}
    for row in rows:
        name = row.get("department") or dm.department_name_from_program(row.get("program")) or "Unassigned"
        entry = counts.setdefault(name, {"faculty": dm.normalize_faculty(row.get("faculty")), "total": 0,
                                         "full_time": 0, "part_time": 0})
        entry["total"] += 1
        if _is_full_time(row.get("program_type")):
            entry["full_time"] += 1
        elif _is_part_time(row.get("program_type")):
            entry["part_time"] += 1
    return counts


def part_time_split(faculty=None, rows=None):
    rows = _scholar_rows(faculty) if rows is None else rows
    split = {"full_time": 0, "internal": 0, "external": 0, "industry": 0, "part_time": 0}
    for row in rows:
        split[dm.program_type_category(row.get("program_type"))] += 1
    return split


def director_dashboard():
    rows = _scholar_rows()
    stages = wf.stage_summary(rows)
    back_to_director = {faculty: 0 for faculty in dm.FACULTIES}
    for row in rows:
        faculty = dm.normalize_faculty(row.get("faculty"))
        if faculty in back_to_director and row.get("faculty_forward") == wf.BACK_TO_DIRECTOR:
            back_to_director[faculty] += 1
    return {
        "total": len(rows),
        "stages": stages,
        "faculties": faculty_counts(rows),
        "departments": department_counts(rows=rows),
        "part_time_split": part_time_split(rows=rows),
        "back_to_director": back_to_director,
    }


def faculty_dashboard(faculty):
    rows = _scholar_rows(faculty)
    return {
        "faculty": dm.normalize_faculty(faculty),
        "total": len(rows),
        "stages": wf.stage_summary(rows),
        "departments": department_counts(rows=rows),
        "part_time_split": part_time_split(rows=rows),
    }


def department_dashboard(department_code):
    rows = fetch_rows(
        "SELECT * FROM scholar_applications WHERE faculty_status = %s", (dm.faculty_forward_status(department_code),)
    )
    reviews = [(row.get("dept_review") or "").lower() for row in rows]
    return {
        "department_code": department_code,
        "total": len(rows),
        "approved": reviews.count("approved"),
        "rejected": reviews.count("rejected"),
        "pending_queries": reviews.count("query"),
        "awaiting_review": sum(1 for row in rows if wf.derive_stage(row) == wf.WITH_DEPARTMENT),
    }
