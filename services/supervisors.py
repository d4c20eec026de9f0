"""Research supervisors, their capacity per scholar category, and scholar allocation."""
import logging
import re

from services import department_mapping as dm
from services.errors import NotFoundError, ValidationError, WorkflowError
from services.examinations import get_record, is_absent
from utils.database import build_update, execute_write, fetch_one, fetch_rows
from utils.helpers import clean_text, timestamp

log = logging.getLogger(__name__)

ADMITTED = "Admitted"
QUALIFIED_LIMIT = 50

# category -> (capacity column, current count column)
CATEGORIES = {
    "full_time": ("max_full_time_scholars", "current_full_time_scholars"),
    "part_time_internal": ("max_part_time_internal_scholars", "current_part_time_internal_scholars"),
    "part_time_external": ("max_part_time_external_scholars", "current_part_time_external_scholars"),
    "part_time_industry": ("max_part_time_industry_scholars", "current_part_time_industry_scholars"),
}

# Unspecified part time is held against the external quota
_TYPE_TO_CATEGORY = {
    "full_time": "full_time",
    "internal": "part_time_internal",
    "external": "part_time_external",
    "industry": "part_time_industry",
    "part_time": "part_time_external",
}

PROFILE_COLUMNS = ("name", "email", "faculty", "department", "designation")


def category_for(program_type):
    return _TYPE_TO_CATEGORY[dm.program_type_category(program_type)]


def get_supervisor(supervisor_id):
    row = fetch_one("SELECT * FROM supervisors WHERE id = %s", (supervisor_id,))
    if not row:
        raise NotFoundError(f"Supervisor {supervisor_id} not found")
    return row


def list_supervisors(faculty=None, department=None):
    where, params = ["1=1"], []
    if faculty:
        where.append("faculty = %s")
        params.append(dm.normalize_faculty(faculty) or faculty)
    if department:
        where.append("LOWER(department) LIKE %s")
        params.append(f"%{department.strip().lower()}%")
    return fetch_rows(f"SELECT * FROM supervisors WHERE {' AND '.join(where)} ORDER BY name", tuple(params))


def _supervisor_values(data, partial=False):
    values = {}
    for column in PROFILE_COLUMNS:
        if column in data:
            values[column] = clean_text(data.get(column)) or None
    if "faculty" in values and values["faculty"]:
        values["faculty"] = dm.normalize_faculty(values["faculty"]) or values["faculty"]
    for max_column, _ in CATEGORIES.values():
        if max_column in data:
            try:
                values[max_column] = max(0, int(data.get(max_column) or 0))
            except (TypeError, ValueError):
                raise ValidationError(f"{max_column} must be a whole number")
    if not partial:
        if not values.get("name"):
            raise ValidationError("Supervisor name is required")
        if not values.get("faculty"):
            raise ValidationError("Supervisor faculty is required")
    return values


def create_supervisor(data):
    values = _supervisor_values(data)
    for max_column, current_column in CATEGORIES.values():
        values.setdefault(max_column, 0)
        values[current_column] = 0
    now = timestamp()
    values.update({"created_at": now, "updated_at": now})
    supervisor_id, _ = execute_write(
        f"INSERT INTO supervisors ({', '.join(values)}) VALUES ({', '.join(['%s'] * len(values))})",
        tuple(values.values()),
    )
    log.info("✅ Supervisor %s created (%s)", supervisor_id, values["name"])
    return supervisor_id


def update_supervisor(supervisor_id, data):
    get_supervisor(supervisor_id)
    values = _supervisor_values(data, partial=True)
    if not values:
        raise ValidationError("No supervisor fields supplied")
    values["updated_at"] = timestamp()
    query, params = build_update("supervisors", "id", supervisor_id, values)
    execute_write(query, params)
    return get_supervisor(supervisor_id)


def delete_supervisor(supervisor_id):
    supervisor = get_supervisor(supervisor_id)
    if any(int(supervisor.get(current) or 0) for _, current in CATEGORIES.values()):
        raise WorkflowError("Unassign this supervisor's scholars before deleting")
    execute_write("DELETE FROM supervisors WHERE id = %s", (supervisor_id,))


def _faculty_key(value):
    text = clean_text(dm.normalize_faculty(value) or value).lower().replace("faculty of ", "").replace("&", "and")
    text = text.replace("sciences", "science")
    return re.sub(r"\s+", " ", text).strip()


def qualified_scholars(faculty, department=None, scholar_type="all"):
    """Unassigned, non-absent examination records matching the supervisor's faculty and department."""
    wanted_faculty = _faculty_key(faculty)
    wanted_department = clean_text(department).lower()
    wanted_type = clean_text(scholar_type).lower() or "all"

    records = fetch_rows(
        "SELECT * FROM examination_records WHERE supervisor_name IS NULL OR supervisor_name = ''"
    )
    matches = []
    for record in records:
        if not clean_text(record.get("registered_name")):
            continue
        if wanted_faculty and _faculty_key(record.get("faculty")) != wanted_faculty:
            continue
        if wanted_department:
            haystack = f"{record.get('department') or ''} {record.get('program') or ''}".lower()
            if wanted_department not in haystack:
                continue
        if is_absent(record.get("interview_marks")) or is_absent(record.get("written_marks")):
            continue
        if wanted_type != "all" and (record.get("program_type") or "").lower() != wanted_type:
            continue
        matches.append(record)

    matches.sort(key=lambda r: -(float(r["total_marks"]) if r.get("total_marks") is not None else -1))
    return matches[:QUALIFIED_LIMIT]


def assign(supervisor_id, record_id):
    supervisor = get_supervisor(supervisor_id)
    record = get_record(record_id)
    if clean_text(record.get("supervisor_name")):
        raise WorkflowError(f"Scholar already assigned to {record['supervisor_name']}")
    category = category_for(record.get("program_type"))
    max_column, current_column = CATEGORIES[category]
    current = int(supervisor.get(current_column) or 0)
    if current >= int(supervisor.get(max_column) or 0):
        raise WorkflowError(f"{supervisor['name']} has no {category.replace('_', ' ')} vacancy")

    execute_write(
        "UPDATE examination_records SET supervisor_id = %s, supervisor_name = %s, supervisor_status = %s, "
        "updated_at = %s WHERE id = %s",
        (supervisor_id, supervisor["name"], ADMITTED, timestamp(), record_id),
    )
    execute_write(
        f"UPDATE supervisors SET {current_column} = %s, updated_at = %s WHERE id = %s",
        (current + 1, timestamp(), supervisor_id),
    )
    log.info("✅ %s assigned to %s (%s)", record.get("registered_name"), supervisor["name"], category)
    return get_record(record_id)


def unassign(record_id):
    record = get_record(record_id)
    if not clean_text(record.get("supervisor_name")):
        raise WorkflowError("Scholar has no supervisor assigned")
    supervisor = None
    if record.get("supervisor_id"):
        supervisor = fetch_one("SELECT * FROM supervisors WHERE id = %s", (record["supervisor_id"],))
    if supervisor is None:
        supervisor = fetch_one("SELECT * FROM supervisors WHERE name = %s", (record["supervisor_name"],))

    execute_write(
        "UPDATE examination_records SET supervisor_id = NULL, supervisor_name = NULL, supervisor_status = NULL, "
        "updated_at = %s WHERE id = %s",
        (timestamp(), record_id),
    )
    if supervisor:
        _, current_column = CATEGORIES[category_for(record.get("program_type"))]
        execute_write(
            f"UPDATE supervisors SET {current_column} = %s, updated_at = %s WHERE id = %s",
            (max(0, int(supervisor.get(current_column) or 0) - 1), timestamp(), supervisor["id"]),
        )
    else:
        log.warning("⚠️ Supervisor %s not found while unassigning record %s", record["supervisor_name"], record_id)
    return get_record(record_id)


def vacancies(faculty=None):
    summary = []
    for supervisor in list_supervisors(faculty=faculty):
        entry = {"id": supervisor["id"], "name": supervisor["name"], "faculty": supervisor.get("faculty"),
                 "department": supervisor.get("department")}
        for category, (max_column, current_column) in CATEGORIES.items():
            capacity = int(supervisor.get(max_column) or 0)
            filled = int(supervisor.get(current_column) or 0)
            entry[category] = {"capacity": capacity, "filled": filled, "vacant": max(0, capacity - filled)}
        summary.append(entry)
    return summary


def admitted_scholars(faculty=None):
    rows = fetch_rows(
        "SELECT * FROM examination_records WHERE supervisor_status = %s ORDER BY supervisor_name, registered_name",
        (ADMITTED,),
    )
    if faculty:
        canonical = dm.normalize_faculty(faculty)
        rows = [row for row in rows if dm.normalize_faculty(row.get("faculty")) == canonical]
    return rows
