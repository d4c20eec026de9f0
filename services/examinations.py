"""Entrance examination records: marks, interview panels, forwarding and result publishing."""
import logging
import math

from services import department_mapping as dm
from services import workflow as wf
from services.errors import NotFoundError, PermissionDenied, ValidationError, WorkflowError
from utils.database import build_update, execute_write, fetch_count, fetch_one, fetch_rows
from utils.helpers import clean_text, timestamp, to_float

log = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_FORWARDED = "forwarded"
ABSENT = "Ab"
MAX_EVALUATORS = 3
DIRECTOR_FORWARDED = "Forwarded to Director"

RECORD_COLUMNS = (
    "scholar_id", "application_no", "registered_name", "email", "mobile_number", "faculty", "institution",
    "program", "department", "department_code", "program_type", "written_marks", "interview_marks",
)


def is_absent(value):
    return clean_text(value).lower() in ("a", "ab", "absent")


def compute_total(written, interview):
    """written + interview when both are positive numbers, otherwise None."""
    if is_absent(interview) or is_absent(written):
        return None
    written_value, interview_value = to_float(written), to_float(interview)
    if written_value and interview_value and written_value > 0 and interview_value > 0:
        return round(written_value + interview_value, 2)
    return None


def get_record(record_id):
    row = fetch_one("SELECT * FROM examination_records WHERE id = %s", (record_id,))
    if not row:
        raise NotFoundError(f"Examination record {record_id} not found")
    return row


def list_records(faculty=None, department_code=None, status=None, search=None):
    where, params = ["1=1"], []
    if faculty:
        where.append("faculty = %s")
        params.append(dm.normalize_faculty(faculty))
    if department_code:
        where.append("department_code = %s")
        params.append(department_code.upper())
    if status:
        where.append("status = %s")
        params.append(status)
    if search:
        where.append("(LOWER(COALESCE(registered_name, '')) LIKE %s OR LOWER(COALESCE(application_no, '')) LIKE %s)")
        needle = f"%{search.strip().lower()}%"
        params.extend([needle, needle])
    return fetch_rows(
        f"SELECT * FROM examination_records WHERE {' AND '.join(where)} ORDER BY id", tuple(params)
    )


def _insert_record(data):
    row = {column: data.get(column) for column in RECORD_COLUMNS if data.get(column) is not None}
    faculty = dm.normalize_faculty(row.get("faculty")) or dm.faculty_from_program(row.get("program"))
    row["faculty"] = faculty
    if not row.get("department_code"):
        row["department_code"] = dm.department_from_program(row.get("program"), faculty)
    if is_absent(row.get("interview_marks")):
        row["interview_marks"] = ABSENT
    row["written_marks"] = None if is_absent(row.get("written_marks")) else to_float(row.get("written_marks"))
    row["total_marks"] = compute_total(row.get("written_marks"), row.get("interview_marks"))
    now = timestamp()
    row.update({"status": STATUS_PENDING, "created_at": now, "updated_at": now})
    columns = ", ".join(row)
    record_id, _ = execute_write(
        f"INSERT INTO examination_records ({columns}) VALUES ({', '.join(['%s'] * len(row))})",
        tuple(row.values()),
    )
    return record_id


def import_records(rows):
    created = [_insert_record(row) for row in rows]
    log.info("✅ Imported %s examination record(s)", len(created))
    return created


def create_records_from_verified():
    """Create an examination record for each approved, director-verified scholar without one."""
    scholars = fetch_rows(
        """
        SELECT s.* FROM scholar_applications s
        LEFT JOIN examination_records e ON e.scholar_id = s.id
        WHERE s.faculty_forward = %s AND s.dept_review = %s AND e.id IS NULL
        ORDER BY s.id
        """,
        (wf.BACK_TO_DIRECTOR, wf.REVIEW_APPROVED),
    )
    created = []
    for scholar in scholars:
        if wf.derive_stage(scholar) != wf.WITH_DIRECTOR:
            continue
        data = {column: scholar.get(column) for column in RECORD_COLUMNS if column in scholar}
        data["scholar_id"] = scholar["id"]
        data["department_code"] = dm.code_from_faculty_status(scholar.get("faculty_status"))
        created.append(_insert_record(data))
    log.info("✅ Created %s examination record(s) from verified scholars", len(created))
    return created


def _save(record_id, updates):
    updates["updated_at"] = timestamp()
    query, params = build_update("examination_records", "id", record_id, updates)
    execute_write(query, params)


def _check_department(record, department_code):
    if department_code and (record.get("department_code") or "").upper() != department_code.upper():
        raise PermissionDenied("Record is not assigned to your department")


def update_marks(record_id, written=None, interview=None):
    record = get_record(record_id)
    updates = {}
    if written is not None:
        if clean_text(written) == "" or is_absent(written):
            updates["written_marks"] = None
        else:
            value = to_float(written)
            if value is None or value < 0:
                raise ValidationError("Written marks must be a non-negative number")
            updates["written_marks"] = value
    if interview is not None:
        if is_absent(interview):
            updates["interview_marks"] = ABSENT
        elif clean_text(interview) == "":
            updates["interview_marks"] = None
        else:
            value = to_float(interview)
            if value is None or value < 0:
                raise ValidationError("Interview marks must be a non-negative number or 'Ab'")
            updates["interview_marks"] = str(int(value)) if value.is_integer() else str(value)
    if not updates:
        raise ValidationError("No marks supplied")
    merged = dict(record, **updates)
    updates["total_marks"] = compute_total(merged.get("written_marks"), merged.get("interview_marks"))
    _save(record_id, updates)
    return get_record(record_id)


def forward_record(record_id):
    record = get_record(record_id)
    if "forwarded" in (record.get("status") or "").lower():
        raise WorkflowError("Record is already forwarded")
    short_name = dm.faculty_short_name(record.get("faculty"))
    if not short_name:
        raise ValidationError("Cannot determine faculty for this record")
    _save(record_id, {"status": STATUS_FORWARDED, "faculty_written": f"Forwarded to {short_name}"})
    return get_record(record_id)


def forward_all():
    forwarded, failed = [], []
    for record in fetch_rows("SELECT id, status FROM examination_records ORDER BY id"):
        if "forwarded" in (record.get("status") or "").lower():
            continue
        try:
            forward_record(record["id"])
            forwarded.append(record["id"])
        except (ValidationError, WorkflowError) as e:
            failed.append({"id": record["id"], "error": e.message})
    return {"forwarded": forwarded, "failed": failed}


# --- interview panels -------------------------------------------------------------------


def _validate_evaluators(evaluators):
    if not evaluators or len(evaluators) > MAX_EVALUATORS:
        raise ValidationError(f"A panel needs between 1 and {MAX_EVALUATORS} evaluators")
    formatted = []
    for index, evaluator in enumerate(evaluators, start=1):
        parts = [clean_text((evaluator or {}).get(key)) for key in ("name", "designation", "affiliation")]
        if not all(parts):
            raise ValidationError(f"Evaluator {index} needs a name, designation and affiliation")
        formatted.append(" | ".join(parts))
    return formatted


def parse_examiner(value):
    parts = [part.strip() for part in str(value or "").split("|")]
    parts += [""] * (3 - len(parts))
    return {"name": parts[0], "designation": parts[1], "affiliation": parts[2]}


def assign_panel(record_ids, panel_number, evaluators, department_code=None):
    if not record_ids:
        raise ValidationError("Select at least one scholar for the panel")
    formatted = _validate_evaluators(evaluators)
    updates = {"panel": f"Panel {panel_number}", "evaluator_count": len(formatted)}
    for slot in range(1, MAX_EVALUATORS + 1):
        updates[f"examiner{slot}"] = formatted[slot - 1] if slot <= len(formatted) else None
    for record_id in record_ids:
        _check_department(get_record(record_id), department_code)
    for record_id in record_ids:
        _save(record_id, dict(updates))
    log.info("✅ Assigned Panel %s to %s record(s)", panel_number, len(record_ids))
    return len(record_ids)


def remove_panel(record_id, department_code=None):
    record = get_record(record_id)
    _check_department(record, department_code)
    if any(clean_text(record.get(f"examiner{slot}_marks")) for slot in range(1, MAX_EVALUATORS + 1)):
        raise WorkflowError("Cannot remove a panel after interview marks are saved")
    updates = {"panel": None, "evaluator_count": None}
    for slot in range(1, MAX_EVALUATORS + 1):
        updates[f"examiner{slot}"] = None
    _save(record_id, updates)
    return get_record(record_id)


def interview_average(marks, evaluator_count):
    """'Ab' if any evaluator marked absent, else the rounded mean of the numeric marks."""
    used = [clean_text(mark) for mark in marks[:evaluator_count]]
    if not used or len(used) < evaluator_count or not all(used):
        raise ValidationError(f"Marks are required from all {evaluator_count} evaluator(s)")
    if any(is_absent(mark) for mark in used):
        return ABSENT
    values = [to_float(mark) for mark in used]
    if any(value is None for value in values):
        raise ValidationError("Interview marks must be numbers or 'Ab'")
    return int(math.floor(sum(values) / len(values) + 0.5))


def save_interview_marks(record_id, marks, department_code=None):
    record = get_record(record_id)
    _check_department(record, department_code)
    count = int(record.get("evaluator_count") or 0)
    if not record.get("panel") or count < 1:
        raise WorkflowError("Assign an interview panel before entering marks")
    if len(marks) < count:
        raise ValidationError(f"Marks are required from all {count} evaluator(s)")

    result = interview_average(marks, count)
    updates = {"interview_marks": str(result)}
    for slot in range(1, MAX_EVALUATORS + 1):
        updates[f"examiner{slot}_marks"] = clean_text(marks[slot - 1]) if slot <= count else None
    updates["total_marks"] = compute_total(record.get("written_marks"), updates["interview_marks"])
    _save(record_id, updates)
    return get_record(record_id)


def forward_interviews(record_ids, department_code=None):
    forwarded, failed = [], []
    for record_id in record_ids:
        record = get_record(record_id)
        _check_department(record, department_code)
        short_name = dm.faculty_short_name(record.get("faculty"))
        if record.get("interview_marks") in (None, ""):
            failed.append({"id": record_id, "error": "Interview marks are not entered"})
            continue
        if not short_name:
            failed.append({"id": record_id, "error": "Cannot determine faculty"})
            continue
        _save(record_id, {"faculty_interview": f"Forwarded_To_{short_name}"})
        forwarded.append(record_id)
    return {"forwarded": forwarded, "failed": failed}


def forward_interviews_to_director(record_ids, faculty=None):
    forwarded, failed = [], []
    expected_faculty = dm.normalize_faculty(faculty) if faculty else None
    for record_id in record_ids:
        record = get_record(record_id)
        if expected_faculty and dm.normalize_faculty(record.get("faculty")) != expected_faculty:
            failed.append({"id": record_id, "error": "Record belongs to another faculty"})
            continue
        if not record.get("faculty_interview"):
            failed.append({"id": record_id, "error": "Interview has not been forwarded by the department"})
            continue
        _save(record_id, {"director_interview": DIRECTOR_FORWARDED})
        forwarded.append(record_id)
    return {"forwarded": forwarded, "failed": failed}


# --- results ----------------------------------------------------------------------------


def publish_results(faculty, record_ids):
    short_name = dm.faculty_short_name(faculty)
    if not short_name:
        raise ValidationError(f"Unknown faculty: {faculty}")
    if not record_ids:
        raise ValidationError("No records selected to publish")
    canonical = dm.normalize_faculty(faculty)
    published = 0
    for record_id in record_ids:
        record = get_record(record_id)
        if dm.normalize_faculty(record.get("faculty")) != canonical:
            continue
        _save(record_id, {"result_dir": f"Published to {short_name}"})
        published += 1
    log.info("✅ Published %s result(s) to %s", published, short_name)
    return published


def publish_to_department(faculty, department_code):
    canonical = dm.normalize_faculty(faculty)
    code = (department_code or "").upper()
    if not canonical or not code:
        raise ValidationError("Faculty and department are required")
    if dm.faculty_for_department(code) not in (None, canonical):
        raise ValidationError(f"Department {code} does not belong to {canonical}")
    _, count = execute_write(
        """
        UPDATE examination_records SET dept_result = %s, updated_at = %s
        WHERE faculty = %s AND department_code = %s AND result_dir IS NOT NULL
        """,
        (f"Published_To_{code}", timestamp(), canonical, code),
    )
    return count


def are_results_published(department_code):
    return fetch_count(
        "SELECT COUNT(*) AS count FROM examination_records WHERE dept_result = %s",
        (f"Published_To_{(department_code or '').upper()}",),
    ) > 0


def _rank_key(record):
    total = record.get("total_marks")
    return (total is None, -(float(total) if total is not None else 0), record.get("id") or 0)


def results(faculty=None, department_code=None, published_only=False):
    records = list_records(faculty=faculty, department_code=department_code)
    if published_only:
        records = [r for r in records if r.get("result_dir")]
    ranked = sorted(records, key=_rank_key)
    for rank, record in enumerate(ranked, start=1):
        record["rank"] = rank if record.get("total_marks") is not None else None
    return ranked


def type_counts(faculty=None):
    counts = {}
    for record in list_records(faculty=faculty):
        key = record.get("program_type") or dm.FULL_TIME
        counts[key] = counts.get(key, 0) + 1
    return counts
