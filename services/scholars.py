"""Scholar applications: CRUD, role inboxes and workflow persistence."""
import json
import logging
import re
from collections import defaultdict

from services import department_mapping as dm
from services import workflow as wf
from services.errors import NotFoundError, PermissionDenied, ValidationError, WorkflowError
from services.scholar_fields import DATA_COLUMNS, form_to_db
from utils.database import build_update, execute_write, fetch_one, fetch_rows, transaction
from utils.helpers import clean_text, digits_only, timestamp

log = logging.getLogger(__name__)

SEARCH_COLUMNS = ("registered_name", "application_no", "email", "mobile_number")


def _with_stage(rows):
    for row in rows:
        row["stage"] = wf.derive_stage(row)
    return rows


def _search_clause(search):
    if not search:
        return "", []
    needle = f"%{search.strip().lower()}%"
    clause = " AND (" + " OR ".join(f"LOWER(COALESCE({c}, '')) LIKE %s" for c in SEARCH_COLUMNS) + ")"
    return clause, [needle] * len(SEARCH_COLUMNS)


def get_scholar(scholar_id):
    row = fetch_one("SELECT * FROM scholar_applications WHERE id = %s", (scholar_id,))
    if not row:
        raise NotFoundError(f"Scholar {scholar_id} not found")
    row["stage"] = wf.derive_stage(row)
    return row


def list_scholars(where="1=1", params=(), search=None, order_by="id"):
    clause, search_params = _search_clause(search)
    rows = fetch_rows(
        f"SELECT * FROM scholar_applications WHERE {where}{clause} ORDER BY {order_by}",
        tuple(params) + tuple(search_params),
    )
    return _with_stage(rows)


def _prepare_row(data, apply_defaults):
    row = form_to_db(data, apply_defaults=apply_defaults)
    program = row.get("program")
    if "faculty" in row or apply_defaults:
        faculty = dm.normalize_faculty(row.get("faculty")) or dm.faculty_from_program(program, row.get("institution"))
        row["faculty"] = faculty or clean_text(row.get("faculty")) or None
    if apply_defaults and not row.get("department") and program:
        row["department"] = dm.department_name_from_program(program)
    if "program_type" in row or apply_defaults:
        row["program_type"] = dm.classify_program_type(row.get("program_type"), program)
    if "mobile_number" in row:
        row["mobile_number"] = clean_phone(row["mobile_number"])
    return row


def clean_phone(value):
    text = clean_text(value).replace("'", "").replace('"', "")
    if text.endswith(".0"):
        text = text[:-2]
    return text.strip()


def create_scholar(data, actor=None):
    row = _prepare_row(data, apply_defaults=True)
    if not clean_text(row.get("registered_name")):
        raise ValidationError("Scholar name is required")
    now = timestamp()
    row.update({
        "status": wf.INITIAL_STATUS,
        "current_owner": wf.STAGE_OWNER[wf.SUBMITTED],
        "created_at": now,
        "updated_at": now,
    })
    columns = ", ".join(row)
    placeholders = ", ".join(["%s"] * len(row))
    scholar_id, _ = execute_write(
        f"INSERT INTO scholar_applications ({columns}) VALUES ({placeholders})", tuple(row.values())
    )
    log.info("✅ Scholar %s created (%s)", scholar_id, row.get("registered_name"))
    if actor:
        log_activity(scholar_id, actor, "create", None, wf.SUBMITTED)
    return scholar_id


def bulk_create(rows, actor=None):
    """Insert many scholars; returns (created ids, failures)."""
    created, failed = [], []
    for index, data in enumerate(rows, start=1):
        try:
            created.append(create_scholar(data))
        except ValidationError as e:
            failed.append({"row": index, "error": e.message})
    if actor and created:
        log_activity(None, actor, "import", None, wf.SUBMITTED, {"count": len(created)})
    return created, failed


def update_scholar(scholar_id, data, actor=None):
    get_scholar(scholar_id)
    row = _prepare_row(data, apply_defaults=False)
    row = {column: value for column, value in row.items() if column in DATA_COLUMNS}
    if not row:
        raise ValidationError("No editable fields supplied")
    row["updated_at"] = timestamp()
    query, params = build_update("scholar_applications", "id", scholar_id, row)
    execute_write(query, params)
    if actor:
        log_activity(scholar_id, actor, "update", None, None, {"fields": sorted(row)})
    return get_scholar(scholar_id)


def delete_scholar(scholar_id, actor=None):
    get_scholar(scholar_id)
    execute_write("DELETE FROM scholar_applications WHERE id = %s", (scholar_id,))
    if actor:
        log_activity(scholar_id, actor, "delete", None, None)
    log.info("Scholar %s deleted", scholar_id)


# --- workflow persistence ---------------------------------------------------------------


def ensure_scope(row, user):
    """Coordinators act on their faculty, department users on scholars forwarded to them."""
    role = (user or {}).get("role")
    if role in wf.DIRECTOR:
        return
    if role == "coordinator":
        faculty = dm.normalize_faculty(user.get("faculty"))
        if not faculty or wf.scholar_faculty(row) != faculty:
            raise PermissionDenied("Scholar belongs to another faculty")
        return
    if role == "department":
        code = dm.code_from_faculty_status(row.get("faculty_status"))
        if not code or code != (user.get("department_code") or "").upper():
            raise PermissionDenied("Scholar is not assigned to your department")
        return
    raise PermissionDenied("Not authorized")


def _state_guard(row):
    """WHERE fragment matching the workflow columns as they were read."""
    clauses, params = [], []
    for column in wf.STATE_COLUMNS:
        value = row.get(column)
        clauses.append(f"({column} = %s OR ({column} IS NULL AND %s IS NULL))")
        params.extend([value, value])
    return " AND " + " AND ".join(clauses), params


def apply_action(scholar_id, action, user, **kwargs):
    row = get_scholar(scholar_id)
    ensure_scope(row, user)
    updates, from_stage, to_stage = wf.plan_transition(action, row, user.get("role"), **kwargs)
    updates["updated_at"] = timestamp()
    query, params = build_update("scholar_applications", "id", scholar_id, updates)
    guard, guard_params = _state_guard(row)
    details = {k: v for k, v in kwargs.items() if v}
    with transaction() as cursor:
        cursor.execute(query + guard, tuple(params) + tuple(guard_params))
        if cursor.rowcount == 0:
            raise WorkflowError("Scholar was changed by another user; reload and try again")
        cursor.execute(*_activity_statement(scholar_id, user, action, from_stage, to_stage, details or None))
    log.info("✅ Scholar %s: %s (%s -> %s) by %s", scholar_id, action, from_stage, to_stage, user.get("email"))
    return get_scholar(scholar_id)


def apply_bulk_action(scholar_ids, action, user, **kwargs):
    updated, failed = [], []
    for scholar_id in scholar_ids:
        try:
            apply_action(scholar_id, action, user, **kwargs)
            updated.append(scholar_id)
        except (ValidationError, WorkflowError, PermissionDenied, NotFoundError) as e:
            failed.append({"id": scholar_id, "error": e.message})
    return {"updated": updated, "failed": failed}


def _activity_statement(scholar_id, user, action, from_stage, to_stage, details=None):
    query = """
        INSERT INTO scholar_activity
            (scholar_id, actor_email, actor_role, action, from_stage, to_stage, details, created_at)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        """
    params = (
        scholar_id,
        (user or {}).get("email"),
        (user or {}).get("role"),
        action,
        from_stage,
        to_stage,
        json.dumps(details) if details else None,
        timestamp(),
    )
    return query, params


def log_activity(scholar_id, user, action, from_stage, to_stage, details=None):
    execute_write(*_activity_statement(scholar_id, user, action, from_stage, to_stage, details))


def list_activity(scholar_id):
    return fetch_rows(
        "SELECT * FROM scholar_activity WHERE scholar_id = %s ORDER BY id", (scholar_id,)
    )


# --- duplicates and bulk forwarding -----------------------------------------------------


def _normalize_application_no(value):
    return re.sub(r"\s+", "", clean_text(value)).upper()


def find_duplicates(rows=None):
    """Group scholars sharing an application number, email or mobile number."""
    if rows is None:
        rows = fetch_rows(
            "SELECT id, application_no, registered_name, email, mobile_number FROM scholar_applications ORDER BY id"
        )
    keys = (
        ("application_no", _normalize_application_no),
        ("email", lambda value: clean_text(value).lower()),
        ("mobile_number", digits_only),
    )
    groups = []
    for column, normalize in keys:
        buckets = defaultdict(list)
        for row in rows:
            value = normalize(row.get(column))
            if value:
                buckets[value].append(row)
        for value, members in buckets.items():
            if len(members) > 1:
                groups.append({
                    "field": column,
                    "value": value,
                    "scholars": [
                        {"id": m["id"], "application_no": m.get("application_no"), "name": m.get("registered_name")}
                        for m in members
                    ],
                })
    return groups


def forward_all_to_faculty(user):
    """Forward every director-owned scholar to its faculty; refused while duplicates exist."""
    duplicates = find_duplicates()
    if duplicates:
        raise WorkflowError(f"Resolve {len(duplicates)} duplicate group(s) before forwarding all scholars")

    forwarded, skipped, failed = 0, 0, []
    for row in list_scholars():
        if row["stage"] != wf.SUBMITTED or "forwarded" in (row.get("status") or "").lower():
            skipped += 1
            continue
        try:
            apply_action(row["id"], "forward_to_faculty", user)
            forwarded += 1
        except (ValidationError, WorkflowError) as e:
            failed.append({"id": row["id"], "error": e.message})
    log.info("✅ Forward all: %s forwarded, %s skipped, %s failed", forwarded, skipped, len(failed))
    return {"forwarded": forwarded, "skipped": skipped, "failed": failed}


# --- role inboxes -----------------------------------------------------------------------


def _filter_stage(rows, *stages):
    return [row for row in rows if row["stage"] in stages]


def director_inbox(search=None):
    return _filter_stage(list_scholars(search=search), wf.SUBMITTED)


def director_verified(faculty=None, search=None):
    where, params = "faculty_forward = %s", [wf.BACK_TO_DIRECTOR]
    if faculty:
        where += " AND faculty = %s"
        params.append(dm.normalize_faculty(faculty))
    rows = list_scholars(where, params, search=search)
    return [
        row for row in _filter_stage(rows, wf.WITH_DIRECTOR)
        if "query" not in (row.get("dept_review") or "").lower()
    ]


def director_queries(search=None):
    rows = list_scholars("faculty_forward = %s", [wf.BACK_TO_DIRECTOR], search=search)
    return _filter_stage(rows, wf.DIRECTOR_QUERY)


def faculty_inbox(faculty, search=None):
    rows = list_scholars("faculty = %s", [dm.normalize_faculty(faculty)], search=search)
    return _filter_stage(rows, wf.WITH_FACULTY)


def faculty_returns(faculty, search=None):
    rows = list_scholars("faculty = %s", [dm.normalize_faculty(faculty)], search=search)
    return _filter_stage(rows, wf.RETURNED_TO_FACULTY)


def faculty_queries(faculty, search=None):
    rows = list_scholars("faculty = %s", [dm.normalize_faculty(faculty)], search=search)
    return _filter_stage(rows, wf.QUERY_RESOLVED)


def department_inbox(department_code, stage=None, search=None):
    rows = list_scholars("faculty_status = %s", [dm.faculty_forward_status(department_code)], search=search)
    if stage:
        return _filter_stage(rows, stage)
    return rows


def department_queries(department_code, search=None):
    return department_inbox(department_code, stage=wf.QUERY_WITH_DEPARTMENT, search=search)


def department_rejected(department_code, search=None):
    rows = department_inbox(department_code, search=search)
    return [
        row for row in rows
        if (row.get("dept_review") or "") == wf.REVIEW_REJECTED
        and row["stage"] in (wf.DEPARTMENT_REVIEWED, wf.RETURNED_TO_FACULTY)
    ]


def scholars_needing_sync():
    """Scholars whose status text disagrees with the department recorded in faculty_status."""
    rows = fetch_rows("SELECT * FROM scholar_applications WHERE faculty_status LIKE %s", ("FORWARDED_TO_%",))
    return [row for row in rows if dm.needs_status_sync(row)]


def sync_statuses():
    """Rewrite `status` from faculty_status for out-of-sync scholars; returns the ids fixed."""
    fixed = []
    for row in scholars_needing_sync():
        code = dm.code_from_faculty_status(row.get("faculty_status"))
        execute_write(
            "UPDATE scholar_applications SET status = %s, updated_at = %s WHERE id = %s",
            (dm.forwarding_status(code), timestamp(), row["id"]),
        )
        fixed.append(row["id"])
    if fixed:
        log.warning("⚠️ Re-synced status for %s scholar(s)", len(fixed))
    return fixed
