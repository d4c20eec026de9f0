"""Scholar review workflow.

A scholar's position in the review chain is persisted across several string
columns (status, faculty_status, dept_status, dept_review, faculty_forward,
query_resolved, query_resolved_dept). ``derive_stage`` reads those columns as
one stage, and every transition here checks that stage before producing the
column updates for the next one.

    submitted -> with_faculty -> with_department -> department_reviewed
      -> returned_to_faculty -> with_director
    with_department -> (query) -> returned_to_faculty -> director_query
      -> query_resolved -> query_with_department -> department_reviewed ...
"""
import logging

from services import department_mapping as dm
from services.errors import PermissionDenied, ValidationError, WorkflowError
from utils.helpers import timestamp

log = logging.getLogger(__name__)

SUBMITTED = "submitted"
WITH_FACULTY = "with_faculty"
WITH_DEPARTMENT = "with_department"
QUERY_WITH_DEPARTMENT = "query_with_department"
DEPARTMENT_REVIEWED = "department_reviewed"
RETURNED_TO_FACULTY = "returned_to_faculty"
WITH_DIRECTOR = "with_director"
DIRECTOR_QUERY = "director_query"
QUERY_RESOLVED = "query_resolved"

STAGES = (
    SUBMITTED,
    WITH_FACULTY,
    WITH_DEPARTMENT,
    QUERY_WITH_DEPARTMENT,
    DEPARTMENT_REVIEWED,
    RETURNED_TO_FACULTY,
    WITH_DIRECTOR,
    DIRECTOR_QUERY,
    QUERY_RESOLVED,
)

STAGE_OWNER = {
    SUBMITTED: "director",
    WITH_FACULTY: "faculty",
    WITH_DEPARTMENT: "department",
    QUERY_WITH_DEPARTMENT: "department",
    DEPARTMENT_REVIEWED: "department",
    RETURNED_TO_FACULTY: "faculty",
    WITH_DIRECTOR: "director",
    DIRECTOR_QUERY: "director",
    QUERY_RESOLVED: "faculty",
}

REVIEW_APPROVED = "Approved"
REVIEW_REJECTED = "Rejected"
REVIEW_QUERY = "Query"
REVIEW_PENDING = "Pending"
DEPT_REVERT = "Revert"
BACK_TO_DIRECTOR = "Back_To_Director"
QUERY_RESOLVED_TEXT = "Query Resolved"
INITIAL_STATUS = "Pending"

DIRECTOR = ("director", "admin")
COORDINATOR = ("coordinator",)
DEPARTMENT = ("department",)

# Columns derive_stage and scholar_faculty read; a transition is planned against these values
STATE_COLUMNS = (
    "status",
    "faculty",
    "faculty_status",
    "dept_status",
    "dept_review",
    "faculty_forward",
    "query_resolved",
    "query_resolved_dept",
)


def _lower(value):
    return str(value or "").strip().lower()


def derive_stage(row):
    """Read the persisted workflow columns as a single stage name."""
    row = row or {}
    department_code = dm.code_from_faculty_status(row.get("faculty_status"))
    review = _lower(row.get("dept_review"))
    dept_status = _lower(row.get("dept_status"))

    if department_code:
        if row.get("faculty_forward") == BACK_TO_DIRECTOR:
            if review == "query":
                if row.get("query_resolved") == QUERY_RESOLVED_TEXT:
                    return QUERY_RESOLVED
                return DIRECTOR_QUERY
            return WITH_DIRECTOR
        if dept_status.startswith("back_to_"):
            return RETURNED_TO_FACULTY
        if review in ("approved", "rejected") and dept_status != "revert":
            return DEPARTMENT_REVIEWED
        if review == "query" and row.get("query_resolved_dept"):
            return QUERY_WITH_DEPARTMENT
        return WITH_DEPARTMENT

    if "forwarded" in _lower(row.get("status")):
        return WITH_FACULTY
    return SUBMITTED


def scholar_faculty(row):
    """Canonical faculty for a scholar: faculty column, then its department, then status text."""
    row = row or {}
    faculty = dm.normalize_faculty(row.get("faculty"))
    if faculty:
        return faculty
    faculty = dm.faculty_for_department(dm.code_from_faculty_status(row.get("faculty_status")))
    if faculty:
        return faculty
    return dm.normalize_faculty(row.get("status"))


def back_to_status(row):
    faculty = scholar_faculty(row)
    if not faculty:
        raise ValidationError("Cannot determine the faculty to return this scholar to")
    return f"Back_To_{dm.FACULTY_SHORT_NAMES[faculty]}"


def _require_stage(row, action, allowed):
    stage = derive_stage(row)
    if stage not in allowed:
        raise WorkflowError(f"Cannot {action.replace('_', ' ')} a scholar in stage '{stage}'")
    return stage


# --- transitions: each returns the column updates --------------------------------------


def _faculty_reset(faculty):
    return {
        "status": dm.faculty_status_text(faculty),
        "faculty": faculty,
        "faculty_status": None,
        "dept_status": None,
        "dept_review": None,
        "dept_query": None,
        "query_timestamp": None,
        "reject_reason": None,
        "faculty_forward": None,
    }


def forward_to_faculty(row, faculty=None):
    _require_stage(row, "forward to faculty", (SUBMITTED,))
    target = dm.normalize_faculty(faculty) if faculty else scholar_faculty(row)
    if not target:
        target = dm.faculty_from_program(row.get("program"), row.get("institution"))
    if not target:
        raise ValidationError("Cannot determine faculty for this scholar")
    return _faculty_reset(target)


def transfer_to_faculty(row, faculty):
    """Director re-routes a scholar to another faculty and restarts its review."""
    _require_stage(row, "transfer", tuple(s for s in STAGES if s != SUBMITTED))
    target = dm.normalize_faculty(faculty)
    if not target:
        raise ValidationError(f"Unknown faculty: {faculty}")
    updates = _faculty_reset(target)
    updates.update({"query_resolved": None, "query_resolved_dept": None})
    return updates


def forward_to_department(row, department_code=None):
    stage = _require_stage(row, "forward to department", (WITH_FACULTY, QUERY_RESOLVED))
    faculty = scholar_faculty(row)
    code = (department_code or "").strip().upper() or None
    if code is None:
        if stage == QUERY_RESOLVED:
            code = dm.code_from_faculty_status(row.get("faculty_status"))
        else:
            errors = dm.validate_for_forwarding(row)
            if errors:
                raise ValidationError("; ".join(errors))
            code = dm.department_from_program(row.get("program"), faculty)

    code_faculty = dm.faculty_for_department(code)
    if not code_faculty:
        raise ValidationError(f"Unknown department code: {code}")
    if faculty and code_faculty != faculty:
        raise ValidationError(f"Department {code} does not belong to {faculty}")

    updates = {
        "faculty_status": dm.faculty_forward_status(code),
        "status": dm.forwarding_status(code),
    }
    if stage == QUERY_RESOLVED:
        updates.update({
            "query_resolved_dept": f"resolved_to_{code}",
            "faculty_forward": None,
            "dept_status": None,
        })
    return updates


_REVIEW_CLEARS = {"dept_query": None, "query_timestamp": None, "dept_status": None, "faculty_forward": None}


def approve(row):
    _require_stage(row, "approve", (WITH_DEPARTMENT, QUERY_WITH_DEPARTMENT))
    return dict(_REVIEW_CLEARS, dept_review=REVIEW_APPROVED, reject_reason=None)


def reject(row, reason):
    _require_stage(row, "reject", (WITH_DEPARTMENT, QUERY_WITH_DEPARTMENT))
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Rejection reason is required")
    return dict(_REVIEW_CLEARS, dept_review=REVIEW_REJECTED, reject_reason=reason)


def raise_query(row, query_text):
    _require_stage(row, "raise a query on", (WITH_DEPARTMENT, QUERY_WITH_DEPARTMENT))
    query_text = (query_text or "").strip()
    if not query_text:
        raise ValidationError("Query text is required")
    return {
        "dept_review": REVIEW_QUERY,
        "dept_query": query_text,
        "query_timestamp": timestamp(),
        "dept_status": back_to_status(row),
        "query_resolved": None,
        "query_resolved_dept": None,
    }


def return_to_faculty(row):
    _require_stage(row, "return to faculty", (DEPARTMENT_REVIEWED,))
    return {"dept_status": back_to_status(row)}


def revert(row):
    stage = _require_stage(row, "revert", (DEPARTMENT_REVIEWED, RETURNED_TO_FACULTY))
    if _lower(row.get("dept_review")) != "rejected" and stage == RETURNED_TO_FACULTY:
        raise WorkflowError("Only rejected scholars can be reverted once returned to faculty")
    return {"dept_status": DEPT_REVERT, "dept_review": REVIEW_PENDING, "reject_reason": None}


def forward_to_director(row):
    _require_stage(row, "forward to director", (RETURNED_TO_FACULTY,))
    return {"faculty_forward": BACK_TO_DIRECTOR}


def resolve_query(row):
    _require_stage(row, "resolve the query of", (DIRECTOR_QUERY,))
    return {"query_resolved": QUERY_RESOLVED_TEXT}


# action -> (roles allowed, transition function)
TRANSITIONS = {
    "forward_to_faculty": (DIRECTOR, forward_to_faculty),
    "transfer_to_faculty": (DIRECTOR, transfer_to_faculty),
    "resolve_query": (DIRECTOR, resolve_query),
    "forward_to_department": (COORDINATOR + DIRECTOR, forward_to_department),
    "forward_to_director": (COORDINATOR + DIRECTOR, forward_to_director),
    "approve": (DEPARTMENT, approve),
    "reject": (DEPARTMENT, reject),
    "raise_query": (DEPARTMENT, raise_query),
    "return_to_faculty": (DEPARTMENT, return_to_faculty),
    "revert": (DEPARTMENT, revert),
}


def plan_transition(action, row, role, **kwargs):
    """Validate `action` for `role` on `row`.

    Returns (updates, from_stage, to_stage); `updates` includes current_owner.
    """
    if action not in TRANSITIONS:
        raise ValidationError(f"Unknown workflow action: {action}")
    roles, transition = TRANSITIONS[action]
    if role not in roles:
        raise PermissionDenied(f"Role '{role}' cannot {action.replace('_', ' ')}")

    from_stage = derive_stage(row)
    updates = transition(row, **kwargs)
    projected = dict(row)
    projected.update(updates)
    to_stage = derive_stage(projected)
    updates["current_owner"] = STAGE_OWNER[to_stage]
    log.debug("Scholar %s: %s %s -> %s", row.get("id"), action, from_stage, to_stage)
    return updates, from_stage, to_stage


def stage_summary(rows):
    counts = {stage: 0 for stage in STAGES}
    for row in rows:
        counts[derive_stage(row)] += 1
    return counts
