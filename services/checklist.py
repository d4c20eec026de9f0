"""Document checklist verification for scholars admitted under a supervisor."""
import json
import logging

from services import department_mapping as dm
from services.errors import ValidationError, WorkflowError
from services.examinations import get_record
from services.supervisors import ADMITTED
from utils.database import build_update, execute_write, fetch_rows
from utils.helpers import clean_text, timestamp

log = logging.getLogger(__name__)

MANDATORY = "mandatory"
OPTIONAL = "optional"
PENDING = "Pending"
VERIFIED = "Verified"
COMPLETED = "Completed"
ELIGIBLE = "Checked"
FROZEN_STATUSES = (COMPLETED, VERIFIED, "Approved")

CHECKLIST_ITEMS = (
    ("registrationFee", "Registration Fee", MANDATORY),
    ("semesterFee", "Semester Fee", MANDATORY),
    ("offerLetter", "Offer Letter", MANDATORY),
    ("applicationForm", "Application Form", MANDATORY),
    ("ugDc", "UG - Degree Certificate", MANDATORY),
    ("pgDc", "PG - Degree Certificate", MANDATORY),
    ("ugCms", "UG - Consolidated MarkSheet", MANDATORY),
    ("pgCms", "PG - Consolidated MarkSheet", MANDATORY),
    ("aadhar", "Aadhar", MANDATORY),
    ("pan", "PAN", MANDATORY),
    ("docCopies", "All the above Docs (4 copy)", MANDATORY),
    ("photos", "Photo (5 copy)", MANDATORY),
    ("researchProposal", "Research Proposal (Mandatory for Full Time scholars)", MANDATORY),
    ("experienceCertificate", "Experience Certificate (Mandatory for Full Time scholars)", MANDATORY),
    ("netSlet", "NET/SLET", OPTIONAL),
    ("communityCert", "Community Certificate", OPTIONAL),
    ("noc", "No Objection Certificate", OPTIONAL),
)


def _item(label, item_type, checked):
    return {"label": label, "status": VERIFIED if checked else PENDING, "checked": bool(checked), "type": item_type}


def default_checklist(completed=False):
    return {key: _item(label, item_type, completed) for key, label, item_type in CHECKLIST_ITEMS}


def parse_checklist(value, completed=False):
    """Stored JSON merged over the default items; the old combined aadharPan entry is split in two."""
    saved = value
    if isinstance(value, (str, bytes)):
        try:
            saved = json.loads(value) if value else {}
        except ValueError:
            log.warning("⚠️ Ignoring malformed checklist JSON")
            saved = {}
    saved = dict(saved or {})

    combined = saved.pop("aadharPan", None)
    if isinstance(combined, dict):
        checked = bool(combined.get("checked"))
        for key, label in (("aadhar", "Aadhar"), ("pan", "PAN")):
            entry = _item(label, combined.get("type") or MANDATORY, checked)
            entry["status"] = combined.get("status") or entry["status"]
            saved.setdefault(key, entry)

    checklist = default_checklist(completed)
    for key, entry in saved.items():
        if isinstance(entry, dict):
            checklist[key] = {**checklist.get(key, {}), **entry}
    return checklist


def mandatory_complete(checklist):
    return all(entry.get("checked") for entry in checklist.values() if entry.get("type") == MANDATORY)


def is_frozen(record):
    return record.get("checklist_status") in FROZEN_STATUSES or record.get("eligible_checklist") == ELIGIBLE


def _decorate(record):
    status = record.get("checklist_status") or PENDING
    record["checklist"] = parse_checklist(record.get("checklist_verification"), status in FROZEN_STATUSES)
    record["checklist_status"] = status
    record["frozen"] = is_frozen(record)
    record["mandatory_complete"] = mandatory_complete(record["checklist"])
    return record


def list_admitted(faculty=None, status=None):
    rows = fetch_rows(
        "SELECT * FROM examination_records WHERE supervisor_status = %s AND supervisor_name IS NOT NULL "
        "ORDER BY faculty, department, registered_name",
        (ADMITTED,),
    )
    if faculty:
        canonical = dm.normalize_faculty(faculty)
        rows = [row for row in rows if dm.normalize_faculty(row.get("faculty")) == canonical]
    rows = [_decorate(row) for row in rows]
    if status:
        rows = [row for row in rows if row["checklist_status"].lower() == status.strip().lower()]
    return rows


def _editable_record(record_id):
    record = get_record(record_id)
    if record.get("supervisor_status") != ADMITTED or not record.get("supervisor_name"):
        raise WorkflowError("Checklist verification is only for scholars admitted under a supervisor")
    if is_frozen(record):
        raise WorkflowError("Checklist verification is already complete")
    return _decorate(record)


def _store(record_id, updates):
    updates["updated_at"] = timestamp()
    query, params = build_update("examination_records", "id", record_id, updates)
    execute_write(query, params)
    return _decorate(get_record(record_id))


def save_checklist(record_id, items, notes=None):
    """Record ticked items; items maps an item key to a bool or to {"checked": bool}."""
    if items is not None and not isinstance(items, dict):
        raise ValidationError("Checklist items must be an object of item keys")
    record = _editable_record(record_id)
    checklist = record["checklist"]
    for key, value in (items or {}).items():
        if key not in checklist:
            raise ValidationError(f"Unknown checklist item: {key}")
        checked = value.get("checked") if isinstance(value, dict) else value
        checklist[key].update({"checked": bool(checked), "status": VERIFIED if checked else PENDING})

    updates = {"checklist_verification": json.dumps(checklist)}
    if notes is not None:
        updates["checklist_notes"] = clean_text(notes)
    return _store(record_id, updates)


def complete_verification(record_id, notes=None):
    """Tick every mandatory item and mark the scholar eligible; the checklist is frozen afterwards."""
    record = _editable_record(record_id)
    checklist = record["checklist"]
    for entry in checklist.values():
        if entry.get("type") == MANDATORY:
            entry.update({"checked": True, "status": VERIFIED})

    updates = {
        "checklist_verification": json.dumps(checklist),
        "checklist_status": COMPLETED,
        "eligible_checklist": ELIGIBLE,
    }
    if notes is not None:
        updates["checklist_notes"] = clean_text(notes)
    record = _store(record_id, updates)
    log.info("✅ Checklist verification completed for %s", record.get("registered_name") or record_id)
    return record
