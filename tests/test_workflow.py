import pytest

from services import department_mapping as dm
from services import workflow as wf
from services.errors import PermissionDenied, ValidationError, WorkflowError

CSE_PROGRAM = "Ph.d. - Computer Science And Engineering (ph.d. - E and T - Full Time)"


def submitted_row(**overrides):
    row = {"id": 1, "program": CSE_PROGRAM, "faculty": dm.ENGINEERING, "status": "Pending"}
    row.update(overrides)
    return row


def advance(row, action, role, **kwargs):
    updates, _, to_stage = wf.plan_transition(action, row, role, **kwargs)
    new_row = dict(row)
    new_row.update(updates)
    assert wf.derive_stage(new_row) == to_stage
    return new_row


def test_new_scholar_is_submitted():
    assert wf.derive_stage(submitted_row()) == wf.SUBMITTED
    assert wf.derive_stage({}) == wf.SUBMITTED


def test_full_approval_path():
    row = advance(submitted_row(), "forward_to_faculty", "director")
    assert row["status"] == "Forwarded to Engineering"
    assert wf.derive_stage(row) == wf.WITH_FACULTY

    row = advance(row, "forward_to_department", "coordinator")
    assert row["faculty_status"] == "FORWARDED_TO_CSE"
    assert wf.derive_stage(row) == wf.WITH_DEPARTMENT

    row = advance(row, "approve", "department")
    assert wf.derive_stage(row) == wf.DEPARTMENT_REVIEWED

    row = advance(row, "return_to_faculty", "department")
    assert row["dept_status"] == "Back_To_Engineering"
    assert wf.derive_stage(row) == wf.RETURNED_TO_FACULTY

    row = advance(row, "forward_to_director", "coordinator")
    assert wf.derive_stage(row) == wf.WITH_DIRECTOR
    assert row["current_owner"] == "director"


def test_query_round_trip_returns_to_same_department():
    row = advance(submitted_row(), "forward_to_faculty", "director")
    row = advance(row, "forward_to_department", "coordinator")
    row = advance(row, "raise_query", "department", query_text="Upload PG marksheet")
    assert row["dept_review"] == wf.REVIEW_QUERY
    assert wf.derive_stage(row) == wf.RETURNED_TO_FACULTY

    row = advance(row, "forward_to_director", "coordinator")
    assert wf.derive_stage(row) == wf.DIRECTOR_QUERY

    row = advance(row, "resolve_query", "director")
    assert wf.derive_stage(row) == wf.QUERY_RESOLVED

    row = advance(row, "forward_to_department", "coordinator")
    assert row["query_resolved_dept"] == "resolved_to_CSE"
    assert wf.derive_stage(row) == wf.QUERY_WITH_DEPARTMENT

    row = advance(row, "approve", "department")
    assert wf.derive_stage(row) == wf.DEPARTMENT_REVIEWED


def test_second_query_goes_back_to_director_queue():
    row = advance(submitted_row(), "forward_to_faculty", "director")
    row = advance(row, "forward_to_department", "coordinator")
    row = advance(row, "raise_query", "department", query_text="first")
    row = advance(row, "forward_to_director", "coordinator")
    row = advance(row, "resolve_query", "director")
    row = advance(row, "forward_to_department", "coordinator")
    row = advance(row, "raise_query", "department", query_text="second")
    assert row["query_resolved"] is None
    row = advance(row, "forward_to_director", "coordinator")
    assert wf.derive_stage(row) == wf.DIRECTOR_QUERY


def test_reject_requires_reason():
    row = advance(submitted_row(), "forward_to_faculty", "director")
    row = advance(row, "forward_to_department", "coordinator")
    with pytest.raises(ValidationError):
        wf.plan_transition("reject", row, "department", reason="  ")
    row = advance(row, "reject", "department", reason="Not eligible")
    assert row["reject_reason"] == "Not eligible"
    assert wf.derive_stage(row) == wf.DEPARTMENT_REVIEWED


def test_revert_reopens_review():
    row = advance(submitted_row(), "forward_to_faculty", "director")
    row = advance(row, "forward_to_department", "coordinator")
    row = advance(row, "reject", "department", reason="Not eligible")
    row = advance(row, "return_to_faculty", "department")
    row = advance(row, "revert", "department")
    assert row["dept_review"] == wf.REVIEW_PENDING
    assert wf.derive_stage(row) == wf.WITH_DEPARTMENT


def test_revert_of_approved_scholar_after_return_is_refused():
    row = advance(submitted_row(), "forward_to_faculty", "director")
    row = advance(row, "forward_to_department", "coordinator")
    row = advance(row, "approve", "department")
    row = advance(row, "return_to_faculty", "department")
    with pytest.raises(WorkflowError):
        wf.plan_transition("revert", row, "department")


def test_wrong_stage_is_refused():
    with pytest.raises(WorkflowError):
        wf.plan_transition("approve", submitted_row(), "department")
    with pytest.raises(WorkflowError):
        wf.plan_transition("resolve_query", submitted_row(), "director")


def test_wrong_role_is_refused():
    with pytest.raises(PermissionDenied):
        wf.plan_transition("forward_to_faculty", submitted_row(), "department")
    with pytest.raises(PermissionDenied):
        wf.plan_transition("approve", submitted_row(), "coordinator")


def test_unknown_action():
    with pytest.raises(ValidationError):
        wf.plan_transition("teleport", submitted_row(), "director")


def test_department_from_another_faculty_is_refused():
    row = advance(submitted_row(), "forward_to_faculty", "director")
    with pytest.raises(ValidationError):
        wf.plan_transition("forward_to_department", row, "coordinator", department_code="MBA")


def test_transfer_restarts_review_in_new_faculty():
    row = advance(submitted_row(), "forward_to_faculty", "director")
    row = advance(row, "forward_to_department", "coordinator")
    row = advance(row, "transfer_to_faculty", "director", faculty="Science")
    assert row["faculty"] == dm.SCIENCE
    assert row["faculty_status"] is None
    assert wf.derive_stage(row) == wf.WITH_FACULTY


def test_stage_summary_counts_every_stage():
    rows = [submitted_row(), submitted_row(status="Forwarded to Engineering")]
    summary = wf.stage_summary(rows)
    assert set(summary) == set(wf.STAGES)
    assert summary[wf.SUBMITTED] == 1
    assert summary[wf.WITH_FACULTY] == 1
