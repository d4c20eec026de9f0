import pytest

from services import department_mapping as dm
from services import examinations as ex
from services import scholars
from services.errors import PermissionDenied, ValidationError, WorkflowError

CSE_PROGRAM = "Ph.d. - Computer Science And Engineering (ph.d. - E and T - Full Time)"

PANEL = [
    {"name": "Dr. Meena", "designation": "Professor", "affiliation": "Anna University"},
    {"name": "Dr. Ravi", "designation": "Associate Professor", "affiliation": "IIT Madras"},
]


def make_record(**overrides):
    data = {"registered_name": "Scholar", "application_no": "APP1", "program": CSE_PROGRAM, "written_marks": "60"}
    data.update(overrides)
    return ex.import_records([data])[0]


def test_compute_total():
    assert ex.compute_total(60, "25") == 85
    assert ex.compute_total(60, "Ab") is None
    assert ex.compute_total(None, "25") is None
    assert ex.compute_total(0, "25") is None


def test_interview_average_rounds_half_up():
    assert ex.interview_average(["20", "21"], 2) == 21
    assert ex.interview_average(["20", "21", "21"], 3) == 21
    assert ex.interview_average(["20", "Ab"], 2) == ex.ABSENT
    # marks beyond the evaluator count are ignored
    assert ex.interview_average(["10", "30", "Ab"], 2) == 20
    with pytest.raises(ValidationError):
        ex.interview_average(["abc"], 1)


def test_interview_average_needs_every_evaluator():
    with pytest.raises(ValidationError):
        ex.interview_average(["20", ""], 2)
    with pytest.raises(ValidationError):
        ex.interview_average(["20", "  "], 2)
    with pytest.raises(ValidationError):
        ex.interview_average(["20"], 2)


def test_imported_record_infers_routing(fake_db):
    record = ex.get_record(make_record())
    assert record["faculty"] == dm.ENGINEERING
    assert record["department_code"] == "CSE"
    assert record["status"] == ex.STATUS_PENDING
    assert record["total_marks"] is None


def test_absent_interview_is_stored_as_ab(fake_db):
    record = ex.get_record(make_record(interview_marks="absent"))
    assert record["interview_marks"] == ex.ABSENT


def test_update_marks_recomputes_total(fake_db):
    record_id = make_record()
    record = ex.update_marks(record_id, interview="30")
    assert record["interview_marks"] == "30"
    assert record["total_marks"] == 90
    with pytest.raises(ValidationError):
        ex.update_marks(record_id, written="-5")
    with pytest.raises(ValidationError):
        ex.update_marks(record_id)


def test_forward_record_once(fake_db):
    record_id = make_record()
    record = ex.forward_record(record_id)
    assert record["status"] == ex.STATUS_FORWARDED
    assert record["faculty_written"] == "Forwarded to Engineering"
    with pytest.raises(WorkflowError):
        ex.forward_record(record_id)


def test_forward_all_skips_forwarded(fake_db):
    first = make_record()
    second = make_record(application_no="APP2")
    ex.forward_record(first)
    assert ex.forward_all() == {"forwarded": [second], "failed": []}


def test_records_from_verified_scholars(make_scholar, director, coordinator, department_user):
    verified = make_scholar()
    pending = make_scholar()
    scholars.apply_action(verified, "forward_to_faculty", director)
    scholars.apply_action(verified, "forward_to_department", coordinator)
    scholars.apply_action(verified, "approve", department_user)
    scholars.apply_action(verified, "return_to_faculty", department_user)
    scholars.apply_action(verified, "forward_to_director", coordinator)

    created = ex.create_records_from_verified()
    assert len(created) == 1
    record = ex.get_record(created[0])
    assert record["scholar_id"] == verified
    assert record["department_code"] == "CSE"
    assert pending not in [r["scholar_id"] for r in ex.list_records()]
    # a second run does not duplicate records
    assert ex.create_records_from_verified() == []


def test_panel_assignment_and_marks(fake_db):
    record_id = make_record()
    assert ex.assign_panel([record_id], 1, PANEL, department_code="CSE") == 1
    record = ex.get_record(record_id)
    assert record["panel"] == "Panel 1"
    assert record["evaluator_count"] == 2
    assert ex.parse_examiner(record["examiner1"]) == PANEL[0]
    assert record["examiner3"] is None

    with pytest.raises(ValidationError):
        ex.save_interview_marks(record_id, ["20"], department_code="CSE")
    with pytest.raises(ValidationError):
        ex.save_interview_marks(record_id, ["20", ""], department_code="CSE")
    assert ex.get_record(record_id)["interview_marks"] in (None, "")

    record = ex.save_interview_marks(record_id, ["20", "25"], department_code="CSE")
    assert record["interview_marks"] == "23"
    assert record["examiner2_marks"] == "25"
    assert record["total_marks"] == 83

    with pytest.raises(WorkflowError):
        ex.remove_panel(record_id, department_code="CSE")


def test_panel_validation(fake_db):
    record_id = make_record()
    with pytest.raises(ValidationError):
        ex.assign_panel([record_id], 1, PANEL * 2)
    with pytest.raises(ValidationError):
        ex.assign_panel([record_id], 1, [{"name": "Dr. X"}])
    with pytest.raises(PermissionDenied):
        ex.assign_panel([record_id], 1, PANEL, department_code="ECE")


def test_marks_need_a_panel(fake_db):
    with pytest.raises(WorkflowError):
        ex.save_interview_marks(make_record(), ["20"])


def test_remove_panel_before_marks(fake_db):
    record_id = make_record()
    ex.assign_panel([record_id], 2, PANEL)
    record = ex.remove_panel(record_id)
    assert record["panel"] is None
    assert record["examiner1"] is None


def test_interview_forwarding_chain(fake_db):
    ready = make_record(interview_marks="40")
    missing = make_record(application_no="APP2")
    result = ex.forward_interviews([ready, missing], department_code="CSE")
    assert result["forwarded"] == [ready]
    assert result["failed"][0]["id"] == missing
    assert ex.get_record(ready)["faculty_interview"] == "Forwarded_To_Engineering"

    result = ex.forward_interviews_to_director([ready, missing], faculty=dm.ENGINEERING)
    assert result["forwarded"] == [ready]
    assert ex.get_record(ready)["director_interview"] == ex.DIRECTOR_FORWARDED


def test_publish_and_rank_results(fake_db):
    low = make_record(interview_marks="10")
    high = make_record(application_no="APP2", interview_marks="30")
    absent = make_record(application_no="APP3", interview_marks="Ab")
    other = make_record(application_no="APP4", program="Ph.D. - Commerce (S and H)", interview_marks="20")

    assert ex.publish_results("Engineering", [low, high, absent, other]) == 3
    assert ex.get_record(other)["result_dir"] is None

    ranked = ex.results(faculty=dm.ENGINEERING, published_only=True)
    assert [r["id"] for r in ranked] == [high, low, absent]
    assert [r["rank"] for r in ranked] == [1, 2, None]

    assert not ex.are_results_published("CSE")
    assert ex.publish_to_department(dm.ENGINEERING, "CSE") == 3
    assert ex.are_results_published("CSE")
    with pytest.raises(ValidationError):
        ex.publish_to_department(dm.ENGINEERING, "MBA")


def test_publish_results_validation(fake_db):
    with pytest.raises(ValidationError):
        ex.publish_results("Nowhere", [1])
    with pytest.raises(ValidationError):
        ex.publish_results("Engineering", [])


def test_type_counts(fake_db):
    make_record()
    make_record(application_no="APP2", program_type="PTE")
    counts = ex.type_counts(dm.ENGINEERING)
    assert counts == {dm.FULL_TIME: 1, "PTE": 1}
