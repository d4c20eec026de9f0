import pytest

from services import department_mapping as dm
from services import examinations as ex
from services import supervisors as sv
from services.errors import NotFoundError, ValidationError, WorkflowError

CSE_PROGRAM = "Ph.d. - Computer Science And Engineering (ph.d. - E and T - Full Time)"


def make_supervisor(**overrides):
    data = {
        "name": "Dr. Lakshmi",
        "faculty": "Engineering",
        "department": "Computer Science and Engineering",
        "max_full_time_scholars": 1,
        "max_part_time_external_scholars": 2,
    }
    data.update(overrides)
    return sv.create_supervisor(data)


def make_record(name, total_interview="30", **overrides):
    data = {
        "registered_name": name, "program": CSE_PROGRAM, "department": "Computer Science And Engineering",
        "written_marks": "50", "interview_marks": total_interview, "program_type": dm.FULL_TIME,
    }
    data.update(overrides)
    return ex.import_records([data])[0]


def test_create_supervisor_normalizes_faculty(fake_db):
    supervisor = sv.get_supervisor(make_supervisor())
    assert supervisor["faculty"] == dm.ENGINEERING
    assert supervisor["current_full_time_scholars"] == 0
    assert supervisor["max_part_time_internal_scholars"] == 0


def test_create_supervisor_requires_name(fake_db):
    with pytest.raises(ValidationError):
        sv.create_supervisor({"faculty": "Engineering"})
    with pytest.raises(ValidationError):
        sv.create_supervisor({"name": "Dr. X", "faculty": "Engineering", "max_full_time_scholars": "many"})


def test_update_and_list_supervisors(fake_db):
    supervisor_id = make_supervisor()
    make_supervisor(name="Dr. Arun", faculty="Management", department="MBA")
    updated = sv.update_supervisor(supervisor_id, {"designation": "Professor"})
    assert updated["designation"] == "Professor"
    assert [s["name"] for s in sv.list_supervisors(faculty="Engineering")] == ["Dr. Lakshmi"]
    assert [s["name"] for s in sv.list_supervisors(department="computer")] == ["Dr. Lakshmi"]


def test_category_for_program_types():
    assert sv.category_for(dm.FULL_TIME) == "full_time"
    assert sv.category_for(dm.PART_TIME_INDUSTRY) == "part_time_industry"
    assert sv.category_for(dm.PART_TIME) == "part_time_external"


def test_qualified_scholars_ranked_and_filtered(fake_db):
    low = make_record("Low", total_interview="10")
    high = make_record("High", total_interview="40")
    make_record("Absent", total_interview="Ab")
    make_record("Commerce", program="Ph.D. - Commerce (S and H)", department="Commerce")

    qualified = sv.qualified_scholars("Faculty of Engineering and Technology")
    assert [r["id"] for r in qualified] == [high, low]
    assert sv.qualified_scholars(dm.ENGINEERING, department="civil") == []
    assert sv.qualified_scholars(dm.ENGINEERING, scholar_type="part time external") == []


def test_assign_and_unassign_track_capacity(fake_db):
    supervisor_id = make_supervisor()
    first = make_record("First")
    second = make_record("Second")

    record = sv.assign(supervisor_id, first)
    assert record["supervisor_name"] == "Dr. Lakshmi"
    assert record["supervisor_status"] == sv.ADMITTED
    assert sv.get_supervisor(supervisor_id)["current_full_time_scholars"] == 1

    with pytest.raises(WorkflowError):
        sv.assign(supervisor_id, first)
    with pytest.raises(WorkflowError):
        sv.assign(supervisor_id, second)

    assert [r["id"] for r in sv.qualified_scholars(dm.ENGINEERING)] == [second]
    assert [r["id"] for r in sv.admitted_scholars(dm.ENGINEERING)] == [first]

    record = sv.unassign(first)
    assert record["supervisor_name"] is None
    assert sv.get_supervisor(supervisor_id)["current_full_time_scholars"] == 0
    with pytest.raises(WorkflowError):
        sv.unassign(first)


def test_generic_part_time_uses_external_quota(fake_db):
    supervisor_id = make_supervisor()
    record_id = make_record("Part timer", program_type=dm.PART_TIME)
    sv.assign(supervisor_id, record_id)
    assert sv.get_supervisor(supervisor_id)["current_part_time_external_scholars"] == 1


def test_vacancies(fake_db):
    supervisor_id = make_supervisor()
    sv.assign(supervisor_id, make_record("First"))
    summary = sv.vacancies(dm.ENGINEERING)[0]
    assert summary["full_time"] == {"capacity": 1, "filled": 1, "vacant": 0}
    assert summary["part_time_external"]["vacant"] == 2


def test_delete_supervisor_with_scholars_is_blocked(fake_db):
    supervisor_id = make_supervisor()
    record_id = make_record("First")
    sv.assign(supervisor_id, record_id)
    with pytest.raises(WorkflowError):
        sv.delete_supervisor(supervisor_id)
    sv.unassign(record_id)
    sv.delete_supervisor(supervisor_id)
    with pytest.raises(NotFoundError):
        sv.get_supervisor(supervisor_id)
