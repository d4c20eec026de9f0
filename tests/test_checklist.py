import json

import pytest

from services import checklist as cl
from services import department_mapping as dm
from services import examinations as ex
from services import supervisors as sv
from services.errors import ValidationError, WorkflowError

CSE_PROGRAM = "Ph.d. - Computer Science And Engineering (ph.d. - E and T - Full Time)"


def admitted_record(name="Anitha", **overrides):
    data = {"registered_name": name, "program": CSE_PROGRAM, "written_marks": "50", "interview_marks": "30",
            "program_type": dm.FULL_TIME}
    data.update(overrides)
    record_id = ex.import_records([data])[0]
    supervisor_id = sv.create_supervisor({"name": f"Dr. Guide {name}", "faculty": "Engineering",
                                          "max_full_time_scholars": 1})
    sv.assign(supervisor_id, record_id)
    return record_id


def test_default_checklist_items():
    checklist = cl.default_checklist()
    assert len(checklist) == 17
    assert checklist["aadhar"] == {"label": "Aadhar", "status": "Pending", "checked": False, "type": "mandatory"}
    assert checklist["noc"]["type"] == "optional"
    assert not cl.mandatory_complete(checklist)
    assert all(item["status"] == "Verified" for item in cl.default_checklist(completed=True).values())


def test_parse_checklist_merges_and_splits_aadhar_pan():
    stored = json.dumps({"aadharPan": {"checked": True, "type": "mandatory"}, "photos": {"checked": True,
                                                                                        "status": "Verified"}})
    checklist = cl.parse_checklist(stored)
    assert "aadharPan" not in checklist
    assert checklist["aadhar"]["checked"] and checklist["pan"]["checked"]
    assert checklist["pan"]["label"] == "PAN"
    assert checklist["photos"]["label"] == "Photo (5 copy)"
    assert checklist["semesterFee"]["checked"] is False
    assert cl.parse_checklist("not json") == cl.default_checklist()


def test_only_admitted_scholars_are_listed(fake_db):
    admitted = admitted_record()
    ex.import_records([{"registered_name": "Waiting", "program": CSE_PROGRAM}])
    rows = cl.list_admitted()
    assert [row["id"] for row in rows] == [admitted]
    assert rows[0]["checklist_status"] == "Pending"
    assert rows[0]["frozen"] is False
    assert cl.list_admitted(faculty="Science") == []


def test_save_checklist_keeps_notes(fake_db):
    record_id = admitted_record()
    record = cl.save_checklist(record_id, {"registrationFee": True, "noc": {"checked": True}}, "Fee receipt seen")
    assert record["checklist"]["registrationFee"] == {
        "label": "Registration Fee", "status": "Verified", "checked": True, "type": "mandatory"
    }
    assert record["checklist"]["noc"]["checked"] is True
    assert record["checklist_notes"] == "Fee receipt seen"
    assert record["checklist_status"] == "Pending"

    with pytest.raises(ValidationError):
        cl.save_checklist(record_id, {"passport": True})
    with pytest.raises(ValidationError):
        cl.save_checklist(record_id, ["registrationFee"])


def test_complete_verification_freezes_checklist(fake_db):
    record_id = admitted_record()
    record = cl.complete_verification(record_id, notes="All originals returned")
    assert record["checklist_status"] == "Completed"
    assert record["eligible_checklist"] == "Checked"
    assert record["frozen"] is True
    assert record["mandatory_complete"] is True
    assert record["checklist"]["netSlet"]["checked"] is False

    with pytest.raises(WorkflowError):
        cl.save_checklist(record_id, {"noc": True})
    with pytest.raises(WorkflowError):
        cl.complete_verification(record_id)
    assert [row["id"] for row in cl.list_admitted(status="completed")] == [record_id]


def test_checklist_needs_a_supervisor(fake_db):
    record_id = ex.import_records([{"registered_name": "Waiting", "program": CSE_PROGRAM}])[0]
    with pytest.raises(WorkflowError):
        cl.save_checklist(record_id, {"registrationFee": True})
