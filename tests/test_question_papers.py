import pytest

from services import department_mapping as dm
from services import question_papers as qp
from services.errors import PermissionDenied, ValidationError


def test_parse_and_format_set():
    assert qp.parse_set("paper.pdf | /files/abc.pdf") == {"filename": "paper.pdf", "url": "/files/abc.pdf"}
    assert qp.parse_set("/files/abc.pdf") == {"filename": "abc.pdf", "url": "/files/abc.pdf"}
    assert qp.parse_set(None) == {"filename": "", "url": ""}
    assert qp.format_set("", "/files/abc.pdf") == "abc.pdf | /files/abc.pdf"
    with pytest.raises(ValidationError):
        qp.format_set("paper.pdf", "")


def test_director_creates_paper_for_any_department(fake_db, director):
    paper_id = qp.create_paper(
        {"faculty": "Engineering", "department": "Computer Science and Engineering",
         "set1": {"filename": "s1.pdf", "url": "/files/s1.pdf"}},
        director,
    )
    paper = qp.get_paper(paper_id, director)
    assert paper["faculty"] == dm.ENGINEERING
    assert paper["department_code"] == "CSE"
    assert paper["set1_file"] == {"filename": "s1.pdf", "url": "/files/s1.pdf"}
    assert paper["uploaded_by"] == "director@example.edu"


def test_department_user_is_pinned_to_own_department(fake_db, department_user):
    paper_id = qp.create_paper({"faculty": "Science", "department": "Chemistry"}, department_user)
    paper = qp.get_paper(paper_id, department_user)
    assert paper["faculty"] == dm.ENGINEERING
    assert paper["department_code"] == "CSE"


def test_scope_hides_other_faculties(fake_db, director, coordinator, department_user):
    qp.create_paper({"faculty": "Engineering", "department": "Computer Science and Engineering"}, director)
    other = qp.create_paper({"faculty": "Science", "department": "Chemistry"}, director)

    assert len(qp.list_papers(director)) == 2
    assert [p["department_code"] for p in qp.list_papers(coordinator)] == ["CSE"]
    assert [p["department_code"] for p in qp.list_papers(department_user)] == ["CSE"]
    with pytest.raises(PermissionDenied):
        qp.get_paper(other, coordinator)
    with pytest.raises(PermissionDenied):
        qp.delete_paper(other, department_user)


def test_attach_set_and_statistics(fake_db, director):
    paper_id = qp.create_paper({"faculty": "Engineering", "department": "Mechanical Engineering"}, director)
    for slot in (1, 2, 3):
        qp.attach_set(paper_id, slot, f"set{slot}.pdf", f"/files/set{slot}.pdf", director)
    with pytest.raises(ValidationError):
        qp.attach_set(paper_id, 4, "set4.pdf", "/files/set4.pdf", director)

    stats = qp.statistics(director)
    assert stats == {"papers": 1, "sets_filled": 3, "complete": 1, "by_faculty": {dm.ENGINEERING: 1}}


def test_update_clears_set(fake_db, director):
    paper_id = qp.create_paper(
        {"faculty": "Engineering", "department": "Civil Engineering", "set2": "/files/s2.pdf"}, director
    )
    paper = qp.update_paper(paper_id, {"set2": None, "title": "Civil entrance"}, director)
    assert paper["set2"] is None
    assert paper["title"] == "Civil entrance"


def test_create_requires_department(fake_db, director):
    with pytest.raises(ValidationError):
        qp.create_paper({"faculty": "Engineering"}, director)
