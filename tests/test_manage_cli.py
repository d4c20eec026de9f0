import pytest

import manage
from services import accounts, scholars
from utils.auth import authenticate


def test_parser_contains_commands():
    h = manage.create_parser().format_help()
    for command in ("create_account", "list_accounts", "rotate_password", "import_scholars", "export_scholars"):
        assert command in h


def test_create_account_requires_email():
    parser = manage.create_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["create_account"])


def test_create_account_rejects_unknown_role():
    with pytest.raises(SystemExit):
        manage.create_parser().parse_args(["create_account", "--email", "a@example.edu", "--role", "hr"])


def test_create_director_with_password(fake_db):
    rc = manage.main(["create_account", "--email", "Director@example.edu", "--password", "Secret123!"])
    assert rc == 0
    user = authenticate("director@example.edu", "Secret123!")
    assert user is not None
    assert user["role"] == "director"


def test_create_coordinator_with_generated_password_and_otp_file(tmp_path, fake_db):
    otp_file = tmp_path / "otp" / "fet.txt"
    rc = manage.main([
        "create_account", "--email", "fet@example.edu", "--role", "coordinator", "--faculty", "Engineering",
        "--generate-password", "--otp-file", str(otp_file),
    ])
    assert rc == 0
    password = otp_file.read_text().strip()
    assert len(password) >= 8
    assert authenticate("fet@example.edu", password)["faculty"] == "Faculty of Engineering & Technology"


def test_create_account_invalid_scope_returns_error(fake_db, capsys):
    rc = manage.main(["create_account", "--email", "fet@example.edu", "--role", "coordinator", "--password", "pw"])
    assert rc == 2
    assert "faculty" in capsys.readouterr().out


def test_existing_account_needs_force(fake_db):
    manage.main(["create_account", "--email", "director@example.edu", "--password", "first"])
    assert manage.main(["create_account", "--email", "director@example.edu", "--password", "second"]) == 2
    assert manage.main(["create_account", "--email", "director@example.edu", "--password", "second", "--force"]) == 0
    assert authenticate("director@example.edu", "second") is not None


def test_prompted_password_mismatch_aborts(fake_db, monkeypatch):
    answers = iter(["one", "two"])
    monkeypatch.setattr(manage.getpass, "getpass", lambda prompt: next(answers))
    assert manage.main(["create_account", "--email", "director@example.edu"]) == 1
    assert accounts.find_by_email("director@example.edu") is None


def test_list_accounts(fake_db, capsys):
    accounts.create_account("director@example.edu", "pw", "director")
    accounts.create_account("fet@example.edu", "pw", "coordinator", faculty="Engineering")
    assert manage.main(["list_accounts", "--role", "coordinator"]) == 0
    out = capsys.readouterr().out
    assert "fet@example.edu" in out
    assert "director@example.edu" not in out


def test_rotate_password(fake_db):
    accounts.create_account("fet@example.edu", "old-pass", "coordinator", faculty="Engineering")
    assert manage.main(["rotate_password", "--email", "fet@example.edu", "--password", "new-pass"]) == 0
    assert authenticate("fet@example.edu", "new-pass") is not None
    assert manage.main(["rotate_password", "--email", "nobody@example.edu", "--password", "x"]) == 2


def test_import_and_export_scholars(fake_db, tmp_path, capsys):
    source = tmp_path / "scholars.csv"
    source.write_text(
        "Application No,Name,Select Program\n"
        "APP001,Anitha,Ph.D. - Civil Engineering (E and T)\n"
        "APP002,Karthik,Ph.D. - Commerce (S and H)\n"
    )
    assert manage.main(["import_scholars", str(source)]) == 0
    assert "Imported 2 scholar(s)" in capsys.readouterr().out
    assert len(scholars.list_scholars()) == 2

    target = tmp_path / "export.xlsx"
    assert manage.main(["export_scholars", str(target)]) == 0
    assert target.stat().st_size > 0


def test_import_missing_file_returns_error(fake_db, tmp_path):
    assert manage.main(["import_scholars", str(tmp_path / "missing.csv")]) == 2


def test_main_without_command_prints_help(capsys):
    assert manage.main([]) == 0
    assert "usage" in capsys.readouterr().out.lower()
