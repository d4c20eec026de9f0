import sqlite3

import pytest

from services.scholar_fields import FIELDS


class FakeCursor:
    def __init__(self, conn):
        self._cur = conn.cursor()
        self._last = None

    def execute(self, sql, params=()):
        # Translate MySQL-style %s placeholders to SQLite ? placeholders for tests
        self._cur.execute(sql.replace("%s", "?"), tuple(params or ()))
        self._last = self._cur

    def fetchone(self):
        row = self._last.fetchone()
        if row is None:
            return None
        cols = [d[0] for d in self._last.description]
        return {cols[i]: row[i] for i in range(len(cols))}

    def fetchall(self):
        if self._last.description is None:
            return []
        rows = self._last.fetchall()
        cols = [d[0] for d in self._last.description]
        return [{cols[i]: r[i] for i in range(len(cols))} for r in rows]

    @property
    def lastrowid(self):
        return self._cur.lastrowid

    @property
    def rowcount(self):
        return self._cur.rowcount

    def close(self):
        self._cur.close()


SCHEMA = [
    """
    CREATE TABLE users (
        user_id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT UNIQUE,
        password_hash TEXT,
        role TEXT,
        full_name TEXT,
        phone TEXT,
        faculty TEXT,
        department TEXT,
        department_code TEXT,
        status TEXT DEFAULT 'Active',
        created_at TEXT,
        last_login TEXT,
        last_logout TEXT
    )
    """,
    """
    CREATE TABLE auth_sessions (
        session_id TEXT PRIMARY KEY,
        user_id INTEGER,
        session_data TEXT,
        created_at TEXT,
        expires_at TEXT,
        logout_time TEXT,
        is_active INTEGER DEFAULT 1
    )
    """,
    """
    CREATE TABLE scholar_applications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        {data_columns},
        status TEXT DEFAULT 'Pending',
        current_owner TEXT DEFAULT 'director',
        faculty_status TEXT,
        dept_status TEXT,
        dept_review TEXT,
        dept_query TEXT,
        query_timestamp TEXT,
        reject_reason TEXT,
        faculty_forward TEXT,
        query_resolved TEXT,
        query_resolved_dept TEXT,
        created_at TEXT,
        updated_at TEXT
    )
    """.replace("{data_columns}", ",\n        ".join(f"{field.column} TEXT" for field in FIELDS)),
    """
    CREATE TABLE scholar_activity (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        scholar_id INTEGER,
        actor_email TEXT,
        actor_role TEXT,
        action TEXT,
        from_stage TEXT,
        to_stage TEXT,
        details TEXT,
        created_at TEXT
    )
    """,
    """
    CREATE TABLE examination_records (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        scholar_id INTEGER,
        application_no TEXT,
        registered_name TEXT,
        email TEXT,
        mobile_number TEXT,
        faculty TEXT,
        institution TEXT,
        program TEXT,
        department TEXT,
        department_code TEXT,
        program_type TEXT,
        written_marks REAL,
        interview_marks TEXT,
        total_marks REAL,
        status TEXT DEFAULT 'pending',
        faculty_written TEXT,
        faculty_interview TEXT,
        director_interview TEXT,
        result_dir TEXT,
        dept_result TEXT,
        panel TEXT,
        evaluator_count INTEGER,
        examiner1 TEXT,
        examiner2 TEXT,
        examiner3 TEXT,
        examiner1_marks TEXT,
        examiner2_marks TEXT,
        examiner3_marks TEXT,
        supervisor_id INTEGER,
        supervisor_name TEXT,
        supervisor_status TEXT,
        checklist_verification TEXT,
        checklist_notes TEXT,
        checklist_status TEXT,
        eligible_checklist TEXT,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE supervisors (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT,
        faculty TEXT NOT NULL,
        department TEXT,
        designation TEXT,
        max_full_time_scholars INTEGER DEFAULT 0,
        max_part_time_internal_scholars INTEGER DEFAULT 0,
        max_part_time_external_scholars INTEGER DEFAULT 0,
        max_part_time_industry_scholars INTEGER DEFAULT 0,
        current_full_time_scholars INTEGER DEFAULT 0,
        current_part_time_internal_scholars INTEGER DEFAULT 0,
        current_part_time_external_scholars INTEGER DEFAULT 0,
        current_part_time_industry_scholars INTEGER DEFAULT 0,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE question_papers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        faculty TEXT NOT NULL,
        department TEXT NOT NULL,
        department_code TEXT,
        title TEXT,
        set1 TEXT,
        set2 TEXT,
        set3 TEXT,
        uploaded_by TEXT,
        created_at TEXT,
        updated_at TEXT
    )
    """,
]


class FakeDB:
    def __init__(self):
        self.conn = sqlite3.connect(":memory:", check_same_thread=False)
        # Writes stay pending until commit, as with mysql-connector and autocommit=False
        self.conn.isolation_level = "DEFERRED"
        self.setup_schema()

    def setup_schema(self):
        c = self.conn.cursor()
        for statement in SCHEMA:
            c.execute(statement)
        self.conn.commit()

    def cursor(self, dictionary=True):
        return FakeCursor(self.conn)

    def query(self, sql, params=()):
        cur = FakeCursor(self.conn)
        cur.execute(sql, params)
        rows = cur.fetchall()
        self.conn.commit()
        return rows

    def commit(self):
        self.conn.commit()

    def rollback(self):
        self.conn.rollback()

    def close(self):
        # Connections outlive app-context teardown in tests
        pass


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeDB()
    import utils.database as dbmod
    import manage as mg

    monkeypatch.setattr(dbmod, "get_db", lambda: db)
    # Also patch the get_db used directly in manage module
    monkeypatch.setattr(mg, "get_db", lambda: db)
    return db


@pytest.fixture(autouse=True)
def clear_rate_limits():
    from utils.rate_limit import reset

    reset()
    yield
    reset()


@pytest.fixture
def flask_app(fake_db, tmp_path):
    from app import app

    app.config.update(
        TESTING=True,
        WTF_CSRF_ENABLED=False,
        UPLOAD_FOLDER=str(tmp_path / "uploads"),
    )
    return app


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


CSE_PROGRAM = "Ph.d. - Computer Science And Engineering (ph.d. - E and T - Full Time)"


@pytest.fixture
def director():
    return {"id": 1, "role": "director", "email": "director@example.edu"}


@pytest.fixture
def coordinator():
    return {"id": 2, "role": "coordinator", "email": "fet@example.edu", "faculty": "Faculty of Engineering & Technology"}


@pytest.fixture
def department_user():
    return {
        "id": 3, "role": "department", "email": "cse@example.edu", "faculty": "Faculty of Engineering & Technology",
        "department": "Computer Science and Engineering", "department_code": "CSE",
    }


@pytest.fixture
def make_scholar(fake_db):
    from services import scholars

    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        data = {
            "applicationNo": f"APP{n:04d}",
            "name": f"Scholar {n}",
            "program": CSE_PROGRAM,
            "email": f"scholar{n}@example.com",
            "mobile": f"98400{n:05d}",
        }
        data.update(overrides)
        return scholars.create_scholar(data)

    return _make


@pytest.fixture
def login(client):
    def _login(email, password="Secret123!", role=None):
        payload = {"email": email, "password": password}
        if role:
            payload["role"] = role
        return client.post("/login", json=payload)

    return _login


@pytest.fixture
def accounts_seeded(fake_db):
    """Director, engineering coordinator and CSE department accounts with password 'Secret123!'."""
    from services import accounts

    accounts.create_account("director@example.edu", "Secret123!", "director", full_name="Director")
    accounts.create_account("fet@example.edu", "Secret123!", "coordinator", faculty="Engineering")
    accounts.create_account(
        "cse@example.edu", "Secret123!", "department", faculty="Engineering",
        department="Computer Science and Engineering",
    )
    return "Secret123!"
