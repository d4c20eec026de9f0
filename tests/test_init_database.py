import re

import pytest

import init_database
from services.scholar_fields import FIELDS

# InnoDB row limit; utf8mb4 stores up to 4 bytes per character plus a 2 byte length
MAX_ROW_BYTES = 65535


def varchar_row_bytes(ddl):
    return sum(int(size) * 4 + 2 for size in re.findall(r"VARCHAR\((\d+)\)", ddl))


def test_schema_creates_every_table():
    statements = "\n".join(init_database.schema_statements())
    for table in init_database.TABLES:
        assert f"CREATE TABLE IF NOT EXISTS {table} (" in statements


def test_scholar_table_has_form_and_workflow_columns():
    ddl = init_database.scholar_table_ddl()
    for field in FIELDS:
        assert f" {field.column} " in ddl
    for column in ("faculty_status", "dept_review", "faculty_forward", "query_resolved_dept", "current_owner"):
        assert column in ddl
    assert "reasons_for_applying TEXT" in ddl
    assert "application_no VARCHAR(100)" in ddl


@pytest.mark.parametrize("statement", init_database.schema_statements())
def test_rows_fit_innodb_limit(statement):
    assert varchar_row_bytes(statement) <= MAX_ROW_BYTES


def test_scholar_table_row_size_counts_every_varchar():
    ddl = init_database.scholar_table_ddl()
    assert ddl.count("VARCHAR(") == len(init_database.LOOKUP_COLUMNS) + 8
    assert varchar_row_bytes(ddl) < MAX_ROW_BYTES
