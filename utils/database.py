import logging
from contextlib import contextmanager
from decimal import Decimal

import mysql.connector
from mysql.connector import Error
from mysql.connector.constants import ClientFlag
from flask import g, current_app

log = logging.getLogger(__name__)


def get_db():
    if "db" not in g:
        try:
            g.db = mysql.connector.connect(
                host=current_app.config["MYSQL_HOST"],
                user=current_app.config["MYSQL_USER"],
                password=current_app.config["MYSQL_PASSWORD"],
                database=current_app.config["MYSQL_DB"],
                autocommit=False,
                connect_timeout=3,  # fail quickly if MySQL is not running
                raise_on_warnings=False,
                use_unicode=True,
                charset="utf8mb4",
                buffered=True,
                # rowcount reports matched rows, so guarded updates can detect lost races
                client_flags=[ClientFlag.FOUND_ROWS],
            )
            g.db.ping(reconnect=False, attempts=1, delay=0)
        except Error as e:
            log.error("⚠️ Database connection error: %s", e)
            return None
        except Exception as e:
            log.error("⚠️ Unexpected database error: %s", e)
            return None
    return g.db


def close_db(e=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def execute_query(query, params=None, fetch_one=False, fetch_all=False):
    """Run a query and return rows, or the last row id for statements.

    Read failures are logged and reported as None so list views degrade to empty.
    """
    db = get_db()
    if not db:
        return None

    cursor = db.cursor(dictionary=True)
    try:
        cursor.execute(query, params or ())

        if fetch_one:
            result = cursor.fetchone()
        elif fetch_all:
            result = cursor.fetchall()
        else:
            db.commit()
            result = cursor.lastrowid

        return result
    except Exception as e:
        log.error("❌ Query error: %s", e)
        db.rollback()
        return None
    finally:
        cursor.close()


def execute_write(query, params=None):
    """Run an INSERT/UPDATE/DELETE and return (lastrowid, rowcount).

    Unlike execute_query, failures are re-raised after rollback.
    """
    db = get_db()
    if not db:
        raise RuntimeError("Database connection is not available")

    cursor = db.cursor(dictionary=True)
    try:
        cursor.execute(query, params or ())
        db.commit()
        return cursor.lastrowid, cursor.rowcount
    except Exception as e:
        log.error("❌ Write failed: %s", e)
        db.rollback()
        raise
    finally:
        cursor.close()


@contextmanager
def transaction():
    """Yield one cursor for several statements; commit once, roll back on any error."""
    db = get_db()
    if not db:
        raise RuntimeError("Database connection is not available")

    cursor = db.cursor(dictionary=True)
    try:
        yield cursor
        db.commit()
    except Exception as e:
        log.warning("⚠️ Transaction rolled back: %s", e)
        db.rollback()
        raise
    finally:
        cursor.close()


def _first_value(row, default=0):
    """Return the first value from a dictionary result or a default."""
    if not row:
        return default

    for value in row.values():
        if value is None:
            return default
        if isinstance(value, Decimal):
            return float(value)
        return value

    return default


def fetch_count(query, params=None, default=0):
    """Execute a COUNT-style query and safely extract the resulting value."""
    row = execute_query(query, params, fetch_one=True)
    return _first_value(row, default)


def fetch_rows(query, params=None):
    """Execute a query returning multiple rows, ensuring a list result."""
    rows = execute_query(query, params, fetch_all=True)
    return rows or []


def fetch_one(query, params=None):
    return execute_query(query, params, fetch_one=True)


def build_update(table, key_column, key_value, values):
    """Build an UPDATE statement for a dict of column values.

    Column names come from code, never from request data.
    """
    if not values:
        return None, None
    assignments = ", ".join(f"{column} = %s" for column in values)
    params = list(values.values()) + [key_value]
    return f"UPDATE {table} SET {assignments} WHERE {key_column} = %s", tuple(params)
