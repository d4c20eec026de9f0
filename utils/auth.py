import json
import logging
import uuid
from datetime import datetime, timedelta

import bcrypt
from flask import session

from utils.database import execute_query, fetch_one
from utils.helpers import timestamp

log = logging.getLogger(__name__)

ROLES = ("director", "admin", "coordinator", "department")
# Roles that act on behalf of the director's office
DIRECTOR_ROLES = ("director", "admin")

SESSION_HOURS = 12


def hash_password(password):
    """Hash a password using bcrypt. Raises ValueError for invalid input."""
    if not password:
        raise ValueError("Password must be a non-empty string")
    try:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
    except Exception as exc:
        log.exception("❌ Failed to hash password: %s", exc)
        raise


def check_password(hashed_password, user_password):
    try:
        return bcrypt.checkpw(user_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except Exception:
        return False


def normalize_role(role):
    role = (role or "").strip().lower()
    if role in ("super_admin", "superadmin"):
        return "admin"
    if role in ("faculty", "faculty_coordinator"):
        return "coordinator"
    if role in ("dept", "department_admin"):
        return "department"
    return role


def authenticate(email, password):
    """Return the user row for valid, active credentials, else None."""
    email = (email or "").strip().lower()
    if not email or not password:
        return None
    user = fetch_one(
        """
        SELECT user_id, email, password_hash, role, full_name, faculty, department,
               department_code, status
        FROM users
        WHERE LOWER(email) = %s
        LIMIT 1
        """,
        (email,),
    )
    if not user:
        log.info("❌ Login failed: no account for %s", email)
        return None
    if (user.get("status") or "Active") != "Active":
        log.info("❌ Login refused for inactive account %s", email)
        return None
    if not check_password(user.get("password_hash") or "", password):
        log.info("❌ Login failed: bad password for %s", email)
        return None
    return user


def login_user(user):
    """Store the account and its routing scope in the session and log the session."""
    role = normalize_role(user.get("role"))
    session.clear()
    session["user_id"] = user["user_id"]
    session["auth_user_id"] = user["user_id"]
    session["user_role"] = role
    session["user_email"] = user.get("email")
    session["user_name"] = user.get("full_name") or ""
    session["faculty"] = user.get("faculty")
    session["department"] = user.get("department")
    session["department_code"] = user.get("department_code")
    session["logged_in"] = True

    session_id = str(uuid.uuid4())
    session["auth_session_id"] = session_id

    now = datetime.now()
    session_data = json.dumps({"user_id": user["user_id"], "role": role, "email": user.get("email")})
    try:
        execute_query(
            "INSERT INTO auth_sessions (session_id, user_id, session_data, created_at, expires_at, is_active) "
            "VALUES (%s, %s, %s, %s, %s, 1)",
            (
                session_id,
                user["user_id"],
                session_data,
                timestamp(now),
                timestamp(now + timedelta(hours=SESSION_HOURS)),
            ),
        )
        execute_query("UPDATE users SET last_login = %s WHERE user_id = %s", (timestamp(now), user["user_id"]))
    except Exception as e:
        log.exception("Error logging session: %s", e)


def logout_user():
    auth_user_id = session.get("auth_user_id")
    auth_session_id = session.get("auth_session_id")
    if auth_user_id:
        now = timestamp()
        if auth_session_id:
            execute_query(
                "UPDATE auth_sessions SET is_active = 0, logout_time = %s WHERE session_id = %s",
                (now, auth_session_id),
            )
        execute_query("UPDATE users SET last_logout = %s WHERE user_id = %s", (now, auth_user_id))
    session.clear()


def is_logged_in():
    return "logged_in" in session and session["logged_in"]


def get_current_user():
    """Return the logged-in account as a dict, falling back to session data."""
    if not is_logged_in():
        return None

    fallback = {
        "id": session.get("user_id"),
        "role": session.get("user_role"),
        "email": session.get("user_email"),
        "name": session.get("user_name", "User"),
        "faculty": session.get("faculty"),
        "department": session.get("department"),
        "department_code": session.get("department_code"),
    }

    record = fetch_one(
        """
        SELECT user_id, email, role, full_name, faculty, department, department_code, status
        FROM users WHERE user_id = %s LIMIT 1
        """,
        (session.get("auth_user_id"),),
    )
    if record is None:
        return fallback
    if (record.get("status") or "Active") != "Active":
        logout_user()
        return None

    session["user_role"] = normalize_role(record.get("role"))
    session["faculty"] = record.get("faculty")
    session["department"] = record.get("department")
    session["department_code"] = record.get("department_code")
    return {
        "id": record["user_id"],
        "role": session["user_role"],
        "email": record.get("email"),
        "name": record.get("full_name") or "User",
        "faculty": record.get("faculty"),
        "department": record.get("department"),
        "department_code": record.get("department_code"),
    }
