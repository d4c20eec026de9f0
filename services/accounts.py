"""Portal accounts: director, admins, faculty coordinators and department users."""
import logging
import re
import secrets

from services import department_mapping as dm
from services.errors import NotFoundError, PermissionDenied, ValidationError
from utils.auth import ROLES, check_password, hash_password, normalize_role
from utils.database import build_update, execute_write, fetch_one, fetch_rows
from utils.helpers import clean_text, timestamp

log = logging.getLogger(__name__)

ACTIVE = "Active"
INACTIVE = "Inactive"
ACCOUNT_STATUSES = (ACTIVE, INACTIVE)
MIN_PASSWORD_LENGTH = 8

PUBLIC_COLUMNS = (
    "user_id, email, role, full_name, phone, faculty, department, department_code, status, created_at, last_login"
)


def is_valid_email(value):
    return bool(re.match(r"[^@\s]+@[^@\s]+\.[^@\s]+", value or ""))


def get_account(user_id):
    row = fetch_one(f"SELECT {PUBLIC_COLUMNS} FROM users WHERE user_id = %s", (user_id,))
    if not row:
        raise NotFoundError(f"Account {user_id} not found")
    return row


def find_by_email(email):
    return fetch_one(
        f"SELECT {PUBLIC_COLUMNS} FROM users WHERE LOWER(email) = %s", ((email or "").strip().lower(),)
    )


def list_accounts(role=None, faculty=None):
    where, params = ["1=1"], []
    if role:
        where.append("role = %s")
        params.append(normalize_role(role))
    if faculty:
        where.append("faculty = %s")
        params.append(dm.normalize_faculty(faculty) or faculty)
    return fetch_rows(
        f"SELECT {PUBLIC_COLUMNS} FROM users WHERE {' AND '.join(where)} ORDER BY role, email", tuple(params)
    )


def _scope_for(role, faculty, department):
    """Validate and resolve the faculty/department scope an account needs for its role."""
    canonical = dm.normalize_faculty(faculty) if faculty else None
    if role in ("coordinator", "department") and not canonical:
        raise ValidationError("A valid faculty is required for this role")
    if role != "department":
        return canonical, None, None
    department = clean_text(department)
    if not department:
        raise ValidationError("Department is required for department accounts")
    code = dm.department_short_code(department, canonical)
    if code == dm.UNKNOWN_CODE:
        raise ValidationError(f"Cannot determine a department code for '{department}'")
    return canonical, department, code


def create_account(email, password, role, full_name="", faculty=None, department=None, phone=None):
    email = (email or "").strip().lower()
    role = normalize_role(role)
    if not is_valid_email(email):
        raise ValidationError("Invalid email address")
    if role not in ROLES:
        raise ValidationError(f"Unknown role: {role}")
    if find_by_email(email):
        raise ValidationError(f"An account already exists for {email}")
    if role == "director" and list_accounts(role="director"):
        raise ValidationError("A director account already exists")

    faculty, department, code = _scope_for(role, faculty, department)
    user_id, _ = execute_write(
        """
        INSERT INTO users
            (email, password_hash, role, full_name, phone, faculty, department, department_code, status, created_at)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """,
        (email, hash_password(password), role, full_name or "", phone, faculty, department, code, ACTIVE,
         timestamp()),
    )
    log.info("✅ Created %s account %s", role, email)
    return user_id


def update_account(user_id, data, actor=None):
    account = get_account(user_id)
    _guard_director(account, actor)
    values = {}
    for column in ("full_name", "phone"):
        if column in data:
            values[column] = clean_text(data[column])
    if "faculty" in data or "department" in data:
        faculty, department, code = _scope_for(
            account["role"], data.get("faculty", account.get("faculty")), data.get("department", account.get("department"))
        )
        values.update({"faculty": faculty, "department": department, "department_code": code})
    if "status" in data:
        values["status"] = _validated_status(data["status"])
    if "email" in data:
        email = (data["email"] or "").strip().lower()
        if not is_valid_email(email):
            raise ValidationError("Invalid email address")
        existing = find_by_email(email)
        if existing and existing["user_id"] != account["user_id"]:
            raise ValidationError(f"An account already exists for {email}")
        values["email"] = email
    if not values:
        raise ValidationError("No account fields supplied")
    query, params = build_update("users", "user_id", user_id, values)
    execute_write(query, params)
    return get_account(user_id)


def _validated_status(status):
    status = clean_text(status).capitalize()
    if status not in ACCOUNT_STATUSES:
        raise ValidationError(f"Status must be one of {', '.join(ACCOUNT_STATUSES)}")
    return status


def _guard_director(account, actor):
    """Only the director may change the director account; the CLI passes no actor."""
    if account["role"] == "director" and actor and normalize_role(actor.get("role")) != "director":
        raise PermissionDenied("Only the director can change the director account")


def set_status(user_id, status, actor=None):
    _guard_director(get_account(user_id), actor)
    execute_write("UPDATE users SET status = %s WHERE user_id = %s", (_validated_status(status), user_id))
    return get_account(user_id)


def set_password(user_id, password):
    get_account(user_id)
    execute_write("UPDATE users SET password_hash = %s WHERE user_id = %s", (hash_password(password), user_id))


def _validated_password(password):
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


def change_password(user_id, current_password, new_password):
    """Self-service change; the current password must match."""
    row = fetch_one("SELECT password_hash FROM users WHERE user_id = %s", (user_id,))
    if not row:
        raise NotFoundError(f"Account {user_id} not found")
    if not check_password(row.get("password_hash") or "", current_password or ""):
        raise ValidationError("Current password is incorrect")
    if new_password == current_password:
        raise ValidationError("New password must differ from the current password")
    set_password(user_id, _validated_password(new_password))
    log.info("✅ Password changed for account %s", user_id)


def reset_password(user_id, password=None, actor=None):
    """Set a new password for another account; one is generated when none is given.

    Returns the password so the caller can hand it over once.
    """
    account = get_account(user_id)
    _guard_director(account, actor)
    password = _validated_password(password) if password else secrets.token_urlsafe(12)
    set_password(user_id, password)
    log.info("✅ Password reset for %s by %s", account["email"], (actor or {}).get("email", "cli"))
    return password


def delete_account(user_id):
    account = get_account(user_id)
    if account["role"] == "director":
        raise ValidationError("The director account cannot be deleted")
    execute_write("DELETE FROM users WHERE user_id = %s", (user_id,))
    log.info("Deleted %s account %s", account["role"], account["email"])
