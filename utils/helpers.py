import mimetypes
import os
import re
import stat
import uuid
from datetime import datetime

from werkzeug.utils import secure_filename
from flask import current_app

# Keep reasonable file size limit for uploads (default)
DEFAULT_MAX_FILE_SIZE = 20 * 1024 * 1024  # 20MB

# Accepted MIME types per extension; spreadsheets are zip or OLE containers
EXTENSION_MIMETYPES = {
    "pdf": {"application/pdf"},
    "doc": {"application/msword", "application/CDFV2", "application/x-ole-storage"},
    "docx": {"application/vnd.openxmlformats-officedocument.wordprocessingml.document", "application/zip"},
    "xlsx": {"application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "application/zip"},
    "csv": {"text/csv", "text/plain", "application/csv", "application/vnd.ms-excel"},
}


def timestamp(value=None):
    """Format a datetime as a string accepted by both MySQL DATETIME and sqlite."""
    return (value or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


def clean_text(value):
    if value is None:
        return ""
    text = str(value).strip()
    return "" if text.lower() in ("nan", "none", "null") else text


def digits_only(value):
    return re.sub(r"\D", "", clean_text(value))


def to_float(value):
    """Parse a mark or score; blank and non-numeric values become None."""
    text = clean_text(value)
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_id_list(values):
    """Turn a JSON list (or comma separated string) of ids into ints."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [v for v in values.split(",") if v.strip()]
    ids = []
    for value in values:
        try:
            ids.append(int(value))
        except (TypeError, ValueError):
            continue
    return ids


def _normalize_allowed_exts(allowed):
    """Normalize allowed extensions input into a set of lowercase extensions without dots."""
    if not allowed:
        return set(current_app.config.get("ALLOWED_EXTENSIONS", set()))
    if isinstance(allowed, (list, set, tuple)):
        parts = allowed
    else:
        parts = [p.strip() for p in str(allowed).split(",") if p.strip()]
    normalized = set()
    for p in parts:
        p = p.lower().lstrip(".")
        if p:
            normalized.add(p)
    return normalized


def allowed_file(filename, allowed_exts=None):
    if not filename or "." not in filename:
        return False
    ext = filename.rsplit(".", 1)[1].lower()
    return ext in _normalize_allowed_exts(allowed_exts)


def _guess_mimetype_by_magic(file_path):
    try:
        import magic  # python-magic (optional)

        return magic.Magic(mime=True).from_file(file_path)
    except Exception:
        return None


def validate_file_mimetype(file_path: str, original_filename: str) -> bool:
    """Check that the file content matches its extension.

    libmagic is preferred when installed; otherwise the extension's guessed type is used.
    """
    ext = original_filename.rsplit(".", 1)[-1].lower()
    accepted = EXTENSION_MIMETYPES.get(ext)
    if not accepted:
        return False

    detected = _guess_mimetype_by_magic(file_path)
    if detected:
        return detected in accepted

    guessed_type = mimetypes.guess_type(original_filename)[0]
    return bool(guessed_type) and guessed_type in accepted


def save_uploaded_file(file, owner_tag, allowed_extensions=None, subfolder=None):
    """Validate and store an upload under UPLOAD_FOLDER.

    Returns (metadata, None) on success or (None, error message).
    """
    if not file or not file.filename:
        return None, "No file provided."

    original_filename = secure_filename(file.filename)
    if not allowed_file(original_filename, allowed_extensions):
        return None, "Unsupported file type."

    file.stream.seek(0, os.SEEK_END)
    file_size = file.stream.tell()
    file.stream.seek(0)

    if file_size == 0:
        return None, "File is empty. Please upload a valid file."
    if file_size > DEFAULT_MAX_FILE_SIZE:
        return None, f"File exceeds the {int(DEFAULT_MAX_FILE_SIZE / (1024 * 1024))}MB size limit."

    file_ext = original_filename.rsplit(".", 1)[1].lower()
    unique_filename = f"{owner_tag}_{uuid.uuid4().hex}.{file_ext}"

    upload_folder = current_app.config.get("UPLOAD_FOLDER") or os.path.join(current_app.instance_path, "uploads")
    if subfolder:
        upload_folder = os.path.join(upload_folder, subfolder)
    os.makedirs(upload_folder, exist_ok=True)

    file_path = os.path.join(upload_folder, unique_filename)
    try:
        file.save(file_path)
    except OSError as e:
        return None, f"Failed to save file: {str(e)}"

    try:
        os.chmod(file_path, stat.S_IRUSR | stat.S_IWUSR)
    except OSError:
        # Not supported on every platform
        pass

    if not validate_file_mimetype(file_path, original_filename):
        try:
            os.remove(file_path)
        except OSError:
            pass
        return None, "File type validation failed. The file does not match its extension."

    mimetype = file.mimetype or mimetypes.guess_type(original_filename)[0] or "application/octet-stream"
    return (
        {
            "original_filename": original_filename,
            "stored_filename": unique_filename,
            "storage_path": file_path,
            "file_size": file_size,
            "mime_type": mimetype,
        },
        None,
    )
