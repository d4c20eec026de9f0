import os
from datetime import timedelta


class Config:
    # SECRET_KEY should be set via environment variable in production.
    SECRET_KEY = os.environ.get("SECRET_KEY") or os.environ.get("FLASK_SECRET_KEY") or "dev-secret-key-change-me"

    # MySQL configuration (use environment variables in production)
    MYSQL_HOST = os.environ.get("MYSQL_HOST") or "localhost"
    MYSQL_USER = os.environ.get("MYSQL_USER") or "root"
    MYSQL_PASSWORD = os.environ.get("MYSQL_PASSWORD") or ""
    MYSQL_DB = os.environ.get("MYSQL_DB") or "scholar_portal"

    PERMANENT_SESSION_LIFETIME = timedelta(hours=12)
    # Spreadsheets and question papers are stored under the instance directory
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER") or os.path.join(os.getcwd(), "instance", "uploads")
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH") or 20 * 1024 * 1024)
    ALLOWED_EXTENSIONS = set(
        x.strip().lower() for x in os.environ.get("ALLOWED_EXTENSIONS", "xlsx,csv,pdf,doc,docx").split(",")
    )
    SPREADSHEET_EXTENSIONS = {"xlsx", "csv"}

    # Login throttling: attempts allowed per window (seconds) per client address
    LOGIN_RATE_LIMIT = int(os.environ.get("LOGIN_RATE_LIMIT") or 10)
    LOGIN_RATE_WINDOW = int(os.environ.get("LOGIN_RATE_WINDOW") or 900)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
