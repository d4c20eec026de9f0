"""Small in-process rate limiter keyed by client address."""
import logging
from datetime import datetime
from functools import wraps
from threading import Lock

from flask import jsonify, request

log = logging.getLogger(__name__)

_rate_limit_store = {}
_rate_limit_lock = Lock()


def _prune(key, now, window_seconds):
    _rate_limit_store[key] = [
        timestamp for timestamp in _rate_limit_store.get(key, []) if (now - timestamp).total_seconds() < window_seconds
    ]
    return _rate_limit_store[key]


def is_rate_limited(key, max_requests, window_seconds):
    """Return True when `key` already used up its attempts in the window."""
    now = datetime.now()
    with _rate_limit_lock:
        return len(_prune(key, now, window_seconds)) >= max_requests


def record_attempt(key):
    with _rate_limit_lock:
        _rate_limit_store.setdefault(key, []).append(datetime.now())


def reset(key=None):
    with _rate_limit_lock:
        if key is None:
            _rate_limit_store.clear()
        else:
            _rate_limit_store.pop(key, None)


def rate_limit(max_requests=30, window_seconds=60, scope=None):
    """Decorator limiting how often a client may call a view."""

    def decorator(view_func):
        @wraps(view_func)
        def wrapped_view(*args, **kwargs):
            identifier = request.remote_addr or "unknown"
            key = f"{scope or view_func.__name__}:{identifier}"
            if is_rate_limited(key, max_requests, window_seconds):
                log.warning("⚠️ Rate limit exceeded for %s", key)
                return jsonify({"success": False, "error": "Too many requests. Please try again later."}), 429
            record_attempt(key)
            return view_func(*args, **kwargs)

        return wrapped_view

    return decorator
