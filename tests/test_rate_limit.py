from flask import Flask

from utils.rate_limit import is_rate_limited, rate_limit, record_attempt, reset


def test_attempts_are_limited_per_key():
    for _ in range(3):
        assert not is_rate_limited("login:1.2.3.4", 3, 60)
        record_attempt("login:1.2.3.4")
    assert is_rate_limited("login:1.2.3.4", 3, 60)
    assert not is_rate_limited("login:5.6.7.8", 3, 60)

    reset("login:1.2.3.4")
    assert not is_rate_limited("login:1.2.3.4", 3, 60)


def test_zero_window_forgets_attempts():
    record_attempt("k")
    assert not is_rate_limited("k", 1, 0)


def test_decorator_returns_429():
    app = Flask(__name__)

    @app.route("/ping")
    @rate_limit(max_requests=2, window_seconds=60)
    def ping():
        return "pong"

    client = app.test_client()
    assert client.get("/ping").status_code == 200
    assert client.get("/ping").status_code == 200
    response = client.get("/ping")
    assert response.status_code == 429
    assert response.get_json()["success"] is False
