from __future__ import annotations

import pytest
from flask import Flask

from app.domain.exceptions import GenerationTimeoutError, RepositoryError, ValidationError
from app.utils.http import error_response, safe_route, success_response


@pytest.fixture()
def app_ctx():
    app = Flask(__name__)
    with app.app_context():
        yield


def _raising(exc):
    @safe_route("Failed to do the thing")
    def handler():
        raise exc

    return handler


def test_success_envelope(app_ctx):
    response = success_response({"a": 1}, message="done")

    assert response.status_code == 200
    assert response.get_json() == {"ok": True, "data": {"a": 1}, "error": None, "message": "done"}


def test_error_details_are_merged_and_repeated(app_ctx):
    body = error_response("Bad action", 400, details={"validActions": ["cleanup"]}).get_json()

    assert body["ok"] is False
    assert body["data"] is None
    assert body["error"]["message"] == "Bad action"
    assert body["error"]["validActions"] == ["cleanup"]
    assert body["details"] == {"validActions": ["cleanup"]}
    assert "timestamp" in body["error"]


def test_safe_route_echoes_client_errors(app_ctx):
    response = _raising(ValidationError("rodId is required"))()

    assert response.status_code == 400
    assert response.get_json()["error"]["message"] == "rodId is required"


@pytest.mark.parametrize(
    "exc, status, message",
    [
        (RepositoryError("sqlite: disk I/O error at /var/lib/farmrod.db"), 500, "An internal error occurred"),
        (GenerationTimeoutError("backend exceeded 10s"), 504, "Advisory backend timed out"),
        (KeyError("secret"), 500, "An internal error occurred"),
    ],
)
def test_safe_route_hides_server_errors(app_ctx, exc, status, message):
    response = _raising(exc)()

    assert response.status_code == status
    assert response.get_json()["error"]["message"] == message
