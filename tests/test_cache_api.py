from __future__ import annotations

import pytest

from app import create_app
from app.domain.exceptions import ConfigurationError

READING = {
    "id": "rd-100",
    "timestamp": "2026-05-01T08:00:00Z",
    "temperature": 22.5,
    "moisture": 15,
    "ph": 6.4,
    "conductivity": 1.1,
    "nitrogen": 40,
    "phosphorus": 2,
    "potassium": 120,
}


@pytest.fixture()
def app(tmp_path):
    database_path = tmp_path / "test.db"
    app = create_app(
        {
            "database_path": str(database_path),
            "log_dir": None,
            "llm_provider": "none",
            "cache_auto_cleanup": False,
        }
    )
    app.config["TESTING"] = True
    yield app
    app.config["CONTAINER"].shutdown()


@pytest.fixture()
def client(app):
    return app.test_client()


def _suggest(client, reading=None, rod_id="rod-7", **extra):
    body = {"reading": reading or READING, "rodId": rod_id, **extra}
    return client.post("/api/ai-suggestions", json=body)


# ========================== Suggestions ====================================


def test_suggestion_miss_then_hit(client):
    first = _suggest(client, plantType="Tomato")
    assert first.status_code == 200
    payload = first.get_json()
    assert payload["ok"] is True
    data = payload["data"]
    assert data["cached"] is False
    assert data["model"] == "rule_based"
    assert data["plantType"] == "Tomato"
    assert data["rodId"] == "rod-7"
    assert data["suggestions"]["watering"] == {
        "recommendation": "now",
        "hoursUntilNext": 0,
        "reason": "Soil moisture critically low",
        "urgency": "high",
    }
    assert data["suggestions"]["fertilizing"]["type"] == "phosphorus"
    assert data["suggestions"]["fertilizing"]["urgency"] == "critical"

    second = _suggest(client, plantType="Tomato").get_json()["data"]
    assert second["cached"] is True
    assert second["suggestions"] == data["suggestions"]


def test_suggestion_defaults_plant_type(client):
    data = _suggest(client).get_json()["data"]

    assert data["plantType"] == "Unknown"


def test_suggestion_requires_rod_id(client):
    response = client.post("/api/ai-suggestions", json={"reading": READING})

    assert response.status_code == 400
    body = response.get_json()
    assert body["ok"] is False
    assert body["details"]["errors"][0]["loc"] == ["rodId"]


def test_suggestion_rejects_reading_without_id(client):
    reading = {k: v for k, v in READING.items() if k != "id"}

    response = _suggest(client, reading=reading)

    assert response.status_code == 400
    assert "Reading id is required" in response.get_json()["error"]["message"]


# ========================== Cleanup ========================================


def test_cleanup_status_and_stats(client):
    _suggest(client)

    data = client.get("/api/cache-cleanup").get_json()["data"]

    assert data["status"]["isAutoCleanupRunning"] is False
    assert data["status"]["config"]["maxSuggestionsPerRod"] == 50
    assert data["stats"]["totalSuggestions"] == 1
    assert data["stats"]["suggestionsByRod"] == [{"rodId": "rod-7", "count": 1}]


def test_cleanup_actions(client):
    response = client.post("/api/cache-cleanup", json={"action": "cleanup"})
    assert response.status_code == 200
    assert response.get_json()["data"]["stats"]["totalDeleted"] == 0

    response = client.post("/api/cache-cleanup", json={"action": "configure", "config": {"suggestionTtlHours": 48}})
    assert response.get_json()["data"]["config"]["suggestionTtlHours"] == 48

    response = client.post("/api/cache-cleanup", json={"action": "start-auto"})
    assert response.get_json()["data"]["status"]["isAutoCleanupRunning"] is True

    response = client.post("/api/cache-cleanup", json={"action": "stop-auto"})
    assert response.get_json()["data"]["status"]["isAutoCleanupRunning"] is False


def test_cleanup_rod_action(client):
    for i in range(3):
        _suggest(client, reading={**READING, "id": f"rd-{i}"})

    response = client.post("/api/cache-cleanup", json={"action": "cleanup-rod", "rodId": "rod-7", "keepCount": 1})

    assert response.get_json()["data"] == {"rodId": "rod-7", "deletedCount": 2}


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"action": "explode"},
        {"action": "configure"},
        {"action": "configure", "config": {"cleanupIntervalHours": 0}},
        {"action": "cleanup-rod"},
    ],
)
def test_cleanup_rejects_bad_requests(client, body):
    response = client.post("/api/cache-cleanup", json=body)

    assert response.status_code == 400
    assert response.get_json()["ok"] is False


def test_unknown_action_lists_valid_actions(client):
    body = client.post("/api/cache-cleanup", json={"action": "explode"}).get_json()

    assert "cleanup-rod" in body["details"]["validActions"]


def test_clear_all_requires_confirmation(client):
    _suggest(client)

    assert client.delete("/api/cache-cleanup", json={}).status_code == 400

    response = client.delete("/api/cache-cleanup", json={"confirm": "DELETE_ALL_CACHE"})
    assert response.status_code == 200
    assert response.get_json()["data"]["stats"]["totalDeleted"] == 1

    status = client.get("/api/cache-cleanup").get_json()["data"]
    assert status["stats"]["totalSuggestions"] == 0
    assert status["status"]["config"]["suggestionTtlHours"] == 24.0


# ========================== Metrics ========================================


def test_metrics_json_and_reset(client):
    _suggest(client)
    _suggest(client)

    data = client.get("/api/cache-metrics").get_json()["data"]
    assert data["metrics"]["totalRequests"] == 2
    assert data["metrics"]["hitRate"] == 0.5
    assert [e["type"] for e in data["recentEvents"]] == ["cache_hit", "cache_miss"]

    rod = client.get("/api/cache-metrics/rods/rod-7").get_json()["data"]
    assert rod == {"rodId": "rod-7", "hits": 1, "misses": 1, "hitRate": 0.5}

    assert client.delete("/api/cache-metrics").status_code == 200
    data = client.get("/api/cache-metrics").get_json()["data"]
    assert data["metrics"]["totalRequests"] == 0
    assert data["recentEvents"] == []


def test_metrics_report_is_plain_text(client):
    response = client.get("/api/cache-metrics?format=report")

    assert response.status_code == 200
    assert response.mimetype == "text/plain"
    assert "AI Suggestions Cache Performance Report" in response.get_data(as_text=True)


def test_metrics_rejects_unknown_format(client):
    assert client.get("/api/cache-metrics?format=xml").status_code == 400


def test_unknown_api_route_returns_json_404(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.get_json()["ok"] is False


def test_wrong_method_returns_json_405(client):
    response = client.put("/api/cache-metrics")

    assert response.status_code == 405
    assert response.get_json()["ok"] is False


def test_unknown_config_override_is_rejected(tmp_path):
    with pytest.raises(ConfigurationError, match="cache_size"):
        create_app({"database_path": str(tmp_path / "x.db"), "log_dir": None, "cache_size": 10})


def test_config_overrides_are_validated(tmp_path):
    with pytest.raises(ValueError, match="SUGGESTION_FRESHNESS_MINUTES"):
        create_app({"database_path": str(tmp_path / "x.db"), "log_dir": None, "SUGGESTION_FRESHNESS_MINUTES": 0})
