"""Action-dispatched endpoint tests through the FastAPI app."""

from __future__ import annotations

from fastapi.testclient import TestClient

import wordai.api.gateway as gateway_api
from wordai.main import app

API = "/api"


def _post(client: TestClient, payload: dict) -> dict:
    response = client.post(API, json=payload)
    assert response.status_code == 200
    return response.json()


def test_healthcheck() -> None:
    """Health endpoint should return an ok status."""
    with TestClient(app) as client:
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


def test_schema_count_and_batch_actions() -> None:
    with TestClient(app) as client:
        schema = _post(client, {"action": "get_schema"})
        count = _post(client, {"action": "get_count"})
        batch = _post(client, {"action": "get_batch", "offset": 2, "limit": 2})

    assert [column["Field"] for column in schema["schema"]] == ["id", "text", "category"]
    assert count == {"status": "success", "count": 3}
    assert batch["count"] == 1
    assert batch["data"][0]["text"] == "buy bread"


def test_batch_defaults_to_first_hundred_rows() -> None:
    with TestClient(app) as client:
        batch = _post(client, {"action": "get_batch"})

    assert batch["offset"] == 0
    assert batch["limit"] == 100
    assert batch["count"] == 3


def test_invalid_pagination_is_an_error_result() -> None:
    with TestClient(app) as client:
        result = _post(client, {"action": "get_batch", "offset": -1})

    assert result["status"] == "error"
    assert result["message"].startswith("Invalid pagination parameters")


def test_unknown_action() -> None:
    with TestClient(app) as client:
        assert _post(client, {"action": "drop_everything"}) == {"status": "error", "message": "Unknown action"}


def test_non_post_request_is_rejected_without_touching_database(monkeypatch) -> None:
    def fail_dispatch(*args, **kwargs):
        raise AssertionError("dispatch must not run for non-POST requests")

    monkeypatch.setattr(gateway_api, "dispatch", fail_dispatch)
    with TestClient(app) as client:
        response = client.get(API)

    assert response.json() == {"status": "error", "message": "This endpoint requires a POST request"}


def test_missing_fields_yield_error_messages() -> None:
    with TestClient(app) as client:
        model = _post(client, {"action": "save_model"})
        prediction = _post(client, {"action": "log_prediction"})
        text = _post(client, {"action": "predict"})

    assert model["message"] == "No model information provided"
    assert prediction["message"] == "No prediction information provided"
    assert text["message"] == "No text provided for prediction"


def test_save_model_then_read_latest_metadata() -> None:
    model = {
        "name": "word-ai-model",
        "accuracy": 0.75,
        "parameters": {"featureColumns": ["text"], "labelColumn": "category", "numClasses": 2},
        "path": "artifact://word-ai-model",
    }
    with TestClient(app) as client:
        saved = _post(client, {"action": "save_model", "model": model})
        latest = _post(client, {"action": "get_model_metadata"})

    assert saved["status"] == "success"
    assert latest["metadata"]["id"] == saved["id"]
    assert latest["metadata"]["parameters"]["labelColumn"] == "category"
    assert isinstance(latest["metadata"]["creation_date"], str)


def test_stats_and_log_prediction_actions() -> None:
    prediction = {"text": "buy milk", "class": "shopping", "confidence": 0.9, "userId": "42"}
    with TestClient(app) as client:
        stats = _post(client, {"action": "get_word_table_stats"})
        logged = _post(client, {"action": "log_prediction", "prediction": prediction})

    assert stats["totalRecords"] == 3
    assert logged["status"] == "success"


def test_predict_action_runs_keyword_baseline() -> None:
    with TestClient(app) as client:
        result = _post(client, {"action": "predict", "text": "Bake a delicious recipe"})

    assert result["status"] == "success"
    assert result["predictedCategory"] == "cooking"
    assert 0.5 <= result["confidence"] <= 0.95


def test_form_body_is_accepted_when_json_does_not_parse() -> None:
    with TestClient(app) as client:
        response = client.post(API, data={"action": "get_count"})

    assert response.json() == {"status": "success", "count": 3}


def test_oversized_body_is_rejected() -> None:
    with TestClient(app) as client:
        response = client.post(
            API,
            content=b"x" * (1024 * 1024 + 1),
            headers={"Content-Type": "application/json"},
        )

    assert response.status_code == 413
