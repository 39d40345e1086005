"""End-to-end session tests: init, train, evaluate, save, load and predict."""

from __future__ import annotations

import pytest
import torch

from wordai.config import get_settings
from wordai.errors import ConfigurationError, ModelNotTrainedError
from wordai.ml.gateway_client import LocalGatewayClient
from wordai.services.gateway_service import WordTableGateway
from wordai.session import SessionEvent, WordAISession


class _MetadataDownClient(LocalGatewayClient):
    """Serves the corpus but fails every metadata write."""

    async def save_model(self, model: dict) -> dict:
        return {"status": "error", "message": "Connection failed: metadata store offline"}


class _MetadataCrashClient(LocalGatewayClient):
    """Serves the corpus but raises an unexpected exception on metadata writes."""

    async def save_model(self, model: dict) -> dict:
        raise RuntimeError("metadata writer crashed")


def _session(client=None, events: list[SessionEvent] | None = None) -> WordAISession:
    listener = events.append if events is not None else None
    return WordAISession(client or LocalGatewayClient(), settings=get_settings(), listener=listener)


@pytest.mark.asyncio
async def test_init_selects_columns_and_enables_training() -> None:
    events: list[SessionEvent] = []
    session = _session(events=events)

    await session.init()

    assert session.feature_columns == ["text"]
    assert session.label_column == "category"
    assert session.inverse_label_map == {0: "shopping", 1: "work"}
    assert session.model is not None and session.model.num_classes == 2
    assert session.state.train_enabled is True
    assert any(event.kind == "progress" and event.progress == 100 for event in events)
    assert events[-1].message.startswith("Ready to train")


@pytest.mark.asyncio
async def test_predict_before_training_raises_not_trained() -> None:
    session = _session()
    with pytest.raises(ModelNotTrainedError):
        session.predict("buy milk")

    await session.init()
    with pytest.raises(ModelNotTrainedError):
        session.predict("buy milk")
    with pytest.raises(ModelNotTrainedError):
        session.evaluate()


@pytest.mark.asyncio
async def test_train_before_init_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        await _session().train()


@pytest.mark.asyncio
async def test_train_publishes_epoch_lines_and_enables_prediction() -> None:
    events: list[SessionEvent] = []
    session = _session(events=events)
    await session.init()

    history = await session.train()
    prediction = session.predict("buy milk")

    assert len(history) == session.config.num_epochs
    assert any(event.message.startswith("Epoch 1/") for event in events if event.kind == "log")
    assert prediction.predicted_class in {"shopping", "work"}
    assert sum(prediction.probabilities) == pytest.approx(1.0, abs=1e-5)
    assert session.evaluate().accuracy >= 0.0


@pytest.mark.asyncio
async def test_failed_training_restores_train_action(monkeypatch) -> None:
    events: list[SessionEvent] = []
    session = _session(events=events)
    await session.init()

    def explode(*args, **kwargs):
        raise RuntimeError("out of memory")

    monkeypatch.setattr(session.trainer, "train_epoch", explode)
    with pytest.raises(RuntimeError):
        await session.train()

    assert session.state.train_enabled is True
    assert session.state.is_trained is False
    assert events[-1].kind == "error"
    assert "out of memory" in events[-1].message


@pytest.mark.asyncio
async def test_request_stop_ends_training_early() -> None:
    session = _session()
    await session.init()
    session.trainer.progress_callback = lambda metrics: session.request_stop()

    history = await session.train()

    assert len(history) == 1


@pytest.mark.asyncio
async def test_save_writes_artifact_and_metadata_record() -> None:
    session = _session()
    await session.init()
    await session.train()

    report = await session.save()
    latest = WordTableGateway().get_latest_model_metadata()

    assert report.artifact_path == "artifact://word-ai-model"
    assert report.metadata_saved is True
    assert latest["metadata"]["id"] == report.metadata_id
    assert latest["metadata"]["model_path"] == "artifact://word-ai-model"
    assert latest["metadata"]["parameters"] == {
        "featureColumns": ["text"],
        "labelColumn": "category",
        "numClasses": 2,
        "epochs": session.config.num_epochs,
        "batchSize": session.config.batch_size,
    }


@pytest.mark.asyncio
async def test_metadata_failure_is_only_a_warning() -> None:
    events: list[SessionEvent] = []
    session = _session(client=_MetadataDownClient(), events=events)
    await session.init()
    await session.train()

    report = await session.save()

    assert report.metadata_saved is False
    assert "metadata store offline" in report.metadata_error
    assert session.artifact_store.exists(report.artifact_key)
    assert any(event.kind == "warning" for event in events)
    assert not any(event.kind == "error" for event in events)


@pytest.mark.asyncio
async def test_saved_model_reproduces_predictions_after_load() -> None:
    session = _session()
    await session.init()
    await session.train()
    before = session.predict("write code")
    await session.save()

    restored = _session()
    restored.load()
    after = restored.predict("write code")

    assert after.predicted_class == before.predicted_class
    assert torch.allclose(torch.tensor(after.probabilities), torch.tensor(before.probabilities))


def test_load_without_saved_model_raises_not_trained() -> None:
    with pytest.raises(ModelNotTrainedError):
        _session().load()


@pytest.mark.asyncio
async def test_unexpected_metadata_exception_is_only_a_warning() -> None:
    events: list[SessionEvent] = []
    session = _session(client=_MetadataCrashClient(), events=events)
    await session.init()
    await session.train()

    report = await session.save(name="x" * 300)

    assert report.metadata_saved is False
    assert report.metadata_error == "metadata writer crashed"
    assert session.artifact_store.exists(report.artifact_key)
    assert any(event.kind == "warning" for event in events)
    assert not any(event.kind == "error" for event in events)


@pytest.mark.asyncio
async def test_overlong_model_name_is_only_a_warning() -> None:
    events: list[SessionEvent] = []
    session = _session(events=events)
    await session.init()
    await session.train()

    report = await session.save(name="x" * 300)

    assert report.metadata_saved is False
    assert report.metadata_error.startswith("Failed to save model metadata")
    assert session.artifact_store.exists(report.artifact_key)
    assert any(event.kind == "warning" for event in events)


@pytest.mark.asyncio
async def test_save_after_load_keeps_label_column_without_evaluating() -> None:
    session = _session()
    await session.init()
    await session.train()
    await session.save()

    events: list[SessionEvent] = []
    restored = _session(events=events)
    restored.load()
    report = await restored.save(name="reloaded")
    latest = WordTableGateway().get_latest_model_metadata()

    assert restored.label_column == "category"
    assert report.metadata_saved is True
    assert report.accuracy is None
    assert latest["metadata"]["model_name"] == "reloaded"
    assert latest["metadata"]["parameters"]["labelColumn"] == "category"
    assert not any(event.kind == "error" for event in events)


@pytest.mark.asyncio
async def test_prediction_failure_is_reported_as_error_status(monkeypatch) -> None:
    events: list[SessionEvent] = []
    session = _session(events=events)
    await session.init()
    await session.train()

    def explode(inputs):
        raise RuntimeError("device lost")

    monkeypatch.setattr(session.trainer, "predict", explode)
    with pytest.raises(RuntimeError):
        session.predict("buy milk")

    assert events[-1].kind == "error"
    assert events[-1].message == "Error during prediction: device lost"
