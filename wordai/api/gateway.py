"""Action-dispatched JSON endpoint over the word table and metadata log."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError as SchemaError
from starlette.concurrency import run_in_threadpool

from wordai.api.deps import get_app_settings, get_heuristic
from wordai.config import Settings
from wordai.database import ConnectionParams
from wordai.errors import ValidationError
from wordai.schemas.gateway import BatchParams
from wordai.schemas.model_metadata import ModelInfo, PredictionRecord
from wordai.services.gateway_service import Result, WordTableGateway, error, success
from wordai.services.heuristic_service import HeuristicBaseline

logger = structlog.get_logger(__name__)

router = APIRouter()

# Fields that form posts may carry as JSON-encoded strings.
_NESTED_FIELDS = ("model", "prediction")


async def read_payload(request: Request) -> dict[str, Any]:
    """Decode the body as JSON, falling back to form fields when it does not parse."""
    body = await request.body()
    try:
        data = json.loads(body) if body else None
    except (UnicodeDecodeError, json.JSONDecodeError):
        data = None
    if isinstance(data, dict):
        return data

    form = await request.form()
    payload: dict[str, Any] = dict(form)
    for name in _NESTED_FIELDS:
        value = payload.get(name)
        if isinstance(value, str):
            try:
                payload[name] = json.loads(value)
            except json.JSONDecodeError:
                payload[name] = None
    return payload


def _get_batch(gateway: WordTableGateway, payload: dict[str, Any], heuristic: HeuristicBaseline) -> Result:
    try:
        window = BatchParams(offset=payload.get("offset", 0), limit=payload.get("limit", 100))
    except SchemaError as exc:
        raise ValidationError(f"Invalid pagination parameters: {exc.errors()[0]['msg']}") from exc
    return gateway.get_batch(window.offset, window.limit)


def _save_model(gateway: WordTableGateway, payload: dict[str, Any], heuristic: HeuristicBaseline) -> Result:
    model = payload.get("model")
    if not model:
        raise ValidationError("No model information provided")
    try:
        info = ModelInfo.model_validate(model)
    except SchemaError as exc:
        raise ValidationError(f"Invalid model information: {exc.errors()[0]['msg']}") from exc
    return gateway.save_model_metadata(info)


def _log_prediction(gateway: WordTableGateway, payload: dict[str, Any], heuristic: HeuristicBaseline) -> Result:
    prediction = payload.get("prediction")
    if not prediction:
        raise ValidationError("No prediction information provided")
    try:
        record = PredictionRecord.model_validate(prediction)
    except SchemaError as exc:
        raise ValidationError(f"Invalid prediction information: {exc.errors()[0]['msg']}") from exc
    return gateway.log_prediction(record.text, record.predicted_class, record.confidence, record.user_id)


def _predict(gateway: WordTableGateway, payload: dict[str, Any], heuristic: HeuristicBaseline) -> Result:
    text = payload.get("text")
    if not text:
        raise ValidationError("No text provided for prediction")
    prediction = heuristic.predict(str(text))

    logged = gateway.log_prediction(prediction.text, prediction.predicted_category, prediction.confidence)
    if logged.get("status") != "success":
        logger.warning("prediction_log_skipped", error=logged.get("message"))
    return success(**prediction.as_payload())


ActionHandler = Callable[[WordTableGateway, dict[str, Any], HeuristicBaseline], Result]

ACTIONS: dict[str, ActionHandler] = {
    "get_schema": lambda gateway, payload, heuristic: gateway.get_schema(),
    "get_count": lambda gateway, payload, heuristic: gateway.get_count(),
    "get_batch": _get_batch,
    "save_model": _save_model,
    "get_model_metadata": lambda gateway, payload, heuristic: gateway.get_latest_model_metadata(),
    "get_word_table_stats": lambda gateway, payload, heuristic: gateway.get_word_table_stats(),
    "log_prediction": _log_prediction,
    "predict": _predict,
}


def dispatch(payload: dict[str, Any], settings: Settings, heuristic: HeuristicBaseline) -> Result:
    """Route one decoded request to its gateway operation."""
    action = str(payload.get("action") or "")
    handler = ACTIONS.get(action)
    if handler is None:
        return error("Unknown action")
    gateway = WordTableGateway(ConnectionParams.from_payload(payload, settings), settings)
    logger.debug("gateway_action", action=action)
    try:
        return handler(gateway, payload, heuristic)
    except ValidationError as exc:
        logger.info("gateway_request_invalid", action=action, error=str(exc))
        return error(str(exc))


@router.api_route("", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def gateway_endpoint(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    heuristic: HeuristicBaseline = Depends(get_heuristic),
) -> JSONResponse:
    """Single POST endpoint; every outcome is a tagged JSON result."""
    if request.method != "POST":
        return JSONResponse(error("This endpoint requires a POST request"))

    payload = await read_payload(request)
    try:
        result = await run_in_threadpool(dispatch, payload, settings, heuristic)
    except Exception as exc:  # noqa: BLE001
        logger.exception("gateway_request_failed", action=payload.get("action"))
        result = error(str(exc))
    return JSONResponse(jsonable_encoder(result))
