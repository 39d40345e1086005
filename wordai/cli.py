"""Command line entry points: serve the API, train, predict and run the keyword baseline."""

from __future__ import annotations

import argparse
import asyncio
import json

import structlog

from wordai.config import Settings, get_settings
from wordai.database import ConnectionParams
from wordai.errors import WordAIError
from wordai.ml.gateway_client import GatewayClient, HttpGatewayClient, LocalGatewayClient
from wordai.services.gateway_service import WordTableGateway
from wordai.services.heuristic_service import HeuristicBaseline
from wordai.session import SessionEvent, WordAISession

logger = structlog.get_logger(__name__)

QUIT_COMMANDS = {"quit", "exit"}


def build_client(settings: Settings, local: bool) -> GatewayClient:
    """In-process gateway with --local, otherwise the HTTP endpoint at GATEWAY_URL."""
    if local:
        return LocalGatewayClient(WordTableGateway(settings=settings))
    return HttpGatewayClient(
        settings.gateway_url,
        ConnectionParams.from_settings(settings),
        timeout_seconds=settings.gateway_timeout_seconds,
    )


def print_event(event: SessionEvent) -> None:
    if event.kind == "progress":
        print(f"[progress] {event.progress}%")
    elif event.kind == "log":
        print(event.message)
    else:
        print(f"[{event.kind}] {event.message}")


async def _train(settings: Settings, local: bool, name: str | None) -> int:
    client = build_client(settings, local)
    session = WordAISession(client, settings=settings, listener=print_event)
    try:
        await session.init()
        await session.train()
        session.evaluate()
        report = await session.save(name)
    except WordAIError as exc:
        print(f"[train] {exc}")
        return 1
    finally:
        await client.close()

    print(f"[train] saved {report.artifact_path}")
    if not report.metadata_saved:
        print(f"[train] metadata not recorded: {report.metadata_error}")
    return 0


async def _print_model_metadata(client: GatewayClient) -> None:
    try:
        result = await client.get_model_metadata()
    finally:
        await client.close()
    if result.get("status") != "success":
        print(f"[predict] no model metadata: {result.get('message')}")
        return
    metadata = result["metadata"]
    print(f"Model: {metadata.get('model_name')}")
    print(f"Accuracy: {metadata.get('accuracy')}")
    print(f"Created: {metadata.get('creation_date')}")


def _predict(settings: Settings, local: bool, text: str | None) -> int:
    client = build_client(settings, local)
    session = WordAISession(client, settings=settings)
    try:
        session.load()
    except WordAIError as exc:
        print(f"[predict] {exc}")
        return 1
    asyncio.run(_print_model_metadata(client))

    if text is not None:
        print(json.dumps(session.predict(text).as_dict()))
        return 0

    print("Enter text to predict (or 'quit' to exit):")
    while True:
        try:
            line = input("> ").strip()
        except EOFError:
            break
        if line.lower() in QUIT_COMMANDS:
            break
        if not line:
            continue
        prediction = session.predict(line)
        print(f"Predicted category: {prediction.predicted_class}")
        print(f"Probability: {prediction.probability:.4f}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="wordai", description="Word table text classifier.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the JSON gateway API.")
    serve.add_argument("--host", type=str, default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)

    train = subparsers.add_parser("train", help="Load the corpus, train, evaluate and save the model.")
    train.add_argument("--epochs", type=int, default=None, help="Override EPOCHS.")
    train.add_argument("--batch-size", type=int, default=None, help="Override BATCH_SIZE.")
    train.add_argument("--name", type=str, default=None, help="Model name recorded in the metadata log.")
    train.add_argument("--local", action="store_true", help="Query the database in process instead of over HTTP.")

    predict = subparsers.add_parser("predict", help="Classify text with the saved model.")
    predict.add_argument("--text", type=str, default=None, help="Classify once; omit for an interactive loop.")
    predict.add_argument("--local", action="store_true", help="Query the database in process instead of over HTTP.")

    heuristic = subparsers.add_parser("heuristic", help="Run the keyword baseline on one text.")
    heuristic.add_argument("text", type=str)

    args = parser.parse_args(argv)
    settings = get_settings()
    logger.info("cli_command", command=args.command)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("wordai.main:app", host=args.host, port=args.port)
        return 0

    if args.command == "train":
        overrides = {}
        if args.epochs is not None:
            overrides["epochs"] = args.epochs
        if args.batch_size is not None:
            overrides["batch_size"] = args.batch_size
        return asyncio.run(_train(settings.model_copy(update=overrides), args.local, args.name))

    if args.command == "predict":
        return _predict(settings, args.local, args.text)

    prediction = HeuristicBaseline().predict(args.text)
    print(json.dumps(prediction.as_payload()))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
