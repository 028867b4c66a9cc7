"""Command-line interface for sessionlens.

Runs the HTTP server, or drives the engine directly against JSON
request files and screenshots for local experimentation.
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import json
import logging
import sys
from pathlib import Path

from pydantic import BaseModel

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="sessionlens",
        description="Session-state reconciliation for screenshot research sessions",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/sessionlens.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("serve", help="Start the HTTP API server")

    regenerate_parser = subparsers.add_parser(
        "regenerate", help="Regenerate session state from a JSON request file",
    )
    regenerate_parser.add_argument("request", type=Path, help="Regenerate request JSON")

    chat_parser = subparsers.add_parser(
        "chat", help="Send one chat message from a JSON request file",
    )
    chat_parser.add_argument("request", type=Path, help="Chat request JSON")

    analyze_parser = subparsers.add_parser("analyze", help="Analyze a screenshot file")
    analyze_parser.add_argument("image", type=Path, help="PNG/JPEG/WebP screenshot")

    return parser.parse_args(argv)


def _print_model(model: BaseModel) -> None:
    print(model.model_dump_json(by_alias=True, indent=2))


async def _regenerate(settings, path: Path) -> None:
    from sessionlens.domain.models import RegenerateRequest
    from sessionlens.engine import build_engine

    request = RegenerateRequest.model_validate(json.loads(path.read_text()))
    engine = build_engine(settings)
    try:
        _print_model(await engine.regenerate(request))
    finally:
        await engine.aclose()


async def _chat(settings, path: Path) -> None:
    from sessionlens.domain.models import ChatRequest
    from sessionlens.engine import build_engine

    request = ChatRequest.model_validate(json.loads(path.read_text()))
    engine = build_engine(settings)
    try:
        _print_model(await engine.chat(request))
    finally:
        await engine.aclose()


async def _analyze(settings, path: Path) -> None:
    from sessionlens.engine import build_engine
    from sessionlens.utils.imaging import decode_image_data

    payload = decode_image_data(base64.b64encode(path.read_bytes()).decode("ascii"))
    engine = build_engine(settings)
    try:
        _print_model(await engine.analyze(payload))
    finally:
        await engine.aclose()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the sessionlens CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from sessionlens.config.settings import load_settings
    from sessionlens.errors import SessionLensError
    from sessionlens.utils.logging import setup_logging

    settings = load_settings(args.config)
    setup_logging(settings.logging, verbose=args.verbose)

    try:
        if args.command == "serve":
            import uvicorn

            from sessionlens.api.server import create_app

            logger.info("Starting API server on %s:%d", settings.server.host, settings.server.port)
            uvicorn.run(create_app(settings), host=settings.server.host, port=settings.server.port)

        elif args.command == "regenerate":
            asyncio.run(_regenerate(settings, args.request))

        elif args.command == "chat":
            asyncio.run(_chat(settings, args.request))

        elif args.command == "analyze":
            asyncio.run(_analyze(settings, args.image))

    except (OSError, ValueError, SessionLensError) as e:
        logger.error("%s failed: %s", args.command, e)
        sys.exit(1)


if __name__ == "__main__":
    main()
