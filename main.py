"""Command-line entry point: corpus ingestion, webhook server and playground."""

from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import uvicorn

from maestro.config import config
from maestro.pipeline import KnowledgePipeline
from maestro.webhook import create_app

if TYPE_CHECKING:
    from collections.abc import Sequence
    from logging import Logger

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_APP = PROJECT_ROOT / "app.py"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        description="Maestro WhatsApp knowledge assistant.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser(
        "ingest", help="Add documents to the knowledge index."
    )
    ingest.add_argument(
        "paths", type=Path, nargs="+", help="PDF or TXT documents to ingest."
    )

    serve = subparsers.add_parser("serve", help="Run the WhatsApp webhook server.")
    serve.add_argument(
        "--host",
        default="127.0.0.1",
        help="Bind address for the webhook server (default: 127.0.0.1).",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the webhook server (default: 8000).",
    )

    playground = subparsers.add_parser(
        "playground", help="Launch the Streamlit chat playground."
    )
    playground.add_argument(
        "--app",
        type=Path,
        default=DEFAULT_APP,
        help="Path to the Streamlit script (default: app.py).",
    )
    playground.add_argument(
        "--port",
        type=int,
        default=8501,
        help="Port for the Streamlit server (default: 8501).",
    )
    playground.add_argument(
        "--address",
        default="localhost",
        help="Bind address for the Streamlit server (default: localhost).",
    )
    playground.add_argument(
        "--show",
        dest="headless",
        action="store_false",
        help="Open Streamlit in a browser window instead of headless mode.",
    )
    playground.set_defaults(headless=True)
    return parser.parse_args(argv)


def build_streamlit_command(
    script_path: Path,
    *,
    port: int,
    headless: bool,
    address: str,
) -> list[str]:
    """Construct the streamlit CLI invocation."""  # noqa: DOC201
    return [
        sys.executable,
        "-m",
        "streamlit",
        "run",
        str(script_path),
        "--server.port",
        str(port),
        "--server.address",
        address,
        "--server.headless",
        "true" if headless else "false",
    ]


def run_streamlit(command: Sequence[str], logger: Logger) -> int:
    """Execute the configured streamlit command and return its exit code."""  # noqa: DOC201
    try:
        result = subprocess.run(
            command,
            check=False,
            cwd=PROJECT_ROOT,
        )
    except KeyboardInterrupt:
        logger.info("Playground stopped by user")
        return 0
    except OSError:
        logger.exception("Unable to launch Streamlit")
        return 1
    return result.returncode


def run_ingest(paths: Sequence[Path], logger: Logger) -> int:
    """Ingest every document, reporting failures per file.

    Returns:
        0 when every document was ingested, 1 otherwise.
    """
    pipeline = KnowledgePipeline()
    failures = 0
    for path in paths:
        if not path.exists():
            logger.error("Document not found: %s", path)
            failures += 1
            continue
        try:
            added = pipeline.process_document(path)
        except (OSError, ValueError, RuntimeError):
            logger.exception("Failed to ingest %s", path)
            failures += 1
        else:
            logger.info("%s: %d chunks written", path.name, added)
    return 1 if failures else 0


def run_server(host: str, port: int, logger: Logger) -> int:
    """Serve the webhook app with uvicorn until interrupted.

    Returns:
        Process exit code.
    """
    try:
        config.validate_whatsapp()
    except ValueError:
        logger.exception("Configuration invalid")
        return 1

    logger.info("Starting webhook server at http://%s:%s", host, port)
    uvicorn.run(create_app(), host=host, port=port, log_level="info")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Validate configuration and dispatch the requested command."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    try:
        config.validate()
    except ValueError:
        logger.exception("Configuration invalid")
        return 1

    if args.command == "ingest":
        return run_ingest(args.paths, logger)
    if args.command == "serve":
        return run_server(args.host, args.port, logger)

    script_path = (
        args.app if args.app.is_absolute() else (PROJECT_ROOT / args.app)
    ).resolve()
    if not script_path.exists():
        logger.error("Streamlit script not found: %s", script_path)
        return 1

    logger.info(
        "Starting playground at http://%s:%s (headless=%s)",
        args.address,
        args.port,
        args.headless,
    )

    command = build_streamlit_command(
        script_path,
        port=args.port,
        headless=args.headless,
        address=args.address,
    )

    return_code = run_streamlit(command, logger)
    if return_code != 0:
        logger.error("Streamlit exited with status %s", return_code)
    return return_code


if __name__ == "__main__":
    sys.exit(main())
