# main.py

"""realtime_search launcher: serves the HTTP API or runs one CLI action."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging
from src.config.settings import Settings

logger = logging.getLogger("realtime_search.main")


def build_parser() -> argparse.ArgumentParser:
    source_ids = [s["id"] for s in Settings.AVAILABLE_SOURCES]
    parser = argparse.ArgumentParser(
        prog="realtime_search",
        description=(
            "Live product search across Amazon and SHEIN through a "
            "rendering proxy. Without a query the HTTP API is served."
        ),
        epilog=f"Sources: {', '.join(source_ids)}",
    )
    parser.add_argument("query", nargs="?", help="Search term.")

    output = parser.add_argument_group("search output")
    output.add_argument(
        "-s",
        "--sources",
        metavar="IDS",
        help="Only query these comma-separated source IDs.",
    )
    output.add_argument(
        "-f",
        "--format",
        dest="output_format",
        choices=("json", "table"),
        default="json",
        help="Print results as JSON (default) or a table.",
    )

    diagnostics = parser.add_argument_group("diagnostics")
    diagnostics.add_argument(
        "--probe",
        metavar="SOURCE",
        choices=source_ids,
        help="Fetch QUERY from one source and print extraction stats.",
    )
    diagnostics.add_argument(
        "--health",
        action="store_true",
        help="Report whether proxy endpoint and credential are configured.",
    )

    server = parser.add_argument_group("server")
    server.add_argument("--host", default="127.0.0.1")
    server.add_argument("--port", type=int, default=8000)
    return parser


def serve(host: str, port: int) -> None:
    """Run the API under uvicorn until interrupted."""
    import uvicorn

    logger.info("Serving API on %s:%d", host, port)
    try:
        uvicorn.run(
            "src.api.app:create_app",
            factory=True,
            host=host,
            port=port,
            log_config=None,
        )
    except Exception:
        logger.critical("API server crashed", exc_info=True)
        raise
    finally:
        logger.info("API server stopped")


def run_command(
    args: argparse.Namespace, parser: argparse.ArgumentParser,
) -> int:
    """Run the single CLI action selected by *args*; return its exit code."""
    from src.cli import runner

    if args.health:
        return runner.run_health_check()
    if args.probe:
        if not args.query:
            parser.error("--probe needs a QUERY")
        return asyncio.run(runner.run_probe(args.probe, args.query))
    return asyncio.run(
        runner.cli_search(args.query, args.sources, args.output_format)
    )


def main() -> None:
    log_file = setup_logging()
    logger.info("realtime_search starting, log file: %s", log_file)

    parser = build_parser()
    args = parser.parse_args()

    if args.query is None and not (args.health or args.probe):
        serve(args.host, args.port)
        return
    sys.exit(run_command(args, parser))


if __name__ == "__main__":
    main()
