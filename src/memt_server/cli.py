"""
Command-line interface for the MEMT decode server.

Provides CLI commands for running and exercising the server:
- run: Load the language model and serve decode requests
- send: Send a request file to a running server and print the reply
- check: Validate a request file offline without contacting a server

Usage:
    memt-server run --lm.type=salm --lm.file=corpus.txt --lm.order=3 --port=2000
    memt-server send request.ini --port 2000
    memt-server check request.ini

Environment Variables:
    MEMT_HOST: Host to bind the server to (default: 0.0.0.0)
    MEMT_REQUEST_MAX_BYTES: Reject requests larger than this (default: 0, unbounded)
    MEMT_REQUEST_READ_TIMEOUT: Per-connection read timeout in seconds (default: 0, none)
    MEMT_PIPELINE: Decode pipeline as "module:attribute"
    MEMT_LOG_LEVEL / MEMT_LOG_FORMAT: Logging level and format
"""

import argparse
import dataclasses
import logging
import signal
import sys

from memt_server.errors import ArgumentParseError, ModelLoadError, PipelineLoadError, StartupError
from memt_server.startup import add_startup_arguments, startup_from_namespace

logger = logging.getLogger(__name__)


def _raise_interrupt(signum, frame) -> None:
    """Turn SIGTERM into the same clean shutdown path as Ctrl-C."""
    raise KeyboardInterrupt


def cmd_run(args: argparse.Namespace) -> int:
    """
    Run the decode server.

    Startup happens in a fixed order, and each step is fatal on failure:

        1. Validate --lm.type/--lm.file/--lm.order/--port   (exit 2)
        2. Configure logging from [logging]
        3. Import the decode pipeline from [decode] pipeline (exit 1)
        4. Load the language model                          (exit 1)
        5. Serve connections until interrupted              (exit 0)

    Nothing is loaded and no socket is opened if step 1 fails.

    Returns:
        0 on clean shutdown, 1 on a load failure, 2 on bad startup options
    """
    from memt_server.config import config, config_summary_lines
    from memt_server.decode.pipeline import load_pipeline
    from memt_server.lm.loader import load_model
    from memt_server.logs import configure_logging
    from memt_server.server.supervisor import serve

    try:
        startup = startup_from_namespace(args)
    except StartupError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    settings = config
    if args.host:
        settings = dataclasses.replace(
            config, server=dataclasses.replace(config.server, host=args.host)
        )

    configure_logging(settings.logging)
    for line in config_summary_lines(settings):
        logger.info(line)

    try:
        pipeline = load_pipeline(settings.decode.pipeline)
        model = load_model(startup.lm.type, startup.lm.file, startup.lm.order)
    except (PipelineLoadError, ModelLoadError) as e:
        logger.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        serve(model, pipeline, startup.port, settings)
    except KeyboardInterrupt:
        logger.info("Shutting down.")
    except OSError as e:
        # Bind failures (port in use, permission denied)
        print(f"Error: cannot listen on port {startup.port}: {e}", file=sys.stderr)
        return 1
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    """
    Send a request file to a running server and print the reply.

    Returns:
        0 if the server answered "Done", 1 otherwise
    """
    from memt_server.server.client import send_request
    from memt_server.server.supervisor import SUCCESS_MARKER

    try:
        with open(args.request_file, "rb") as f:
            body = f.read()
    except OSError as e:
        print(f"Error reading {args.request_file}: {e}", file=sys.stderr)
        return 1

    try:
        reply = send_request(args.host, args.port, body, timeout=args.timeout)
    except OSError as e:
        print(f"Error talking to {args.host}:{args.port}: {e}", file=sys.stderr)
        return 1

    if not reply:
        print("Server closed the connection without a reply (see server log).", file=sys.stderr)
        return 1

    print(reply)
    return 0 if reply == SUCCESS_MARKER else 1


def cmd_check(args: argparse.Namespace) -> int:
    """
    Validate a request file exactly as the server would, without decoding.

    Prints the resolved configuration on success or the diagnostic the
    server would have sent back.

    Returns:
        0 if the request is valid, 1 otherwise
    """
    from memt_server.protocol.request import parse_request

    try:
        with open(args.request_file, "rb") as f:
            request = parse_request(f)
    except OSError as e:
        print(f"Error reading {args.request_file}: {e}", file=sys.stderr)
        return 1
    except ArgumentParseError as e:
        print(str(e))
        return 1

    for line in request.describe():
        print(line)
    return 0


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="memt-server",
        description="MEMT decode server - system combination over a shared language model",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run the decode server",
        description=(
            "Load the language model once, then serve decode requests one connection "
            "at a time until interrupted."
        ),
    )
    add_startup_arguments(run_parser)
    run_parser.add_argument(
        "--host",
        type=str,
        help="Host to bind to (default: 0.0.0.0, or MEMT_HOST env var)",
    )
    run_parser.set_defaults(func=cmd_run)

    # send command
    send_parser = subparsers.add_parser(
        "send",
        help="Send a request file to a running server",
        description="Send a request file, wait for the server to finish, and print its reply.",
    )
    send_parser.add_argument("request_file", help="Request file (key = value lines)")
    send_parser.add_argument(
        "--host", type=str, default="127.0.0.1", help="Server host (default: 127.0.0.1)"
    )
    send_parser.add_argument("--port", "-p", type=int, required=True, help="Server port")
    send_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for the reply (default: wait indefinitely)",
    )
    send_parser.set_defaults(func=cmd_send)

    # check command
    check_parser = subparsers.add_parser(
        "check",
        help="Validate a request file offline",
        description="Parse and validate a request file and print the resolved configuration.",
    )
    check_parser.add_argument("request_file", help="Request file (key = value lines)")
    check_parser.set_defaults(func=cmd_check)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
