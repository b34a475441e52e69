"""Command line entry point: submit a source file and wait for the outcome."""
from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence, TextIO

from . import log
from .config import BACKENDS, Settings
from .protocol.fields import Command
from .reporter import ConsoleReporter, Outcome
from .session import Session
from .transport.base import Transport, TransportError


EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_NO_RESULT = 2


def build_parser():
    p = argparse.ArgumentParser(prog="sketchrelay", description="Submit a sketch to a remote compile/upload worker")
    p.add_argument("command", choices=[c.value for c in Command], help="Operation for the worker to perform")
    p.add_argument("path", help="Source file to submit ('-' reads standard input)")
    p.add_argument("--server", help="Broker host (default: $SKETCHRELAY_HOST or localhost)")
    p.add_argument("--port", type=int, help="Broker port (default: fixed per transport)")
    p.add_argument("--transport", choices=BACKENDS, help="Transport backend (default: $SKETCHRELAY_TRANSPORT or rabbitmq)")
    p.add_argument("--timeout", type=float, help="Seconds to wait for a result before giving up")
    p.add_argument("--sketch", help="Artifact name sent with the job (default: sketch.ino)")
    p.add_argument(
        "--connect-timeout",
        type=float,
        default=10.0,
        help="Seconds to wait for the broker connection",
    )
    p.add_argument("--log-level", help="Log level (default: $SKETCHRELAY_LOG_LEVEL or INFO)")
    return p


def read_source(path: str) -> str:
    # Read bytes so that line endings reach the worker untouched.
    if path == "-":
        raw = sys.stdin.buffer.read()
    else:
        with open(path, "rb") as handle:
            raw = handle.read()
    return raw.decode("utf-8")


def main(argv: Optional[Sequence[str]] = None, transport: Optional[Transport] = None,
         stream: Optional[TextIO] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    log.configure(args.log_level)

    try:
        settings = Settings.from_env().replace(
            host=args.server,
            port=args.port,
            backend=args.transport,
            timeout=args.timeout,
            sketch=args.sketch,
        )
    except ValueError as exc:
        parser.error(str(exc))

    try:
        source = read_source(args.path)
    except (OSError, UnicodeDecodeError) as exc:
        parser.error(f"cannot read {args.path}: {exc}")

    reporter = ConsoleReporter(stream)

    with Session(settings, reporter, transport) as session:
        try:
            session.connect(wait=args.connect_timeout)
            request_id = session.submit(args.command, source)
        except TransportError as exc:
            reporter.write(f"Error: {exc}")
            return EXIT_NO_RESULT

        outcome = reporter.wait(request_id)

    if outcome is Outcome.RESULT and reporter.results[request_id].ok:
        return EXIT_SUCCESS
    if outcome is Outcome.RESULT:
        return EXIT_FAILURE
    return EXIT_NO_RESULT


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
