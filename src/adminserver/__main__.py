"""
=============================================================================
ADMIN SERVER CLI ENTRY POINT
=============================================================================

Runs a standalone admin server. Mostly useful to try the endpoints out
or to give a process without one a /health that always answers OK; real
tasks embed AdminServer and register their own hooks and probes.

=============================================================================
USAGE
=============================================================================

    # Defaults (0.0.0.0:9990, or whatever ADMIN_* says)
    python -m adminserver

    # Custom port
    python -m adminserver --port 9991

    # Expose /metrics from the default prometheus_client registry
    python -m adminserver --metrics

    # Report which probe failed instead of how many
    python -m adminserver --health-policy first_failure

The process exits when it receives SIGINT or SIGTERM, or when someone
calls /abortabortabort.

=============================================================================
"""

import argparse
import logging
import signal
import sys

from . import __version__
from .admin import AdminServer
from .config import HEALTH_POLICIES, LOG_FORMATS, LOG_LEVELS, AdminConfig
from .errors import BindError


logger = logging.getLogger("adminserver")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="adminserver",
        description="Admin HTTP endpoint (health, quit, abort, metrics) for scheduled tasks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m adminserver                         # Run with defaults
  python -m adminserver --port 9991             # Custom port
  python -m adminserver --metrics               # Serve /metrics too
  python -m adminserver -l DEBUG --log-format json
        """,
    )

    # Flags default to None so that unset ones fall through to ADMIN_*.

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 0.0.0.0)",
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 9990, 0 picks a free port)",
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Number of worker threads (default: 4)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # ENDPOINT ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--health-policy",
        choices=HEALTH_POLICIES,
        default=None,
        help="How /health reports failing probes (default: count)",
    )

    parser.add_argument(
        "--metrics",
        action="store_true",
        default=None,
        help="Serve GET /metrics from the prometheus_client default registry",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Access log format (default: text)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"adminserver {__version__}",
    )

    return parser


def build_config(args: argparse.Namespace) -> AdminConfig:
    """Environment first, then any flags given on the command line."""
    config = AdminConfig.from_env()

    overrides = {
        "host": args.host,
        "port": args.port,
        "workers": args.workers,
        "health_policy": args.health_policy,
        "enable_metrics": args.metrics,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)

    return config


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.setLevel(level.upper())


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
        config.validate()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    configure_logging(config.log_level)

    admin = AdminServer(config)

    def handle_signal(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down")
        admin.close_async()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        admin.start()
    except BindError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    # Short waits so the main thread gets to run signal handlers.
    while not admin.wait_closed(timeout=1.0):
        pass

    return 0


if __name__ == "__main__":
    sys.exit(main())
