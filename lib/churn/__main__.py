"""Entry point for a churn run against a Redis-backed admin service.

Usage:
    python -m churn --workers 10 --variant observing --seconds 30

Environment variables:
    REDIS_URL: Redis connection URL (default: redis://localhost:6379)
    CHURN_WORKERS, CHURN_VARIANT, CHURN_RUN_SECONDS, CHURN_NAMING,
    CHURN_CLIENT_SHARING: defaults for the matching flags
    CHURN_CONFIG_DIR: directory uploaded as every required config
"""

import argparse
import json
import logging
import os
import sys
import tempfile
from pathlib import Path

from .client import redis_admin_factory
from .constants import Defaults
from .errors import ChurnError
from .orchestrator import ClientSharing, NamingPolicy, Orchestrator, RunConfig, quiet_logging
from .security import sanitize
from .worker import WorkerVariant


def build_parser(defaults: RunConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="churn",
        description="Race collection create/delete/query from concurrent workers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument("--redis-url", type=str, default=os.environ.get("REDIS_URL", Defaults.REDIS_URL))
    parser.add_argument("--workers", type=int, default=defaults.worker_count, help="Number of workers")
    parser.add_argument("--variant", choices=[v.value for v in WorkerVariant], default=defaults.variant.value)
    parser.add_argument("--seconds", type=float, default=defaults.duration_seconds, help="Run duration")
    parser.add_argument("--naming", choices=[v.value for v in NamingPolicy], default=defaults.naming.value)
    parser.add_argument("--clients", choices=[v.value for v in ClientSharing], default=defaults.client_sharing.value)
    parser.add_argument("--shared-config", type=str, default=defaults.shared_config_name)
    parser.add_argument("--config-dir", type=str, default=os.environ.get("CHURN_CONFIG_DIR"),
                        help="Config directory to upload (default: an empty placeholder config)")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--verbose", action="store_true", help="Log every worker step")
    return parser


def main(argv=None) -> int:
    """Run once and return the process exit code."""
    try:
        defaults = RunConfig.from_env()
    except ValueError as e:
        print(f"Invalid environment: {e}", file=sys.stderr)
        return 2

    args = build_parser(defaults).parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(threadName)s %(name)s %(levelname)s %(message)s"
    )

    try:
        config = RunConfig(
            worker_count=args.workers,
            variant=args.variant,
            duration_seconds=args.seconds,
            naming=args.naming,
            client_sharing=args.clients,
            shared_config_name=args.shared_config
        )
        orchestrator = Orchestrator(config, redis_admin_factory(args.redis_url))
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    try:
        with tempfile.TemporaryDirectory(prefix="churn-config-") as placeholder:
            orchestrator.prepare(Path(args.config_dir or placeholder))
        level = logging.DEBUG if args.verbose else logging.WARNING
        with quiet_logging("churn.worker", level):
            result = orchestrator.run()
    except ChurnError as e:
        print(sanitize(f"Setup failed: {e}"), file=sys.stderr)
        return 2

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        status = "PASSED" if result.passed else "FAILED"
        print(f"\n=== Churn run {status} ===")
        print(f"  Workers: {config.worker_count} ({config.variant.value})")
        print(f"  Duration: {result.duration_seconds:.2f}s")
        print(f"  Iterations: {result.total_iterations}")
        if not result.passed:
            print(f"  Failures:\n{result.failure_report}")

    return 0 if result.passed else 1


if __name__ == "__main__":
    sys.exit(main())
