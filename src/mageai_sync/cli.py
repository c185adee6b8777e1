"""
Command-line entry point.

Usage:
    mageai-sync plan manifest.yaml [--refresh]
    mageai-sync apply manifest.yaml
    mageai-sync import <key> <pipeline-uuid>
    mageai-sync show

Connection settings come from MAGEAI_HOST / MAGEAI_API_KEY (or a .env file) and can
be overridden with --host / --api-key.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List
from typing import Optional

from loguru import logger

from mageai_sync.apply import Driver
from mageai_sync.client import Transport
from mageai_sync.errors import MageAISyncError
from mageai_sync.manifest import parse_manifest
from mageai_sync.monitoring.logger import configure_logger
from mageai_sync.settings import Settings
from mageai_sync.settings import load_local_settings
from mageai_sync.settings import load_settings
from mageai_sync.state import StateStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mageai-sync",
        description="Reconcile Mage AI pipelines and blocks against a YAML manifest.",
    )
    parser.add_argument("--host", help="Mage AI server URL (default: $MAGEAI_HOST)")
    parser.add_argument("--api-key", help="Mage AI API key (default: $MAGEAI_API_KEY)")
    parser.add_argument("--state", type=Path, help="State file (default: $MAGEAI_STATE_FILE or mageai-state.json)")
    parser.add_argument("--env-file", type=Path, help="Read settings from this .env file")
    parser.add_argument("--log-level", help="Console log level (default: $MAGEAI_LOG_LEVEL or INFO)")
    parser.add_argument("--log-file", type=Path, help="Also write JSON logs to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    plan = subparsers.add_parser("plan", help="Show the changes apply would make")
    plan.add_argument("manifest", type=Path)
    plan.add_argument("--refresh", action="store_true", help="Read current server state before planning")

    apply = subparsers.add_parser("apply", help="Converge the server onto the manifest")
    apply.add_argument("manifest", type=Path)

    import_ = subparsers.add_parser("import", help="Adopt an existing pipeline into state")
    import_.add_argument("key", help="Manifest key to store the pipeline under")
    import_.add_argument("uuid", help="UUID of the pipeline on the server")

    subparsers.add_parser("show", help="Print the stored state")
    return parser


def _settings(args: argparse.Namespace) -> Settings:
    return load_settings(
        env_file=args.env_file,
        host=args.host,
        api_key=args.api_key,
        state_file=args.state,
        log_level=args.log_level,
    )


def run(args: argparse.Namespace) -> int:
    if args.command == "show":
        local = load_local_settings(env_file=args.env_file, state_file=args.state, log_level=args.log_level)
        configure_logger(level=local.log_level, log_file=args.log_file)
        state = StateStore(local.state_file).load()
        print(state.model_dump_json(indent=2))
        return 0

    settings = _settings(args)
    configure_logger(level=settings.log_level, log_file=args.log_file)
    store = StateStore(settings.state_file)

    with Transport.from_settings(settings) as transport:
        driver = Driver.from_transport(transport, store)

        if args.command == "plan":
            manifest = parse_manifest(args.manifest)
            state = store.load()
            if args.refresh:
                driver.refresh(state)
            plan = driver.plan(manifest, state)
            if not plan.has_changes:
                print("No changes. Mage AI matches the manifest.")
            for line in plan.describe():
                print(line)
            return 0

        if args.command == "apply":
            manifest = parse_manifest(args.manifest)
            state = driver.apply(manifest)
            summary = {key: {"uuid": p.uuid, "blocks": sorted(p.blocks)} for key, p in state.pipelines.items()}
            print(json.dumps(summary, indent=2))
            return 0

        if args.command == "import":
            driver.import_pipeline(args.key, args.uuid)
            return 0

    raise ValueError(f"unknown command {args.command!r}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except MageAISyncError as e:
        logger.error(f"{args.command} failed", error_type=type(e).__name__, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
