from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import jsonschema
from dotenv import load_dotenv

from methodstats.common.logging import setup_logging
from methodstats.common.models import (
    METHODSTATS_COUNTER_NAME,
    CallSite,
    MetricConfig,
    Outcome,
)
from methodstats.common.naming import name, parse_metric_name
from methodstats.common.settings import compute_config_hash, load_settings
from methodstats.registry.bindings import BindingRegistry
from methodstats.tags.resolver import TagResolver


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Method metrics naming tools")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser(
        "check", help="Validate settings.yaml and print the count metric of every binding"
    )
    check.add_argument("--config", required=True, help="Path to config/settings.yaml")
    check.add_argument(
        "--schema",
        default="config/schema.json",
        help="Path to config/schema.json",
    )

    encode = subparsers.add_parser("encode", help="Encode a metric name with tags")
    encode.add_argument("base", help="Base metric name, e.g. methodstats_count")
    encode.add_argument("tags", nargs="*", help="Tags as key=value")

    decode = subparsers.add_parser("decode", help="Split an encoded metric name into tags")
    decode.add_argument("encoded", help="Encoded metric name")

    return parser.parse_args(argv)


def _preview_name(key: str, config: MetricConfig) -> str:
    tags = TagResolver().resolve(config, CallSite.from_key(key), outcome=Outcome.SUCCESS)
    return name(METHODSTATS_COUNTER_NAME).with_tags(tags).build()


def run_check(config_path: Path, schema_path: Path) -> int:
    try:
        settings = load_settings(config_path, schema_path)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except jsonschema.ValidationError as exc:
        print(f"Invalid config: {exc.message}", file=sys.stderr)
        return 1

    logger = setup_logging(settings.app_log_path, settings.log_level)
    try:
        registry = BindingRegistry.from_settings(settings.raw)
    except ValueError as exc:
        logger.error("bindings_invalid", extra={"error": str(exc)})
        print(f"Invalid bindings: {exc}", file=sys.stderr)
        return 1

    logger.info(
        "bindings_loaded",
        extra={
            "count": len(registry),
            "config_hash": compute_config_hash(config_path),
            "environment": settings.environment,
        },
    )
    for key, config in registry.items():
        print(f"{key}\t{_preview_name(key, config)}")
    return 0


def run_encode(base: str, raw_tags: List[str]) -> int:
    tags = {}
    for raw in raw_tags:
        key, sep, value = raw.partition("=")
        if not sep:
            print(f"Tag must be key=value: {raw}", file=sys.stderr)
            return 1
        tags[key] = value
    print(name(base).with_tags(tags).build())
    return 0


def run_decode(encoded: str) -> int:
    try:
        base, tags = parse_metric_name(encoded)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    print(json.dumps({"name": base, "tags": tags}, ensure_ascii=True, sort_keys=True))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    load_dotenv()
    if args.command == "check":
        return run_check(Path(args.config), Path(args.schema))
    if args.command == "encode":
        return run_encode(args.base, args.tags)
    return run_decode(args.encoded)


if __name__ == "__main__":
    raise SystemExit(main())
