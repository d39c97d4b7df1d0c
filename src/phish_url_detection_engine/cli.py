"""CLI entrypoint for phish_url_detection_engine."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Iterable

from phish_url_detection_engine.core.errors import AuthError, ConfigError
from phish_url_detection_engine.core.logging import setup_logging
from phish_url_detection_engine.infra.reputation import InMemoryReputationList
from phish_url_detection_engine.orchestrator.build import create_service
from phish_url_detection_engine.orchestrator.pipeline import ScanService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="phish-url-engine")
    parser.add_argument("--url", help="Scan a single URL and exit.")
    parser.add_argument("--tier", choices=["edge", "hybrid", "deep"], help="Force a scan tier.")
    parser.add_argument("--config", help="Path to a defaults.yaml override.")
    parser.add_argument("--profile", help="Config profile to activate.")
    parser.add_argument("--stream", action="store_true", help="Print trace events as JSON lines.")
    parser.add_argument("--allow", action="append", default=[], help="Domain to treat as whitelisted.")
    parser.add_argument("--block", action="append", default=[], help="Domain to treat as blacklisted.")
    parser.add_argument("--log-level", help="Override the configured log level.")
    return parser


def _dump(payload: object) -> str:
    return json.dumps(payload, ensure_ascii=True)


def _serialize_event(event: dict[str, object]) -> dict[str, object]:
    result = event.get("result")
    if hasattr(result, "model_dump"):
        return {**event, "result": result.model_dump(mode="json")}
    return event


def scan_once(service: ScanService, url: str, *, tier: str | None = None, stream: bool = False) -> Iterable[str]:
    if stream:
        for event in service.scan_stream(url, tier):
            yield _dump(_serialize_event(event))
        return
    yield _dump(service.scan(url, tier).model_dump(mode="json"))


def run_interactive(service: ScanService, tier: str | None = None) -> None:
    print("url scan started; type a URL, or 'exit' to quit")
    while True:
        try:
            raw = input("> ").strip()
        except EOFError:
            break
        if raw.lower() in {"exit", "quit"}:
            break
        if not raw:
            continue
        for line in scan_once(service, raw, tier=tier):
            print(line)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    reputation = InMemoryReputationList(allow=args.allow, block=args.block, source="cli")
    try:
        service, runtime = create_service(
            config_path=args.config,
            profile_override=args.profile,
            reputation=reputation,
        )
    except ConfigError as exc:
        print(_dump({"error": "config", "message": str(exc)}), file=sys.stderr)
        return 2
    setup_logging(args.log_level or str(runtime.get("log_level", "INFO")))

    try:
        if args.url:
            for line in scan_once(service, args.url, tier=args.tier, stream=args.stream):
                print(line)
            return 0
        run_interactive(service, args.tier)
        return 0
    except AuthError as exc:
        print(_dump({"error": "auth", "message": str(exc), "status_code": exc.status_code}), file=sys.stderr)
        return 3
    finally:
        service.close()


if __name__ == "__main__":
    sys.exit(main())
