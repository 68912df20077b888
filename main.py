#!/usr/bin/env python3
"""
Pipeline Doctor - diagnostic analysis for finished CI builds.

Run providers over a saved build log, list configured providers, or serve the
build-completion webhook.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from dateutil import parser as date_parser

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

logger = logging.getLogger("doctor.cli")


def parse_env_pairs(pairs: Optional[List[str]]) -> Dict[str, str]:
    """Parse repeated KEY=VALUE arguments."""
    env: Dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected KEY=VALUE, got {pair!r}")
        env[key.strip()] = value
    return env


def parse_started_at(value: Optional[str]) -> int:
    """ISO-8601 timestamp -> epoch millis (0 when omitted)."""
    if not value:
        return 0
    return int(date_parser.isoparse(value).timestamp() * 1000)


def analyze_log_file(
    log_file: str,
    *,
    job_name: str,
    build_number: int,
    result: str,
    started_at: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    provider_paths: Optional[List[str]] = None,
    dump_json: bool = False,
) -> int:
    """Analyze one saved build log. Returns a process exit code."""
    from dataclasses import replace

    from doctor.config import configure_logging, load_doctor_config
    from doctor.core.context import StaticBuildContext, build_metadata
    from doctor.core.models import BuildOutcome
    from doctor.dump import result_set_to_json_dict
    from doctor.pipeline.trigger import AnalysisState, CompletedBuild
    from doctor.runtime import build_runtime

    cfg = load_doctor_config()
    if provider_paths:
        cfg = replace(cfg, providers=tuple(cfg.providers) + tuple(provider_paths))
    configure_logging(cfg)

    environment = env or {}
    log_text = Path(log_file).read_text(encoding="utf-8", errors="replace")
    context = StaticBuildContext(
        metadata=build_metadata(
            job_name=job_name,
            build_number=build_number,
            start_time=parse_started_at(started_at),
            environment=environment,
        ),
        build_log=log_text,
        environment=environment,
        build_result=result.upper(),
    )

    runtime = build_runtime(cfg)
    build = CompletedBuild(
        job_name=job_name,
        build_number=build_number,
        outcome=BuildOutcome.parse(result),
        handle=context,
    )

    state = runtime.trigger.on_completed(build, console=None if dump_json else sys.stdout)
    result_set = runtime.store.get(job_name, build_number)

    if dump_json:
        payload = result_set_to_json_dict(result_set) if result_set is not None else {"results": []}
        payload["state"] = state.value
        print(json.dumps(payload, indent=2, sort_keys=False))
    elif state == AnalysisState.CLEAN:
        print("No issues found.")
    elif state == AnalysisState.SKIPPED:
        print(f"Analysis skipped: {runtime.trigger.skip_reason(build)}")
    elif state == AnalysisState.FAILED:
        print("Analysis could not run (see log for details).", file=sys.stderr)
        return 1
    return 0


def list_providers(provider_paths: Optional[List[str]] = None) -> None:
    from doctor.config import load_doctor_config
    from doctor.diagnostics.loader import load_providers
    from doctor.diagnostics.registry import build_registry, provider_categories, provider_id_of, provider_priority

    cfg = load_doctor_config()
    registry = build_registry(load_providers(list(cfg.providers) + list(provider_paths or [])))
    providers = registry.get_providers()
    if not providers:
        print("No diagnostic providers configured (set DOCTOR_PROVIDERS or pass --provider).")
        return
    for p in providers:
        cats = ", ".join(sorted(provider_categories(p))) or "-"
        print(f"{provider_priority(p):>5}  {provider_id_of(p):<24} {getattr(p, 'provider_name', '')}  [{cats}]")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run diagnostic providers over finished CI builds",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze a saved console log
  python main.py --analyze build.log --job my-app --number 42 --result FAILURE \\
      --provider my_providers.oom:OutOfMemoryProvider

  # Show configured providers
  python main.py --list-providers

  # Receive build-completion events over HTTP
  python main.py --serve-webhook --port 8080
        """,
    )

    parser.add_argument("--analyze", metavar="LOG_FILE", help="Analyze a saved build log")
    parser.add_argument("--list-providers", action="store_true", help="List configured diagnostic providers")
    parser.add_argument(
        "--serve-webhook", action="store_true", help="Run an HTTP server that receives build-completion events"
    )
    parser.add_argument("--host", default="0.0.0.0", help="Webhook server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Webhook server listen port (default: 8080)")

    parser.add_argument("--job", default="local", help="Job name for --analyze (default: local)")
    parser.add_argument("--number", type=int, default=1, help="Build number for --analyze (default: 1)")
    parser.add_argument("--result", default="FAILURE", help="Build result for --analyze (default: FAILURE)")
    parser.add_argument("--started-at", help="Build start time, ISO-8601 (for --analyze)")
    parser.add_argument(
        "--env", action="append", metavar="KEY=VALUE", help="Build environment variable (repeatable)"
    )
    parser.add_argument(
        "--provider",
        action="append",
        metavar="MODULE:CLASS",
        help="Extra provider import path, added to DOCTOR_PROVIDERS (repeatable)",
    )
    parser.add_argument("--dump-json", action="store_true", help="Print the result set as JSON instead of a summary")

    args = parser.parse_args()

    try:
        if args.list_providers:
            list_providers(args.provider)
            return

        if args.serve_webhook:
            from doctor.api.webhook import run as run_webhook

            run_webhook(host=args.host, port=args.port)
            return

        if args.analyze:
            code = analyze_log_file(
                args.analyze,
                job_name=args.job,
                build_number=args.number,
                result=args.result,
                started_at=args.started_at,
                env=parse_env_pairs(args.env),
                provider_paths=args.provider,
                dump_json=args.dump_json,
            )
            sys.exit(code)

        parser.print_help()

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
