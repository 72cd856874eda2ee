"""Console entry point for running one exploration session against the MCP host."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

# Before the compass imports: CONFIG reads the environment when it is built
load_dotenv(Path.cwd() / ".env")

from compass.src.explorer.mcp_bridge import McpHostBridge  # noqa: E402
from compass.src.explorer.models import ExplorationConfig, ExplorationStrategy  # noqa: E402
from compass.src.explorer.orchestrator import ExplorationOrchestrator  # noqa: E402
from compass.src.utils.config import CONFIG  # noqa: E402

STRATEGY_CHOICES = tuple(s.value for s in ExplorationStrategy)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="compass-explore", description="Run an autonomous web exploration session.")
    parser.add_argument("url", help="Start URL")
    parser.add_argument("--strategy", choices=STRATEGY_CHOICES, default=ExplorationStrategy.CURIOSITY_DRIVEN.value)
    parser.add_argument("--max-actions", type=int, default=100)
    parser.add_argument("--max-pages", type=int, default=50)
    parser.add_argument("--max-duration", type=float, default=600.0, help="Seconds")
    parser.add_argument("--max-failures", type=int, default=20)
    parser.add_argument("--stay-within-domain", action="store_true")
    parser.add_argument("--allow-domain", action="append", default=[], help="May be repeated")
    parser.add_argument("--seed", type=int)
    parser.add_argument("--log-file", help="Write the JSON step log here when the session ends")
    parser.add_argument("--export", help="Write the session export (metrics, timeline, frontier) here")
    parser.add_argument("--mcp-host", help=f"MCP host URL (default: {CONFIG.mcp.host_url})")
    return parser


async def explore(args: argparse.Namespace) -> int:
    if args.mcp_host:
        CONFIG.mcp.host_url = args.mcp_host

    config = ExplorationConfig(
        strategy=ExplorationStrategy(args.strategy),
        max_actions=max(1, args.max_actions),
        max_pages=max(1, args.max_pages),
        max_duration_seconds=args.max_duration,
        max_failures=max(1, args.max_failures),
        allowed_domains=args.allow_domain,
        stay_within_domain=args.stay_within_domain,
        seed=args.seed,
        log_file=args.log_file,
    )

    bridge = McpHostBridge(CONFIG.mcp)
    orchestrator = ExplorationOrchestrator(bridge, bridge)
    session_id = await orchestrator.start_session(args.url, config)

    done = False
    while not done:
        result = await orchestrator.step(session_id)
        status = "ok" if result.action.success else f"failed: {result.action.error_message}"
        print(
            f"[{result.action.kind.value}] {result.new_state.url} "
            f"reward={result.reward.total:.3f} ({status})"
        )
        done = result.done

    stats = orchestrator.get_session_stats(session_id)
    print(json.dumps(stats, indent=2, ensure_ascii=False))

    if args.export:
        export = orchestrator.get_session_export(session_id)
        Path(args.export).write_text(json.dumps(export, indent=2, ensure_ascii=False), encoding="utf-8")
        print(f"Export written to {args.export}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    try:
        return asyncio.run(explore(args))
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
