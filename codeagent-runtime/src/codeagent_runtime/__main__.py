"""
Command-line entry point for the code-agent runtime.

``python -m codeagent_runtime run --project-id P "prompt"`` handles a single
``code-agent/run`` event in-process and prints the run output as JSON.
``python -m codeagent_runtime worker`` consumes events from the configured Redis
stream until interrupted, and ``publish`` appends an event to that stream.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from functools import partial
from typing import Optional, Sequence

from redis.asyncio import Redis

from codeagent_contracts import CodeAgentRunEvent

from .config import get_settings
from .function import create_message_store, create_sandbox_provider, run_code_agent
from .logging_utils import configure_logging
from .steps import build_step_journal
from .worker import EventWorker, publish_event


def cmd_run(args: argparse.Namespace) -> int:
    """Run one event and print its output."""
    event = CodeAgentRunEvent.create(args.prompt, args.project_id, event_id=args.run_id)
    output = asyncio.run(run_code_agent(event, settings=get_settings()))
    print(json.dumps(output.model_dump(by_alias=True), indent=2))
    return 0


async def _run_worker() -> None:
    settings = get_settings()
    redis = Redis.from_url(settings.redis_url, decode_responses=True)
    handler = partial(
        run_code_agent,
        settings=settings,
        provider=create_sandbox_provider(settings),
        store=create_message_store(settings),
        # Shared across events so retried events replay their completed steps.
        journal=build_step_journal(settings.step_journal_path),
    )
    worker = EventWorker(
        redis,
        handler,
        stream_key=settings.event_stream_key,
        max_attempts=settings.worker_max_attempts,
        block_ms=settings.worker_block_ms,
    )
    try:
        await worker.run_forever()
    finally:
        await redis.aclose()


def cmd_worker(args: argparse.Namespace) -> int:
    """Consume events from Redis until interrupted."""
    try:
        asyncio.run(_run_worker())
    except KeyboardInterrupt:
        pass
    return 0


async def _publish(event: CodeAgentRunEvent) -> str:
    settings = get_settings()
    redis = Redis.from_url(settings.redis_url, decode_responses=True)
    try:
        return await publish_event(redis, settings.event_stream_key, event)
    finally:
        await redis.aclose()


def cmd_publish(args: argparse.Namespace) -> int:
    """Append an event to the worker's stream."""
    event = CodeAgentRunEvent.create(args.prompt, args.project_id, event_id=args.run_id)
    entry_id = asyncio.run(_publish(event))
    print(f"{event.id} -> {entry_id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="codeagent_runtime", description="Run the code agent")
    parser.add_argument("--log-level", default=None, help="Overrides CODEAGENT_LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    for name, help_text in (("run", "Run a prompt in-process"), ("publish", "Queue a prompt for the worker")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("prompt", help="What the agent should build")
        sub.add_argument("--project-id", required=True, help="Project the result message belongs to")
        sub.add_argument("--run-id", default=None, help="Event id; reuse it to replay a run")

    subparsers.add_parser("worker", help="Consume events from the Redis stream")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    configure_logging(args.log_level)
    commands = {
        "run": cmd_run,
        "worker": cmd_worker,
        "publish": cmd_publish,
    }
    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
