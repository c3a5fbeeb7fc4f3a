# send_cli.py

from __future__ import annotations

import argparse
import json
from collections.abc import Callable
from pathlib import Path

from mediasend.core.media.batch import ThreadPoolTaskRunner
from mediasend.schemas.models import DeliveryPayload, SendPolicy
from mediasend.tools.media_sender import MediaSender


class DryRunDispatcher:
    """Print each handoff as JSON instead of delivering it."""

    def __init__(self, pretty: bool = True) -> None:
        self.pretty = pretty
        self.delivered: list[DeliveryPayload] = []

    def deliver(self, payload: DeliveryPayload) -> None:
        self.delivered.append(payload)
        print(json.dumps(payload.model_dump(mode="json"), indent=2 if self.pretty else None))


class _PendingTasks:
    """Collect delayed callbacks so a short-lived process can run them before exiting."""

    def __init__(self) -> None:
        self.pending: list[Callable[[], object]] = []

    def __call__(self, delay_s: float, fn: Callable[[], object]) -> None:
        self.pending.append(fn)

    def flush(self) -> None:
        while self.pending:
            self.pending.pop(0)()


def _policy(args: argparse.Namespace) -> SendPolicy:
    overrides: dict[str, object] = {}
    if args.media_root:
        overrides["media_root"] = Path(args.media_root)
    if getattr(args, "max_entries", None):
        overrides["cache_max_entries"] = int(args.max_entries)
    return SendPolicy.from_env(**overrides)


def _cmd_send(args: argparse.Namespace) -> int:
    policy = _policy(args)
    pending = _PendingTasks()
    sender = MediaSender(
        policy,
        dispatcher=DryRunDispatcher(pretty=bool(args.pretty)),
        task_runner=ThreadPoolTaskRunner(max_workers=int(args.workers)) if args.workers > 0 else None,
        scheduler=pending,
    )

    inputs: object = args.inputs if len(args.inputs) > 1 else args.inputs[0]
    ok = sender.send(
        args.destination,
        inputs,
        timeout_s=args.timeout,
        file_name=args.file_name,
        use_cache=bool(args.cache),
    )
    if args.cleanup:
        pending.flush()
    return 0 if ok else 1


def _cmd_clear_cache(args: argparse.Namespace) -> int:
    sender = MediaSender(_policy(args), dispatcher=DryRunDispatcher())
    ok = sender.clear_cache(args.targets or None)
    print("cache cleared" if ok else "cache clear failed")
    return 0 if ok else 1


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Media send (dry run)")
    p.add_argument("--media-root", type=str, default=None, help="Managed media directory (cache lives in .cache/)")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("send", help="Acquire inputs and print the handoff payload")
    s.add_argument("destination", type=str, help="Channel id (digits) or room name")
    s.add_argument("inputs", nargs="+", help="URLs, local paths, data URLs or base64 text")
    s.add_argument("--file-name", type=str, default=None, help="Explicit name (single input) or template (batch)")
    s.add_argument("--timeout", type=float, default=None)
    s.add_argument("--cache", type=int, choices=(0, 1), default=0, help="Route inputs through the content cache")
    s.add_argument("--workers", type=int, default=0, help="Parallel acquisitions for batches (0 = sequential)")
    s.add_argument("--max-entries", type=int, default=None)
    s.add_argument("--cleanup", type=int, choices=(0, 1), default=1, help="Delete transient files before exiting")
    s.add_argument("--pretty", type=int, default=1)
    s.set_defaults(func=_cmd_send)

    c = sub.add_parser("clear-cache", help="Clear the whole cache or selected '<digest>.<ext>' entries")
    c.add_argument("targets", nargs="*")
    c.set_defaults(func=_cmd_clear_cache)
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
