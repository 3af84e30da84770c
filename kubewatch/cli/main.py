"""Click commands for kubewatch.

Usage::

    kubewatch watch /api/v1/namespaces/default/pods -q labelSelector=app=web

Each event is written to stdout as one JSON line (the raw decoded event).
Logs go to stderr.  SIGINT/SIGTERM abort the session; the exit status is 0
when the stream closed cleanly or was aborted and 1 otherwise.
"""

from __future__ import annotations

import asyncio
import json
import signal
from typing import Any

import click

from kubewatch.config import load_config
from kubewatch.errors import WatchError
from kubewatch.kubeconfig import KubeConfig
from kubewatch.models.config import KubeWatchConfig
from kubewatch.observability.logging import get_logger, setup_logging
from kubewatch.watch.guard import Outcome
from kubewatch.watch.session import Watch
from kubewatch.watch.transport import ConnectionPools, HttpxRequest


def parse_query(pairs: tuple[str, ...]) -> dict[str, str | list[str]]:
    """Turn ``key=value`` pairs into query params; repeated keys become lists."""
    params: dict[str, str | list[str]] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {pair!r}", param_hint="--query")
        existing = params.get(key)
        if existing is None:
            params[key] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            params[key] = [existing, value]
    return params


async def run_watch(
    config: KubeWatchConfig,
    path: str,
    params: dict[str, Any],
) -> Outcome:
    """Run one watch session to completion, printing events to stdout."""
    log = get_logger("cli", path=path)
    kube_config = KubeConfig.load_from_default(
        path=config.cluster.kubeconfig_path,
        context=config.cluster.context,
    )
    pools = ConnectionPools(
        connect_timeout=config.transport.connect_timeout,
        max_connections=config.transport.max_connections,
    )
    watcher = Watch(kube_config, HttpxRequest(pools), max_line_bytes=config.stream.max_line_bytes)

    def _print_event(_event_type: str, _obj: Any, raw: dict[str, Any]) -> None:
        click.echo(json.dumps(raw, separators=(",", ":")))

    loop = asyncio.get_running_loop()
    try:
        handle = await watcher.watch(path, params, _print_event, lambda _err: None)
        log.info("watching", uri=handle.request.uri, session_id=handle.session_id)
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, handle.abort)
        try:
            return await handle.wait()
        finally:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)
    finally:
        await pools.aclose()


@click.group()
def cli() -> None:
    """Stream change events from a Kubernetes-style API server."""


@cli.command()
@click.argument("path")
@click.option("-q", "--query", "query", multiple=True, help="Query parameter as key=value (repeatable).")
@click.option("--kubeconfig", default=None, help="Path to a kubeconfig file.")
@click.option("--context", default=None, help="Kubeconfig context to use.")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default=None,
    help="Log level (defaults to KUBEWATCH_LOG_LEVEL).",
)
@click.option("--max-line-bytes", type=click.IntRange(min=0), default=None, help="Bound on a single stream line.")
def watch(
    path: str,
    query: tuple[str, ...],
    kubeconfig: str | None,
    context: str | None,
    log_level: str | None,
    max_line_bytes: int | None,
) -> None:
    """Watch PATH (e.g. /api/v1/pods) and print each event as a JSON line."""
    config = load_config()
    if kubeconfig is not None:
        config.cluster.kubeconfig_path = kubeconfig
    if context is not None:
        config.cluster.context = context
    if log_level is not None:
        config.log.level = log_level
    if max_line_bytes is not None:
        config.stream.max_line_bytes = max_line_bytes

    setup_logging(config.log.level)
    log = get_logger("cli")
    params = parse_query(query)

    try:
        outcome = asyncio.run(run_watch(config, path, params))
    except WatchError as exc:
        # ConfigurationError and friends raised before the session started
        log.error("watch_failed", error=str(exc), error_type=type(exc).__name__)
        raise SystemExit(1) from exc

    if outcome is not None:
        log.error("watch_ended_with_error", error=str(outcome), error_type=type(outcome).__name__)
        raise SystemExit(1)
