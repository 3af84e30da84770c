"""Unit tests for the kubewatch CLI."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import click
import httpx
import pytest
import yaml
from click.testing import CliRunner

from kubewatch.cli import cli
from kubewatch.cli import main as cli_main
from kubewatch.cli.main import parse_query
from kubewatch.watch.transport import ConnectionPools

_EVENTS = b'{"type":"ADDED","object":{"id":1}}\nnoise\n{"type":"DELETED","object":{"id":1}}\n'


def _write_kubeconfig(tmp_path: Path) -> Path:
    path = tmp_path / "config"
    path.write_text(
        yaml.safe_dump(
            {
                "current-context": "t",
                "clusters": [{"name": "c", "cluster": {"server": "http://kube.test"}}],
                "users": [{"name": "u", "user": {"token": "abc"}}],
                "contexts": [{"name": "t", "context": {"cluster": "c", "user": "u"}}],
            }
        )
    )
    return path


@dataclass
class _MockServer:
    """Answers every CLI request with *status* and *body*."""

    status: int = 200
    body: bytes = _EVENTS
    requests: list[httpx.Request] = field(default_factory=list)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, content=self.body)


@pytest.fixture
def server(monkeypatch: pytest.MonkeyPatch) -> _MockServer:
    """Route CLI connections to a mock transport."""
    mock = _MockServer()

    def _pools(**kwargs: Any) -> ConnectionPools:
        return ConnectionPools(transport=httpx.MockTransport(mock.handle), **kwargs)

    monkeypatch.setattr(cli_main, "ConnectionPools", _pools)
    # keep structlog on its defaults; the CLI runner swaps stdio per invocation
    monkeypatch.setattr(cli_main, "setup_logging", lambda level: None)
    return mock


class TestParseQuery:
    def test_pairs_and_repeats(self) -> None:
        assert parse_query(("labelSelector=app=web", "fieldSelector=a", "fieldSelector=b")) == {
            "labelSelector": "app=web",
            "fieldSelector": ["a", "b"],
        }

    def test_empty(self) -> None:
        assert parse_query(()) == {}

    @pytest.mark.parametrize("pair", ["novalue", "=x"])
    def test_malformed_pair(self, pair: str) -> None:
        with pytest.raises(click.BadParameter):
            parse_query((pair,))


class TestWatchCommand:
    def test_prints_events_as_json_lines(self, tmp_path: Path, server: _MockServer) -> None:
        kubeconfig = _write_kubeconfig(tmp_path)

        result = CliRunner().invoke(
            cli,
            ["watch", "/api/v1/pods", "--kubeconfig", str(kubeconfig), "-q", "labelSelector=app=web"],
        )

        assert result.exit_code == 0, result.output
        events = [json.loads(line) for line in result.output.splitlines() if line.startswith('{"type"')]
        assert [e["type"] for e in events] == ["ADDED", "DELETED"]
        assert server.requests[0].url.params["watch"] == "true"
        assert server.requests[0].url.params["labelSelector"] == "app=web"
        assert server.requests[0].headers["Authorization"] == "Bearer abc"

    def test_rejected_watch_exits_non_zero(self, tmp_path: Path, server: _MockServer) -> None:
        kubeconfig = _write_kubeconfig(tmp_path)
        server.status = 403
        server.body = b'{"message":"forbidden"}'

        result = CliRunner().invoke(cli, ["watch", "/api/v1/pods", "--kubeconfig", str(kubeconfig)])

        assert result.exit_code == 1
        assert '{"type"' not in result.output

    def test_missing_kubeconfig_exits_non_zero(self, tmp_path: Path, server: _MockServer) -> None:
        result = CliRunner().invoke(cli, ["watch", "/api/v1/pods", "--kubeconfig", str(tmp_path / "missing")])

        assert result.exit_code == 1
        assert server.requests == []

    def test_bad_query_is_usage_error(self, tmp_path: Path, server: _MockServer) -> None:
        result = CliRunner().invoke(cli, ["watch", "/api/v1/pods", "-q", "oops"])

        assert result.exit_code == 2
