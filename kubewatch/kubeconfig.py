"""Cluster and credential resolution.

KubeConfig reads the usual kubeconfig structure (clusters, users, contexts,
current-context) and decorates watch requests with the selected user's
credentials and the selected cluster's TLS settings.

Sources, in the order ``load_from_default`` tries them:
    1. an explicit path,
    2. the first entry of ``$KUBECONFIG``,
    3. ``~/.kube/config``,
    4. the in-cluster service account.
"""

from __future__ import annotations

import base64
import os
import tempfile
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import structlog
import yaml

from kubewatch.errors import ConfigurationError
from kubewatch.models.request import TLSMaterial, WatchRequest

_log = structlog.get_logger(component="kubeconfig")

SERVICE_ACCOUNT_ROOT = Path("/var/run/secrets/kubernetes.io/serviceaccount")
_IN_CLUSTER_CONTEXT = "inCluster"


@dataclass(frozen=True)
class Cluster:
    """A named API server endpoint."""

    name: str
    server: str
    ca_file: str | None = None
    ca_data: str | None = None
    insecure_skip_tls_verify: bool = False


@dataclass(frozen=True)
class User:
    """A named set of credentials."""

    name: str
    token: str | None = None
    token_file: str | None = None
    username: str | None = None
    password: str | None = None
    cert_file: str | None = None
    cert_data: str | None = None
    key_file: str | None = None
    key_data: str | None = None


@dataclass(frozen=True)
class Context:
    """A (cluster, user, namespace) binding."""

    name: str
    cluster: str
    user: str = ""
    namespace: str = ""


def _resolve_path(path: str | None, base_dir: Path | None) -> str | None:
    if not path or base_dir is None or os.path.isabs(path):
        return path
    return str(base_dir / path)


def _named(entries: list[dict[str, Any]] | None, key: str) -> dict[str, dict[str, Any]]:
    """Index kubeconfig list entries (``- name: x, cluster: {...}``) by name."""
    result: dict[str, dict[str, Any]] = {}
    for entry in entries or []:
        name = entry.get("name")
        if not name:
            continue
        result[str(name)] = entry.get(key) or {}
    return result


class KubeConfig:
    """Resolved kubeconfig: clusters, users, contexts, and the current context."""

    def __init__(
        self,
        clusters: list[Cluster] | None = None,
        users: list[User] | None = None,
        contexts: list[Context] | None = None,
        current_context: str = "",
    ) -> None:
        self.clusters: dict[str, Cluster] = {c.name: c for c in clusters or []}
        self.users: dict[str, User] = {u.name: u for u in users or []}
        self.contexts: dict[str, Context] = {c.name: c for c in contexts or []}
        self.current_context = current_context
        # materialised *-data fields: inline base64 -> temp file path
        self._data_files: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Loaders
    # ------------------------------------------------------------------

    @classmethod
    def load_from_dict(cls, data: dict[str, Any], base_dir: Path | None = None) -> KubeConfig:
        """Build a KubeConfig from a parsed kubeconfig document.

        Relative file paths are resolved against *base_dir* when given.
        """
        clusters = [
            Cluster(
                name=name,
                server=str(body.get("server", "")).rstrip("/"),
                ca_file=_resolve_path(body.get("certificate-authority"), base_dir),
                ca_data=body.get("certificate-authority-data"),
                insecure_skip_tls_verify=bool(body.get("insecure-skip-tls-verify", False)),
            )
            for name, body in _named(data.get("clusters"), "cluster").items()
        ]
        users = [
            User(
                name=name,
                token=body.get("token"),
                token_file=_resolve_path(body.get("tokenFile"), base_dir),
                username=body.get("username"),
                password=body.get("password"),
                cert_file=_resolve_path(body.get("client-certificate"), base_dir),
                cert_data=body.get("client-certificate-data"),
                key_file=_resolve_path(body.get("client-key"), base_dir),
                key_data=body.get("client-key-data"),
            )
            for name, body in _named(data.get("users"), "user").items()
        ]
        contexts = [
            Context(
                name=name,
                cluster=str(body.get("cluster", "")),
                user=str(body.get("user", "")),
                namespace=str(body.get("namespace", "")),
            )
            for name, body in _named(data.get("contexts"), "context").items()
        ]
        return cls(
            clusters=clusters,
            users=users,
            contexts=contexts,
            current_context=str(data.get("current-context", "")),
        )

    @classmethod
    def load_from_file(cls, path: str | os.PathLike[str]) -> KubeConfig:
        """Parse a kubeconfig YAML file.

        Raises:
            ConfigurationError: if the file cannot be read or parsed.
        """
        file_path = Path(path).expanduser()
        try:
            with file_path.open(encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Cannot load kubeconfig {file_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"Kubeconfig {file_path} is not a mapping")
        _log.debug("kubeconfig_loaded", path=str(file_path))
        return cls.load_from_dict(data, base_dir=file_path.parent)

    @classmethod
    def load_from_cluster(cls, root: Path = SERVICE_ACCOUNT_ROOT) -> KubeConfig:
        """Build a KubeConfig from the in-cluster service account.

        Raises:
            ConfigurationError: outside a pod (service env vars not set).
        """
        host = os.environ.get("KUBERNETES_SERVICE_HOST", "")
        port = os.environ.get("KUBERNETES_SERVICE_PORT", "")
        if not host or not port:
            raise ConfigurationError("KUBERNETES_SERVICE_HOST/PORT not set; not running in a cluster")
        if ":" in host:
            host = f"[{host}]"
        cluster = Cluster(
            name=_IN_CLUSTER_CONTEXT,
            server=f"https://{host}:{port}",
            ca_file=str(root / "ca.crt"),
        )
        user = User(name=_IN_CLUSTER_CONTEXT, token_file=str(root / "token"))
        namespace = ""
        ns_file = root / "namespace"
        if ns_file.exists():
            namespace = ns_file.read_text(encoding="utf-8").strip()
        context = Context(
            name=_IN_CLUSTER_CONTEXT,
            cluster=cluster.name,
            user=user.name,
            namespace=namespace,
        )
        return cls(
            clusters=[cluster],
            users=[user],
            contexts=[context],
            current_context=context.name,
        )

    @classmethod
    def load_from_default(cls, path: str = "", context: str = "") -> KubeConfig:
        """Load from the first available source and optionally switch context."""
        candidate = path or os.environ.get("KUBECONFIG", "").split(os.pathsep)[0]
        if not candidate:
            default = Path.home() / ".kube" / "config"
            if default.exists():
                candidate = str(default)

        if candidate:
            config = cls.load_from_file(candidate)
        else:
            config = cls.load_from_cluster()

        if context:
            config.set_current_context(context)
        return config

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def set_current_context(self, name: str) -> None:
        if name not in self.contexts:
            raise ConfigurationError(f"Unknown context: {name}")
        self.current_context = name

    def get_current_context(self) -> Context | None:
        return self.contexts.get(self.current_context)

    def get_current_cluster(self) -> Cluster | None:
        context = self.get_current_context()
        if context is None:
            return None
        return self.clusters.get(context.cluster)

    def get_current_user(self) -> User | None:
        context = self.get_current_context()
        if context is None:
            return None
        return self.users.get(context.user)

    # ------------------------------------------------------------------
    # Request decoration
    # ------------------------------------------------------------------

    async def apply_to_request(self, request: WatchRequest) -> WatchRequest:
        """Return *request* decorated with credentials and TLS material.

        Raises:
            ConfigurationError: a token file can not be read, or inline
                                certificate data is not valid base64.
        """
        cluster = self.get_current_cluster()
        user = self.get_current_user()
        headers = dict(request.headers)

        cert_file: str | None = None
        key_file: str | None = None
        if user is not None:
            token = user.token
            if not token and user.token_file:
                # token files are rotated by the kubelet; re-read per request
                try:
                    token = Path(user.token_file).read_text(encoding="utf-8").strip()
                except OSError as exc:
                    raise ConfigurationError(f"Cannot read token file {user.token_file}: {exc}") from exc
            if token:
                headers["Authorization"] = f"Bearer {token}"
            elif user.username and user.password:
                creds = base64.b64encode(f"{user.username}:{user.password}".encode()).decode("ascii")
                headers["Authorization"] = f"Basic {creds}"
            cert_file = user.cert_file or self._materialise(user.cert_data, "cert")
            key_file = user.key_file or self._materialise(user.key_data, "key")

        tls = TLSMaterial()
        if cluster is not None:
            tls = TLSMaterial(
                ca_file=cluster.ca_file or self._materialise(cluster.ca_data, "ca"),
                cert_file=cert_file,
                key_file=key_file,
                insecure_skip_verify=cluster.insecure_skip_tls_verify,
            )
        elif cert_file or key_file:
            tls = TLSMaterial(cert_file=cert_file, key_file=key_file)

        return replace(request, headers=headers, tls=tls)

    def _materialise(self, data: str | None, suffix: str) -> str | None:
        """Write base64 *data* to a temp file once and return its path."""
        if not data:
            return None
        cached = self._data_files.get(data)
        if cached is not None:
            return cached
        try:
            decoded = base64.b64decode(data)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid base64 in kubeconfig {suffix} data") from exc
        with tempfile.NamedTemporaryFile(prefix="kubewatch-", suffix=f".{suffix}", delete=False) as fh:
            fh.write(decoded)
        self._data_files[data] = fh.name
        return fh.name
