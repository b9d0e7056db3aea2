"""Settings for talking to the Kubernetes API server."""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount/"
SERVICE_ACCOUNT_TOKEN_KEY = "token"
SERVICE_ACCOUNT_ROOT_CA_KEY = "ca.crt"
SERVICE_HOST_ENV_VAR = "KUBERNETES_SERVICE_HOST"
SERVICE_PORT_ENV_VAR = "KUBERNETES_SERVICE_PORT"
DEFAULT_USER_AGENT = "kube-ingress-aws-controller"
DEFAULT_TIMEOUT = 10.0

_TOKEN_REFRESH_SECONDS = 60.0


class MissingKubernetesEnvError(RuntimeError):
    """The API server environment variables are not defined."""

    def __init__(self) -> None:
        super().__init__(
            "unable to load in-cluster configuration, KUBERNETES_SERVICE_HOST "
            "and KUBERNETES_SERVICE_PORT are not defined"
        )


class FileTokenProvider:
    """Serves a secret read from a file, re-reading it once a minute.

    Secrets are looked up by file name, so any path ending in the same
    name finds the secret.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._value = self._read()
        self._loaded = time.monotonic()

    def _read(self) -> bytes:
        return self._path.read_bytes().strip()

    def get_secret(self, path: str) -> bytes | None:
        """Return the secret for ``path``, or None if it is not known."""
        if Path(path).name != self._path.name:
            return None
        with self._lock:
            if time.monotonic() - self._loaded >= _TOKEN_REFRESH_SECONDS:
                try:
                    self._value = self._read()
                except OSError:
                    pass
                self._loaded = time.monotonic()
            return self._value


@dataclass
class Config:
    """Attributes a Kubernetes client is created with.

    ``timeout`` is in seconds; zero means no timeout.
    """

    base_url: str = ""
    token_provider: Any = None
    ca_file: str = ""
    insecure: bool = False
    user_agent: str = ""
    timeout: float = 0.0


def default_service_account_dir() -> str:
    """The well-known directory holding the service account files."""
    return SERVICE_ACCOUNT_DIR


def _join_host_port(host: str, port: str) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def in_cluster_config(service_account_dir: str | None = None) -> Config:
    """Configuration for use inside a cluster: TLS plus a Bearer token."""
    host = os.environ.get(SERVICE_HOST_ENV_VAR, "")
    port = os.environ.get(SERVICE_PORT_ENV_VAR, "")
    if not host or not port:
        raise MissingKubernetesEnvError()

    directory = (
        default_service_account_dir()
        if service_account_dir is None
        else service_account_dir
    )
    token_file = directory + SERVICE_ACCOUNT_TOKEN_KEY
    try:
        token_provider = FileTokenProvider(token_file)
    except OSError as err:
        raise FileNotFoundError(
            f"error when adding token file to token provider: {err}"
        ) from err

    root_ca_file = directory + SERVICE_ACCOUNT_ROOT_CA_KEY
    if not os.path.exists(root_ca_file):
        raise FileNotFoundError(f"root CA file not found: {root_ca_file}")

    return Config(
        base_url="https://" + _join_host_port(host, port),
        user_agent=DEFAULT_USER_AGENT,
        token_provider=token_provider,
        timeout=DEFAULT_TIMEOUT,
        ca_file=root_ca_file,
    )


def insecure_config(api_server_base_url: str) -> Config:
    """Configuration without encryption or authentication, e.g. for kubectl proxy."""
    return Config(
        base_url=api_server_base_url,
        user_agent=DEFAULT_USER_AGENT,
        timeout=DEFAULT_TIMEOUT,
    )