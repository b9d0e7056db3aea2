"""A small HTTP client for the Kubernetes API server."""

from __future__ import annotations

from http import HTTPStatus
from pathlib import Path
from typing import Protocol

import requests
from cryptography import x509

from kubeingress.kube.config import (
    DEFAULT_USER_AGENT,
    SERVICE_ACCOUNT_DIR,
    SERVICE_ACCOUNT_TOKEN_KEY,
    Config,
)

_CONNECT_TIMEOUT = 30.0


class KubeClientError(Exception):
    """A request to the API server failed."""

    def __init__(self, message: str, body: bytes = b"") -> None:
        super().__init__(message)
        self.body = body


class ResourceNotFoundError(KubeClientError):
    """The requested resource does not exist."""

    def __init__(self, message: str = "resource not found") -> None:
        super().__init__(message)


class NoPermissionError(KubeClientError):
    """Access to the requested resource is forbidden."""

    def __init__(self, message: str = "no permission to access resource") -> None:
        super().__init__(message)


class InvalidCertificatesError(KubeClientError):
    """The CA certificates for the API server are invalid."""

    def __init__(self, message: str = "invalid CA certificates") -> None:
        super().__init__(message)


class KubeClient(Protocol):
    """Reads and patches API server resources by path."""

    def get(self, resource: str) -> bytes:
        ...

    def patch(self, resource: str, payload: bytes) -> bytes:
        ...


def _status_text(code: int) -> str:
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return ""


class SimpleClient:
    """A KubeClient over HTTP(S) as described by a Config."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self._verify: bool | str = True
        self._timeout: float | tuple[float, None] | None = None
        if config.ca_file:
            data = Path(config.ca_file).read_bytes()
            try:
                x509.load_pem_x509_certificates(data)
            except ValueError as err:
                raise InvalidCertificatesError() from err
            self._verify = False if config.insecure else config.ca_file
            self._timeout = (
                config.timeout if config.timeout > 0 else (_CONNECT_TIMEOUT, None)
            )
        self._session = requests.Session()

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "SimpleClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        headers = {"User-Agent": self.config.user_agent or DEFAULT_USER_AGENT}
        provider = self.config.token_provider
        if provider is not None:
            token = provider.get_secret(SERVICE_ACCOUNT_DIR + SERVICE_ACCOUNT_TOKEN_KEY)
            if token is None:
                raise KubeClientError(f"secret not found: {SERVICE_ACCOUNT_TOKEN_KEY}")
            if isinstance(token, bytes):
                token = token.decode()
            headers["Authorization"] = "Bearer " + token
        return headers

    def _send(
        self, method: str, resource: str, payload: bytes | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> requests.Response:
        headers = self._headers()
        if extra_headers:
            headers.update(extra_headers)
        try:
            return self._session.request(
                method,
                self.config.base_url + resource,
                data=payload,
                headers=headers,
                verify=self._verify,
                timeout=self._timeout,
            )
        except (requests.RequestException, ValueError) as err:
            raise KubeClientError(f"{method} {resource!r} failed: {err}") from err

    def get(self, resource: str) -> bytes:
        """GET a resource and return its body."""
        resp = self._send("GET", resource)
        if resp.status_code == HTTPStatus.OK:
            return resp.content
        if resp.status_code == HTTPStatus.NOT_FOUND:
            raise ResourceNotFoundError()
        if resp.status_code == HTTPStatus.FORBIDDEN:
            raise NoPermissionError()
        body = resp.content
        raise KubeClientError(
            f"unexpected status code ({_status_text(resp.status_code)}) for GET "
            f"{resource!r}: {body.decode(errors='replace')}",
            body,
        )

    def patch(self, resource: str, payload: bytes) -> bytes:
        """PATCH a resource with a JSON merge patch and return the response body."""
        resp = self._send(
            "PATCH", resource, payload,
            {"Content-Type": "application/merge-patch+json"},
        )
        body = resp.content
        if resp.status_code != HTTPStatus.OK:
            raise KubeClientError(
                f"unexpected status code ({_status_text(resp.status_code)}) for PATCH "
                f"{resource!r}: {body.decode(errors='replace')}",
                body,
            )
        return body