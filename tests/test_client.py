import threading
from contextlib import contextmanager
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from kubeingress.kube.client import (
    InvalidCertificatesError,
    KubeClientError,
    NoPermissionError,
    ResourceNotFoundError,
    SimpleClient,
)
from kubeingress.kube.config import Config


@contextmanager
def serve(status, body=b""):
    record = []

    class Handler(BaseHTTPRequestHandler):
        def _handle(self):
            length = int(self.headers.get("Content-Length") or 0)
            data = self.rfile.read(length) if length else b""
            record.append(
                {
                    "method": self.command,
                    "path": self.path,
                    "headers": dict(self.headers),
                    "body": data,
                }
            )
            self.send_response(status)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        do_GET = _handle
        do_PATCH = _handle

        def log_message(self, *args):
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}", record
    finally:
        server.shutdown()
        server.server_close()


class StaticSecrets:
    def __init__(self, value):
        self.value = value

    def get_secret(self, path):
        return self.value


def test_get_ok():
    with serve(200, b"foo") as (url, record):
        client = SimpleClient(Config(base_url=url))
        assert client.get("/foo") == b"foo"
    assert record[0]["method"] == "GET"
    assert record[0]["path"] == "/foo"
    assert record[0]["headers"]["User-Agent"] == "kube-ingress-aws-controller"


def test_get_not_found():
    with serve(404, b"bar") as (url, _):
        with pytest.raises(ResourceNotFoundError):
            SimpleClient(Config(base_url=url)).get("/bar")


def test_get_forbidden():
    with serve(403, b"no") as (url, _):
        with pytest.raises(NoPermissionError):
            SimpleClient(Config(base_url=url)).get("/bar")


def test_get_server_error():
    with serve(500, b"xpto") as (url, _):
        with pytest.raises(KubeClientError) as exc:
            SimpleClient(Config(base_url=url)).get("/zbr")
    assert "Internal Server Error" in str(exc.value)
    assert exc.value.body == b"xpto"


def test_get_invalid_url():
    with pytest.raises(KubeClientError):
        SimpleClient(Config(base_url="http://[::1")).get("/fail")


def test_patch_ok():
    with serve(200, b"ok") as (url, record):
        assert SimpleClient(Config(base_url=url)).patch("/foo", b"foo") == b"ok"
    assert record[0]["method"] == "PATCH"
    assert record[0]["path"] == "/foo"
    assert record[0]["body"] == b"foo"
    assert record[0]["headers"]["Content-Type"] == "application/merge-patch+json"


@pytest.mark.parametrize("status,body", [(404, b"ok"), (500, b"nok")])
def test_patch_failure_keeps_body(status, body):
    with serve(status, body) as (url, _):
        with pytest.raises(KubeClientError) as exc:
            SimpleClient(Config(base_url=url)).patch("/bar", b"bar")
    assert exc.value.body == body
    assert "for PATCH '/bar'" in str(exc.value)


def test_patch_invalid_url():
    with pytest.raises(KubeClientError):
        SimpleClient(Config(base_url="http://[::1")).patch("/fail", b"fail")


def test_bearer_token_and_user_agent():
    cfg = Config(user_agent="custom-agent", token_provider=StaticSecrets(b"token"))
    with serve(200, b"ok") as (url, record):
        cfg.base_url = url
        result = SimpleClient(cfg).patch("/foo", b"bar")
    assert result == b"ok"
    assert record[0]["headers"]["Authorization"] == "Bearer token"
    assert record[0]["headers"]["User-Agent"] == "custom-agent"
    assert record[0]["body"] == b"bar"


def test_missing_secret():
    client = SimpleClient(Config(base_url="http://127.0.0.1:1", token_provider=StaticSecrets(None)))
    with pytest.raises(KubeClientError) as exc:
        client.get("/foo")
    assert str(exc.value) == "secret not found: token"


def test_missing_ca_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        SimpleClient(Config(base_url="dontcare", ca_file=str(tmp_path / "missing")))


def test_broken_ca_file(tmp_path):
    broken = tmp_path / "broken.pem"
    broken.write_text("not a certificate\n")
    with pytest.raises(InvalidCertificatesError):
        SimpleClient(Config(base_url="dontcare", ca_file=str(broken)))