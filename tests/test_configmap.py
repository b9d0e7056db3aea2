import json

import pytest

from kubeingress.kube.client import KubeClientError
from kubeingress.kube.configmap import ConfigMapResource, get_config_map


class FakeClient:
    def __init__(self, body=b"", error=None):
        self.body = body
        self.error = error
        self.calls = []

    def get(self, resource):
        self.calls.append(resource)
        if self.error:
            raise self.error
        return self.body

    def patch(self, resource, payload):
        raise AssertionError("unexpected patch")


FIXTURE = json.dumps(
    {
        "kind": "ConfigMap",
        "apiVersion": "v1",
        "metadata": {"name": "foo-name", "namespace": "foo-ns"},
        "data": {"some-key": "key1: val1\nkey2: val2\n"},
    }
).encode()


def test_get_config_map():
    client = FakeClient(FIXTURE)
    got = get_config_map(client, "foo-ns", "foo-name")
    assert got == ConfigMapResource(
        kind="ConfigMap",
        api_version="v1",
        name="foo-name",
        namespace="foo-ns",
        data={"some-key": "key1: val1\nkey2: val2\n"},
    )
    assert client.calls == ["/api/v1/namespaces/foo-ns/configmaps/foo-name"]


def test_get_config_map_server_error():
    client = FakeClient(error=KubeClientError("unexpected status code (Internal Server Error)"))
    with pytest.raises(KubeClientError) as info:
        get_config_map(client, "foo-ns", "foo-name")
    assert "failed to get ConfigMap foo-ns/foo-name" in info.value.__notes__


def test_get_config_map_bad_json():
    with pytest.raises(ValueError, match="failed to unmarshal ConfigMap foo-ns/foo-name"):
        get_config_map(FakeClient(b"`\n"), "foo-ns", "foo-name")


def test_from_dict_missing_fields():
    cm = ConfigMapResource.from_dict({"kind": "ConfigMap"})
    assert cm == ConfigMapResource(kind="ConfigMap")