import json
from datetime import datetime, timezone

import pytest

from kubeingress.kube.client import KubeClientError
from kubeingress.kube.ingress import (
    INGRESS_API_VERSION_NETWORKING,
    INGRESS_API_VERSION_NETWORKING_V1,
    INGRESS_CERTIFICATE_ARN_ANNOTATION,
    INGRESS_CLASS_ANNOTATION,
    INGRESS_PATCH_STATUS_RESOURCE,
    IngressClient,
    IngressList,
    KubeIngress,
    KubeItemMetadata,
    get_annotation,
    get_ingress_class_name,
)

CREATED = datetime(2016, 11, 29, 14, 53, 42, tzinfo=timezone.utc)


class FakeClient:
    def __init__(self, body=b"", error=None):
        self.body = body
        self.error = error
        self.calls = []

    def get(self, resource):
        self.calls.append(("GET", resource, None))
        if self.error:
            raise self.error
        return self.body

    def patch(self, resource, payload):
        self.calls.append(("PATCH", resource, payload))
        if self.error:
            raise self.error
        return b""


def item_json(name, annotations, class_name, hostname, arn, version):
    annotations = dict(annotations or {})
    if arn:
        annotations[INGRESS_CERTIFICATE_ARN_ANNOTATION] = arn
    item = {
        "metadata": {
            "name": name,
            "namespace": "default",
            "selfLink": f"/apis/{version}/namespaces/default/ingresses/{name}",
            "uid": name,
            "resourceVersion": "42",
            "generation": 1,
            "creationTimestamp": "2016-11-29T14:53:42Z",
        },
        "spec": {},
        "status": {"loadBalancer": {"ingress": [{"hostname": hostname}]}},
    }
    if annotations:
        item["metadata"]["annotations"] = annotations
    if class_name:
        item["spec"]["ingressClassName"] = class_name
    return item


def expected_ingress(name, annotations, class_name, hostname, arn, version):
    annotations = dict(annotations or {})
    if arn:
        annotations[INGRESS_CERTIFICATE_ARN_ANNOTATION] = arn
    return KubeIngress(
        metadata=KubeItemMetadata(
            namespace="default",
            name=name,
            uid=name,
            annotations=annotations,
            self_link=f"/apis/{version}/namespaces/default/ingresses/{name}",
            resource_version="42",
            generation=1,
            creation_timestamp=CREATED,
        ),
        ingress_class_name=class_name,
        load_balancer_hostnames=[hostname] if hostname else [],
    )


SPECS = [
    ("fixture01", None, "", "example.org", "fixture01"),
    ("fixture02", {INGRESS_CLASS_ANNOTATION: "skipper"}, "", "skipper.example.org", "fixture02"),
    ("fixture03", {INGRESS_CLASS_ANNOTATION: "other"}, "", "other.example.org", "fixture03"),
    ("fixture04", None, "another", "another.example.org", "fixture04"),
]


def list_json(version, specs):
    return json.dumps(
        {
            "kind": "IngressList",
            "apiVersion": version,
            "metadata": {"selfLink": f"/apis/{version}/ingresses", "resourceVersion": "42"},
            "items": [item_json(*spec, version) for spec in specs],
        }
    ).encode()


def expected_list(version, specs):
    return IngressList(
        kind="IngressList",
        api_version=version,
        self_link=f"/apis/{version}/ingresses",
        resource_version="42",
        items=[expected_ingress(*spec, version) for spec in specs],
    )


def test_list_ingresses():
    specs = SPECS + [
        (
            "fixture05",
            {INGRESS_CLASS_ANNOTATION: "yet-another-ignored"},
            "yet-another",
            "yet-another.example.org",
            "fixture05",
        )
    ]
    client = FakeClient(list_json(INGRESS_API_VERSION_NETWORKING, specs))
    got = IngressClient(INGRESS_API_VERSION_NETWORKING).list_ingress(client)
    assert got == expected_list(INGRESS_API_VERSION_NETWORKING, specs)
    assert client.calls[0][1] == f"/apis/{INGRESS_API_VERSION_NETWORKING}/ingresses"


def test_list_ingresses_v1():
    client = FakeClient(list_json(INGRESS_API_VERSION_NETWORKING_V1, SPECS))
    got = IngressClient(INGRESS_API_VERSION_NETWORKING_V1).list_ingress(client)
    assert got == expected_list(INGRESS_API_VERSION_NETWORKING_V1, SPECS)
    assert client.calls[0][1] == "/apis/networking.k8s.io/v1/ingresses"


def test_list_ingress_client_error_has_note():
    client = FakeClient(error=KubeClientError("boom"))
    with pytest.raises(KubeClientError) as info:
        IngressClient(INGRESS_API_VERSION_NETWORKING).list_ingress(client)
    assert "failed to get ingress list" in info.value.__notes__


def test_list_ingress_bad_json():
    client = FakeClient(b"`\n")
    with pytest.raises(ValueError):
        IngressClient(INGRESS_API_VERSION_NETWORKING).list_ingress(client)


def test_rule_hosts_decoded():
    ing = KubeIngress.from_dict(
        {"spec": {"rules": [{"host": "a.example.org"}, {}]}, "status": {}}
    )
    assert ing.rule_hosts == ["a.example.org", ""]
    assert ing.load_balancer_hostnames == []


def test_update_ingress_load_balancer_payload():
    client = FakeClient()
    IngressClient(INGRESS_API_VERSION_NETWORKING).update_ingress_load_balancer(
        client, "foo", "bar", "example.org"
    )
    method, resource, payload = client.calls[0]
    assert method == "PATCH"
    assert resource == INGRESS_PATCH_STATUS_RESOURCE.format(
        INGRESS_API_VERSION_NETWORKING, "foo", "bar"
    )
    assert payload == b'{"status":{"loadBalancer":{"ingress":[{"hostname":"example.org"}]}}}'


def test_update_ingress_failure():
    client = FakeClient(error=KubeClientError("unexpected status code"))
    with pytest.raises(KubeClientError) as info:
        IngressClient(INGRESS_API_VERSION_NETWORKING).update_ingress_load_balancer(
            client, "default", "foo", "example.com"
        )
    assert 'failed to patch ingress default/foo = "example.com"' in info.value.__notes__


@pytest.mark.parametrize(
    "key,fallback,want",
    [("foo", "zbr", "bar"), ("missing", "fallback", "fallback")],
)
def test_annotations_fallback(key, fallback, want):
    ing = KubeIngress(metadata=KubeItemMetadata(annotations={"foo": "bar"}))
    assert get_annotation(ing.metadata.annotations, key, fallback) == want


def test_annotation_none_mapping():
    assert get_annotation(None, "foo", "x") == "x"


def test_ingress_class_name():
    assert get_ingress_class_name(KubeIngress(ingress_class_name="a"), "b") == "a"
    assert get_ingress_class_name(KubeIngress(), "b") == "b"