"""Kubernetes Ingress resources: decoding, listing and status updates."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from kubeingress.kube.client import KubeClient

# used in external-dns as well
INGRESS_ALB_IP_ADDRESS_TYPE = "alb.ingress.kubernetes.io/ip-address-type"
INGRESS_API_VERSION_EXTENSIONS = "extensions/v1beta1"
INGRESS_API_VERSION_NETWORKING = "networking.k8s.io/v1beta1"
INGRESS_API_VERSION_NETWORKING_V1 = "networking.k8s.io/v1"
INGRESS_LIST_RESOURCE = "/apis/{}/ingresses"
INGRESS_PATCH_STATUS_RESOURCE = "/apis/{}/namespaces/{}/ingresses/{}/status"
INGRESS_CERTIFICATE_ARN_ANNOTATION = "zalando.org/aws-load-balancer-ssl-cert"
INGRESS_SCHEME_ANNOTATION = "zalando.org/aws-load-balancer-scheme"
INGRESS_SHARED_ANNOTATION = "zalando.org/aws-load-balancer-shared"
INGRESS_SECURITY_GROUP_ANNOTATION = "zalando.org/aws-load-balancer-security-group"
INGRESS_SSL_POLICY_ANNOTATION = "zalando.org/aws-load-balancer-ssl-policy"
INGRESS_LOAD_BALANCER_TYPE_ANNOTATION = "zalando.org/aws-load-balancer-type"
INGRESS_HTTP2_ANNOTATION = "zalando.org/aws-load-balancer-http2"
INGRESS_WAF_WEB_ACL_ID_ANNOTATION = "zalando.org/aws-waf-web-acl-id"
INGRESS_NLB_EXTRA_LISTENERS_ANNOTATION = "zalando.org/aws-nlb-extra-listeners"
INGRESS_CLASS_ANNOTATION = "kubernetes.io/ingress.class"


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _parse_time(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def decode_json_object(body: bytes | str) -> dict:
    """Decode a JSON document that must be an object."""
    data = json.loads(body)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def encode_compact(obj: Any) -> bytes:
    """Encode ``obj`` as compact JSON."""
    return json.dumps(obj, separators=(",", ":")).encode()


@dataclass
class KubeItemMetadata:
    """Metadata shared by namespaced Kubernetes items."""

    namespace: str = ""
    name: str = ""
    uid: str = ""
    annotations: dict[str, str] = field(default_factory=dict)
    self_link: str = ""
    resource_version: str = ""
    generation: int = 0
    creation_timestamp: datetime | None = None
    deletion_timestamp: datetime | None = None
    labels: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "KubeItemMetadata":
        data = _as_dict(data)
        return cls(
            namespace=data.get("namespace") or "",
            name=data.get("name") or "",
            uid=data.get("uid") or "",
            annotations=dict(_as_dict(data.get("annotations"))),
            self_link=data.get("selfLink") or "",
            resource_version=data.get("resourceVersion") or "",
            generation=int(data.get("generation") or 0),
            creation_timestamp=_parse_time(data.get("creationTimestamp")),
            deletion_timestamp=_parse_time(data.get("deletionTimestamp")),
            labels=dict(_as_dict(data.get("labels"))),
        )


@dataclass
class KubeIngress:
    """An Ingress as read from the API server."""

    metadata: KubeItemMetadata = field(default_factory=KubeItemMetadata)
    rule_hosts: list[str] = field(default_factory=list)
    ingress_class_name: str = ""
    load_balancer_hostnames: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "KubeIngress":
        data = _as_dict(data)
        spec = _as_dict(data.get("spec"))
        load_balancer = _as_dict(_as_dict(data.get("status")).get("loadBalancer"))
        return cls(
            metadata=KubeItemMetadata.from_dict(data.get("metadata")),
            rule_hosts=[
                _as_dict(rule).get("host") or "" for rule in _as_list(spec.get("rules"))
            ],
            ingress_class_name=spec.get("ingressClassName") or "",
            load_balancer_hostnames=[
                _as_dict(lb).get("hostname") or ""
                for lb in _as_list(load_balancer.get("ingress"))
            ],
        )


@dataclass
class IngressList:
    """A list of Ingresses with the list's own metadata."""

    kind: str = ""
    api_version: str = ""
    self_link: str = ""
    resource_version: str = ""
    items: list[KubeIngress] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "IngressList":
        data = _as_dict(data)
        metadata = _as_dict(data.get("metadata"))
        return cls(
            kind=data.get("kind") or "",
            api_version=data.get("apiVersion") or "",
            self_link=metadata.get("selfLink") or "",
            resource_version=metadata.get("resourceVersion") or "",
            items=[KubeIngress.from_dict(item) for item in _as_list(data.get("items"))],
        )


def get_annotation(
    annotations: Mapping[str, str] | None, key: str, default: str
) -> str:
    """Return the annotation ``key`` if present, else ``default``."""
    if annotations and key in annotations:
        return annotations[key]
    return default


def get_ingress_class_name(ingress: KubeIngress, default: str) -> str:
    """Return the ingress class name from the spec, else ``default``."""
    return ingress.ingress_class_name or default


@dataclass(frozen=True)
class IngressClient:
    """Lists and updates Ingresses of one API version."""

    api_version: str

    def list_ingress(self, client: KubeClient) -> IngressList:
        """List Ingresses across all namespaces."""
        try:
            body = client.get(INGRESS_LIST_RESOURCE.format(self.api_version))
        except Exception as err:
            err.add_note("failed to get ingress list")
            raise
        return IngressList.from_dict(decode_json_object(body))

    def update_ingress_load_balancer(
        self, client: KubeClient, namespace: str, name: str, hostname: str
    ) -> None:
        """Set the load balancer hostname in the Ingress status."""
        payload = encode_compact(
            {"status": {"loadBalancer": {"ingress": [{"hostname": hostname}]}}}
        )
        resource = INGRESS_PATCH_STATUS_RESOURCE.format(
            self.api_version, namespace, name
        )
        try:
            client.patch(resource, payload)
        except Exception as err:
            err.add_note(
                f"failed to patch ingress {namespace}/{name} = {json.dumps(hostname)}"
            )
            raise