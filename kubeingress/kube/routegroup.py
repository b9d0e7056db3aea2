"""RouteGroup custom resources: decoding, listing and status updates."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping

from kubeingress.kube.client import KubeClient
from kubeingress.kube.ingress import (
    KubeItemMetadata,
    decode_json_object,
    encode_compact,
)

ROUTEGROUP_LIST_RESOURCE = "/apis/zalando.org/v1/routegroups"
ROUTEGROUP_NAMESPACED_RESOURCE = "/apis/zalando.org/v1/namespaces/{}/routegroups/{}"
ROUTEGROUP_PATCH_STATUS_RESOURCE = (
    "/apis/zalando.org/v1/namespaces/{}/routegroups/{}/status"
)


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


@dataclass
class RouteGroup:
    """A RouteGroup as read from the API server."""

    metadata: KubeItemMetadata = field(default_factory=KubeItemMetadata)
    hosts: list[str] = field(default_factory=list)
    load_balancer_hostnames: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "RouteGroup":
        data = _as_dict(data)
        spec = _as_dict(data.get("spec"))
        load_balancer = _as_dict(_as_dict(data.get("status")).get("loadBalancer"))
        return cls(
            metadata=KubeItemMetadata.from_dict(data.get("metadata")),
            hosts=[str(h) for h in _as_list(spec.get("hosts"))],
            load_balancer_hostnames=[
                _as_dict(lb).get("hostname") or ""
                for lb in _as_list(load_balancer.get("routegroup"))
            ],
        )


@dataclass
class RouteGroupList:
    """A list of RouteGroups with the list's own metadata."""

    kind: str = ""
    api_version: str = ""
    self_link: str = ""
    resource_version: str = ""
    items: list[RouteGroup] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "RouteGroupList":
        data = _as_dict(data)
        metadata = _as_dict(data.get("metadata"))
        return cls(
            kind=data.get("kind") or "",
            api_version=data.get("apiVersion") or "",
            self_link=metadata.get("selfLink") or "",
            resource_version=metadata.get("resourceVersion") or "",
            items=[RouteGroup.from_dict(item) for item in _as_list(data.get("items"))],
        )


def list_routegroups(client: KubeClient) -> RouteGroupList:
    """List RouteGroups across all namespaces; client errors pass through."""
    body = client.get(ROUTEGROUP_LIST_RESOURCE)
    return RouteGroupList.from_dict(decode_json_object(body))


def update_routegroup_load_balancer(
    client: KubeClient, namespace: str, name: str, hostname: str
) -> None:
    """Set the load balancer hostname in the RouteGroup status."""
    payload = encode_compact(
        {"status": {"loadBalancer": {"routegroup": [{"hostname": hostname}]}}}
    )
    resource = ROUTEGROUP_PATCH_STATUS_RESOURCE.format(namespace, name)
    try:
        client.patch(resource, payload)
    except Exception as err:
        err.add_note(
            f"failed to patch routegroup {namespace}/{name} = {json.dumps(hostname)}"
        )
        raise