"""Reading Kubernetes ConfigMaps."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from kubeingress.kube.client import KubeClient
from kubeingress.kube.ingress import decode_json_object

CONFIG_MAP_RESOURCE = "/api/v1/namespaces/{}/configmaps/{}"


@dataclass
class ConfigMapResource:
    """A ConfigMap as read from the API server."""

    kind: str = ""
    api_version: str = ""
    name: str = ""
    namespace: str = ""
    data: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ConfigMapResource":
        data = data if isinstance(data, dict) else {}
        metadata = data.get("metadata")
        metadata = metadata if isinstance(metadata, dict) else {}
        values = data.get("data")
        return cls(
            kind=data.get("kind") or "",
            api_version=data.get("apiVersion") or "",
            name=metadata.get("name") or "",
            namespace=metadata.get("namespace") or "",
            data=dict(values) if isinstance(values, dict) else {},
        )


def get_config_map(client: KubeClient, namespace: str, name: str) -> ConfigMapResource:
    """Fetch the ConfigMap ``name`` from ``namespace``."""
    try:
        body = client.get(CONFIG_MAP_RESOURCE.format(namespace, name))
    except Exception as err:
        err.add_note(f"failed to get ConfigMap {namespace}/{name}")
        raise
    try:
        decoded = decode_json_object(body)
    except ValueError as err:
        raise ValueError(
            f"failed to unmarshal ConfigMap {namespace}/{name}: {err}"
        ) from err
    return ConfigMapResource.from_dict(decoded)