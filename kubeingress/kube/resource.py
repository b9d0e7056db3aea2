"""Locations of Kubernetes resources of the form ``namespace/name``."""

from __future__ import annotations

import json
from dataclasses import dataclass


@dataclass(frozen=True)
class ResourceLocation:
    """Where a Kubernetes resource lives: its name within a namespace."""

    name: str
    namespace: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


def parse_resource_location(text: str) -> ResourceLocation:
    """Parse ``namespace/name``; raise ValueError for anything else."""
    parts = text.strip("/").split("/")
    if len(parts) != 2:
        quoted = json.dumps(text, ensure_ascii=False)
        raise ValueError(
            'invalid resource location, expected format "namespace/name" '
            f"but got {quoted}"
        )
    namespace, name = parts
    return ResourceLocation(name=name, namespace=namespace)