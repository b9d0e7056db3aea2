"""Higher-level access to Kubernetes Ingress and RouteGroup resources.

The Adapter lists Ingress and RouteGroup resources as one business object,
``Ingress``, and updates the hostname of their load balancer status. It is
usually created from ``in_cluster_config()``; for local development
``insecure_config("http://localhost:8001")`` talks to a ``kubectl proxy``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Collection, Iterable, Mapping

from kubeingress.kube.client import (
    KubeClient,
    NoPermissionError,
    ResourceNotFoundError,
    SimpleClient,
)
from kubeingress.kube.config import Config
from kubeingress.kube.configmap import get_config_map
from kubeingress.kube.ingress import (
    INGRESS_ALB_IP_ADDRESS_TYPE,
    INGRESS_API_VERSION_NETWORKING_V1,
    INGRESS_CERTIFICATE_ARN_ANNOTATION,
    INGRESS_CLASS_ANNOTATION,
    INGRESS_HTTP2_ANNOTATION,
    INGRESS_LOAD_BALANCER_TYPE_ANNOTATION,
    INGRESS_NLB_EXTRA_LISTENERS_ANNOTATION,
    INGRESS_SCHEME_ANNOTATION,
    INGRESS_SECURITY_GROUP_ANNOTATION,
    INGRESS_SHARED_ANNOTATION,
    INGRESS_SSL_POLICY_ANNOTATION,
    INGRESS_WAF_WEB_ACL_ID_ANNOTATION,
    IngressClient,
    KubeIngress,
    KubeItemMetadata,
    get_annotation,
    get_ingress_class_name,
)
from kubeingress.kube.routegroup import (
    RouteGroup,
    list_routegroups,
    update_routegroup_load_balancer,
)

log = logging.getLogger(__name__)

DEFAULT_CLUSTER_LOCAL_DOMAIN = ".cluster.local"

LOAD_BALANCER_TYPE_APPLICATION = "application"
LOAD_BALANCER_TYPE_NETWORK = "network"
IP_ADDRESS_TYPE_IPV4 = "ipv4"
IP_ADDRESS_TYPE_DUALSTACK = "dualstack"
SCHEME_INTERNAL = "internal"
SCHEME_INTERNET_FACING = "internet-facing"

LOAD_BALANCER_TYPE_NLB = "nlb"
LOAD_BALANCER_TYPE_ALB = "alb"

_INGRESS_TO_AWS = {
    LOAD_BALANCER_TYPE_ALB: LOAD_BALANCER_TYPE_APPLICATION,
    LOAD_BALANCER_TYPE_NLB: LOAD_BALANCER_TYPE_NETWORK,
}
_AWS_TO_INGRESS = {aws: ing for ing, aws in _INGRESS_TO_AWS.items()}

_EXTRA_LISTENER_PROTOCOLS = frozenset({"TCP", "UDP", "TCP_UDP"})


class IngressType(StrEnum):
    """Kind of Kubernetes resource an Ingress was built from."""

    INGRESS = "ingress"
    ROUTEGROUP = "routegroup"


class InvalidIngressUpdateError(ValueError):
    """An update request has no ingress or an empty DNS name."""

    def __init__(self, message: str = "invalid ingress update parameters") -> None:
        super().__init__(message)


class UpdateNotNeededError(Exception):
    """The ingress already has the desired hostname."""

    def __init__(self, message: str = "update to ingress resource not needed") -> None:
        super().__init__(message)


class InvalidConfigurationError(ValueError):
    """The Kubernetes configuration lacks required attributes."""

    def __init__(
        self, message: str = "invalid Kubernetes Adapter configuration"
    ) -> None:
        super().__init__(message)


class IngressAnnotationError(ValueError):
    """The annotations of a resource describe an unsupported setup."""


@dataclass
class ExtraListener:
    """An additional NLB listener forwarding to pods with a label."""

    listen_protocol: str = ""
    listen_port: int = 0
    target_port: int = 0
    pod_label: str = ""
    namespace: str = ""


@dataclass(frozen=True)
class CNIEndpoint:
    """A pod endpoint that a target group points at."""

    ip_address: str = ""
    namespace: str = ""
    pod_label: str = ""


@dataclass
class Ingress:
    """The controller's view of an Ingress or RouteGroup."""

    resource_type: IngressType = IngressType.INGRESS
    namespace: str = ""
    name: str = ""
    shared: bool = False
    http2: bool = False
    cluster_local: bool = False
    certificate_arn: str = ""
    hostname: str = ""
    extra_listeners: list[ExtraListener] = field(default_factory=list)
    scheme: str = ""
    security_group: str = ""
    ssl_policy: str = ""
    ip_address_type: str = ""
    load_balancer_type: str = ""
    waf_web_acl_id: str = ""
    hostnames: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.resource_type} {self.namespace}/{self.name}"


@dataclass
class ConfigMap:
    """The controller's view of a ConfigMap."""

    namespace: str = ""
    name: str = ""
    data: dict[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


def _port(value: Any, key: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise IngressAnnotationError(
            f"unable to parse aws-nlb-extra-listeners annotation: invalid {key} {value!r}"
        )
    return value


def _parse_extra_listeners(raw: str) -> list[ExtraListener]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as err:
        raise IngressAnnotationError(
            f"unable to parse aws-nlb-extra-listeners annotation: {err}"
        ) from err
    if data is None:
        return []
    if not isinstance(data, list):
        raise IngressAnnotationError(
            "unable to parse aws-nlb-extra-listeners annotation: expected a list"
        )
    listeners = []
    for item in data:
        item = {} if item is None else item
        if not isinstance(item, dict):
            raise IngressAnnotationError(
                "unable to parse aws-nlb-extra-listeners annotation: expected objects"
            )
        fields = {str(k).lower(): v for k, v in item.items()}
        protocol = fields.get("protocol") or ""
        label = fields.get("podlabel") or ""
        if not isinstance(protocol, str) or not isinstance(label, str):
            raise IngressAnnotationError(
                "unable to parse aws-nlb-extra-listeners annotation: expected strings"
            )
        listeners.append(
            ExtraListener(
                listen_protocol=protocol,
                listen_port=_port(fields.get("listenport"), "listenport"),
                target_port=_port(fields.get("targetport"), "targetport"),
                pod_label=label,
            )
        )
    return listeners


class Adapter:
    """Lists and updates Ingress and RouteGroup resources.

    ``ssl_policies`` is the collection of accepted SSL policy names; an
    annotation naming another policy falls back to the default. When it is
    None, any policy named by an annotation is accepted. ``client`` replaces
    the HTTP client built from ``config``.
    """

    def __init__(
        self,
        config: Config | None,
        ingress_api_version: str = INGRESS_API_VERSION_NETWORKING_V1,
        ingress_class_filters: Iterable[str] | None = None,
        default_security_group: str = "",
        default_ssl_policy: str = "",
        default_load_balancer_type: str = LOAD_BALANCER_TYPE_APPLICATION,
        cluster_local_domain: str = "",
        ssl_policies: Collection[str] | None = None,
        client: KubeClient | None = None,
    ) -> None:
        if config is None or not config.base_url:
            raise InvalidConfigurationError()
        self.kube_client: KubeClient = client if client is not None else SimpleClient(config)
        self.ingress_client = IngressClient(api_version=ingress_api_version)
        self.ingress_filters = list(ingress_class_filters or [])
        self.default_security_group = default_security_group
        self.default_ssl_policy = default_ssl_policy
        self.default_load_balancer_type = _AWS_TO_INGRESS.get(
            default_load_balancer_type, ""
        )
        self.cluster_local_domain = cluster_local_domain
        self.ssl_policies = None if ssl_policies is None else frozenset(ssl_policies)
        self.route_group_support = True
        self.cni_pod_namespace = ""
        self.cni_pod_label_selector = ""
        self.extra_cni_endpoints: list[CNIEndpoint] = []

    def _external_hosts(self, hosts: Iterable[str]) -> list[str]:
        domain = self.cluster_local_domain
        return [h for h in hosts if h and (not domain or not h.endswith(domain))]

    def ingress_from_kube(self, kube_ingress: KubeIngress) -> Ingress:
        """Build an Ingress from a Kubernetes Ingress."""
        host = next((h for h in kube_ingress.load_balancer_hostnames if h), "")
        hostnames = self._external_hosts(kube_ingress.rule_hosts)
        return self._new_ingress(
            IngressType.INGRESS, kube_ingress.metadata, host, hostnames
        )

    def ingress_from_routegroup(self, routegroup: RouteGroup) -> Ingress:
        """Build an Ingress from a RouteGroup."""
        host = next((h for h in routegroup.load_balancer_hostnames if h), "")
        hostnames = self._external_hosts(routegroup.hosts)
        return self._new_ingress(
            IngressType.ROUTEGROUP, routegroup.metadata, host, hostnames
        )

    def _new_ingress(
        self,
        resource_type: IngressType,
        metadata: KubeItemMetadata,
        host: str,
        hostnames: list[str],
    ) -> Ingress:
        annotations: Mapping[str, str] = metadata.annotations or {}

        if get_annotation(annotations, INGRESS_SCHEME_ANNOTATION, "") == SCHEME_INTERNAL:
            scheme = SCHEME_INTERNAL
        else:
            scheme = SCHEME_INTERNET_FACING

        shared = get_annotation(annotations, INGRESS_SHARED_ANNOTATION, "") != "false"

        ip_address_type = IP_ADDRESS_TYPE_IPV4
        if get_annotation(annotations, INGRESS_ALB_IP_ADDRESS_TYPE, "") == IP_ADDRESS_TYPE_DUALSTACK:
            ip_address_type = IP_ADDRESS_TYPE_DUALSTACK

        ssl_policy = get_annotation(
            annotations, INGRESS_SSL_POLICY_ANNOTATION, self.default_ssl_policy
        )
        if self.ssl_policies is not None and ssl_policy not in self.ssl_policies:
            ssl_policy = self.default_ssl_policy

        has_lb = INGRESS_LOAD_BALANCER_TYPE_ANNOTATION in annotations
        if has_lb:
            lb_type = annotations[INGRESS_LOAD_BALANCER_TYPE_ANNOTATION]
        elif scheme == SCHEME_INTERNAL:
            # internal load balancers are ALBs unless the user decides otherwise
            lb_type = LOAD_BALANCER_TYPE_ALB
        else:
            lb_type = self.default_load_balancer_type

        has_sg = INGRESS_SECURITY_GROUP_ANNOTATION in annotations
        security_group = annotations.get(
            INGRESS_SECURITY_GROUP_ANNOTATION, self.default_security_group
        )

        has_waf = INGRESS_WAF_WEB_ACL_ID_ANNOTATION in annotations
        waf_web_acl_id = annotations.get(INGRESS_WAF_WEB_ACL_ID_ANNOTATION, "")

        extra_listeners: list[ExtraListener] = []
        if INGRESS_NLB_EXTRA_LISTENERS_ANNOTATION in annotations:
            if lb_type != LOAD_BALANCER_TYPE_NLB:
                raise IngressAnnotationError("extra listeners are only supported on NLBs")
            extra_listeners = _parse_extra_listeners(
                annotations[INGRESS_NLB_EXTRA_LISTENERS_ANNOTATION]
            )
            for listener in extra_listeners:
                if listener.listen_protocol not in _EXTRA_LISTENER_PROTOCOLS:
                    raise IngressAnnotationError(
                        "only TCP, UDP, or TCP_UDP are allowed as protocols for extra listeners"
                    )
                listener.namespace = metadata.namespace
                self.extra_cni_endpoints.append(
                    CNIEndpoint(namespace=metadata.namespace, pod_label=listener.pod_label)
                )

        if lb_type == LOAD_BALANCER_TYPE_NLB and (has_sg or has_waf):
            if has_lb:
                raise IngressAnnotationError(
                    "security group or WAF are not supported by NLB (configured by annotation)"
                )
            lb_type = LOAD_BALANCER_TYPE_ALB

        if lb_type not in _INGRESS_TO_AWS:
            lb_type = self.default_load_balancer_type
        lb_type = _INGRESS_TO_AWS.get(lb_type, "")

        if lb_type == LOAD_BALANCER_TYPE_NETWORK:
            ip_address_type = IP_ADDRESS_TYPE_IPV4

        http2 = get_annotation(annotations, INGRESS_HTTP2_ANNOTATION, "") != "false"

        return Ingress(
            resource_type=resource_type,
            namespace=metadata.namespace,
            name=metadata.name,
            hostname=host,
            hostnames=hostnames,
            cluster_local=not hostnames,
            certificate_arn=get_annotation(
                annotations, INGRESS_CERTIFICATE_ARN_ANNOTATION, ""
            ),
            scheme=scheme,
            shared=shared,
            security_group=security_group,
            ssl_policy=ssl_policy,
            ip_address_type=ip_address_type,
            load_balancer_type=lb_type,
            waf_web_acl_id=waf_web_acl_id,
            http2=http2,
            extra_listeners=extra_listeners,
        )

    def ingress_filters_string(self) -> str:
        """The ingress class filters, comma separated."""
        return ",".join(self.ingress_filters).strip()

    def list_resources(self) -> list[Ingress]:
        """List Ingresses and, where supported, RouteGroups that pass the filters."""
        resources = self.list_ingress()
        if self.route_group_support:
            try:
                resources.extend(self.list_routegroups())
            except (ResourceNotFoundError, NoPermissionError) as err:
                self.route_group_support = False
                log.warning(
                    "Disabling RouteGroup support because listing RouteGroups failed: %s",
                    err,
                )
        return resources

    def list_ingress(self) -> list[Ingress]:
        """List the Ingresses of all namespaces that pass the class filters."""
        items = self.ingress_client.list_ingress(self.kube_client).items
        result = []
        for item in items:
            if not self._supported_ingress(item):
                continue
            try:
                result.append(self.ingress_from_kube(item))
            except IngressAnnotationError as err:
                log.error(
                    "%s", err,
                    extra={"type": str(IngressType.INGRESS),
                           "ns": item.metadata.namespace, "name": item.metadata.name},
                )
        return result

    def list_routegroups(self) -> list[Ingress]:
        """List the RouteGroups of all namespaces that pass the class filters."""
        items = list_routegroups(self.kube_client).items
        result = []
        for item in items:
            if not self._supported_crd(item.metadata):
                continue
            try:
                result.append(self.ingress_from_routegroup(item))
            except IngressAnnotationError as err:
                log.error(
                    "%s", err,
                    extra={"type": str(IngressType.ROUTEGROUP),
                           "ns": item.metadata.namespace, "name": item.metadata.name},
                )
        return result

    def _supported_crd(self, metadata: KubeItemMetadata) -> bool:
        if not self.ingress_filters:
            return True
        ingress_class = get_annotation(metadata.annotations, INGRESS_CLASS_ANNOTATION, "")
        return ingress_class in self.ingress_filters

    def _supported_ingress(self, kube_ingress: KubeIngress) -> bool:
        if not self.ingress_filters:
            return True
        # the deprecated annotation is used only when the spec names no class
        ingress_class = get_ingress_class_name(kube_ingress, "") or get_annotation(
            kube_ingress.metadata.annotations, INGRESS_CLASS_ANNOTATION, ""
        )
        return ingress_class in self.ingress_filters

    def update_ingress_load_balancer(
        self, ingress: Ingress | None, load_balancer_dns_name: str
    ) -> None:
        """Set the load balancer hostname of the resource behind ``ingress``."""
        if ingress is None or not load_balancer_dns_name:
            raise InvalidIngressUpdateError()
        if load_balancer_dns_name == DEFAULT_CLUSTER_LOCAL_DOMAIN:
            load_balancer_dns_name = ""
        if ingress.hostname == load_balancer_dns_name:
            raise UpdateNotNeededError()
        if ingress.resource_type == IngressType.ROUTEGROUP:
            update_routegroup_load_balancer(
                self.kube_client, ingress.namespace, ingress.name, load_balancer_dns_name
            )
        elif ingress.resource_type == IngressType.INGRESS:
            self.ingress_client.update_ingress_load_balancer(
                self.kube_client, ingress.namespace, ingress.name, load_balancer_dns_name
            )
        else:
            raise ValueError(
                f"unknown resourceType '{ingress.resource_type}', "
                "failed to update Kubernetes resource"
            )

    def get_config_map(self, namespace: str, name: str) -> ConfigMap:
        """Fetch the ConfigMap ``name`` from ``namespace``."""
        resource = get_config_map(self.kube_client, namespace, name)
        return ConfigMap(
            namespace=resource.namespace, name=resource.name, data=resource.data
        )

    def with_target_cni_pod_selector(self, namespace: str, selector: str) -> "Adapter":
        """Set the namespace and label selector of target pods; return self."""
        self.cni_pod_namespace = namespace
        self.cni_pod_label_selector = selector
        return self