# kubeingress

A library with the building blocks for a controller that provisions cloud
load balancers for Kubernetes Ingress and RouteGroup resources. It reads those
resources from the Kubernetes API server and picks TLS certificates for their
host names.

## What it provides

### `kubeingress.kube`

- `kube.config`
  - `in_cluster_config(service_account_dir=None)` builds a `Config` for use
    inside a cluster. It reads `KUBERNETES_SERVICE_HOST` and
    `KUBERNETES_SERVICE_PORT` and raises `MissingKubernetesEnvError` when
    either is missing. It takes the Bearer token and the root CA from the
    service account directory, which is `default_service_account_dir()` unless
    another is given. A missing token or CA file raises `FileNotFoundError`.
  - `insecure_config(url)` builds a `Config` with no TLS and no token, for
    local work behind `kubectl proxy`.
  - `FileTokenProvider` serves a token read from a file and reads the file
    again once a minute.
- `kube.client.SimpleClient(config)` does `get(resource)` and
  `patch(resource, payload)` against the API server. It returns the response
  body as bytes and sends patches as `application/merge-patch+json`. A 404
  raises `ResourceNotFoundError`, a 403 raises `NoPermissionError`, and any
  other failure raises `KubeClientError`. A CA file that cannot be parsed
  raises `InvalidCertificatesError`.
- `kube.ingress`, `kube.routegroup` and `kube.configmap` decode the resources
  from their JSON form: `IngressList`, `KubeIngress`, `RouteGroupList`,
  `RouteGroup` and `ConfigMapResource`. They also provide
  `IngressClient.list_ingress`, `IngressClient.update_ingress_load_balancer`,
  `list_routegroups`, `update_routegroup_load_balancer`, `get_config_map`,
  `get_annotation` and `get_ingress_class_name`.
- `kube.adapter.Adapter` lists ingresses and route groups with
  `list_resources()`, `list_ingress()` and `list_routegroups()`, and filters
  them by ingress class. Each one becomes an `Ingress` that carries the
  scheme, SSL policy, IP address type, load balancer type (`application` or
  `network`), WAF ACL and extra NLB listeners, all read from the `zalando.org/…`
  annotations. If listing route groups is forbidden or the resource is not
  found, route group support is turned off. Resources whose annotations
  describe an unsupported setup are logged and skipped.
  `update_ingress_load_balancer(ingress, dns_name)` writes the load balancer
  hostname back into the status of the resource. It raises
  `UpdateNotNeededError` when the hostname is already set and
  `InvalidIngressUpdateError` for an empty name or a missing ingress.
  `get_config_map(namespace, name)` returns a `ConfigMap`.
- `kube.resource.parse_resource_location("namespace/name")` returns a
  `ResourceLocation` and raises `ValueError` for any other form.

### `kubeingress.certs`

- `certs.provider`: `new_certificate(id, certificate, chain)` wraps a
  `cryptography` X.509 certificate in a `CertificateSummary`. The summary's
  domain names are the common name followed by the SAN DNS names.
  `CertificateSummary.verify(hostname, now)` checks the validity period, the
  server-auth usage, the host name and the chain up to the roots set with
  `with_roots()`.
- `certs.matching`: `find_best_matching_certificate(certs, hostname, now)`
  picks the most specific verifiable certificate and prefers newer and
  longer-lived ones. It raises `NoMatchingCertificateError` when none fits.
  `find_best_matching_certificates` does the same for several host names.
  `prefix_glob` is the wildcard match they use.
- `certs.caching.CachingProvider(interval, blacklisted_arns, *providers)`
  gathers certificates from several providers and leaves out blacklisted IDs.
  It refreshes the list in a background thread. `refresh()` reloads at once,
  and `close()`, or leaving a `with` block, stops the thread. If the first
  load fails it raises `CertificateCacheError`.
- `certs.fake` has test helpers. `FakeCertificateProvider` issues a
  certificate for `foo.bar.org` from a generated CA chain. `FakeCert` finds
  certificates by exact domain name.

### `kubeingress.problem`

`ProblemList` collects problems that are not fatal, so that work can go on
past them.

## Example

```python
from kubeingress.kube.config import insecure_config
from kubeingress.kube.adapter import Adapter

adapter = Adapter(
    insecure_config("http://localhost:8001"),
    "networking.k8s.io/v1",
    ["skipper"],
    "sg-placeholder",
    "ELBSecurityPolicy-2016-08",
    "application",
    ".cluster.local",
)
for ingress in adapter.list_resources():
    print(ingress, ingress.hostnames)
```

## What it does not do

This is a library, not a running controller:

- There is no command-line program and no polling loop.
- It creates no cloud load balancers, stacks or target groups.
- It does not watch pods for CNI targets.
- It serves no metrics.

Certificates come only from the providers you pass in. Apart from the fake
one, the package has no provider that lists certificates from a cloud
account.

## Installation and tests

```
pip install .[test]
pytest
```