"""Kubernetes ingress discovery and TLS certificate matching for cloud load balancers."""

__version__ = "0.1.0"