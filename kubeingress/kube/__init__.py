"""Kubernetes API access for ingresses, route groups and config maps."""