"""Repositories package for Kubernetes API access."""

from .ingress_classes import IngressClasses
from .middlewares import KubeMiddlewareClient
from .policies import AccessControlPolicies

__all__ = [
    "IngressClasses",
    "KubeMiddlewareClient",
    "AccessControlPolicies",
]
