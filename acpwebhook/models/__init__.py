"""Data models package."""

from .admission import (AdmissionRequest, AdmissionReview, GroupVersionKind,
                        Operation, build_review_response)
from .ingress import RoutingResource, decode_optional
from .policy import (AuthKind, BasicAuthConfig, DigestAuthConfig, JWTConfig,
                     PolicyConfig)

__all__ = [
    # Admission
    "AdmissionReview",
    "AdmissionRequest",
    "GroupVersionKind",
    "Operation",
    "build_review_response",
    # Ingress
    "RoutingResource",
    "decode_optional",
    # Policies
    "AuthKind",
    "PolicyConfig",
    "JWTConfig",
    "BasicAuthConfig",
    "DigestAuthConfig",
]
