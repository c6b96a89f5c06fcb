"""Admission webhook binding access control policies to Traefik ingresses."""

__version__ = "0.1.0"
