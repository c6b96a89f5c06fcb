"""Admission-time binding of access control policies to ingresses."""
