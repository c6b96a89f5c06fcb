"""Exceptions raised while reviewing admission requests."""


class ReviewError(Exception):
    """Base exception for errors that deny the reviewed mutation."""


class DecodeFailed(ReviewError):
    """The admission payload or the object under review is malformed."""


class ClassResolutionFailed(ReviewError):
    """The effective ingress class controller could not be resolved."""


class QuotaExceeded(ReviewError):
    """Binding the policy would exceed the global binding capacity."""

    def __init__(self, resource_id: str, used: int, capacity: int):
        self.resource_id = resource_id
        self.used = used
        self.capacity = capacity
        super().__init__(
            f"quota exceeded: cannot bind {resource_id}, "
            f"{used}/{capacity} access control policy bindings in use"
        )


class PolicyNotFound(ReviewError):
    """The bound access control policy does not exist."""

    def __init__(self, canonical_name: str):
        self.canonical_name = canonical_name
        super().__init__(f"access control policy {canonical_name!r} not found")


class PolicyLookupFailed(ReviewError):
    """The access control policy could not be fetched."""


class ProvisioningFailed(ReviewError):
    """Reading or writing the forward-auth middleware failed."""


class MiddlewareConflict(ProvisioningFailed):
    """The middleware was created or changed concurrently (HTTP 409)."""


class InvariantViolation(RuntimeError):
    """A quota transaction was misused; this is a bug, not a user error."""
