"""Forward-auth middleware provisioning for bound policies."""

import copy
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from acpwebhook.admission.binding import PolicyBinding
from acpwebhook.admission.errors import MiddlewareConflict
from acpwebhook.core.logging import get_logger, log_event
from acpwebhook.core.metrics import middleware_writes
from acpwebhook.models.policy import AuthKind, PolicyConfig

logger = get_logger(__name__)

MIDDLEWARE_API_VERSION = "traefik.containo.us/v1alpha1"
MIDDLEWARE_PROVIDER = "kubernetescrd"
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY = "acp-admission-webhook"
AUTHORIZATION_HEADER = "Authorization"

# Get-then-write rounds before a concurrent change is reported
WRITE_ATTEMPTS = 3


@dataclass(frozen=True)
class MiddlewareReference:
    """Where a policy's middleware lives and how routers refer to it."""

    name: str
    namespace: str

    @property
    def chain_entry(self) -> str:
        return f"{self.namespace}-{self.name}@{MIDDLEWARE_PROVIDER}"


def middleware_reference(ingress_namespace: str, binding: PolicyBinding) -> MiddlewareReference:
    """Deterministic middleware reference for a policy bound in a namespace."""
    return MiddlewareReference(
        name=f"zz-{binding.name}-{binding.namespace}",
        namespace=ingress_namespace,
    )


def headers_to_forward(config: PolicyConfig) -> Optional[List[str]]:
    """
    Response headers the forward-auth middleware copies to the upstream.

    Returns None for policies whose kind has no forward-auth middleware.
    """
    kind = config.kind

    if kind == AuthKind.JWT:
        headers = sorted(config.jwt.forward_headers)
        strip = config.jwt.strip_authorization_header
    elif kind == AuthKind.BASIC or kind == AuthKind.DIGEST:
        block = config.basic_auth if kind == AuthKind.BASIC else config.digest_auth
        headers = [block.forward_username_header] if block.forward_username_header else []
        strip = block.strip_authorization_header
    elif kind == AuthKind.UNKNOWN:
        return None
    else:
        raise ValueError(f"unhandled auth kind: {kind}")

    if strip and AUTHORIZATION_HEADER not in headers:
        headers.append(AUTHORIZATION_HEADER)

    return headers


class MiddlewareClient(Protocol):
    """Namespaced access to Middleware resources."""

    def get(self, namespace: str, name: str) -> Optional[Dict[str, Any]]: ...

    def create(self, namespace: str, body: Dict[str, Any]) -> Dict[str, Any]: ...

    def update(self, namespace: str, name: str, body: Dict[str, Any]) -> Dict[str, Any]: ...


class MiddlewareProvisioner:
    """Creates or updates the forward-auth middleware of a bound policy."""

    def __init__(self, client: MiddlewareClient, auth_server_address: str):
        self.client = client
        self.auth_server_address = auth_server_address.rstrip("/")

    def provision(
        self, ingress_namespace: str, binding: PolicyBinding, config: PolicyConfig
    ) -> MiddlewareReference:
        """
        Upsert the middleware for binding and return its reference.

        Only the forward-auth address and response headers are owned here;
        any other field of an existing middleware is preserved. Policies of
        an unknown kind get no middleware, but still get a reference.
        """
        ref = middleware_reference(ingress_namespace, binding)

        headers = headers_to_forward(config)
        if headers is None:
            logger.warning(
                f"Policy {binding.canonical_name} has no supported authentication "
                f"method, no middleware provisioned for {ref.namespace}/{ref.name}"
            )
            return ref

        address = f"{self.auth_server_address}/{binding.canonical_name}"

        for attempt in range(1, WRITE_ATTEMPTS + 1):
            try:
                self._upsert(ref, binding, address, headers)
                return ref
            except MiddlewareConflict as e:
                if attempt == WRITE_ATTEMPTS:
                    raise
                logger.info(
                    f"Middleware {ref.namespace}/{ref.name} changed concurrently, "
                    f"retrying ({attempt}/{WRITE_ATTEMPTS}): {e}"
                )

        return ref

    def _upsert(
        self,
        ref: MiddlewareReference,
        binding: PolicyBinding,
        address: str,
        headers: List[str],
    ) -> None:
        existing = self.client.get(ref.namespace, ref.name)
        if existing is None:
            self.client.create(ref.namespace, self._new_middleware(ref, address, headers))
            middleware_writes.labels(action="create").inc()
            log_event(
                logger,
                "info",
                "middleware_created",
                middleware=f"{ref.namespace}/{ref.name}",
                policy=binding.canonical_name,
            )
            return

        updated = copy.deepcopy(existing)
        spec = updated.get("spec") or {}
        forward_auth = spec.get("forwardAuth") or {}
        forward_auth["address"] = address
        forward_auth["authResponseHeaders"] = headers
        spec["forwardAuth"] = forward_auth
        updated["spec"] = spec

        if updated == existing:
            logger.debug(f"Middleware {ref.namespace}/{ref.name} is up to date")
            return

        self.client.update(ref.namespace, ref.name, updated)
        middleware_writes.labels(action="update").inc()
        log_event(
            logger,
            "info",
            "middleware_updated",
            middleware=f"{ref.namespace}/{ref.name}",
            policy=binding.canonical_name,
        )

    def _new_middleware(
        self, ref: MiddlewareReference, address: str, headers: List[str]
    ) -> Dict[str, Any]:
        return {
            "apiVersion": MIDDLEWARE_API_VERSION,
            "kind": "Middleware",
            "metadata": {
                "name": ref.name,
                "namespace": ref.namespace,
                "labels": {MANAGED_BY_LABEL: MANAGED_BY},
            },
            "spec": {
                "forwardAuth": {
                    "address": address,
                    "authResponseHeaders": headers,
                },
            },
        }
