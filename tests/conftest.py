"""Pytest configuration and shared fixtures for the admission webhook tests."""

import copy
import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from acpwebhook.admission.binding import (ANNOTATION_ACCESS_CONTROL_POLICY,
                                          ANNOTATION_ROUTER_MIDDLEWARES)
from acpwebhook.admission.errors import (ClassResolutionFailed, MiddlewareConflict,
                                         ProvisioningFailed)
from acpwebhook.admission.ingclass import CONTROLLER_TYPE_TRAEFIK
from acpwebhook.admission.middlewares import MiddlewareProvisioner
from acpwebhook.admission.quota import QuotaLedger
from acpwebhook.admission.reviewer import PolicyBindingReviewer
from acpwebhook.models.admission import AdmissionRequest
from acpwebhook.models.policy import (BasicAuthConfig, DigestAuthConfig,
                                      JWTConfig, PolicyConfig)

AUTH_SERVER = "http://auth-server.hub.svc"

INGRESS_V1 = {"group": "networking.k8s.io", "version": "v1", "kind": "Ingress"}

# ============================================================================
# Collaborator fakes
# ============================================================================


class FakeMiddlewareClient:
    """
    In-memory Middleware store recording every call.

    stale_reads makes the next N gets report the middleware missing, as if
    another review created it in between. conflicts maps an operation to
    the number of times it fails with MiddlewareConflict.
    """

    def __init__(self, *middlewares: Dict[str, Any], stale_reads: int = 0):
        self.objects: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str, str]] = []
        self.fail_on: set = set()
        self.conflicts: Dict[str, int] = {}
        self.stale_reads = stale_reads

        for middleware in middlewares:
            meta = middleware["metadata"]
            self.objects[(meta["namespace"], meta["name"])] = copy.deepcopy(middleware)

    def _record(self, op: str, namespace: str, name: str) -> None:
        self.calls.append((op, namespace, name))
        if op in self.fail_on:
            raise ProvisioningFailed(f"{op} middleware {namespace}/{name}: boom")
        if self.conflicts.get(op):
            self.conflicts[op] -= 1
            raise MiddlewareConflict(f"{op} middleware {namespace}/{name}: Conflict")

    def get(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        self._record("get", namespace, name)
        if self.stale_reads:
            self.stale_reads -= 1
            return None
        obj = self.objects.get((namespace, name))
        return copy.deepcopy(obj) if obj is not None else None

    def create(self, namespace: str, body: Dict[str, Any]) -> Dict[str, Any]:
        name = body["metadata"]["name"]
        self._record("create", namespace, name)
        if (namespace, name) in self.objects:
            raise MiddlewareConflict(f"middleware {namespace}/{name} already exists")
        self.objects[(namespace, name)] = copy.deepcopy(body)
        return body

    def update(self, namespace: str, name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        self._record("update", namespace, name)
        self.objects[(namespace, name)] = copy.deepcopy(body)
        return body

    def writes(self) -> List[Tuple[str, str, str]]:
        return [call for call in self.calls if call[0] in ("create", "update")]


class FakePolicies:
    """Policy getter serving configurations from a dict or a callable."""

    def __init__(self, configs):
        self.configs = configs
        self.calls: List[str] = []

    def get_config(self, canonical_name: str) -> Optional[PolicyConfig]:
        self.calls.append(canonical_name)
        if callable(self.configs):
            return self.configs(canonical_name)
        return self.configs.get(canonical_name)


class FakeIngressClasses:
    """Ingress class resolver with fixed answers."""

    def __init__(
        self,
        controllers: Optional[Dict[str, str]] = None,
        default: str = CONTROLLER_TYPE_TRAEFIK,
        error: Optional[str] = None,
    ):
        self.controllers = controllers or {}
        self.default = default
        self.error = error

    def get_controller(self, name: str) -> str:
        return self.controllers.get(name, "nope")

    def get_default_controller(self) -> str:
        if self.error:
            raise ClassResolutionFailed(self.error)
        return self.default


# ============================================================================
# Policy Fixtures
# ============================================================================


@pytest.fixture
def jwt_policy():
    """JWT policy forwarding one claim as a header."""
    return PolicyConfig(jwt=JWTConfig(forward_headers={"fwdHeader": "claim"}))


@pytest.fixture
def basic_policy():
    """Basic auth policy forwarding the username and stripping credentials."""
    return PolicyConfig(
        basic_auth=BasicAuthConfig(
            strip_authorization_header=True, forward_username_header="User"
        )
    )


@pytest.fixture
def digest_policy():
    """Digest auth policy forwarding the username and stripping credentials."""
    return PolicyConfig(
        digest_auth=DigestAuthConfig(
            strip_authorization_header=True, forward_username_header="User"
        )
    )


# ============================================================================
# Reviewer Fixtures
# ============================================================================


@pytest.fixture
def ledger():
    """Ledger with room to spare."""
    return QuotaLedger(999)


@pytest.fixture
def middleware_client():
    return FakeMiddlewareClient()


@pytest.fixture
def policies(jwt_policy):
    """Every policy resolves to the JWT policy."""
    return FakePolicies(lambda canonical_name: jwt_policy)


@pytest.fixture
def ingress_classes():
    return FakeIngressClasses()


@pytest.fixture
def provisioner(middleware_client):
    return MiddlewareProvisioner(middleware_client, AUTH_SERVER)


@pytest.fixture
def make_reviewer(ingress_classes, policies, middleware_client):
    """Factory building a reviewer around the given collaborators."""

    def _make(
        ledger: Optional[QuotaLedger] = None,
        policies_=None,
        middlewares=None,
        classes=None,
    ) -> PolicyBindingReviewer:
        return PolicyBindingReviewer(
            ingress_classes=classes or ingress_classes,
            policies=policies_ or policies,
            provisioner=MiddlewareProvisioner(middlewares or middleware_client, AUTH_SERVER),
            ledger=ledger if ledger is not None else QuotaLedger(999),
        )

    return _make


@pytest.fixture
def reviewer(make_reviewer, ledger):
    return make_reviewer(ledger=ledger)


# ============================================================================
# Admission Fixtures
# ============================================================================


@pytest.fixture
def make_ingress() -> Callable[..., Dict[str, Any]]:
    """Factory for networking.k8s.io/v1 Ingress objects."""

    def _make(
        annotations: Optional[Dict[str, str]] = None,
        name: str = "name",
        namespace: str = "test",
        ingress_class_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        obj: Dict[str, Any] = {
            "apiVersion": "networking.k8s.io/v1",
            "kind": "Ingress",
            "metadata": {"name": name, "namespace": namespace},
            "spec": {},
        }
        if annotations is not None:
            obj["metadata"]["annotations"] = dict(annotations)
        if ingress_class_name is not None:
            obj["spec"]["ingressClassName"] = ingress_class_name
        return obj

    return _make


@pytest.fixture
def make_request() -> Callable[..., AdmissionRequest]:
    """Factory for admission requests on ingresses."""

    def _make(
        obj: Optional[Dict[str, Any]] = None,
        old: Optional[Dict[str, Any]] = None,
        operation: Optional[str] = None,
        kind: Optional[Dict[str, str]] = None,
        dry_run: bool = False,
    ) -> AdmissionRequest:
        if operation is None:
            if old is None:
                operation = "CREATE"
            elif obj is None:
                operation = "DELETE"
            else:
                operation = "UPDATE"

        current = obj if obj is not None else old or {}
        meta = current.get("metadata", {})

        return AdmissionRequest.model_validate(
            {
                "uid": "705ab4f5-6393-11e8-b7cc-42010a800002",
                "kind": kind or INGRESS_V1,
                "namespace": meta.get("namespace", ""),
                "name": meta.get("name", ""),
                "operation": operation,
                "object": obj,
                "oldObject": old,
                "dryRun": dry_run,
            }
        )

    return _make


@pytest.fixture
def bound_annotations():
    """Factory for annotation maps binding a policy."""

    def _make(policy: str, chain: Optional[str] = None, **extra: str) -> Dict[str, str]:
        annotations = {ANNOTATION_ACCESS_CONTROL_POLICY: policy}
        if chain is not None:
            annotations[ANNOTATION_ROUTER_MIDDLEWARES] = chain
        annotations.update(extra)
        return annotations

    return _make


def decode_patch(patch: bytes) -> List[Dict[str, Any]]:
    """Decode a JSON patch returned by the reviewer."""
    return json.loads(patch)


@pytest.fixture
def patched_annotations():
    """Extract the annotation map from a single-operation reviewer patch."""

    def _extract(patch: bytes) -> Dict[str, str]:
        operations = decode_patch(patch)
        assert len(operations) == 1
        assert operations[0]["op"] == "replace"
        assert operations[0]["path"] == "/metadata/annotations"
        return operations[0]["value"]

    return _extract
