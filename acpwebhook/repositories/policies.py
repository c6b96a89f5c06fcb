"""AccessControlPolicy lookups against the Kubernetes API."""

from typing import Optional

from kubernetes import client
from kubernetes.client.exceptions import ApiException
from pydantic import ValidationError
from urllib3.exceptions import HTTPError

from acpwebhook.admission.binding import PolicyBinding
from acpwebhook.admission.errors import DecodeFailed, PolicyLookupFailed
from acpwebhook.core.logging import get_logger
from acpwebhook.models.policy import PolicyConfig

logger = get_logger(__name__)

POLICY_GROUP = "hub.traefik.io"
POLICY_VERSION = "v1alpha1"
POLICY_PLURAL = "accesscontrolpolicies"


class AccessControlPolicies:
    """Reads policy configurations from AccessControlPolicy resources."""

    def __init__(self, custom_api: client.CustomObjectsApi):
        self.api = custom_api

    def get_config(self, canonical_name: str) -> Optional[PolicyConfig]:
        """Configuration of the policy named ``name@namespace``, None if missing."""
        try:
            binding = PolicyBinding.parse(canonical_name)
        except DecodeFailed as e:
            raise PolicyLookupFailed(str(e)) from e
        if binding is None:
            raise PolicyLookupFailed("empty access control policy name")

        try:
            obj = self.api.get_namespaced_custom_object(
                POLICY_GROUP, POLICY_VERSION, binding.namespace, POLICY_PLURAL, binding.name
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise PolicyLookupFailed(
                f"get access control policy {canonical_name}: {e.reason}"
            ) from e
        except HTTPError as e:
            raise PolicyLookupFailed(
                f"get access control policy {canonical_name}: {e}"
            ) from e

        try:
            return PolicyConfig.from_spec(obj.get("spec") or {})
        except ValidationError as e:
            logger.error(f"Invalid access control policy {canonical_name}: {e}")
            raise PolicyLookupFailed(
                f"invalid access control policy {canonical_name}"
            ) from e
