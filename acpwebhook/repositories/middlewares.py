"""Middleware custom resources through the Kubernetes API."""

from typing import Any, Dict, Optional

from kubernetes import client
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from acpwebhook.admission.errors import MiddlewareConflict, ProvisioningFailed

MIDDLEWARE_GROUP = "traefik.containo.us"
MIDDLEWARE_VERSION = "v1alpha1"
MIDDLEWARE_PLURAL = "middlewares"


def _write_error(action: str, namespace: str, name: str, e: ApiException) -> ProvisioningFailed:
    message = f"{action} middleware {namespace}/{name}: {e.reason}"
    if e.status == 409:
        return MiddlewareConflict(message)
    return ProvisioningFailed(message)


class KubeMiddlewareClient:
    """Get, create and replace Middleware objects in a namespace."""

    def __init__(self, custom_api: client.CustomObjectsApi):
        self.api = custom_api

    def get(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        try:
            return self.api.get_namespaced_custom_object(
                MIDDLEWARE_GROUP, MIDDLEWARE_VERSION, namespace, MIDDLEWARE_PLURAL, name
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise ProvisioningFailed(f"get middleware {namespace}/{name}: {e.reason}") from e
        except HTTPError as e:
            raise ProvisioningFailed(f"get middleware {namespace}/{name}: {e}") from e

    def create(self, namespace: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Create a middleware; MiddlewareConflict when it already exists."""
        name = body["metadata"]["name"]
        try:
            return self.api.create_namespaced_custom_object(
                MIDDLEWARE_GROUP, MIDDLEWARE_VERSION, namespace, MIDDLEWARE_PLURAL, body
            )
        except ApiException as e:
            raise _write_error("create", namespace, name, e) from e
        except HTTPError as e:
            raise ProvisioningFailed(f"create middleware {namespace}/{name}: {e}") from e

    def update(self, namespace: str, name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Replace a middleware; MiddlewareConflict when body is out of date."""
        try:
            return self.api.replace_namespaced_custom_object(
                MIDDLEWARE_GROUP, MIDDLEWARE_VERSION, namespace, MIDDLEWARE_PLURAL, name, body
            )
        except ApiException as e:
            raise _write_error("update", namespace, name, e) from e
        except HTTPError as e:
            raise ProvisioningFailed(f"update middleware {namespace}/{name}: {e}") from e
