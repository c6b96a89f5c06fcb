"""IngressClass lookups against the Kubernetes API."""

from kubernetes import client
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from acpwebhook.admission.errors import ClassResolutionFailed
from acpwebhook.core.logging import get_logger

logger = get_logger(__name__)

ANNOTATION_DEFAULT_INGRESS_CLASS = "ingressclass.kubernetes.io/is-default-class"


class IngressClasses:
    """Resolves ingress class names to controller types."""

    def __init__(self, networking_api: client.NetworkingV1Api):
        self.api = networking_api

    def get_controller(self, name: str) -> str:
        try:
            ingress_class = self.api.read_ingress_class(name)
        except ApiException as e:
            if e.status == 404:
                logger.debug(f"IngressClass {name} not found")
                return ""
            raise ClassResolutionFailed(f"get ingress class {name}: {e.reason}") from e
        except HTTPError as e:
            raise ClassResolutionFailed(f"get ingress class {name}: {e}") from e

        return (ingress_class.spec.controller if ingress_class.spec else None) or ""

    def get_default_controller(self) -> str:
        try:
            ingress_classes = self.api.list_ingress_class().items
        except ApiException as e:
            raise ClassResolutionFailed(f"list ingress classes: {e.reason}") from e
        except HTTPError as e:
            raise ClassResolutionFailed(f"list ingress classes: {e}") from e

        defaults = [
            ic
            for ic in ingress_classes
            if (ic.metadata.annotations or {}).get(ANNOTATION_DEFAULT_INGRESS_CLASS)
            == "true"
        ]

        if not defaults:
            return ""
        if len(defaults) > 1:
            names = ", ".join(sorted(ic.metadata.name for ic in defaults))
            raise ClassResolutionFailed(f"multiple default ingress classes: {names}")

        spec = defaults[0].spec
        return (spec.controller if spec else None) or ""
