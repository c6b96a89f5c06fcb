"""Resource kind and ingress class gating."""

from typing import Protocol

from acpwebhook.models.admission import GroupVersionKind
from acpwebhook.models.ingress import RoutingResource

CONTROLLER_TYPE_TRAEFIK = "traefik.io/ingress-controller"
ANNOTATION_INGRESS_CLASS = "kubernetes.io/ingress.class"

# Legacy class annotation value that always designates Traefik
DEFAULT_ANNOTATION_TRAEFIK = "traefik"

INGRESS_KINDS = frozenset(
    {
        ("networking.k8s.io", "v1", "Ingress"),
        ("networking.k8s.io", "v1beta1", "Ingress"),
        ("extensions", "v1beta1", "Ingress"),
    }
)


class ClassResolver(Protocol):
    """Maps ingress class names to controller types."""

    def get_controller(self, name: str) -> str:
        """Controller of the named class, "" when the class is unknown."""
        ...

    def get_default_controller(self) -> str:
        """Controller of the cluster's default class, "" when there is none."""
        ...


def is_ingress(kind: GroupVersionKind) -> bool:
    return (kind.group, kind.version, kind.kind) in INGRESS_KINDS


def resolve_controller(resource: RoutingResource, classes: ClassResolver) -> str:
    """
    Controller type responsible for resource.

    spec.ingressClassName wins over the legacy annotation; the cluster's
    default class applies when neither is set.
    """
    if resource.ingress_class_name:
        return classes.get_controller(resource.ingress_class_name)

    annotation = resource.annotations.get(ANNOTATION_INGRESS_CLASS, "")
    if annotation == DEFAULT_ANNOTATION_TRAEFIK:
        return CONTROLLER_TYPE_TRAEFIK
    if annotation:
        return classes.get_controller(annotation)

    return classes.get_default_controller()
