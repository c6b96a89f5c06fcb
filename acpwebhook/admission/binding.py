"""
Policy binding diff engine.

Derives the binding transition between the prior and desired state of an
ingress and rewrites its router middleware chain accordingly. Everything in
this module is pure: no I/O, no shared state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

from acpwebhook.admission.errors import DecodeFailed
from acpwebhook.models.ingress import RoutingResource

ANNOTATION_ACCESS_CONTROL_POLICY = "hub.traefik.io/access-control-policy"
ANNOTATION_ROUTER_MIDDLEWARES = "traefik.ingress.kubernetes.io/router.middlewares"


@dataclass(frozen=True)
class PolicyBinding:
    """An access control policy referenced by an ingress."""

    name: str
    namespace: str

    @property
    def canonical_name(self) -> str:
        return f"{self.name}@{self.namespace}"

    @classmethod
    def parse(cls, value: str, default_namespace: str = "") -> Optional["PolicyBinding"]:
        """
        Parse ``name@namespace``; a bare ``name`` binds in default_namespace.

        Returns None for an empty value.
        """
        value = value.strip()
        if not value:
            return None

        name, sep, namespace = value.partition("@")
        if not sep:
            namespace = default_namespace

        if not name or not namespace or "@" in namespace:
            raise DecodeFailed(f"invalid access control policy reference {value!r}")

        return cls(name=name, namespace=namespace)


class TransitionKind(str, Enum):
    NO_CHANGE = "NoChange"
    BIND = "Bind"
    REBIND = "Rebind"
    UNBIND = "Unbind"


@dataclass(frozen=True)
class BindingTransition:
    """Structural change of an ingress's policy binding."""

    kind: TransitionKind
    old: Optional[PolicyBinding] = None
    new: Optional[PolicyBinding] = None


def binding_of(resource: Optional[RoutingResource]) -> Optional[PolicyBinding]:
    """Policy bound to a resource, if any."""
    if resource is None:
        return None

    value = resource.annotations.get(ANNOTATION_ACCESS_CONTROL_POLICY, "")
    return PolicyBinding.parse(value, resource.namespace)


def diff(
    prior: Optional[RoutingResource], desired: Optional[RoutingResource]
) -> BindingTransition:
    """Compute the binding transition from prior to desired state."""
    old = binding_of(prior)
    new = binding_of(desired)

    if old == new:
        return BindingTransition(TransitionKind.NO_CHANGE, old=old, new=new)
    if old is None:
        return BindingTransition(TransitionKind.BIND, new=new)
    if new is None:
        return BindingTransition(TransitionKind.UNBIND, old=old)

    return BindingTransition(TransitionKind.REBIND, old=old, new=new)


def quota_resource_id(resource: RoutingResource, binding: PolicyBinding) -> str:
    """Ledger key of one ingress's binding to one policy."""
    return f"{resource.key}:{binding.canonical_name}"


def split_chain(value: str) -> List[str]:
    """
    Split a middleware chain annotation into its entries.

    Entries keep their original text, surrounding whitespace included;
    empty entries are dropped.
    """
    return [entry for entry in value.split(",") if entry.strip()]


def rewrite_chain(
    entries: List[str], remove: Iterable[str], append: Optional[str] = None
) -> List[str]:
    """
    Drop the entries in remove and append one entry at the tail.

    Entries are matched ignoring surrounding whitespace. The remaining
    entries keep their relative order and their original text.
    """
    dropped = {entry.strip() for entry in remove}
    if append:
        dropped.add(append)

    result = [entry for entry in entries if entry.strip() not in dropped]
    if append:
        result.append(append)

    return result


def rewrite_annotations(
    annotations: Dict[str, str],
    remove: Iterable[str] = (),
    append: Optional[str] = None,
) -> Dict[str, str]:
    """
    Return a copy of annotations with the middleware chain rewritten.

    All other annotations are copied unchanged. The chain annotation itself
    is left untouched when its entries do not change, and removed when it
    ends up empty.
    """
    result = dict(annotations)

    current = split_chain(annotations.get(ANNOTATION_ROUTER_MIDDLEWARES, ""))
    chain = rewrite_chain(current, remove, append)
    if [entry.strip() for entry in chain] == [entry.strip() for entry in current]:
        return result

    if chain:
        result[ANNOTATION_ROUTER_MIDDLEWARES] = ",".join(chain)
    else:
        result.pop(ANNOTATION_ROUTER_MIDDLEWARES, None)

    return result
