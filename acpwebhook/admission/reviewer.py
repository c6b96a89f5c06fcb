"""
Policy-binding reviewer for Traefik ingresses.

For every admission request on an ingress served by Traefik, the reviewer
works out whether an access control policy gets bound, rebound or unbound,
keeps the binding quota in sync, provisions the policy's forward-auth
middleware and answers with a JSON patch replacing the ingress
annotations, or with no patch when nothing changes.
"""

import json
from typing import Dict, List, Optional, Protocol

from acpwebhook.admission.binding import (BindingTransition, PolicyBinding,
                                          TransitionKind, diff,
                                          quota_resource_id,
                                          rewrite_annotations)
from acpwebhook.admission.errors import (DecodeFailed, InvariantViolation,
                                         PolicyNotFound, ReviewError)
from acpwebhook.admission.ingclass import (CONTROLLER_TYPE_TRAEFIK,
                                           ClassResolver, is_ingress,
                                           resolve_controller)
from acpwebhook.admission.middlewares import (MiddlewareProvisioner,
                                              MiddlewareReference,
                                              middleware_reference)
from acpwebhook.admission.quota import QuotaLedger, Transaction
from acpwebhook.core.logging import (get_logger, get_logger_with_context,
                                     log_event)
from acpwebhook.core.metrics import review_duration, review_total
from acpwebhook.models.admission import AdmissionRequest
from acpwebhook.models.ingress import RoutingResource, decode_optional
from acpwebhook.models.policy import PolicyConfig


logger = get_logger(__name__)


class PolicyGetter(Protocol):
    def get_config(self, canonical_name: str) -> Optional[PolicyConfig]: ...


class PolicyBindingReviewer:
    """Reviews ingress admission requests that bind access control policies."""

    def __init__(
        self,
        ingress_classes: ClassResolver,
        policies: PolicyGetter,
        provisioner: MiddlewareProvisioner,
        ledger: QuotaLedger,
        controller_type: str = CONTROLLER_TYPE_TRAEFIK,
    ):
        self.ingress_classes = ingress_classes
        self.policies = policies
        self.provisioner = provisioner
        self.ledger = ledger
        self.controller_type = controller_type

    def serves(self, resource: RoutingResource) -> bool:
        """Whether resource is handled by the controller this reviewer serves."""
        return resolve_controller(resource, self.ingress_classes) == self.controller_type

    def can_review(self, request: AdmissionRequest) -> bool:
        """Whether review must be called for request."""
        if not is_ingress(request.kind):
            return False

        raw = request.current_object
        if raw is None:
            raise DecodeFailed("admission request carries no object")

        return self.serves(RoutingResource.from_object(raw, request.namespace))

    def review(self, request: AdmissionRequest) -> Optional[bytes]:
        """Review request and return a JSON patch, or None when nothing changes."""
        operation = request.operation.value if request.operation else "UNKNOWN"

        with review_duration.time():
            try:
                patch = self._review(request)
            except ReviewError:
                review_total.labels(operation=operation, result="denied").inc()
                raise

        result = "patched" if patch is not None else "unchanged"
        review_total.labels(operation=operation, result=result).inc()

        return patch

    def _review(self, request: AdmissionRequest) -> Optional[bytes]:
        prior = decode_optional(request.old_object, request.namespace)
        desired = decode_optional(request.object, request.namespace)
        current = desired or prior
        ingress = current.key if current else request.name

        log = get_logger_with_context(__name__, uid=request.uid, ingress=ingress)

        transition = diff(prior, desired)
        log.debug(
            f"Ingress {ingress}: {transition.kind.value} "
            f"(old={transition.old}, new={transition.new})"
        )

        transactions: List[Transaction] = []
        annotations = self._apply(transition, prior, desired, request.dry_run, transactions)

        open_txs = [tx.resource_id for tx in transactions if tx.is_open]
        if open_txs:
            raise InvariantViolation(f"quota transactions left open: {open_txs}")

        if desired is None or annotations == desired.annotations:
            return None

        log_event(
            log,
            "info",
            "ingress_patched",
            transition=transition.kind.value,
            dry_run=request.dry_run,
        )

        return json.dumps(
            [{"op": "replace", "path": "/metadata/annotations", "value": annotations}]
        ).encode()

    def _apply(
        self,
        transition: BindingTransition,
        prior: Optional[RoutingResource],
        desired: Optional[RoutingResource],
        dry_run: bool,
        transactions: List[Transaction],
    ) -> Optional[Dict[str, str]]:
        """Run the quota and provisioning work of transition, return new annotations."""
        kind = transition.kind

        if kind == TransitionKind.NO_CHANGE:
            if desired is None:
                return None
            if transition.new is None:
                return dict(desired.annotations)

            entry = middleware_reference(desired.namespace, transition.new).chain_entry
            return rewrite_annotations(desired.annotations, remove=[entry], append=entry)

        if kind == TransitionKind.UNBIND:
            if not dry_run:
                self._release(prior, transition.old, transactions)
            if desired is None:
                return None

            entry = middleware_reference(desired.namespace, transition.old).chain_entry
            return rewrite_annotations(desired.annotations, remove=[entry])

        remove = []
        if kind == TransitionKind.REBIND:
            # The release stands even if binding the new policy fails.
            if not dry_run:
                self._release(prior, transition.old, transactions)
            remove.append(middleware_reference(desired.namespace, transition.old).chain_entry)

        ref = self._bind(desired, transition.new, dry_run, transactions)
        return rewrite_annotations(desired.annotations, remove=remove, append=ref.chain_entry)

    def _bind(
        self,
        resource: RoutingResource,
        binding: PolicyBinding,
        dry_run: bool,
        transactions: List[Transaction],
    ) -> MiddlewareReference:
        if dry_run:
            self._policy_config(binding)
            return middleware_reference(resource.namespace, binding)

        if not resource.name:
            # generateName: the real name is assigned after admission
            logger.warning(
                f"Binding {binding.canonical_name} to an ingress without a name in "
                f"{resource.namespace}; its slot is only released after a restart"
            )

        # One slot per binding, however often the same request is reviewed
        tx = self.ledger.reserve(
            quota_resource_id(resource, binding), 1, per_resource_limit=1
        )
        transactions.append(tx)

        with tx:
            config = self._policy_config(binding)
            return self.provisioner.provision(resource.namespace, binding, config)

    def _release(
        self,
        resource: RoutingResource,
        binding: PolicyBinding,
        transactions: List[Transaction],
    ) -> None:
        tx = self.ledger.reserve(quota_resource_id(resource, binding), -1)
        transactions.append(tx)
        tx.commit()

    def _policy_config(self, binding: PolicyBinding) -> PolicyConfig:
        config = self.policies.get_config(binding.canonical_name)
        if config is None:
            raise PolicyNotFound(binding.canonical_name)
        return config
