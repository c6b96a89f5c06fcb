"""Rebuild the binding quota from the ingresses already in the cluster."""

from typing import Any, Callable, Dict, Iterable

from acpwebhook.admission.binding import binding_of, quota_resource_id
from acpwebhook.admission.errors import QuotaExceeded, ReviewError
from acpwebhook.admission.quota import QuotaLedger
from acpwebhook.core.logging import get_logger, log_event
from acpwebhook.models.ingress import RoutingResource

logger = get_logger(__name__)


def restore_bindings(
    ledger: QuotaLedger,
    ingresses: Iterable[Dict[str, Any]],
    serves: Callable[[RoutingResource], bool],
) -> int:
    """
    Reserve one slot per existing policy binding; return how many were restored.

    Ingresses that cannot be decoded, are not served by this controller or
    do not fit in the quota are skipped and logged.
    """
    restored = 0
    skipped = 0

    for raw in ingresses:
        try:
            resource = RoutingResource.from_object(raw)
            binding = binding_of(resource)
            if binding is None or not serves(resource):
                continue

            ledger.reserve(
                quota_resource_id(resource, binding), 1, per_resource_limit=1
            ).commit()
            restored += 1
        except QuotaExceeded as e:
            skipped += 1
            logger.warning(f"Binding not restored: {e}")
        except ReviewError as e:
            skipped += 1
            logger.warning(f"Ingress skipped while restoring quota: {e}")

    log_event(
        logger,
        "info",
        "quota_restored",
        restored=restored,
        skipped=skipped,
        used=ledger.used,
        capacity=ledger.capacity,
    )

    return restored
