"""Mutating admission webhook endpoint."""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status

from acpwebhook.admission.errors import DecodeFailed, QuotaExceeded, ReviewError
from acpwebhook.admission.reviewer import PolicyBindingReviewer
from acpwebhook.core.config import settings
from acpwebhook.core.logging import get_logger_with_context
from acpwebhook.models.admission import AdmissionReview, build_review_response

router = APIRouter()


def get_reviewer(request: Request) -> PolicyBindingReviewer:
    """Reviewer built at startup."""
    return request.app.state.reviewer


@router.post(settings.webhook_path)
def mutate(
    payload: Dict[str, Any] = Body(...),
    reviewer: PolicyBindingReviewer = Depends(get_reviewer),
) -> Dict[str, Any]:
    """
    Review an AdmissionReview and answer with an optional annotation patch.

    Requests on objects this controller does not serve are allowed
    unchanged. Review errors deny the request; quota denials use code 429
    so operators can tell them apart from other failures.
    """
    try:
        review = AdmissionReview.parse(payload)
    except DecodeFailed as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if review.request is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="admission review has no request",
        )

    req = review.request
    log = get_logger_with_context(__name__, uid=req.uid)

    try:
        if not reviewer.can_review(req):
            return build_review_response(req.uid, api_version=review.api_version)

        patch = reviewer.review(req)

    except QuotaExceeded as e:
        log.warning(f"Denied {req.namespace}/{req.name}: {e}")
        return build_review_response(
            req.uid,
            allowed=False,
            code=status.HTTP_429_TOO_MANY_REQUESTS,
            message=str(e),
            api_version=review.api_version,
        )

    except ReviewError as e:
        log.error(f"Denied {req.namespace}/{req.name}: {e}")
        return build_review_response(
            req.uid,
            allowed=False,
            code=status.HTTP_403_FORBIDDEN,
            message=str(e),
            api_version=review.api_version,
        )

    return build_review_response(req.uid, patch=patch, api_version=review.api_version)
