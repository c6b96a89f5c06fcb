"""AdmissionReview envelope models (admission.k8s.io/v1)."""

import base64
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from acpwebhook.admission.errors import DecodeFailed


class Operation(str, Enum):
    """Admission operations."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CONNECT = "CONNECT"


class GroupVersionKind(BaseModel):
    """Fully qualified kind of the reviewed object."""

    group: str = ""
    version: str = ""
    kind: str = ""


class AdmissionRequest(BaseModel):
    """The request half of an AdmissionReview."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    uid: str = ""
    kind: GroupVersionKind = Field(default_factory=GroupVersionKind)
    namespace: str = ""
    name: str = ""
    operation: Optional[Operation] = None
    object: Optional[Dict[str, Any]] = None
    old_object: Optional[Dict[str, Any]] = Field(None, alias="oldObject")
    dry_run: bool = Field(False, alias="dryRun")

    @property
    def current_object(self) -> Optional[Dict[str, Any]]:
        """Desired object, or the prior one when the object is being deleted."""
        if self.object is not None:
            return self.object
        return self.old_object


class AdmissionReview(BaseModel):
    """AdmissionReview as posted by the API server."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    api_version: str = Field("admission.k8s.io/v1", alias="apiVersion")
    kind: str = "AdmissionReview"
    request: Optional[AdmissionRequest] = None

    @classmethod
    def parse(cls, payload: Any) -> "AdmissionReview":
        """Parse an AdmissionReview payload, raising DecodeFailed if malformed."""
        try:
            if isinstance(payload, (bytes, str)):
                return cls.model_validate_json(payload)
            return cls.model_validate(payload)
        except ValidationError as e:
            raise DecodeFailed(f"invalid admission review: {e}") from e


def build_review_response(
    uid: str,
    allowed: bool = True,
    patch: Optional[bytes] = None,
    code: Optional[int] = None,
    message: Optional[str] = None,
    api_version: str = "admission.k8s.io/v1",
) -> Dict[str, Any]:
    """Build the AdmissionReview answer for a request uid."""
    response: Dict[str, Any] = {"uid": uid, "allowed": allowed}

    if patch is not None:
        response["patchType"] = "JSONPatch"
        response["patch"] = base64.b64encode(patch).decode()

    if code is not None or message is not None:
        status: Dict[str, Any] = {}
        if code is not None:
            status["code"] = code
        if message is not None:
            status["message"] = message
        response["status"] = status

    return {
        "apiVersion": api_version,
        "kind": "AdmissionReview",
        "response": response,
    }
