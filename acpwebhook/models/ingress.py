"""Decoded view of the routing resource (Ingress) under review."""

import json
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from acpwebhook.admission.errors import DecodeFailed


class _ObjectMeta(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    namespace: str = ""
    annotations: Dict[str, str] = Field(default_factory=dict)

    @field_validator("name", "namespace", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("annotations", mode="before")
    @classmethod
    def none_to_dict(cls, v):
        return {} if v is None else v


class _IngressSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ingress_class_name: Optional[str] = Field(None, alias="ingressClassName")


class _IngressObject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    metadata: _ObjectMeta = Field(default_factory=_ObjectMeta)
    spec: Optional[_IngressSpec] = None


class RoutingResource(BaseModel):
    """The parts of an Ingress the admission controller reads."""

    name: str = ""
    namespace: str = ""
    annotations: Dict[str, str] = Field(default_factory=dict)
    ingress_class_name: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.name}@{self.namespace}"

    @classmethod
    def from_object(
        cls, raw: Union[Dict[str, Any], bytes, str], fallback_namespace: str = ""
    ) -> "RoutingResource":
        """
        Decode an Ingress object of any supported API version.

        The namespace is missing from objects submitted on creation; the
        request namespace is used instead.
        """
        try:
            if isinstance(raw, (bytes, str)):
                raw = json.loads(raw)
            obj = _IngressObject.model_validate(raw)
        except (ValueError, ValidationError) as e:
            raise DecodeFailed(f"invalid ingress object: {e}") from e

        return cls(
            name=obj.metadata.name,
            namespace=obj.metadata.namespace or fallback_namespace,
            annotations=dict(obj.metadata.annotations),
            ingress_class_name=obj.spec.ingress_class_name if obj.spec else None,
        )


def decode_optional(
    raw: Optional[Dict[str, Any]], fallback_namespace: str = ""
) -> Optional[RoutingResource]:
    """Decode an object that may be absent (create or delete requests)."""
    if raw is None:
        return None
    return RoutingResource.from_object(raw, fallback_namespace)
