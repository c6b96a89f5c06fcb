"""Access control policy configuration.

A policy carries exactly one authentication block. Only the fields needed
to shape the forward-auth middleware are modelled; everything else is kept
verbatim as extra data.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuthKind(str, Enum):
    """Authentication method of a policy."""

    JWT = "jwt"
    BASIC = "basicAuth"
    DIGEST = "digestAuth"
    UNKNOWN = "unknown"


class _AuthConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    strip_authorization_header: bool = Field(False, alias="stripAuthorizationHeader")


class JWTConfig(_AuthConfig):
    """JWT policy block."""

    forward_headers: Dict[str, str] = Field(default_factory=dict, alias="forwardHeaders")

    @field_validator("forward_headers", mode="before")
    @classmethod
    def none_to_dict(cls, v):
        return {} if v is None else v


class _CredentialsConfig(_AuthConfig):
    forward_username_header: str = Field("", alias="forwardUsernameHeader")

    @field_validator("forward_username_header", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v


class BasicAuthConfig(_CredentialsConfig):
    """Basic authentication policy block."""


class DigestAuthConfig(_CredentialsConfig):
    """Digest authentication policy block."""


class PolicyConfig(BaseModel):
    """Configuration of one access control policy."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    jwt: Optional[JWTConfig] = None
    basic_auth: Optional[BasicAuthConfig] = Field(None, alias="basicAuth")
    digest_auth: Optional[DigestAuthConfig] = Field(None, alias="digestAuth")

    @property
    def kind(self) -> AuthKind:
        if self.jwt is not None:
            return AuthKind.JWT
        if self.basic_auth is not None:
            return AuthKind.BASIC
        if self.digest_auth is not None:
            return AuthKind.DIGEST
        return AuthKind.UNKNOWN

    @classmethod
    def from_spec(cls, spec: Dict[str, Any]) -> "PolicyConfig":
        return cls.model_validate(spec or {})
