"""Configuration management for the access-control policy admission webhook."""

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Application settings, read from the environment or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "ACP Admission Webhook"
    app_version: str = "0.1.0"
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False

    # Webhook
    webhook_path: str = "/mutate"
    auth_server_address: str = "http://hub-agent-auth-server.hub.svc.cluster.local"
    controller_type: str = "traefik.io/ingress-controller"

    # Quota
    max_policy_bindings: int = 999
    restore_quota_on_startup: bool = True

    # Kubernetes
    kubeconfig: Optional[str] = None

    # Logging
    log_level: LogLevel = LogLevel.INFO
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_json: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8443
    tls_cert_file: Optional[str] = None
    tls_key_file: Optional[str] = None

    # Health Check
    health_check_path: str = "/health"
    readiness_check_path: str = "/ready"

    @field_validator("max_policy_bindings")
    @classmethod
    def check_capacity(cls, v):
        """Reject a negative ledger capacity."""
        if v < 0:
            raise ValueError("max_policy_bindings must be >= 0")
        return v

    @field_validator("auth_server_address", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        """Normalize the forward-auth base address."""
        if isinstance(v, str):
            return v.rstrip("/")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience function for getting settings
settings = get_settings()
