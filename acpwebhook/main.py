"""Access control policy admission webhook."""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from kubernetes import client
from kubernetes.client.exceptions import ApiException
from prometheus_client import make_asgi_app
from urllib3.exceptions import HTTPError

from acpwebhook.admission.bootstrap import restore_bindings
from acpwebhook.admission.middlewares import MiddlewareProvisioner
from acpwebhook.admission.quota import QuotaLedger
from acpwebhook.admission.reviewer import PolicyBindingReviewer
from acpwebhook.api.endpoints import admission, health
from acpwebhook.api.middleware.logging import LoggingMiddleware
from acpwebhook.core.config import Environment, settings
from acpwebhook.core.kube import load_api_client
from acpwebhook.core.logging import get_logger, setup_logging
from acpwebhook.repositories import (AccessControlPolicies, IngressClasses,
                                     KubeMiddlewareClient)

setup_logging()
logger = get_logger(__name__)


def build_reviewer(api_client: client.ApiClient) -> PolicyBindingReviewer:
    """Wire the reviewer to the Kubernetes API."""
    custom_api = client.CustomObjectsApi(api_client)

    return PolicyBindingReviewer(
        ingress_classes=IngressClasses(client.NetworkingV1Api(api_client)),
        policies=AccessControlPolicies(custom_api),
        provisioner=MiddlewareProvisioner(
            KubeMiddlewareClient(custom_api), settings.auth_server_address
        ),
        ledger=QuotaLedger(settings.max_policy_bindings),
        controller_type=settings.controller_type,
    )


def restore_quota(reviewer: PolicyBindingReviewer, api_client: client.ApiClient) -> int:
    """Seed the quota ledger with the bindings already in the cluster."""
    networking = client.NetworkingV1Api(api_client)
    items = networking.list_ingress_for_all_namespaces().items

    ingresses = [api_client.sanitize_for_serialization(item) for item in items]
    return restore_bindings(reviewer.ledger, ingresses, reviewer.serves)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    logger.info(
        f"Starting {settings.app_name} v{settings.app_version}",
        extra={
            "environment": settings.environment.value,
            "max_policy_bindings": settings.max_policy_bindings,
        },
    )

    api_client = load_api_client(settings.kubeconfig)
    reviewer = build_reviewer(api_client)

    if settings.restore_quota_on_startup:
        try:
            restored = restore_quota(reviewer, api_client)
            logger.info(f"Restored {restored} policy bindings")
        except (ApiException, HTTPError) as e:
            logger.error(f"Quota restore failed: {e}")
            if settings.environment == Environment.PRODUCTION:
                raise

    app.state.reviewer = reviewer

    yield

    logger.info("Shutting down")
    api_client.close()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Binds access control policies to Traefik ingresses at admission time",
    lifespan=lifespan,
)

app.add_middleware(LoggingMiddleware)

app.include_router(health.router, tags=["health"])
app.include_router(admission.router, tags=["admission"])
app.mount("/metrics", make_asgi_app())


def run() -> None:
    uvicorn.run(
        "acpwebhook.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.value.lower(),
        ssl_certfile=settings.tls_cert_file,
        ssl_keyfile=settings.tls_key_file,
    )


if __name__ == "__main__":
    run()
