"""Kubernetes client bootstrap."""

from typing import Optional

from kubernetes import client, config

from acpwebhook.core.logging import get_logger

logger = get_logger(__name__)


def load_api_client(kubeconfig: Optional[str] = None) -> client.ApiClient:
    """Load in-cluster config, falling back to a kubeconfig file."""
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except config.ConfigException:
        config.load_kube_config(config_file=kubeconfig)
        logger.info("Loaded local Kubernetes config")

    return client.ApiClient()
