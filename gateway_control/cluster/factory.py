"""Kubernetes API client factory.

Prefers in-cluster configuration (service account token mounted into the
pod) and falls back to a local kubeconfig for development.
"""

from typing import Optional

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

from gateway_control.logging import get_component_logger
from gateway_control.protocols import LoggerProtocol


class KubernetesClientFactory:
    """Creates configured kubernetes.client.ApiClient instances."""

    def __init__(
        self,
        kubeconfig_path: Optional[str] = None,
        context: Optional[str] = None,
        logger: Optional[LoggerProtocol] = None,
    ):
        """Initialize factory.

        Args:
            kubeconfig_path: Kubeconfig file for out-of-cluster use (default: ~/.kube/config)
            context: Kubeconfig context name (default: current context)
            logger: Logger for DI (uses context logger if not provided)
        """
        self._kubeconfig_path = kubeconfig_path
        self._context = context
        self._logger = get_component_logger("KubernetesClientFactory", logger)

    def create_api_client(self) -> client.ApiClient:
        """Load configuration and return a new ApiClient."""
        configuration = client.Configuration()
        try:
            config.load_incluster_config(client_configuration=configuration)
            mode = "in_cluster"
        except ConfigException:
            config.load_kube_config(
                config_file=self._kubeconfig_path,
                context=self._context,
                client_configuration=configuration,
            )
            mode = "kubeconfig"

        self._logger.info("kubernetes_client_configured", mode=mode, host=configuration.host)
        return client.ApiClient(configuration=configuration)


__all__ = ["KubernetesClientFactory"]
