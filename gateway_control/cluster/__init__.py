"""Cluster access - Kubernetes client wrapper, manifests, API client factory."""

from gateway_control.cluster.client import DEFAULT_NAMESPACE, KubeClient
from gateway_control.cluster.factory import KubernetesClientFactory

__all__ = ["DEFAULT_NAMESPACE", "KubeClient", "KubernetesClientFactory"]
