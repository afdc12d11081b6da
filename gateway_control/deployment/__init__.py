"""Deployment - adapter lifecycle reconciliation against the cluster."""

from gateway_control.deployment.manager import KubernetesAdapterDeploymentManager
from gateway_control.deployment.reconciler import ReconciliationScheduler
from gateway_control.deployment.workload import (
    build_workload_spec,
    compute_spec_hash,
    resolve_image_reference,
    workload_name,
)

__all__ = [
    "KubernetesAdapterDeploymentManager",
    "ReconciliationScheduler",
    "build_workload_spec",
    "compute_spec_hash",
    "resolve_image_reference",
    "workload_name",
]
