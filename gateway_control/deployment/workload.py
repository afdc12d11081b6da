"""Translate adapter records into concrete workload specs.

Everything here is a pure function of the record and settings, so the same
record always yields the same WorkloadSpec and the same spec hash.
"""

import dataclasses
import hashlib
import json
from typing import Dict, Optional, Tuple

from gateway_control.cluster.manifests import ADAPTER_ID_ANNOTATION
from gateway_control.protocols import AdapterResource, WorkloadSpec
from gateway_control.settings import Settings

WORKLOAD_NAME_PREFIX = "adapter-"
WORKLOAD_NAME_HASH_CHARS = 16

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "gateway-control"
COMPONENT_LABEL = "app.kubernetes.io/component"
WORKLOAD_IDENTITY_LABEL = "azure.workload.identity/use"


def workload_name(adapter_id: str) -> str:
    """Deterministic cluster name for an adapter.

    adapter_id is opaque and may not be a valid DNS label, so it is hashed.
    """
    digest = hashlib.sha256(adapter_id.encode("utf-8")).hexdigest()
    return f"{WORKLOAD_NAME_PREFIX}{digest[:WORKLOAD_NAME_HASH_CHARS]}"


def _has_registry_host(image: str) -> bool:
    if "/" not in image:
        return False
    first = image.split("/", 1)[0]
    return "." in first or ":" in first or first == "localhost"


def resolve_image_reference(image: str, registry_endpoint: Optional[str]) -> str:
    """Prefix the registry endpoint unless the image already names a registry host.

    >>> resolve_image_reference("search:v1", "myacr.azurecr.io")
    'myacr.azurecr.io/search:v1'
    >>> resolve_image_reference("ghcr.io/org/search:v1", "myacr.azurecr.io")
    'ghcr.io/org/search:v1'
    """
    if not registry_endpoint or _has_registry_host(image):
        return image
    return f"{registry_endpoint.rstrip('/')}/{image}"


def compute_spec_hash(spec: WorkloadSpec) -> str:
    """Digest over every field that affects the rendered objects."""
    payload = {
        "name": spec.name,
        "namespace": spec.namespace,
        "image": spec.image,
        "replicas": spec.replicas,
        "container_port": spec.container_port,
        "resources": spec.resources,
        "environment": [list(item) for item in spec.environment],
        "labels": [list(item) for item in spec.labels],
        "annotations": [list(item) for item in spec.annotations],
        "service_account_name": spec.service_account_name,
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def build_workload_spec(adapter: AdapterResource, settings: Settings) -> WorkloadSpec:
    """Build the WorkloadSpec for an adapter record."""
    name = workload_name(adapter.adapter_id)

    labels: Dict[str, str] = {
        MANAGED_BY_LABEL: MANAGED_BY_VALUE,
        COMPONENT_LABEL: "adapter",
    }
    service_account: Optional[str] = None
    if adapter.use_workload_identity:
        labels[WORKLOAD_IDENTITY_LABEL] = "true"
        service_account = settings.workload_identity_service_account

    profile = adapter.resources
    resources = {
        "requests": {"cpu": profile.cpu_request, "memory": profile.memory_request},
        "limits": {"cpu": profile.cpu_limit, "memory": profile.memory_limit},
    }

    environment: Tuple[Tuple[str, str], ...] = tuple(
        sorted(adapter.environment_variables.items())
    )

    spec = WorkloadSpec(
        name=name,
        namespace=settings.adapter_namespace,
        image=resolve_image_reference(adapter.image, settings.container_registry_endpoint),
        replicas=adapter.replica_count,
        container_port=settings.adapter_container_port,
        resources=resources,
        environment=environment,
        labels=tuple(sorted(labels.items())),
        annotations=((ADAPTER_ID_ANNOTATION, adapter.adapter_id),),
        service_account_name=service_account,
    )
    # WorkloadSpec is frozen; rebuild with the digest filled in
    return dataclasses.replace(spec, spec_hash=compute_spec_hash(spec))


__all__ = [
    "workload_name",
    "resolve_image_reference",
    "compute_spec_hash",
    "build_workload_spec",
    "WORKLOAD_IDENTITY_LABEL",
]
