"""Render WorkloadSpec into Kubernetes Deployment and Service objects."""

from typing import Dict, Optional

from kubernetes import client

from gateway_control.protocols import WorkloadSpec

# Annotation carrying the digest of the spec an object was rendered from
SPEC_HASH_ANNOTATION = "gateway-control.io/spec-hash"
ADAPTER_ID_ANNOTATION = "gateway-control.io/adapter-id"

# Pod selector label; the value is the workload name
SELECTOR_LABEL = "app"

CONTAINER_NAME = "adapter"
SERVICE_PORT = 80


def selector_for(name: str) -> Dict[str, str]:
    return {SELECTOR_LABEL: name}


def _metadata(spec: WorkloadSpec) -> client.V1ObjectMeta:
    annotations = dict(spec.annotations)
    annotations[SPEC_HASH_ANNOTATION] = spec.spec_hash
    return client.V1ObjectMeta(
        name=spec.name,
        namespace=spec.namespace,
        labels={**dict(spec.labels), **selector_for(spec.name)},
        annotations=annotations,
    )


def render_deployment(spec: WorkloadSpec) -> client.V1Deployment:
    """Build the Deployment for a workload spec."""
    container = client.V1Container(
        name=CONTAINER_NAME,
        image=spec.image,
        ports=[client.V1ContainerPort(container_port=spec.container_port, name="http")],
        env=[client.V1EnvVar(name=k, value=v) for k, v in spec.environment],
        resources=client.V1ResourceRequirements(
            requests=dict(spec.resources.get("requests", {})),
            limits=dict(spec.resources.get("limits", {})),
        ),
    )

    template = client.V1PodTemplateSpec(
        metadata=client.V1ObjectMeta(
            labels={**dict(spec.labels), **selector_for(spec.name)},
        ),
        spec=client.V1PodSpec(
            containers=[container],
            service_account_name=spec.service_account_name,
        ),
    )

    return client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=_metadata(spec),
        spec=client.V1DeploymentSpec(
            replicas=spec.replicas,
            selector=client.V1LabelSelector(match_labels=selector_for(spec.name)),
            template=template,
        ),
    )


def render_service(spec: WorkloadSpec) -> client.V1Service:
    """Build the ClusterIP Service fronting a workload."""
    return client.V1Service(
        api_version="v1",
        kind="Service",
        metadata=_metadata(spec),
        spec=client.V1ServiceSpec(
            type="ClusterIP",
            selector=selector_for(spec.name),
            ports=[
                client.V1ServicePort(
                    name="http",
                    port=SERVICE_PORT,
                    target_port=spec.container_port,
                    protocol="TCP",
                )
            ],
        ),
    )


def applied_spec_hash(obj: object) -> Optional[str]:
    """Read the spec-hash annotation from a live object, if any."""
    metadata = getattr(obj, "metadata", None)
    annotations = getattr(metadata, "annotations", None) or {}
    return annotations.get(SPEC_HASH_ANNOTATION)


__all__ = [
    "SPEC_HASH_ANNOTATION",
    "ADAPTER_ID_ANNOTATION",
    "SELECTOR_LABEL",
    "CONTAINER_NAME",
    "SERVICE_PORT",
    "selector_for",
    "render_deployment",
    "render_service",
    "applied_spec_hash",
]
