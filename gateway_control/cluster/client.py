"""Cluster Client - narrow wrapper over the Kubernetes control plane.

Manages one Deployment + Service pair per workload name inside a fixed
namespace. The official ``kubernetes`` client is synchronous, so every call
runs in a worker thread under a bounded deadline.

Error mapping (ApiException.status):
- 401, 403          -> UnauthorizedError (fatal, never retried)
- 404               -> NotFoundError
- 409               -> ConflictError (ensure retries once with a fresh read)
- 429, 5xx, no status, transport errors, deadline -> UnavailableError
- other 4xx         -> ValidationError (the object was rejected)
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Optional, Tuple

from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError as TransportError

from gateway_control.cluster.factory import KubernetesClientFactory
from gateway_control.cluster.manifests import (
    CONTAINER_NAME,
    SELECTOR_LABEL,
    applied_spec_hash,
    render_deployment,
    render_service,
)
from gateway_control.errors import (
    ConflictError,
    ManagementError,
    NotFoundError,
    UnauthorizedError,
    UnavailableError,
    ValidationError,
)
from gateway_control.logging import get_component_logger
from gateway_control.protocols import AppliedRevision, LoggerProtocol, WorkloadSpec, WorkloadStatus

DEFAULT_NAMESPACE = "adapter"


class KubeClient:
    """Kubernetes implementation of ClusterClientProtocol.

    Usage:
        kube = KubeClient.from_factory(KubernetesClientFactory(), namespace="adapter")
        revision = await kube.ensure(spec)
        status = await kube.get_status(spec.name)
    """

    def __init__(
        self,
        apps_api: client.AppsV1Api,
        core_api: client.CoreV1Api,
        namespace: str = DEFAULT_NAMESPACE,
        call_timeout: float = 30.0,
        logger: Optional[LoggerProtocol] = None,
    ):
        """Initialize cluster client.

        Args:
            apps_api: AppsV1Api for Deployments
            core_api: CoreV1Api for Services, Pods and logs
            namespace: Namespace dedicated to adapter workloads
            call_timeout: Deadline for each control plane call (seconds)
            logger: Logger for DI (uses context logger if not provided)
        """
        self._apps = apps_api
        self._core = core_api
        self._namespace = namespace
        self._call_timeout = call_timeout
        self._logger = get_component_logger("KubeClient", logger).bind(namespace=namespace)

    @classmethod
    def from_factory(
        cls,
        factory: KubernetesClientFactory,
        namespace: str = DEFAULT_NAMESPACE,
        call_timeout: float = 30.0,
        logger: Optional[LoggerProtocol] = None,
    ) -> "KubeClient":
        api_client = factory.create_api_client()
        return cls(
            client.AppsV1Api(api_client),
            client.CoreV1Api(api_client),
            namespace=namespace,
            call_timeout=call_timeout,
            logger=logger,
        )

    @property
    def namespace(self) -> str:
        return self._namespace

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def ensure(self, spec: WorkloadSpec) -> AppliedRevision:
        """Create or update the Deployment and Service for a spec.

        Reapplying a spec whose hash matches the live objects issues no
        mutation.
        """
        deployment_changed, resource_version = await self._ensure_deployment(spec)
        service_changed = await self._ensure_service(spec)
        changed = deployment_changed or service_changed

        self._logger.info(
            "workload_ensured",
            name=spec.name,
            spec_hash=spec.spec_hash,
            changed=changed,
            resource_version=resource_version,
        )
        return AppliedRevision(
            name=spec.name,
            spec_hash=spec.spec_hash,
            resource_version=resource_version,
            changed=changed,
        )

    async def remove(self, name: str) -> None:
        """Delete the Deployment and Service.

        Raises:
            NotFoundError: Neither object existed
        """
        removed = False
        delete_options = client.V1DeleteOptions(propagation_policy="Foreground")

        try:
            await self._call(
                "delete_deployment",
                name,
                self._apps.delete_namespaced_deployment,
                name,
                self._namespace,
                body=delete_options,
            )
            removed = True
        except NotFoundError:
            pass

        try:
            await self._call(
                "delete_service",
                name,
                self._core.delete_namespaced_service,
                name,
                self._namespace,
            )
            removed = True
        except NotFoundError:
            pass

        if not removed:
            raise NotFoundError(f"workload '{name}' not found in namespace '{self._namespace}'")
        self._logger.info("workload_removed", name=name)

    async def get_status(self, name: str) -> WorkloadStatus:
        """Read live Deployment status.

        Raises:
            NotFoundError: The Deployment does not exist
        """
        deployment = await self._call(
            "read_deployment_status",
            name,
            self._apps.read_namespaced_deployment_status,
            name,
            self._namespace,
        )

        desired = deployment.spec.replicas or 0
        status = deployment.status
        ready_replicas = status.ready_replicas or 0
        updated_replicas = status.updated_replicas or 0
        available_replicas = status.available_replicas or 0
        observed = (status.observed_generation or 0) >= (deployment.metadata.generation or 0)

        containers = deployment.spec.template.spec.containers or []
        transitions = [
            c.last_transition_time for c in (status.conditions or [])
            if c.last_transition_time is not None
        ]
        last_transition: Optional[datetime] = max(transitions) if transitions else None

        return WorkloadStatus(
            name=name,
            ready=observed
            and ready_replicas >= desired
            and updated_replicas >= desired
            and available_replicas >= desired,
            replicas=desired,
            ready_replicas=ready_replicas,
            updated_replicas=updated_replicas,
            available_replicas=available_replicas,
            image=containers[0].image if containers else None,
            last_transition_time=last_transition,
        )

    async def get_logs(self, name: str, instance: int = 0) -> str:
        """Read logs of the n-th pod (ordered by pod name) of a workload.

        Raises:
            NotFoundError: No pod at that index
        """
        pods = await self._call(
            "list_pods",
            name,
            self._core.list_namespaced_pod,
            self._namespace,
            label_selector=f"{SELECTOR_LABEL}={name}",
        )
        items = sorted(pods.items or [], key=lambda p: p.metadata.name)
        if instance < 0 or instance >= len(items):
            raise NotFoundError(
                f"workload '{name}' has {len(items)} instance(s); instance {instance} not found"
            )

        pod_name = items[instance].metadata.name
        return await self._call(
            "read_pod_log",
            name,
            self._core.read_namespaced_pod_log,
            pod_name,
            self._namespace,
            container=CONTAINER_NAME,
        )

    # =========================================================================
    # ENSURE HELPERS
    # =========================================================================

    async def _ensure_deployment(self, spec: WorkloadSpec) -> Tuple[bool, Optional[str]]:
        body = render_deployment(spec)

        for attempt in (1, 2):
            try:
                try:
                    existing = await self._call(
                        "read_deployment",
                        spec.name,
                        self._apps.read_namespaced_deployment,
                        spec.name,
                        self._namespace,
                    )
                except NotFoundError:
                    created = await self._call(
                        "create_deployment",
                        spec.name,
                        self._apps.create_namespaced_deployment,
                        self._namespace,
                        body,
                    )
                    return True, created.metadata.resource_version

                if applied_spec_hash(existing) == spec.spec_hash:
                    return False, existing.metadata.resource_version

                body.metadata.resource_version = existing.metadata.resource_version
                replaced = await self._call(
                    "replace_deployment",
                    spec.name,
                    self._apps.replace_namespaced_deployment,
                    spec.name,
                    self._namespace,
                    body,
                )
                return True, replaced.metadata.resource_version
            except ConflictError:
                if attempt == 2:
                    raise
                self._logger.info("deployment_conflict_retrying", name=spec.name)

        raise AssertionError("unreachable")

    async def _ensure_service(self, spec: WorkloadSpec) -> bool:
        body = render_service(spec)

        for attempt in (1, 2):
            try:
                try:
                    existing = await self._call(
                        "read_service",
                        spec.name,
                        self._core.read_namespaced_service,
                        spec.name,
                        self._namespace,
                    )
                except NotFoundError:
                    await self._call(
                        "create_service",
                        spec.name,
                        self._core.create_namespaced_service,
                        self._namespace,
                        body,
                    )
                    return True

                if applied_spec_hash(existing) == spec.spec_hash:
                    return False

                await self._call(
                    "patch_service",
                    spec.name,
                    self._core.patch_namespaced_service,
                    spec.name,
                    self._namespace,
                    body,
                )
                return True
            except ConflictError:
                if attempt == 2:
                    raise
                self._logger.info("service_conflict_retrying", name=spec.name)

        raise AssertionError("unreachable")

    # =========================================================================
    # CALL WRAPPER
    # =========================================================================

    async def _call(self, operation: str, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking API call in a thread under the call deadline."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, *args, **kwargs),
                timeout=self._call_timeout,
            )
        except asyncio.TimeoutError as e:
            self._logger.warning(
                "cluster_call_timeout", operation=operation, name=name, timeout=self._call_timeout
            )
            raise UnavailableError(
                f"{operation} '{name}' exceeded {self._call_timeout}s deadline"
            ) from e
        except ApiException as e:
            raise self._translate_api_error(e, operation, name) from e
        except (TransportError, OSError) as e:
            self._logger.warning("cluster_unreachable", operation=operation, name=name, error=str(e))
            raise UnavailableError(f"{operation} '{name}' failed: {e}") from e

    def _translate_api_error(self, e: ApiException, operation: str, name: str) -> ManagementError:
        status = e.status or 0
        message = f"{operation} '{name}' failed with {status}: {e.reason}"

        if status in (401, 403):
            self._logger.error("cluster_unauthorized", operation=operation, name=name, status=status)
            return UnauthorizedError(message)
        if status == 404:
            return NotFoundError(message)
        if status == 409:
            return ConflictError(message)
        if status == 429 or status >= 500 or status == 0:
            self._logger.warning("cluster_unavailable", operation=operation, name=name, status=status)
            return UnavailableError(message)

        self._logger.error("cluster_rejected", operation=operation, name=name, status=status, body=e.body)
        return ValidationError(message)


__all__ = ["KubeClient", "DEFAULT_NAMESPACE"]
