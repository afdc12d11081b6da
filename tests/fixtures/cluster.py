"""In-memory cluster client.

Keeps the last applied WorkloadSpec per name and records every mutation so
tests can assert idempotence and ordering.
"""

from collections import defaultdict
from typing import Dict, List, Tuple

from gateway_control.errors import NotFoundError
from gateway_control.protocols import AppliedRevision, WorkloadSpec, WorkloadStatus


class FakeClusterClient:
    """ClusterClientProtocol double.

    Attributes:
        workloads: name -> last applied spec
        mutations: ("create" | "update" | "remove", name) in call order
        ready: reported readiness of every workload
    """

    def __init__(self, namespace: str = "adapter"):
        self._namespace = namespace
        self.workloads: Dict[str, WorkloadSpec] = {}
        self.mutations: List[Tuple[str, str]] = []
        self.ready = True
        self.logs: Dict[Tuple[str, int], str] = {}
        self._failures: Dict[str, List[Exception]] = defaultdict(list)

    @property
    def namespace(self) -> str:
        return self._namespace

    def fail(self, operation: str, *errors: Exception) -> None:
        """Queue errors raised by the next calls of an operation."""
        self._failures[operation].extend(errors)

    def _raise_queued(self, operation: str) -> None:
        if self._failures[operation]:
            raise self._failures[operation].pop(0)

    async def ensure(self, spec: WorkloadSpec) -> AppliedRevision:
        self._raise_queued("ensure")
        existing = self.workloads.get(spec.name)
        if existing is not None and existing.spec_hash == spec.spec_hash:
            return AppliedRevision(name=spec.name, spec_hash=spec.spec_hash, changed=False)

        self.mutations.append(("create" if existing is None else "update", spec.name))
        self.workloads[spec.name] = spec
        return AppliedRevision(
            name=spec.name,
            spec_hash=spec.spec_hash,
            resource_version=str(len(self.mutations)),
            changed=True,
        )

    async def remove(self, name: str) -> None:
        self._raise_queued("remove")
        if name not in self.workloads:
            raise NotFoundError(f"workload '{name}' not found")
        del self.workloads[name]
        self.mutations.append(("remove", name))

    async def get_status(self, name: str) -> WorkloadStatus:
        self._raise_queued("get_status")
        spec = self.workloads.get(name)
        if spec is None:
            raise NotFoundError(f"workload '{name}' not found")
        ready_replicas = spec.replicas if self.ready else 0
        return WorkloadStatus(
            name=name,
            ready=self.ready,
            replicas=spec.replicas,
            ready_replicas=ready_replicas,
            updated_replicas=ready_replicas,
            available_replicas=ready_replicas,
            image=spec.image,
        )

    async def get_logs(self, name: str, instance: int = 0) -> str:
        self._raise_queued("get_logs")
        spec = self.workloads.get(name)
        if spec is None or instance < 0 or instance >= spec.replicas:
            raise NotFoundError(f"workload '{name}' has no instance {instance}")
        return self.logs.get((name, instance), f"{name}-{instance} started")
