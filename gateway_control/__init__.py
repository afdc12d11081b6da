"""Gateway Control - Adapter lifecycle management plane.

This package registers adapters (backend capability providers exposing tools),
persists their desired state in a pluggable resource store, and reconciles
that state into Deployment + Service workloads on a Kubernetes cluster.

Sub-packages:
- protocols/      - Records, value types, and Protocol interfaces
- store/          - Resource store backends (memory, redis, postgres) and registry
- cluster/        - Kubernetes client wrapper, manifests, API client factory
- deployment/     - Workload spec translation, reconciler, background scheduler
- authorization/  - Permission provider
- services/       - Adapter/tool management services, rich result provider
- logging/        - structlog-backed LoggerProtocol implementation

Top-level modules:
- bootstrap      - Composition root, builds AppContext
- context        - AppContext dataclass and SystemClock
- settings       - Environment-driven configuration
- errors         - Error taxonomy

Usage:
    from gateway_control.bootstrap import create_app_context

    app_context = await create_app_context()
    adapter = await app_context.adapter_service.register_adapter(identity, request)
"""

__version__ = "1.0.0"
