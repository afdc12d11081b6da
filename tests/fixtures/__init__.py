"""Shared test doubles.

- cluster  - FakeClusterClient, an in-memory ClusterClientProtocol
- clock    - FakeClock, a controllable ClockProtocol
"""

from tests.fixtures.clock import FakeClock
from tests.fixtures.cluster import FakeClusterClient

__all__ = ["FakeClock", "FakeClusterClient"]
