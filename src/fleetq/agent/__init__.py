# src/fleetq/agent/__init__.py
"""
Worker-side pull loop.

- client: httpx wrapper over the coordinator endpoints
- worker: WorkerAgent (register, poll, bounded parallel execution, reports, sync)
"""

from .client import CoordinatorClient, CoordinatorError
from .worker import AgentConfig, WorkerAgent

__all__ = ["CoordinatorClient", "CoordinatorError", "AgentConfig", "WorkerAgent"]
