# src/fleetq/engine/__init__.py
"""
Coordination engine for fleetq.

- dispatch: registration, enqueue, priority poll
- lifecycle: guarded start/finish/failure transitions
- timeouts: stalled in-progress and unconfirmed dispatch reclamation
- liveness: silent worker reaping and fleet listing
- reconcile: worker snapshot vs authoritative state diff
- sweeper: fixed-interval background threads
- coordinator: wiring of all of the above
"""

from .coordinator import Coordinator, CoordinatorConfig

__all__ = ["Coordinator", "CoordinatorConfig"]
