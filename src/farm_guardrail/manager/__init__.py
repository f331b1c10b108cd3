"""Action store, lifecycle controller and expiry sweeper."""

from farm_guardrail.manager.action_store import ActionStore, InMemoryActionStore
from farm_guardrail.manager.lifecycle import ActionLifecycleController
from farm_guardrail.manager.sweeper import ExpirySweeper, SweepReport

__all__ = [
    "ActionLifecycleController",
    "ActionStore",
    "ExpirySweeper",
    "InMemoryActionStore",
    "SweepReport",
]
