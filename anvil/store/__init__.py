"""Storage components for the Anvil system."""

from anvil.store.plan_store import PlanStore

__all__ = [
    "PlanStore",
]
