"""
Summer Camp Planner

Planning core for a family summer camp planner: season weeks, coverage,
cost, conflicts, registration urgency, squads with privacy-filtered
interest sharing, and a preview overlay for proposed changes.

Example:
    Derived views for one child:

    ```python
    from summer_planner.core import derive
    from summer_planner.models import Snapshot

    snapshot = Snapshot(...)
    derived = derive(snapshot, child_id="child-1")
    print(derived.coverage_percent, derived.total_cost)
    ```

    Owner-scoped mutations through the store:

    ```python
    from summer_planner.core.planner import SummerPlanner
    from summer_planner.store import EntityStore, InMemoryBackend

    planner = SummerPlanner(EntityStore(InMemoryBackend()), owner_id="user-1")
    child = await planner.add_child({"name": "Emma", "age": 8})
    ```
"""

__version__ = "1.0.0"
__description__ = "Planning core for a family summer camp planner"

__all__ = [
    "__version__",
    "__description__",
]
