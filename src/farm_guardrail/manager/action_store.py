"""Storage for proposed actions."""

from typing import Protocol

from farm_guardrail.models.action import ActionFilter, ProposedAction


class ActionStore(Protocol):
    """Repository interface the lifecycle controller depends on."""

    def get(self, action_id: str) -> ProposedAction | None:
        ...

    def put(self, action: ProposedAction) -> None:
        ...

    def delete(self, action_id: str) -> bool:
        ...

    def list_by_filter(self, action_filter: ActionFilter | None = None) -> list[ProposedAction]:
        ...

    def all(self) -> list[ProposedAction]:
        ...


class InMemoryActionStore:
    """Keeps actions in a dict for the lifetime of the process."""

    def __init__(self) -> None:
        self._actions: dict[str, ProposedAction] = {}

    def __len__(self) -> int:
        return len(self._actions)

    def get(self, action_id: str) -> ProposedAction | None:
        """Look up an action by ID."""
        return self._actions.get(action_id)

    def put(self, action: ProposedAction) -> None:
        """Insert or replace an action."""
        self._actions[action.id] = action

    def delete(self, action_id: str) -> bool:
        """Remove an action. Returns False if it was not stored."""
        return self._actions.pop(action_id, None) is not None

    def all(self) -> list[ProposedAction]:
        """Snapshot of every stored action, in insertion order."""
        return list(self._actions.values())

    def list_by_filter(self, action_filter: ActionFilter | None = None) -> list[ProposedAction]:
        """Return matching actions, newest proposed first.

        Args:
            action_filter: Status/source/time-window/limit options

        Returns:
            Matching actions; the limit is applied after sorting
        """
        actions = self.all()
        if action_filter is None:
            action_filter = ActionFilter()

        statuses = action_filter.statuses()
        if statuses is not None:
            actions = [a for a in actions if a.status in statuses]

        if action_filter.source is not None:
            actions = [a for a in actions if a.metadata.source == action_filter.source]

        if action_filter.since is not None:
            actions = [a for a in actions if a.proposed_at >= action_filter.since]

        if action_filter.until is not None:
            actions = [a for a in actions if a.proposed_at <= action_filter.until]

        actions.sort(key=lambda a: a.proposed_at, reverse=True)

        if action_filter.limit is not None:
            actions = actions[: action_filter.limit]

        return actions
