"""Tests for the in-memory action store."""

from datetime import datetime, timedelta, UTC

from farm_guardrail.manager.action_store import InMemoryActionStore
from farm_guardrail.models.action import (
    ActionFilter,
    ActionMetadata,
    ActionStatus,
    ProposedAction,
)

T0 = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def _make_action(
    minutes: int = 0,
    status: ActionStatus = ActionStatus.PENDING,
    source: str = "test",
) -> ProposedAction:
    proposed_at = T0 + timedelta(minutes=minutes)
    return ProposedAction(
        event="water",
        full_event_name="farm_clawed_water",
        metadata=ActionMetadata(reason="dry", source=source),
        proposed_at=proposed_at,
        expires_at=proposed_at + timedelta(minutes=45),
        status=status,
        idempotency_key="idem_test",
    )


class TestInMemoryActionStore:

    def test_put_and_get(self):
        store = InMemoryActionStore()
        action = _make_action()
        store.put(action)
        assert store.get(action.id) is action
        assert len(store) == 1

    def test_get_missing(self):
        assert InMemoryActionStore().get("nope") is None

    def test_delete(self):
        store = InMemoryActionStore()
        action = _make_action()
        store.put(action)
        assert store.delete(action.id) is True
        assert store.delete(action.id) is False
        assert store.get(action.id) is None

    def test_all_is_snapshot(self):
        store = InMemoryActionStore()
        store.put(_make_action())
        snapshot = store.all()
        store.put(_make_action(minutes=1))
        assert len(snapshot) == 1

    def test_list_sorted_newest_first(self):
        store = InMemoryActionStore()
        old = _make_action(minutes=0)
        new = _make_action(minutes=10)
        mid = _make_action(minutes=5)
        for action in (old, new, mid):
            store.put(action)

        assert [a.id for a in store.list_by_filter()] == [new.id, mid.id, old.id]

    def test_filter_single_status(self):
        store = InMemoryActionStore()
        pending = _make_action()
        executed = _make_action(minutes=1, status=ActionStatus.EXECUTED)
        store.put(pending)
        store.put(executed)

        result = store.list_by_filter(ActionFilter(status=ActionStatus.EXECUTED))
        assert [a.id for a in result] == [executed.id]

    def test_filter_source_window_and_limit(self):
        store = InMemoryActionStore()
        actions = [_make_action(minutes=m, source="auto") for m in range(5)]
        for action in actions:
            store.put(action)
        store.put(_make_action(minutes=2, source="manual"))

        result = store.list_by_filter(ActionFilter(
            source="auto",
            since=T0 + timedelta(minutes=1),
            until=T0 + timedelta(minutes=3),
            limit=2,
        ))

        assert [a.id for a in result] == [actions[3].id, actions[2].id]
