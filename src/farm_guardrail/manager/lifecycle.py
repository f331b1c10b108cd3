"""Action lifecycle controller.

Owns the proposal state machine in front of the webhook actuator:

    pending --approve--> approved --execute(success)--> executed
    pending --approve(if expired)--> expired
    pending --reject--> rejected
    pending --expire(sweep)--> expired
    approved --execute(failure)--> failed

rejected, expired, executed and failed are terminal.

Synchronous transitions (propose/approve/reject/expire/purge) never yield to
the event loop, so their check-then-write is atomic for a single-loop owner.
execute suspends on network I/O and is serialized per action id.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from farm_guardrail.clock import Clock, SystemClock
from farm_guardrail.config import GuardrailConfig
from farm_guardrail.exceptions import ActionNotFoundError, InvalidTransitionError
from farm_guardrail.idempotency import derive_idempotency_key
from farm_guardrail.manager.action_store import ActionStore, InMemoryActionStore
from farm_guardrail.models.action import (
    ActionEventType,
    ActionFilter,
    ActionMetadata,
    ActionPayload,
    ActionStatus,
    ApprovalRecord,
    ConnectionCheck,
    DecidedBy,
    ExecutionRecord,
    ProposedAction,
    SimulationOutcome,
    WebhookResult,
)
from farm_guardrail.services.dispatcher import (
    DispatchClient,
    check_connection,
    format_webhook_result,
    normalize_event_name,
)
from farm_guardrail.services.events import ActionEventNotifier, ActionListener

logger = logging.getLogger(__name__)

SIMULATION_APPROVAL_ID = "simulation"
SIMULATION_CONFIDENCE = 100


class ActionLifecycleController:
    """Proposes, decides and executes actuator actions."""

    def __init__(
        self,
        config: GuardrailConfig,
        dispatcher: DispatchClient,
        store: ActionStore | None = None,
        notifier: ActionEventNotifier | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            config: Resolved guardrail configuration
            dispatcher: Client used to fire (or simulate) webhooks
            store: Action repository (in-memory if omitted)
            notifier: Lifecycle event fan-out (fresh one if omitted)
            clock: Time source (wall clock if omitted)
        """
        self._config = config
        self._dispatcher = dispatcher
        self._store = store if store is not None else InMemoryActionStore()
        self._notifier = notifier or ActionEventNotifier()
        self._clock = clock or SystemClock()
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def config(self) -> GuardrailConfig:
        return self._config

    @property
    def notifier(self) -> ActionEventNotifier:
        return self._notifier

    @property
    def store(self) -> ActionStore:
        return self._store

    # ------------------------------------------------------------------
    # Proposal and decisions
    # ------------------------------------------------------------------

    def propose(
        self,
        event: str,
        metadata: ActionMetadata | dict,
        payload: ActionPayload | dict | None = None,
        ttl: timedelta | None = None,
    ) -> ProposedAction:
        """Create a pending action. Nothing is dispatched.

        Args:
            event: Logical event name, with or without the namespace prefix
            metadata: Reason and source are required
            payload: value1..value3 passed through verbatim to dispatch
            ttl: Time until the proposal expires; None or zero uses the default

        Returns:
            The stored pending action

        Raises:
            pydantic.ValidationError: If metadata or payload are invalid
            ValueError: If ttl is negative
        """
        if isinstance(metadata, ActionMetadata):
            metadata = metadata.model_copy()
        else:
            metadata = ActionMetadata.model_validate(metadata)
        if payload is not None and not isinstance(payload, ActionPayload):
            payload = ActionPayload.model_validate(payload)

        if ttl is not None and ttl < timedelta(0):
            raise ValueError(f"ttl must not be negative, got {ttl}")
        if not ttl:
            ttl = self._config.default_ttl

        now = self._clock.now()
        full_event_name = normalize_event_name(event, self._config.event_prefix)

        action = ProposedAction(
            event=event,
            full_event_name=full_event_name,
            payload=payload,
            metadata=metadata,
            proposed_at=now,
            expires_at=now + ttl,
            status=ActionStatus.PENDING,
            idempotency_key=derive_idempotency_key(full_event_name, payload),
        )

        self._store.put(action)
        logger.info(
            f"Action {action.id} proposed: {full_event_name} "
            f"(source={metadata.source}, expires={action.expires_at.isoformat()})"
        )
        self._emit(ActionEventType.PROPOSED, action)
        return action

    def approve(
        self,
        action_id: str,
        approval_id: str | None = None,
    ) -> ProposedAction | None:
        """Approve a pending action. Does not execute it.

        A pending action whose deadline has passed is expired instead and
        returned in that state.

        Returns:
            The action, or None if the id is unknown

        Raises:
            InvalidTransitionError: If the action is not pending
        """
        action = self._store.get(action_id)
        if action is None:
            return None

        self._require_status(action, ActionStatus.PENDING, "approve")

        now = self._clock.now()
        if self.is_expired(action, now):
            self._expire(action, now)
            return action

        action.status = ActionStatus.APPROVED
        action.approval = ApprovalRecord(
            decided_at=now,
            decided_by=DecidedBy.USER,
            approval_id=approval_id,
        )
        self._store.put(action)
        logger.info(f"Action {action.id} approved (approval_id={approval_id})")
        self._emit(ActionEventType.APPROVED, action)
        return action

    def reject(
        self,
        action_id: str,
        reason: str | None = None,
    ) -> ProposedAction | None:
        """Reject a pending action.

        The rejection note is kept in ``metadata.rejection_reason`` and also
        appended to the display reason.

        Returns:
            The action, or None if the id is unknown

        Raises:
            InvalidTransitionError: If the action is not pending
        """
        action = self._store.get(action_id)
        if action is None:
            return None

        self._require_status(action, ActionStatus.PENDING, "reject")

        action.status = ActionStatus.REJECTED
        action.approval = ApprovalRecord(
            decided_at=self._clock.now(),
            decided_by=DecidedBy.USER,
        )
        if reason:
            action.metadata.rejection_reason = reason
            action.metadata.reason = f"{action.metadata.reason} [Rejected: {reason}]"

        self._store.put(action)
        logger.info(f"Action {action.id} rejected" + (f": {reason}" if reason else ""))
        self._emit(ActionEventType.REJECTED, action)
        return action

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, action_id: str) -> WebhookResult:
        """Fire the webhook for an approved action.

        The action's stored idempotency key is reused on every attempt.

        Returns:
            The dispatch result; a failed dispatch moves the action to failed

        Raises:
            ActionNotFoundError: If the id is unknown
            InvalidTransitionError: If the action is not approved
        """
        action = self._store.get(action_id)
        if action is None:
            raise ActionNotFoundError(action_id)
        self._require_execute(action)

        lock = self._locks.setdefault(action_id, asyncio.Lock())
        async with lock:
            # Re-read: another execute may have finished while we waited.
            action = self._store.get(action_id)
            if action is None:
                raise ActionNotFoundError(action_id)
            self._require_execute(action)

            result = await self._dispatch(action, simulate=self._config.simulation_mode)

            # The action may have been removed while the dispatch was in flight.
            if self._store.get(action_id) is None:
                logger.warning(
                    f"Action {action_id} was removed during dispatch; "
                    f"outcome not recorded: {format_webhook_result(result)}"
                )
                return result
            self._record_execution(action, result, simulated=result.simulated)

        return result

    async def simulate(
        self,
        event: str,
        metadata: ActionMetadata | dict,
        payload: ActionPayload | dict | None = None,
    ) -> SimulationOutcome:
        """Propose, auto-approve and execute without any real side effect.

        Simulation is forced on for the dispatch regardless of the global
        simulation flag.
        """
        if not isinstance(metadata, ActionMetadata):
            metadata = ActionMetadata.model_validate(metadata)
        if metadata.confidence is None:
            metadata = metadata.model_copy(update={"confidence": SIMULATION_CONFIDENCE})

        action = self.propose(event, metadata=metadata, payload=payload)

        action.status = ActionStatus.APPROVED
        action.approval = ApprovalRecord(
            decided_at=self._clock.now(),
            decided_by=DecidedBy.AUTO,
            approval_id=SIMULATION_APPROVAL_ID,
        )
        self._store.put(action)
        self._emit(ActionEventType.APPROVED, action)

        result = await self._dispatch(action, simulate=True)
        self._record_execution(action, result, simulated=True)
        return SimulationOutcome(action=action, result=result)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, action_id: str) -> ProposedAction | None:
        """Look up an action by ID."""
        return self._store.get(action_id)

    def list_actions(self, action_filter: ActionFilter | None = None) -> list[ProposedAction]:
        """List actions, newest proposed first."""
        return self._store.list_by_filter(action_filter)

    def pending_actions(self) -> list[ProposedAction]:
        """Actions still waiting for a decision."""
        return self.list_actions(ActionFilter(status=ActionStatus.PENDING))

    # ------------------------------------------------------------------
    # Expiry and cleanup
    # ------------------------------------------------------------------

    @staticmethod
    def is_expired(action: ProposedAction, now: datetime) -> bool:
        """Whether the action's approval window has closed at ``now``."""
        return action.expires_at < now

    def expire_pending(self, now: datetime | None = None) -> list[ProposedAction]:
        """Expire every pending action whose deadline has passed.

        Works from a snapshot; an action that left pending between the scan
        and the write is skipped.

        Args:
            now: Timezone-aware reference time; the clock's time if omitted

        Returns:
            The actions transitioned by this call

        Raises:
            ValueError: If ``now`` is a naive datetime
        """
        if now is None:
            now = self._clock.now()
        elif now.tzinfo is None or now.utcoffset() is None:
            raise ValueError(f"now must be timezone-aware, got naive datetime {now.isoformat()}")
        expired: list[ProposedAction] = []

        for candidate in self._store.list_by_filter(ActionFilter(status=ActionStatus.PENDING)):
            action = self._store.get(candidate.id)
            if action is None or action.status != ActionStatus.PENDING:
                continue
            if not self.is_expired(action, now):
                continue
            self._expire(action, now)
            expired.append(action)

        if expired:
            logger.info(f"Expired {len(expired)} pending action(s)")
        return expired

    def purge_older_than(self, age: timedelta | None = None) -> int:
        """Remove actions of any status proposed before ``now - age``.

        Args:
            age: Retention window; defaults to the configured retention

        Returns:
            Number of actions removed
        """
        if age is None:
            age = self._config.retention
        cutoff = self._clock.now() - age

        purged = 0
        for action in self._store.all():
            if action.proposed_at >= cutoff:
                continue
            lock = self._locks.get(action.id)
            if lock is not None and lock.locked():
                # Being executed; a later purge picks it up.
                continue
            if self._store.delete(action.id):
                purged += 1
            self._locks.pop(action.id, None)

        if purged:
            logger.info(f"Purged {purged} action(s) proposed before {cutoff.isoformat()}")
        return purged

    # ------------------------------------------------------------------
    # Subscriptions and connector helpers
    # ------------------------------------------------------------------

    def subscribe(
        self,
        event_type: ActionEventType | str,
        callback: ActionListener,
    ) -> Callable[[], None]:
        """Register a lifecycle listener; returns an unsubscribe function."""
        return self._notifier.subscribe(event_type, callback)

    def config_summary(self) -> dict:
        """Active configuration without the webhook key."""
        return self._config.summary()

    def update_config(self, **updates) -> GuardrailConfig:
        """Merge updates into the active configuration at runtime.

        The merged config is re-validated as a whole and handed to the
        dispatcher. Actions already proposed keep their event name, expiry
        and idempotency key.

        Returns:
            The new configuration

        Raises:
            ValueError: If an update names an unknown field
            pydantic.ValidationError: If a value is out of range
        """
        unknown = set(updates) - set(GuardrailConfig.model_fields)
        if unknown:
            raise ValueError(f"Unknown config fields: {', '.join(sorted(unknown))}")

        config = GuardrailConfig.model_validate({**self._config.model_dump(), **updates})
        self._config = config

        update_dispatcher = getattr(self._dispatcher, "update_config", None)
        if update_dispatcher is not None:
            update_dispatcher(config)

        # Field names only; values may include the webhook key.
        logger.info(f"Configuration updated: {', '.join(sorted(updates)) or 'no fields'}")
        return config

    def check_connection(self) -> ConnectionCheck:
        return check_connection(self._config)

    @staticmethod
    def format_result(result: WebhookResult) -> str:
        return format_webhook_result(result)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_status(
        self,
        action: ProposedAction,
        expected: ActionStatus,
        attempted: str,
        hint: str | None = None,
    ) -> None:
        if action.status != expected:
            raise InvalidTransitionError(
                action_id=action.id,
                current_status=action.status.value,
                attempted=attempted,
                hint=hint,
            )

    def _require_execute(self, action: ProposedAction) -> None:
        self._require_status(
            action,
            ActionStatus.APPROVED,
            "execute",
            hint="Must be approved first.",
        )

    def _emit(self, event_type: ActionEventType, action: ProposedAction) -> None:
        self._notifier.emit(event_type, action, emitted_at=self._clock.now())

    def _expire(self, action: ProposedAction, now: datetime) -> None:
        action.status = ActionStatus.EXPIRED
        action.approval = ApprovalRecord(decided_at=now, decided_by=DecidedBy.TIMEOUT)
        self._store.put(action)
        logger.info(f"Action {action.id} expired (deadline {action.expires_at.isoformat()})")
        self._emit(ActionEventType.EXPIRED, action)

    async def _dispatch(self, action: ProposedAction, simulate: bool) -> WebhookResult:
        try:
            return await self._dispatcher.dispatch(
                action.full_event_name,
                action.payload,
                action.idempotency_key,
                simulate,
            )
        except Exception as e:
            # Normalize clients that raise instead of returning a failed result.
            logger.exception(f"Dispatcher raised for action {action.id}")
            return WebhookResult(
                success=False,
                event_name=action.full_event_name,
                timestamp=self._clock.now(),
                error=f"Unexpected error: {e}",
                simulated=simulate,
                idempotency_key=action.idempotency_key,
            )

    def _record_execution(
        self,
        action: ProposedAction,
        result: WebhookResult,
        simulated: bool,
    ) -> None:
        action.status = ActionStatus.EXECUTED if result.success else ActionStatus.FAILED
        action.execution = ExecutionRecord(
            executed_at=result.timestamp,
            success=result.success,
            response_status=result.response_status,
            error=result.error,
            simulated=simulated,
        )
        self._store.put(action)

        summary = format_webhook_result(result)
        if result.success:
            logger.info(f"Action {action.id} executed: {summary}")
            self._emit(ActionEventType.EXECUTED, action)
        else:
            logger.warning(f"Action {action.id} failed: {summary}")
            self._emit(ActionEventType.FAILED, action)
