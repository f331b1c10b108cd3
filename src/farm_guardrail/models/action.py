"""Models for the action proposal / approval / execution workflow.

An action is a unit of automation intent aimed at the webhook actuator
(watering a zone, switching a relay). It is proposed, decided by a human
or by policy, and only then dispatched.
"""

from datetime import datetime, UTC
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class ActionStatus(str, Enum):
    """Lifecycle status of a proposed action."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    EXECUTED = "executed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({
    ActionStatus.REJECTED,
    ActionStatus.EXPIRED,
    ActionStatus.EXECUTED,
    ActionStatus.FAILED,
})


class DecidedBy(str, Enum):
    """Who moved an action out of pending."""

    USER = "user"
    AUTO = "auto"        # simulation / policy
    TIMEOUT = "timeout"  # expiry


class ActionEventType(str, Enum):
    """Lifecycle events emitted to subscribers."""

    PROPOSED = "proposed"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXECUTED = "executed"
    FAILED = "failed"
    EXPIRED = "expired"


class ActionPayload(BaseModel):
    """Webhook payload. Maker Webhooks accepts value1..value3 and nothing else."""

    model_config = ConfigDict(extra="forbid")

    value1: str | None = Field(default=None, description="Primary data (e.g., zone name)")
    value2: str | None = Field(default=None, description="Secondary data (e.g., duration)")
    value3: str | None = Field(default=None, description="JSON metadata or additional info")

    def to_body(self) -> dict[str, str]:
        """Request body with unset slots omitted."""
        return self.model_dump(exclude_none=True)


class ActionMetadata(BaseModel):
    """Why an action was proposed and by whom."""

    reason: str = Field(min_length=1)
    source: str = Field(
        min_length=1,
        description="What triggered this - automation ID, AI, manual",
    )
    target: str | None = Field(default=None, description="Target device/zone/area")
    confidence: float | None = Field(default=None, ge=0, le=100)
    estimated_impact: str | None = None
    rejection_reason: str | None = None


class ApprovalRecord(BaseModel):
    """Decision taken on a pending action."""

    decided_at: datetime
    decided_by: DecidedBy
    approval_id: str | None = None


class ExecutionRecord(BaseModel):
    """Outcome of dispatching an approved action."""

    executed_at: datetime
    success: bool
    response_status: int | None = None
    error: str | None = None
    simulated: bool = False


class ProposedAction(BaseModel):
    """An action awaiting (or past) approval."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    event: str = Field(min_length=1)
    full_event_name: str
    payload: ActionPayload | None = None
    metadata: ActionMetadata
    proposed_at: datetime
    expires_at: datetime
    status: ActionStatus = ActionStatus.PENDING
    idempotency_key: str
    approval: ApprovalRecord | None = None
    execution: ExecutionRecord | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class WebhookResult(BaseModel):
    """Normalized result of a webhook dispatch (real or simulated)."""

    success: bool
    event_name: str
    timestamp: datetime
    response_status: int | None = None
    error: str | None = None
    retry_count: int = 0
    simulated: bool = False
    idempotency_key: str


class ActionFilter(BaseModel):
    """Query options for listing actions."""

    status: ActionStatus | list[ActionStatus] | None = None
    source: str | None = None
    since: datetime | None = None
    until: datetime | None = None
    limit: int | None = Field(default=None, ge=1)

    def statuses(self) -> set[ActionStatus] | None:
        if self.status is None:
            return None
        if isinstance(self.status, list):
            return set(self.status)
        return {self.status}


class ActionEvent(BaseModel):
    """Tagged lifecycle event delivered to queue subscribers."""

    type: ActionEventType
    action: ProposedAction
    emitted_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class SimulationOutcome(BaseModel):
    """Result of a simulated propose/approve/execute run."""

    action: ProposedAction
    result: WebhookResult


class ConnectionCheck(BaseModel):
    """Result of validating the webhook configuration."""

    valid: bool
    message: str
