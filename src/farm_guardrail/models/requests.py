"""Request bodies for the action API."""

from pydantic import BaseModel, Field

from farm_guardrail.models.action import ActionMetadata, ActionPayload


class ProposeActionRequest(BaseModel):
    """Request to propose an action for approval."""

    event: str = Field(min_length=1)
    payload: ActionPayload | None = None
    metadata: ActionMetadata
    ttl_minutes: float | None = Field(
        default=None,
        gt=0,
        description="Approval window; the configured default when omitted",
    )


class ApproveActionRequest(BaseModel):
    """Request to approve a pending action."""

    approval_id: str | None = None


class RejectActionRequest(BaseModel):
    """Request to reject a pending action."""

    reason: str | None = None


class SimulateActionRequest(BaseModel):
    """Request to run an action end to end in simulation."""

    event: str = Field(min_length=1)
    payload: ActionPayload | None = None
    metadata: ActionMetadata


class PurgeActionsRequest(BaseModel):
    """Request to drop old actions."""

    older_than_hours: float | None = Field(
        default=None,
        gt=0,
        description="Retention window; the configured retention when omitted",
    )


class UpdateConfigRequest(BaseModel):
    """Runtime changes to the actuator configuration.

    Only fields that are sent are changed. The webhook key and lifecycle
    windows are not editable over HTTP.
    """

    base_url: str | None = None
    event_prefix: str | None = None
    timeout: float | None = None
    retries: int | None = None
    rate_limit_seconds: float | None = None
    simulation_mode: bool | None = None
