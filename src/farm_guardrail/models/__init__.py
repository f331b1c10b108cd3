"""Data models for Farm Guardrail."""

from farm_guardrail.models.action import (
    ActionEvent,
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
    TERMINAL_STATUSES,
    WebhookResult,
)
from farm_guardrail.models.requests import (
    ApproveActionRequest,
    ProposeActionRequest,
    PurgeActionsRequest,
    RejectActionRequest,
    SimulateActionRequest,
    UpdateConfigRequest,
)

__all__ = [
    "ActionEvent",
    "ActionEventType",
    "ActionFilter",
    "ActionMetadata",
    "ActionPayload",
    "ActionStatus",
    "ApprovalRecord",
    "ApproveActionRequest",
    "ConnectionCheck",
    "DecidedBy",
    "ExecutionRecord",
    "ProposeActionRequest",
    "ProposedAction",
    "PurgeActionsRequest",
    "RejectActionRequest",
    "SimulateActionRequest",
    "SimulationOutcome",
    "TERMINAL_STATUSES",
    "UpdateConfigRequest",
    "WebhookResult",
]
