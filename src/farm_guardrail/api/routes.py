"""FastAPI routes for the action approval surface."""

import logging
from datetime import datetime, timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError

from farm_guardrail import __version__
from farm_guardrail.config import get_settings
from farm_guardrail.exceptions import ActionNotFoundError, InvalidTransitionError
from farm_guardrail.manager.lifecycle import ActionLifecycleController
from farm_guardrail.manager.sweeper import ExpirySweeper
from farm_guardrail.models.action import (
    ActionFilter,
    ActionStatus,
    ConnectionCheck,
    ProposedAction,
    SimulationOutcome,
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
from farm_guardrail.services.dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)

router = APIRouter()

# Dependency injection
_controller: ActionLifecycleController | None = None
_sweeper: ExpirySweeper | None = None


def get_controller() -> ActionLifecycleController:
    """Get or create the lifecycle controller instance."""
    global _controller
    if _controller is None:
        config = get_settings().guardrail_config()
        _controller = ActionLifecycleController(
            config=config,
            dispatcher=WebhookDispatcher(config),
        )
    return _controller


def get_sweeper() -> ExpirySweeper:
    """Get or create the expiry sweeper instance."""
    global _sweeper
    if _sweeper is None:
        _sweeper = ExpirySweeper(
            controller=get_controller(),
            interval=get_settings().sweeper_interval_seconds,
        )
    return _sweeper


Controller = Annotated[ActionLifecycleController, Depends(get_controller)]


def _conflict(e: InvalidTransitionError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


def _not_found(action_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Action {action_id} not found",
    )


@router.get("/health")
async def health(controller: Controller) -> dict:
    """Health check endpoint."""
    sweeper = _sweeper
    return {
        "status": "healthy",
        "version": __version__,
        "pending_actions": len(controller.pending_actions()),
        "simulation_mode": controller.config.simulation_mode,
        "sweeper_running": bool(sweeper and sweeper.running),
    }


@router.get("/config")
async def config_summary(controller: Controller) -> dict:
    """Active actuator configuration (the webhook key is never returned)."""
    return controller.config_summary()


@router.patch("/config")
async def update_config(request: UpdateConfigRequest, controller: Controller) -> dict:
    """Change actuator settings at runtime, e.g. toggle simulation mode.

    Raises:
        HTTPException: 422 if the merged configuration is invalid
    """
    try:
        controller.update_config(**request.model_dump(exclude_unset=True))
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    return controller.config_summary()


@router.get("/config/check", response_model=ConnectionCheck)
async def config_check(controller: Controller) -> ConnectionCheck:
    """Validate the webhook configuration without triggering anything."""
    return controller.check_connection()


@router.post("/actions", response_model=ProposedAction, status_code=status.HTTP_201_CREATED)
async def propose_action(
    request: ProposeActionRequest,
    controller: Controller,
) -> ProposedAction:
    """Propose an action. It is stored as pending and not executed."""
    ttl = timedelta(minutes=request.ttl_minutes) if request.ttl_minutes else None
    return controller.propose(
        request.event,
        metadata=request.metadata,
        payload=request.payload,
        ttl=ttl,
    )


@router.get("/actions", response_model=list[ProposedAction])
async def list_actions(
    controller: Controller,
    status_filter: Annotated[list[ActionStatus] | None, Query(alias="status")] = None,
    source: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> list[ProposedAction]:
    """List actions, newest first."""
    action_filter = ActionFilter(
        status=status_filter or None,
        source=source,
        since=since,
        until=until,
        limit=limit,
    )
    return controller.list_actions(action_filter)


@router.get("/actions/pending", response_model=list[ProposedAction])
async def pending_actions(controller: Controller) -> list[ProposedAction]:
    """Actions waiting for a decision."""
    return controller.pending_actions()


@router.post("/actions/simulate", response_model=SimulationOutcome)
async def simulate_action(
    request: SimulateActionRequest,
    controller: Controller,
) -> SimulationOutcome:
    """Propose, auto-approve and execute an action in simulation."""
    return await controller.simulate(
        request.event,
        metadata=request.metadata,
        payload=request.payload,
    )


@router.post("/actions/expire", response_model=list[ProposedAction])
async def expire_actions(controller: Controller) -> list[ProposedAction]:
    """Expire pending actions whose deadline has passed."""
    return controller.expire_pending()


@router.post("/actions/purge")
async def purge_actions(
    controller: Controller,
    request: PurgeActionsRequest | None = None,
) -> dict:
    """Drop actions older than the retention window."""
    age = None
    if request is not None and request.older_than_hours:
        age = timedelta(hours=request.older_than_hours)
    return {"purged": controller.purge_older_than(age)}


@router.get("/actions/{action_id}", response_model=ProposedAction)
async def get_action(action_id: str, controller: Controller) -> ProposedAction:
    """Get a single action.

    Raises:
        HTTPException: If the action is not found
    """
    action = controller.get(action_id)
    if action is None:
        raise _not_found(action_id)
    return action


@router.post("/actions/{action_id}/approve", response_model=ProposedAction)
async def approve_action(
    action_id: str,
    controller: Controller,
    request: ApproveActionRequest | None = None,
) -> ProposedAction:
    """Approve a pending action (expires it instead if its window closed).

    Raises:
        HTTPException: 404 if not found, 409 if the action is not pending
    """
    approval_id = request.approval_id if request else None
    try:
        action = controller.approve(action_id, approval_id=approval_id)
    except InvalidTransitionError as e:
        raise _conflict(e)
    if action is None:
        raise _not_found(action_id)
    return action


@router.post("/actions/{action_id}/reject", response_model=ProposedAction)
async def reject_action(
    action_id: str,
    controller: Controller,
    request: RejectActionRequest | None = None,
) -> ProposedAction:
    """Reject a pending action.

    Raises:
        HTTPException: 404 if not found, 409 if the action is not pending
    """
    reason = request.reason if request else None
    try:
        action = controller.reject(action_id, reason=reason)
    except InvalidTransitionError as e:
        raise _conflict(e)
    if action is None:
        raise _not_found(action_id)
    return action


@router.post("/actions/{action_id}/execute", response_model=WebhookResult)
async def execute_action(action_id: str, controller: Controller) -> WebhookResult:
    """Fire the webhook for an approved action.

    A failed dispatch is returned as a result with success=false, not an
    HTTP error.

    Raises:
        HTTPException: 404 if not found, 409 if the action is not approved
    """
    try:
        return await controller.execute(action_id)
    except ActionNotFoundError:
        raise _not_found(action_id)
    except InvalidTransitionError as e:
        raise _conflict(e)
