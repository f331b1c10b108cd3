"""Global test configuration for Farm Guardrail."""

import asyncio
import os
from datetime import datetime, timedelta, UTC

import pytest

from farm_guardrail.config import GuardrailConfig
from farm_guardrail.manager.action_store import InMemoryActionStore
from farm_guardrail.manager.lifecycle import ActionLifecycleController
from farm_guardrail.models.action import ActionPayload, WebhookResult
from farm_guardrail.services.events import ActionEventNotifier

TEST_WEBHOOK_KEY = "test_webhook_key_at_least_20_chars"


@pytest.fixture(autouse=True, scope="session")
def _set_test_env_vars():
    """Set dummy environment variables for Settings validation.

    Only sets values that aren't already present, so real env vars take
    precedence.
    """
    defaults = {
        "IFTTT_WEBHOOK_KEY": TEST_WEBHOOK_KEY,
        "IFTTT_SIMULATION_MODE": "true",
        "IFTTT_RATE_LIMIT_SECONDS": "0",
        "SWEEPER_ENABLED": "false",
    }
    originals = {}
    for key, value in defaults.items():
        if key not in os.environ:
            os.environ[key] = value
            originals[key] = None
        else:
            originals[key] = os.environ[key]

    # Clear the lru_cache on get_settings so it picks up the new env vars
    from farm_guardrail.config import get_settings
    get_settings.cache_clear()

    yield

    for key, original in originals.items():
        if original is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original
    get_settings.cache_clear()


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2025, 6, 1, 12, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> datetime:
        self._now += timedelta(**kwargs)
        return self._now


class RecordingDispatcher:
    """Dispatch client that records calls instead of touching the network.

    Live (non-simulated) calls succeed or fail per ``live_success``, or raise
    if ``fail_on_live`` is True. When ``gate`` is set, every call waits on it
    before returning.
    """

    def __init__(
        self,
        clock: ManualClock,
        live_success: bool = True,
        live_status: int = 200,
        fail_on_live: bool = False,
    ) -> None:
        self.clock = clock
        self.live_success = live_success
        self.live_status = live_status
        self.fail_on_live = fail_on_live
        self.calls: list[dict] = []
        self.configs: list[GuardrailConfig] = []
        self.gate: asyncio.Event | None = None

    def update_config(self, config: GuardrailConfig) -> None:
        self.configs.append(config)

    async def dispatch(
        self,
        full_event_name: str,
        payload: ActionPayload | None,
        idempotency_key: str,
        simulate: bool,
    ) -> WebhookResult:
        self.calls.append({
            "event_name": full_event_name,
            "payload": payload,
            "idempotency_key": idempotency_key,
            "simulate": simulate,
        })
        if self.gate is not None:
            await self.gate.wait()
        if simulate:
            return WebhookResult(
                success=True,
                event_name=full_event_name,
                timestamp=self.clock.now(),
                response_status=200,
                simulated=True,
                idempotency_key=idempotency_key,
            )
        if self.fail_on_live:
            raise AssertionError("live dispatch attempted")
        return WebhookResult(
            success=self.live_success,
            event_name=full_event_name,
            timestamp=self.clock.now(),
            response_status=self.live_status,
            error=None if self.live_success else f"Webhook returned {self.live_status}",
            simulated=False,
            idempotency_key=idempotency_key,
        )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def config() -> GuardrailConfig:
    return GuardrailConfig(
        webhook_key=TEST_WEBHOOK_KEY,
        rate_limit_seconds=0,
        simulation_mode=False,
    )


@pytest.fixture
def dispatcher(clock) -> RecordingDispatcher:
    return RecordingDispatcher(clock)


@pytest.fixture
def store() -> InMemoryActionStore:
    return InMemoryActionStore()


@pytest.fixture
def notifier() -> ActionEventNotifier:
    return ActionEventNotifier()


@pytest.fixture
def controller(config, dispatcher, store, notifier, clock) -> ActionLifecycleController:
    return ActionLifecycleController(
        config=config,
        dispatcher=dispatcher,
        store=store,
        notifier=notifier,
        clock=clock,
    )
