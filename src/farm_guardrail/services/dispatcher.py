"""Webhook dispatcher for the actuator endpoint.

Sends Maker Webhooks style requests (``{base_url}/{event}/with/key/{key}``)
and normalizes every outcome into a WebhookResult. Failures come back as
values; nothing is raised to the caller.
"""

import asyncio
import logging
import time
from typing import Protocol

import httpx

from farm_guardrail.clock import Clock, SystemClock
from farm_guardrail.config import GuardrailConfig
from farm_guardrail.models.action import ActionPayload, ConnectionCheck, WebhookResult

logger = logging.getLogger(__name__)

MIN_KEY_LENGTH = 20
_PLACEHOLDER_MARKERS = ("YOUR_", "_HERE")


class DispatchClient(Protocol):
    """Protocol for anything that can fire (or simulate) a webhook."""

    async def dispatch(
        self,
        full_event_name: str,
        payload: ActionPayload | None,
        idempotency_key: str,
        simulate: bool,
    ) -> WebhookResult:
        ...


def normalize_event_name(event: str, prefix: str) -> str:
    """Apply the namespace prefix unless the event already carries it."""
    if not prefix or event.startswith(prefix):
        return event
    return f"{prefix}{event}"


def build_webhook_url(config: GuardrailConfig, event: str) -> str:
    """Build the full trigger URL for an event."""
    full_event_name = normalize_event_name(event, config.event_prefix)
    return f"{config.base_url}/{full_event_name}/with/key/{config.webhook_key}"


def check_connection(config: GuardrailConfig) -> ConnectionCheck:
    """Validate the webhook configuration without triggering an event.

    The Maker Webhooks service has no ping endpoint, so this only checks
    that the key looks usable.
    """
    key = config.webhook_key
    if not key:
        return ConnectionCheck(valid=False, message="No webhook key configured")

    if len(key) < MIN_KEY_LENGTH:
        return ConnectionCheck(
            valid=False,
            message="Webhook key appears invalid (too short)",
        )

    if any(marker in key for marker in _PLACEHOLDER_MARKERS):
        return ConnectionCheck(
            valid=False,
            message="Webhook key is a placeholder - please use your real key",
        )

    if config.simulation_mode:
        return ConnectionCheck(valid=True, message="Configuration valid (simulation mode)")

    return ConnectionCheck(valid=True, message="Configuration appears valid")


def format_webhook_result(result: WebhookResult) -> str:
    """One-line summary of a result for logs and chat cards (no key)."""
    mode = "[SIM]" if result.simulated else "[LIVE]"
    status = "OK" if result.success else "FAILED"
    status_code = f" ({result.response_status})" if result.response_status else ""
    error = f" - {result.error}" if result.error else ""
    retries = f" [{result.retry_count} retries]" if result.retry_count > 0 else ""
    return f"{mode} {result.event_name}: {status}{status_code}{error}{retries}"


class WebhookDispatcher:
    """Fires webhooks at the actuator endpoint, or simulates them."""

    def __init__(
        self,
        config: GuardrailConfig,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            config: Resolved guardrail configuration
            clock: Time source for result timestamps
        """
        self._config = config
        self._clock = clock or SystemClock()
        # event name -> monotonic time of the last reserved call slot
        self._last_call: dict[str, float] = {}

    @property
    def config(self) -> GuardrailConfig:
        return self._config

    def update_config(self, config: GuardrailConfig) -> None:
        """Use a new configuration for subsequent calls."""
        self._config = config

    def check_connection(self) -> ConnectionCheck:
        return check_connection(self._config)

    async def dispatch(
        self,
        full_event_name: str,
        payload: ActionPayload | None,
        idempotency_key: str,
        simulate: bool,
    ) -> WebhookResult:
        """Send the webhook (or pretend to).

        Args:
            full_event_name: Prefixed event name
            payload: value1..value3 body, if any
            idempotency_key: Key presented to the receiver for de-duplication
            simulate: When True no network call is made

        Returns:
            WebhookResult; errors are reported in the result, never raised
        """
        timestamp = self._clock.now()

        if simulate:
            logger.info(
                f"[SIM] Would trigger: {full_event_name} "
                f"payload={payload.to_body() if payload else {}}"
            )
            return WebhookResult(
                success=True,
                event_name=full_event_name,
                timestamp=timestamp,
                response_status=200,
                simulated=True,
                idempotency_key=idempotency_key,
            )

        url = build_webhook_url(self._config, full_event_name)

        try:
            await self._wait_for_rate_limit(full_event_name)

            async with httpx.AsyncClient(timeout=self._config.timeout) as client:
                response = await client.post(
                    url,
                    json=payload.to_body() if payload else None,
                    headers={
                        "Content-Type": "application/json",
                        "Idempotency-Key": idempotency_key,
                    },
                )

            if 200 <= response.status_code < 300:
                logger.info(
                    f"Webhook {full_event_name} triggered: status={response.status_code}"
                )
                return WebhookResult(
                    success=True,
                    event_name=full_event_name,
                    timestamp=timestamp,
                    response_status=response.status_code,
                    idempotency_key=idempotency_key,
                )

            logger.warning(
                f"Webhook {full_event_name} returned {response.status_code}"
            )
            return WebhookResult(
                success=False,
                event_name=full_event_name,
                timestamp=timestamp,
                response_status=response.status_code,
                error=f"Webhook returned {response.status_code}",
                idempotency_key=idempotency_key,
            )

        except httpx.TimeoutException:
            logger.warning(
                f"Webhook {full_event_name} timed out after {self._config.timeout}s"
            )
            return WebhookResult(
                success=False,
                event_name=full_event_name,
                timestamp=timestamp,
                error="Webhook request timed out",
                idempotency_key=idempotency_key,
            )

        except httpx.ConnectError as e:
            logger.warning(f"Connection error triggering {full_event_name}: {e}")
            return WebhookResult(
                success=False,
                event_name=full_event_name,
                timestamp=timestamp,
                error=f"Connection error: {e}",
                idempotency_key=idempotency_key,
            )

        except Exception as e:
            logger.error(f"Unexpected error triggering {full_event_name}: {e}")
            return WebhookResult(
                success=False,
                event_name=full_event_name,
                timestamp=timestamp,
                error=f"Unexpected error: {e}",
                idempotency_key=idempotency_key,
            )

    async def _wait_for_rate_limit(self, event_name: str) -> None:
        """Hold the call until the per-event spacing has elapsed.

        The slot is reserved before sleeping so two concurrent calls for
        the same event are spaced from each other as well.
        """
        spacing = self._config.rate_limit_seconds
        if spacing <= 0:
            return

        now = time.monotonic()
        last = self._last_call.get(event_name)
        wait = 0.0 if last is None else max(0.0, last + spacing - now)
        self._last_call[event_name] = now + wait

        if wait > 0:
            logger.debug(f"Rate limiting {event_name}: waiting {wait:.2f}s")
            await asyncio.sleep(wait)
