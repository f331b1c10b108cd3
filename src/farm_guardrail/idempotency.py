"""Idempotency key derivation for webhook dispatch."""

import hashlib
import json

from farm_guardrail.models.action import ActionPayload

KEY_PREFIX = "idem_"
_DIGEST_CHARS = 24


def derive_idempotency_key(
    full_event_name: str,
    payload: ActionPayload | dict | None = None,
) -> str:
    """Build a deterministic key from the event name and payload.

    Unset payload slots are ignored, so ``{"value1": "a"}`` and
    ``{"value1": "a", "value2": None}`` map to the same key.
    """
    if isinstance(payload, ActionPayload):
        body = payload.to_body()
    else:
        body = {k: v for k, v in (payload or {}).items() if v is not None}

    canonical = json.dumps(body, sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(
        f"{full_event_name}\x1f{canonical}".encode("utf-8")
    ).hexdigest()
    return f"{KEY_PREFIX}{digest[:_DIGEST_CHARS]}"
