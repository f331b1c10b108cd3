"""Farm Guardrail - approval-gated webhook actuator for farm automations."""

__version__ = "0.1.0"

from farm_guardrail.exceptions import (
    ActionNotFoundError,
    GuardrailError,
    InvalidTransitionError,
)

__all__ = [
    "__version__",
    "ActionNotFoundError",
    "GuardrailError",
    "InvalidTransitionError",
]
