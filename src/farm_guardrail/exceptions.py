"""Custom exceptions for Farm Guardrail."""


class GuardrailError(Exception):
    """Base class for guardrail errors."""


class InvalidTransitionError(GuardrailError):
    """Raised when an action is asked to move to a state its status forbids."""

    def __init__(
        self,
        action_id: str,
        current_status: str,
        attempted: str,
        hint: str | None = None,
    ) -> None:
        self.action_id = action_id
        self.current_status = current_status
        self.attempted = attempted
        message = f"Cannot {attempted} action in status: {current_status}"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)


class ActionNotFoundError(GuardrailError, KeyError):
    """Raised when an operation needs an action that is not in the store."""

    def __init__(self, action_id: str) -> None:
        self.action_id = action_id
        super().__init__(f"Action not found: {action_id}")

    def __str__(self) -> str:
        return self.args[0]
