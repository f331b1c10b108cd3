"""API layer for Farm Guardrail."""

from farm_guardrail.api.routes import router

__all__ = ["router"]
