"""Exceptions raised by the guardrail calculators.

Everything derives from ``ValueError`` so callers that already guard numeric
input with ``except ValueError`` keep working.
"""

from __future__ import annotations

from typing import Optional


class GuardrailError(ValueError):
    """Base class for all calculator errors."""


class ScenarioValidationError(GuardrailError):
    """A scenario input is missing a field or violates an input rule."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConfigurationError(GuardrailError):
    """A simulation or guardrail setting is outside its accepted range."""


class StorageError(GuardrailError):
    """Saving or loading a scenario failed."""


__all__ = ["GuardrailError", "ScenarioValidationError", "ConfigurationError", "StorageError"]
