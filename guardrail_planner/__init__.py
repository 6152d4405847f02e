"""Risk-based guardrail retirement calculator.

``calculators`` holds the simulation and decision engine, ``components`` the
charts, insights, PDF report and Streamlit form used by ``app.py``.
"""

from .calculators.config import PlannerConfig, load_config
from .calculators.errors import ConfigurationError, GuardrailError, ScenarioValidationError, StorageError
from .calculators.guardrails import GuardrailEngine
from .calculators.scenario import parse_scenario

__version__ = "0.1.0"

__all__ = [
    "PlannerConfig",
    "load_config",
    "GuardrailEngine",
    "parse_scenario",
    "GuardrailError",
    "ScenarioValidationError",
    "ConfigurationError",
    "StorageError",
]
