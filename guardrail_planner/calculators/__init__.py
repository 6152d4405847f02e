"""Core calculators for the guardrail planner.

The ``calculators`` package holds the pure computation, with no UI code:

* ``config`` – immutable :class:`PlannerConfig` with return assumptions, limits and search settings.
* ``errors`` – exception types for invalid input and configuration.
* ``scenario`` – scenario records and input validation.
* ``spending_profile`` – flat, smile and custom spending curves.
* ``returns`` – independent-normal and mean-reverting annual return models.
* ``cash_flow`` – yearly income, expenses and spending for a scenario.
* ``monte_carlo`` – simulation engine and percentile aggregation.
* ``guardrails`` – guardrail classification and target-seeking spending search.
"""

from . import cash_flow, config, errors, guardrails, monte_carlo, returns, scenario, spending_profile  # noqa: F401

__all__ = [
    "config",
    "errors",
    "scenario",
    "spending_profile",
    "returns",
    "cash_flow",
    "monte_carlo",
    "guardrails",
]
