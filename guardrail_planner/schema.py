"""JSON Schemas for the calculator's input and output documents.

The input schema is built from the scenario dataclasses, so a new field on
:class:`ScenarioInput` shows up here without further edits.
"""

from __future__ import annotations

from dataclasses import MISSING, fields
from typing import Any, Dict

from .calculators.config import SPENDING_PROFILES
from .calculators.guardrails import ADJUSTMENTS, STATUSES
from .calculators.scenario import (
    EXPENSE_TYPES,
    RECIPIENTS,
    _REQUIRED,
    ExpenseItem,
    IncomeSource,
    ScenarioInput,
)

DRAFT = "https://json-schema.org/draft/2020-12/schema"

_SCALARS = {"int": "integer", "float": "number", "str": "string", "bool": "boolean"}

_NUMBER = {"type": "number"}
_PERCENTILE_KEYS = ("p10", "p25", "p50", "p75", "p90")


def _field_schema(annotation: str) -> Dict[str, Any]:
    if annotation.startswith("Optional["):
        inner = _field_schema(annotation[len("Optional["):-1])
        return {"type": [inner["type"], "null"]}
    return {"type": _SCALARS[annotation]}


def _record_schema(cls, overrides: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    properties = {}
    required = []
    for f in fields(cls):
        properties[f.name] = overrides.get(f.name) or _field_schema(str(f.type))
        if f.default is MISSING and f.default_factory is MISSING:
            required.append(f.name)
    return {"type": "object", "properties": properties, "required": required}


def input_schema() -> Dict[str, Any]:
    income = _record_schema(IncomeSource, {"recipient": {"type": "string", "enum": list(RECIPIENTS)}})
    expense = _record_schema(ExpenseItem, {"type": {"type": "string", "enum": list(EXPENSE_TYPES)}})
    scenario = _record_schema(ScenarioInput, {
        "spending_profile_type": {"type": "string", "enum": list(SPENDING_PROFILES)},
        "custom_spending_multipliers": {"type": "object", "additionalProperties": _NUMBER},
        "income_sources": {"type": "array", "items": income},
        "future_expenses": {"type": "array", "items": expense},
    })
    scenario["properties"]["spouse1_age"] = {"type": "integer"}
    scenario["required"] = list(_REQUIRED)
    # either age key satisfies the current-age requirement
    scenario["anyOf"] = [{"required": ["current_age"]}, {"required": ["spouse1_age"]}]
    scenario["$schema"] = DRAFT
    scenario["title"] = "Guardrail scenario"
    return scenario


def report_schema() -> Dict[str, Any]:
    timeline_row = {
        "type": "object",
        "properties": {
            k: _NUMBER
            for k in ("year", "age", "spending", "income", "expenses", "net_withdrawal", "spending_multiplier")
        },
    }
    monte_carlo = {
        "type": "object",
        "properties": {
            "probability_of_success": _NUMBER,
            "iterations": {"type": "integer"},
            "successful": {"type": "integer"},
            "failed": {"type": "integer"},
            "duration_ms": _NUMBER,
            "percentiles": {
                "type": "object",
                "properties": {k: _NUMBER for k in _PERCENTILE_KEYS + ("min", "max")},
            },
            "yearly_percentiles": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {k: _NUMBER for k in ("year", "age") + _PERCENTILE_KEYS},
                },
            },
        },
    }
    return {
        "type": "object",
        "properties": {
            "probability_of_success": _NUMBER,
            "guardrail_status": {"type": "string", "enum": list(STATUSES)},
            "spending_adjustment_needed": {"type": "string", "enum": list(ADJUSTMENTS)},
            "desired_spending": _NUMBER,
            "recommended_spending": _NUMBER,
            "spending_change_amount": _NUMBER,
            "spending_change_percentage": _NUMBER,
            "current_withdrawal_rate": _NUMBER,
            "interpretation": {"type": "string"},
            "guardrail_thresholds": {
                "type": "object",
                "properties": {"lower": _NUMBER, "upper": _NUMBER, "target": _NUMBER},
            },
            "monte_carlo": monte_carlo,
            "portfolio_metrics": {
                "type": "object",
                "properties": {"current_value": _NUMBER, "expected_return": _NUMBER, "portfolio_volatility": _NUMBER},
            },
            "income_impact": {
                "type": "object",
                "properties": {"year0_income": _NUMBER, "year0_expenses": _NUMBER, "year0_net_withdrawal": _NUMBER},
            },
            "cashflow_timeline": {"type": "array", "items": timeline_row},
            "target_search": {"type": ["object", "null"]},
            "model": {"type": "string", "enum": ["standard", "enhanced"]},
            "calculation_duration_ms": _NUMBER,
        },
    }


def output_schema() -> Dict[str, Any]:
    report = report_schema()
    return {
        "$schema": DRAFT,
        "title": "Guardrail calculation output",
        "type": "object",
        "properties": {
            "results": report,
            "enhancedResults": {"anyOf": [report, {"type": "null"}]},
        },
        "required": ["results", "enhancedResults"],
    }


SCHEMAS = {"input": input_schema, "output": output_schema}

__all__ = ["input_schema", "output_schema", "report_schema", "SCHEMAS"]
