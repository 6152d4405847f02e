"""Expose component submodules for convenience."""

from .charts import cashflow_chart, fan_chart, search_chart, spending_profile_chart, success_gauge
from .insights import generate_insights
from .report import build_pdf

__all__ = [
    "fan_chart",
    "success_gauge",
    "cashflow_chart",
    "spending_profile_chart",
    "search_chart",
    "generate_insights",
    "build_pdf",
]
