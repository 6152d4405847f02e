# components/charts.py
# Plotly chart helpers for the guardrail app and PDF report.
# All functions return a Plotly Figure that Streamlit can display with st.plotly_chart(...).

from typing import Dict, List, Mapping, Optional, Sequence
import plotly.graph_objects as go


def _layout(fig: go.Figure, title: str, height: int = 380, y_title: str = "Dollars (nominal)") -> go.Figure:
    fig.update_layout(
        title=title,
        template="plotly_white",
        height=height,
        margin=dict(l=10, r=10, t=40, b=10),
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
        xaxis_title="Age",
        yaxis_title=y_title,
    )
    return fig


# ---------- Portfolio "fan" ----------
def fan_chart(yearly_percentiles: Sequence[Mapping[str, float]],
              title: str = "Portfolio Value (Percentile Fan)") -> go.Figure:
    """Shaded 10–90 and 25–75 bands with a median line, one point per age."""
    ages = [row["age"] for row in yearly_percentiles]

    def col(key: str) -> List[float]:
        return [row[key] for row in yearly_percentiles]

    fig = go.Figure()
    for upper, lower, label in (("p90", "p10", "10–90%"), ("p75", "p25", "25–75%")):
        fig.add_trace(go.Scatter(
            x=ages, y=col(upper), mode="lines", line=dict(width=0),
            hoverinfo="skip", showlegend=False
        ))
        fig.add_trace(go.Scatter(
            x=ages, y=col(lower), mode="lines", line=dict(width=0),
            fill="tonexty", name=label,
            hovertemplate="Age %{x}<br>$%{y:,.0f}<extra></extra>"
        ))

    fig.add_trace(go.Scatter(
        x=ages, y=col("p50"), mode="lines", name="Median",
        hovertemplate="Age %{x}<br>$%{y:,.0f}<extra></extra>"
    ))
    return _layout(fig, title)


# ---------- Success gauge ----------
def success_gauge(probability_of_success: float,
                  lower: Optional[float] = None,
                  upper: Optional[float] = None) -> go.Figure:
    """0–100% radial gauge for PoS, shaded by guardrail band.

    ``probability_of_success`` is already a percentage.
    """
    pct = round(float(probability_of_success), 1)
    lo = 80.0 if lower is None else float(lower)
    hi = 95.0 if upper is None else float(upper)
    fig = go.Figure(go.Indicator(
        mode="gauge+number",
        value=pct,
        number={"suffix": "%"},
        gauge={
            "axis": {"range": [0, 100]},
            "bar": {"thickness": 0.35},
            "steps": [
                {"range": [0, lo], "color": "#f8d7da"},    # below lower
                {"range": [lo, hi], "color": "#d4edda"},   # within range
                {"range": [hi, 100], "color": "#d1ecf1"},  # above upper
            ],
        }
    ))
    fig.update_layout(template="plotly_white", height=220, margin=dict(l=10, r=10, t=10, b=10))
    return fig


# ---------- Cash flow (bars + net line) ----------
def cashflow_chart(timeline: Sequence[Mapping[str, float]],
                   title: str = "Planned Cash Flow") -> go.Figure:
    """Spending and extra expenses as outflows, income as inflow, net withdrawal line."""
    ages = [row["age"] for row in timeline]
    fig = go.Figure()
    fig.add_bar(x=ages, y=[row["spending"] for row in timeline], name="Spending")
    fig.add_bar(x=ages, y=[row["expenses"] for row in timeline], name="Extra expenses")
    fig.add_bar(x=ages, y=[-row["income"] for row in timeline], name="Income")
    fig.add_trace(go.Scatter(
        x=ages, y=[row["net_withdrawal"] for row in timeline], mode="lines+markers",
        name="Net withdrawal",
        hovertemplate="Age %{x}<br>$%{y:,.0f}<extra></extra>"
    ))
    fig.update_layout(barmode="relative")
    return _layout(fig, title)


# ---------- Spending profile ----------
def spending_profile_chart(multipliers: Dict[int, float],
                           title: str = "Spending Profile") -> go.Figure:
    ages = sorted(multipliers)
    fig = go.Figure(go.Scatter(
        x=ages, y=[multipliers[a] * 100 for a in ages], mode="lines", name="Spending",
        hovertemplate="Age %{x}<br>%{y:.1f}%<extra></extra>"
    ))
    fig.update_yaxes(rangemode="tozero")
    return _layout(fig, title, height=300, y_title="% of base spending")


# ---------- Search trace ----------
def search_chart(steps: Sequence[Mapping[str, float]],
                 target: float,
                 title: str = "Target Search") -> go.Figure:
    """PoS at each trial spending level, with the target as a horizontal line."""
    fig = go.Figure(go.Scatter(
        x=[s["spending"] for s in steps],
        y=[s["probability_of_success"] for s in steps],
        mode="markers+lines", name="Trial",
        hovertemplate="$%{x:,.0f}<br>%{y:.1f}%<extra></extra>"
    ))
    fig.add_hline(y=target, line_dash="dash", annotation_text=f"Target {target:g}%")
    _layout(fig, title, height=300, y_title="Probability of success (%)")
    fig.update_xaxes(title="Annual spending")
    return fig
