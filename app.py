# app.py
import json
import logging
from pathlib import Path

import pandas as pd
import streamlit as st

from guardrail_planner.calculators.config import PlannerConfig, load_config
from guardrail_planner.calculators.errors import GuardrailError, ScenarioValidationError, StorageError
from guardrail_planner.calculators.guardrails import GuardrailEngine
from guardrail_planner.calculators.scenario import parse_scenario
from guardrail_planner.calculators.spending_profile import make_spending_profile
from guardrail_planner.components.charts import (
    cashflow_chart,
    fan_chart,
    search_chart,
    spending_profile_chart,
    success_gauge,
)
from guardrail_planner.components.forms import plan_form, scenario_to_form_defaults
from guardrail_planner.components.insights import generate_insights
from guardrail_planner.components.report import build_pdf
from guardrail_planner.storage import ScenarioStore

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

# ---------- Page config ----------
st.set_page_config(
    page_title="Guardrail Retirement Calculator",
    layout="wide",
    initial_sidebar_state="auto",
)

st.markdown(
    """
<style>
.block-container { padding: 1.5rem 2rem; max-width: 1400px; margin: auto; }
section[data-testid="stSidebar"] { background-color: #E6ECE9; border-right: 1px solid #D1D9D6; }
section[data-testid="stSidebar"] h2, section[data-testid="stSidebar"] h3 { color: #18453B; font-weight: 600; }
div[data-testid="stMetric"] {
    background: #FFFFFF; border-radius: 12px; padding: 1rem;
    box-shadow: 0 2px 8px rgba(0,0,0,0.05); border: 1px solid #E6ECE9;
}
div.stPlotlyChart { background: #FFFFFF; border-radius: 12px; padding: 0.75rem; border: 1px solid #E6ECE9; }
button[kind="primary"] { background-color: #18453B; color: #FFFFFF; border-radius: 8px; border: none; }
</style>
""",
    unsafe_allow_html=True,
)

BASE_DIR = Path(__file__).resolve().parent
CONFIG_PATH = BASE_DIR / "guardrail_config.json"
STATUS_LABELS = {
    "above_upper": "Above upper guardrail",
    "within_range": "Within guardrails",
    "below_lower": "Below lower guardrail",
}
INCOME_COLUMNS = ["name", "recipient", "annual_amount", "start_age", "end_age", "inflation_adjusted"]
EXPENSE_COLUMNS = ["name", "type", "annual_amount", "start_age", "duration_years", "inflation_adjusted"]

# ---------- Session boot ----------
st.session_state.setdefault("form_defaults", {})
st.session_state.setdefault("income_rows", [])
st.session_state.setdefault("expense_rows", [])
st.session_state.setdefault("custom_points", [{"age": 65, "multiplier": 1.0}, {"age": 95, "multiplier": 0.8}])
st.session_state.setdefault("last_run", None)
st.session_state.setdefault("export_pdf_bytes", None)


@st.cache_resource
def _config() -> PlannerConfig:
    return load_config(CONFIG_PATH) if CONFIG_PATH.exists() else PlannerConfig()


@st.cache_resource
def _store() -> ScenarioStore:
    return ScenarioStore(BASE_DIR / "guardrail_planner" / "data")


def _records(df: pd.DataFrame) -> list:
    """Editor rows as plain dicts, dropping blank rows and NaN cells."""
    rows = []
    for rec in df.to_dict(orient="records"):
        clean = {k: v for k, v in rec.items() if not (v is None or (isinstance(v, float) and pd.isna(v)))}
        if clean.get("name") or clean.get("annual_amount"):
            rows.append(clean)
    return rows


def _load_into_form(data: dict):
    st.session_state["form_defaults"] = scenario_to_form_defaults(data)
    st.session_state["income_rows"] = list(data.get("income_sources") or [])
    st.session_state["expense_rows"] = list(data.get("future_expenses") or [])
    custom = data.get("custom_spending_multipliers") or {}
    if custom:
        st.session_state["custom_points"] = [{"age": int(a), "multiplier": float(m)} for a, m in custom.items()]


config = _config()
store = _store()

st.markdown(
    """
    ### **Guardrail Retirement Calculator**
    _Monte Carlo probability of success, guardrail bands, and the spending level that restores your target._
    """
)

# ====== SIDEBAR: FORM + CONTROLS ======
scenario_dict = plan_form(config)

st.sidebar.divider()
st.sidebar.header("Save / Load Scenarios")
scenario_name = st.sidebar.text_input("Scenario name", help="Label for saving to your local library.")
try:
    saved = store.list_scenarios()
except StorageError as exc:
    saved = []
    st.sidebar.error(str(exc))
load_name = st.sidebar.selectbox("Load saved", [""] + [s["name"] for s in saved], key="load_select")
if load_name:
    try:
        _load_into_form(store.load_scenario(load_name))
        st.session_state.pop("load_select", None)  # reset selection to prevent rerun loop
        st.rerun()
    except StorageError as exc:
        st.sidebar.error(str(exc))

uploaded = st.sidebar.file_uploader("Upload scenario JSON", type="json")
if uploaded:
    try:
        _load_into_form(json.load(uploaded))
        st.sidebar.success("Scenario loaded from file.")
    except (json.JSONDecodeError, AttributeError, TypeError, ValueError):
        st.sidebar.error("Invalid JSON file.")

# ====== MAIN: income, expenses, custom curve ======
with st.expander("Income sources", expanded=bool(st.session_state["income_rows"])):
    income_df = st.data_editor(
        pd.DataFrame(st.session_state["income_rows"], columns=INCOME_COLUMNS),
        num_rows="dynamic",
        use_container_width=True,
        key="income_editor",
        column_config={
            "recipient": st.column_config.SelectboxColumn(options=["household", "spouse1", "spouse2"]),
            "inflation_adjusted": st.column_config.CheckboxColumn(default=True),
        },
    )
with st.expander("Future expenses", expanded=bool(st.session_state["expense_rows"])):
    expense_df = st.data_editor(
        pd.DataFrame(st.session_state["expense_rows"], columns=EXPENSE_COLUMNS),
        num_rows="dynamic",
        use_container_width=True,
        key="expense_editor",
        column_config={
            "type": st.column_config.SelectboxColumn(options=["one_time", "duration"], default="one_time"),
            "inflation_adjusted": st.column_config.CheckboxColumn(default=True),
        },
    )
scenario_dict["income_sources"] = _records(income_df)
scenario_dict["future_expenses"] = _records(expense_df)

if scenario_dict["spending_profile_type"] == "custom":
    with st.expander("Custom spending curve", expanded=True):
        points_df = st.data_editor(
            pd.DataFrame(st.session_state["custom_points"], columns=["age", "multiplier"]),
            num_rows="dynamic",
            key="custom_editor",
        )
    scenario_dict["custom_spending_multipliers"] = {
        str(int(r["age"])): float(r["multiplier"])
        for r in points_df.dropna().to_dict(orient="records")
    }

c1, c2 = st.sidebar.columns(2)
with c1:
    if st.button("Save to library"):
        try:
            store.save_scenario(scenario_name, scenario_dict)
            st.sidebar.success(f"Saved '{scenario_name}'")
        except StorageError as exc:
            st.sidebar.error(str(exc))
with c2:
    st.download_button(
        "⬇️ JSON",
        data=json.dumps(scenario_dict, indent=2),
        file_name=f"{scenario_name or 'scenario'}.json",
        mime="application/json",
    )

# ====== RUN ======
st.header("Run Calculation")
if st.button("Calculate", type="primary"):
    try:
        scenario = parse_scenario(scenario_dict, config)
    except ScenarioValidationError as exc:
        st.error(f"{exc} (field: {exc.field})" if exc.field else str(exc))
        st.stop()
    engine = GuardrailEngine(config)
    try:
        with st.spinner(f"Running {scenario.monte_carlo_iterations:,} Monte Carlo paths..."):
            report = engine.calculate(scenario).to_dict()
            enhanced = engine.calculate_enhanced(scenario).to_dict() if scenario.enhanced_mc_enabled else None
    except GuardrailError as exc:
        st.error(str(exc))
        st.stop()
    st.session_state["last_run"] = {"scenario": scenario_dict, "results": report, "enhancedResults": enhanced}
    st.session_state["export_pdf_bytes"] = None
    try:
        store.record_calculation(scenario_name or None, report)
    except StorageError as exc:
        st.warning(f"Result not added to history: {exc}")

run = st.session_state["last_run"]
if run is None:
    st.info("Run a calculation to see results.")
    st.stop()

report = run["results"]
enhanced = run["enhancedResults"]
thresholds = report["guardrail_thresholds"]
chart_figs: dict = {}

# ====== DISPLAY ======
st.subheader("Plan Summary")
k1, k2 = st.columns(2)
with k1:
    fig_gauge = success_gauge(report["probability_of_success"], thresholds["lower"], thresholds["upper"])
    chart_figs["Probability of Success"] = fig_gauge
    st.plotly_chart(fig_gauge, use_container_width=True)
with k2:
    m1, m2 = st.columns(2)
    m1.metric("Status", STATUS_LABELS[report["guardrail_status"]])
    m2.metric("Withdrawal rate", f"{report['current_withdrawal_rate']:.2f}%")
    m3, m4 = st.columns(2)
    m3.metric("Desired spending", f"${report['desired_spending']:,.0f}")
    m4.metric(
        "Recommended spending",
        f"${report['recommended_spending']:,.0f}",
        delta=f"{report['spending_change_percentage']:+.2f}%",
    )
    metrics = report["portfolio_metrics"]
    st.caption(
        f"Expected return {metrics['expected_return']:.2f}%, volatility {metrics['portfolio_volatility']:.2f}%. "
        f"{report['monte_carlo']['iterations']:,} paths in {report['calculation_duration_ms']:,} ms."
    )

st.info(generate_insights(report))

if enhanced:
    st.subheader("Mean-Reverting Returns")
    e1, e2, e3 = st.columns(3)
    e1.metric(
        "Probability of success",
        f"{enhanced['probability_of_success']:.2f}%",
        delta=f"{enhanced['probability_of_success'] - report['probability_of_success']:+.2f} pts",
    )
    e2.metric("Status", STATUS_LABELS[enhanced["guardrail_status"]])
    e3.metric("Recommended spending", f"${enhanced['recommended_spending']:,.0f}")

st.divider()

c1, c2 = st.columns(2)
with c1:
    fig_fan = fan_chart(report["monte_carlo"]["yearly_percentiles"])
    chart_figs["Portfolio Value (Percentile Fan)"] = fig_fan
    st.plotly_chart(fig_fan, use_container_width=True)
with c2:
    fig_cash = cashflow_chart(report["cashflow_timeline"])
    chart_figs["Planned Cash Flow"] = fig_cash
    st.plotly_chart(fig_cash, use_container_width=True)

cc1, cc2 = st.columns(2)
with cc1:
    scen = run["scenario"]
    age0 = scen.get("current_age") or scen.get("spouse1_age")
    profile = make_spending_profile(scen["spending_profile_type"], scen.get("custom_spending_multipliers"))
    mults = profile.multipliers_for_range(age0, age0 + scen["planning_horizon_years"] - 1, scen["retirement_age"])
    fig_profile = spending_profile_chart(mults)
    chart_figs["Spending Profile"] = fig_profile
    st.plotly_chart(fig_profile, use_container_width=True)
with cc2:
    search = report.get("target_search")
    if search:
        fig_search = search_chart(search["steps"], search["target"])
        chart_figs["Target Search"] = fig_search
        st.plotly_chart(fig_search, use_container_width=True)

# ---------- Export ----------
st.sidebar.divider()
st.sidebar.header("Export")
st.sidebar.download_button(
    "⬇️ Results JSON",
    data=json.dumps({"results": report, "enhancedResults": enhanced}, indent=2),
    file_name=f"{scenario_name or 'results'}.json",
    mime="application/json",
)
if st.sidebar.button("Build PDF"):
    try:
        st.session_state["export_pdf_bytes"] = build_pdf(run["scenario"], report, chart_figs)
    except (ValueError, RuntimeError) as exc:
        # chart export needs kaleido; fall back to a table-only report
        st.sidebar.warning(f"Charts omitted from PDF: {exc}")
        st.session_state["export_pdf_bytes"] = build_pdf(run["scenario"], report)
if st.session_state.get("export_pdf_bytes"):
    st.sidebar.download_button(
        "⬇️ Download PDF",
        data=st.session_state["export_pdf_bytes"],
        file_name=f"{scenario_name or 'report'}.pdf",
        mime="application/pdf",
    )

# ---------- Timeline ----------
st.markdown("### Cash Flow Timeline")
df = pd.DataFrame(report["cashflow_timeline"])
yearly = pd.DataFrame(report["monte_carlo"]["yearly_percentiles"])[["year", "p10", "p50", "p90"]]
df = df.merge(yearly.rename(columns=lambda c: c if c == "year" else f"portfolio_{c}"), on="year")
styled_df = df.style.set_properties(subset=["net_withdrawal"], **{"background-color": "#FFF3CD", "font-weight": "bold"})
st.dataframe(styled_df, use_container_width=True, height=350)
st.download_button(
    "⬇️ CSV (cash flow timeline)",
    data=df.to_csv(index=False).encode("utf-8"),
    file_name="cashflow_timeline.csv",
    mime="text/csv",
)

st.markdown("### Recent Calculations")
try:
    history = store.history(limit=10)
except StorageError as exc:
    history = []
    st.warning(str(exc))
if history:
    st.dataframe(pd.DataFrame(history), use_container_width=True)
