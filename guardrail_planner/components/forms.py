# components/forms.py
import streamlit as st

# Stable widget keys so we can programmatically set values on load
WIDGET_KEYS = {
    "current_age": "in_current_age",
    "spouse2_age": "in_spouse2_age",
    "retirement_age": "in_retirement_age",
    "planning_horizon_years": "in_planning_horizon",

    "current_portfolio_value": "in_portfolio_value",
    "desired_spending": "in_desired_spending",
    "stock_allocation": "in_stock_allocation",
    "bond_allocation": "in_bond_allocation",
    "cash_allocation": "in_cash_allocation",
    "annual_fee_percentage": "in_fee_pct",
    "inflation_rate": "in_inflation_pct",

    "spending_profile_type": "in_spending_profile",

    "lower_guardrail": "in_lower_guardrail",
    "upper_guardrail": "in_upper_guardrail",
    "target_guardrail": "in_target_guardrail",

    "monte_carlo_iterations": "in_iterations",
    "enhanced_mc_enabled": "in_enhanced",
    "autocorrelation": "in_autocorrelation",
}

PROFILE_LABELS = {
    "smile": "Spending smile (declines with age)",
    "flat": "Flat (inflation only)",
    "custom": "Custom curve",
}

# Form values that the widgets show as percentages but scenarios store as fractions
_PERCENT_FIELDS = ("annual_fee_percentage", "inflation_rate")


def _d(key, fallback):
    value = st.session_state.get("form_defaults", {}).get(key)
    return fallback if value is None else value


def scenario_to_form_defaults(scenario: dict) -> dict:
    """Map a saved scenario dict onto the keys the sidebar form reads."""
    defaults = {key: scenario.get(key) for key in WIDGET_KEYS}
    if defaults["current_age"] is None:
        defaults["current_age"] = scenario.get("spouse1_age")
    for key in _PERCENT_FIELDS:
        if scenario.get(key) is not None:
            defaults[key] = float(scenario[key]) * 100.0
    return defaults


def plan_form(config) -> dict:
    """Render the sidebar inputs and return a raw scenario dict.

    Income sources, future expenses and custom curve points are edited on the
    main page and merged in by the caller.
    """
    g, mc, e, dflt = config.guardrails, config.monte_carlo, config.enhanced, config.defaults

    st.sidebar.header("Household")
    current_age = st.sidebar.number_input(
        "Current age", min_value=18, max_value=120,
        value=int(_d("current_age", 65)),
        key=WIDGET_KEYS["current_age"],
        help="Age of the primary person today. Must be at or past retirement age."
    )
    spouse2_age = st.sidebar.number_input(
        "Spouse age (optional, 0 = none)", min_value=0, max_value=120,
        value=int(_d("spouse2_age", 0)),
        key=WIDGET_KEYS["spouse2_age"],
    )
    retirement_age = st.sidebar.number_input(
        "Retirement age", min_value=18, max_value=120,
        value=int(_d("retirement_age", 65)),
        key=WIDGET_KEYS["retirement_age"],
        help="Anchors the spending profile."
    )
    horizon = st.sidebar.number_input(
        "Planning horizon (years)", min_value=1, max_value=60,
        value=int(_d("planning_horizon_years", dflt.planning_horizon)),
        key=WIDGET_KEYS["planning_horizon_years"],
    )

    st.sidebar.header("Portfolio")
    portfolio = st.sidebar.number_input(
        "Current portfolio value", min_value=0.0, step=10_000.0,
        value=float(_d("current_portfolio_value", 1_000_000.0)),
        key=WIDGET_KEYS["current_portfolio_value"],
    )
    spending = st.sidebar.number_input(
        "Desired annual spending", min_value=0.0, step=1_000.0,
        value=float(_d("desired_spending", 45_000.0)),
        key=WIDGET_KEYS["desired_spending"],
        help="In today's dollars; inflated each year."
    )
    with st.sidebar.expander("Asset allocation (%)", expanded=True):
        stock = st.number_input("Stocks", min_value=0.0, max_value=100.0, step=5.0,
                                value=float(_d("stock_allocation", 60.0)),
                                key=WIDGET_KEYS["stock_allocation"])
        bond = st.number_input("Bonds", min_value=0.0, max_value=100.0, step=5.0,
                               value=float(_d("bond_allocation", 35.0)),
                               key=WIDGET_KEYS["bond_allocation"])
        cash = st.number_input("Cash", min_value=0.0, max_value=100.0, step=5.0,
                               value=float(_d("cash_allocation", 5.0)),
                               key=WIDGET_KEYS["cash_allocation"])
        total = stock + bond + cash
        if abs(total - 100.0) > 0.01:
            st.warning(f"Allocations sum to {total:.1f}%, not 100%.")
    fee_pct = st.sidebar.number_input(
        "Annual fee (%)", min_value=0.0, max_value=5.0, step=0.05,
        value=float(_d("annual_fee_percentage", dflt.annual_fee * 100)),
        key=WIDGET_KEYS["annual_fee_percentage"],
    )
    inflation_pct = st.sidebar.number_input(
        "Inflation (%)", min_value=-5.0, max_value=15.0, step=0.1,
        value=float(_d("inflation_rate", dflt.inflation_rate * 100)),
        key=WIDGET_KEYS["inflation_rate"],
    )

    st.sidebar.header("Spending profile")
    options = list(PROFILE_LABELS)
    profile = st.sidebar.selectbox(
        "Profile", options,
        index=options.index(_d("spending_profile_type", dflt.spending_profile)),
        format_func=PROFILE_LABELS.get,
        key=WIDGET_KEYS["spending_profile_type"],
    )

    st.sidebar.header("Guardrails (probability of success, %)")
    lower = st.sidebar.number_input("Lower guardrail", min_value=g.min_lower, max_value=g.max_upper,
                                    value=float(_d("lower_guardrail", g.default_lower)),
                                    key=WIDGET_KEYS["lower_guardrail"])
    target = st.sidebar.number_input("Target", min_value=g.min_lower, max_value=g.max_upper,
                                     value=float(_d("target_guardrail", g.default_target)),
                                     key=WIDGET_KEYS["target_guardrail"])
    upper = st.sidebar.number_input("Upper guardrail", min_value=g.min_lower, max_value=g.max_upper,
                                    value=float(_d("upper_guardrail", g.default_upper)),
                                    key=WIDGET_KEYS["upper_guardrail"])

    st.sidebar.header("Simulation")
    iterations = st.sidebar.slider(
        "Monte Carlo iterations", min_value=mc.min_iterations, max_value=mc.max_iterations,
        value=int(_d("monte_carlo_iterations", mc.default_iterations)), step=100,
        key=WIDGET_KEYS["monte_carlo_iterations"],
    )
    enhanced = st.sidebar.checkbox(
        "Also run mean-reverting returns", value=bool(_d("enhanced_mc_enabled", False)),
        key=WIDGET_KEYS["enhanced_mc_enabled"],
    )
    phi = st.sidebar.slider(
        "Autocorrelation (φ)", min_value=e.min_autocorrelation, max_value=e.max_autocorrelation,
        value=float(_d("autocorrelation", e.default_autocorrelation)), step=0.01,
        key=WIDGET_KEYS["autocorrelation"], disabled=not enhanced,
    )

    scenario = {
        "current_age": int(current_age),
        "retirement_age": int(retirement_age),
        "planning_horizon_years": int(horizon),
        "current_portfolio_value": float(portfolio),
        "desired_spending": float(spending),
        "stock_allocation": float(stock),
        "bond_allocation": float(bond),
        "cash_allocation": float(cash),
        "annual_fee_percentage": float(fee_pct) / 100.0,
        "inflation_rate": float(inflation_pct) / 100.0,
        "spending_profile_type": profile,
        "lower_guardrail": float(lower),
        "upper_guardrail": float(upper),
        "target_guardrail": float(target),
        "monte_carlo_iterations": int(iterations),
        "enhanced_mc_enabled": bool(enhanced),
        "autocorrelation": float(phi) if enhanced else None,
    }
    if spouse2_age:
        scenario["spouse2_age"] = int(spouse2_age)
    return scenario
