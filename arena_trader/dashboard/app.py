"""
Streamlit dashboard for the arena.
Shows the leaderboard, realized PnL, equity curves and recent orders.
"""
import pandas as pd
import plotly.graph_objects as go
import streamlit as st
from dotenv import load_dotenv

from arena_trader.config import load_config
from arena_trader.dashboard.data import equity_frame, leaderboard_frame, orders_frame, pnl_frame
from arena_trader.store import ArenaStore

AGENT_COLORS = ["#FF6B6B", "#4ECDC4", "#FFD166", "#9B5DE5", "#06D6A0", "#118AB2"]

st.set_page_config(
    page_title="Arena Trader",
    page_icon="chart_with_upwards_trend",
    layout="wide",
)


@st.cache_resource
def get_config():
    load_dotenv()
    return load_config()


@st.cache_resource
def get_store(db_path: str) -> ArenaStore:
    return ArenaStore(db_path)


def create_equity_chart(df: pd.DataFrame) -> go.Figure | None:
    """Equity curve per agent."""
    if df.empty:
        return None

    fig = go.Figure()
    for i, (agent_id, group) in enumerate(df.groupby("agent_id")):
        fig.add_trace(go.Scatter(
            x=group["time"],
            y=group["equity_usd"],
            mode="lines",
            name=agent_id,
            line=dict(color=AGENT_COLORS[i % len(AGENT_COLORS)], width=2),
        ))

    fig.update_layout(
        title="Equity by Agent",
        yaxis_title="Equity ($)",
        template="plotly_dark",
        height=380,
        margin=dict(l=10, r=10, t=40, b=10),
        hovermode="x unified",
    )
    return fig


def create_pnl_chart(df: pd.DataFrame) -> go.Figure | None:
    if df.empty:
        return None
    colors = ["#06D6A0" if v >= 0 else "#FF6B6B" for v in df["realized_pnl"]]
    fig = go.Figure(go.Bar(x=df["agent_id"], y=df["realized_pnl"], marker_color=colors))
    fig.update_layout(
        title="Realized PnL",
        yaxis_title="PnL ($)",
        template="plotly_dark",
        height=300,
        margin=dict(l=10, r=10, t=40, b=10),
    )
    return fig


def main():
    st.title("Arena Trader")

    try:
        cfg = get_config()
    except ValueError as e:
        st.error(f"Failed to load config: {e}")
        return

    store = get_store(cfg.db_path)

    with st.sidebar:
        st.header("Arena")
        st.markdown(f"**{'DRY RUN' if cfg.dry_run else 'PAPER'}**")
        st.text(f"Agents: {', '.join(cfg.agent_ids)}")
        st.text(f"Symbols: {', '.join(cfg.symbols)}")
        st.text(f"Max $/Order: ${cfg.max_order_usd:,.0f}")
        st.text(f"Max $/Position: ${cfg.max_position_usd:,.0f}")
        if st.button("Refresh Data", use_container_width=True):
            st.rerun()

    try:
        leaderboard = leaderboard_frame(store, cfg.starting_cash_per_agent)
        pnl = pnl_frame(store, cfg.agent_ids)
        equity = equity_frame(store, cfg.agent_ids)
        orders = orders_frame(store)
    except Exception as e:
        st.warning(f"Arena data unavailable: {e}")
        return

    if leaderboard.empty:
        st.info("No equity snapshots yet. Start the orchestrator to populate the arena.")
        return

    leader = leaderboard.iloc[0]
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Leader", leader["agent_id"], delta=f"{leader['return_pct']:.2f}%")
    with col2:
        st.metric("Leader Equity", f"${leader['equity_usd']:,.2f}")
    with col3:
        st.metric("Orders Shown", len(orders))

    st.subheader("Leaderboard")
    st.dataframe(leaderboard, use_container_width=True, hide_index=True)

    fig = create_equity_chart(equity)
    if fig:
        st.plotly_chart(fig, use_container_width=True)

    fig = create_pnl_chart(pnl)
    if fig:
        st.plotly_chart(fig, use_container_width=True)

    st.subheader("Recent Orders")
    st.dataframe(orders, use_container_width=True, hide_index=True)


if __name__ == "__main__":
    main()
