"""
Streamlit UI -- Query Console.

Features:
  - Table picker with block / row / memory / time-range summary
  - Controls for time range, dimensions, metric, rollup, order, window, limit
  - Flat AND/OR filter editor
  - Script tab for declarative (YAML) queries
  - Query state kept in the page URL (``?q=``) so any view can be shared
  - Results as a grid, timeline, bar, pie, line, or flame view
"""
import asyncio

import pandas as pd
import streamlit as st

from src.console.session import (
    SessionContext,
    build,
    current_user,
    execute,
    load_tables,
    on_resize,
    run_isolated,
    select_table,
    start_session,
)
from src.core.errors import ConsoleError
from src.core.utils import format_time
from src.query.builder import evaluate_script
from src.query.codec import FRAGMENT_MARKER, decode_payload
from src.query.filters import build_filter
from src.query.state import DisplayType, Operation, OrderType, RollupMethod
from src.render.dispatcher import Renderer

st.set_page_config(
    page_title="Query Console",
    page_icon="milky_way",
    layout="wide",
    initial_sidebar_state="expanded",
)


def _run(step, *args):
    return run_isolated(st.session_state.console, step, *args)


class StreamlitRenderer(Renderer):
    """Paints render instructions with Streamlit widgets."""

    def display_table(self, rows):
        st.dataframe(pd.DataFrame(rows), use_container_width=True)

    def display_timeline(self, series, window_key, metric_column, start_ms):
        frames = [pd.DataFrame(rows).assign(series=name) for name, rows in series.items()]
        df = pd.concat(frames, ignore_index=True)
        if window_key not in df.columns or metric_column not in df.columns:
            st.dataframe(df, use_container_width=True)
            return
        wide = df.pivot_table(index=window_key, columns="series", values=metric_column, aggfunc="sum")
        st.caption(f"Timeline from {format_time(start_ms)}")
        st.line_chart(wide)

    def display_bar(self, rows, dimension, metric):
        st.bar_chart(pd.DataFrame(rows), x=dimension or None, y=metric or None)

    def display_pie(self, rows, dimension, metric):
        st.vega_lite_chart(
            pd.DataFrame(rows),
            {
                "mark": {"type": "arc", "tooltip": True},
                "encoding": {
                    "theta": {"field": metric, "type": "quantitative"},
                    "color": {"field": dimension, "type": "nominal"},
                },
            },
            use_container_width=True,
        )

    def display_line(self, rows, dimension, metric):
        st.line_chart(pd.DataFrame(rows), x=dimension or None, y=metric or None)

    def display_flame(self, rows, dimension, metric):
        df = pd.DataFrame(rows)
        if metric in df.columns:
            df = df.sort_values(metric, ascending=False)
        st.caption("Flame view (stacks ordered by weight)")
        st.dataframe(df, use_container_width=True)

    def display_empty(self):
        st.info("NO RESULTS.")

    def display_error(self, message):
        st.error(message)


# ── Session bootstrap ───────────────────────────────────

url_fragment = FRAGMENT_MARKER + st.query_params["q"] if "q" in st.query_params else ""

if "console" not in st.session_state:
    st.session_state.console = start_session(fragment=url_fragment)
    # backend calls bind their own transport per event loop
    asyncio.run(st.session_state.console.transport.aclose())

ctx: SessionContext = st.session_state.console
ctx.renderer = StreamlitRenderer()
pending: str | None = None


def _set_fragment(fragment: str) -> None:
    st.query_params["q"] = fragment[len(FRAGMENT_MARKER):]


def _url_state() -> dict:
    try:
        return decode_payload(url_fragment)
    except ConsoleError:
        return {}


# ── Sidebar ─────────────────────────────────────────────

with st.sidebar:
    st.title("Tables")
    tables = _run(load_tables)
    url_state = _url_state()

    if not tables:
        st.error(ctx.status or "No tables available.")
        st.stop()

    default_table = url_state.get("table") if url_state.get("table") in tables else tables[0]
    table = st.selectbox("Table", tables, index=tables.index(default_table))

    if table != ctx.table:
        _run(select_table, table)
        if url_state.get("table") != table:
            url_state = {}
    if ctx.schema is not None:
        st.caption(ctx.schema.summary())

    st.divider()
    st.caption(f"User: {_run(current_user)}")

schema = ctx.schema
if schema is None:
    st.error(ctx.status)
    st.stop()

columns = schema.selectable_columns()
range_start, range_end = schema.default_range()


def _time_text(value) -> str:
    return format_time(value) if isinstance(value, (int, float)) else str(value)


def _pick(options, value, fallback=0):
    return options.index(value) if value in options else fallback


# ── Query tabs ──────────────────────────────────────────

controls_tab, script_tab = st.tabs(["Controls", "Script"])

with controls_tab:
    with st.form("query"):
        c1, c2 = st.columns(2)
        start = c1.text_input("Start", value=_time_text(url_state.get("start", range_start)))
        end = c2.text_input("End", value=_time_text(url_state.get("end", range_end)))

        keys = st.multiselect(
            "Dimensions",
            columns,
            default=[k for k in url_state.get("keys", []) if k in columns],
        )

        c1, c2, c3 = st.columns(3)
        metric = c1.selectbox("Metric", columns, index=_pick(columns, url_state.get("metrics")))
        rollups = [r.value for r in RollupMethod]
        rollup = c2.selectbox("Rollup", rollups, index=_pick(rollups, url_state.get("rollup")))
        orders = [o.value for o in OrderType]
        sort = c3.selectbox("Order", orders, index=_pick(orders, url_state.get("sort"), 1))

        c1, c2, c3 = st.columns(3)
        displays = [d.value for d in DisplayType]
        display = c1.selectbox("Display", displays, index=_pick(displays, url_state.get("display")))
        window = c2.number_input("Window (s, 0 = auto)", min_value=0, value=int(url_state.get("window", 0)))
        limit = c3.number_input(
            "Limit", min_value=1, value=int(url_state.get("limit", ctx.settings.default_limit))
        )

        st.markdown("**Filters**")
        saved_filter = url_state.get("filter") or {}
        logic = st.radio(
            "Combine rules with",
            ["AND", "OR"],
            index=_pick(["AND", "OR"], saved_filter.get("l")),
            horizontal=True,
        )
        rule_rows = [
            {"column": r.get("c", ""), "op": r.get("o", "EQ"), "values": ", ".join(r.get("v", []))}
            for r in saved_filter.get("r", [])
        ] or [{"column": "", "op": "EQ", "values": ""}]
        edited = st.data_editor(
            pd.DataFrame(rule_rows),
            num_rows="dynamic",
            use_container_width=True,
            column_config={
                "column": st.column_config.SelectboxColumn("Column", options=columns),
                "op": st.column_config.SelectboxColumn(
                    "Operation", options=[o.value for o in Operation]
                ),
                "values": st.column_config.TextColumn("Values (comma separated)"),
            },
        )

        submitted = st.form_submit_button("Run", use_container_width=True)

    if submitted:
        rules = [
            {
                "c": row["column"],
                "o": row["op"] or "EQ",
                "v": [v.strip() for v in str(row["values"] or "").split(",") if v.strip()],
            }
            for row in edited.to_dict("records")
            if row.get("column")
        ]
        state = {
            "table": table,
            "start": start,
            "end": end,
            "filter": build_filter(rules, logic),
            "keys": keys,
            "window": window,
            "display": display,
            "metrics": metric,
            "rollup": rollup,
            "sort": sort,
            "limit": limit,
        }
        try:
            pending = build(ctx, state)
        except ConsoleError as exc:
            st.error(str(exc))
        except ValueError as exc:
            st.error(f"Invalid query: {exc}")

with script_tab:
    code = st.text_area(
        "Query script (YAML)",
        value=url_state.get("code", ""),
        height=240,
        placeholder="table: my.table\ntime: {start: '2019-02-01 00:00:00', end: '2019-05-01 00:00:00'}\nselect: [event]\ndisplay: bar\nmetric: {column: value, rollup: sum}",
    )
    if st.button("Execute script"):
        try:
            pending = build(ctx, evaluate_script(code))
        except ConsoleError as exc:
            st.error(str(exc))


# ── Results ─────────────────────────────────────────────

st.subheader("Results")
status_line = st.empty()

if pending:
    _set_fragment(pending)
    _run(execute, pending)
elif ctx.instruction is None and url_fragment:
    # first visit with a shared URL: run what it describes
    _run(execute, url_fragment)
else:
    # rerun without a new query: repaint from cached rows
    on_resize(ctx)

if ctx.status:
    status_line.caption(ctx.status)
