"""
Generative UI - Streamlit Application

Ask a question in natural language and get back a small interactive
component, generated by an LLM, validated and rendered in a sandbox.
"""

import html
import itertools
from typing import Any, Dict, List, Optional

import streamlit as st

from genui.config import ConfigError, configure_logging, get_config
from genui.errors import CompilationError
from genui.orchestrator import refresh_data, stream_pipeline
from genui.sandbox.evaluator import evaluate
from genui.sandbox.fallback import render_fallback
from genui.schemas import AgentResponse, Plan, RenderNode


# Page configuration
st.set_page_config(
    page_title="Generative UI",
    page_icon="✨",
    layout="wide",
)

# Custom CSS for better styling
st.markdown("""
<style>
    .main-header {
        font-size: 2.5rem;
        font-weight: 700;
        color: #1E88E5;
        margin-bottom: 0.5rem;
    }
    .sub-header {
        font-size: 1.1rem;
        color: #666;
        margin-bottom: 2rem;
    }
    .gen-badge {
        display: inline-block;
        padding: 0.1rem 0.6rem;
        border-radius: 999px;
        background-color: #f0f2f6;
        font-size: 0.85rem;
    }
</style>
""", unsafe_allow_html=True)

DATA_MODES = {
    "Auto": "auto",
    "Web search": "web-search",
    "Example data": "example-data",
}


def init_session_state():
    """Initialize session state variables."""
    defaults = {
        "last_query": "",
        "last_plan": None,
        "last_response": None,
        "last_data": None,
        "last_source": None,
        "last_refreshed_at": None,
        "errors": [],
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def validate_config() -> bool:
    """Validate configuration and show error if missing."""
    try:
        get_config()
        return True
    except ConfigError as e:
        st.error(f"⚠️ Configuration Error\n\n{str(e)}")
        st.info("Please create a `.env` file in the project root. See `.env.example` for reference.")
        return False


# =============================================================================
# RENDER NODE -> STREAMLIT
# =============================================================================

_keys = itertools.count()


def _text(node: Any) -> str:
    return node if isinstance(node, str) else node.text_content()


def _children(node: RenderNode) -> List[Any]:
    return list(node.children)


def _render_chart(node: RenderNode):
    rows = node.props.get("data") or []
    series = [
        child.props.get("data_key") or child.props.get("dataKey")
        for child in node.children
        if isinstance(child, RenderNode) and child.type in ("Line", "Bar", "Area")
    ]
    x_key = next(
        (c.props.get("data_key") or c.props.get("dataKey")
         for c in node.children if isinstance(c, RenderNode) and c.type == "XAxis"),
        None,
    )
    if not isinstance(rows, list) or not rows:
        st.caption("No chart data")
        return
    kwargs: Dict[str, Any] = {}
    if x_key:
        kwargs["x"] = x_key
    if series:
        kwargs["y"] = [s for s in series if s]
    chart = {"LineChart": st.line_chart, "BarChart": st.bar_chart, "AreaChart": st.area_chart}.get(node.type)
    if chart is None:
        st.dataframe(rows)
    else:
        chart(rows, **kwargs)


def _render_table(node: RenderNode):
    rows = []
    for row in node.find_all("TableRow"):
        rows.append([_text(cell) for cell in row.children])
    if rows:
        st.table(rows)


def _render_tabs(node: RenderNode):
    triggers = node.find_all("TabsTrigger")
    contents = node.find_all("TabsContent")
    if not triggers:
        for child in contents:
            render_node(child)
        return
    tabs = st.tabs([_text(t) or f"Tab {i + 1}" for i, t in enumerate(triggers)])
    for tab, content in zip(tabs, contents):
        with tab:
            render_node(content)


def render_node(node: Any):
    """Render a normalized element tree with Streamlit widgets."""
    if isinstance(node, str):
        st.write(node)
        return

    kind = node.type
    props = node.props

    if kind == "Card":
        with st.container(border=True):
            for child in _children(node):
                render_node(child)
    elif kind in ("CardTitle", "Heading"):
        st.subheader(_text(node))
    elif kind == "CardDescription":
        st.caption(_text(node))
    elif kind == "Badge":
        st.markdown(f'<span class="gen-badge">{html.escape(_text(node))}</span>', unsafe_allow_html=True)
    elif kind == "Button":
        st.button(_text(node) or "Button", key=f"gen_button_{next(_keys)}", disabled=True)
    elif kind in ("NumberFlow", "Stat", "Metric"):
        value = props.get("value", _text(node))
        suffix = props.get("suffix") or ""
        st.metric(props.get("label") or "", f"{value}{suffix}")
    elif kind == "Progress":
        value = props.get("value") or 0
        st.progress(min(max(int(value), 0), 100) / 100)
    elif kind == "Separator":
        st.divider()
    elif kind == "Image":
        if props.get("src"):
            st.image(props["src"], caption=props.get("alt"))
    elif kind == "Icon":
        return
    elif kind == "Tabs":
        _render_tabs(node)
    elif kind == "Accordion":
        for item in node.find_all("AccordionItem"):
            trigger = item.find_all("AccordionTrigger")
            with st.expander(_text(trigger[0]) if trigger else "Details"):
                for content in item.find_all("AccordionContent"):
                    render_node(content)
    elif kind == "Table":
        _render_table(node)
    elif kind in ("LineChart", "BarChart", "AreaChart", "PieChart"):
        _render_chart(node)
    elif kind in ("Grid", "Flex") and len(node.children) > 1:
        columns = st.columns(min(len(node.children), 4))
        for i, child in enumerate(node.children):
            with columns[i % len(columns)]:
                render_node(child)
    elif kind == "Text" and all(isinstance(c, str) for c in node.children):
        st.write(_text(node))
    else:
        for child in _children(node):
            render_node(child)


# =============================================================================
# DISPLAY
# =============================================================================

def display_raw_data(data: Any, error: Optional[str] = None):
    """Generic view of whatever data the run obtained; nothing when there is none."""
    if data in (None, {}, []):
        return
    render_node(render_fallback(data, error))


def display_component(response: AgentResponse, data: Any):
    """Evaluate the component code and render it, or the fallback view."""
    try:
        result = evaluate(response.component_code, data)
    except CompilationError as e:
        st.error(f"Component failed to compile: {e}")
        display_raw_data(data, str(e))
        return
    if result.fell_back:
        st.warning("The component failed at render time; showing the raw data instead.")
    render_node(result.node)


def display_details(response: AgentResponse):
    """Code, data and plan expanders."""
    with st.expander("💻 Component Code"):
        st.code(response.component_code, language="python")
    with st.expander("📊 Data"):
        st.json(st.session_state.last_data)
        if st.session_state.last_source:
            st.caption(f"Source: {st.session_state.last_source}")
        if st.session_state.last_refreshed_at:
            st.caption(f"Refreshed at {st.session_state.last_refreshed_at}")
    if st.session_state.last_plan:
        with st.expander("📋 Plan"):
            st.json(st.session_state.last_plan.model_dump(by_alias=True))


def display_errors():
    """Display any non-fatal errors from the last run."""
    for error in st.session_state.errors:
        st.warning(error)


def handle_refresh(data_mode: str):
    plan: Optional[Plan] = st.session_state.last_plan
    if plan is None:
        return
    with st.spinner("Refreshing data..."):
        result = refresh_data(st.session_state.last_query, plan, data_mode=data_mode)
    st.session_state.last_data = result.data
    st.session_state.last_source = result.source
    st.session_state.last_refreshed_at = result.refreshed_at
    st.rerun()


def handle_generate(query: str, model: Optional[str], data_mode: str):
    """Run the pipeline, feeding a progress bar from the update stream."""
    st.session_state.errors = []
    st.session_state.last_plan = None
    st.session_state.last_data = None
    st.session_state.last_source = None
    progress = st.progress(0, text="Starting...")
    step = st.empty()
    final: Optional[AgentResponse] = None

    for update in stream_pipeline(query, model=model, data_mode=data_mode):
        kind = update.get("type")
        if kind == "progress":
            progress.progress(update["progress"] / 100, text=update["message"])
            if update.get("subtext"):
                step.caption(update["subtext"])
        elif kind == "step":
            step.caption(update["message"])
        elif kind == "plan":
            st.session_state.last_plan = Plan.model_validate(update["payload"])
        elif kind == "data":
            st.session_state.last_data = update["payload"].get("data")
            st.session_state.last_source = update["payload"].get("source")
        elif kind == "notices":
            st.session_state.errors = list(update["payload"])
        elif kind == "complete":
            final = AgentResponse.from_payload(update["payload"])

    progress.empty()
    step.empty()
    st.session_state.last_query = query
    st.session_state.last_response = final
    st.session_state.last_refreshed_at = None


def main():
    """Main application entry point."""
    configure_logging()
    init_session_state()

    st.markdown('<p class="main-header">✨ Generative UI</p>', unsafe_allow_html=True)
    st.markdown(
        '<p class="sub-header">Ask anything and get an interactive answer instead of a wall of text</p>',
        unsafe_allow_html=True
    )

    if not validate_config():
        return

    config = get_config()

    with st.sidebar:
        st.header("Settings")
        model = st.text_input("Model", value=config.model, help="Engine model name")
        mode_label = st.radio("Data source", options=list(DATA_MODES), index=0)
        data_mode = DATA_MODES[mode_label]

        st.divider()
        if st.button("🗑️ Clear Session", use_container_width=True):
            for key in list(st.session_state.keys()):
                del st.session_state[key]
            st.rerun()

    query = st.text_input(
        "What would you like to see?",
        placeholder="e.g. What's the weather in Tokyo? / Compare the latest iPhone models",
        key="query_input",
    )

    if st.button("✨ Generate", type="primary", use_container_width=True, disabled=not query.strip()):
        handle_generate(query.strip(), model.strip() or None, data_mode)

    display_errors()

    response: Optional[AgentResponse] = st.session_state.last_response
    if response is None:
        return

    st.divider()
    if response.is_error:
        st.error(response.text_response)
        display_raw_data(st.session_state.last_data)
        return

    st.caption(response.summary)
    display_component(response, st.session_state.last_data)

    if st.button("🔄 Refresh data", disabled=st.session_state.last_plan is None):
        handle_refresh(data_mode)

    display_details(response)


if __name__ == "__main__":
    main()
