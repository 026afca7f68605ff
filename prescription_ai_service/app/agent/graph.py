# app/agent/graph.py
import datetime as dt
from typing import Optional

from langgraph.graph import START, END, StateGraph

from app.agent.state import PipelineState
from app.agent.nodes import (
    make_extract_node,
    validate_node,
    route_after_validate,
    resolve_node,
    schedule_node,
    report_node,
)
from app.services.extraction_chain import ExtractionChain, build_extraction_chain

def build_pipeline(chain: ExtractionChain):
    builder = StateGraph(PipelineState)

    builder.add_node("extract", make_extract_node(chain))
    builder.add_node("validate", validate_node)
    builder.add_node("resolve", resolve_node)
    builder.add_node("schedule", schedule_node)
    builder.add_node("report", report_node)

    builder.add_edge(START, "extract")
    builder.add_edge("extract", "validate")

    builder.add_conditional_edges("validate", route_after_validate, {
        "resolve": "resolve",
        "rejected": END,
    })

    builder.add_edge("resolve", "schedule")
    builder.add_edge("schedule", "report")
    builder.add_edge("report", END)

    # one-shot request/response: no checkpointer
    return builder.compile()

prescription_graph = build_pipeline(build_extraction_chain())

def run_analysis(
    text: str,
    start_date: Optional[dt.date] = None,
    today: Optional[dt.date] = None,
    allow_invalid: bool = False,
    chain: Optional[ExtractionChain] = None,
) -> PipelineState:
    """Run the whole pipeline synchronously and return the final state."""
    graph = prescription_graph if chain is None else build_pipeline(chain)
    return graph.invoke({
        "text": text,
        "start_date": start_date,
        "today": today,
        "allow_invalid": allow_invalid,
        "audit": [],
    })
