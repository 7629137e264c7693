"""Fixed directed workflow graph built on LangGraph.

The graph state has a single ``record`` channel. Nodes return a
``WorkflowPatch`` for it and the channel reducer merges the patch with
``apply_patch``, so the per-field merge rules hold for every update. Edge
functions only look at the record, so identical records always take the
same path. Entry is conditional too: a record that was approved while
suspended goes straight to execution.
"""

import logging
from typing import Annotated, Awaitable, Callable, Dict, Mapping, TypedDict, Union

from langgraph.graph import END, START, StateGraph

from .models import WorkflowPatch, WorkflowRecord, WorkflowStatus
from .state import apply_patch

logger = logging.getLogger(__name__)

ROUTING = "routing"
COST_CHECK = "cost_check"
HITL_CHECKPOINT = "hitl_checkpoint"
EXECUTE = "execute"

NODE_NAMES = (ROUTING, COST_CHECK, HITL_CHECKPOINT, EXECUTE)

Node = Callable[[WorkflowRecord], Awaitable[WorkflowPatch]]
EdgeFunction = Callable[[WorkflowRecord], str]


def merge_record(
    current: WorkflowRecord, update: Union[WorkflowRecord, WorkflowPatch]
) -> WorkflowRecord:
    """Reducer for the ``record`` channel."""
    if isinstance(update, WorkflowPatch):
        return apply_patch(current, update)
    return update


class WorkflowState(TypedDict):
    record: Annotated[WorkflowRecord, merge_record]


def route_entry(record: WorkflowRecord) -> str:
    """Start at routing unless the record was approved while suspended."""
    if record.approved and record.status == WorkflowStatus.EXECUTING:
        return EXECUTE
    return ROUTING


def route_after_cost_check(record: WorkflowRecord) -> str:
    """Choose the node that follows the cost checkpoint."""
    if (
        record.requires_approval
        and not record.approved
        and record.status == WorkflowStatus.AWAITING_APPROVAL
    ):
        return HITL_CHECKPOINT
    if not record.budget_approved:
        return END
    if record.status == WorkflowStatus.EXECUTING:
        return EXECUTE
    return END


def route_after_approval(record: WorkflowRecord) -> str:
    """Execute once approved; stop on rejection or while suspended."""
    if record.approved and record.status == WorkflowStatus.EXECUTING:
        return EXECUTE
    return END


def _state_node(name: str, node: Node):
    async def run(state: WorkflowState) -> Dict[str, WorkflowPatch]:
        record = state["record"]
        logger.debug(f"Entering {name} for correlation_id={record.correlation_id}")
        return {"record": await node(record)}

    return run


def _on_record(edge: EdgeFunction):
    def route(state: WorkflowState) -> str:
        return edge(state["record"])

    return route


def build_workflow_graph(nodes: Mapping[str, Node]):
    """Wire the four workflow nodes and compile the graph.

    ``nodes`` must hold exactly the routing, cost check, approval and
    execute nodes.
    """
    if set(nodes) != set(NODE_NAMES):
        raise ValueError(f"workflow graph needs nodes {NODE_NAMES}, got {sorted(nodes)}")

    graph = StateGraph(WorkflowState)
    for name in NODE_NAMES:
        graph.add_node(name, _state_node(name, nodes[name]))

    graph.add_conditional_edges(
        START, _on_record(route_entry), {ROUTING: ROUTING, EXECUTE: EXECUTE}
    )
    graph.add_edge(ROUTING, COST_CHECK)
    graph.add_conditional_edges(
        COST_CHECK,
        _on_record(route_after_cost_check),
        {HITL_CHECKPOINT: HITL_CHECKPOINT, EXECUTE: EXECUTE, END: END},
    )
    graph.add_conditional_edges(
        HITL_CHECKPOINT,
        _on_record(route_after_approval),
        {EXECUTE: EXECUTE, END: END},
    )
    graph.add_edge(EXECUTE, END)
    return graph.compile()
