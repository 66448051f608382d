"""Core planning: DAG, graph assembly and plan emission."""

from orientplan.core.dag import DAG, DAGNode, NodeState
from orientplan.core.graph import DEFAULT_RULES, GraphAssembler, OrderingRule, assemble
from orientplan.core.plan import Plan, PlanEmitter, build_plan

__all__ = [
    "DAG",
    "DAGNode",
    "NodeState",
    "DEFAULT_RULES",
    "GraphAssembler",
    "OrderingRule",
    "assemble",
    "Plan",
    "PlanEmitter",
    "build_plan",
]
