"""
Plan emission: turns an assembled DAG into an ordered, immutable Plan and
wires the whole build together in ``build_plan``.
"""

import hashlib
import json
from typing import Any, Iterator, Mapping, Sequence

import structlog

from orientplan.config.settings import load_settings
from orientplan.core.dag import DAG
from orientplan.core.graph import DEFAULT_RULES, GraphAssembler, OrderingRule
from orientplan.exceptions import CyclicDependency, PlanAlreadyConsumed
from orientplan.resources.descriptor import DependencyEdge, ResourceDescriptor
from orientplan.resources.factory import DescriptorFactory

logger = structlog.get_logger(__name__)


class Plan:
    """
    Ordered sequence of descriptors ready for an applier.

    Every dependency appears before the descriptors that depend on it.
    A plan is immutable and is meant to be consumed exactly once.
    """

    def __init__(
        self,
        descriptors: Sequence[ResourceDescriptor],
        edges: Sequence[DependencyEdge],
        stages: Sequence[Sequence[str]] = (),
    ):
        self._descriptors = tuple(descriptors)
        self._edges = tuple(edges)
        self._stages = tuple(tuple(stage) for stage in stages)
        self._consumed = False

    @property
    def descriptors(self) -> tuple[ResourceDescriptor, ...]:
        return self._descriptors

    @property
    def edges(self) -> tuple[DependencyEdge, ...]:
        return self._edges

    @property
    def stages(self) -> tuple[tuple[str, ...], ...]:
        """Groups of identifiers that can be realized in parallel, in order."""
        return self._stages

    @property
    def consumed(self) -> bool:
        return self._consumed

    def __iter__(self) -> Iterator[ResourceDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __getitem__(self, index: int) -> ResourceDescriptor:
        return self._descriptors[index]

    def ids(self) -> list[str]:
        return [descriptor.id for descriptor in self._descriptors]

    def get(self, descriptor_id: str) -> ResourceDescriptor | None:
        for descriptor in self._descriptors:
            if descriptor.id == descriptor_id:
                return descriptor
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "resources": [descriptor.to_dict() for descriptor in self._descriptors],
            "edges": [{"from": edge.dependent, "to": edge.dependency} for edge in self._edges],
        }

    def fingerprint(self) -> str:
        """Short content hash; identical inputs give identical fingerprints."""
        payload = json.dumps(self.to_dict(), sort_keys=True).encode("utf-8")
        return hashlib.sha256(payload).hexdigest()[:12]

    def consume(self) -> tuple[ResourceDescriptor, ...]:
        """
        Hand the plan over to an applier.

        Raises:
            PlanAlreadyConsumed: If the plan was consumed before
        """
        if self._consumed:
            raise PlanAlreadyConsumed(self.fingerprint())
        self._consumed = True
        return self._descriptors

    def __repr__(self):
        return f"Plan(resources={len(self._descriptors)}, edges={len(self._edges)})"


class PlanEmitter:
    """Orders a DAG into a Plan, refusing graphs with cycles."""

    def emit(self, dag: DAG) -> Plan:
        """
        Emit the plan for an assembled DAG.

        Raises:
            CyclicDependency: Naming the members of the first cycle found
        """
        cycle = dag.detect_cycles()
        if cycle:
            raise CyclicDependency(cycle)

        order = dag.topological_sort()
        plan = Plan(
            [dag.nodes[name].descriptor for name in order],
            dag.edges(),
            dag.get_execution_levels(),
        )
        logger.info("plan_emitted", resources=len(plan), fingerprint=plan.fingerprint())
        return plan


def build_plan(
    raw_config: Mapping[str, Any],
    rules: Sequence[OrderingRule] = DEFAULT_RULES,
) -> Plan:
    """
    Build the plan for a raw configuration mapping.

    Args:
        raw_config: Flat mapping of configuration keys to values (e.g. os.environ)
        rules: Kind-level ordering rules

    Returns:
        The ordered Plan

    Raises:
        ConfigurationError: Missing or malformed settings (all of them)
        InvalidResourceSpec: A descriptor violates a field constraint
        MissingDependency: An ordering rule references an absent resource
        CyclicDependency: The dependency graph is not acyclic
    """
    settings = load_settings(raw_config)
    descriptors = DescriptorFactory(settings).build_all()
    dag = GraphAssembler(rules).assemble(descriptors)
    return PlanEmitter().emit(dag)
