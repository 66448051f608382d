"""
Dependency graph assembly.

Combines each descriptor's explicit dependencies with a declarative table
of kind-level ordering rules and checks that everything referenced is
actually present.
"""

from dataclasses import dataclass
from typing import Iterable, Sequence

import structlog

from orientplan.core.dag import DAG
from orientplan.exceptions import InvalidResourceSpec, MissingDependency
from orientplan.resources.descriptor import ResourceDescriptor, ResourceKind

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OrderingRule:
    """Every ``dependent`` resource needs every ``dependency`` resource realized first."""

    dependent: ResourceKind
    dependency: ResourceKind

    def __str__(self):
        return f"{self.dependent.value} -> {self.dependency.value}"


DEFAULT_RULES: tuple[OrderingRule, ...] = (
    OrderingRule(ResourceKind.SECURITY_BOUNDARY, ResourceKind.NETWORK),
    OrderingRule(ResourceKind.COMPUTE_POOL, ResourceKind.NETWORK),
    OrderingRule(ResourceKind.COMPUTE_POOL, ResourceKind.SECURITY_BOUNDARY),
    OrderingRule(ResourceKind.COMPUTE_POOL, ResourceKind.COMPILED_POLICY),
    OrderingRule(ResourceKind.TASK_DEFINITION, ResourceKind.CREDENTIAL),
    # Volumes are attached to the task definition that owns them
    OrderingRule(ResourceKind.VOLUME_MOUNT, ResourceKind.TASK_DEFINITION),
    OrderingRule(ResourceKind.SERVICE, ResourceKind.COMPUTE_POOL),
    OrderingRule(ResourceKind.SERVICE, ResourceKind.TASK_DEFINITION),
    OrderingRule(ResourceKind.SERVICE, ResourceKind.VOLUME_MOUNT),
)


class GraphAssembler:
    """
    Builds the dependency DAG for a set of descriptors.

    Example:
        dag = GraphAssembler().assemble(descriptors)
    """

    def __init__(self, rules: Sequence[OrderingRule] = DEFAULT_RULES):
        self.rules = tuple(rules)

    def assemble(self, descriptors: Iterable[ResourceDescriptor]) -> DAG:
        """
        Assemble the DAG.

        Raises:
            InvalidResourceSpec: If two descriptors share an identifier
            MissingDependency: If a rule or explicit dependency names an absent resource
        """
        dag = DAG()
        by_kind: dict[ResourceKind, list[ResourceDescriptor]] = {}

        for descriptor in descriptors:
            if descriptor.id in dag.nodes:
                raise InvalidResourceSpec(descriptor.id, "id", "is declared more than once")
            dag.add_node(descriptor)
            by_kind.setdefault(descriptor.kind, []).append(descriptor)

        for node in list(dag.nodes.values()):
            for dependency in sorted(node.descriptor.depends_on):
                if dependency not in dag.nodes:
                    raise MissingDependency(node.name, dependency)
                dag.add_edge(dependency, node.name)

        for rule in self.rules:
            dependents = by_kind.get(rule.dependent, [])
            if not dependents:
                continue
            dependencies = by_kind.get(rule.dependency, [])
            if not dependencies:
                raise MissingDependency(dependents[0].id, rule.dependency.value)
            for dependent in dependents:
                for dependency in dependencies:
                    dag.add_edge(dependency.id, dependent.id)

        logger.debug("graph_assembled", nodes=len(dag.nodes), edges=len(dag.edges()))
        return dag


def assemble(
    descriptors: Iterable[ResourceDescriptor],
    rules: Sequence[OrderingRule] = DEFAULT_RULES,
) -> DAG:
    """Assemble a DAG with the given rules (module-level convenience)."""
    return GraphAssembler(rules).assemble(descriptors)
