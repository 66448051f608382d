"""
DAG (Directed Acyclic Graph) of resource descriptors.
"""

import heapq
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from orientplan.resources.descriptor import DependencyEdge, ResourceDescriptor


class NodeState(Enum):
    """Traversal state of a node during cycle detection."""

    UNVISITED = "unvisited"
    VISITING = "visiting"
    EMITTED = "emitted"


@dataclass
class DAGNode:
    """Represents a node in the resource DAG."""

    name: str
    descriptor: ResourceDescriptor
    dependencies: List[str] = field(default_factory=list)
    dependents: List[str] = field(default_factory=list)


class DAG:
    """
    Directed Acyclic Graph for resource dependencies.

    Provides:
    1. Dependency bookkeeping
    2. Deterministic topological sorting
    3. Cycle detection
    4. Provisioning stages for parallel realization
    """

    def __init__(self):
        self.nodes: Dict[str, DAGNode] = {}
        self._adjacency_list: Dict[str, List[str]] = defaultdict(list)

    def add_node(self, descriptor: ResourceDescriptor) -> None:
        """Add a descriptor to the DAG, keyed by its identifier."""
        if descriptor.id not in self.nodes:
            self.nodes[descriptor.id] = DAGNode(name=descriptor.id, descriptor=descriptor)

    def add_edge(self, from_node: str, to_node: str) -> None:
        """
        Add a directed edge from one node to another.

        Args:
            from_node: The node that the 'to_node' depends on
            to_node: The dependent node
        """
        if from_node not in self.nodes or to_node not in self.nodes:
            raise ValueError(f"Both nodes must exist in DAG before adding edge {from_node} -> {to_node}")

        if to_node in self._adjacency_list[from_node]:
            return

        self._adjacency_list[from_node].append(to_node)
        self.nodes[to_node].dependencies.append(from_node)
        self.nodes[from_node].dependents.append(to_node)

    def get_dependencies(self, node_name: str) -> List[str]:
        """Get all nodes that this node depends on."""
        return self.nodes[node_name].dependencies if node_name in self.nodes else []

    def get_dependents(self, node_name: str) -> List[str]:
        """Get all nodes that depend on this node."""
        return self.nodes[node_name].dependents if node_name in self.nodes else []

    def edges(self) -> List[DependencyEdge]:
        """All edges, sorted by dependent then dependency."""
        return sorted(
            DependencyEdge(dependent=to_node, dependency=from_node)
            for from_node, to_nodes in self._adjacency_list.items()
            for to_node in to_nodes
        )

    def _node_key(self, key: Optional[Callable[[ResourceDescriptor], Any]]) -> Callable[[str], Any]:
        if key is None:
            return lambda name: self.nodes[name].descriptor.sort_key()
        return lambda name: key(self.nodes[name].descriptor)

    def topological_sort(self, key: Optional[Callable[[ResourceDescriptor], Any]] = None) -> List[str]:
        """
        Return a deterministic topological ordering of the DAG.

        Among nodes whose dependencies are all placed, the one with the
        smallest key goes next. The default key is kind precedence, then
        identifier.

        Raises:
            ValueError: If the graph contains cycles
        """
        node_key = self._node_key(key)

        in_degree = {node: len(self.nodes[node].dependencies) for node in self.nodes}

        ready = [(node_key(node), node) for node, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        result = []

        while ready:
            _, node = heapq.heappop(ready)
            result.append(node)

            for dependent in self._adjacency_list[node]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, (node_key(dependent), dependent))

        if len(result) != len(self.nodes):
            raise ValueError("DAG contains cycles - cannot perform topological sort")

        return result

    def detect_cycles(self) -> Optional[List[str]]:
        """
        Detect if there are any cycles in the DAG.

        Walks dependencies depth-first. A node moves UNVISITED -> VISITING on
        entry and VISITING -> EMITTED once all of its dependencies are done;
        reaching a VISITING node again closes a cycle.

        Returns:
            The cycle path (first member repeated at the end) if one exists, None otherwise
        """
        node_key = self._node_key(None)
        state = {node: NodeState.UNVISITED for node in self.nodes}
        path: List[str] = []

        def dfs(node: str) -> Optional[List[str]]:
            state[node] = NodeState.VISITING
            path.append(node)

            for dependency in sorted(self.nodes[node].dependencies, key=node_key):
                if state[dependency] is NodeState.VISITING:
                    cycle_start = path.index(dependency)
                    return path[cycle_start:] + [dependency]
                if state[dependency] is NodeState.UNVISITED:
                    cycle = dfs(dependency)
                    if cycle:
                        return cycle

            path.pop()
            state[node] = NodeState.EMITTED
            return None

        for node in sorted(self.nodes, key=node_key):
            if state[node] is NodeState.UNVISITED:
                cycle = dfs(node)
                if cycle:
                    return cycle

        return None

    def get_execution_levels(self) -> List[List[str]]:
        """
        Get provisioning stages.

        Returns a list of lists, where each inner list contains resources
        that can be realized in parallel (have no dependencies on each other).
        """
        sorted_nodes = self.topological_sort()
        level_of: Dict[str, int] = {}
        levels: List[List[str]] = []

        for node in sorted_nodes:
            # Node must be placed after all its dependencies
            level_idx = max((level_of[dep] + 1 for dep in self.get_dependencies(node)), default=0)

            while len(levels) <= level_idx:
                levels.append([])

            levels[level_idx].append(node)
            level_of[node] = level_idx

        return levels

    def to_dict(self) -> Dict[str, Any]:
        """Convert DAG to dictionary representation for serialization."""
        return {
            "nodes": [
                {
                    "name": node.name,
                    "kind": node.descriptor.kind.value,
                    "dependencies": sorted(node.dependencies),
                    "dependents": sorted(node.dependents),
                }
                for node in self.nodes.values()
            ],
            "edges": [
                {"from": edge.dependent, "to": edge.dependency}
                for edge in self.edges()
            ],
        }

    def __repr__(self) -> str:
        return f"DAG(nodes={len(self.nodes)}, edges={sum(len(deps) for deps in self._adjacency_list.values())})"
