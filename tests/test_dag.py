"""
Tests for DAG (Directed Acyclic Graph) functionality.
"""

import pytest
from orientplan.core.dag import DAG
from orientplan.resources.descriptor import ResourceDescriptor, ResourceKind


def node(name, kind=ResourceKind.SERVICE):
    return ResourceDescriptor(kind=kind, name=name)


def dag_with(*names):
    dag = DAG()
    for name in names:
        dag.add_node(node(name))
    return dag


class TestDAG:
    """Tests for DAG class."""

    def test_empty_dag(self):
        """Test creating an empty DAG."""
        dag = DAG()

        assert len(dag.nodes) == 0
        assert dag.topological_sort() == []

    def test_add_node(self):
        """Test adding nodes to DAG, keyed by descriptor id."""
        dag = DAG()

        descriptor = node("task1")
        dag.add_node(descriptor)

        assert "service:task1" in dag.nodes
        assert dag.nodes["service:task1"].descriptor == descriptor

    def test_add_edge(self):
        """Test adding edges between nodes."""
        dag = dag_with("task1", "task2")
        dag.add_edge("service:task1", "service:task2")

        # task2 depends on task1
        assert "service:task1" in dag.nodes["service:task2"].dependencies
        assert "service:task2" in dag.nodes["service:task1"].dependents

    def test_add_edge_twice_is_idempotent(self):
        dag = dag_with("task1", "task2")
        dag.add_edge("service:task1", "service:task2")
        dag.add_edge("service:task1", "service:task2")

        assert dag.get_dependencies("service:task2") == ["service:task1"]
        assert len(dag.edges()) == 1

    def test_add_edge_unknown_node(self):
        dag = dag_with("task1")

        with pytest.raises(ValueError):
            dag.add_edge("service:task1", "service:missing")

    def test_topological_sort(self):
        """Test topological sorting of DAG."""
        dag = dag_with("task3", "task2", "task1")

        # task3 -> task2 -> task1, against alphabetical order
        dag.add_edge("service:task3", "service:task2")
        dag.add_edge("service:task2", "service:task1")

        assert dag.topological_sort() == ["service:task3", "service:task2", "service:task1"]

    def test_topological_sort_complex(self):
        """Test topological sorting with parallel branches."""
        dag = dag_with("task1", "task2", "task3", "task4")

        # Create a diamond-shaped DAG:
        #     task1
        #    /     \
        # task2   task3
        #    \     /
        #     task4
        dag.add_edge("service:task1", "service:task2")
        dag.add_edge("service:task1", "service:task3")
        dag.add_edge("service:task2", "service:task4")
        dag.add_edge("service:task3", "service:task4")

        sorted_nodes = dag.topological_sort()

        assert sorted_nodes == ["service:task1", "service:task2", "service:task3", "service:task4"]

    def test_topological_sort_prefers_kind_precedence(self):
        """Ready nodes are ordered by kind precedence before identifier."""
        dag = DAG()
        dag.add_node(node("a", ResourceKind.SERVICE))
        dag.add_node(node("z", ResourceKind.NETWORK))
        dag.add_node(node("m", ResourceKind.CREDENTIAL))

        assert dag.topological_sort() == ["network:z", "credential:m", "service:a"]

    def test_topological_sort_raises_on_cycle(self):
        dag = dag_with("task1", "task2")
        dag.add_edge("service:task1", "service:task2")
        dag.add_edge("service:task2", "service:task1")

        with pytest.raises(ValueError):
            dag.topological_sort()

    def test_cycle_detection(self):
        """Test detecting cycles in DAG."""
        dag = dag_with("task1", "task2", "task3")

        # Create a cycle: task1 -> task2 -> task3 -> task1
        dag.add_edge("service:task1", "service:task2")
        dag.add_edge("service:task2", "service:task3")
        dag.add_edge("service:task3", "service:task1")

        cycle = dag.detect_cycles()

        assert cycle is not None
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"service:task1", "service:task2", "service:task3"}

    def test_self_loop_is_a_cycle(self):
        dag = dag_with("task1")
        dag.add_edge("service:task1", "service:task1")

        assert dag.detect_cycles() == ["service:task1", "service:task1"]

    def test_no_cycle_detection(self):
        """Test that no cycle is detected in valid DAG."""
        dag = dag_with("task1", "task2", "task3")

        dag.add_edge("service:task1", "service:task2")
        dag.add_edge("service:task2", "service:task3")

        assert dag.detect_cycles() is None

    def test_execution_levels(self):
        """Test getting provisioning stages."""
        dag = dag_with("task1", "task2", "task3", "task4")

        dag.add_edge("service:task1", "service:task2")
        dag.add_edge("service:task1", "service:task3")
        dag.add_edge("service:task2", "service:task4")
        dag.add_edge("service:task3", "service:task4")

        levels = dag.get_execution_levels()

        assert levels == [
            ["service:task1"],
            ["service:task2", "service:task3"],
            ["service:task4"],
        ]

    def test_dag_to_dict(self):
        """Test converting DAG to dictionary."""
        dag = dag_with("task1", "task2")
        dag.add_edge("service:task1", "service:task2")

        dag_dict = dag.to_dict()

        assert len(dag_dict["nodes"]) == 2
        assert dag_dict["edges"] == [{"from": "service:task2", "to": "service:task1"}]

    def test_get_dependencies(self):
        """Test getting dependencies of a node."""
        dag = dag_with("task1", "task2", "task3")

        dag.add_edge("service:task1", "service:task3")
        dag.add_edge("service:task2", "service:task3")

        assert set(dag.get_dependencies("service:task3")) == {"service:task1", "service:task2"}
        assert dag.get_dependencies("service:unknown") == []

    def test_get_dependents(self):
        """Test getting dependents of a node."""
        dag = dag_with("task1", "task2", "task3")

        dag.add_edge("service:task1", "service:task2")
        dag.add_edge("service:task1", "service:task3")

        assert set(dag.get_dependents("service:task1")) == {"service:task2", "service:task3"}
