"""
Tests for dependency graph assembly.
"""

import pytest

from orientplan.core.graph import DEFAULT_RULES, GraphAssembler, OrderingRule, assemble
from orientplan.exceptions import InvalidResourceSpec, MissingDependency
from orientplan.resources import DescriptorFactory, ResourceDescriptor, ResourceKind


@pytest.fixture
def descriptors(settings):
    return DescriptorFactory(settings).build_all()


class TestGraphAssembler:
    """Tests for GraphAssembler."""

    def test_all_descriptors_become_nodes(self, descriptors):
        dag = assemble(descriptors)

        assert set(dag.nodes) == {descriptor.id for descriptor in descriptors}

    def test_rule_edges(self, descriptors):
        dag = assemble(descriptors)

        assert set(dag.get_dependencies("compute-pool:orientdb-asg")) == {
            "network:vpc",
            "security-boundary:instance",
            "compiled-policy:ecs-rexray-ebs",
        }
        assert set(dag.get_dependencies("service:orientdb")) == {
            "compute-pool:orientdb-asg",
            "task-definition:orientdb",
            "volume-mount:orientdb-databases-vol",
            "volume-mount:orientdb-backup-vol",
        }
        assert dag.get_dependencies("volume-mount:orientdb-backup-vol") == ["task-definition:orientdb"]

    def test_explicit_and_rule_edges_are_not_duplicated(self, descriptors):
        dag = assemble(descriptors)

        deps = dag.get_dependencies("task-definition:orientdb")
        assert deps == ["credential:orientdb-root-password"]

    def test_missing_explicit_dependency(self, descriptors):
        without_credential = [d for d in descriptors if d.kind is not ResourceKind.CREDENTIAL]

        with pytest.raises(MissingDependency) as exc_info:
            assemble(without_credential)

        assert exc_info.value.dependent == "task-definition:orientdb"
        assert exc_info.value.dependency == "credential:orientdb-root-password"

    def test_missing_rule_dependency(self):
        service = ResourceDescriptor(kind=ResourceKind.SERVICE, name="orphan")
        rules = [OrderingRule(ResourceKind.SERVICE, ResourceKind.COMPUTE_POOL)]

        with pytest.raises(MissingDependency) as exc_info:
            GraphAssembler(rules).assemble([service])

        assert exc_info.value.dependent == "service:orphan"
        assert exc_info.value.dependency == "compute-pool"
        assert "service:orphan" in str(exc_info.value)

    def test_rules_without_dependents_are_skipped(self):
        network = ResourceDescriptor(kind=ResourceKind.NETWORK, name="vpc")

        dag = assemble([network])

        assert list(dag.nodes) == ["network:vpc"]
        assert dag.edges() == []

    def test_duplicate_identifier(self, descriptors):
        with pytest.raises(InvalidResourceSpec):
            assemble(descriptors + [descriptors[0]])

    def test_default_rules(self):
        assert OrderingRule(ResourceKind.VOLUME_MOUNT, ResourceKind.TASK_DEFINITION) in DEFAULT_RULES
        assert str(DEFAULT_RULES[0]) == "security-boundary -> network"
