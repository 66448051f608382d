"""
Tests for plan emission and the end-to-end build.
"""

import json

import pytest

from orientplan import build_plan
from orientplan.core.graph import DEFAULT_RULES, OrderingRule, assemble
from orientplan.core.plan import PlanEmitter
from orientplan.exceptions import (
    ConfigurationError,
    CyclicDependency,
    InvalidResourceSpec,
    PlanAlreadyConsumed,
)
from orientplan.resources import DescriptorFactory, ResourceKind

EXPECTED_ORDER = [
    "network:vpc",
    "security-boundary:instance",
    "credential:orientdb-root-password",
    "compiled-policy:ecs-rexray-ebs",
    "compute-pool:orientdb-asg",
    "task-definition:orientdb",
    "volume-mount:orientdb-backup-vol",
    "volume-mount:orientdb-databases-vol",
    "service:orientdb",
]


class TestBuildPlan:
    """End-to-end tests for build_plan()."""

    def test_reference_stack_order(self, raw_config):
        plan = build_plan(raw_config)

        assert plan.ids() == EXPECTED_ORDER
        assert [d.kind for d in plan] == [
            ResourceKind.NETWORK,
            ResourceKind.SECURITY_BOUNDARY,
            ResourceKind.CREDENTIAL,
            ResourceKind.COMPILED_POLICY,
            ResourceKind.COMPUTE_POOL,
            ResourceKind.TASK_DEFINITION,
            ResourceKind.VOLUME_MOUNT,
            ResourceKind.VOLUME_MOUNT,
            ResourceKind.SERVICE,
        ]

    def test_deterministic(self, raw_config):
        first = build_plan(raw_config)
        second = build_plan(dict(reversed(list(raw_config.items()))))

        assert first.ids() == second.ids()
        assert json.dumps(first.to_dict()) == json.dumps(second.to_dict())
        assert first.fingerprint() == second.fingerprint()

    def test_dependencies_precede_dependents(self, raw_config):
        plan = build_plan(raw_config)
        position = {descriptor_id: i for i, descriptor_id in enumerate(plan.ids())}

        assert plan.edges
        for edge in plan.edges:
            assert position[edge.dependency] < position[edge.dependent]

    def test_stages(self, raw_config):
        plan = build_plan(raw_config)

        assert plan.stages == (
            ("network:vpc", "credential:orientdb-root-password", "compiled-policy:ecs-rexray-ebs"),
            ("security-boundary:instance", "task-definition:orientdb"),
            (
                "compute-pool:orientdb-asg",
                "volume-mount:orientdb-backup-vol",
                "volume-mount:orientdb-databases-vol",
            ),
            ("service:orientdb",),
        )

    def test_missing_settings_batch_reported(self, raw_config):
        del raw_config["VPC_ID"]
        del raw_config["ORIENTDB_ROOT_PASSWORD"]

        with pytest.raises(ConfigurationError) as exc_info:
            build_plan(raw_config)

        assert set(exc_info.value.problems) == {"VPC_ID", "ORIENTDB_ROOT_PASSWORD"}

    def test_zero_cpu_emits_no_plan(self, raw_config):
        raw_config["ORIENTDB_CPU"] = "0"

        with pytest.raises(InvalidResourceSpec):
            build_plan(raw_config)

    def test_negative_memory_emits_no_plan(self, raw_config):
        raw_config["ORIENTDB_MEMORY"] = "-8192"

        with pytest.raises(InvalidResourceSpec):
            build_plan(raw_config)

    def test_self_dependency_is_cyclic(self, raw_config):
        rules = DEFAULT_RULES + (OrderingRule(ResourceKind.SERVICE, ResourceKind.SERVICE),)

        with pytest.raises(CyclicDependency) as exc_info:
            build_plan(raw_config, rules=rules)

        assert exc_info.value.members == ["service:orientdb", "service:orientdb"]

    def test_transitive_cycle_names_members(self, raw_config):
        rules = DEFAULT_RULES + (OrderingRule(ResourceKind.NETWORK, ResourceKind.SERVICE),)

        with pytest.raises(CyclicDependency) as exc_info:
            build_plan(raw_config, rules=rules)

        members = exc_info.value.members
        assert members[0] == members[-1]
        assert {"network:vpc", "service:orientdb"} <= set(members)
        assert "network:vpc -> " in str(exc_info.value)

    def test_secret_not_serialized(self, raw_config):
        raw_config["ORIENTDB_ROOT_PASSWORD"] = "hunter2-do-not-print"

        plan = build_plan(raw_config)

        assert "hunter2-do-not-print" not in json.dumps(plan.to_dict())


class TestPlan:
    """Tests for the Plan object."""

    def test_plan_is_consumed_once(self, raw_config):
        plan = build_plan(raw_config)

        descriptors = plan.consume()

        assert [d.id for d in descriptors] == EXPECTED_ORDER
        assert plan.consumed
        with pytest.raises(PlanAlreadyConsumed):
            plan.consume()

    def test_sequence_protocol(self, raw_config):
        plan = build_plan(raw_config)

        assert len(plan) == 9
        assert plan[0].id == "network:vpc"
        assert plan.get("service:orientdb").kind is ResourceKind.SERVICE
        assert plan.get("service:missing") is None

    def test_to_dict(self, raw_config):
        data = build_plan(raw_config).to_dict()

        assert [r["id"] for r in data["resources"]] == EXPECTED_ORDER
        mount = data["resources"][6]["properties"]["mount"]
        assert mount["container_path"] == "/orientdb/backup"
        assert {"from": "service:orientdb", "to": "compute-pool:orientdb-asg"} in data["edges"]

    def test_emitter_on_assembled_graph(self, settings):
        dag = assemble(DescriptorFactory(settings).build_all())

        plan = PlanEmitter().emit(dag)

        assert plan.ids() == EXPECTED_ORDER

    def test_emitted_plan_cannot_be_changed(self, raw_config):
        plan = build_plan(raw_config)
        fingerprint = plan.fingerprint()
        task_definition = plan.get("task-definition:orientdb")

        with pytest.raises(TypeError):
            task_definition.properties["container"]["cpu"] = 0
        with pytest.raises(TypeError):
            task_definition.properties["container"]["environment"]["ORIENTDB_OPTS_MEMORY"] = "-Xmx1g"
        with pytest.raises(TypeError):
            plan.get("service:orientdb").properties["circuit_breaker"]["rollback"] = False

        assert plan.fingerprint() == fingerprint

    def test_descriptors_are_hashable(self, raw_config):
        plan = build_plan(raw_config)

        assert len(set(plan)) == 9
        assert plan[0] in {build_plan(raw_config)[0]}

    def test_library_use_is_quiet(self, raw_config, capsys):
        build_plan(raw_config)

        assert capsys.readouterr().out == ""
