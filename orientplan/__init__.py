"""
orientplan: validated resource plans for OrientDB on Amazon ECS.

orientplan turns flat configuration (environment variables) into an
ordered plan of resource descriptors that a provisioning engine can apply
without guessing at dependency order.

Core concepts:
- Settings: Validated configuration; every problem is reported at once
- ResourceDescriptor: One logical resource (network, credential, compute pool, ...)
- DAG: Explicit dependency edges between descriptors
- Plan: Deterministic, topologically ordered descriptors, consumed once
- Applier: Hands a plan to an engine (Pulumi AWS, or a recording dry run)

Example:
    import os
    from orientplan import build_plan

    plan = build_plan(os.environ)
    for descriptor in plan:
        print(descriptor.id)
"""

__version__ = "0.1.0"

from orientplan.exceptions import (
    OrientPlanError,
    ConfigurationError,
    InvalidResourceSpec,
    MissingDependency,
    CyclicDependency,
    PlanAlreadyConsumed,
    ApplyError,
)
from orientplan.config import Settings, load_settings
from orientplan.resources import ResourceKind, ResourceDescriptor, VolumeMount, DescriptorFactory
from orientplan.core import DAG, GraphAssembler, OrderingRule, Plan, PlanEmitter, build_plan
from orientplan.apply import Applier, RecordingApplier
from orientplan.logging_config import route_to_stdlib

route_to_stdlib()

__all__ = [
    "OrientPlanError",
    "ConfigurationError",
    "InvalidResourceSpec",
    "MissingDependency",
    "CyclicDependency",
    "PlanAlreadyConsumed",
    "ApplyError",
    "Settings",
    "load_settings",
    "ResourceKind",
    "ResourceDescriptor",
    "VolumeMount",
    "DescriptorFactory",
    "DAG",
    "GraphAssembler",
    "OrderingRule",
    "Plan",
    "PlanEmitter",
    "build_plan",
    "Applier",
    "RecordingApplier",
]
