"""
Applier: the seam between a Plan and whatever provisions it.

Appliers receive the plan in dependency order and are free to realize it
however their engine requires. The core never calls a cloud API itself.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import structlog

from orientplan.core.plan import Plan
from orientplan.exceptions import ApplyError, OrientPlanError
from orientplan.resources.descriptor import ResourceDescriptor, ResourceKind

logger = structlog.get_logger(__name__)


@dataclass
class AppliedStack:
    """
    Result of applying a plan.

    Maps each descriptor identifier to whatever the engine produced for
    it (Pulumi resources, recorded dicts, ...).
    """

    fingerprint: str
    resources: dict[str, Any] = field(default_factory=dict)

    def get_resource(self, descriptor_id: str) -> Any | None:
        return self.resources.get(descriptor_id)


class Applier(ABC):
    """
    Abstract applier interface.

    Subclasses implement one handler per resource kind; ``apply`` walks
    the plan in order and dispatches.
    """

    def apply(self, plan: Plan) -> AppliedStack:
        """
        Realize a plan.

        Raises:
            PlanAlreadyConsumed: If the plan was applied before
            ApplyError: If the engine fails on a resource
        """
        fingerprint = plan.fingerprint()
        descriptors = plan.consume()
        applied = AppliedStack(fingerprint=fingerprint)

        for descriptor in descriptors:
            try:
                applied.resources[descriptor.id] = self.apply_descriptor(descriptor, applied)
            except OrientPlanError:
                raise
            except Exception as e:
                raise ApplyError(
                    f"Failed to apply '{descriptor.id}': {e}",
                    {"resource": descriptor.id, "kind": descriptor.kind.value},
                ) from e
            logger.debug("resource_applied", resource=descriptor.id)

        logger.info("plan_applied", fingerprint=fingerprint, resources=len(applied.resources))
        return applied

    def apply_descriptor(self, descriptor: ResourceDescriptor, applied: AppliedStack) -> Any:
        """Dispatch to the handler for the descriptor's kind."""
        handler = getattr(self, f"apply_{descriptor.kind.name.lower()}", None)
        if handler is None:
            raise ApplyError(f"{type(self).__name__} cannot apply resources of kind '{descriptor.kind.value}'")
        return handler(descriptor, applied)

    @abstractmethod
    def get_engine_name(self) -> str:
        """Name of the provisioning engine, for logs and CLI output."""
        pass


class RecordingApplier(Applier):
    """
    Applier that records what it was asked to do instead of provisioning.

    Useful as a dry run and in tests.
    """

    def __init__(self):
        self.calls: list[tuple[ResourceKind, str]] = []

    def get_engine_name(self) -> str:
        return "recording"

    def apply_descriptor(self, descriptor: ResourceDescriptor, applied: AppliedStack) -> Any:
        missing = [dep for dep in sorted(descriptor.depends_on) if dep not in applied.resources]
        if missing:
            raise ApplyError(f"'{descriptor.id}' applied before its dependencies: {missing}")
        self.calls.append((descriptor.kind, descriptor.id))
        return descriptor.to_dict()
