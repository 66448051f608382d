"""
Exception hierarchy for orientplan.

Every failure of a build is terminal: these errors describe invalid input,
not transient conditions, so nothing here is retried.
"""

from typing import Any, Iterable, Mapping, Optional


class OrientPlanError(Exception):
    """Base exception for all orientplan errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(OrientPlanError):
    """
    Raised when raw configuration cannot be turned into Settings.

    Carries every problem found in a single pass, keyed by setting name.
    """

    def __init__(self, problems: Mapping[str, str]):
        self.problems = dict(sorted(problems.items()))
        listing = "; ".join(f"{key}: {reason}" for key, reason in self.problems.items())
        super().__init__(f"Invalid configuration ({len(self.problems)} problem(s)): {listing}")

    @property
    def keys(self) -> list[str]:
        return list(self.problems)


class InvalidResourceSpec(OrientPlanError):
    """Raised when a descriptor would violate a field constraint."""

    def __init__(self, resource: str, field: str, reason: str):
        self.resource = resource
        self.field = field
        super().__init__(
            f"Invalid resource '{resource}': {field} {reason}",
            {"resource": resource, "field": field},
        )


class MissingDependency(OrientPlanError):
    """Raised when an ordering rule points at a resource that is not in the graph."""

    def __init__(self, dependent: str, dependency: str):
        self.dependent = dependent
        self.dependency = dependency
        super().__init__(
            f"Resource '{dependent}' depends on '{dependency}', which is not part of the graph"
        )


class CyclicDependency(OrientPlanError):
    """Raised when the dependency graph is not acyclic."""

    def __init__(self, members: Iterable[str]):
        self.members = list(members)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.members)}")


class PlanAlreadyConsumed(OrientPlanError):
    """Raised when a plan is handed to an applier a second time."""

    def __init__(self, fingerprint: str):
        super().__init__(f"Plan {fingerprint} has already been consumed")


class ApplyError(OrientPlanError):
    """Raised when an applier fails to realize a plan."""
    pass
