"""
Appliers hand a Plan to a provisioning engine.

The Pulumi AWS applier lives in ``orientplan.apply.pulumi_aws`` and needs
the ``aws`` extra; it is not imported here.
"""

from orientplan.apply.base import Applier, AppliedStack, RecordingApplier

__all__ = [
    "Applier",
    "AppliedStack",
    "RecordingApplier",
]
