"""Resource descriptors and the factory that builds them."""

from orientplan.resources.descriptor import (
    ResourceKind,
    ResourceDescriptor,
    VolumeMount,
    PortMapping,
    DependencyEdge,
    resource_id,
)
from orientplan.resources.factory import DescriptorFactory

__all__ = [
    "ResourceKind",
    "ResourceDescriptor",
    "VolumeMount",
    "PortMapping",
    "DependencyEdge",
    "resource_id",
    "DescriptorFactory",
]
