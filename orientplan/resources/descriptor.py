"""
Resource descriptors: typed, provider-agnostic declarations of one
logical piece of infrastructure.

A descriptor says WHAT should exist and which other descriptors must be
realized first. It never talks to a cloud provider; appliers do that.
"""

from dataclasses import asdict, dataclass, field, is_dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal, Mapping, NamedTuple

from pydantic import SecretStr


class ResourceKind(str, Enum):
    """
    Kinds of resources a plan can contain.

    Declaration order is the tie-break precedence used when ordering a plan.
    """

    NETWORK = "network"
    SECURITY_BOUNDARY = "security-boundary"
    CREDENTIAL = "credential"
    COMPILED_POLICY = "compiled-policy"
    COMPUTE_POOL = "compute-pool"
    TASK_DEFINITION = "task-definition"
    VOLUME_MOUNT = "volume-mount"
    SERVICE = "service"

    @property
    def precedence(self) -> int:
        return list(ResourceKind).index(self)


def resource_id(kind: ResourceKind, name: str) -> str:
    """Deterministic identifier for a descriptor of the given kind and logical name."""
    return f"{kind.value}:{name}"


@dataclass(frozen=True)
class PortMapping:
    """Container port published on the host."""

    container_port: int
    host_port: int
    protocol: Literal["tcp", "udp"] = "tcp"


@dataclass(frozen=True)
class VolumeMount:
    """
    A Docker volume backed by a block-storage volume, mounted into the
    task definition's container.
    """

    name: str
    """Volume name, also used as the EBS volume name by the driver"""

    size: int
    """Backing volume size in GiB"""

    volume_type: str
    """Provider volume type (e.g. gp3)"""

    container_path: str
    """Mount path inside the container"""

    read_only: bool = False

    autoprovision: bool = False
    """Create the backing volume if it does not exist yet"""

    scope: Literal["shared", "task"] = "shared"

    driver: str = "rexray/ebs"

    def driver_options(self) -> dict[str, str]:
        return {"volumetype": self.volume_type, "size": str(self.size)}


@dataclass(frozen=True)
class ResourceDescriptor:
    """
    One logical infrastructure resource.

    Attributes:
        kind: Resource kind
        name: Logical name, unique within the kind
        properties: Read-only mapping of typed properties
        depends_on: Identifiers of descriptors that must be realized first
    """

    kind: ResourceKind
    name: str
    properties: Mapping[str, Any] = field(default_factory=dict)
    depends_on: frozenset[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "properties", _freeze(self.properties))
        object.__setattr__(self, "depends_on", frozenset(self.depends_on))

    @property
    def id(self) -> str:
        return resource_id(self.kind, self.name)

    def sort_key(self) -> tuple[int, str]:
        """Kind precedence first, then identifier."""
        return (self.kind.precedence, self.id)

    def to_dict(self) -> dict[str, Any]:
        """Plain, serializable view. Secret values are masked."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "properties": {key: _plain(value) for key, value in self.properties.items()},
            "depends_on": sorted(self.depends_on),
        }

    def __hash__(self):
        return hash(self.id)

    def __repr__(self):
        return f"ResourceDescriptor({self.id}, depends_on={sorted(self.depends_on)})"


class DependencyEdge(NamedTuple):
    """``dependency`` must be realized before ``dependent``."""

    dependent: str
    dependency: str


def _freeze(value: Any) -> Any:
    # Nested mappings become read-only proxies and lists become tuples
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)) and not hasattr(value, "_fields"):
        return tuple(_freeze(item) for item in value)
    return value


def _plain(value: Any) -> Any:
    if isinstance(value, SecretStr):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return _plain(asdict(value))
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_plain(item) for item in value]
        return sorted(items) if isinstance(value, (set, frozenset)) else items
    return value
