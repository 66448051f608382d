"""
Descriptor factory: builds the OrientDB stack's resource descriptors from
validated Settings.

Every method is pure. The same Settings always yield structurally
identical descriptors with the same identifiers.
"""

from typing import Any

import structlog

from orientplan.config.settings import Settings
from orientplan.exceptions import InvalidResourceSpec
from orientplan.resources.descriptor import (
    PortMapping,
    ResourceDescriptor,
    ResourceKind,
    VolumeMount,
    resource_id,
)

logger = structlog.get_logger(__name__)

CLUSTER_NAME = "OrientDB-Cluster"
CAPACITY_PROVIDER_NAME = "AsgCapacityProvider"
SERVICE_NAME = "OrientDB"
TASK_FAMILY = "OrientDB"
CONTAINER_NAME = "OrientDB-ECS"
SECRET_NAME = "OrientRootPassword"
SECRET_KEY = "password"
POLICY_NAME = "ECS-REXRay-EBS"
DATABASE_VOLUME_NAME = "orientdb-databases-vol"
BACKUP_VOLUME_NAME = "orientdb-backup-vol"
VOLUME_DRIVER = "rexray/ebs"
LOG_RETENTION_DAYS = 30

# SSM parameter holding the current ECS-optimized Amazon Linux 2 AMI
ECS_AMI_PARAMETER = "/aws/service/ecs/optimized-ami/amazon-linux-2/recommended/image_id"

ORIENTDB_PORTS = (
    PortMapping(container_port=2424, host_port=2424),  # binary protocol
    PortMapping(container_port=2480, host_port=2480),  # HTTP / studio
)

# Volume lifecycle permissions the REX-Ray EBS plugin needs on the instance role
REXRAY_EBS_ACTIONS = (
    "ec2:AttachVolume",
    "ec2:CreateVolume",
    "ec2:CreateSnapshot",
    "ec2:CreateTags",
    "ec2:DeleteVolume",
    "ec2:DeleteSnapshot",
    "ec2:DescribeAvailabilityZones",
    "ec2:DescribeInstances",
    "ec2:DescribeVolumes",
    "ec2:DescribeVolumeAttribute",
    "ec2:DescribeVolumeStatus",
    "ec2:DescribeSnapshots",
    "ec2:CopySnapshot",
    "ec2:DescribeSnapshotAttribute",
    "ec2:DetachVolume",
    "ec2:ModifySnapshotAttribute",
    "ec2:ModifyVolumeAttribute",
    "ec2:DescribeTags",
)

# Lets the task execution role resolve the root password secret
SECRET_READ_ACTIONS = (
    "kms:Decrypt",
    "ssm:GetParameters",
    "secretsmanager:GetSecretValue",
)

_IMDS_REGION_LOOKUP = (
    'TOKEN=$(curl -s -X PUT "http://169.254.169.254/latest/api/token" '
    '-H "X-aws-ec2-metadata-token-ttl-seconds: 60")\n'
    'EBS_REGION=$(curl -s -H "X-aws-ec2-metadata-token: $TOKEN" '
    "http://169.254.169.254/latest/meta-data/placement/region)"
)


def render_user_data(cluster_name: str, region: str) -> str:
    """
    Bootstrap script for container instances.

    Registers the instance with the cluster and installs the REX-Ray EBS
    volume driver. Without a configured region the instance looks its own
    region up from the metadata service.
    """
    lines = [
        "#!/bin/bash",
        f"echo ECS_CLUSTER={cluster_name} >> /etc/ecs/ecs.config",
    ]
    if region:
        lines.append(f"EBS_REGION={region}")
    else:
        lines.append(_IMDS_REGION_LOOKUP)
    lines.append(
        f"docker plugin install {VOLUME_DRIVER} REXRAY_PREEMPT=true "
        "EBS_REGION=$EBS_REGION --grant-all-permissions"
    )
    return "\n".join(lines) + "\n"


def _positive(resource: str, field: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidResourceSpec(resource, field, f"must be a positive integer, got {value!r}")
    return value


def _non_empty(resource: str, field: str, value: str) -> str:
    if not value or not value.strip():
        raise InvalidResourceSpec(resource, field, "must not be empty")
    return value


class DescriptorFactory:
    """
    Builds one descriptor per logical resource of the stack.

    Example:
        factory = DescriptorFactory(load_settings(os.environ))
        descriptors = factory.build_all()
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def build_all(self) -> list[ResourceDescriptor]:
        """Build every descriptor of the stack."""
        task_definition = self.task_definition()
        descriptors = [
            self.network(),
            self.security_boundary(),
            self.credential(),
            self.compiled_policy(),
            self.compute_pool(),
            task_definition,
            *[self.volume_mount(mount, task_definition.id) for mount in self.volume_mounts()],
            self.service(),
        ]
        logger.debug("descriptors_built", count=len(descriptors))
        return descriptors

    def network(self) -> ResourceDescriptor:
        rid = resource_id(ResourceKind.NETWORK, "vpc")
        return ResourceDescriptor(
            kind=ResourceKind.NETWORK,
            name="vpc",
            properties={
                "vpc_id": _non_empty(rid, "vpc_id", self.settings.vpc_id),
                "subnet_ids": tuple(self.settings.subnet_ids),
            },
        )

    def security_boundary(self) -> ResourceDescriptor:
        # An empty group id leaves the choice to the provider's default group
        return ResourceDescriptor(
            kind=ResourceKind.SECURITY_BOUNDARY,
            name="instance",
            properties={"security_group_id": self.settings.security_group_id},
            depends_on={resource_id(ResourceKind.NETWORK, "vpc")},
        )

    def credential(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            kind=ResourceKind.CREDENTIAL,
            name="orientdb-root-password",
            properties={
                "secret_name": SECRET_NAME,
                "secret_key": SECRET_KEY,
                "value": self.settings.root_password,
            },
        )

    def compiled_policy(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            kind=ResourceKind.COMPILED_POLICY,
            name="ecs-rexray-ebs",
            properties={
                "policy_name": POLICY_NAME,
                "statements": (
                    {"effect": "Allow", "actions": REXRAY_EBS_ACTIONS, "resources": ("*",)},
                ),
            },
        )

    def compute_pool(self) -> ResourceDescriptor:
        rid = resource_id(ResourceKind.COMPUTE_POOL, "orientdb-asg")
        if not self.settings.subnet_ids:
            raise InvalidResourceSpec(rid, "subnet_ids", "must list at least one placement subnet")

        policy_id = resource_id(ResourceKind.COMPILED_POLICY, "ecs-rexray-ebs")
        return ResourceDescriptor(
            kind=ResourceKind.COMPUTE_POOL,
            name="orientdb-asg",
            properties={
                "cluster_name": CLUSTER_NAME,
                "instance_type": _non_empty(rid, "instance_type", self.settings.instance_type),
                "image_parameter": ECS_AMI_PARAMETER,
                "key_name": self.settings.ssh_key_name,
                "min_capacity": 1,
                "max_capacity": 1,
                "desired_capacity": 1,
                "subnet_ids": tuple(self.settings.subnet_ids),
                "security_group_id": self.settings.security_group_id,
                "region": self.settings.region,
                "user_data": render_user_data(CLUSTER_NAME, self.settings.region),
                "capacity_provider_name": CAPACITY_PROVIDER_NAME,
                "instance_policies": (policy_id,),
            },
            depends_on={
                resource_id(ResourceKind.NETWORK, "vpc"),
                resource_id(ResourceKind.SECURITY_BOUNDARY, "instance"),
                policy_id,
            },
        )

    def task_definition(self) -> ResourceDescriptor:
        rid = resource_id(ResourceKind.TASK_DEFINITION, "orientdb")
        credential_id = resource_id(ResourceKind.CREDENTIAL, "orientdb-root-password")
        container = {
            "name": CONTAINER_NAME,
            "image": _non_empty(rid, "image", self.settings.image),
            "cpu": _positive(rid, "cpu", self.settings.cpu),
            "memory": _positive(rid, "memory", self.settings.memory),
            "essential": True,
            "port_mappings": ORIENTDB_PORTS,
            "log_stream_prefix": CONTAINER_NAME,
            "log_retention_days": LOG_RETENTION_DAYS,
            "environment": {"ORIENTDB_OPTS_MEMORY": self.settings.opts_memory},
            "secrets": {
                "ORIENTDB_ROOT_PASSWORD": {"credential": credential_id, "key": SECRET_KEY},
            },
        }
        return ResourceDescriptor(
            kind=ResourceKind.TASK_DEFINITION,
            name="orientdb",
            properties={
                "family": TASK_FAMILY,
                "network_mode": "bridge",
                "container": container,
                "execution_policy": {"actions": SECRET_READ_ACTIONS, "credential": credential_id},
            },
            depends_on={credential_id},
        )

    def volume_mounts(self) -> list[VolumeMount]:
        """The database volume and the backup volume, in declaration order."""
        size = self.settings.volume_size
        return [
            VolumeMount(
                name=DATABASE_VOLUME_NAME,
                size=size,
                volume_type=self.settings.volume_type,
                container_path="/orientdb/databases",
                autoprovision=True,
            ),
            VolumeMount(
                name=BACKUP_VOLUME_NAME,
                size=size,
                volume_type=self.settings.volume_type,
                container_path="/orientdb/backup",
                autoprovision=False,
            ),
        ]

    def volume_mount(self, mount: VolumeMount, task_definition_id: str) -> ResourceDescriptor:
        """Descriptor for a volume owned by the given task definition."""
        rid = resource_id(ResourceKind.VOLUME_MOUNT, mount.name)
        _positive(rid, "size", mount.size)
        _non_empty(rid, "volume_type", mount.volume_type)
        if not mount.container_path.startswith("/"):
            raise InvalidResourceSpec(rid, "container_path", "must be an absolute path")

        return ResourceDescriptor(
            kind=ResourceKind.VOLUME_MOUNT,
            name=mount.name,
            properties={"mount": mount, "task_definition": task_definition_id},
            depends_on={task_definition_id},
        )

    def service(self) -> ResourceDescriptor:
        pool_id = resource_id(ResourceKind.COMPUTE_POOL, "orientdb-asg")
        task_definition_id = resource_id(ResourceKind.TASK_DEFINITION, "orientdb")
        return ResourceDescriptor(
            kind=ResourceKind.SERVICE,
            name="orientdb",
            properties={
                "service_name": SERVICE_NAME,
                "cluster_name": CLUSTER_NAME,
                "task_definition": task_definition_id,
                "compute_pool": pool_id,
                "capacity_provider_name": CAPACITY_PROVIDER_NAME,
                "desired_count": 1,
                # Single instance: the old task must stop before the new one can claim the volumes
                "min_healthy_percent": 0,
                "circuit_breaker": {"enable": True, "rollback": True},
            },
            depends_on={pool_id, task_definition_id},
        )
