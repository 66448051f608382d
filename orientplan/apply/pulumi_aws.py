"""
Pulumi AWS applier: realizes a Plan as Pulumi AWS resources.

Must run inside a Pulumi program (see the repository's __main__.py):
- Secrets Manager secret for the root credential
- IAM policy for the REX-Ray EBS driver
- ECS cluster, launch template, autoscaling group and capacity provider
- EC2 task definition with REX-Ray backed Docker volumes
- ECS service with circuit-breaker rollback
"""

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Mapping

try:
    import pulumi
    import pulumi_aws as aws
except ImportError:
    raise ImportError(
        "pulumi and pulumi_aws required for PulumiAwsApplier. "
        "Install with: pip install orientplan[aws]"
    )

from orientplan.apply.base import AppliedStack, Applier
from orientplan.core.plan import Plan
from orientplan.exceptions import ApplyError
from orientplan.resources.descriptor import ResourceDescriptor, VolumeMount

ECS_INSTANCE_POLICY_ARN = "arn:aws:iam::aws:policy/service-role/AmazonEC2ContainerServiceforEC2Role"
ECS_TASK_EXECUTION_POLICY_ARN = "arn:aws:iam::aws:policy/service-role/AmazonECSTaskExecutionRolePolicy"


def _assume_role_policy(service: str) -> str:
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"Service": service},
            "Action": "sts:AssumeRole",
        }],
    })


@dataclass
class PendingTaskDefinition:
    """
    A task definition whose volumes are still being attached.

    ECS needs every volume at creation time, while the plan realizes the
    volumes after the task definition that owns them. The resource is
    created once the first dependent (the service) needs it.
    """

    descriptor: ResourceDescriptor
    volumes: list[VolumeMount] = field(default_factory=list)
    resource: Any = None


class PulumiAwsApplier(Applier):
    """
    Applies plans with pulumi_aws.

    Example:
        applier = PulumiAwsApplier(region="eu-west-1")
        stack = applier.apply(build_plan(os.environ))
    """

    def __init__(self, region: str | None = None):
        """
        Initialize the applier.

        Args:
            region: AWS region for log configuration (defaults to the
                stack's aws:region config)
        """
        self.region = region or pulumi.Config("aws").get("region")
        if not self.region:
            raise ApplyError("An AWS region is required: pass region= or set aws:region")

    def get_engine_name(self) -> str:
        return "pulumi-aws"

    def apply(self, plan: Plan) -> AppliedStack:
        applied = super().apply(plan)
        # Task definitions nothing depended on still have to exist
        for value in applied.resources.values():
            if isinstance(value, PendingTaskDefinition) and value.resource is None:
                self._realize_task_definition(value, applied)
        return applied

    def _opts(self, descriptor: ResourceDescriptor, applied: AppliedStack) -> pulumi.ResourceOptions:
        depends_on = []
        for dependency in sorted(descriptor.depends_on):
            depends_on.extend(_pulumi_resources(applied.get_resource(dependency)))
        return pulumi.ResourceOptions(depends_on=depends_on)

    def apply_network(self, descriptor: ResourceDescriptor, applied: AppliedStack) -> dict[str, Any]:
        # Existing VPC, referenced by id only
        return {
            "vpc_id": descriptor.properties["vpc_id"],
            "subnet_ids": list(descriptor.properties["subnet_ids"]),
        }

    def apply_security_boundary(self, descriptor: ResourceDescriptor, applied: AppliedStack) -> dict[str, Any]:
        group_id = descriptor.properties["security_group_id"]
        return {"security_group_ids": [group_id] if group_id else []}

    def apply_credential(self, descriptor: ResourceDescriptor, applied: AppliedStack) -> Any:
        props = descriptor.properties
        secret = aws.secretsmanager.Secret(
            descriptor.name,
            name=props["secret_name"],
            opts=self._opts(descriptor, applied),
        )
        aws.secretsmanager.SecretVersion(
            f"{descriptor.name}-value",
            secret_id=secret.id,
            secret_string=pulumi.Output.secret(
                json.dumps({props["secret_key"]: props["value"].get_secret_value()})
            ),
        )
        return secret

    def apply_compiled_policy(self, descriptor: ResourceDescriptor, applied: AppliedStack) -> Any:
        props = descriptor.properties
        document = {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": statement["effect"],
                    "Action": list(statement["actions"]),
                    "Resource": list(statement["resources"]),
                }
                for statement in props["statements"]
            ],
        }
        return aws.iam.Policy(
            descriptor.name,
            name=props["policy_name"],
            policy=json.dumps(document),
            opts=self._opts(descriptor, applied),
        )

    def apply_compute_pool(self, descriptor: ResourceDescriptor, applied: AppliedStack) -> dict[str, Any]:
        props = descriptor.properties
        name = descriptor.name
        opts = self._opts(descriptor, applied)

        cluster = aws.ecs.Cluster(f"{name}-cluster", name=props["cluster_name"], opts=opts)

        role = aws.iam.Role(
            f"{name}-instance-role",
            assume_role_policy=_assume_role_policy("ec2.amazonaws.com"),
            opts=opts,
        )
        aws.iam.RolePolicyAttachment(
            f"{name}-ecs-instance",
            role=role.name,
            policy_arn=ECS_INSTANCE_POLICY_ARN,
        )
        for policy_id in props["instance_policies"]:
            policy = applied.get_resource(policy_id)
            aws.iam.RolePolicyAttachment(
                f"{name}-{policy_id.split(':', 1)[1]}",
                role=role.name,
                policy_arn=policy.arn,
            )
        profile = aws.iam.InstanceProfile(f"{name}-instance-profile", role=role.name)

        group_id = props["security_group_id"]
        launch_template = aws.ec2.LaunchTemplate(
            f"{name}-launch-template",
            image_id=f"resolve:ssm:{props['image_parameter']}",
            instance_type=props["instance_type"],
            key_name=props["key_name"] or None,
            vpc_security_group_ids=[group_id] if group_id else None,
            iam_instance_profile=aws.ec2.LaunchTemplateIamInstanceProfileArgs(arn=profile.arn),
            user_data=base64.b64encode(props["user_data"].encode("utf-8")).decode("ascii"),
            opts=opts,
        )

        group = aws.autoscaling.Group(
            name,
            min_size=props["min_capacity"],
            max_size=props["max_capacity"],
            desired_capacity=props["desired_capacity"],
            vpc_zone_identifiers=list(props["subnet_ids"]),
            launch_template=aws.autoscaling.GroupLaunchTemplateArgs(
                id=launch_template.id,
                version="$Latest",
            ),
            tags=[aws.autoscaling.GroupTagArgs(
                key="AmazonECSManaged",
                value="true",
                propagate_at_launch=True,
            )],
            opts=opts,
        )

        capacity_provider = aws.ecs.CapacityProvider(
            f"{name}-capacity-provider",
            name=props["capacity_provider_name"],
            auto_scaling_group_provider=aws.ecs.CapacityProviderAutoScalingGroupProviderArgs(
                auto_scaling_group_arn=group.arn,
            ),
        )
        cluster_capacity_providers = aws.ecs.ClusterCapacityProviders(
            f"{name}-cluster-capacity-providers",
            cluster_name=cluster.name,
            capacity_providers=[capacity_provider.name],
            default_capacity_provider_strategies=[
                aws.ecs.ClusterCapacityProvidersDefaultCapacityProviderStrategyArgs(
                    capacity_provider=capacity_provider.name,
                    weight=1,
                ),
            ],
        )

        return {
            "cluster": cluster,
            "instance_role": role,
            "launch_template": launch_template,
            "auto_scaling_group": group,
            "capacity_provider": capacity_provider,
            "cluster_capacity_providers": cluster_capacity_providers,
        }

    def apply_task_definition(self, descriptor: ResourceDescriptor, applied: AppliedStack) -> PendingTaskDefinition:
        return PendingTaskDefinition(descriptor=descriptor)

    def apply_volume_mount(self, descriptor: ResourceDescriptor, applied: AppliedStack) -> VolumeMount:
        owner = applied.get_resource(descriptor.properties["task_definition"])
        if not isinstance(owner, PendingTaskDefinition) or owner.resource is not None:
            raise ApplyError(f"'{descriptor.id}' has no open task definition to attach to")
        mount = descriptor.properties["mount"]
        owner.volumes.append(mount)
        return mount

    def apply_service(self, descriptor: ResourceDescriptor, applied: AppliedStack) -> Any:
        props = descriptor.properties
        pending = applied.get_resource(props["task_definition"])
        task_definition = self._realize_task_definition(pending, applied)
        pool = applied.get_resource(props["compute_pool"])

        return aws.ecs.Service(
            descriptor.name,
            name=props["service_name"],
            cluster=pool["cluster"].arn,
            task_definition=task_definition.arn,
            desired_count=props["desired_count"],
            deployment_minimum_healthy_percent=props["min_healthy_percent"],
            deployment_circuit_breaker=aws.ecs.ServiceDeploymentCircuitBreakerArgs(
                enable=props["circuit_breaker"]["enable"],
                rollback=props["circuit_breaker"]["rollback"],
            ),
            capacity_provider_strategies=[
                aws.ecs.ServiceCapacityProviderStrategyArgs(
                    capacity_provider=pool["capacity_provider"].name,
                    weight=1,
                ),
            ],
            opts=self._opts(descriptor, applied),
        )

    def _realize_task_definition(self, pending: PendingTaskDefinition, applied: AppliedStack) -> Any:
        if pending.resource is not None:
            return pending.resource

        descriptor = pending.descriptor
        props = descriptor.properties
        container = props["container"]
        name = descriptor.name

        credential = applied.get_resource(props["execution_policy"]["credential"])
        log_group = aws.cloudwatch.LogGroup(
            f"{name}-logs",
            retention_in_days=container["log_retention_days"],
        )

        execution_role = aws.iam.Role(
            f"{name}-execution-role",
            assume_role_policy=_assume_role_policy("ecs-tasks.amazonaws.com"),
        )
        aws.iam.RolePolicyAttachment(
            f"{name}-execution",
            role=execution_role.name,
            policy_arn=ECS_TASK_EXECUTION_POLICY_ARN,
        )
        actions = list(props["execution_policy"]["actions"])
        aws.iam.RolePolicy(
            f"{name}-secret-access",
            role=execution_role.id,
            policy=credential.arn.apply(lambda arn: json.dumps({
                "Version": "2012-10-17",
                "Statement": [{"Effect": "Allow", "Action": actions, "Resource": [arn]}],
            })),
        )

        volumes = list(pending.volumes)
        region = self.region
        container_definitions = pulumi.Output.all(log_group.name, credential.arn).apply(
            lambda args: json.dumps([_container_definition(container, volumes, args[0], args[1], region)])
        )

        pending.resource = aws.ecs.TaskDefinition(
            name,
            family=props["family"],
            network_mode=props["network_mode"],
            requires_compatibilities=["EC2"],
            execution_role_arn=execution_role.arn,
            container_definitions=container_definitions,
            volumes=[
                aws.ecs.TaskDefinitionVolumeArgs(
                    name=mount.name,
                    docker_volume_configuration=aws.ecs.TaskDefinitionVolumeDockerVolumeConfigurationArgs(
                        autoprovision=mount.autoprovision,
                        scope=mount.scope,
                        driver=mount.driver,
                        driver_opts=mount.driver_options(),
                    ),
                )
                for mount in volumes
            ],
            opts=self._opts(descriptor, applied),
        )
        return pending.resource


def _container_definition(
    container: Mapping[str, Any],
    volumes: list[VolumeMount],
    log_group_name: str,
    secret_arn: str,
    region: str,
) -> dict[str, Any]:
    return {
        "name": container["name"],
        "image": container["image"],
        "cpu": container["cpu"],
        "memory": container["memory"],
        "essential": container["essential"],
        "portMappings": [
            {"containerPort": port.container_port, "hostPort": port.host_port, "protocol": port.protocol}
            for port in container["port_mappings"]
        ],
        "logConfiguration": {
            "logDriver": "awslogs",
            "options": {
                "awslogs-group": log_group_name,
                "awslogs-region": region,
                "awslogs-stream-prefix": container["log_stream_prefix"],
            },
        },
        "environment": [
            {"name": key, "value": value} for key, value in container["environment"].items()
        ],
        "secrets": [
            {"name": key, "valueFrom": f"{secret_arn}:{ref['key']}::"}
            for key, ref in container["secrets"].items()
        ],
        "mountPoints": [
            {"sourceVolume": mount.name, "containerPath": mount.container_path, "readOnly": mount.read_only}
            for mount in volumes
        ],
    }


def _pulumi_resources(value: Any) -> list[Any]:
    if isinstance(value, pulumi.Resource):
        return [value]
    if isinstance(value, PendingTaskDefinition):
        return [value.resource] if value.resource is not None else []
    if isinstance(value, dict):
        return [item for item in value.values() if isinstance(item, pulumi.Resource)]
    return []
