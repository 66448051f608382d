"""
Pulumi program for the OrientDB ECS stack.

Reads configuration from the environment, builds the plan and applies it
with pulumi_aws:

    export VPC_ID=vpc-0abc SUBNET_IDS=subnet-1,subnet-2 ...
    pulumi up
"""

import os

import pulumi

from orientplan import build_plan
from orientplan.apply.pulumi_aws import PulumiAwsApplier
from orientplan.logging_config import configure_logging


def main():
    configure_logging(os.environ.get("ORIENTPLAN_LOG_LEVEL", "INFO"))

    plan = build_plan(os.environ)
    region = plan.get("compute-pool:orientdb-asg").properties["region"]
    stack = PulumiAwsApplier(region=region or None).apply(plan)

    pool = stack.get_resource("compute-pool:orientdb-asg")
    pulumi.export("cluster_name", pool["cluster"].name)
    pulumi.export("service_name", stack.get_resource("service:orientdb").name)
    pulumi.export("root_password_secret_arn", stack.get_resource("credential:orientdb-root-password").arn)
    pulumi.export("plan_fingerprint", stack.fingerprint)


if __name__ == "__main__":
    main()
