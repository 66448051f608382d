"""
Shared fixtures.

- raw_config: the reference environment for a complete stack
- settings: validated Settings for raw_config
"""

import pytest

from orientplan.config import load_settings


@pytest.fixture
def raw_config() -> dict:
    """Environment for a complete single-instance stack."""
    return {
        "VPC_ID": "vpc-1",
        "SUBNET_IDS": "sn-1,sn-2",
        "SSH_KEY_NAME": "k",
        "EC2_INSTANCE_TYPE": "t3.large",
        "ORIENTDB_IMAGE": "orientdb:latest",
        "ORIENTDB_CPU": "2048",
        "ORIENTDB_MEMORY": "8192",
        "ORIENTDB_ROOT_PASSWORD": "secret",
    }


@pytest.fixture
def settings(raw_config):
    return load_settings(raw_config)
