"""
Validated settings for the OrientDB ECS stack.

Raw configuration arrives as a flat mapping of environment-style keys to
string values. ``load_settings`` coerces and validates that mapping in one
pass, reporting every missing or malformed key together rather than
stopping at the first one.
"""

from dataclasses import dataclass
from typing import Any, Literal, Mapping

import structlog
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator, model_validator

from orientplan.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

# Consulted when AWS_REGION is blank; the CDK toolchain exports it.
FALLBACK_REGION_KEY = "CDK_DEFAULT_REGION"


class Settings(BaseModel):
    """
    Typed settings for one build.

    Field aliases are the raw configuration keys, so a process environment
    can be validated directly:

        settings = Settings.model_validate(os.environ)
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    vpc_id: str = Field(..., alias="VPC_ID", description="Network (VPC) identifier")
    subnet_ids: list[str] = Field(
        ..., alias="SUBNET_IDS", description="Comma separated placement subnet identifiers"
    )
    security_group_id: str = Field(
        default="", alias="SG_ID", description="Security group for the container instances"
    )
    ssh_key_name: str = Field(
        default="", alias="SSH_KEY_NAME", description="EC2 key pair name for SSH access"
    )
    instance_type: str = Field(..., alias="EC2_INSTANCE_TYPE", description="EC2 instance type")
    image: str = Field(..., alias="ORIENTDB_IMAGE", description="OrientDB container image reference")
    cpu: int = Field(default=2048, alias="ORIENTDB_CPU", description="Container CPU units")
    memory: int = Field(default=8192, alias="ORIENTDB_MEMORY", description="Container memory in MiB")
    opts_memory: str = Field(
        default="", alias="ORIENTDB_OPTS_MEMORY", description="JVM heap options for OrientDB"
    )
    root_password: SecretStr = Field(
        ..., alias="ORIENTDB_ROOT_PASSWORD", description="OrientDB root password"
    )
    region: str = Field(
        default="", alias="AWS_REGION", description=f"AWS region (falls back to {FALLBACK_REGION_KEY})"
    )
    volume_size: int = Field(
        default=100, alias="ORIENTDB_VOLUME_SIZE", description="Size of each EBS volume in GiB"
    )
    volume_type: str = Field(
        default="gp3", alias="ORIENTDB_VOLUME_TYPE", description="EBS volume type"
    )

    @model_validator(mode="before")
    @classmethod
    def _normalize_raw(cls, data: Any) -> Any:
        """Strip values and drop blanks so defaults and presence checks apply."""
        if not isinstance(data, Mapping):
            return data

        normalized: dict[str, Any] = {}
        for key, value in data.items():
            if value is None:
                continue
            if isinstance(value, (list, tuple)):
                items = [str(item).strip() for item in value if str(item).strip()]
                if items:
                    normalized[key] = items
                continue
            text = str(value).strip()
            if text:
                normalized[key] = text

        if "AWS_REGION" not in normalized and FALLBACK_REGION_KEY in normalized:
            normalized["AWS_REGION"] = normalized[FALLBACK_REGION_KEY]
        return normalized

    @field_validator("subnet_ids", mode="before")
    @classmethod
    def _split_subnets(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",")]
        if isinstance(value, list):
            value = [part for part in value if part]
            if not value:
                raise ValueError("must list at least one subnet identifier")
        return value


@dataclass(frozen=True)
class Setting:
    """One recognized configuration key, as exposed to users."""

    key: str
    kind: Literal["string", "number", "list"]
    required: bool
    default: Any
    description: str


def settings_table() -> list[Setting]:
    """Describe every key the Settings model recognizes, in declaration order."""
    rows = []
    for field in Settings.model_fields.values():
        annotation = field.annotation
        if annotation is int:
            kind = "number"
        elif annotation == list[str]:
            kind = "list"
        else:
            kind = "string"
        required = field.is_required()
        rows.append(
            Setting(
                key=field.alias,
                kind=kind,
                required=required,
                default=None if required else field.get_default(),
                description=field.description or "",
            )
        )
    return rows


def recognized_keys() -> set[str]:
    """All raw keys that influence a build."""
    return {row.key for row in settings_table()} | {FALLBACK_REGION_KEY}


def load_settings(raw: Mapping[str, Any]) -> Settings:
    """
    Validate a raw configuration mapping.

    Args:
        raw: Flat mapping of configuration keys to (usually string) values

    Returns:
        Validated Settings

    Raises:
        ConfigurationError: Listing every missing or malformed key
    """
    try:
        settings = Settings.model_validate(raw)
    except ValidationError as e:
        problems: dict[str, str] = {}
        for error in e.errors():
            key = str(error["loc"][0]) if error["loc"] else "<root>"
            reason = "is required" if error["type"] == "missing" else error["msg"]
            problems[key] = f"{problems[key]}; {reason}" if key in problems else reason
        logger.debug("settings_invalid", problems=sorted(problems))
        raise ConfigurationError(problems) from e

    logger.debug(
        "settings_validated",
        vpc_id=settings.vpc_id,
        subnets=len(settings.subnet_ids),
        instance_type=settings.instance_type,
    )
    return settings
