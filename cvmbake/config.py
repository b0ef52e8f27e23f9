"""Build configuration: YAML loading, environment fallbacks and validation."""

import ipaddress
import os
from dataclasses import dataclass, field, fields

import yaml

from cvmbake.cloud.errors import ConfigError
from cvmbake.cloud.types import DataDisk

KNOWN_REGIONS = frozenset({
    "ap-bangkok",
    "ap-beijing",
    "ap-beijing-fsi",
    "ap-chengdu",
    "ap-chongqing",
    "ap-guangzhou",
    "ap-hongkong",
    "ap-jakarta",
    "ap-mumbai",
    "ap-nanjing",
    "ap-seoul",
    "ap-shanghai",
    "ap-shanghai-fsi",
    "ap-shenzhen-fsi",
    "ap-singapore",
    "ap-tokyo",
    "eu-frankfurt",
    "eu-moscow",
    "na-ashburn",
    "na-siliconvalley",
    "na-toronto",
    "sa-saopaulo",
})

MAX_IMAGE_NAME_LENGTH = 60


@dataclass
class BuildConfig:
    """Everything one image build needs. Built from a YAML mapping."""

    image_name: str = ""
    instance_type: str = ""

    # credentials
    secret_id: str = ""
    secret_key: str = ""
    security_token: str = ""
    region: str = ""
    skip_region_validation: bool = False

    # source instance
    source_image_id: str = ""
    source_image_name: str = ""
    instance_charge_type: str = "POSTPAID_BY_HOUR"
    instance_name: str = ""
    host_name: str = ""
    disk_type: str = "CLOUD_PREMIUM"
    disk_size: int = 50
    data_disks: list[DataDisk] = field(default_factory=list)

    # network
    vpc_id: str = ""
    vpc_name: str = ""
    cidr_block: str = "172.16.0.0/16"
    subnet_id: str = ""
    subnet_name: str = ""
    subnet_cidr_block: str = "172.16.0.0/24"
    zone: str = ""
    security_group_id: str = ""
    security_group_name: str = ""
    associate_public_ip_address: bool = False
    internet_charge_type: str = ""
    internet_max_bandwidth_out: int = 1
    bandwidth_package_id: str = ""

    # login
    ssh_password: str = ""
    ssh_key_pair_name: str = ""

    user_data: str = ""
    user_data_file: str = ""
    run_tags: dict[str, str] = field(default_factory=dict)

    # image
    image_description: str = ""
    force_delete: bool = False
    force_poweroff: bool = False
    image_tags: dict[str, str] = field(default_factory=dict)

    # timeouts, seconds
    instance_timeout: int = 1800
    image_timeout: int = 3600
    build_timeout: int | None = None

    @classmethod
    def from_dict(cls, d: dict) -> "BuildConfig":
        """Build a config from a parsed YAML mapping.

        Unknown keys are rejected so typos surface before any resource is created.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise ConfigError(f"Unknown config key(s): {', '.join(unknown)}")

        values = dict(d)
        disks = values.pop("data_disks", None) or []
        try:
            values["data_disks"] = [
                DataDisk(
                    disk_type=disk.get("disk_type", "CLOUD_PREMIUM"),
                    disk_size=int(disk["disk_size"]),
                    snapshot_id=disk.get("snapshot_id", ""),
                )
                for disk in disks
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid data_disks entry: {e}") from e
        for key in ("run_tags", "image_tags"):
            values[key] = {str(k): str(v) for k, v in (values.get(key) or {}).items()}
        return cls(**values)

    def apply_env(self, environ=os.environ) -> None:
        """Fill unset credentials from ``TENCENTCLOUD_*`` environment variables."""
        self.secret_id = self.secret_id or environ.get("TENCENTCLOUD_SECRET_ID", "")
        self.secret_key = self.secret_key or environ.get("TENCENTCLOUD_SECRET_KEY", "")
        self.security_token = self.security_token or environ.get("TENCENTCLOUD_SESSION_TOKEN", "")
        self.region = self.region or environ.get("TENCENTCLOUD_REGION", "")

    @property
    def creates_vpc(self) -> bool:
        return not (self.vpc_id or self.vpc_name)

    def validate(self) -> None:
        """Check required fields and cross-field rules.

        Raises:
            ConfigError: with every problem found, one per line.
        """
        errors = []

        if not self.secret_id or not self.secret_key:
            errors.append("secret_id and secret_key are required (or set TENCENTCLOUD_SECRET_ID / TENCENTCLOUD_SECRET_KEY)")
        if not self.region:
            errors.append("region is required (or set TENCENTCLOUD_REGION)")
        elif not self.skip_region_validation and self.region not in KNOWN_REGIONS:
            errors.append(f"unknown region '{self.region}' (set skip_region_validation to bypass)")

        if not self.image_name:
            errors.append("image_name is required")
        elif len(self.image_name) > MAX_IMAGE_NAME_LENGTH:
            errors.append(f"image_name must be at most {MAX_IMAGE_NAME_LENGTH} characters")
        if not self.instance_type:
            errors.append("instance_type is required")
        if not self.source_image_id and not self.source_image_name:
            errors.append("one of source_image_id or source_image_name is required")
        if self.user_data and self.user_data_file:
            errors.append("only one of user_data or user_data_file can be specified")
        if self.subnet_id and self.subnet_name:
            errors.append("only one of subnet_id or subnet_name can be specified")
        if self.user_data_file and not os.path.isfile(self.user_data_file):
            errors.append(f"user_data_file '{self.user_data_file}' does not exist")
        if self.disk_size <= 0:
            errors.append("disk_size must be positive")

        try:
            subnet_net = ipaddress.ip_network(self.subnet_cidr_block)
            vpc_net = ipaddress.ip_network(self.cidr_block)
        except ValueError as e:
            errors.append(f"invalid CIDR block: {e}")
        else:
            if self.creates_vpc and not subnet_net.subnet_of(vpc_net):
                errors.append(f"subnet_cidr_block {self.subnet_cidr_block} is not inside cidr_block {self.cidr_block}")

        if errors:
            raise ConfigError("\n".join(errors))


def load_config(config_path: str, environ=os.environ) -> BuildConfig:
    """Load a YAML build config, apply environment fallbacks and validate it."""
    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigError(f"Config file '{config_path}' not found.") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML config: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file '{config_path}' must contain a mapping at the top level.")

    config = BuildConfig.from_dict(raw)
    config.apply_env(environ)
    config.validate()
    return config
