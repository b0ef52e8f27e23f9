"""Typed run-state shared by all steps of one build."""

import enum
from dataclasses import dataclass, field
from typing import Any

from cvmbake.cloud.retry import DEFAULT_POLICY, RetryPolicy
from cvmbake.cloud.types import Image, Instance, Subnet
from cvmbake.cloud.wait import DEFAULT_INTERVAL
from cvmbake.config import BuildConfig


class StepAction(enum.Enum):
    CONTINUE = "continue"
    HALT = "halt"


@dataclass
class BuildState:
    """Inter-step communication for a single pipeline run.

    Each step reads what earlier steps published and publishes its own
    results here. Once ``error`` is set no further step runs.
    """

    config: BuildConfig
    cvm_client: Any
    vpc_client: Any
    retry_policy: RetryPolicy = DEFAULT_POLICY
    poll_interval: float = DEFAULT_INTERVAL

    vpc_id: str = ""
    subnets: list[Subnet] = field(default_factory=list)
    subnet_id: str = ""
    security_group_id: str = ""
    source_image: Image | None = None
    key_pair_id: str = ""
    temporary_key_pair_id: str = ""
    temporary_private_key: str = ""
    instance: Instance | None = None
    instance_id: str = ""
    image_id: str = ""

    error: BaseException | None = None
    cleanup_errors: list[BaseException] = field(default_factory=list)

    @property
    def halted(self) -> bool:
        return self.error is not None

    def put_error(self, err: BaseException) -> None:
        """Record the run's fatal error. The first one wins."""
        if self.error is None:
            self.error = err
