"""Security group step: discover the configured group or create a temporary one."""

import logging
from functools import partial

from cvmbake.cloud.errors import NotFoundError, SecurityGroupNotFoundError, TencentCloudError
from cvmbake.cloud.retry import retry
from cvmbake.naming import temp_name
from cvmbake.pipeline.state import StepAction
from cvmbake.pipeline.step import Step, cleanup_failed, halt, say_clean

logger = logging.getLogger(__name__)

# SSH, RDP and WinRM in; everything out.
DEFAULT_INGRESS = (
    {"Protocol": "TCP", "Port": "22,3389,5985,5986", "CidrBlock": "0.0.0.0/0", "Action": "ACCEPT", "PolicyDescription": "cvmbake remote access"},
)
DEFAULT_EGRESS = (
    {"Protocol": "ALL", "Port": "ALL", "CidrBlock": "0.0.0.0/0", "Action": "ACCEPT", "PolicyDescription": "cvmbake egress"},
)


class StepConfigSecurityGroup(Step):
    def __init__(self, security_group_id="", security_group_name=""):
        self.security_group_id = security_group_id
        self.security_group_name = security_group_name
        self.created_group_id = ""

    async def run(self, state):
        vpc_client = state.vpc_client
        if self.security_group_id:
            logger.info(f"Trying to use existing security group: {self.security_group_id}")
            try:
                groups = await retry(partial(vpc_client.describe_security_groups, [self.security_group_id]), state.retry_policy)
            except NotFoundError:
                groups = []
            except TencentCloudError as e:
                return halt(state, e, "Failed to get security group info")
            if not groups:
                return halt(state, SecurityGroupNotFoundError(self.security_group_id))
            state.security_group_id = self.security_group_id
            return StepAction.CONTINUE

        name = self.security_group_name or temp_name()
        logger.info(f"Trying to create a new security group: {name}")
        try:
            group_id = await retry(
                partial(vpc_client.create_security_group, name, "Temporary security group created by cvmbake"),
                state.retry_policy,
            )
        except TencentCloudError as e:
            return halt(state, e, "Failed to create security group")
        self.created_group_id = group_id
        state.security_group_id = group_id

        try:
            await retry(
                partial(vpc_client.create_security_group_policies, group_id, DEFAULT_INGRESS, DEFAULT_EGRESS),
                state.retry_policy,
            )
        except TencentCloudError as e:
            return halt(state, e, "Failed to create security group policies")

        logger.info(f"Security group created: {group_id}")
        return StepAction.CONTINUE

    async def cleanup(self, state):
        if not self.created_group_id:
            return
        say_clean("security group")
        try:
            await retry(partial(state.vpc_client.delete_security_group, self.created_group_id), state.retry_policy)
        except TencentCloudError as e:
            cleanup_failed(state, e, f"Failed to delete security group({self.created_group_id})")
