"""VPC step: discover the configured VPC or create a temporary one."""

import logging
from functools import partial

from cvmbake.cloud.errors import NotFoundError, TencentCloudError, VpcNotFoundError
from cvmbake.cloud.retry import retry
from cvmbake.naming import temp_name
from cvmbake.pipeline.state import StepAction
from cvmbake.pipeline.step import Step, cleanup_failed, halt, say_clean

logger = logging.getLogger(__name__)


class StepConfigVPC(Step):
    def __init__(self, vpc_id="", vpc_name="", cidr_block=""):
        self.vpc_id = vpc_id
        self.vpc_name = vpc_name
        self.cidr_block = cidr_block
        self.created_vpc_id = ""

    async def run(self, state):
        vpc_client = state.vpc_client
        if self.vpc_id or self.vpc_name:
            vpc_ref = self.vpc_id or self.vpc_name
            logger.info(f"Trying to use existing vpc: {vpc_ref}")
            if self.vpc_id:
                query = partial(vpc_client.describe_vpcs, vpc_ids=[self.vpc_id])
            else:
                query = partial(vpc_client.describe_vpcs, vpc_name=self.vpc_name)
            try:
                vpcs = await retry(query, state.retry_policy)
            except NotFoundError:
                vpcs = []
            except TencentCloudError as e:
                return halt(state, e, "Failed to get vpc info")
            if not vpcs:
                return halt(state, VpcNotFoundError(vpc_ref))
            if len(vpcs) > 1:
                logger.warning(f"{len(vpcs)} vpcs match '{vpc_ref}', using {vpcs[0]['VpcId']}")
            state.vpc_id = vpcs[0]["VpcId"]
            logger.info(f"Vpc found: {state.vpc_id}")
            return StepAction.CONTINUE

        name = temp_name()
        logger.info(f"Trying to create a new vpc: {name} ({self.cidr_block})")
        try:
            vpc_id = await retry(partial(vpc_client.create_vpc, name, self.cidr_block), state.retry_policy)
        except TencentCloudError as e:
            return halt(state, e, "Failed to create vpc")
        self.created_vpc_id = vpc_id
        state.vpc_id = vpc_id
        logger.info(f"Vpc created: {vpc_id}")
        return StepAction.CONTINUE

    async def cleanup(self, state):
        if not self.created_vpc_id:
            return
        say_clean("vpc")
        try:
            await retry(partial(state.vpc_client.delete_vpc, self.created_vpc_id), state.retry_policy)
        except TencentCloudError as e:
            cleanup_failed(state, e, f"Failed to delete vpc({self.created_vpc_id})")
