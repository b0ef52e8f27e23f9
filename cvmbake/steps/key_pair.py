"""Login credentials: an existing key pair, a password, or a temporary key pair."""

import logging
from functools import partial

from cvmbake.cloud.errors import TencentCloudError
from cvmbake.cloud.retry import retry
from cvmbake.naming import temp_name
from cvmbake.pipeline.state import StepAction
from cvmbake.pipeline.step import Step, cleanup_failed, halt, say_clean

logger = logging.getLogger(__name__)


class StepConfigKeyPair(Step):
    def __init__(self):
        self.created_key_id = ""

    async def run(self, state):
        config = state.config
        if config.ssh_key_pair_name:
            logger.info(f"Using existing key pair: {config.ssh_key_pair_name}")
            state.key_pair_id = config.ssh_key_pair_name
            return StepAction.CONTINUE
        if config.ssh_password:
            logger.info("Using password login, no key pair needed")
            return StepAction.CONTINUE

        name = temp_name()
        logger.info(f"Trying to create a temporary key pair: {name}")
        try:
            key_id, private_key = await retry(partial(state.cvm_client.create_key_pair, name), state.retry_policy)
        except TencentCloudError as e:
            return halt(state, e, "Failed to create temporary key pair")

        self.created_key_id = key_id
        state.key_pair_id = key_id
        state.temporary_key_pair_id = key_id
        state.temporary_private_key = private_key
        logger.info(f"Temporary key pair created: {key_id}")
        return StepAction.CONTINUE

    async def cleanup(self, state):
        if not self.created_key_id:
            return
        say_clean("key pair")
        try:
            await retry(partial(state.cvm_client.delete_key_pairs, [self.created_key_id]), state.retry_policy)
        except TencentCloudError as e:
            cleanup_failed(state, e, f"Failed to delete temporary key pair({self.created_key_id})")
