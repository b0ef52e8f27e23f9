"""Stop the instance and detach the temporary key pair before imaging."""

import logging
from functools import partial

from cvmbake.cloud.errors import CvmbakeError, TencentCloudError
from cvmbake.cloud.retry import retry
from cvmbake.cloud.wait import wait_for_instance
from cvmbake.pipeline.state import StepAction
from cvmbake.pipeline.step import Step, halt

logger = logging.getLogger(__name__)


class StepDetachTempKeyPair(Step):
    """No-op unless a temporary key pair was created for this build."""

    async def run(self, state):
        if not state.temporary_key_pair_id:
            return StepAction.CONTINUE

        client = state.cvm_client
        policy = state.retry_policy
        instance_id = state.instance_id
        key_id = state.temporary_key_pair_id
        timeout = state.config.instance_timeout

        logger.info(f"Trying to stop instance: {instance_id}")
        try:
            await retry(partial(client.stop_instances, [instance_id]), policy)
        except TencentCloudError as e:
            return halt(state, e, "Failed to stop instance")

        logger.info("Waiting for instance stop")
        try:
            await wait_for_instance(client, instance_id, "STOPPED", timeout, state.poll_interval, policy)
        except CvmbakeError as e:
            return halt(state, e, "Failed to wait for instance to be stopped")

        logger.info(f"Trying to detach keypair: {key_id}")
        try:
            await retry(partial(client.disassociate_instances_key_pairs, [instance_id], [key_id], force_stop=False), policy)
        except TencentCloudError as e:
            return halt(state, e, "Fail to detach keypair from instance")

        logger.info("Waiting for keypair detached")
        try:
            await wait_for_instance(client, instance_id, "STOPPED", timeout, state.poll_interval, policy)
        except CvmbakeError as e:
            return halt(state, e, "Failed to wait for keypair detached")

        logger.info("Keypair detached")
        return StepAction.CONTINUE
