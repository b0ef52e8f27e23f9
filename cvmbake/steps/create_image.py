"""Capture the prepared instance as a custom image."""

import logging
from functools import partial

from cvmbake.cloud.errors import CvmbakeError, TencentCloudError
from cvmbake.cloud.images import find_image_by_name
from cvmbake.cloud.retry import retry
from cvmbake.cloud.wait import wait_for_image
from cvmbake.pipeline.state import StepAction
from cvmbake.pipeline.step import Step, cleanup_failed, halt, say_clean

logger = logging.getLogger(__name__)


class StepCreateImage(Step):
    """Create the image and wait for it to become NORMAL.

    The image is the build's artifact, so cleanup deletes it only when the
    run did not succeed.
    """

    def __init__(self):
        self.image_id = ""

    async def run(self, state):
        config = state.config
        client = state.cvm_client
        logger.info(f"Trying to create a new image: {config.image_name}")

        create = partial(
            client.create_image,
            state.instance_id,
            config.image_name,
            description=config.image_description,
            force_poweroff=config.force_poweroff,
            tags=config.image_tags,
        )
        try:
            image_id = await retry(create, state.retry_policy)
            if not image_id:
                image = await find_image_by_name(client, config.image_name, image_type="PRIVATE_IMAGE", policy=state.retry_policy)
                image_id = image.image_id if image else ""
        except TencentCloudError as e:
            return halt(state, e, "Failed to create image")
        if not image_id:
            return halt(state, CvmbakeError(f"Image {config.image_name} not found after creation"))
        self.image_id = image_id

        logger.info(f"Waiting for image {image_id} ready")
        try:
            await wait_for_image(client, image_id, config.image_timeout, interval=state.poll_interval, policy=state.retry_policy)
        except CvmbakeError as e:
            return halt(state, e, "Failed to wait for image ready")

        state.image_id = image_id
        logger.info(f"Image created: {image_id}")
        return StepAction.CONTINUE

    async def cleanup(self, state):
        if not self.image_id or not state.halted:
            return
        say_clean("image")
        try:
            await retry(partial(state.cvm_client.delete_images, [self.image_id]), state.retry_policy)
        except TencentCloudError as e:
            cleanup_failed(state, e, f"Failed to delete image({self.image_id})")
