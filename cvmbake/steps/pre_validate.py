"""Pre-flight check that the target image name is free."""

import logging
from functools import partial

from cvmbake.cloud.errors import ImageExistsError, TencentCloudError
from cvmbake.cloud.images import find_image_by_name
from cvmbake.cloud.retry import retry
from cvmbake.pipeline.state import StepAction
from cvmbake.pipeline.step import Step, halt

logger = logging.getLogger(__name__)


class StepPreValidate(Step):
    """Halt with ``ImageExistsError`` if the image name is taken, unless *force_delete*."""

    def __init__(self, force_delete=False):
        self.force_delete = force_delete

    async def run(self, state):
        name = state.config.image_name
        logger.info(f"Trying to check image name: {name}")

        try:
            image = await find_image_by_name(state.cvm_client, name, image_type="PRIVATE_IMAGE", policy=state.retry_policy)
        except TencentCloudError as e:
            return halt(state, e, "Failed to get images info")

        if image is not None:
            if not self.force_delete:
                return halt(state, ImageExistsError(name))
            logger.info(f"Deleting existing image {image.image_id} ({name})")
            try:
                await retry(partial(state.cvm_client.delete_images, [image.image_id]), state.retry_policy)
            except TencentCloudError as e:
                return halt(state, e, f"Failed to delete image {image.image_id}")

        logger.info(f"Image name {name}: useable")
        return StepAction.CONTINUE
