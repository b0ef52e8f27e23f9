"""Resolve the source image the build instance boots from."""

import logging
from functools import partial

from cvmbake.cloud.errors import NotFoundError, SourceImageNotFoundError, TencentCloudError
from cvmbake.cloud.images import find_image_by_name
from cvmbake.cloud.retry import retry
from cvmbake.pipeline.state import StepAction
from cvmbake.pipeline.step import Step, halt

logger = logging.getLogger(__name__)


class StepCheckSourceImage(Step):
    async def run(self, state):
        config = state.config
        image_ref = config.source_image_id or config.source_image_name
        logger.info(f"Trying to check source image: {image_ref}")

        try:
            if config.source_image_id:
                images = await retry(partial(state.cvm_client.describe_images, image_ids=[config.source_image_id]), state.retry_policy)
                image = images[0] if images else None
            else:
                image = await find_image_by_name(state.cvm_client, config.source_image_name, policy=state.retry_policy)
        except NotFoundError:
            image = None
        except TencentCloudError as e:
            return halt(state, e, "Failed to get source image info")

        if image is None:
            return halt(state, SourceImageNotFoundError(image_ref))

        state.source_image = image
        logger.info(f"Source image found: {image.image_id} ({image.name})")
        return StepAction.CONTINUE
