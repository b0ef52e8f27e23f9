"""Poll instance and image status until a target state or a deadline."""

import asyncio
import logging

from cvmbake.cloud.errors import ImageCreateFailedError, InstanceLaunchFailedError, WaitTimeoutError
from cvmbake.cloud.retry import retry

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5

INSTANCE_FAIL_STATUSES = frozenset({"LAUNCH_FAILED"})
IMAGE_FAIL_STATES = frozenset({"CREATEFAILED", "IMPORTFAILED"})


async def _poll(describe, resource_id, target, fail_states, on_fail, timeout, interval):
    """Shared poll loop.

    *describe* is an async callable returning ``(status, payload)`` or
    ``None`` while the resource is not visible yet.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    status = None
    while True:
        found = await describe()
        if found is None:
            logger.debug(f"{resource_id} not visible yet")
        else:
            status, payload = found
            if status == target:
                return payload
            if status in fail_states:
                raise on_fail(resource_id, status)

        remaining = deadline - loop.time()
        if remaining <= 0:
            raise WaitTimeoutError(resource_id, target, timeout, status)
        await asyncio.sleep(min(interval, remaining))


async def wait_for_instance(client, instance_id, target_status, timeout, interval=DEFAULT_INTERVAL, policy=None):
    """Poll an instance until it reaches *target_status*.

    Returns:
        The ``Instance`` as described when the target was reached.

    Raises:
        InstanceLaunchFailedError: the instance hit ``LAUNCH_FAILED`` instead.
        WaitTimeoutError: *timeout* seconds elapsed first.
    """

    async def describe():
        instances = await retry(lambda: client.describe_instances([instance_id]), policy)
        if not instances:
            return None
        return instances[0].status, instances[0]

    return await _poll(describe, instance_id, target_status, INSTANCE_FAIL_STATUSES, InstanceLaunchFailedError, timeout, interval)


async def wait_for_image(client, image_id, timeout, target_state="NORMAL", interval=DEFAULT_INTERVAL, policy=None):
    """Poll an image until it reaches *target_state* (``NORMAL`` by default)."""

    async def describe():
        images = await retry(lambda: client.describe_images(image_ids=[image_id]), policy)
        if not images:
            return None
        return images[0].state, images[0]

    return await _poll(describe, image_id, target_state, IMAGE_FAIL_STATES, ImageCreateFailedError, timeout, interval)
