"""Instance step: launch the build instance, falling back across subnets/zones."""

import base64
import logging
from functools import partial
from types import MappingProxyType

from cvmbake.cloud.errors import (
    CapacityExhaustedError,
    CvmbakeError,
    InstanceLaunchFailedError,
    NotFoundError,
    ResourceInsufficientError,
    TencentCloudError,
)
from cvmbake.cloud.retry import retry
from cvmbake.cloud.types import DataDisk
from cvmbake.cloud.wait import wait_for_instance
from cvmbake.naming import time_ordered_uuid
from cvmbake.pipeline.state import StepAction
from cvmbake.pipeline.step import Step, cleanup_failed, halt, say_clean

logger = logging.getLogger(__name__)

DEFAULT_INSTANCE_NAME = "cvmbake-instance"


def read_user_data(config) -> str:
    """Return the configured user data, base64-encoded.

    Inline ``user_data`` wins over ``user_data_file``. The file is sent as raw
    bytes, so compressed cloud-init payloads pass through unchanged.
    """
    if config.user_data:
        raw = config.user_data.encode("utf-8")
    else:
        with open(config.user_data_file, "rb") as f:
            raw = f.read()
    encoded = base64.b64encode(raw).decode("ascii")
    logger.debug(f"user_data: {encoded}")
    return encoded


def resolve_data_disks(config, source_image) -> list[DataDisk]:
    """Data disks for the instance.

    A source image always has a system-disk snapshot, so more than one
    snapshot means it carries data disks; those replace the configured ones.
    There is no way to read the original disk type from a snapshot, so the
    system disk type is used.
    """
    if source_image is not None and len(source_image.snapshots) > 1:
        logger.info("Use source image snapshot data disks, ignore user data disk settings")
        return [
            DataDisk(disk_type=config.disk_type, disk_size=s.disk_size, snapshot_id=s.snapshot_id)
            for s in source_image.data_disk_snapshots
        ]
    return list(config.data_disks)


def build_run_request(config, source_image, security_group_id, key_pair_id, user_data):
    """Build the zone-independent part of the ``RunInstances`` request.

    Returns:
        A read-only mapping; each attempt adds placement, subnet and token.
    """
    request = {
        "InstanceChargeType": config.instance_charge_type,
        "ImageId": source_image.image_id,
        "InstanceType": config.instance_type,
        "InstanceCount": 1,
        "InstanceName": config.instance_name or DEFAULT_INSTANCE_NAME,
        "SystemDisk": {"DiskType": config.disk_type, "DiskSize": config.disk_size},
        "SecurityGroupIds": [security_group_id],
    }

    data_disks = resolve_data_disks(config, source_image)
    if data_disks:
        request["DataDisks"] = [disk.to_api() for disk in data_disks]

    if config.associate_public_ip_address:
        internet = {
            "PublicIpAssigned": True,
            "InternetMaxBandwidthOut": config.internet_max_bandwidth_out,
        }
        if config.internet_charge_type:
            internet["InternetChargeType"] = config.internet_charge_type
        if config.bandwidth_package_id:
            internet["BandwidthPackageId"] = config.bandwidth_package_id
        request["InternetAccessible"] = internet

    login = {}
    if config.ssh_password:
        login["Password"] = config.ssh_password
    if key_pair_id:
        login["KeyIds"] = [key_pair_id]
    request["LoginSettings"] = login

    if config.host_name:
        request["HostName"] = config.host_name
    if user_data:
        request["UserData"] = user_data
    if config.run_tags:
        request["TagSpecification"] = [
            {
                "ResourceType": "instance",
                "Tags": [{"Key": k, "Value": v} for k, v in config.run_tags.items()],
            }
        ]
    return MappingProxyType(request)


class StepRunInstance(Step):
    """Try each published subnet in order until an instance is RUNNING.

    Only ``ResourceInsufficientError`` and a ``LAUNCH_FAILED`` boot move on to
    the next subnet; any other error halts. The step owns every instance id
    it records and terminates it in cleanup.
    """

    def __init__(self):
        self.instance_id = ""

    async def run(self, state):
        config = state.config
        policy = state.retry_policy

        try:
            user_data = read_user_data(config) if (config.user_data or config.user_data_file) else ""
        except OSError as e:
            return halt(state, e, "Failed to get user_data")

        if not state.subnets:
            return halt(state, CvmbakeError("No subnet available to run the instance in"))

        template = build_run_request(config, state.source_image, state.security_group_id, state.key_pair_id, user_data)

        attempts = 0
        for subnet in state.subnets:
            attempts += 1
            logger.info(f"Trying to create a new instance in zone {subnet.zone} (subnet {subnet.subnet_id})")
            request = dict(
                template,
                Placement={"Zone": subnet.zone},
                VirtualPrivateCloud={"VpcId": state.vpc_id, "SubnetId": subnet.subnet_id},
                ClientToken=time_ordered_uuid(),
            )
            try:
                instance_ids = await retry(partial(state.cvm_client.run_instances, request), policy)
            except ResourceInsufficientError as e:
                logger.warning(f"Instance type {config.instance_type} is understocked in zone {subnet.zone}, trying next candidate: {e.message}")
                continue
            except TencentCloudError as e:
                return halt(state, e, "Failed to run instance")

            if len(instance_ids) != 1:
                return halt(state, CvmbakeError("No instance return"), "Failed to run instance")
            self.instance_id = instance_ids[0]

            logger.info(f"Waiting for instance {self.instance_id} ready")
            try:
                instance = await wait_for_instance(
                    state.cvm_client, self.instance_id, "RUNNING", config.instance_timeout, state.poll_interval, policy
                )
            except InstanceLaunchFailedError as e:
                logger.warning(f"{e}; terminating it and trying next candidate")
                try:
                    await self._terminate(state)
                except TencentCloudError as te:
                    return halt(state, te, f"Failed to terminate instance({self.instance_id}) that failed to launch")
                continue
            except CvmbakeError as e:
                return halt(state, e, "Failed to wait for instance ready")

            state.instance = instance
            state.instance_id = self.instance_id
            state.subnet_id = subnet.subnet_id
            logger.info(f"Instance created: {self.instance_id}")
            return StepAction.CONTINUE

        return halt(state, CapacityExhaustedError(attempts))

    async def _terminate(self, state):
        """Terminate the recorded instance. An already-gone instance counts as terminated."""
        try:
            await retry(partial(state.cvm_client.terminate_instances, [self.instance_id]), state.retry_policy)
        except NotFoundError:
            logger.debug(f"Instance {self.instance_id} already gone")
        self.instance_id = ""

    async def cleanup(self, state):
        if not self.instance_id:
            return
        say_clean("instance")
        instance_id = self.instance_id
        try:
            await self._terminate(state)
        except TencentCloudError as e:
            cleanup_failed(state, e, f"Failed to terminate instance({instance_id})")
