"""Subnet step: reuse existing subnets or create one per candidate zone."""

import ipaddress
import logging
from functools import partial
from itertools import islice

from cvmbake.cloud.errors import (
    NoCapacityError,
    NotFoundError,
    SubnetNotFoundError,
    SubnetVpcMismatchError,
    TencentCloudError,
)
from cvmbake.cloud.retry import retry
from cvmbake.cloud.zones import candidate_zones
from cvmbake.naming import temp_name
from cvmbake.pipeline.state import StepAction
from cvmbake.pipeline.step import Step, cleanup_failed, halt, say_clean

logger = logging.getLogger(__name__)

# DescribeSubnets accepts at most 5 values per filter.
SUBNET_FILTER_LIMIT = 5
# Smallest subnet the VPC service will create.
MIN_SUBNET_PREFIX = 28


def split_cidr(cidr_block, count) -> list[str]:
    """Split *cidr_block* into up to *count* equal, disjoint blocks.

    Subnets in one VPC may not overlap, so each zone gets its own slice.
    Fewer than *count* blocks come back when a ``/28`` per zone does not fit.
    """
    network = ipaddress.ip_network(cidr_block, strict=False)
    if count <= 1:
        return [str(network)]
    new_prefix = network.prefixlen + (count - 1).bit_length()
    new_prefix = min(new_prefix, max(MIN_SUBNET_PREFIX, network.prefixlen))
    return [str(block) for block in islice(network.subnets(new_prefix=new_prefix), count)]


class StepConfigSubnet(Step):
    """Publish the ordered subnet list the instance step falls back through.

    Subnets found by id or name are *discovered* and never deleted. Subnets
    this step creates are *owned* and deleted in cleanup.
    """

    def __init__(self, subnet_id="", subnet_name="", cidr_block="", zone=""):
        self.subnet_id = subnet_id
        self.subnet_name = subnet_name
        self.cidr_block = cidr_block
        self.zone = zone
        self.created_subnets = []
        self.discovered_subnets = []

    async def run(self, state):
        config = state.config
        if self.zone:
            zones = [self.zone]
        else:
            logger.info(f"Try to get available zones for instance: {config.instance_type}")
            try:
                zones = await candidate_zones(state.cvm_client, config.instance_type, config.instance_charge_type, state.retry_policy)
            except NoCapacityError as e:
                return halt(state, e)
            except TencentCloudError as e:
                return halt(state, e, "Failed to get available zones instance config")

        if self.subnet_id or self.subnet_name:
            return await self._use_existing(state, zones)
        return await self._create(state, zones)

    async def _use_existing(self, state, zones):
        logger.info(f"Trying to use existing subnet id: {self.subnet_id}, name: {self.subnet_name}")
        vpc_client = state.vpc_client
        if self.subnet_id:
            query = partial(vpc_client.describe_subnets, subnet_ids=[self.subnet_id])
        else:
            query = partial(vpc_client.describe_subnets, subnet_name=self.subnet_name, zones=zones[-SUBNET_FILTER_LIMIT:])

        try:
            subnets = await retry(query, state.retry_policy)
        except NotFoundError:
            return halt(state, SubnetNotFoundError())
        except TencentCloudError as e:
            return halt(state, e, "Failed to get subnet info")

        if not subnets:
            return halt(state, SubnetNotFoundError())
        for subnet in subnets:
            if subnet.vpc_id != state.vpc_id:
                return halt(state, SubnetVpcMismatchError(subnet.subnet_id, state.vpc_id))

        self.discovered_subnets = subnets
        self._publish(state, subnets)
        logger.info(f"Subnet found: {len(subnets)} subnets in total.")
        return StepAction.CONTINUE

    async def _create(self, state, zones):
        name = temp_name()
        blocks = split_cidr(self.cidr_block, len(zones))
        if len(blocks) < len(zones):
            logger.warning(f"CIDR block {self.cidr_block} only fits {len(blocks)} subnet(s); skipping zones {', '.join(zones[len(blocks):])}")

        for zone, cidr in zip(zones, blocks):
            logger.info(f"Trying to create a new subnet {name} ({cidr}) in zone {zone}")
            create = partial(state.vpc_client.create_subnet, state.vpc_id, name, cidr, zone)
            try:
                subnet = await retry(create, state.retry_policy)
            except TencentCloudError as e:
                return halt(state, e, f"Failed to create subnet in zone {zone}")
            self.created_subnets.append(subnet)
            logger.info(f"Subnet created: {subnet.subnet_id} in zone: {subnet.zone}")

        self._publish(state, list(self.created_subnets))
        return StepAction.CONTINUE

    @staticmethod
    def _publish(state, subnets):
        state.subnets = list(subnets)
        state.subnet_id = subnets[0].subnet_id

    async def cleanup(self, state):
        if not self.created_subnets:
            return
        say_clean("subnet")
        for subnet in self.created_subnets:
            try:
                await retry(partial(state.vpc_client.delete_subnet, subnet.subnet_id), state.retry_policy)
            except TencentCloudError as e:
                cleanup_failed(state, e, f"Failed to delete subnet({subnet.subnet_id})")
