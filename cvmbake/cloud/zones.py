"""Availability-zone discovery for an instance type."""

import logging

from cvmbake.cloud.errors import NoCapacityError
from cvmbake.cloud.retry import retry

logger = logging.getLogger(__name__)

DEFAULT_CHARGE_TYPE = "POSTPAID_BY_HOUR"
SOLD_OUT = "SOLD_OUT"


async def candidate_zones(cvm_client, instance_type, charge_type=DEFAULT_CHARGE_TYPE, policy=None) -> list[str]:
    """Return the zones currently selling *instance_type*, in provider order.

    Zones reported as ``SOLD_OUT`` are dropped and duplicates collapsed.

    Raises:
        NoCapacityError: no zone in the region offers the instance type.
    """
    offers = await retry(lambda: cvm_client.describe_zone_instance_config_infos(instance_type, charge_type), policy)
    zones = []
    for offer in offers:
        if offer.status == SOLD_OUT or offer.zone in zones:
            continue
        zones.append(offer.zone)

    if not zones:
        raise NoCapacityError(instance_type)
    logger.info(f"Found zones for {instance_type}: {', '.join(zones)}")
    return zones
