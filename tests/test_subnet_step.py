"""Tests for the subnet step: discovery, creation per zone and ownership."""

import ipaddress

import pytest

from cvmbake.cloud.errors import InvalidRequestError, NoCapacityError, SubnetNotFoundError, SubnetVpcMismatchError
from cvmbake.pipeline.state import StepAction
from cvmbake.steps.subnet import StepConfigSubnet, split_cidr
from conftest import offers

ZONES = [f"ap-guangzhou-{n}" for n in range(1, 8)]


# ── split_cidr ──────────────────────────────────────────────────


def test_split_cidr_single_zone_keeps_block():
    assert split_cidr("172.16.0.0/24", 1) == ["172.16.0.0/24"]


def test_split_cidr_blocks_are_disjoint():
    blocks = split_cidr("172.16.0.0/24", 3)
    assert blocks == ["172.16.0.0/26", "172.16.0.64/26", "172.16.0.128/26"]
    nets = [ipaddress.ip_network(b) for b in blocks]
    assert not any(a.overlaps(b) for i, a in enumerate(nets) for b in nets[i + 1:])


def test_split_cidr_stops_at_smallest_subnet():
    assert split_cidr("172.16.0.0/27", 4) == ["172.16.0.0/28", "172.16.0.16/28"]


# ── existing subnets ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_existing_subnet_by_id(make_state, cvm, vpc):
    cvm.zone_offers = offers("ap-guangzhou-3")
    vpc.add_subnet("subnet-a", "vpc-1", "ap-guangzhou-3")
    state = make_state(vpc_id="vpc-1")
    step = StepConfigSubnet(subnet_id="subnet-a")

    assert await step.run(state) is StepAction.CONTINUE
    assert [s.subnet_id for s in state.subnets] == ["subnet-a"]
    assert state.subnet_id == "subnet-a"
    assert vpc.called("create_subnet") == []


@pytest.mark.asyncio
async def test_existing_subnet_in_other_vpc_is_rejected(make_state, cvm, vpc):
    cvm.zone_offers = offers("ap-guangzhou-3")
    vpc.add_subnet("subnet-a", "vpc-other", "ap-guangzhou-3")
    state = make_state(vpc_id="vpc-1")

    assert await StepConfigSubnet(subnet_id="subnet-a").run(state) is StepAction.HALT
    assert isinstance(state.error, SubnetVpcMismatchError)
    assert state.subnets == []


@pytest.mark.asyncio
async def test_any_mismatched_subnet_by_name_fails_closed(make_state, cvm, vpc):
    cvm.zone_offers = offers("ap-guangzhou-3", "ap-guangzhou-4")
    vpc.add_subnet("subnet-a", "vpc-1", "ap-guangzhou-3", name="build")
    vpc.add_subnet("subnet-b", "vpc-other", "ap-guangzhou-4", name="build")
    state = make_state(vpc_id="vpc-1")

    assert await StepConfigSubnet(subnet_name="build").run(state) is StepAction.HALT
    assert isinstance(state.error, SubnetVpcMismatchError)


@pytest.mark.asyncio
async def test_subnet_name_lookup_uses_last_five_zones(make_state, cvm, vpc):
    cvm.zone_offers = offers(*ZONES)
    vpc.add_subnet("subnet-a", "vpc-1", "ap-guangzhou-7", name="build")
    state = make_state(vpc_id="vpc-1")

    assert await StepConfigSubnet(subnet_name="build").run(state) is StepAction.CONTINUE
    (subnet_ids, name, zones), = vpc.called("describe_subnets")
    assert name == "build"
    assert zones == ZONES[-5:]


@pytest.mark.asyncio
async def test_missing_subnet_halts(make_state, cvm, vpc):
    cvm.zone_offers = offers("ap-guangzhou-3")
    state = make_state(vpc_id="vpc-1")

    assert await StepConfigSubnet(subnet_name="nope").run(state) is StepAction.HALT
    assert isinstance(state.error, SubnetNotFoundError)


@pytest.mark.asyncio
async def test_discovery_is_idempotent_and_never_deletes(make_state, cvm, vpc):
    cvm.zone_offers = offers("ap-guangzhou-3", "ap-guangzhou-4")
    vpc.add_subnet("subnet-a", "vpc-1", "ap-guangzhou-3", name="build")
    vpc.add_subnet("subnet-b", "vpc-1", "ap-guangzhou-4", name="build")

    first = make_state(vpc_id="vpc-1")
    second = make_state(vpc_id="vpc-1")
    step = StepConfigSubnet(subnet_name="build")
    await step.run(first)
    await StepConfigSubnet(subnet_name="build").run(second)

    assert first.subnets == second.subnets
    first.put_error(RuntimeError("later step failed"))
    await step.cleanup(first)
    assert vpc.called("delete_subnet") == []
    assert set(vpc.subnets) == {"subnet-a", "subnet-b"}


# ── created subnets ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_creates_one_subnet_per_zone(make_state, cvm, vpc):
    cvm.zone_offers = offers("ap-guangzhou-3", "ap-guangzhou-4", "ap-guangzhou-6")
    state = make_state(vpc_id="vpc-1")
    step = StepConfigSubnet(cidr_block="172.16.0.0/24")

    assert await step.run(state) is StepAction.CONTINUE
    assert [s.zone for s in state.subnets] == ["ap-guangzhou-3", "ap-guangzhou-4", "ap-guangzhou-6"]
    assert state.subnet_id == state.subnets[0].subnet_id
    cidrs = [args[2] for args in vpc.called("create_subnet")]
    assert len(set(cidrs)) == 3

    await step.cleanup(state)
    assert vpc.subnets == {}


@pytest.mark.asyncio
async def test_explicit_zone_skips_zone_query(make_state, cvm, vpc):
    state = make_state(vpc_id="vpc-1")
    step = StepConfigSubnet(cidr_block="172.16.0.0/24", zone="ap-guangzhou-3")

    assert await step.run(state) is StepAction.CONTINUE
    assert cvm.called("describe_zone_instance_config_infos") == []
    (vpc_id, _, cidr, zone), = vpc.called("create_subnet")
    assert (vpc_id, cidr, zone) == ("vpc-1", "172.16.0.0/24", "ap-guangzhou-3")


@pytest.mark.asyncio
async def test_create_failure_halts_and_cleanup_deletes_created(make_state, cvm, vpc):
    cvm.zone_offers = offers("ap-guangzhou-3", "ap-guangzhou-4")
    vpc.errors["create_subnet"] = [None, InvalidRequestError("InvalidParameterValue.SubnetConflict", "conflict")]
    state = make_state(vpc_id="vpc-1")
    step = StepConfigSubnet(cidr_block="172.16.0.0/24")

    assert await step.run(state) is StepAction.HALT
    assert isinstance(state.error, InvalidRequestError)
    assert len(vpc.subnets) == 1

    await step.cleanup(state)
    assert vpc.subnets == {}


@pytest.mark.asyncio
async def test_no_zone_offers_instance_type(make_state, vpc):
    state = make_state(vpc_id="vpc-1")

    assert await StepConfigSubnet(cidr_block="172.16.0.0/24").run(state) is StepAction.HALT
    assert isinstance(state.error, NoCapacityError)
    assert vpc.called("create_subnet") == []
