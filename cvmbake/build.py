"""Assemble and run the image build pipeline for a config.

Bridge between the CLI layer and the pipeline. All cloud clients for a
build share one ``httpx.AsyncClient``.
"""

import asyncio
import logging

import httpx

from cvmbake.cloud.client import Credentials, CvmClient, VpcClient
from cvmbake.config import BuildConfig
from cvmbake.pipeline import BuildState, Step, run_steps
from cvmbake.steps import (
    StepCheckSourceImage,
    StepConfigKeyPair,
    StepConfigSecurityGroup,
    StepConfigSubnet,
    StepConfigVPC,
    StepCreateImage,
    StepDetachTempKeyPair,
    StepPreValidate,
    StepRunInstance,
)

logger = logging.getLogger(__name__)


def build_steps(config: BuildConfig) -> list[Step]:
    """The build pipeline for *config*, in execution order."""
    return [
        StepPreValidate(force_delete=config.force_delete),
        StepCheckSourceImage(),
        StepConfigKeyPair(),
        StepConfigVPC(vpc_id=config.vpc_id, vpc_name=config.vpc_name, cidr_block=config.cidr_block),
        StepConfigSubnet(
            subnet_id=config.subnet_id,
            subnet_name=config.subnet_name,
            cidr_block=config.subnet_cidr_block,
            zone=config.zone,
        ),
        StepConfigSecurityGroup(
            security_group_id=config.security_group_id,
            security_group_name=config.security_group_name,
        ),
        StepRunInstance(),
        StepDetachTempKeyPair(),
        StepCreateImage(),
    ]


def make_clients(config: BuildConfig, http_client=None) -> tuple[CvmClient, VpcClient]:
    credentials = Credentials(config.secret_id, config.secret_key, config.security_token)
    return (
        CvmClient(credentials, config.region, http_client=http_client),
        VpcClient(credentials, config.region, http_client=http_client),
    )


async def run_build(config: BuildConfig, timeout=None) -> BuildState:
    """Run a full build.

    Unexpected exceptions raised by a step end the build like a halt: they
    are recorded in ``state.error`` after cleanup instead of propagating.

    Args:
        timeout: overall deadline in seconds; defaults to ``config.build_timeout``.
            On expiry the pipeline is cancelled and still cleans up.

    Returns:
        The final state; ``state.error`` is set if the build failed.
    """
    timeout = timeout or config.build_timeout
    async with httpx.AsyncClient() as http_client:
        cvm_client, vpc_client = make_clients(config, http_client)
        state = BuildState(config=config, cvm_client=cvm_client, vpc_client=vpc_client)
        try:
            await asyncio.wait_for(run_steps(build_steps(config), state), timeout)
        except TimeoutError:
            logger.error(f"Build timed out after {timeout}s")
        except Exception as e:
            # run_steps has already cleaned up and recorded the error
            logger.debug(f"Unexpected error during build: {e!r}", exc_info=True)
            state.put_error(e)
    return state
