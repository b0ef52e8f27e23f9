"""Step contract and the progress/halt helpers shared by all steps."""

import logging
from abc import ABC, abstractmethod

from cvmbake.pipeline.state import BuildState, StepAction

logger = logging.getLogger(__name__)


class Step(ABC):
    """One resource acquisition with a matching release.

    ``run`` acquires or locates a resource and publishes it on the state.
    ``cleanup`` releases only what this step created; it is called for every
    step whose ``run`` started, success or not, in reverse order.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def run(self, state: BuildState) -> StepAction: ...

    async def cleanup(self, state: BuildState) -> None:
        return None


def halt(state: BuildState, err: BaseException, message: str = "") -> StepAction:
    """Record *err* as the run's fatal error and signal HALT."""
    if message:
        logger.error(f"{message}: {err}")
    else:
        logger.error(str(err))
    state.put_error(err)
    return StepAction.HALT


def say_clean(resource: str) -> None:
    logger.info(f"Cleaning up {resource}...")


def cleanup_failed(state: BuildState, err: BaseException, message: str) -> None:
    """Report a failed release. Never raises; the run outcome is unchanged."""
    logger.warning(f"{message}, please delete it manually: {err}")
    state.cleanup_errors.append(err)
