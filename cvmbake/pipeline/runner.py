"""Sequential step runner with reverse-order cleanup."""

import asyncio
import logging

from cvmbake.cloud.errors import BuildCancelledError, CvmbakeError
from cvmbake.pipeline.state import BuildState, StepAction
from cvmbake.pipeline.step import Step, halt

logger = logging.getLogger(__name__)


async def cleanup_steps(executed: list[Step], state: BuildState) -> None:
    """Call ``cleanup`` on *executed* steps in reverse order.

    A failing cleanup is recorded in ``state.cleanup_errors`` and the
    remaining cleanups still run.
    """
    for step in reversed(executed):
        try:
            await step.cleanup(state)
        except Exception as e:
            logger.warning(f"Cleanup of {step.name} failed, please check for leftover resources: {e}")
            state.cleanup_errors.append(e)


async def run_steps(steps: list[Step], state: BuildState) -> BuildState:
    """Run *steps* in order, stopping at the first halt, then clean up.

    Steps never run concurrently. A provider or validation error escaping a
    step is treated as a halt. Cancellation of the surrounding task records
    ``BuildCancelledError``, still runs every cleanup, and is re-raised.

    Returns:
        *state*, with ``error`` set if the run halted.
    """
    executed: list[Step] = []
    try:
        for step in steps:
            if state.halted:
                break
            executed.append(step)
            logger.debug(f"Running {step.name}")
            try:
                action = await step.run(state)
            except CvmbakeError as e:
                action = halt(state, e, f"{step.name} failed")
            if action is StepAction.HALT:
                if state.error is None:
                    state.put_error(CvmbakeError(f"{step.name} halted"))
                break
    except asyncio.CancelledError:
        logger.error("Build cancelled, cleaning up...")
        state.put_error(BuildCancelledError())
        raise
    except Exception as e:
        state.put_error(e)
        raise
    finally:
        await cleanup_steps(executed, state)

    if state.cleanup_errors:
        logger.warning(f"{len(state.cleanup_errors)} cleanup error(s); some resources may need manual deletion.")
    return state
