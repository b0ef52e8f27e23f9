"""Build pipeline: typed run-state, the Step contract and the runner."""

from cvmbake.pipeline.runner import cleanup_steps, run_steps
from cvmbake.pipeline.state import BuildState, StepAction
from cvmbake.pipeline.step import Step, cleanup_failed, halt, say_clean

__all__ = [
    "BuildState",
    "StepAction",
    "Step",
    "halt",
    "say_clean",
    "cleanup_failed",
    "run_steps",
    "cleanup_steps",
]
