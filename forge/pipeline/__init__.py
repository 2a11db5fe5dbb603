"""Pipeline orchestration: state machine, plan-critique loop and runner.

Exports:
    - PipelineStateMachine, PipelineOutcome, PipelinePolicy
    - PlanCritiqueLoop, PlanCritiqueOutcome, LoopExit
    - StageExecutor, RetryConfig, StageTimeouts
    - InFlightRegistry
    - PipelineRunner, create_runner, create_state_machine
"""

from forge.pipeline.executor import RetryConfig, StageExecutor, StageTimeouts
from forge.pipeline.inflight import InFlightRegistry
from forge.pipeline.plan_loop import LoopExit, PlanCritiqueLoop, PlanCritiqueOutcome
from forge.pipeline.runner import PipelineRunner, create_runner, create_state_machine
from forge.pipeline.state_machine import (
    PipelineOutcome,
    PipelinePolicy,
    PipelineStateMachine,
    resolve_workdir,
)


__all__ = [
    "InFlightRegistry",
    "LoopExit",
    "PipelineOutcome",
    "PipelinePolicy",
    "PipelineRunner",
    "PipelineStateMachine",
    "PlanCritiqueLoop",
    "PlanCritiqueOutcome",
    "RetryConfig",
    "StageExecutor",
    "StageTimeouts",
    "create_runner",
    "create_state_machine",
    "resolve_workdir",
]
