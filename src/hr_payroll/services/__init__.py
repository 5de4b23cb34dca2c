"""Payroll services: resolve, commit, render and distribute."""

from hr_payroll.services.dispatcher import (
    BatchOutcome,
    DistributionDispatcher,
    DistributionOutcome,
)
from hr_payroll.services.materializer import (
    ArtifactRenderError,
    Document,
    PayslipMaterializer,
)
from hr_payroll.services.resolver import CompensationResolver, PeriodResolution
from hr_payroll.services.run_registry import (
    NoEmployeesFound,
    PayslipNotFound,
    RunAlreadyProcessed,
    RunNotFound,
    RunRegistry,
)
from hr_payroll.services.state_machine import (
    DistributionStateMachine,
    InvalidTransitionError,
    RunState,
    RunStateMachine,
)

__all__ = [
    "ArtifactRenderError",
    "BatchOutcome",
    "CompensationResolver",
    "DistributionDispatcher",
    "DistributionOutcome",
    "DistributionStateMachine",
    "Document",
    "InvalidTransitionError",
    "NoEmployeesFound",
    "PayslipMaterializer",
    "PayslipNotFound",
    "PeriodResolution",
    "RunAlreadyProcessed",
    "RunNotFound",
    "RunRegistry",
    "RunState",
    "RunStateMachine",
]
