"""Per-package execution: runner, units of work and the scheduler."""

from pylerna.execution.output import OutputMode, OutputPrinter
from pylerna.execution.results import BatchResult, ExecutionResult, ExecutionStatus
from pylerna.execution.runner import package_env, run_command, run_in_package
from pylerna.execution.scheduler import ConcurrencyMode, Scheduler, SchedulerPolicy
from pylerna.execution.units import DryRun, ShellCommand, UnitContext, UnitOfWork

__all__ = [
    "BatchResult",
    "ConcurrencyMode",
    "DryRun",
    "ExecutionResult",
    "ExecutionStatus",
    "OutputMode",
    "OutputPrinter",
    "Scheduler",
    "SchedulerPolicy",
    "ShellCommand",
    "UnitContext",
    "UnitOfWork",
    "package_env",
    "run_command",
    "run_in_package",
]
