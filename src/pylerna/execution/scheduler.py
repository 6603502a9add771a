"""Scheduling of units of work across packages.

The scheduler decides when a package's unit of work may start and records
one result per planned package. It never looks inside a unit.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import structlog

from pylerna.execution.results import BatchResult, ExecutionResult
from pylerna.execution.units import UnitContext, UnitOfWork
from pylerna.workspace.graph import DependencyGraph
from pylerna.workspace.package import Package

logger = structlog.get_logger(__name__)

OutputHandler = Callable[[str, str, bool], None]


class ConcurrencyMode(str, Enum):
    PARALLEL = "parallel"
    TOPOLOGICAL = "topological"
    SERIAL = "serial"


@dataclass
class SchedulerPolicy:
    """How a run is scheduled.

    Attributes:
        mode: Ordering mode.
        concurrency: Maximum units running at once; None is unlimited.
            Serial mode always runs one.
        bail: Stop starting new units after the first failure.
        terminate_on_bail: Also signal running units to terminate on bail.
    """

    mode: ConcurrencyMode = ConcurrencyMode.TOPOLOGICAL
    concurrency: int | None = 4
    bail: bool = True
    terminate_on_bail: bool = False

    @property
    def limit(self) -> int | None:
        if self.mode == ConcurrencyMode.SERIAL:
            return 1
        if self.concurrency is None:
            return None
        return max(1, self.concurrency)


class Scheduler:
    """Runs one unit of work per package under a SchedulerPolicy.

    In topological and serial modes a package starts only after every
    planned package it depends on (directly, or through packages outside
    the plan) has succeeded. Dependents of a package that did not succeed
    are skipped and never started.
    Members of a dependency cycle run one at a time in lexical order.
    """

    def __init__(
        self,
        graph: DependencyGraph | None = None,
        policy: SchedulerPolicy | None = None,
        *,
        root: Path | None = None,
        env: dict[str, str] | None = None,
        output_handler: OutputHandler | None = None,
        on_complete: Callable[[ExecutionResult], None] | None = None,
    ) -> None:
        """Initialize scheduler.

        Args:
            graph: Dependency graph; required for ordered modes.
            policy: Scheduling policy.
            root: Workspace root passed to every unit.
            env: Extra environment passed to every unit.
            output_handler: Callback (pkg_name, line, is_stderr) for streamed output.
            on_complete: Called with each result as soon as it is final.
        """
        self.graph = graph
        self.policy = policy or SchedulerPolicy()
        self.root = root
        self.env = env or {}
        self.output_handler = output_handler
        self.on_complete = on_complete
        self._cancel_event = asyncio.Event()
        self._aborted = False
        self._bailed = False

    def cancel(self) -> None:
        """Abort the run: start nothing new and terminate running units."""
        self._aborted = True
        self._cancel_event.set()

    @property
    def stopping(self) -> bool:
        return self._aborted or self._bailed

    def _dependencies(self, names: list[str]) -> dict[str, set[str]]:
        if self.policy.mode == ConcurrencyMode.PARALLEL:
            return {name: set() for name in names}
        if self.graph is None:
            raise ValueError(f"{self.policy.mode.value} scheduling needs a dependency graph")
        planned = set(names)
        deps: dict[str, set[str]] = {}
        for name in names:
            peers = self.graph.unit_of(name)
            deps[name] = {
                d for d in self.graph.get_transitive_dependencies(name) if d in planned
            } - peers
            # cycle members run one after another, lexically
            deps[name] |= {p for p in peers if p < name and p in planned}
        return deps

    def _order(self, names: list[str]) -> list[str]:
        if self.policy.mode == ConcurrencyMode.PARALLEL or self.graph is None:
            return list(names)
        return self.graph.topological_order(names)

    def _context(self, package: Package) -> UnitContext:
        on_out = None
        on_err = None
        if self.output_handler:
            handler = self.output_handler

            def _on_out(line: str) -> None:
                handler(package.name, line, False)

            def _on_err(line: str) -> None:
                handler(package.name, line, True)

            on_out = _on_out
            on_err = _on_err

        return UnitContext(
            package=package,
            cwd=package.path,
            cancel_event=self._cancel_event,
            on_stdout=on_out,
            on_stderr=on_err,
            root=self.root,
            env=dict(self.env),
        )

    async def _run_unit(self, package: Package, unit: UnitOfWork) -> ExecutionResult:
        try:
            return await unit(self._context(package))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("unit of work raised", package=package.name, error=str(e), exc_info=True)
            return ExecutionResult.failure_result(package.name, -1, error=str(e))

    def _finish(self, results: dict[str, ExecutionResult], result: ExecutionResult) -> None:
        results[result.package_name] = result
        if result.failed and self.policy.bail and not self._bailed:
            self._bailed = True
            logger.info("bailing after failure", package=result.package_name)
            if self.policy.terminate_on_bail:
                self._cancel_event.set()
        if self.on_complete:
            self.on_complete(result)

    def _blocked(self, deps: set[str], results: dict[str, ExecutionResult]) -> str | None:
        for dep in sorted(deps):
            result = results.get(dep)
            if result is not None and not result.success:
                return dep
        return None

    async def run(self, packages: list[Package], unit: UnitOfWork) -> BatchResult:
        """Run `unit` for every package.

        Args:
            packages: Planned packages.
            unit: Unit of work to run for each package.

        Returns:
            One result per planned package, in the order given.
        """
        by_name = {pkg.name: pkg for pkg in packages}
        names = list(by_name)
        deps = self._dependencies(names)
        waiting = self._order(names)
        limit = self.policy.limit
        results: dict[str, ExecutionResult] = {}
        running: dict[asyncio.Task[ExecutionResult], str] = {}

        logger.debug(
            "scheduling",
            mode=self.policy.mode.value,
            packages=len(names),
            concurrency=limit,
        )

        try:
            while waiting or running:
                progressed = True
                while progressed:
                    progressed = False
                    for name in list(waiting):
                        failed_dep = self._blocked(deps[name], results)
                        if failed_dep is not None:
                            waiting.remove(name)
                            reason = f"dependency {failed_dep} did not succeed"
                            self._finish(results, ExecutionResult.skipped(name, reason))
                            progressed = True
                            continue
                        if self.stopping:
                            continue
                        if limit is not None and len(running) >= limit:
                            break
                        if all(d in results for d in deps[name]):
                            waiting.remove(name)
                            task = asyncio.create_task(self._run_unit(by_name[name], unit))
                            running[task] = name

                if self.stopping and waiting:
                    reason = "run cancelled" if self._aborted else "bailed after failure"
                    for name in waiting:
                        if self._aborted:
                            result = ExecutionResult.cancelled(name, reason)
                        else:
                            result = ExecutionResult.skipped(name, reason)
                        self._finish(results, result)
                    waiting = []

                if not running:
                    if waiting:
                        raise RuntimeError(f"Scheduler stalled with waiting packages: {waiting}")
                    break

                done, _ = await asyncio.wait(set(running), return_when=asyncio.FIRST_COMPLETED)
                for task in sorted(done, key=lambda t: running[t]):
                    running.pop(task)
                    self._finish(results, task.result())
        except asyncio.CancelledError:
            self._cancel_event.set()
            if running:
                await asyncio.gather(*running, return_exceptions=True)
            raise

        ordered = [results[name] for name in names]
        batch = BatchResult(results=ordered)
        logger.debug(
            "run finished",
            succeeded=batch.success_count,
            failed=batch.failure_count,
            skipped=len(batch.skipped),
            cancelled=len(batch.cancelled),
        )
        return batch
