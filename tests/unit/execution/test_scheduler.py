"""Tests for the package scheduler."""

import asyncio

import pytest

from pylerna.execution.results import ExecutionResult, ExecutionStatus
from pylerna.execution.scheduler import ConcurrencyMode, Scheduler, SchedulerPolicy
from pylerna.execution.units import DryRun, UnitContext
from pylerna.workspace.graph import DependencyGraph


class FakeUnit:
    """Records start/end events and fails or raises for chosen packages."""

    def __init__(self, fail=(), raise_for=(), delay: float = 0.01, on_start=None):
        self.fail = set(fail)
        self.raise_for = set(raise_for)
        self.delay = delay
        self.on_start = on_start
        self.events: list[tuple[str, str]] = []
        self.running = 0
        self.max_running = 0

    async def __call__(self, context: UnitContext) -> ExecutionResult:
        name = context.package.name
        self.events.append(("start", name))
        if self.on_start:
            self.on_start(name)
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        await asyncio.sleep(self.delay)
        self.running -= 1
        self.events.append(("end", name))
        if name in self.raise_for:
            raise RuntimeError("boom")
        if name in self.fail:
            return ExecutionResult.failure_result(name, 1)
        return ExecutionResult.success_result(name)

    @property
    def started(self) -> list[str]:
        return [name for kind, name in self.events if kind == "start"]


@pytest.fixture
def chain(make_package):
    """c depends on b depends on a."""
    return [
        make_package("a"),
        make_package("b", deps={"a": ""}),
        make_package("c", deps={"b": ""}),
    ]


def statuses(batch) -> dict[str, ExecutionStatus]:
    return {r.package_name: r.status for r in batch}


@pytest.mark.asyncio
async def test_failure_skips_dependents_under_bail(chain):
    unit = FakeUnit(fail={"b"})
    scheduler = Scheduler(DependencyGraph.build(chain), SchedulerPolicy(bail=True))

    batch = await scheduler.run(chain, unit)

    assert statuses(batch) == {
        "a": ExecutionStatus.SUCCESS,
        "b": ExecutionStatus.FAILURE,
        "c": ExecutionStatus.SKIPPED,
    }
    assert unit.started == ["a", "b"]
    assert batch.exit_code() == 1


@pytest.mark.asyncio
async def test_failure_without_bail_keeps_unrelated_packages(chain, make_package):
    packages = [*chain, make_package("d")]
    unit = FakeUnit(fail={"a"})
    scheduler = Scheduler(DependencyGraph.build(packages), SchedulerPolicy(bail=False))

    batch = await scheduler.run(packages, unit)

    assert statuses(batch) == {
        "a": ExecutionStatus.FAILURE,
        "b": ExecutionStatus.SKIPPED,
        "c": ExecutionStatus.SKIPPED,
        "d": ExecutionStatus.SUCCESS,
    }
    assert batch.get("b").error == "dependency a did not succeed"
    assert batch.exit_code() == 1
    assert batch.exit_code(allow_partial_success=True) == 0


@pytest.mark.asyncio
async def test_dependencies_finish_before_dependents_start(make_package):
    packages = [make_package("c", deps={"a": ""}), make_package("a"), make_package("b")]
    unit = FakeUnit()
    scheduler = Scheduler(
        DependencyGraph.build(packages), SchedulerPolicy(concurrency=None)
    )

    batch = await scheduler.run(packages, unit)

    assert batch.all_success
    assert unit.events.index(("end", "a")) < unit.events.index(("start", "c"))
    # results keep the order packages were given in
    assert [r.package_name for r in batch] == ["c", "a", "b"]


@pytest.mark.asyncio
async def test_concurrency_limit(make_package):
    packages = [make_package(f"p{i}") for i in range(5)]
    unit = FakeUnit(delay=0.02)
    scheduler = Scheduler(policy=SchedulerPolicy(ConcurrencyMode.PARALLEL, concurrency=2))

    batch = await scheduler.run(packages, unit)

    assert batch.success_count == 5
    assert unit.max_running == 2


@pytest.mark.asyncio
async def test_serial_runs_one_at_a_time(chain):
    unit = FakeUnit()
    scheduler = Scheduler(
        DependencyGraph.build(chain), SchedulerPolicy(ConcurrencyMode.SERIAL, concurrency=8)
    )

    await scheduler.run(list(reversed(chain)), unit)

    assert unit.max_running == 1
    assert unit.started == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_parallel_bail_skips_unstarted(make_package):
    packages = [make_package("x"), make_package("y"), make_package("z")]
    unit = FakeUnit(fail={"x"})
    scheduler = Scheduler(policy=SchedulerPolicy(ConcurrencyMode.PARALLEL, concurrency=1))

    batch = await scheduler.run(packages, unit)

    assert statuses(batch) == {
        "x": ExecutionStatus.FAILURE,
        "y": ExecutionStatus.SKIPPED,
        "z": ExecutionStatus.SKIPPED,
    }
    assert batch.get("y").error == "bailed after failure"


@pytest.mark.asyncio
async def test_cancel_marks_unstarted_cancelled(chain):
    scheduler = Scheduler(DependencyGraph.build(chain), SchedulerPolicy(ConcurrencyMode.SERIAL))
    unit = FakeUnit(on_start=lambda name: scheduler.cancel() if name == "a" else None)

    batch = await scheduler.run(chain, unit)

    assert statuses(batch) == {
        "a": ExecutionStatus.SUCCESS,
        "b": ExecutionStatus.CANCELLED,
        "c": ExecutionStatus.CANCELLED,
    }


@pytest.mark.parametrize(
    ("terminate", "expected"),
    [(True, ExecutionStatus.CANCELLED), (False, ExecutionStatus.SUCCESS)],
)
@pytest.mark.asyncio
async def test_terminate_on_bail_signals_running_units(make_package, terminate, expected):
    saw_cancel: dict[str, bool] = {}

    async def unit(context: UnitContext) -> ExecutionResult:
        name = context.package.name
        if name == "x":
            return ExecutionResult.failure_result(name, 1)
        for _ in range(40):
            if context.cancelled:
                saw_cancel[name] = True
                return ExecutionResult.cancelled(name, "terminated")
            await asyncio.sleep(0.005)
        return ExecutionResult.success_result(name)

    policy = SchedulerPolicy(
        ConcurrencyMode.PARALLEL, concurrency=None, bail=True, terminate_on_bail=terminate
    )

    batch = await Scheduler(policy=policy).run([make_package("x"), make_package("y")], unit)

    assert statuses(batch) == {"x": ExecutionStatus.FAILURE, "y": expected}
    assert saw_cancel == ({"y": True} if terminate else {})


@pytest.mark.asyncio
async def test_unit_exception_is_a_failure(make_package):
    packages = [make_package("a")]
    scheduler = Scheduler(policy=SchedulerPolicy(ConcurrencyMode.PARALLEL))

    batch = await scheduler.run(packages, FakeUnit(raise_for={"a"}))

    assert batch.get("a").failed
    assert batch.get("a").error == "boom"


@pytest.mark.asyncio
async def test_cycle_members_run_one_at_a_time_in_lexical_order(make_package):
    packages = [
        make_package("c", deps={"a": ""}),
        make_package("b", deps={"a": ""}),
        make_package("a", deps={"b": ""}),
    ]
    graph = DependencyGraph.build(packages, allow_cycles=True)
    unit = FakeUnit()

    batch = await Scheduler(graph, SchedulerPolicy(concurrency=None)).run(packages, unit)

    assert batch.all_success
    assert unit.max_running == 1
    assert unit.started == ["a", "b", "c"]
    assert unit.events.index(("end", "a")) < unit.events.index(("start", "b"))


@pytest.mark.asyncio
async def test_failed_cycle_member_skips_later_members(make_package):
    packages = [make_package("a", deps={"b": ""}), make_package("b", deps={"a": ""})]
    graph = DependencyGraph.build(packages, allow_cycles=True)

    batch = await Scheduler(graph, SchedulerPolicy(bail=False)).run(
        packages, FakeUnit(fail={"a"})
    )

    assert statuses(batch) == {"a": ExecutionStatus.FAILURE, "b": ExecutionStatus.SKIPPED}


@pytest.mark.asyncio
async def test_ordered_modes_need_a_graph(make_package):
    with pytest.raises(ValueError):
        await Scheduler().run([make_package("a")], FakeUnit())


@pytest.mark.asyncio
async def test_output_handler_and_dry_run(make_package):
    lines: list[tuple[str, str, bool]] = []
    scheduler = Scheduler(
        policy=SchedulerPolicy(ConcurrencyMode.PARALLEL),
        output_handler=lambda name, line, err: lines.append((name, line, err)),
    )

    batch = await scheduler.run([make_package("a")], DryRun(FakeUnit()))

    assert batch.all_success
    assert lines[0][0] == "a"
    assert lines[0][1].startswith("[dry-run]")
