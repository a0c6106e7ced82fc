import random

import numpy as np
import pytest

from wfsched import (
    CyclicGraphError,
    InvalidMachineCountError,
    Job,
    Placement,
    Priority,
    Schedule,
    ScheduledJob,
    WorkflowGraph,
    WorkflowScheduler,
)
from wfsched.utils.random_graphs import (
    get_chain_dag,
    get_diamond_dag,
    get_random_dag,
)
from wfsched.utils.tools import validate_schedule

# set seeds for reproducibility
random.seed(0)
np.random.seed(0)


def get_example_workflow() -> WorkflowGraph:
    return WorkflowGraph.create(
        jobs=[("A", 5), ("B", 3), ("C", 8), ("D", 4), ("E", 2), ("F", 1), ("G", 7), ("H", 3)],
        communications=[
            ("A", "D", 2), ("B", "D", 1), ("C", "D", 5), ("D", "E", 3),
            ("D", "F", 4), ("E", "G", 1), ("F", "G", 2), ("G", "H", 2),
        ],
    )


priorities = list(Priority)
placements = list(Placement)

task_graphs = {
    "diamond": get_diamond_dag(),
    "chain": get_chain_dag(),
    "wide": get_random_dag(num_nodes=30, edge_probability=0.1),
    **{f"random_{i}": get_random_dag(num_nodes=15, edge_probability=0.25) for i in range(5)},
    "example": get_example_workflow(),
}


@pytest.mark.parametrize("priority", priorities)
@pytest.mark.parametrize("placement", placements)
@pytest.mark.parametrize("num_machines", [1, 2, 3, 8])
@pytest.mark.parametrize("task_graph_name, workflow", task_graphs.items())
def test_schedules_are_feasible(priority: Priority,
                                placement: Placement,
                                num_machines: int,
                                task_graph_name: str,
                                workflow: WorkflowGraph):
    """Every produced schedule respects precedence, communication and machine constraints."""
    schedule = WorkflowScheduler(workflow, num_machines, priority=priority, placement=placement).schedule()
    validate_schedule(workflow, schedule)

    position = {p.name: i for i, p in enumerate(schedule.placements)}
    for comm in workflow.communications:
        assert position[comm.source] < position[comm.target], task_graph_name

    for placement_ in schedule.placements:
        assert 0 <= placement_.machine < num_machines
        assert placement_.end == placement_.start + placement_.job.execution_time
        assert placement_.start >= placement_.ready_time

    assert schedule.makespan == max(schedule.machine_loads)
    assert schedule.makespan == max(p.end for p in schedule.placements)


@pytest.mark.parametrize("priority", priorities)
@pytest.mark.parametrize("placement", placements)
@pytest.mark.parametrize("task_graph_name, workflow", task_graphs.items())
def test_single_machine_is_sum_of_execution_times(priority, placement, task_graph_name, workflow):
    schedule = WorkflowScheduler(workflow, 1, priority=priority, placement=placement).schedule()
    assert schedule.makespan == sum(job.execution_time for job in workflow.jobs)
    assert all(p.machine == 0 for p in schedule.placements)


@pytest.mark.parametrize("priority", priorities)
@pytest.mark.parametrize("placement", placements)
def test_schedule_is_reproducible(priority, placement):
    workflow = task_graphs["random_0"]
    scheduler = WorkflowScheduler(workflow, 3, priority=priority, placement=placement)
    first = scheduler.schedule()
    second = scheduler.schedule()
    assert first == second
    assert WorkflowScheduler(workflow, 3, priority=priority, placement=placement).schedule() == first


def test_chain_ignores_communication_on_one_machine():
    workflow = WorkflowGraph.create(jobs=[("A", 5), ("B", 3)], communications=[("A", "B", 2)])
    makespan, placements_ = WorkflowScheduler(workflow, 1).schedule().as_tuple()
    assert makespan == 8
    assert [(p.name, p.start, p.end) for p in placements_] == [("A", 0, 5), ("B", 5, 8)]


@pytest.mark.parametrize("placement", placements)
def test_independent_jobs(placement):
    workflow = WorkflowGraph.create(jobs=[("A", 5), ("B", 3)], communications=[])
    assert WorkflowScheduler(workflow, 2, placement=placement).schedule().makespan == 5
    assert WorkflowScheduler(workflow, 1, placement=placement).schedule().makespan == 8


def test_best_fit_avoids_communication():
    workflow = WorkflowGraph.create(jobs=[("A", 5), ("B", 3)], communications=[("A", "B", 10)])
    schedule = WorkflowScheduler(workflow, 2, placement=Placement.BEST_FIT).schedule()
    a, b = schedule.get_scheduled_job("A"), schedule.get_scheduled_job("B")
    assert a.machine == b.machine
    assert (b.start, b.end) == (5, 8)
    assert schedule.makespan == 8


def test_earliest_machine_only_balances_load():
    workflow = WorkflowGraph.create(jobs=[("A", 5), ("B", 3)], communications=[("A", "B", 10)])
    schedule = WorkflowScheduler(workflow, 2, placement=Placement.EARLIEST_MACHINE).schedule()
    b = schedule.get_scheduled_job("B")
    assert b.machine == 1
    assert (b.ready_time, b.start, b.end) == (0, 15, 18)
    assert schedule.makespan == 18


@pytest.mark.parametrize("priority", priorities)
def test_priority_order(priority):
    workflow = get_example_workflow()
    order = [job.name for job in WorkflowScheduler(workflow, 2, priority=priority).topological_sort()]
    assert order == ["C", "A", "B", "D", "E", "F", "G", "H"]


def test_ties_follow_insertion_order():
    workflow = WorkflowGraph.create(
        jobs=[("X", 2), ("Y", 2), ("Z", 2), ("W", 5)],
        communications=[],
    )
    order = [job.name for job in WorkflowScheduler(workflow, 2).topological_sort()]
    assert order == ["W", "X", "Y", "Z"]


def test_critical_path_differs_from_makespan_priority():
    # B looks light locally but leads to a long tail
    workflow = WorkflowGraph.create(
        jobs=[("A", 4), ("B", 1), ("C", 10)],
        communications=[("B", "C", 0)],
    )
    critical = WorkflowScheduler(workflow, 1, priority=Priority.CRITICAL_PATH).topological_sort()
    local = WorkflowScheduler(workflow, 1, priority=Priority.MAKESPAN).topological_sort()
    assert [job.name for job in critical] == ["B", "C", "A"]
    assert [job.name for job in local] == ["A", "B", "C"]


def test_custom_priority_function():
    workflow = WorkflowGraph.create(jobs=[("A", 1), ("B", 1), ("C", 1)], communications=[])
    scheduler = WorkflowScheduler(
        workflow, 1, priority=lambda wf: {"A": 0, "B": 2, "C": 1}
    )
    assert [job.name for job in scheduler.topological_sort()] == ["B", "C", "A"]


def test_priority_and_placement_by_name():
    workflow = get_example_workflow()
    by_name = WorkflowScheduler(workflow, 2, priority="makespan", placement="earliest_machine").schedule()
    by_enum = WorkflowScheduler(
        workflow, 2, priority=Priority.MAKESPAN, placement=Placement.EARLIEST_MACHINE
    ).schedule()
    assert by_name == by_enum
    with pytest.raises(ValueError):
        WorkflowScheduler(workflow, 2, priority="shortest")
    with pytest.raises(ValueError):
        WorkflowScheduler(workflow, 2, placement="random")


def test_example_best_fit():
    schedule = WorkflowScheduler(get_example_workflow(), 2).schedule()
    assert schedule.makespan == 26
    assert [(p.name, p.machine, p.start, p.end) for p in schedule.placements] == [
        ("C", 0, 0, 8),
        ("A", 1, 0, 5),
        ("B", 1, 5, 8),
        ("D", 0, 9, 13),
        ("E", 0, 13, 15),
        ("F", 0, 15, 16),
        ("G", 0, 16, 23),
        ("H", 0, 23, 26),
    ]


def test_example_earliest_machine():
    schedule = WorkflowScheduler(
        get_example_workflow(), 2, priority=Priority.MAKESPAN, placement=Placement.EARLIEST_MACHINE
    ).schedule()
    assert schedule.makespan == 31
    assert [(p.name, p.machine, p.ready_time, p.start, p.end) for p in schedule.placements] == [
        ("C", 0, 0, 0, 8),
        ("A", 1, 0, 0, 5),
        ("B", 1, 5, 5, 8),
        ("D", 0, 8, 9, 13),
        ("E", 1, 8, 16, 18),
        ("F", 0, 13, 13, 14),
        ("G", 0, 14, 19, 26),
        ("H", 1, 18, 28, 31),
    ]


@pytest.mark.parametrize("edges", [
    [("A", "B", 1), ("B", "A", 1)],
    [("A", "B", 1), ("B", "C", 1), ("C", "B", 1)],
])
@pytest.mark.parametrize("priority", priorities)
def test_cyclic_graph_is_rejected(edges, priority):
    workflow = WorkflowGraph.create(jobs=[("A", 5), ("B", 3), ("C", 1)], communications=edges)
    with pytest.raises(CyclicGraphError):
        WorkflowScheduler(workflow, 2, priority=priority).schedule()


@pytest.mark.parametrize("num_machines", [0, -1, 1.5, "2", True, None])
def test_invalid_machine_count(num_machines):
    with pytest.raises(InvalidMachineCountError):
        WorkflowScheduler(get_example_workflow(), num_machines)


def test_empty_workflow():
    schedule = WorkflowScheduler(WorkflowGraph(), 3).schedule()
    assert schedule.makespan == 0
    assert schedule.placements == []
    assert schedule.machine_loads == [0, 0, 0]


def test_zero_duration_jobs():
    workflow = WorkflowGraph.create(
        jobs=[("A", 0), ("B", 0), ("C", 4)],
        communications=[("A", "C", 3), ("B", "C", 0)],
    )
    schedule = WorkflowScheduler(workflow, 2).schedule()
    validate_schedule(workflow, schedule)
    assert schedule.makespan == 4


def test_schedule_accessors():
    schedule = WorkflowScheduler(get_example_workflow(), 2).schedule()
    assert isinstance(schedule, Schedule)
    assert len(schedule) == 8
    assert [p.name for p in schedule[1]] == ["A", "B"]
    assert schedule.machine_loads == [26, 8]
    with pytest.raises(ValueError):
        schedule[2]
    with pytest.raises(ValueError):
        schedule.get_scheduled_job("Z")

    text = str(schedule)
    assert text.startswith("Schedule:\n  Machine 0:\n")
    assert "Makespan: 26" in text

    dumped = schedule.model_dump()
    assert dumped["makespan"] == 26
    assert dumped["placements"][0]["job"] == {"name": "C", "execution_time": 8}
    assert Schedule.model_validate_json(schedule.model_dump_json()).placements == schedule.placements


def test_more_machines_than_jobs():
    workflow = get_diamond_dag()
    schedule = WorkflowScheduler(workflow, 16).schedule()
    validate_schedule(workflow, schedule)
    assert all(p.machine < 16 for p in schedule.placements)


def test_schedule_rejects_unknown_machine():
    placement = ScheduledJob(job=Job(name="A", execution_time=1), machine=5, ready_time=0, start=0, end=1)
    with pytest.raises(ValueError, match="only has machines 0 to 1"):
        Schedule(num_machines=2, placements=[placement])

    payload = Schedule(num_machines=6, placements=[placement]).model_dump_json()
    with pytest.raises(ValueError, match="on machine 5"):
        Schedule.model_validate_json(payload.replace('"num_machines":6', '"num_machines":2'))
