from enum import Enum
import heapq
import logging
from typing import Dict, List, Tuple, Union

from pydantic import BaseModel, Field, computed_field, model_validator

from wfsched import Job, WorkflowGraph
from wfsched.exceptions import InvalidMachineCountError
from wfsched.priorities import Priority, PriorityFunction, get_priority_function


class ScheduledJob(BaseModel):
    """A job placed on a machine."""

    job: Job = Field(..., description="The job.")
    machine: int = Field(..., ge=0, description="The index of the machine the job runs on.")
    ready_time: int = Field(..., description="The finish time of the machine when the job was assigned.")
    start: int = Field(..., description="The start time of the job.")
    end: int = Field(..., description="The finish time of the job.")

    @property
    def name(self) -> str:
        return self.job.name

    def __str__(self) -> str:
        return f"Job(machine={self.machine}, name={self.name}, start={self.start}, end={self.end})"


class Schedule(BaseModel):
    """The placements of a workflow's jobs on a pool of identical machines."""

    num_machines: int = Field(..., ge=1, description="The number of machines.")
    placements: List[ScheduledJob] = Field(
        default_factory=list, description="The placed jobs, in the order they were scheduled."
    )

    @model_validator(mode="after")
    def check_machines(self) -> "Schedule":
        """Reject placements on machines outside the pool."""
        for placement in self.placements:
            if placement.machine >= self.num_machines:
                raise ValueError(
                    f"Job {placement.name} is on machine {placement.machine}, "
                    f"but the schedule only has machines 0 to {self.num_machines - 1}."
                )
        return self

    @property
    def machine_loads(self) -> List[int]:
        """The finish time of the last job on each machine."""
        loads = [0] * self.num_machines
        for placement in self.placements:
            loads[placement.machine] = max(loads[placement.machine], placement.end)
        return loads

    @computed_field
    @property
    def makespan(self) -> int:
        """Get the makespan of the schedule.

        Returns:
            int: The finish time of the busiest machine.
        """
        return max(self.machine_loads, default=0)

    def __getitem__(self, machine: int) -> List[ScheduledJob]:
        """Get the jobs scheduled on a machine.

        Args:
            machine (int): The index of the machine.

        Returns:
            List[ScheduledJob]: The jobs on the machine, by start time.
        """
        if not 0 <= machine < self.num_machines:
            raise ValueError(f"Machine {machine} not in schedule. Machines are 0 to {self.num_machines - 1}.")
        return sorted(
            (p for p in self.placements if p.machine == machine),
            key=lambda p: (p.start, p.end),
        )

    def __len__(self) -> int:
        return len(self.placements)

    def get_scheduled_job(self, name: str) -> ScheduledJob:
        """Get the placement of a job by name.

        Args:
            name (str): The name of the job.
        Returns:
            ScheduledJob: The placement of the job.

        Raises:
            ValueError: If the job is not in the schedule.
        """
        for placement in self.placements:
            if placement.name == name:
                return placement
        raise ValueError(f"Job {name} not in schedule.")

    def as_tuple(self) -> Tuple[int, List[ScheduledJob]]:
        """Get the makespan and the placements as a pair."""
        return self.makespan, list(self.placements)

    def __str__(self) -> str:
        result = "Schedule:\n"
        for machine in range(self.num_machines):
            result += f"  Machine {machine}:\n"
            for placement in self[machine]:
                result += f"    {placement}\n"
        result += f"  Makespan: {self.makespan}\n"
        return result


class Placement(str, Enum):
    """How a job is matched to a machine.

    BEST_FIT tries every machine and keeps the one where the job finishes
    first. EARLIEST_MACHINE only tries the machine that frees up first; it
    is cheaper but ignores where the job's inputs are, so it can pay
    communication costs that best-fit avoids.
    """

    BEST_FIT = "best_fit"
    EARLIEST_MACHINE = "earliest_machine"


class WorkflowScheduler:
    """List scheduler for a workflow on a pool of identical machines.

    Jobs are visited in a priority-driven topological order and each one is
    placed greedily on a machine, taking communication delays between
    machines into account.
    """

    def __init__(self,
                 workflow: WorkflowGraph,
                 num_machines: int,
                 priority: Union[Priority, str, PriorityFunction] = Priority.CRITICAL_PATH,
                 placement: Union[Placement, str] = Placement.BEST_FIT) -> None:
        """Initialize the scheduler.

        Args:
            workflow (WorkflowGraph): The workflow to schedule. It is not modified.
            num_machines (int): The number of machines.
            priority (Priority | str | Callable, optional): The rule ranking ready jobs.
                Defaults to Priority.CRITICAL_PATH.
            placement (Placement | str, optional): The machine selection policy.
                Defaults to Placement.BEST_FIT.

        Raises:
            InvalidMachineCountError: If num_machines is not a positive integer.
            ValueError: If the priority or placement is unknown.
        """
        if isinstance(num_machines, bool) or not isinstance(num_machines, int) or num_machines < 1:
            raise InvalidMachineCountError(
                f"Number of machines must be a positive integer, got {num_machines!r}."
            )
        self.workflow = workflow
        self.num_machines = num_machines
        self.priority = get_priority_function(priority)
        self.placement = Placement(placement)

    @property
    def name(self) -> str:
        """Get the name of the scheduler.

        Returns:
            str: The name of the scheduler.
        """
        return self.__class__.__name__

    def topological_sort(self) -> List[Job]:
        """Order the jobs so that every job comes after its predecessors.

        Among the jobs whose predecessors have all been ordered, the one
        with the highest priority weight goes next. Ties go to the job that
        was added to the workflow first.

        Returns:
            List[Job]: The jobs in priority topological order.

        Raises:
            CyclicGraphError: If the workflow has a cycle.
        """
        workflow = self.workflow
        jobs = workflow.jobs
        weights = self.priority(workflow)
        in_degrees = workflow.in_degrees()

        pq = [
            (-weights[job.name], handle)
            for handle, job in enumerate(jobs)
            if in_degrees[job.name] == 0
        ]
        heapq.heapify(pq)

        order: List[Job] = []
        while pq:
            _, handle = heapq.heappop(pq)
            job = jobs[handle]
            order.append(job)
            for successor in workflow.successors(job):
                in_degrees[successor.name] -= 1
                if in_degrees[successor.name] == 0:
                    heapq.heappush(pq, (-weights[successor.name], workflow.handle(successor)))

        if len(order) < len(jobs):
            raise workflow._cycle_error(len(order))
        return order

    def schedule(self) -> Schedule:
        """Schedule the workflow on the machines.

        Returns:
            Schedule: The placement of every job and the resulting makespan.

        Raises:
            CyclicGraphError: If the workflow has a cycle.
        """
        workflow = self.workflow
        num_machines = self.num_machines
        order = self.topological_sort()

        parents: Dict[int, List[Tuple[int, int]]] = {
            workflow.handle(job): [
                (workflow.handle(comm.source), comm.comm_time)
                for comm in workflow.in_edges(job)
            ]
            for job in order
        }

        machine_finish = [0] * num_machines
        job_finish = [0] * len(workflow)
        job_machine = [-1] * len(workflow)
        machine_pq = [(0, machine) for machine in range(num_machines)]

        def get_data_ready_time(handle: int, machine: int) -> int:
            # inputs from the same machine arrive without communication delay
            return max(
                (
                    job_finish[source] + (comm_time if job_machine[source] != machine else 0)
                    for source, comm_time in parents[handle]
                ),
                default=0,
            )

        def get_data_ready_times(handle: int) -> List[int]:
            # latest remote arrival, and latest remote arrival from any other
            # machine, so each machine is resolved in O(1)
            local = [0] * num_machines
            best, best_machine, second = 0, -1, 0
            for source, comm_time in parents[handle]:
                finish, machine = job_finish[source], job_machine[source]
                local[machine] = max(local[machine], finish)
                arrival = finish + comm_time
                if arrival > best:
                    if machine != best_machine:
                        second = best
                    best, best_machine = arrival, machine
                elif machine != best_machine:
                    second = max(second, arrival)
            return [
                max(local[machine], second if machine == best_machine else best)
                for machine in range(num_machines)
            ]

        placements: List[ScheduledJob] = []
        for job in order:
            handle = workflow.handle(job)
            if self.placement == Placement.EARLIEST_MACHINE:
                _, best_machine = heapq.heappop(machine_pq)
                start_time = max(machine_finish[best_machine], get_data_ready_time(handle, best_machine))
            else:
                data_ready_times = get_data_ready_times(handle)
                best_machine, start_time = 0, max(machine_finish[0], data_ready_times[0])
                for machine in range(1, num_machines):
                    candidate = max(machine_finish[machine], data_ready_times[machine])
                    if candidate < start_time:
                        best_machine, start_time = machine, candidate

            end_time = start_time + job.execution_time
            placements.append(
                ScheduledJob(
                    job=job,
                    machine=best_machine,
                    ready_time=machine_finish[best_machine],
                    start=start_time,
                    end=end_time,
                )
            )
            logging.debug(
                "Placed %s on machine %d: start=%d end=%d", job.name, best_machine, start_time, end_time
            )

            machine_finish[best_machine] = end_time
            job_finish[handle] = end_time
            job_machine[handle] = best_machine
            if self.placement == Placement.EARLIEST_MACHINE:
                heapq.heappush(machine_pq, (end_time, best_machine))

        schedule = Schedule(num_machines=num_machines, placements=placements)
        logging.debug("%s makespan: %d", self.name, schedule.makespan)
        return schedule
