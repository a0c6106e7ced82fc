import logging
from typing import Dict

import numpy as np

from wfsched import WorkflowGraph
from wfsched.scheduler import Schedule, ScheduledJob


class InvalidScheduleError(Exception):
    """Raised when a schedule is invalid."""
    def __init__(self,
                 workflow: WorkflowGraph,
                 schedule: Schedule,
                 message: str = "Invalid schedule.") -> None:
        super().__init__(message)
        self.workflow = workflow
        self.schedule = schedule
        self.message = message


def validate_schedule(workflow: WorkflowGraph, schedule: Schedule) -> None:
    """Validate a schedule against its workflow.

    Args:
        workflow (WorkflowGraph): The workflow graph.
        schedule (Schedule): The schedule.

    Raises:
        InvalidScheduleError: If schedule is invalid.
    """
    placed: Dict[str, ScheduledJob] = {}
    position: Dict[str, int] = {}
    for i, placement in enumerate(schedule.placements):
        if placement.name in placed:
            message = f"Job {placement.name} is scheduled more than once."
            logging.error(message)
            raise InvalidScheduleError(workflow, schedule, message)
        placed[placement.name] = placement
        position[placement.name] = i

    # check that all jobs are scheduled
    if len(placed) != len(workflow) or any(job.name not in placed for job in workflow.jobs):
        message = f"Only {len(placed)} of {len(workflow)} jobs are scheduled."
        logging.error(message)
        raise InvalidScheduleError(workflow, schedule, message)

    for placement in schedule.placements:
        if not 0 <= placement.machine < schedule.num_machines:
            message = f"Job {placement} is on machine {placement.machine}, which does not exist."
            raise InvalidScheduleError(workflow, schedule, message)

        # check that the runtime is correct
        execution_time = workflow.get_job(placement.name).execution_time
        if not np.isclose(placement.start + execution_time, placement.end):
            message = f"Job {placement} has incorrect end time: {placement.end}. Expected {placement.start + execution_time}."
            raise InvalidScheduleError(workflow, schedule, message)

        if placement.start < placement.ready_time:
            message = f"Job {placement} starts before its machine is free at {placement.ready_time}."
            raise InvalidScheduleError(workflow, schedule, message)

        # check that the job starts after all its inputs have arrived
        for comm in workflow.in_edges(placement.name):
            parent = placed[comm.source]
            if position[comm.source] > position[placement.name]:
                message = f"Job {placement} is scheduled before its predecessor {parent}."
                raise InvalidScheduleError(workflow, schedule, message)
            arrival_time = parent.end + (comm.comm_time if parent.machine != placement.machine else 0)
            if not (np.isclose(arrival_time, placement.start) or arrival_time < placement.start):
                message = f"Job {placement} has incorrect start time: {placement.start}. Expected at least {arrival_time}."
                raise InvalidScheduleError(workflow, schedule, message)

    # check that jobs on a machine do not overlap
    for machine in range(schedule.num_machines):
        jobs = schedule[machine]
        for left, right in zip(jobs, jobs[1:]):
            if not (np.isclose(left.end, right.start) or left.end < right.start):
                message = f"Jobs {left} and {right} overlap on machine {machine}."
                raise InvalidScheduleError(workflow, schedule, message)

    if schedule.makespan != max((p.end for p in schedule.placements), default=0):
        message = f"Makespan {schedule.makespan} does not match the last finish time."
        raise InvalidScheduleError(workflow, schedule, message)
