from enum import Enum
import logging
from typing import TYPE_CHECKING, Callable, Dict, Union

if TYPE_CHECKING:
    from wfsched import WorkflowGraph

PriorityFunction = Callable[["WorkflowGraph"], Dict[str, float]]


def makespan_priority(workflow: "WorkflowGraph") -> Dict[str, float]:
    """Rank jobs by their execution time plus their largest outgoing communication time.

    Only immediate successors are considered, so this is a cheap local
    estimate of how much delay a job can push downstream.

    Args:
        workflow (WorkflowGraph): The workflow graph.

    Returns:
        Dict[str, float]: The weight of each job.
    """
    return {job.name: workflow.max_makespan_weight(job) for job in workflow.jobs}


def critical_path_priority(workflow: "WorkflowGraph") -> Dict[str, float]:
    """Rank jobs by the length of their longest weighted path to a sink.

    This is the upward rank of HEFT on identical machines.

    Args:
        workflow (WorkflowGraph): The workflow graph.

    Returns:
        Dict[str, float]: The weight of each job.
    """
    ranks = workflow.critical_weights()
    logging.debug("Critical weights: %s", ranks)
    return ranks


class Priority(str, Enum):
    """The built-in priority rules for ordering ready jobs."""

    MAKESPAN = "makespan"
    CRITICAL_PATH = "critical_path"


_PRIORITY_FUNCTIONS: Dict[Priority, PriorityFunction] = {
    Priority.MAKESPAN: makespan_priority,
    Priority.CRITICAL_PATH: critical_path_priority,
}


def get_priority_function(priority: Union[Priority, str, PriorityFunction]) -> PriorityFunction:
    """Resolve a priority rule.

    Args:
        priority (Priority | str | Callable): A built-in rule, its name, or a
            function mapping a workflow to a weight per job name.

    Returns:
        Callable: The priority function.

    Raises:
        ValueError: If the priority is not a known rule or a callable.
    """
    if isinstance(priority, str):
        try:
            return _PRIORITY_FUNCTIONS[Priority(priority)]
        except ValueError:
            options = ", ".join(p.value for p in Priority)
            raise ValueError(f"Unknown priority {priority!r}. Options are {options}.") from None
    if callable(priority):
        return priority
    raise ValueError(f"Invalid priority: {priority}")
