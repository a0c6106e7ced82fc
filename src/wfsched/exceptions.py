from typing import List, Optional, Tuple


class WorkflowError(ValueError):
    """Base class for errors raised while building or scheduling a workflow."""


class UnknownJobError(WorkflowError):
    """Raised when a job name is not in the workflow graph."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Job {name} does not exist in the workflow graph.")
        self.name = name


class DuplicateJobError(WorkflowError):
    """Raised when a job is added twice under the same name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Job {name} already exists in the workflow graph.")
        self.name = name


class NegativeDurationError(WorkflowError):
    """Raised when an execution or communication time is negative."""


class InvalidMachineCountError(WorkflowError):
    """Raised when a scheduler is asked to use fewer than one machine."""


class CyclicGraphError(WorkflowError):
    """Raised when the workflow graph is not a DAG.

    Attributes:
        cycle: The edges (source, target) of one cycle in the graph, if one was found.
    """

    def __init__(self,
                 message: str,
                 cycle: Optional[List[Tuple[str, str]]] = None) -> None:
        super().__init__(message)
        self.cycle = cycle or []
