from collections import deque
from typing import Dict, Iterable, List, Tuple, Union

import networkx as nx
from pydantic import BaseModel, Field

from wfsched.exceptions import (
    CyclicGraphError,
    DuplicateJobError,
    InvalidMachineCountError,
    NegativeDurationError,
    UnknownJobError,
    WorkflowError,
)


class Job(BaseModel):
    """A job in the workflow."""

    model_config = {"frozen": True}

    name: str = Field(..., description="The name of the job.")
    execution_time: int = Field(
        ..., ge=0, description="The time the job takes to execute on any machine."
    )

    def __str__(self) -> str:
        return f"Job(name={self.name}, execution_time={self.execution_time})"


class Communication(BaseModel):
    """A data transfer from one job to another.

    The transfer time is only paid when the two jobs run on different machines.
    """

    model_config = {"frozen": True}

    source: str = Field(..., description="The job producing the data.")
    target: str = Field(..., description="The job consuming the data.")
    comm_time: int = Field(
        ..., ge=0, description="The transfer time between different machines."
    )


JobLike = Union[str, Job]


class WorkflowGraph:
    """A directed acyclic graph of jobs and the communications between them.

    Jobs and communications are stored in insertion-ordered arenas and
    referenced internally by their integer position. Each job keeps the
    handles of its incoming and outgoing communications so that structural
    queries cost O(degree).
    """

    def __init__(self) -> None:
        self._jobs: List[Job] = []
        self._handles: Dict[str, int] = {}
        self._communications: List[Communication] = []
        self._in: List[List[int]] = []
        self._out: List[List[int]] = []

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job: object) -> bool:
        name = job.name if isinstance(job, Job) else job
        return name in self._handles

    @property
    def jobs(self) -> List[Job]:
        """The jobs of the workflow in insertion order."""
        return list(self._jobs)

    @property
    def communications(self) -> List[Communication]:
        """The communications of the workflow in insertion order."""
        return list(self._communications)

    def handle(self, job: JobLike) -> int:
        """Get the integer handle of a job.

        Handles are assigned in insertion order, starting at 0.

        Args:
            job (str | Job): The job or the name of the job.

        Returns:
            int: The handle of the job.

        Raises:
            UnknownJobError: If the job does not exist.
        """
        name = job.name if isinstance(job, Job) else job
        try:
            return self._handles[name]
        except KeyError:
            raise UnknownJobError(name) from None

    def get_job(self, name: JobLike) -> Job:
        """Get a job by name.

        Args:
            name (str | Job): The job or the name of the job.

        Returns:
            Job: The job with the given name.

        Raises:
            UnknownJobError: If the job does not exist.
        """
        return self._jobs[self.handle(name)]

    def add_job(self, name: str, execution_time: int) -> Job:
        """Add a new job to the workflow.

        Jobs are never overwritten: adding a name twice is rejected so that
        the edges of the earlier job are not silently lost.

        Args:
            name (str): The name of the job.
            execution_time (int): The time the job takes to execute.

        Returns:
            Job: The new job.

        Raises:
            DuplicateJobError: If a job with the same name already exists.
            NegativeDurationError: If the execution time is negative.
        """
        if name in self._handles:
            raise DuplicateJobError(name)
        if execution_time < 0:
            raise NegativeDurationError(
                f"Job {name} has negative execution time {execution_time}."
            )
        job = Job(name=name, execution_time=execution_time)
        self._handles[name] = len(self._jobs)
        self._jobs.append(job)
        self._in.append([])
        self._out.append([])
        return job

    def add_communication(self, source: JobLike, target: JobLike, comm_time: int) -> Communication:
        """Add a communication link between two existing jobs.

        Args:
            source (str | Job): The job producing the data.
            target (str | Job): The job consuming the data.
            comm_time (int): The transfer time if the jobs run on different machines.

        Returns:
            Communication: The new communication.

        Raises:
            UnknownJobError: If either job does not exist.
            NegativeDurationError: If the communication time is negative.
        """
        src, dst = self.handle(source), self.handle(target)
        if comm_time < 0:
            raise NegativeDurationError(
                f"Communication from {self._jobs[src].name} to {self._jobs[dst].name} "
                f"has negative communication time {comm_time}."
            )
        communication = Communication(
            source=self._jobs[src].name,
            target=self._jobs[dst].name,
            comm_time=comm_time,
        )
        edge = len(self._communications)
        self._communications.append(communication)
        self._out[src].append(edge)
        self._in[dst].append(edge)
        return communication

    def in_edges(self, job: JobLike) -> List[Communication]:
        """Get the incoming communications of a job.

        Args:
            job (str | Job): The job or the name of the job.
        Returns:
            List[Communication]: The incoming communications in insertion order.
        """
        return [self._communications[edge] for edge in self._in[self.handle(job)]]

    def out_edges(self, job: JobLike) -> List[Communication]:
        """Get the outgoing communications of a job.

        Args:
            job (str | Job): The job or the name of the job.
        Returns:
            List[Communication]: The outgoing communications in insertion order.
        """
        return [self._communications[edge] for edge in self._out[self.handle(job)]]

    def predecessors(self, job: JobLike) -> List[Job]:
        """Get the jobs that send data to a job, in edge insertion order."""
        return [self.get_job(comm.source) for comm in self.in_edges(job)]

    def successors(self, job: JobLike) -> List[Job]:
        """Get the jobs that receive data from a job, in edge insertion order."""
        return [self.get_job(comm.target) for comm in self.out_edges(job)]

    def in_degree(self, job: JobLike) -> int:
        return len(self._in[self.handle(job)])

    def out_degree(self, job: JobLike) -> int:
        return len(self._out[self.handle(job)])

    def in_degrees(self) -> Dict[str, int]:
        """Count the incoming communications of every job.

        The counts are computed from the edges on every call.

        Returns:
            Dict[str, int]: The in-degree of each job, keyed by name.
        """
        degrees = {job.name: 0 for job in self._jobs}
        for comm in self._communications:
            degrees[comm.target] += 1
        return degrees

    def topological_order(self) -> List[Job]:
        """Get a topological order of the jobs.

        Ready jobs are visited first-in first-out, starting from the
        source jobs in insertion order.

        Returns:
            List[Job]: The jobs in topological order.

        Raises:
            CyclicGraphError: If the graph has a cycle.
        """
        degrees = [len(edges) for edges in self._in]
        queue = deque(handle for handle, degree in enumerate(degrees) if degree == 0)
        order: List[Job] = []
        while queue:
            handle = queue.popleft()
            order.append(self._jobs[handle])
            for edge in self._out[handle]:
                target = self._handles[self._communications[edge].target]
                degrees[target] -= 1
                if degrees[target] == 0:
                    queue.append(target)
        if len(order) < len(self._jobs):
            raise self._cycle_error(len(order))
        return order

    def _cycle_error(self, num_ordered: int) -> CyclicGraphError:
        """Build the error reported when only part of the graph could be ordered.

        Args:
            num_ordered (int): The number of jobs that were ordered.

        Returns:
            CyclicGraphError: The error, including one cycle of the graph.
        """
        try:
            cycle = [(u, v) for u, v in nx.find_cycle(self.graph)]
        except nx.NetworkXNoCycle:
            cycle = []
        path = " -> ".join([u for u, _ in cycle] + [cycle[0][0]]) if cycle else "unknown"
        return CyclicGraphError(
            f"Workflow graph is not acyclic: only {num_ordered} of {len(self._jobs)} "
            f"jobs could be ordered (cycle: {path}).",
            cycle=cycle,
        )

    def max_makespan_weight(self, job: JobLike) -> int:
        """Get the local urgency of a job.

        This is the execution time of the job plus the largest communication
        time among its outgoing communications (0 if it has none).

        Args:
            job (str | Job): The job or the name of the job.

        Returns:
            int: The weight of the job.
        """
        handle = self.handle(job)
        max_comm_time = max(
            (self._communications[edge].comm_time for edge in self._out[handle]),
            default=0,
        )
        return self._jobs[handle].execution_time + max_comm_time

    def critical_weights(self) -> Dict[str, int]:
        """Get the length of the longest weighted path from every job to a sink.

        The weight of a job is its execution time plus the largest
        ``comm_time + weight(successor)`` over its outgoing communications.
        The table is filled in reverse topological order so every successor
        is known before its predecessors, in O(V + E).

        Returns:
            Dict[str, int]: The critical weight of each job, keyed by name.

        Raises:
            CyclicGraphError: If the graph has a cycle.
        """
        weights: Dict[str, int] = {}
        for job in reversed(self.topological_order()):
            handle = self._handles[job.name]
            weights[job.name] = job.execution_time + max(
                (
                    self._communications[edge].comm_time
                    + weights[self._communications[edge].target]
                    for edge in self._out[handle]
                ),
                default=0,
            )
        return weights

    def critical_weight(self, job: JobLike) -> int:
        """Get the longest weighted path from a job to any sink.

        Scheduling runs should call :meth:`critical_weights` once instead of
        calling this for every job.

        Args:
            job (str | Job): The job or the name of the job.

        Returns:
            int: The critical weight of the job.
        """
        return self.critical_weights()[self.get_job(job).name]

    @property
    def graph(self) -> nx.DiGraph:
        """Convert the workflow to a NetworkX directed graph.

        Parallel communications between the same jobs are merged, keeping
        the largest communication time.

        Returns:
            nx.DiGraph: The graph, with ``weight`` attributes on nodes and edges.
        """
        G = nx.DiGraph()
        for job in self._jobs:
            G.add_node(job.name, weight=job.execution_time)
        for comm in self._communications:
            if G.has_edge(comm.source, comm.target):
                weight = max(G.edges[comm.source, comm.target]["weight"], comm.comm_time)
            else:
                weight = comm.comm_time
            G.add_edge(comm.source, comm.target, weight=weight)
        return G

    @classmethod
    def from_nx(cls,
                G: nx.DiGraph,
                node_weight_attr: str = "weight",
                edge_weight_attr: str = "weight") -> "WorkflowGraph":
        """Create a WorkflowGraph from a NetworkX directed graph.

        Args:
            G (nx.DiGraph): The NetworkX directed graph.
            node_weight_attr (str, optional): The attribute holding execution times. Defaults to "weight".
            edge_weight_attr (str, optional): The attribute holding communication times. Defaults to "weight".

        Returns:
            WorkflowGraph: The workflow graph.
        """
        workflow = cls()
        for node in G.nodes:
            workflow.add_job(str(node), G.nodes[node][node_weight_attr])
        for u, v in G.edges:
            workflow.add_communication(str(u), str(v), G.edges[u, v][edge_weight_attr])
        return workflow

    @classmethod
    def create(cls,
               jobs: Iterable[Union[Job, Tuple[str, int]]],
               communications: Iterable[Union[Communication, Tuple[str, str, int]]]) -> "WorkflowGraph":
        """Create a new workflow from jobs and communications.

        Args:
            jobs: An iterable of Job objects or tuples (name, execution_time).
            communications: An iterable of Communication objects or tuples (source, target, comm_time).

        Returns:
            WorkflowGraph: A new workflow graph.
        """
        workflow = cls()
        for job in jobs:
            if isinstance(job, Job):
                workflow.add_job(job.name, job.execution_time)
            elif isinstance(job, tuple) and len(job) == 2:
                workflow.add_job(*job)
            else:
                raise ValueError(f"Invalid job: {job}")
        for comm in communications:
            if isinstance(comm, Communication):
                workflow.add_communication(comm.source, comm.target, comm.comm_time)
            elif isinstance(comm, tuple) and len(comm) == 3:
                workflow.add_communication(*comm)
            else:
                raise ValueError(f"Invalid communication: {comm}")
        return workflow

    def __str__(self) -> str:
        result = ""
        for handle, job in enumerate(self._jobs):
            result += f"Job: {job.name} (Execution Time: {job.execution_time}):\n"
            for edge in self._out[handle]:
                comm = self._communications[edge]
                result += f"\t-> {comm.target} (Communication Time: {comm.comm_time})\n"
            result += "\n"
        return result


from wfsched.priorities import Priority  # noqa: E402
from wfsched.scheduler import (  # noqa: E402
    Placement,
    Schedule,
    ScheduledJob,
    WorkflowScheduler,
)

__all__ = [
    "Communication",
    "CyclicGraphError",
    "DuplicateJobError",
    "InvalidMachineCountError",
    "Job",
    "NegativeDurationError",
    "Placement",
    "Priority",
    "Schedule",
    "ScheduledJob",
    "UnknownJobError",
    "WorkflowError",
    "WorkflowGraph",
    "WorkflowScheduler",
]
