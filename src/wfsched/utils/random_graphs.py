from typing import Optional, Tuple

import networkx as nx
import numpy as np

from wfsched import WorkflowGraph

DEFAULT_WEIGHT_RANGE = (1, 10)


def add_random_weights(
    graph: nx.DiGraph,
    weight_range: Tuple[int, int] = DEFAULT_WEIGHT_RANGE,
    node_weight_range: Optional[Tuple[int, int]] = None,
    edge_weight_range: Optional[Tuple[int, int]] = None,
) -> nx.DiGraph:
    """Adds random integer weights to the graph.

    Args:
        graph: The graph to add weights to.
        weight_range: Inclusive (low, high) range for both nodes and edges (default).
        node_weight_range: Range for execution times (overrides weight_range).
        edge_weight_range: Range for communication times (overrides weight_range).

    Returns:
        The graph with weights added.
    """
    node_low, node_high = node_weight_range or weight_range
    edge_low, edge_high = edge_weight_range or weight_range
    for node in graph.nodes:
        graph.nodes[node]["weight"] = int(np.random.randint(node_low, node_high + 1))
    for edge in graph.edges:
        graph.edges[edge]["weight"] = int(np.random.randint(edge_low, edge_high + 1))
    return graph


def get_diamond_dag(weight_range: Tuple[int, int] = DEFAULT_WEIGHT_RANGE) -> WorkflowGraph:
    """Returns a diamond DAG."""
    dag = nx.DiGraph()
    dag.add_nodes_from(["A", "B", "C", "D"])
    dag.add_edges_from([("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")])
    return WorkflowGraph.from_nx(add_random_weights(dag, weight_range))


def get_chain_dag(num_nodes: int = 4,
                  weight_range: Tuple[int, int] = DEFAULT_WEIGHT_RANGE) -> WorkflowGraph:
    """Returns a chain DAG."""
    dag = nx.DiGraph()
    nodes = [chr(ord("A") + i) for i in range(num_nodes)]
    dag.add_nodes_from(nodes)
    dag.add_edges_from([(nodes[i], nodes[i + 1]) for i in range(num_nodes - 1)])
    return WorkflowGraph.from_nx(add_random_weights(dag, weight_range))


def get_random_dag(num_nodes: int = 10,
                   edge_probability: float = 0.3,
                   weight_range: Tuple[int, int] = DEFAULT_WEIGHT_RANGE) -> WorkflowGraph:
    """Returns a random DAG.

    Edges of a random directed graph are kept only from lower to higher
    node ids, which guarantees the result is acyclic.

    Args:
        num_nodes (int, optional): The number of jobs. Defaults to 10.
        edge_probability (float, optional): The probability of each forward edge. Defaults to 0.3.
        weight_range (Tuple[int, int], optional): Inclusive range of the weights. Defaults to (1, 10).

    Returns:
        WorkflowGraph: The random DAG.
    """
    seed = int(np.random.randint(0, 2**31 - 1))
    graph = nx.gnp_random_graph(num_nodes, edge_probability, seed=seed, directed=True)
    dag = nx.DiGraph()
    dag.add_nodes_from(graph.nodes)
    dag.add_edges_from((u, v) for u, v in graph.edges if u < v)
    return WorkflowGraph.from_nx(add_random_weights(dag, weight_range))
