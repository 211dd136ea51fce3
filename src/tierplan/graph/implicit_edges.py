"""Declarative table of ordering constraints not expressed as attribute references."""

from typing import Dict, List, Set
import networkx as nx
from ..utils.logging import get_logger

logger = get_logger("graph.implicit_edges")

# A node of type `dependent` must wait for every node of type `dependency`
# when both reach the same node of type `via` through their references.
IMPLICIT_EDGE_RULES: List[Dict[str, str]] = [
    {
        "dependent": "aws_route_table_association",
        "dependency": "aws_route",
        "via": "aws_route_table",
        "reason": "association waits for the route table's route entries",
    },
    {
        "dependent": "aws_eip",
        "dependency": "aws_internet_gateway",
        "via": "aws_vpc",
        "reason": "elastic IP needs the VPC's internet gateway attached",
    },
    {
        "dependent": "aws_nat_gateway",
        "dependency": "aws_internet_gateway",
        "via": "aws_vpc",
        "reason": "NAT gateway needs the VPC's internet gateway attached",
    },
]


def _anchors(graph: nx.DiGraph, node_id: str, via_type: str) -> Set[str]:
    """Nodes of via_type reachable from node_id through reference edges (itself included)."""
    reachable = nx.descendants(graph, node_id) | {node_id}
    return {n for n in reachable if graph.nodes[n]["node"].type == via_type}


def find_implicit_edges(graph: nx.DiGraph, rules: List[Dict[str, str]] = None) -> List[Dict[str, str]]:
    """
    Compute synthetic edges for a graph built from direct references.

    Edges that would close a cycle are skipped.

    Args:
        graph: Graph with a "node" attribute (ResourceNode) per node and
            edges pointing from dependent to dependency
        rules: Rule table (defaults to IMPLICIT_EDGE_RULES)

    Returns:
        List of {"source", "target", "reason"} edges, in a deterministic order
    """
    rules = IMPLICIT_EDGE_RULES if rules is None else rules
    ordered = sorted(graph.nodes, key=lambda n: graph.nodes[n]["node"].sort_key)
    working = graph.copy()
    edges = []

    for rule in rules:
        dependents = [n for n in ordered if graph.nodes[n]["node"].type == rule["dependent"]]
        dependencies = [n for n in ordered if graph.nodes[n]["node"].type == rule["dependency"]]
        if not dependents or not dependencies:
            continue

        dependency_anchors = {d: _anchors(graph, d, rule["via"]) for d in dependencies}
        for source in dependents:
            source_anchors = _anchors(graph, source, rule["via"])
            if not source_anchors:
                continue
            for target in dependencies:
                if source == target or working.has_edge(source, target):
                    continue
                if not source_anchors & dependency_anchors[target]:
                    continue
                if nx.has_path(working, target, source):
                    logger.debug(f"Skipping implicit edge {source} -> {target}: would close a cycle")
                    continue
                working.add_edge(source, target)
                edges.append({"source": source, "target": target, "reason": rule["reason"]})

    return edges
