"""Build directed dependency graph from resource nodes."""

import networkx as nx
from typing import List, Dict, Set, Optional, Iterable
from .models import ResourceNode
from .implicit_edges import find_implicit_edges
from ..resolver.values import iter_references
from ..utils.errors import (
    DuplicateResourceError,
    CyclicDependencyError,
    UnresolvedReferenceError,
)
from ..utils.logging import get_logger

logger = get_logger("graph.dependency_graph")

WHITE, GRAY, BLACK = 0, 1, 2


class DependencyGraph:
    """Directed dependency graph: nodes=resources, edges=dependent -> dependency."""

    def __init__(self):
        self.graph = nx.DiGraph()
        self._node_map: Dict[str, ResourceNode] = {}

    def add_node(self, node: ResourceNode) -> None:
        """Add a node to the graph."""
        node_id = node.address
        if node_id in self._node_map:
            raise DuplicateResourceError(f"Resource declared more than once: {node_id}", address=node_id)
        self.graph.add_node(node_id, node=node)
        self._node_map[node_id] = node

    def build_from_nodes(self, nodes: List[ResourceNode], declared: Optional[Iterable[str]] = None) -> None:
        """
        Build the complete dependency graph.

        Args:
            nodes: Expanded resource nodes
            declared: type.name of every declaration, including ones expanded
                to zero nodes, so explicit depends_on on an empty collection
                is not an error

        Raises:
            DuplicateResourceError: If two nodes share an address
            UnresolvedReferenceError: If a reference targets an unknown node
            CyclicDependencyError: If the dependency relation has a cycle
        """
        for node in nodes:
            self.add_node(node)

        collections: Dict[str, List[str]] = {}
        for node in nodes:
            collections.setdefault(node.collection_address, []).append(node.address)
        declared = set(declared or ()) | set(collections)

        for node in nodes:
            for attr_name, value in node.attributes.items():
                for ref in iter_references(value):
                    if ref.address not in self._node_map:
                        raise UnresolvedReferenceError(
                            f"Reference to unknown resource '{ref.address}'",
                            address=node.address,
                            attribute=attr_name,
                        )
                    self._add_edge(node.address, ref.address)

            for target in sorted(node.explicit_depends_on):
                if target in self._node_map:
                    self._add_edge(node.address, target)
                elif target in declared:
                    for dep_id in collections.get(target, []):
                        self._add_edge(node.address, dep_id)
                else:
                    raise UnresolvedReferenceError(
                        f"depends_on references undeclared resource '{target}'",
                        address=node.address,
                        attribute="depends_on",
                    )

        self.detect_cycles()

        for edge in find_implicit_edges(self.graph):
            self.graph.add_edge(edge["source"], edge["target"], synthetic=True, reason=edge["reason"])
            logger.debug(f"Added implicit edge: {edge['source']} -> {edge['target']} ({edge['reason']})")

        for node_id, node in self._node_map.items():
            node.depends_on = set(self.graph.successors(node_id))

        logger.info(
            f"Built dependency graph with {self.graph.number_of_nodes()} nodes "
            f"and {self.graph.number_of_edges()} edges"
        )

    def _add_edge(self, source: str, target: str) -> None:
        if source == target:
            raise CyclicDependencyError([source, source])
        if not self.graph.has_edge(source, target):
            self.graph.add_edge(source, target, synthetic=False)
            logger.debug(f"Added dependency edge: {source} -> {target}")

    def _ordered(self, node_ids: Iterable[str]) -> List[str]:
        return sorted(node_ids, key=lambda n: self._node_map[n].sort_key)

    def detect_cycles(self) -> None:
        """
        Depth-first traversal with white/gray/black coloring.

        Raises:
            CyclicDependencyError: On a back-edge to a gray node, naming the full cycle
        """
        color = {node_id: WHITE for node_id in self.graph.nodes}
        for start in self._ordered(self.graph.nodes):
            if color[start] != WHITE:
                continue
            color[start] = GRAY
            path = [start]
            stack = [iter(self._ordered(self.graph.successors(start)))]
            while stack:
                nxt = next(stack[-1], None)
                if nxt is None:
                    color[path.pop()] = BLACK
                    stack.pop()
                    continue
                if color[nxt] == GRAY:
                    cycle = path[path.index(nxt):] + [nxt]
                    raise CyclicDependencyError(cycle)
                if color[nxt] == WHITE:
                    color[nxt] = GRAY
                    path.append(nxt)
                    stack.append(iter(self._ordered(self.graph.successors(nxt))))

    def topological_order(self) -> List[str]:
        """All node ids, every dependency before its dependents, ties by declaration order."""
        return list(nx.lexicographical_topological_sort(
            self.graph.reverse(copy=False),
            key=lambda n: self._node_map[n].sort_key,
        ))

    def get_downstream_resources(self, node_id: str) -> Set[str]:
        """Get all resources that depend on the given resource (downstream)."""
        if node_id not in self.graph:
            return set()
        return set(nx.ancestors(self.graph, node_id))

    def get_upstream_resources(self, node_id: str) -> Set[str]:
        """Get all resources that the given resource depends on (upstream)."""
        if node_id not in self.graph:
            return set()
        return set(nx.descendants(self.graph, node_id))

    def dependencies_of(self, node_id: str) -> Set[str]:
        """Direct dependencies."""
        return set(self.graph.successors(node_id)) if node_id in self.graph else set()

    def dependents_of(self, node_id: str) -> Set[str]:
        """Direct dependents."""
        return set(self.graph.predecessors(node_id)) if node_id in self.graph else set()

    def is_synthetic_edge(self, source: str, target: str) -> bool:
        return bool(self.graph.edges[source, target].get("synthetic"))

    def get_node(self, node_id: str) -> Optional[ResourceNode]:
        """Get resource node by id."""
        return self._node_map.get(node_id)

    def get_all_nodes(self) -> List[ResourceNode]:
        """Get all nodes in declaration order."""
        return [self._node_map[n] for n in self._ordered(self._node_map)]

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._node_map

    def __len__(self) -> int:
        return len(self._node_map)
