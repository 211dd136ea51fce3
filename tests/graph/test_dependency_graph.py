"""Tests for dependency graph."""

import pytest
from tierplan.graph.dependency_graph import DependencyGraph
from tierplan.graph.models import ResourceNode
from tierplan.resolver import Reference
from tierplan.utils.errors import (
    DuplicateResourceError,
    CyclicDependencyError,
    UnresolvedReferenceError,
)


def make_node(resource_type, name, order, index=None, refs=(), depends_on=(), **attributes):
    """Build a node whose attributes reference the given addresses' ids."""
    for i, address in enumerate(refs):
        attributes[f"ref_{i}"] = Reference(address, "id")
    return ResourceNode(
        type=resource_type,
        name=name,
        index=index,
        attributes=attributes,
        explicit_depends_on=set(depends_on),
        declaration_order=order,
    )


@pytest.fixture
def sample_nodes():
    """VPC, two subnets and an instance in the first subnet."""
    return [
        make_node("aws_vpc", "main", 0),
        make_node("aws_subnet", "public", 1, index=0, refs=["aws_vpc.main"]),
        make_node("aws_subnet", "public", 1, index=1, refs=["aws_vpc.main"]),
        make_node("aws_instance", "web", 2, refs=["aws_subnet.public[0]"]),
    ]


class TestDependencyGraph:
    """Test dependency graph construction."""

    def test_build_graph_from_nodes(self, sample_nodes):
        """Test building graph from nodes."""
        graph = DependencyGraph()
        graph.build_from_nodes(sample_nodes)

        assert graph.graph.number_of_nodes() == 4
        assert graph.graph.number_of_edges() == 3
        assert len(graph) == 4
        assert "aws_subnet.public[1]" in graph

    def test_depends_on_synced_to_nodes(self, sample_nodes):
        """Test each node's depends_on is the set of its outgoing edges."""
        graph = DependencyGraph()
        graph.build_from_nodes(sample_nodes)

        assert graph.get_node("aws_instance.web").depends_on == {"aws_subnet.public[0]"}
        assert graph.get_node("aws_vpc.main").depends_on == set()

    def test_get_downstream_resources(self, sample_nodes):
        """Test getting downstream resources."""
        graph = DependencyGraph()
        graph.build_from_nodes(sample_nodes)

        downstream = graph.get_downstream_resources("aws_vpc.main")
        assert downstream == {"aws_subnet.public[0]", "aws_subnet.public[1]", "aws_instance.web"}

    def test_get_upstream_resources(self, sample_nodes):
        """Test getting upstream resources."""
        graph = DependencyGraph()
        graph.build_from_nodes(sample_nodes)

        upstream = graph.get_upstream_resources("aws_instance.web")
        assert upstream == {"aws_subnet.public[0]", "aws_vpc.main"}
        assert graph.get_upstream_resources("missing") == set()

    def test_topological_order_is_total_and_stable(self, sample_nodes):
        """Test every dependency precedes its dependents; ties follow declaration order."""
        graph = DependencyGraph()
        graph.build_from_nodes(list(reversed(sample_nodes)))

        order = graph.topological_order()
        assert order == ["aws_vpc.main", "aws_subnet.public[0]", "aws_subnet.public[1]", "aws_instance.web"]
        position = {address: i for i, address in enumerate(order)}
        for source, target in graph.graph.edges:
            assert position[target] < position[source]

    def test_get_all_nodes_in_declaration_order(self, sample_nodes):
        """Test node listing order."""
        graph = DependencyGraph()
        graph.build_from_nodes(list(reversed(sample_nodes)))
        assert [n.address for n in graph.get_all_nodes()] == [n.address for n in sample_nodes]


class TestExplicitDependencies:
    """Test depends_on edges."""

    def test_depends_on_collection_targets_every_instance(self, sample_nodes):
        """Test depends_on a counted collection adds an edge per instance."""
        nodes = sample_nodes + [make_node("aws_eip", "web", 3, depends_on=["aws_subnet.public"])]
        graph = DependencyGraph()
        graph.build_from_nodes(nodes)
        assert graph.dependencies_of("aws_eip.web") == {"aws_subnet.public[0]", "aws_subnet.public[1]"}

    def test_depends_on_empty_collection(self):
        """Test depends_on a declared zero-count collection is allowed."""
        graph = DependencyGraph()
        graph.build_from_nodes(
            [make_node("aws_eip", "web", 1, depends_on=["aws_instance.web"])],
            declared=["aws_instance.web", "aws_eip.web"],
        )
        assert graph.dependencies_of("aws_eip.web") == set()

    def test_depends_on_undeclared(self):
        """Test depends_on an unknown resource."""
        graph = DependencyGraph()
        with pytest.raises(UnresolvedReferenceError, match="undeclared resource 'aws_vpc.nope'"):
            graph.build_from_nodes([make_node("aws_eip", "web", 0, depends_on=["aws_vpc.nope"])])


class TestGraphErrors:
    """Test validation failures."""

    def test_duplicate_address(self):
        """Test two nodes with the same identity."""
        graph = DependencyGraph()
        with pytest.raises(DuplicateResourceError, match="aws_vpc.main"):
            graph.build_from_nodes([make_node("aws_vpc", "main", 0), make_node("aws_vpc", "main", 1)])

    def test_reference_to_unknown_node(self):
        """Test a reference to a node that was not expanded."""
        graph = DependencyGraph()
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            graph.build_from_nodes([make_node("aws_subnet", "a", 0, refs=["aws_vpc.main"])])
        assert exc_info.value.address == "aws_subnet.a"
        assert exc_info.value.attribute == "ref_0"

    def test_cycle_names_full_path(self):
        """Test a cycle error lists every node on the cycle."""
        nodes = [
            make_node("aws_security_group", "a", 0, refs=["aws_security_group.b"]),
            make_node("aws_security_group", "b", 1, refs=["aws_security_group.c"]),
            make_node("aws_security_group", "c", 2, refs=["aws_security_group.a"]),
        ]
        graph = DependencyGraph()
        with pytest.raises(CyclicDependencyError) as exc_info:
            graph.build_from_nodes(nodes)
        assert exc_info.value.cycle == [
            "aws_security_group.a",
            "aws_security_group.b",
            "aws_security_group.c",
            "aws_security_group.a",
        ]
        assert "aws_security_group.a -> aws_security_group.b" in str(exc_info.value)

    def test_self_reference_is_a_cycle(self):
        """Test a node referencing itself."""
        graph = DependencyGraph()
        with pytest.raises(CyclicDependencyError):
            graph.build_from_nodes([make_node("aws_vpc", "main", 0, refs=["aws_vpc.main"])])
