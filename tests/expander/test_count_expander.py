"""Tests for count expansion."""

import pytest
from tierplan.expander import CountExpander, expand
from tierplan.ingest.declaration_loader import parse_declarations
from tierplan.ingest.models import ResourceDeclaration
from tierplan.resolver import Reference
from tierplan.utils.errors import ValidationError, ResolutionError, InsufficientZonesError

ZONES = {"aws_availability_zones": {"available": {"names": ["us-east-1a", "us-east-1b", "us-east-1c"]}}}


def subnet_declarations(public_count, private_count=1):
    """Declarations for counted public/private subnets spread over zones."""
    return parse_declarations({
        "data": ZONES,
        "resources": {
            "aws_vpc": {"main": {"cidr_block": "10.0.0.0/16"}},
            "aws_subnet": {
                "public": {
                    "count": public_count,
                    "vpc_id": "${aws_vpc.main.id}",
                    "cidr_block": "10.0.1${count.index}.0/24",
                    "availability_zone": "${data.aws_availability_zones.available.names[count.index]}",
                },
                "private": {
                    "count": private_count,
                    "vpc_id": "${aws_vpc.main.id}",
                    "cidr_block": "10.0.10${count.index}.0/24",
                    "availability_zone": "${data.aws_availability_zones.available.names[count.index]}",
                },
            },
        },
    })


class TestExpand:
    """Test the single-template expansion function."""

    def test_count_none_yields_single_unindexed_node(self):
        """Test count absent produces one node without index."""
        template = ResourceDeclaration(type="aws_vpc", name="main", attributes={"cidr_block": "10.0.0.0/16"})
        nodes = expand(template, None, lambda index: {"cidr_block": "10.0.0.0/16"})
        assert len(nodes) == 1
        assert nodes[0].index is None
        assert nodes[0].address == "aws_vpc.main"

    def test_count_zero_yields_nothing(self):
        """Test count = 0 produces no nodes."""
        template = ResourceDeclaration(type="aws_subnet", name="public")
        assert expand(template, 0, lambda index: {}) == []

    def test_indexes_are_dense(self):
        """Test count = n produces indexes 0..n-1 with per-index attributes."""
        template = ResourceDeclaration(type="aws_subnet", name="public", order=3)
        nodes = expand(template, 3, lambda index: {"n": index})
        assert [n.index for n in nodes] == [0, 1, 2]
        assert [n.attributes["n"] for n in nodes] == [0, 1, 2]
        assert all(n.declaration_order == 3 for n in nodes)

    def test_negative_count_rejected(self):
        """Test negative count."""
        template = ResourceDeclaration(type="aws_subnet", name="public")
        with pytest.raises(ValidationError, match="count must be >= 0"):
            expand(template, -1, lambda index: {})

    def test_missing_override_rejected(self):
        """Test an override that supplies nothing."""
        template = ResourceDeclaration(type="aws_subnet", name="public")
        with pytest.raises(ResolutionError, match="No attribute values"):
            expand(template, 1, lambda index: None)


class TestCountExpander:
    """Test expansion of whole declaration sets."""

    def test_public_and_private_subnets(self):
        """Test 2 public + 1 private subnet land in distinct zones per tier."""
        expander = CountExpander(subnet_declarations(2, 1), {})
        nodes = expander.expand_all()
        addresses = [n.address for n in nodes]
        assert addresses == [
            "aws_vpc.main",
            "aws_subnet.public[0]",
            "aws_subnet.public[1]",
            "aws_subnet.private[0]",
        ]
        public_zones = [n.attributes["availability_zone"] for n in nodes if n.name == "public"]
        assert public_zones == ["us-east-1a", "us-east-1b"]
        assert len(set(public_zones)) == len(public_zones)
        assert nodes[1].attributes["vpc_id"] == Reference("aws_vpc.main", "id")

    def test_identities_are_unique(self):
        """Test (type, name, index) is unique across the expansion."""
        nodes = CountExpander(subnet_declarations(3, 3), {}).expand_all()
        identities = [(n.type, n.name, n.index) for n in nodes]
        assert len(identities) == len(set(identities))

    def test_count_beyond_zones(self):
        """Test count larger than the zone list fails instead of wrapping."""
        with pytest.raises(InsufficientZonesError) as exc_info:
            CountExpander(subnet_declarations(4, 1), {}).expand_all()
        assert exc_info.value.address == "aws_subnet.public"

    def test_count_from_variable(self):
        """Test count given as an expression over a map variable."""
        declarations = parse_declarations({
            "variables": {"subnet_count": {"type": "map"}},
            "data": ZONES,
            "resources": {
                "aws_subnet": {
                    "public": {
                        "count": "${var.subnet_count.public}",
                        "availability_zone": "${data.aws_availability_zones.available.names[count.index]}",
                    },
                },
            },
        })
        expander = CountExpander(declarations, {"subnet_count": {"public": 2}})
        assert expander.counts[("aws_subnet", "public")] == 2
        assert len(expander.expand_all()) == 2

    def test_count_must_be_integer(self):
        """Test a non-integer count."""
        declarations = parse_declarations({
            "variables": {"n": {"type": "string"}},
            "resources": {"aws_subnet": {"public": {"count": "${var.n}"}}},
        })
        with pytest.raises(ValidationError, match="count must resolve to an integer"):
            CountExpander(declarations, {"n": "two"})

    def test_count_referencing_resource_output_rejected(self):
        """Test count cannot depend on another node's outputs."""
        declarations = parse_declarations({
            "resources": {
                "aws_vpc": {"main": {}},
                "aws_subnet": {"public": {"count": "${aws_vpc.main.id}"}},
            },
        })
        with pytest.raises(ResolutionError):
            CountExpander(declarations, {})

    def test_zone_output_of_another_resource_not_capped(self):
        """Test a count above the zone list is fine when zones come from a resource output."""
        declarations = parse_declarations({
            "data": {"aws_availability_zones": {"available": {"names": ["us-east-1a", "us-east-1b"]}}},
            "resources": {
                "aws_subnet": {"s": {"availability_zone": "${data.aws_availability_zones.available.names[0]}"}},
                "aws_instance": {"web": {
                    "count": 3,
                    "subnet_id": "${aws_subnet.s.id}",
                    "availability_zone": "${aws_subnet.s.availability_zone}",
                }},
            },
        })
        nodes = CountExpander(declarations, {}).expand_all()
        assert [n.address for n in nodes if n.type == "aws_instance"] == [
            "aws_instance.web[0]", "aws_instance.web[1]", "aws_instance.web[2]",
        ]
