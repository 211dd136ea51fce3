"""Tests for the simulated provider and the provider registry."""

import pytest
from tierplan.providers.base import ProviderRegistry, TypeSchema
from tierplan.providers.simulated import SimulatedProvider, simulated_registry
from tierplan.state.models import StateRecord
from tierplan.utils.errors import (
    PermanentProviderError,
    ResourceNotFoundError,
    TransientProviderError,
    UnknownResourceTypeError,
)


@pytest.fixture
def provider():
    return SimulatedProvider()


class TestSimulatedProvider:
    """Test SimulatedProvider CRUD behavior."""

    def test_create_assigns_prefixed_ids(self, provider):
        """Test ids are unique and carry the type prefix."""
        vpc_id, outputs = provider.create("aws_vpc", {"cidr_block": "10.0.0.0/16"})
        subnet_id, _ = provider.create("aws_subnet", {"vpc_id": vpc_id})

        assert vpc_id.startswith("vpc-")
        assert subnet_id.startswith("subnet-")
        assert vpc_id != subnet_id
        assert outputs["arn"].endswith(f"aws_vpc/{vpc_id}")
        assert "main_route_table_id" in outputs

    def test_read_returns_copy(self, provider):
        """Test read does not expose internal state."""
        resource_id, _ = provider.create("aws_vpc", {"tags": {"Name": "main"}})
        attrs = provider.read("aws_vpc", resource_id)
        attrs["tags"]["Name"] = "changed"
        assert provider.read("aws_vpc", resource_id)["tags"]["Name"] == "main"

    def test_read_missing(self, provider):
        """Test read of an unknown id."""
        with pytest.raises(ResourceNotFoundError):
            provider.read("aws_vpc", "vpc-missing")

    def test_read_wrong_type(self, provider):
        """Test an id of another type is not found."""
        resource_id, _ = provider.create("aws_vpc", {})
        with pytest.raises(ResourceNotFoundError):
            provider.read("aws_subnet", resource_id)

    def test_update_and_delete(self, provider):
        """Test update replaces attributes and delete removes the resource."""
        resource_id, _ = provider.create("aws_security_group", {"name": "web"})
        provider.update("aws_security_group", resource_id, {"name": "web", "ingress": []})
        assert provider.read("aws_security_group", resource_id)["ingress"] == []

        provider.delete("aws_security_group", resource_id)
        assert resource_id not in provider.resources
        assert [c[0] for c in provider.calls] == ["create", "update", "read", "delete"]

    def test_update_missing(self, provider):
        """Test update of a resource that does not exist."""
        with pytest.raises(PermanentProviderError):
            provider.update("aws_vpc", "vpc-missing", {})

    def test_seed(self, provider):
        """Test seeding from state, deposed ids included."""
        record = StateRecord(
            address="aws_vpc.main", type="aws_vpc", name="main", id="vpc-00000010",
            attributes={"cidr_block": "10.0.0.0/16"}, deposed=["vpc-00000009"],
        )
        provider.seed([record])
        assert provider.read("aws_vpc", "vpc-00000010") == {"cidr_block": "10.0.0.0/16"}
        assert "vpc-00000009" in provider.resources

        new_id, _ = provider.create("aws_vpc", {})
        assert new_id not in ("vpc-00000009", "vpc-00000010")


class TestFailureInjection:
    """Test inject_failure."""

    def test_times_limits_failures(self, provider):
        """Test a transient failure recovers after the given number of calls."""
        provider.inject_failure("create", "aws_instance", TransientProviderError("throttled"), times=2)

        for _ in range(2):
            with pytest.raises(TransientProviderError):
                provider.create("aws_instance", {})
        resource_id, _ = provider.create("aws_instance", {})
        assert resource_id.startswith("i-")

    def test_match_selects_resources(self, provider):
        """Test only resources whose attributes match fail."""
        provider.inject_failure(
            "create", "aws_subnet", PermanentProviderError("bad cidr"), match={"cidr_block": "10.0.9.0/24"}
        )
        provider.create("aws_subnet", {"cidr_block": "10.0.1.0/24"})
        with pytest.raises(PermanentProviderError, match="bad cidr"):
            provider.create("aws_subnet", {"cidr_block": "10.0.9.0/24"})

    def test_other_operations_unaffected(self, provider):
        """Test injections are scoped to one operation."""
        provider.inject_failure("delete", "aws_vpc", PermanentProviderError("in use"))
        resource_id, _ = provider.create("aws_vpc", {})
        with pytest.raises(PermanentProviderError):
            provider.delete("aws_vpc", resource_id)
        assert resource_id in provider.resources


class TestProviderRegistry:
    """Test ProviderRegistry capability table."""

    def test_catalog_schemas(self):
        """Test catalog entries become type schemas."""
        registry = simulated_registry()
        assert "cidr_block" in registry.schema_for("aws_subnet").immutable_attributes
        assert "instance" in registry.schema_for("aws_eip").exclusive_attributes
        assert "subnet_ids" in registry.schema_for("aws_db_subnet_group").set_attributes
        assert "aws_vpc" in registry

    def test_unknown_type(self):
        """Test lookups of unregistered types."""
        registry = ProviderRegistry()
        registry.register("aws_vpc", SimulatedProvider(), TypeSchema(id_prefix="vpc"))
        with pytest.raises(UnknownResourceTypeError, match="aws_lambda_function"):
            registry.validate_types(["aws_vpc", "aws_lambda_function"])

    def test_unknown_types_reported_in_sorted_order(self):
        """Test the reported type does not depend on set iteration order."""
        registry = simulated_registry()
        with pytest.raises(UnknownResourceTypeError, match="aws_apigateway"):
            registry.validate_types({"aws_vpc", "aws_widget", "aws_lambda_function", "aws_apigateway"})

    def test_default_schema(self):
        """Test register without a schema."""
        registry = ProviderRegistry()
        registry.register("custom_thing", SimulatedProvider())
        assert registry.schema_for("custom_thing") == TypeSchema()
