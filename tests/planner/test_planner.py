"""Tests for the planner."""

import pytest
from tierplan import build_graph
from tierplan.config.models import RetryConfig
from tierplan.executor import Executor
from tierplan.graph.dependency_graph import DependencyGraph
from tierplan.ingest.declaration_loader import parse_declarations
from tierplan.ingest.variables import bind_variables
from tierplan.planner import ActionKind, ActionStep, Planner
from tierplan.providers.simulated import SimulatedProvider, simulated_registry
from tierplan.state.models import StateRecord
from tierplan.state.store import InMemoryStateStore
from tierplan.utils.errors import UnknownResourceTypeError

FAST_RETRY = RetryConfig(max_attempts=3, base_delay=0, max_delay=0, jitter=0)


def chain_resources(subnet_cidr="10.0.1.0/24"):
    """A -> B -> C: instance in subnet in VPC."""
    return {
        "aws_vpc": {"main": {"cidr_block": "10.0.0.0/16"}},
        "aws_subnet": {"a": {"vpc_id": "${aws_vpc.main.id}", "cidr_block": subnet_cidr}},
        "aws_instance": {"web": {"subnet_id": "${aws_subnet.a.id}", "ami": "ami-1", "instance_type": "t2.micro"}},
    }


def graph_for(resources, variables=None, values=None):
    declarations = parse_declarations({"variables": variables or {}, "resources": resources})
    bindings = bind_variables(declarations, file_values=values or {}, environ={})
    return build_graph(declarations, bindings)


@pytest.fixture
def provider():
    return SimulatedProvider()


@pytest.fixture
def registry(provider):
    return simulated_registry(provider)


@pytest.fixture
def store():
    return InMemoryStateStore()


def apply(graph, store, registry, destroy=False):
    plan = Planner(registry).plan(graph, store.load(), destroy=destroy)
    result = Executor(registry, store, parallelism=2, retry=FAST_RETRY, sleep=lambda s: None).run(plan, graph)
    assert result.succeeded, result.results
    return plan


def keys(plan):
    return [action.key for action in plan.actions]


class TestCreatePlans:
    """Test planning against empty state."""

    def test_everything_created_in_dependency_order(self, registry):
        """Test an empty state yields one create per node, dependencies first."""
        plan = Planner(registry).plan(graph_for(chain_resources()), {})
        assert keys(plan) == ["aws_vpc.main", "aws_subnet.a", "aws_instance.web"]
        assert all(a.kind == ActionKind.CREATE for a in plan.actions)
        assert plan.get_action("aws_instance.web").dependencies == ["aws_subnet.a"]
        assert plan.summary() == {"create": 3, "update": 0, "delete": 0, "replace": 0}

    def test_dependencies_precede_dependents(self, registry):
        """Test every action's dependencies appear earlier in the plan."""
        plan = Planner(registry).plan(graph_for(chain_resources()), {})
        seen = set()
        for action in plan.actions:
            assert set(action.dependencies) <= seen
            seen.add(action.key)

    def test_planning_is_deterministic(self, registry):
        """Test the same inputs give an identical plan."""
        first = Planner(registry).plan(graph_for(chain_resources()), {})
        second = Planner(registry).plan(graph_for(chain_resources()), {})
        assert first.model_dump() == second.model_dump()

    def test_unknown_type_rejected_before_planning(self, registry):
        """Test a type without a provider."""
        graph = graph_for({"aws_widget": {"x": {"size": 1}}})
        with pytest.raises(UnknownResourceTypeError, match="aws_widget"):
            Planner(registry).plan(graph, {})


class TestConvergence:
    """Test plans after an apply."""

    def test_plan_after_apply_is_empty(self, registry, store):
        """Test applying a plan and planning again yields no actions."""
        graph = graph_for(chain_resources())
        apply(graph, store, registry)
        again = Planner(registry).plan(graph_for(chain_resources()), store.load())
        assert again.is_empty

    def test_mutable_change_is_update(self, registry, store):
        """Test changing a mutable attribute plans an in-place update."""
        apply(graph_for(chain_resources()), store, registry)
        resources = chain_resources()
        resources["aws_instance"]["web"]["instance_type"] = "t3.small"
        plan = Planner(registry).plan(graph_for(resources), store.load())
        assert keys(plan) == ["aws_instance.web"]
        action = plan.actions[0]
        assert action.kind == ActionKind.UPDATE
        assert action.changed_attributes == ["instance_type"]
        assert action.target_id == store.load()["aws_instance.web"].id

    def test_count_decrease_deletes_highest_index(self, registry, store):
        """Test shrinking a count deletes the removed instances only."""
        resources = {
            "aws_vpc": {"main": {"cidr_block": "10.0.0.0/16"}},
            "aws_subnet": {"public": {"count": 2, "vpc_id": "${aws_vpc.main.id}"}},
        }
        apply(graph_for(resources), store, registry)
        resources["aws_subnet"]["public"]["count"] = 1
        plan = Planner(registry).plan(graph_for(resources), store.load())
        assert keys(plan) == ["aws_subnet.public[1]"]
        assert plan.actions[0].kind == ActionKind.DELETE

    def test_removed_declarations_deleted_dependents_first(self, registry, store):
        """Test orphans in state are deleted, dependents before dependencies."""
        apply(graph_for(chain_resources()), store, registry)
        remaining = {"aws_vpc": chain_resources()["aws_vpc"]}
        plan = Planner(registry).plan(graph_for(remaining), store.load())
        assert keys(plan) == ["aws_instance.web", "aws_subnet.a"]

    def test_update_reaches_dependents_through_references(self, registry, store):
        """Test an updated attribute read by a dependent updates both in one apply."""
        variables = {"vpc_name": {"type": "string"}}

        def resources():
            return {
                "aws_vpc": {"main": {"cidr_block": "10.0.0.0/16", "tags": {"Name": "${var.vpc_name}"}}},
                "aws_subnet": {"a": {"vpc_id": "${aws_vpc.main.id}", "tags": {"Name": "${aws_vpc.main.tags.Name}-sub"}}},
                "aws_instance": {"web": {"subnet_id": "${aws_subnet.a.id}", "ami": "ami-1",
                                         "tags": {"Name": "${aws_subnet.a.tags.Name}-web"}}},
            }

        apply(graph_for(resources(), variables, {"vpc_name": "one"}), store, registry)
        plan = apply(graph_for(resources(), variables, {"vpc_name": "two"}), store, registry)

        assert keys(plan) == ["aws_vpc.main", "aws_subnet.a", "aws_instance.web"]
        assert all(a.kind == ActionKind.UPDATE for a in plan.actions)
        assert plan.get_action("aws_subnet.a").changed_attributes == ["tags"]
        state = store.load()
        assert state["aws_subnet.a"].attributes["tags"] == {"Name": "two-sub"}
        assert state["aws_instance.web"].attributes["tags"] == {"Name": "two-sub-web"}

        follow = Planner(registry).plan(graph_for(resources(), variables, {"vpc_name": "two"}), store.load())
        assert follow.is_empty

    def test_update_keeps_id_and_outputs_for_dependents(self, registry, store):
        """Test dependents reading only the id or outputs of an updated node are untouched."""
        resources = chain_resources()
        resources["aws_subnet"]["a"]["tags"] = {"Vpc": "${aws_vpc.main.arn}"}
        apply(graph_for(resources), store, registry)

        resources["aws_vpc"]["main"]["enable_dns_hostnames"] = True
        plan = apply(graph_for(resources), store, registry)

        assert keys(plan) == ["aws_vpc.main"]
        assert Planner(registry).plan(graph_for(resources), store.load()).is_empty


class TestTeardown:
    """Test destroy plans."""

    def test_chain_deleted_in_reverse(self, registry, store):
        """Test A -> B -> C is torn down as C, B, A."""
        apply(graph_for(chain_resources()), store, registry)
        plan = Planner(registry).plan(DependencyGraph(), store.load(), destroy=True)
        assert plan.destroy
        assert keys(plan) == ["aws_instance.web", "aws_subnet.a", "aws_vpc.main"]
        assert plan.get_action("aws_vpc.main").dependencies == ["aws_subnet.a"]

    def test_independent_nodes_deleted_in_reverse_declaration_order(self, registry):
        """Test ties between unrelated deletes."""
        state = {
            f"aws_key_pair.k{i}": StateRecord(
                address=f"aws_key_pair.k{i}", type="aws_key_pair", name=f"k{i}", id=f"key-{i}", declaration_order=i,
            )
            for i in range(3)
        }
        plan = Planner(registry).plan(DependencyGraph(), state, destroy=True)
        assert keys(plan) == ["aws_key_pair.k2", "aws_key_pair.k1", "aws_key_pair.k0"]

    def test_destroy_after_apply_leaves_empty_state(self, registry, store, provider):
        """Test executing a destroy plan empties state and the provider."""
        apply(graph_for(chain_resources()), store, registry)
        apply(DependencyGraph(), store, registry, destroy=True)
        assert store.load() == {}
        assert provider.resources == {}


class TestReplacement:
    """Test ordering of replacements."""

    SG_VARIABLES = {"sg_name": {"type": "string"}}

    @staticmethod
    def sg_resources(lifecycle=None):
        sg = {"name": "${var.sg_name}", "vpc_id": "${aws_vpc.main.id}"}
        if lifecycle is not None:
            sg["lifecycle"] = {"create_before_destroy": lifecycle}
        return {
            "aws_vpc": {"main": {"cidr_block": "10.0.0.0/16"}},
            "aws_security_group": {"web": sg},
            "aws_instance": {"web": {"ami": "ami-1", "vpc_security_group_ids": ["${aws_security_group.web.id}"]}},
        }

    def test_create_before_delete(self, registry, store, provider):
        """Test the new object is created and dependents moved before the old one is deleted."""
        apply(graph_for(self.sg_resources(), self.SG_VARIABLES, {"sg_name": "web-a"}), store, registry)
        old_id = store.load()["aws_security_group.web"].id

        graph = graph_for(self.sg_resources(), self.SG_VARIABLES, {"sg_name": "web-b"})
        plan = Planner(registry).plan(graph, store.load())
        assert keys(plan) == [
            "aws_security_group.web#create",
            "aws_instance.web",
            "aws_security_group.web#delete",
        ]
        create = plan.actions[0]
        assert create.kind == ActionKind.REPLACE
        assert create.create_before_destroy is True
        assert create.replace_reasons == ["name"]
        assert plan.actions[1].kind == ActionKind.UPDATE
        assert plan.actions[2].target_id == old_id
        assert plan.summary()["replace"] == 1

        apply(graph, store, registry)
        state = store.load()
        new_id = state["aws_security_group.web"].id
        assert new_id != old_id
        assert state["aws_security_group.web"].deposed == []
        assert state["aws_instance.web"].attributes["vpc_security_group_ids"] == [new_id]
        assert old_id not in provider.resources

    def test_lifecycle_forces_delete_before_create(self, registry, store):
        """Test create_before_destroy: false deletes the old object first."""
        variables = self.SG_VARIABLES
        apply(graph_for(self.sg_resources(False), variables, {"sg_name": "web-a"}), store, registry)
        plan = Planner(registry).plan(graph_for(self.sg_resources(False), variables, {"sg_name": "web-b"}), store.load())
        assert keys(plan) == [
            "aws_security_group.web#delete",
            "aws_security_group.web#create",
            "aws_instance.web",
        ]
        assert plan.actions[0].create_before_destroy is False

    def test_exclusive_binding_forces_delete_before_create(self, registry, store):
        """Test a node bound exclusively by a dependent is replaced delete-first."""
        variables = {"ami": {"type": "string"}}
        resources = {
            "aws_instance": {"web": {"ami": "${var.ami}"}},
            "aws_eip": {"web": {"instance": "${aws_instance.web.id}"}},
        }
        apply(graph_for(resources, variables, {"ami": "ami-1"}), store, registry)
        plan = Planner(registry).plan(graph_for(resources, variables, {"ami": "ami-2"}), store.load())
        assert keys(plan) == ["aws_instance.web#delete", "aws_instance.web#create", "aws_eip.web"]
        assert plan.get_action("aws_eip.web").kind == ActionKind.UPDATE

    def test_delete_before_create_propagates_to_replaced_dependents(self, registry, store):
        """Test a replaced dependent of a delete-first node is also delete-first."""
        variables = {"cidr": {"type": "string"}}
        resources = {
            "aws_vpc": {"main": {"cidr_block": "${var.cidr}", "lifecycle": {"create_before_destroy": False}}},
            "aws_subnet": {"a": {"vpc_id": "${aws_vpc.main.id}", "cidr_block": "10.0.1.0/24"}},
        }
        apply(graph_for(resources, variables, {"cidr": "10.0.0.0/16"}), store, registry)
        plan = Planner(registry).plan(graph_for(resources, variables, {"cidr": "10.1.0.0/16"}), store.load())
        assert keys(plan) == [
            "aws_subnet.a#delete",
            "aws_vpc.main#delete",
            "aws_vpc.main#create",
            "aws_subnet.a#create",
        ]
        assert plan.get_action("aws_subnet.a#create").create_before_destroy is False

    def test_deposed_objects_are_cleaned_up(self, registry):
        """Test old ids left by an interrupted replacement are planned for deletion."""
        state = {
            "aws_key_pair.kp": StateRecord(
                address="aws_key_pair.kp", type="aws_key_pair", name="kp", id="key-new",
                attributes={"key_name": "kp"}, deposed=["key-old"],
            ),
        }
        graph = graph_for({"aws_key_pair": {"kp": {"key_name": "kp"}}})
        plan = Planner(registry).plan(graph, state)
        assert keys(plan) == ["aws_key_pair.kp#deposed:key-old"]
        assert plan.actions[0].step == ActionStep.DEPOSED
        assert plan.actions[0].target_id == "key-old"
