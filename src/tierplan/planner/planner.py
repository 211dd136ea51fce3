"""Planner: diff the desired graph against recorded state into an ordered plan."""

from typing import Dict, List, Optional, Set
import networkx as nx
from .diff import diff_attributes
from .models import Action, ActionKind, ActionStep, Plan
from ..graph.dependency_graph import DependencyGraph
from ..graph.models import ResourceNode
from ..providers.base import ProviderRegistry
from ..resolver.values import Reference, UNKNOWN, iter_references, materialize
from ..state.models import StateRecord
from ..utils.errors import ValidationError
from ..utils.logging import get_logger

logger = get_logger("planner.planner")

# Tie-break rank: delete-before-create deletes, then forward actions, then
# the remaining deletes.
_RANK_EARLY_DELETE = 0
_RANK_FORWARD = 1
_RANK_LATE_DELETE = 2


class Planner:
    """Classify every node as create/update/replace/delete/no-op and order the actions."""

    def __init__(self, registry: ProviderRegistry):
        self.registry = registry

    def plan(self, graph: DependencyGraph, state: Dict[str, StateRecord], destroy: bool = False) -> Plan:
        """
        Build a plan.

        Args:
            graph: Desired dependency graph
            state: Recorded state, address -> StateRecord
            destroy: Plan a full teardown of everything in state

        Returns:
            Plan whose actions are in a valid, deterministic execution order

        Raises:
            ValidationError: On unknown resource types
        """
        desired = [] if destroy else graph.get_all_nodes()
        self.registry.validate_types({n.type for n in desired} | {r.type for r in state.values()})

        desired_order = [] if destroy else graph.topological_order()
        desired_map = {n.address: n for n in desired}

        forward: Dict[str, Action] = {}
        deletes: Dict[str, List[Action]] = {}
        pending: Set[str] = set()
        updated: Dict[str, dict] = {}

        for address in desired_order:
            node = desired_map[address]
            record = state.get(address)
            expected = materialize(node.attributes, self._planning_lookup(state, pending, updated))
            action = self._classify(node, record, expected)
            if action is None:
                continue
            if action.kind in (ActionKind.CREATE, ActionKind.REPLACE):
                pending.add(address)
            elif action.kind == ActionKind.UPDATE:
                updated[address] = expected
            forward[address] = action
            if action.kind == ActionKind.REPLACE:
                deletes.setdefault(address, []).append(Action(
                    key=f"{address}#delete",
                    kind=ActionKind.REPLACE,
                    step=ActionStep.DELETE,
                    address=address,
                    resource_type=node.type,
                    target_id=record.id,
                    replace_reasons=action.replace_reasons,
                ))

        for address, record in sorted(state.items(), key=lambda item: item[1].sort_key):
            if address not in desired_map:
                deletes.setdefault(address, []).append(Action(
                    key=address,
                    kind=ActionKind.DELETE,
                    address=address,
                    resource_type=record.type,
                    target_id=record.id,
                ))
            for deposed_id in record.deposed:
                deletes.setdefault(address, []).append(Action(
                    key=f"{address}#deposed:{deposed_id}",
                    kind=ActionKind.DELETE,
                    step=ActionStep.DEPOSED,
                    address=address,
                    resource_type=record.type,
                    target_id=deposed_id,
                ))

        self._decide_replace_ordering(graph if not destroy else None, desired_order, desired_map, forward, deletes)
        plan = self._order(graph if not destroy else None, desired_map, state, forward, deletes, destroy)

        summary = plan.summary()
        logger.info(
            f"Plan: {summary['create']} to create, {summary['update']} to update, "
            f"{summary['replace']} to replace, {summary['delete']} to delete"
        )
        return plan

    def _planning_lookup(self, state: Dict[str, StateRecord], pending: Set[str], updated: Dict[str, dict]):
        """
        Reference lookup against recorded outputs.

        Nodes created or replaced by this plan are UNKNOWN. Nodes updated in
        place keep their id and outputs but expose their new input attributes.
        """
        def lookup(ref: Reference):
            if ref.address in pending:
                return UNKNOWN
            record = state.get(ref.address)
            if record is None:
                return UNKNOWN
            if ref.address in updated and ref.attribute not in record.outputs and ref.attribute != "id":
                return updated[ref.address].get(ref.attribute, UNKNOWN)
            try:
                return record.lookup(ref.attribute)
            except KeyError:
                return UNKNOWN
        return lookup

    def _classify(self, node: ResourceNode, record: Optional[StateRecord], expected: dict) -> Optional[Action]:
        if record is None:
            return Action(
                key=node.address,
                kind=ActionKind.CREATE,
                address=node.address,
                resource_type=node.type,
                changed_attributes=sorted(expected),
            )

        schema = self.registry.schema_for(node.type)
        changed = diff_attributes(expected, record.attributes, schema)
        if not changed:
            return None

        immutable = [name for name in changed if name in schema.immutable_attributes]
        if immutable:
            logger.debug(f"{node.address}: replace forced by {', '.join(immutable)}")
            return Action(
                key=f"{node.address}#create",
                kind=ActionKind.REPLACE,
                step=ActionStep.CREATE,
                address=node.address,
                resource_type=node.type,
                target_id=record.id,
                changed_attributes=changed,
                replace_reasons=immutable,
            )

        return Action(
            key=node.address,
            kind=ActionKind.UPDATE,
            address=node.address,
            resource_type=node.type,
            target_id=record.id,
            changed_attributes=changed,
        )

    def _exclusively_bound(self, graph: DependencyGraph, address: str) -> bool:
        """True if a dependent references address through an exclusive attribute of its type."""
        for dependent_id in sorted(graph.dependents_of(address)):
            dependent = graph.get_node(dependent_id)
            schema = self.registry.schema_for(dependent.type)
            for attr_name in schema.exclusive_attributes:
                if any(ref.address == address for ref in iter_references(dependent.attributes.get(attr_name))):
                    return True
        return False

    def _decide_replace_ordering(
        self,
        graph: Optional[DependencyGraph],
        desired_order: List[str],
        desired_map: Dict[str, ResourceNode],
        forward: Dict[str, Action],
        deletes: Dict[str, List[Action]],
    ) -> None:
        """
        Create-before-delete by default; delete-before-create when the node is
        exclusively bound or its declaration says so. Delete-before-create
        propagates to replaced dependents.
        """
        delete_first: Set[str] = set()
        for address in desired_order:
            action = forward.get(address)
            if action is None or action.kind != ActionKind.REPLACE:
                continue

            node = desired_map[address]
            inherited = any(dep in delete_first for dep in graph.dependencies_of(address))
            if inherited:
                if node.create_before_destroy:
                    logger.warning(
                        f"{address}: create_before_destroy ignored, a dependency is replaced delete-before-create"
                    )
                cbd = False
            elif node.create_before_destroy is not None:
                cbd = node.create_before_destroy
            else:
                cbd = not self._exclusively_bound(graph, address)

            if not cbd:
                delete_first.add(address)
            action.create_before_destroy = cbd
            for delete_action in deletes.get(address, []):
                if delete_action.kind == ActionKind.REPLACE:
                    delete_action.create_before_destroy = cbd

    def _order(
        self,
        graph: Optional[DependencyGraph],
        desired_map: Dict[str, ResourceNode],
        state: Dict[str, StateRecord],
        forward: Dict[str, Action],
        deletes: Dict[str, List[Action]],
        destroy: bool,
    ) -> Plan:
        actions: Dict[str, Action] = {}
        for action in forward.values():
            actions[action.key] = action
        for group in deletes.values():
            for action in group:
                actions[action.key] = action

        order_graph = nx.DiGraph()
        order_graph.add_nodes_from(actions)

        def edge(before: Action, after: Action) -> None:
            order_graph.add_edge(before.key, after.key)

        state_dependents: Dict[str, Set[str]] = {}
        for address, record in state.items():
            for dependency in record.dependencies:
                state_dependents.setdefault(dependency, set()).add(address)

        for address, action in forward.items():
            for dependency in graph.dependencies_of(address):
                if dependency in forward:
                    edge(forward[dependency], action)
            if action.kind == ActionKind.REPLACE and not action.create_before_destroy:
                for delete_action in deletes.get(address, []):
                    if delete_action.step == ActionStep.DELETE:
                        edge(delete_action, action)

        for address, group in deletes.items():
            dependents = set(state_dependents.get(address, set()))
            desired_dependents = set(graph.dependents_of(address)) if graph is not None else set()
            # deposed objects have no dependents left; they only have to go
            # before the record holding their ids is dropped
            removals = [a for a in group if a.step != ActionStep.DEPOSED and not a.create_before_destroy]
            for delete_action in group:
                if delete_action.step == ActionStep.DEPOSED:
                    for removal in removals:
                        edge(delete_action, removal)
                    continue

                for dependent in dependents | desired_dependents:
                    for dependent_delete in deletes.get(dependent, []):
                        if dependent_delete.step != ActionStep.DEPOSED:
                            edge(dependent_delete, delete_action)

                early = delete_action.kind == ActionKind.REPLACE and not delete_action.create_before_destroy
                if early:
                    continue
                # the old object goes only after its successor exists and
                # every dependent has been moved off it
                if address in forward:
                    edge(forward[address], delete_action)
                for dependent in dependents | desired_dependents:
                    if dependent in forward:
                        edge(forward[dependent], delete_action)

        if not nx.is_directed_acyclic_graph(order_graph):
            cycle = [u for u, _ in nx.find_cycle(order_graph)]
            raise ValidationError(f"Plan ordering is cyclic: {' -> '.join(cycle)}")

        def sort_key(key: str) -> tuple:
            action = actions[key]
            if not action.is_delete_step:
                node = desired_map[action.address]
                return (_RANK_FORWARD,) + node.sort_key + (0,)
            record = state.get(action.address)
            order, index = record.sort_key if record is not None else (0, -1)
            early = action.kind == ActionKind.REPLACE and not action.create_before_destroy
            rank = _RANK_EARLY_DELETE if early else _RANK_LATE_DELETE
            return (rank, -order, -index, 0 if action.step != ActionStep.DEPOSED else 1)

        ordered_keys = list(nx.lexicographical_topological_sort(order_graph, key=sort_key))
        position = {key: i for i, key in enumerate(ordered_keys)}
        ordered = []
        for key in ordered_keys:
            action = actions[key]
            action.dependencies = sorted(order_graph.predecessors(key), key=position.get)
            ordered.append(action)

        return Plan(destroy=destroy, actions=ordered)
