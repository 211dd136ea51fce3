"""Executor: run plan actions with bounded parallelism, retries and per-action state persistence."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, FIRST_COMPLETED, wait
from typing import Callable, Dict, List, Optional, Set
from .models import ActionResult, NodeStatus, RunResult, RunStatus
from .retry import call_with_retry
from ..config.models import RetryConfig
from ..graph.dependency_graph import DependencyGraph
from ..planner.models import Action, ActionKind, ActionStep, Plan
from ..providers.base import ProviderRegistry
from ..resolver.values import Reference, materialize
from ..state.models import StateRecord
from ..state.store import StateStore
from ..utils.errors import TierPlanError, ResourceNotFoundError, UnresolvedReferenceError
from ..utils.logging import get_logger

logger = get_logger("executor.executor")


class _Outcome:
    __slots__ = ("status", "attempts", "error", "error_type")

    def __init__(self, status: NodeStatus, attempts: int = 0, error: Exception = None):
        self.status = status
        self.attempts = attempts
        self.error = str(error) if error is not None else None
        self.error_type = type(error).__name__ if error is not None else None


class Executor:
    """
    Runs a plan against providers.

    An action starts only after every action it depends on has succeeded.
    A failed action blocks all of its transitive dependents; independent
    branches keep running. State is written after each successful action,
    before any dependent is released.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        store: StateStore,
        parallelism: int = 4,
        retry: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if parallelism < 1:
            raise ValueError(f"parallelism must be >= 1, got {parallelism}")
        self.registry = registry
        self.store = store
        self.parallelism = parallelism
        self.retry = retry or RetryConfig()
        self.sleep = sleep
        self._records: Dict[str, StateRecord] = {}
        self._lock = threading.Lock()

    def run(self, plan: Plan, graph: DependencyGraph, cancel_event: Optional[threading.Event] = None) -> RunResult:
        """
        Execute every action of plan.

        Args:
            plan: Ordered plan from the Planner
            graph: Desired graph the plan was made from (source of node attributes)
            cancel_event: When set, no new actions start; in-flight ones finish

        Returns:
            RunResult with one ActionResult per action
        """
        cancel_event = cancel_event or threading.Event()
        with self._lock:
            self._records = self.store.load()

        actions = {a.key: a for a in plan.actions}
        position = {a.key: i for i, a in enumerate(plan.actions)}
        waiting: Dict[str, Set[str]] = {a.key: set(a.dependencies) for a in plan.actions}
        dependents: Dict[str, List[str]] = {a.key: [] for a in plan.actions}
        for action in plan.actions:
            for dependency in action.dependencies:
                dependents[dependency].append(action.key)

        results: Dict[str, ActionResult] = {}
        ready = [a.key for a in plan.actions if not waiting[a.key]]
        cancelled = False

        logger.info(f"Executing {len(actions)} actions with parallelism {self.parallelism}")
        with ThreadPoolExecutor(max_workers=self.parallelism, thread_name_prefix="tierplan") as pool:
            in_flight = {}
            while True:
                if cancel_event.is_set() and not cancelled:
                    cancelled = True
                    logger.warning("Cancellation requested, waiting for in-flight actions")

                while ready and not cancelled and len(in_flight) < self.parallelism:
                    key = ready.pop(0)
                    logger.info(f"Starting {actions[key].describe()}")
                    in_flight[pool.submit(self._execute, actions[key], graph)] = key

                if not in_flight:
                    break

                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in sorted(done, key=lambda f: position[in_flight[f]]):
                    key = in_flight.pop(future)
                    outcome = future.result()
                    results[key] = self._result(actions[key], outcome)

                    if outcome.status == NodeStatus.SUCCESS:
                        logger.info(f"Finished {actions[key].describe()}")
                        for dependent in dependents[key]:
                            waiting[dependent].discard(key)
                            if not waiting[dependent] and dependent not in results:
                                ready.append(dependent)
                        ready.sort(key=position.get)
                    else:
                        logger.error(f"Failed {actions[key].describe()}: {outcome.error}")
                        self._block_dependents(key, actions, dependents, results)

        for action in plan.actions:
            if action.key not in results:
                results[action.key] = self._result(action, _Outcome(NodeStatus.CANCELLED))

        ordered = [results[a.key] for a in plan.actions]
        statuses = {r.status for r in ordered}
        if cancelled:
            status = RunStatus.CANCELLED
        elif NodeStatus.FAILED in statuses or NodeStatus.BLOCKED in statuses:
            status = RunStatus.FAILED
        else:
            status = RunStatus.SUCCESS

        run_result = RunResult(status=status, results=ordered)
        summary = run_result.summary()
        logger.info(
            f"Run {status.value}: {summary['success']} succeeded, {summary['failed']} failed, "
            f"{summary['blocked']} blocked, {summary['cancelled']} cancelled"
        )
        return run_result

    def _block_dependents(
        self,
        failed_key: str,
        actions: Dict[str, Action],
        dependents: Dict[str, List[str]],
        results: Dict[str, ActionResult],
    ) -> None:
        stack = list(dependents[failed_key])
        while stack:
            key = stack.pop()
            if key in results:
                continue
            logger.warning(f"Blocked {actions[key].describe()}: depends on failed {failed_key}")
            result = self._result(actions[key], _Outcome(NodeStatus.BLOCKED))
            result.blocked_by = failed_key
            results[key] = result
            stack.extend(dependents[key])

    @staticmethod
    def _result(action: Action, outcome: _Outcome) -> ActionResult:
        return ActionResult(
            key=action.key,
            address=action.address,
            kind=action.kind,
            step=action.step,
            status=outcome.status,
            attempts=outcome.attempts,
            error=outcome.error,
            error_type=outcome.error_type,
        )

    def _execute(self, action: Action, graph: DependencyGraph) -> _Outcome:
        """Worker body; provider and resolution errors become a failed outcome."""
        try:
            if action.is_delete_step:
                attempts = self._delete(action)
            else:
                attempts = self._apply(action, graph)
        except TierPlanError as e:
            return _Outcome(NodeStatus.FAILED, getattr(e, "attempts", 1), e)
        except Exception as e:
            logger.exception(f"Unexpected error in {action.describe()}")
            return _Outcome(NodeStatus.FAILED, getattr(e, "attempts", 1), e)
        return _Outcome(NodeStatus.SUCCESS, attempts)

    def _lookup(self, ref: Reference):
        with self._lock:
            record = self._records.get(ref.address)
        if record is None:
            raise UnresolvedReferenceError(f"No recorded outputs for {ref.address}", attribute=str(ref))
        try:
            return record.lookup(ref.attribute)
        except KeyError:
            raise UnresolvedReferenceError(
                f"{ref.address} has no attribute or output '{ref.attribute}'", attribute=str(ref)
            )

    def _persist(self, record: StateRecord) -> None:
        self.store.save(record)
        with self._lock:
            self._records[record.address] = record

    def _forget(self, address: str) -> None:
        self.store.remove(address)
        with self._lock:
            self._records.pop(address, None)

    def _current(self, address: str) -> Optional[StateRecord]:
        with self._lock:
            return self._records.get(address)

    def _apply(self, action: Action, graph: DependencyGraph) -> int:
        node = graph.get_node(action.address)
        if node is None:
            raise TierPlanError("Plan action has no matching node in the graph", address=action.address)

        attributes = materialize(node.attributes, self._lookup)
        provider = self.registry.provider_for(node.type)
        prior = self._current(action.address)
        description = action.describe()

        if action.kind == ActionKind.UPDATE:
            outputs, attempts = call_with_retry(
                lambda: provider.update(node.type, action.target_id, attributes),
                self.retry, description, self.sleep,
            )
            resource_id = action.target_id
            deposed = list(prior.deposed) if prior is not None else []
        else:
            (resource_id, outputs), attempts = call_with_retry(
                lambda: provider.create(node.type, attributes),
                self.retry, description, self.sleep,
            )
            deposed = list(prior.deposed) if prior is not None else []
            # create-before-delete: the old object is kept until its delete step runs
            if prior is not None and action.kind == ActionKind.REPLACE and prior.id not in deposed:
                deposed.append(prior.id)

        self._persist(StateRecord(
            address=node.address,
            type=node.type,
            name=node.name,
            index=node.index,
            id=resource_id,
            attributes=attributes,
            outputs=outputs,
            dependencies=sorted(node.depends_on),
            declaration_order=node.declaration_order,
            deposed=deposed,
        ))
        logger.debug(f"{node.address}: recorded {resource_id} after {attempts} attempt(s)")
        return attempts

    def _delete(self, action: Action) -> int:
        provider = self.registry.provider_for(action.resource_type)
        try:
            _, attempts = call_with_retry(
                lambda: provider.delete(action.resource_type, action.target_id),
                self.retry, action.describe(), self.sleep,
            )
        except ResourceNotFoundError:
            logger.info(f"{action.address}: {action.target_id} already gone")
            attempts = 1

        record = self._current(action.address)
        if action.step == ActionStep.DEPOSED or (action.kind == ActionKind.REPLACE and action.create_before_destroy):
            if record is not None and action.target_id in record.deposed:
                self._persist(record.model_copy(update={
                    "deposed": [d for d in record.deposed if d != action.target_id],
                }))
        else:
            self._forget(action.address)
        return attempts
