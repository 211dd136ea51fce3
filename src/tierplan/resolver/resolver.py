"""Attribute Resolver: evaluate raw attribute expressions into values or deferred references."""

from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple
from .expressions import (
    parse_template, traversal_names,
    Literal, ListExpr, Traversal, FunctionCall, Conditional, BinaryOp, Not, ForExpr, Step,
)
from .values import Reference, Interpolation, is_deferred, render_scalar
from ..utils.errors import (
    ResolutionError,
    ExpressionSyntaxError,
    UnresolvedReferenceError,
    IndexOutOfRangeError,
    InsufficientZonesError,
)
from ..utils.logging import get_logger

logger = get_logger("resolver.resolver")

ZONE_MARKER = "availability_zone"


def instance_address(resource_type: str, name: str, index: Optional[int] = None) -> str:
    """Render a node address: type.name or type.name[index]."""
    base = f"{resource_type}.{name}"
    return base if index is None else f"{base}[{index}]"


class ResourceCollection:
    """A declared resource as seen from an expression, before indexing."""

    def __init__(self, resource_type: str, name: str, count: Optional[int]):
        self.type = resource_type
        self.name = name
        self.count = count

    @property
    def address(self) -> str:
        return instance_address(self.type, self.name)

    def instances(self) -> List["ResourceInstance"]:
        if self.count is None:
            return [ResourceInstance(self.address)]
        return [ResourceInstance(instance_address(self.type, self.name, i)) for i in range(self.count)]


class ResourceInstance:
    """One concrete node as seen from an expression."""

    def __init__(self, address: str):
        self.address = address


@lru_cache(maxsize=2048)
def _parse_cached(text: str) -> Tuple[Any, ...]:
    return tuple(parse_template(text))


class AttributeResolver:
    """
    Evaluate raw declaration values against variable bindings, data values
    and the set of declared resources.

    Resource references are not looked up: they become Reference values that
    the planner and executor materialize later. Everything else is evaluated
    now. The resolver is a pure function of its inputs.
    """

    def __init__(
        self,
        variables: Dict[str, Any],
        data: Dict[str, Dict[str, Dict[str, Any]]],
        resource_counts: Dict[Tuple[str, str], Optional[int]],
    ):
        self.variables = variables
        self.data = data
        self.resource_counts = resource_counts

    def resolve(
        self,
        raw: Any,
        address: Optional[str] = None,
        attribute: Optional[str] = None,
        count_index: Optional[int] = None,
    ) -> Any:
        """
        Resolve a raw value (scalar, list, map or template string).

        Args:
            raw: Raw value as written in the declaration
            address: Node address, for error messages
            attribute: Attribute path, for error messages
            count_index: Value of count.index, None outside counted templates

        Returns:
            Concrete value, Reference, Interpolation, or containers of them

        Raises:
            ResolutionError: If the value cannot be resolved
        """
        return _Evaluation(self, address, count_index).value(raw, attribute or "")

    def references_zones(self, raw: Any) -> bool:
        """True if any expression in raw reads an availability-zone list from data or a variable."""
        if isinstance(raw, str):
            try:
                parts = _parse_cached(raw)
            except ExpressionSyntaxError:
                return False
            for part in parts:
                if isinstance(part, str):
                    continue
                for chain in traversal_names(part):
                    if chain[0] in ("data", "var") and any(ZONE_MARKER in segment for segment in chain[1:]):
                        return True
            return False
        if isinstance(raw, dict):
            return any(self.references_zones(v) for v in raw.values())
        if isinstance(raw, list):
            return any(self.references_zones(v) for v in raw)
        return False

    def zone_count(self) -> Optional[int]:
        """Number of availability zones known from data sources or variables, if any."""
        for data_type, entries in self.data.items():
            if ZONE_MARKER not in data_type:
                continue
            for attrs in entries.values():
                names = attrs.get("names")
                if isinstance(names, list):
                    return len(names)
        for name, value in self.variables.items():
            if ZONE_MARKER in name and isinstance(value, list):
                return len(value)
        return None


class _Evaluation:
    """State for a single resolve() call."""

    def __init__(self, resolver: AttributeResolver, address: Optional[str], count_index: Optional[int]):
        self.resolver = resolver
        self.address = address
        self.count_index = count_index
        self.locals: Dict[str, Any] = {}
        self.attribute = ""

    def fail(self, error_cls, message: str):
        raise error_cls(message, address=self.address, attribute=self.attribute or None)

    def value(self, raw: Any, attribute: str) -> Any:
        if isinstance(raw, str):
            self.attribute = attribute
            return self.template(raw)
        if isinstance(raw, dict):
            return {k: self.value(v, f"{attribute}.{k}" if attribute else str(k)) for k, v in raw.items()}
        if isinstance(raw, list):
            return [self.value(v, f"{attribute}[{i}]") for i, v in enumerate(raw)]
        return raw

    def template(self, text: str) -> Any:
        try:
            parts = _parse_cached(text)
        except ExpressionSyntaxError as e:
            self.fail(ExpressionSyntaxError, e.message)

        if len(parts) == 1 and not isinstance(parts[0], str):
            return self.finish(self.eval(parts[0]))
        if all(isinstance(p, str) for p in parts):
            return "".join(parts)

        rendered: List[Any] = []
        for part in parts:
            if isinstance(part, str):
                rendered.append(part)
                continue
            result = self.finish(self.eval(part))
            if isinstance(result, (Reference, Interpolation)):
                rendered.append(result)
            elif isinstance(result, (list, dict)):
                self.fail(ResolutionError, "Cannot interpolate a list or map into a string")
            else:
                rendered.append(render_scalar(result))

        if not any(isinstance(p, (Reference, Interpolation)) for p in rendered):
            return "".join(rendered)

        flat: List[Any] = []
        for part in rendered:
            if isinstance(part, Interpolation):
                flat.extend(part.parts)
            elif isinstance(part, str) and flat and isinstance(flat[-1], str):
                flat[-1] += part
            else:
                flat.append(part)
        return Interpolation(tuple(flat))

    def finish(self, result: Any) -> Any:
        """Reject resource objects used as plain values."""
        if isinstance(result, (ResourceCollection, ResourceInstance)):
            self.fail(ResolutionError, f"'{result.address}' is a resource; reference one of its attributes")
        if isinstance(result, list):
            return [self.finish(item) for item in result]
        return result

    # expression evaluation

    def eval(self, node: Any) -> Any:
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, ListExpr):
            return [self.finish(self.eval(item)) for item in node.items]
        if isinstance(node, Traversal):
            return self.traversal(node)
        if isinstance(node, FunctionCall):
            return self.call(node)
        if isinstance(node, Conditional):
            return self.eval(node.then) if self.truth(node.condition) else self.eval(node.otherwise)
        if isinstance(node, Not):
            return not self.truth(node.operand)
        if isinstance(node, BinaryOp):
            return self.binary(node)
        if isinstance(node, ForExpr):
            return self.for_expr(node)
        self.fail(ExpressionSyntaxError, f"Unsupported expression node {type(node).__name__}")

    def concrete(self, node: Any, what: str) -> Any:
        value = self.finish(self.eval(node))
        if is_deferred(value):
            self.fail(ResolutionError, f"{what} depends on a value only known after apply")
        return value

    def truth(self, node: Any) -> bool:
        value = self.concrete(node, "Condition")
        if not isinstance(value, bool):
            self.fail(ResolutionError, f"Condition must be a bool, got {type(value).__name__}")
        return value

    def binary(self, node: BinaryOp) -> Any:
        if node.op == "&&":
            return self.truth(node.left) and self.truth(node.right)
        if node.op == "||":
            return self.truth(node.left) or self.truth(node.right)
        left = self.concrete(node.left, "Comparison")
        right = self.concrete(node.right, "Comparison")
        if node.op == "==":
            return left == right
        if node.op == "!=":
            return left != right
        try:
            if node.op == "<":
                return left < right
            if node.op == ">":
                return left > right
            if node.op == "<=":
                return left <= right
            return left >= right
        except TypeError:
            self.fail(ResolutionError, f"Cannot compare {type(left).__name__} and {type(right).__name__}")

    def call(self, node: FunctionCall) -> Any:
        if node.name != "length":
            self.fail(UnresolvedReferenceError, f"Unknown function '{node.name}'")
        if len(node.args) != 1:
            self.fail(ResolutionError, "length() takes exactly one argument")
        value = self.eval(node.args[0])
        if isinstance(value, ResourceCollection):
            return 1 if value.count is None else value.count
        if isinstance(value, (list, dict, str)):
            return len(value)
        self.fail(ResolutionError, f"length() of {type(value).__name__} is not defined")

    def for_expr(self, node: ForExpr) -> List[Any]:
        collection = self.eval(node.collection)
        if isinstance(collection, ResourceCollection):
            items = collection.instances()
        elif isinstance(collection, dict):
            items = list(collection.values())
        elif isinstance(collection, list):
            items = collection
        else:
            self.fail(ResolutionError, f"Cannot iterate over {type(collection).__name__}")

        saved = self.locals.get(node.var, _MISSING)
        results = []
        try:
            for item in items:
                self.locals[node.var] = item
                if node.condition is not None and not self.truth(node.condition):
                    continue
                results.append(self.finish(self.eval(node.body)))
        finally:
            if saved is _MISSING:
                self.locals.pop(node.var, None)
            else:
                self.locals[node.var] = saved
        return results

    # traversals

    def traversal(self, node: Traversal) -> Any:
        steps = list(node.steps)
        zones = False

        if not isinstance(node.root, str):
            return self.apply_steps(self.eval(node.root), steps, zones)

        root = node.root
        if root in self.locals:
            return self.apply_steps(self.locals[root], steps, zones)

        if root == "var":
            name = self.take_attr(steps, "var")
            if name not in self.resolver.variables:
                self.fail(UnresolvedReferenceError, f"Unknown variable 'var.{name}'")
            return self.apply_steps(self.resolver.variables[name], steps, ZONE_MARKER in name)

        if root == "data":
            data_type = self.take_attr(steps, "data")
            data_name = self.take_attr(steps, f"data.{data_type}")
            entries = self.resolver.data.get(data_type, {})
            if data_name not in entries:
                self.fail(UnresolvedReferenceError, f"Unknown data source 'data.{data_type}.{data_name}'")
            return self.apply_steps(entries[data_name], steps, ZONE_MARKER in data_type)

        if root == "count":
            attr = self.take_attr(steps, "count")
            if attr != "index":
                self.fail(UnresolvedReferenceError, f"Unknown attribute 'count.{attr}'")
            if self.count_index is None:
                self.fail(ResolutionError, "count.index used in a resource without count")
            return self.apply_steps(self.count_index, steps, zones)

        name = self.take_attr(steps, root)
        key = (root, name)
        if key not in self.resolver.resource_counts:
            self.fail(UnresolvedReferenceError, f"Reference to undeclared resource '{root}.{name}'")
        collection = ResourceCollection(root, name, self.resolver.resource_counts[key])
        return self.apply_steps(collection, steps, zones)

    def take_attr(self, steps: List[Step], prefix: str) -> str:
        if not steps or steps[0].kind != "attr":
            self.fail(ExpressionSyntaxError, f"Expected an attribute name after '{prefix}'")
        return steps.pop(0).value

    def apply_steps(self, value: Any, steps: List[Step], zones: bool) -> Any:
        for position, step in enumerate(steps):
            if step.kind == "splat":
                if isinstance(value, ResourceCollection):
                    items = value.instances()
                elif isinstance(value, list):
                    items = value
                else:
                    self.fail(ResolutionError, "Splat [*] applies only to lists and counted resources")
                rest = steps[position + 1:]
                return [self.apply_steps(item, list(rest), zones) for item in items]

            if step.kind == "attr":
                zones = zones or ZONE_MARKER in step.value
                value = self.get_attr(value, step.value)
            else:
                value = self.get_index(value, self.concrete(step.value, "Index"), zones)
        return value

    def get_attr(self, value: Any, name: str) -> Any:
        if isinstance(value, ResourceInstance):
            return Reference(value.address, name)
        if isinstance(value, ResourceCollection):
            if value.count is not None:
                self.fail(
                    ResolutionError,
                    f"'{value.address}' has count set; use an index or [*] before '.{name}'"
                )
            return Reference(value.address, name)
        if isinstance(value, Reference):
            return value.extend(name)
        if isinstance(value, dict):
            if name not in value:
                self.fail(UnresolvedReferenceError, f"Key '{name}' not found")
            return value[name]
        self.fail(UnresolvedReferenceError, f"Cannot read attribute '{name}' of {type(value).__name__}")

    def get_index(self, value: Any, index: Any, zones: bool) -> Any:
        if isinstance(value, ResourceCollection):
            if value.count is None:
                self.fail(ResolutionError, f"'{value.address}' has no count and cannot be indexed")
            if not _is_int(index):
                self.fail(ResolutionError, f"Resource index must be an integer, got {index!r}")
            if not 0 <= index < value.count:
                self.fail(
                    IndexOutOfRangeError,
                    f"Index {index} out of range for '{value.address}' (count = {value.count})"
                )
            return ResourceInstance(instance_address(value.type, value.name, index))
        if isinstance(value, Reference):
            return value.extend(index)
        if isinstance(value, dict):
            if index not in value:
                self.fail(UnresolvedReferenceError, f"Key {index!r} not found")
            return value[index]
        if isinstance(value, list):
            if not _is_int(index):
                self.fail(ResolutionError, f"List index must be an integer, got {index!r}")
            if not 0 <= index < len(value):
                if zones:
                    self.fail(
                        InsufficientZonesError,
                        f"Zone index {index} requested but only {len(value)} availability zones exist"
                    )
                self.fail(IndexOutOfRangeError, f"Index {index} out of range for list of length {len(value)}")
            return value[index]
        self.fail(ResolutionError, f"Cannot index into {type(value).__name__}")


_MISSING = object()


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
