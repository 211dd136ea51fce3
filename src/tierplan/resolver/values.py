"""Deferred values: references to other nodes' outputs and string templates built from them."""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Tuple, Union
from ..utils.errors import UnresolvedReferenceError


@dataclass(frozen=True)
class Reference:
    """
    Pointer from one node's attribute to another node's output.

    ``address`` is the target node (``aws_vpc.main`` or ``aws_subnet.public[1]``),
    ``attribute`` the output name and ``path`` any further map keys or list
    indexes applied to that output.
    """
    address: str
    attribute: str
    path: Tuple[Union[str, int], ...] = field(default_factory=tuple)

    def extend(self, key: Union[str, int]) -> "Reference":
        return Reference(self.address, self.attribute, self.path + (key,))

    def __str__(self) -> str:
        suffix = "".join(f"[{k}]" if isinstance(k, int) else f".{k}" for k in self.path)
        return f"{self.address}.{self.attribute}{suffix}"


@dataclass(frozen=True)
class Interpolation:
    """String template whose parts are literal strings or References."""
    parts: Tuple[Any, ...]

    def __str__(self) -> str:
        return "".join(p if isinstance(p, str) else "${" + str(p) + "}" for p in self.parts)


class _Unknown:
    """Value that will only be known after apply."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "(known after apply)"

    __str__ = __repr__


UNKNOWN = _Unknown()


def iter_references(value: Any) -> Iterator[Reference]:
    """Yield every Reference found in scalars, lists, maps and interpolations."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, Interpolation):
        for part in value.parts:
            yield from iter_references(part)
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_references(item)


def is_deferred(value: Any) -> bool:
    """True if value contains at least one Reference."""
    return next(iter_references(value), None) is not None


def contains_unknown(value: Any) -> bool:
    """True if value contains UNKNOWN anywhere."""
    if value is UNKNOWN:
        return True
    if isinstance(value, dict):
        return any(contains_unknown(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(contains_unknown(v) for v in value)
    return False


def materialize(value: Any, lookup: Callable[[Reference], Any]) -> Any:
    """
    Replace every Reference in value with lookup(reference).

    If lookup returns UNKNOWN for any part of an interpolation, the whole
    string is UNKNOWN.
    """
    if isinstance(value, Reference):
        return follow_path(lookup(value), value)
    if isinstance(value, Interpolation):
        rendered = []
        for part in value.parts:
            resolved = materialize(part, lookup)
            if resolved is UNKNOWN:
                return UNKNOWN
            rendered.append(render_scalar(resolved))
        return "".join(rendered)
    if isinstance(value, dict):
        return {k: materialize(v, lookup) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [materialize(v, lookup) for v in value]
    return value


def follow_path(value: Any, reference: Reference) -> Any:
    """Apply a reference's trailing path to the looked-up output value."""
    for key in reference.path:
        if value is UNKNOWN:
            return UNKNOWN
        try:
            value = value[key]
        except (KeyError, IndexError, TypeError):
            raise UnresolvedReferenceError(
                f"Output has no element {key!r}",
                address=reference.address,
                attribute=str(reference),
            )
    return value


def render_scalar(value: Any) -> str:
    """String form used when a value is embedded in a template."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)
