"""Count Expander: turn count-parameterized templates into indexed resource nodes."""

from typing import Any, Callable, Dict, List, Optional, Tuple
from ..graph.models import ResourceNode
from ..ingest.models import DeclarationSet, ResourceDeclaration
from ..resolver.resolver import AttributeResolver, instance_address
from ..utils.errors import ValidationError, ResolutionError, InsufficientZonesError
from ..utils.logging import get_logger

logger = get_logger("expander.count_expander")

Override = Callable[[Optional[int]], Dict[str, Any]]


def expand(template: ResourceDeclaration, count: Optional[int], override: Override) -> List[ResourceNode]:
    """
    Expand one template into nodes.

    Args:
        template: The resource declaration
        count: Repetition count, or None for a single unindexed node
        override: index -> resolved attributes for that index

    Returns:
        ``count`` nodes with identity (type, name, index), or one node when count is None

    Raises:
        ValidationError: If count is negative
        ResolutionError: If the override cannot supply attributes for an index
    """
    if count is not None and count < 0:
        raise ValidationError(f"count must be >= 0, got {count}", address=template.address, attribute="count")

    indexes = [None] if count is None else list(range(count))
    nodes = []
    for index in indexes:
        address = instance_address(template.type, template.name, index)
        attributes = override(index)
        if attributes is None:
            raise ResolutionError(f"No attribute values supplied for index {index}", address=address)
        nodes.append(ResourceNode(
            type=template.type,
            name=template.name,
            index=index,
            attributes=attributes,
            explicit_depends_on=set(template.depends_on),
            declaration_order=template.order,
            create_before_destroy=template.lifecycle.create_before_destroy,
        ))

    if count == 0:
        logger.debug(f"{template.address}: count = 0, no nodes produced")
    return nodes


class CountExpander:
    """Resolve counts for every declaration and expand them with per-index attributes."""

    def __init__(self, declarations: DeclarationSet, variables: Dict[str, Any]):
        self.declarations = declarations
        self.variables = variables
        count_resolver = AttributeResolver(variables, declarations.data, {})
        self.counts: Dict[Tuple[str, str], Optional[int]] = {}
        for declaration in declarations.resources:
            key = (declaration.type, declaration.name)
            if key in self.counts:
                # duplicates are reported by the graph builder with both nodes in hand
                continue
            self.counts[key] = self._resolve_count(count_resolver, declaration)
        self.resolver = AttributeResolver(variables, declarations.data, self.counts)

    @staticmethod
    def _resolve_count(resolver: AttributeResolver, declaration: ResourceDeclaration) -> Optional[int]:
        if declaration.count is None:
            return None
        value = resolver.resolve(declaration.count, address=declaration.address, attribute="count")
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(
                f"count must resolve to an integer, got {value!r}",
                address=declaration.address,
                attribute="count",
            )
        if value < 0:
            raise ValidationError(f"count must be >= 0, got {value}", address=declaration.address, attribute="count")
        return value

    def expand_declaration(self, declaration: ResourceDeclaration) -> List[ResourceNode]:
        """Expand one declaration using its resolved count."""
        count = self.counts[(declaration.type, declaration.name)]

        if count and self.resolver.references_zones(declaration.attributes):
            zones = self.resolver.zone_count()
            if zones is not None and count > zones:
                raise InsufficientZonesError(
                    f"count = {count} but only {zones} availability zones are available",
                    address=declaration.address,
                    attribute="count",
                )

        def override(index: Optional[int]) -> Dict[str, Any]:
            address = instance_address(declaration.type, declaration.name, index)
            return {
                key: self.resolver.resolve(raw, address=address, attribute=key, count_index=index)
                for key, raw in declaration.attributes.items()
            }

        return expand(declaration, count, override)

    def expand_all(self) -> List[ResourceNode]:
        """Expand every declaration in declaration order."""
        nodes = []
        for declaration in self.declarations.resources:
            nodes.extend(self.expand_declaration(declaration))
        logger.info(f"Expanded {len(self.declarations.resources)} declarations into {len(nodes)} nodes")
        return nodes
