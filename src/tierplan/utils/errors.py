"""Custom exception classes for tierplan."""

from typing import Optional, List


class TierPlanError(Exception):
    """Base exception for all tierplan errors."""

    def __init__(self, message: str, address: Optional[str] = None, attribute: Optional[str] = None):
        self.message = message
        self.address = address
        self.attribute = attribute
        super().__init__(self._render())

    def _render(self) -> str:
        if self.address and self.attribute:
            return f"{self.address} ({self.attribute}): {self.message}"
        if self.address:
            return f"{self.address}: {self.message}"
        return self.message


class ConfigError(TierPlanError):
    """Raised when configuration is invalid or missing."""
    pass


class StateError(TierPlanError):
    """Raised when the state store cannot be read or written."""
    pass


class ValidationError(TierPlanError):
    """Raised for malformed declarations. Fatal before any provider call."""
    pass


class DeclarationLoadError(ValidationError):
    """Raised when a declaration file cannot be loaded or is invalid."""
    pass


class DuplicateResourceError(ValidationError):
    """Raised when two declarations produce the same node identity."""
    pass


class CyclicDependencyError(ValidationError):
    """Raised when the dependency relation contains a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.cycle)}", address=self.cycle[0])


class UnknownResourceTypeError(ValidationError):
    """Raised when no provider is registered for a resource type."""
    pass


class ResolutionError(TierPlanError):
    """Raised when an expression cannot be resolved. Fatal before planning."""
    pass


class ExpressionSyntaxError(ResolutionError):
    """Raised when an expression cannot be parsed."""
    pass


class UnresolvedReferenceError(ResolutionError):
    """Raised when a reference points at something that does not exist."""
    pass


class IndexOutOfRangeError(ResolutionError):
    """Raised when an index exceeds a collection's declared count or length."""
    pass


class InsufficientZonesError(ResolutionError):
    """Raised when a counted template needs more availability zones than exist."""
    pass


class ProviderError(TierPlanError):
    """Raised by resource providers."""

    transient = False


class TransientProviderError(ProviderError):
    """Retryable provider failure (timeouts, throttling)."""

    transient = True


class PermanentProviderError(ProviderError):
    """Non-retryable provider failure."""
    pass


class ResourceNotFoundError(ProviderError):
    """Raised by ``read`` when the resource no longer exists."""
    pass
