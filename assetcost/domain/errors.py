"""
Error taxonomy for asset reconciliation and cost estimation.
Fatal errors abort a graph build; MissingPricingData only drops one report line.
"""
from typing import List


class AssetCostError(Exception):
    """Base class for all domain errors."""
    pass


class PayloadError(AssetCostError):
    """Raised when a single record's attributes cannot be read."""

    def __init__(self, message: str, record_name: str = ""):
        self.record_name = record_name
        if record_name:
            message = f"{message} (record: {record_name})"
        super().__init__(message)


class MalformedPayload(PayloadError):
    """Raised when a record payload is not a structured map."""
    pass


class UnexpectedShape(PayloadError):
    """Raised when a present field has the wrong type."""
    pass


class MissingField(PayloadError):
    """Raised when a field required for the resource kind is absent."""
    pass


class ReconciliationError(AssetCostError):
    """Raised when records cannot be linked into a consistent graph."""
    pass


class OrphanedReference(ReconciliationError):
    """Raised when child records are left without a parent after the full pass."""

    def __init__(self, orphans: List[str]):
        self.orphans = list(orphans)
        super().__init__(
            f"{len(self.orphans)} orphaned record(s) without a parent: "
            + ", ".join(self.orphans)
        )


class UnresolvedLink(ReconciliationError):
    """Raised when a resource references a network or subnetwork that does not exist."""
    pass


class DuplicateResource(ReconciliationError):
    """Raised when two records claim the same parent identity."""
    pass


class MissingPricingData(AssetCostError):
    """Raised when no tier schedule can be found for a resource shape."""
    pass
