"""
Raw resource records as emitted by the asset inventory.
Defines the record container and the closed set of resource kinds it can carry.
"""
from typing import Any, Dict, Mapping, Optional, Tuple, Union
from dataclasses import dataclass, field
from enum import Enum

from assetcost.domain.errors import MalformedPayload


Payload = Union[str, bytes, Mapping[str, Any]]


# Billing service ids from the Cloud Billing Catalog, keyed by API service name
BILLING_SERVICES: Dict[str, str] = {
    "compute.googleapis.com": "6F81-5844-456A",
    "container.googleapis.com": "CCD8-9BF1-090E",
    "monitoring.googleapis.com": "58CD-E7C3-72CA",
}

COMPUTE_SERVICE_ID = BILLING_SERVICES["compute.googleapis.com"]


class ResourceKind(Enum):
    """Resource kinds the asset builder knows how to place in the graph."""
    INSTANCE = "Instance"
    DISK = "Disk"
    REGION_DISK = "RegionDisk"
    IMAGE = "Image"
    NETWORK = "Network"
    SUBNETWORK = "Subnetwork"
    FIREWALL = "Firewall"
    ROUTE = "Route"
    ADDRESS = "Address"
    SERVICE_ACCOUNT = "ServiceAccount"
    SERVICE_ACCOUNT_KEY = "ServiceAccountKey"
    SERVICE = "Service"
    PROJECT = "Project"

    @property
    def resource_family(self) -> Optional[str]:
        """Billing resource family used when looking up SKUs."""
        return _RESOURCE_FAMILIES.get(self)


_RESOURCE_FAMILIES = {
    ResourceKind.INSTANCE: "Compute",
    ResourceKind.DISK: "Storage",
    ResourceKind.REGION_DISK: "Storage",
    ResourceKind.IMAGE: "Storage",
    ResourceKind.NETWORK: "Network",
    ResourceKind.SUBNETWORK: "Network",
    ResourceKind.FIREWALL: "Network",
    ResourceKind.ROUTE: "Network",
    ResourceKind.ADDRESS: "Network",
}

_KINDS_BY_NAME = {kind.value: kind for kind in ResourceKind}


def parse_type_tag(type_tag: str) -> Tuple[str, str]:
    """
    Split an asset type tag into its API service and base type.

    Args:
        type_tag: Tag of the form 'compute.googleapis.com/Instance'

    Returns:
        Tuple of (api_service, base_type)

    Raises:
        MalformedPayload: If the tag is not of the form service/BaseType
    """
    parts = type_tag.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise MalformedPayload(
            f"expected service/resource format for asset type but got '{type_tag}'"
        )
    return parts[0], parts[1]


def kind_for_type_tag(type_tag: str) -> Optional[ResourceKind]:
    """Return the ResourceKind for a type tag, or None if the kind is not handled."""
    _, base_type = parse_type_tag(type_tag)
    return _KINDS_BY_NAME.get(base_type)


@dataclass
class RawRecord:
    """
    An opaque resource descriptor prior to reconciliation.

    The payload is the provider's resource JSON, either as text or already
    decoded. Resource attributes live under its top-level 'data' key. The
    parsed attribute map is memoized on the record by the attribute accessor.
    """
    name: str
    type: str
    payload: Payload
    _resource: Optional[Dict[str, Any]] = field(
        default=None, init=False, repr=False, compare=False
    )

    @property
    def short_name(self) -> str:
        """Last path segment of the record's full resource name."""
        return self.name.rstrip("/").split("/")[-1]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "type": self.type,
            "payload": self.payload if not isinstance(self.payload, bytes) else self.payload.decode("utf-8"),
        }
