"""
Domain models for the reconciled resource graph.
Defines instances, disks, networks and their children as produced by the asset builder.
"""
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field


STANDARD_TIER = "STANDARD"
PREMIUM_TIER = "PREMIUM"

_TIER_RANK = {STANDARD_TIER: 0, PREMIUM_TIER: 1}


def max_tier(current: str, observed: str) -> str:
    """Return the higher of two network tiers; PREMIUM dominates STANDARD."""
    if _TIER_RANK.get(observed, 0) > _TIER_RANK.get(current, 0):
        return observed
    return current


@dataclass
class NetworkInterface:
    """A network attachment of an instance."""
    name: str
    network_name: str
    subnetwork_name: Optional[str] = None
    network_tier: Optional[str] = None  # None means "use the project default"
    external_ips: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "network": self.network_name,
            "subnetwork": self.subnetwork_name,
            "network_tier": self.network_tier,
            "external_ips": list(self.external_ips),
        }


@dataclass
class Instance:
    """A virtual machine."""
    name: str
    zone: str
    region: str
    machine_type: str
    scheduling: str  # "Preemptible" | "OnDemand" | "" (caller supplies default)
    os: Optional[str] = None
    network_interfaces: List[NetworkInterface] = field(default_factory=list)
    licenses: List[str] = field(default_factory=list)  # licenses of the boot disk

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "zone": self.zone,
            "region": self.region,
            "machine_type": self.machine_type,
            "scheduling": self.scheduling,
            "os": self.os,
            "licenses": list(self.licenses),
            "network_interfaces": [nic.to_dict() for nic in self.network_interfaces],
        }


@dataclass
class Image:
    """A disk image. Its source disk name is only used while linking."""
    name: str
    licenses: List[str] = field(default_factory=list)
    size_gb: int = 0
    storage_regions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "licenses": list(self.licenses),
            "size_gb": self.size_gb,
            "storage_regions": list(self.storage_regions),
        }


@dataclass
class Disk:
    """A zonal or regional persistent disk."""
    name: str
    is_regional: bool
    region: str
    zone: Optional[str]
    size_gb: int
    disk_type: str
    source_image: Optional[Image] = None

    @property
    def zone_or_region(self) -> str:
        return self.region if self.is_regional or not self.zone else self.zone

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "is_regional": self.is_regional,
            "region": self.region,
            "zone": self.zone,
            "size_gb": self.size_gb,
            "disk_type": self.disk_type,
            "source_image": self.source_image.to_dict() if self.source_image else None,
        }


@dataclass
class Subnetwork:
    """A regional subnetwork. Its tier is derived during reconciliation."""
    name: str
    network_name: str
    region: str
    ip_range: str = ""
    tier: str = STANDARD_TIER

    def raise_tier(self, observed: str) -> None:
        """Apply an observed tier; the derived tier never goes down."""
        self.tier = max_tier(self.tier, observed)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "network": self.network_name,
            "region": self.region,
            "ip_range": self.ip_range,
            "tier": self.tier,
        }


@dataclass
class Firewall:
    name: str
    network_name: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"name": self.name, "network": self.network_name}


@dataclass
class Route:
    name: str
    network_name: str
    ip_range: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"name": self.name, "network": self.network_name, "ip_range": self.ip_range}


@dataclass
class Address:
    """A static or ephemeral IP address owned by a network."""
    address: str
    network_name: str
    region: str = "global"
    address_type: str = "EXTERNAL"
    status: str = "IN_USE"
    purpose: str = ""
    ephemeral: bool = False
    name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "address": self.address,
            "name": self.name,
            "network": self.network_name,
            "region": self.region,
            "address_type": self.address_type,
            "status": self.status,
            "purpose": self.purpose,
            "ephemeral": self.ephemeral,
        }


@dataclass
class Network:
    """A VPC network and everything that hangs off it."""
    name: str
    subnetworks: List[Subnetwork] = field(default_factory=list)
    firewalls: List[Firewall] = field(default_factory=list)
    routes: List[Route] = field(default_factory=list)
    addresses: List[Address] = field(default_factory=list)

    def subnetwork(self, name: str, region: Optional[str] = None) -> Optional[Subnetwork]:
        """
        Find a child subnetwork by name.

        Subnetwork names are only unique per region (auto-mode networks have a
        subnetwork named like the network in every region), so a region narrows
        the match when given.
        """
        for subnetwork in self.subnetworks:
            if subnetwork.name == name and (region is None or subnetwork.region == region):
                return subnetwork
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "subnetworks": [s.to_dict() for s in self.subnetworks],
            "firewalls": [f.to_dict() for f in self.firewalls],
            "routes": [r.to_dict() for r in self.routes],
            "addresses": [a.to_dict() for a in self.addresses],
        }


@dataclass
class ServiceAccountKey:
    name: str
    service_account_name: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"name": self.name, "service_account": self.service_account_name}


@dataclass
class ServiceAccount:
    name: str
    keys: List[ServiceAccountKey] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"name": self.name, "keys": [k.to_dict() for k in self.keys]}


@dataclass
class Service:
    """An enabled or disabled API service. Has no children."""
    name: str
    state: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"name": self.name, "state": self.state}


@dataclass
class ResourceGraph:
    """The fully linked resource graph of one project."""
    project_name: str = ""
    default_network_tier: str = STANDARD_TIER
    instances: List[Instance] = field(default_factory=list)
    disks: List[Disk] = field(default_factory=list)
    networks: List[Network] = field(default_factory=list)
    service_accounts: List[ServiceAccount] = field(default_factory=list)
    services: List[Service] = field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        """Entity counts, for logging and API responses."""
        return {
            "instances": len(self.instances),
            "disks": len(self.disks),
            "images": sum(1 for d in self.disks if d.source_image is not None),
            "networks": len(self.networks),
            "subnetworks": sum(len(n.subnetworks) for n in self.networks),
            "firewalls": sum(len(n.firewalls) for n in self.networks),
            "routes": sum(len(n.routes) for n in self.networks),
            "addresses": sum(len(n.addresses) for n in self.networks),
            "service_accounts": len(self.service_accounts),
            "service_account_keys": sum(len(s.keys) for s in self.service_accounts),
            "services": len(self.services),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "project_name": self.project_name,
            "default_network_tier": self.default_network_tier,
            "instances": [i.to_dict() for i in self.instances],
            "disks": [d.to_dict() for d in self.disks],
            "networks": [n.to_dict() for n in self.networks],
            "service_accounts": [s.to_dict() for s in self.service_accounts],
            "services": [s.to_dict() for s in self.services],
        }

    def canonical(self) -> Dict[str, Any]:
        """
        Order-independent form of the graph.

        Two graphs built from permutations of the same records have equal
        canonical forms even though their lists are in discovery order.
        """
        return _sort_nested(self.to_dict())


def _sort_nested(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _sort_nested(item) for key, item in value.items()}
    if isinstance(value, list):
        items = [_sort_nested(item) for item in value]
        return sorted(items, key=repr)
    return value
