"""
Usage profiles.
Turns resource groups into the ceiling and projected usage quantities that get billed.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from assetcost.core.config import config
from assetcost.domain.resources import PREMIUM_TIER, Disk, Image
from assetcost.services.grouping import ResourceGroup


HOURS_PER_MONTH = 30 * 24


@dataclass(frozen=True)
class UsageProfile:
    """Ceiling and projected usage of one billable quantity, in a billing usage unit."""
    usage_unit: str  # same units as pricing expressions, e.g. 'h', 'GiBy.h', 'GiBy.mo'
    ceiling: float
    projected: float
    label: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "usage_unit": self.usage_unit,
            "ceiling": self.ceiling,
            "projected": self.projected,
            "label": self.label,
        }


@dataclass(frozen=True)
class MachineShape:
    """vCPU and memory of a machine type."""
    name: str
    cpu_count: int
    memory_mb: int
    is_shared_cpu: bool = False

    @property
    def memory_gib(self) -> float:
        return self.memory_mb / 1024.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "cpu_count": self.cpu_count,
            "memory_mb": self.memory_mb,
            "is_shared_cpu": self.is_shared_cpu,
        }


def instance_usage(
    group: ResourceGroup,
    shape: MachineShape,
    projected_hours: Optional[float] = None
) -> List[UsageProfile]:
    """
    vCPU-hours and GiB-hours of an instance group over a month.

    The ceiling assumes every instance runs all month; the projection
    assumes projected_hours of uptime (configured default if None).
    """
    hours = config.PROJECTED_HOURS_PER_MONTH if projected_hours is None else projected_hours
    count = group.count
    return [
        UsageProfile(
            usage_unit="h",
            ceiling=HOURS_PER_MONTH * shape.cpu_count * count,
            projected=hours * shape.cpu_count * count,
            label="cpu",
        ),
        UsageProfile(
            usage_unit="GiBy.h",
            ceiling=HOURS_PER_MONTH * shape.memory_gib * count,
            projected=hours * shape.memory_gib * count,
            label="memory",
        ),
    ]


def disk_usage(group: ResourceGroup) -> List[UsageProfile]:
    """GiB-months of a disk group. Provisioned space is billed whether used or not."""
    disk: Disk = group.representative
    space = disk.size_gb * group.count
    return [UsageProfile(usage_unit="GiBy.mo", ceiling=space, projected=space, label="diskspace")]


def image_usage(group: ResourceGroup) -> List[UsageProfile]:
    """GiB-months of stored images."""
    image: Image = group.representative
    space = image.size_gb * group.count
    return [UsageProfile(usage_unit="GiBy.mo", ceiling=space, projected=space, label="imagespace")]


def egress_usage(group: ResourceGroup, gib_per_month: Optional[float] = None) -> List[UsageProfile]:
    """
    External egress of a subnetwork group.

    Traffic is not part of the inventory, so every subnetwork is assumed to
    send gib_per_month (configured default if None) to the internet.
    """
    gib = config.EGRESS_GIB_PER_MONTH if gib_per_month is None else gib_per_month
    traffic = gib * group.count
    return [UsageProfile(usage_unit="GiBy", ceiling=traffic, projected=traffic, label="egress")]


def resource_groups_for_machine_type(machine_type: str) -> List[str]:
    """
    Billing resource groups of a machine type.

    Raises:
        ValueError: If the machine type name is not recognized
    """
    parts = machine_type.split("-")
    if len(parts) == 2:
        # e2 shared-core types are billed by cpu and ram
        if parts[0] == "e2":
            return ["CPU", "RAM"]
        # f1 and g1 are charged by instance
        if machine_type == "f1-micro":
            return ["F1Micro"]
        if machine_type == "g1-small":
            return ["G1Small"]
    elif len(parts) == 3:
        series, family = parts[0], parts[1]
        if series == "n1" and family == "standard":
            return ["N1Standard"]
        if series == "a2":
            return ["CPU", "RAM", "GPU"]
        return ["CPU", "RAM"]
    raise ValueError(f"unrecognised machine type name: {machine_type}")


_DISK_RESOURCE_GROUPS = {
    "pd-standard": "PDStandard",
    "pd-balanced": "SSD",
    "pd-ssd": "SSD",
    "pd-extreme": "SSD",
    "ssd": "SSD",
    "local-ssd": "LocalSSD",
}


def resource_group_for_disk_type(disk_type: str) -> str:
    """
    Billing resource group of a disk type.

    Raises:
        ValueError: If the disk type is unknown
    """
    try:
        return _DISK_RESOURCE_GROUPS[disk_type]
    except KeyError:
        raise ValueError(f"unknown disk type {disk_type}") from None


def resource_group_for_network_tier(tier: str) -> str:
    """Billing resource group of internet egress from a subnetwork of the given tier."""
    return "PremiumInternetEgress" if tier == PREMIUM_TIER else "StandardInternetEgress"
