"""
Resource grouping.
Collapses resources that would be billed identically into counted groups.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Union

from assetcost.domain.errors import MissingField
from assetcost.domain.resources import Disk, Image, Instance, ResourceGraph, Subnetwork


Groupable = Union[Instance, Disk, Image, Subnetwork]

DEFAULT_SCHEDULING = "OnDemand"


@dataclass(frozen=True)
class ResourceGroup:
    """A representative resource and how many identical ones it stands for."""
    representative: Groupable
    count: int
    fingerprint: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "fingerprint": self.fingerprint,
            "count": self.count,
            "representative": self.representative.to_dict(),
        }


@dataclass
class GraphGroups:
    """Groups of every billable resource type of a graph."""
    instances: List[ResourceGroup] = field(default_factory=list)
    disks: List[ResourceGroup] = field(default_factory=list)
    images: List[ResourceGroup] = field(default_factory=list)
    subnetworks: List[ResourceGroup] = field(default_factory=list)

    def all(self) -> List[ResourceGroup]:
        """All groups, instances first, then disks, images and subnetworks."""
        return self.instances + self.disks + self.images + self.subnetworks


def fingerprint(resource: Groupable) -> str:
    """
    Billing identity of a resource.

    Instances: 'region:machine_type:scheduling:os', where a missing
    scheduling class counts as OnDemand.
    Disks: 'region:size:disk_type', plus ':img(name:size)' when the disk has a
    source image.
    Images: 'storage_regions:image:size', storage regions sorted and joined by '+'.
    Subnetworks: 'region:subnet:tier'.

    Raises:
        MissingField: If the region or the machine/disk shape is missing
        TypeError: If the resource is of a type that is not billed by group
    """
    if isinstance(resource, Instance):
        if not resource.region:
            raise MissingField(f"missing region for instance {resource.name}")
        if not resource.machine_type:
            raise MissingField(f"missing machine type for instance {resource.name}")
        scheduling = resource.scheduling or DEFAULT_SCHEDULING
        return f"{resource.region}:{resource.machine_type}:{scheduling}:{resource.os or ''}"

    if isinstance(resource, Disk):
        if not resource.region:
            raise MissingField(f"missing region for disk {resource.name}")
        if not resource.disk_type:
            raise MissingField(f"missing disk type for disk {resource.name}")
        key = f"{resource.region}:{resource.size_gb}:{resource.disk_type}"
        if resource.source_image is not None:
            key += f":img({resource.source_image.name}:{resource.source_image.size_gb})"
        return key

    if isinstance(resource, Image):
        # An image without storage locations still groups; pricing reports it
        return f"{'+'.join(sorted(resource.storage_regions))}:image:{resource.size_gb}"

    if isinstance(resource, Subnetwork):
        if not resource.region:
            raise MissingField(f"missing region for subnetwork {resource.name}")
        return f"{resource.region}:subnet:{resource.tier}"

    raise TypeError(f"cannot fingerprint {type(resource).__name__}")


def group_resources(resources: Iterable[Groupable]) -> List[ResourceGroup]:
    """
    Group resources by fingerprint.

    Groups appear in the order their first member was seen; the first member
    of each group is its representative.
    """
    representatives: Dict[str, Groupable] = {}
    counts: Dict[str, int] = {}
    for resource in resources:
        key = fingerprint(resource)
        if key not in representatives:
            representatives[key] = resource
            counts[key] = 0
        counts[key] += 1
    return [
        ResourceGroup(representative=representatives[key], count=counts[key], fingerprint=key)
        for key in representatives
    ]


def group_graph(graph: ResourceGraph) -> GraphGroups:
    """Group the instances, disks, images and subnetworks of a graph."""
    return GraphGroups(
        instances=group_resources(graph.instances),
        disks=group_resources(graph.disks),
        images=group_resources(disk.source_image for disk in graph.disks if disk.source_image is not None),
        subnetworks=group_resources(
            subnetwork for network in graph.networks for subnetwork in network.subnetworks
        ),
    )
