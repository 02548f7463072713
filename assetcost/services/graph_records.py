"""
Graph serializer.
Turns a reconciled resource graph back into raw asset records that rebuild it.
"""
from typing import Any, Dict, List
import logging

from assetcost.domain.records import RawRecord
from assetcost.domain.resources import Disk, Image, Instance, NetworkInterface, ResourceGraph


logger = logging.getLogger(__name__)

COMPUTE = "compute.googleapis.com"
IAM = "iam.googleapis.com"


def _record(type_tag: str, name: str, data: Dict[str, Any]) -> RawRecord:
    service = type_tag.split("/")[0]
    return RawRecord(name=f"//{service}/{name}", type=type_tag, payload={"data": data})


def _nic_data(nic: NetworkInterface, project: str, region: str) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "name": nic.name,
        "network": f"projects/{project}/global/networks/{nic.network_name}",
    }
    if nic.subnetwork_name:
        data["subnetwork"] = f"projects/{project}/regions/{region}/subnetworks/{nic.subnetwork_name}"

    access_configs = []
    for ip in nic.external_ips:
        access_config = {"name": "External NAT", "natIP": ip}
        if nic.network_tier:
            access_config["networkTier"] = nic.network_tier
        access_configs.append(access_config)
    if not access_configs and nic.network_tier:
        access_configs.append({"name": "External NAT", "networkTier": nic.network_tier})
    if access_configs:
        data["accessConfigs"] = access_configs
    return data


def _instance_record(instance: Instance, project: str) -> RawRecord:
    data: Dict[str, Any] = {
        "name": instance.name,
        "zone": f"projects/{project}/zones/{instance.zone}",
        "region": f"projects/{project}/regions/{instance.region}",
        "machineType": f"projects/{project}/zones/{instance.zone}/machineTypes/{instance.machine_type}",
        "networkInterfaces": [_nic_data(nic, project, instance.region) for nic in instance.network_interfaces],
    }
    if instance.scheduling:
        data["scheduling"] = {"preemptible": instance.scheduling == "Preemptible"}
    if instance.licenses:
        data["disks"] = [{"boot": True, "licenses": list(instance.licenses)}]
    return _record(
        f"{COMPUTE}/Instance",
        f"projects/{project}/zones/{instance.zone}/instances/{instance.name}",
        data
    )


def _disk_path(disk: Disk, project: str) -> str:
    if disk.is_regional:
        return f"projects/{project}/regions/{disk.region}/disks/{disk.name}"
    return f"projects/{project}/zones/{disk.zone}/disks/{disk.name}"


def _disk_record(disk: Disk, project: str) -> RawRecord:
    data: Dict[str, Any] = {
        "name": disk.name,
        "region": f"projects/{project}/regions/{disk.region}",
        "sizeGb": str(disk.size_gb),
    }
    location = f"regions/{disk.region}" if disk.is_regional else f"zones/{disk.zone}"
    if not disk.is_regional:
        data["zone"] = f"projects/{project}/zones/{disk.zone}"
    if disk.disk_type:
        data["type"] = f"projects/{project}/{location}/diskTypes/{disk.disk_type}"
    type_tag = f"{COMPUTE}/RegionDisk" if disk.is_regional else f"{COMPUTE}/Disk"
    return _record(type_tag, _disk_path(disk, project), data)


def _image_record(image: Image, disk: Disk, project: str) -> RawRecord:
    return _record(
        f"{COMPUTE}/Image",
        f"projects/{project}/global/images/{image.name}",
        {
            "name": image.name,
            "sourceDisk": _disk_path(disk, project),
            "diskSizeGb": str(image.size_gb),
            "licenses": list(image.licenses),
            "storageLocations": list(image.storage_regions),
        }
    )


def graph_to_records(graph: ResourceGraph) -> List[RawRecord]:
    """
    Serialize a resource graph into raw records.

    Building the returned records yields a graph equal to the input (up to
    list order, see ResourceGraph.canonical()). Ephemeral addresses are not
    emitted as records; they come back from the instances' external IPs.

    Args:
        graph: Reconciled resource graph

    Returns:
        List of RawRecord with Cloud Asset Inventory type tags
    """
    project = graph.project_name or "project"
    records: List[RawRecord] = []

    if graph.project_name:
        records.append(_record(
            "cloudresourcemanager.googleapis.com/Project",
            f"projects/{graph.project_name}",
            {"projectId": graph.project_name}
        ))
    records.append(_record(
        f"{COMPUTE}/Project",
        f"projects/{project}",
        {"name": project, "defaultNetworkTier": graph.default_network_tier}
    ))

    for network in graph.networks:
        records.append(_record(
            f"{COMPUTE}/Network",
            f"projects/{project}/global/networks/{network.name}",
            {"name": network.name}
        ))
        network_url = f"projects/{project}/global/networks/{network.name}"
        for subnetwork in network.subnetworks:
            records.append(_record(
                f"{COMPUTE}/Subnetwork",
                f"projects/{project}/regions/{subnetwork.region}/subnetworks/{subnetwork.name}",
                {
                    "name": subnetwork.name,
                    "network": network_url,
                    "region": f"projects/{project}/regions/{subnetwork.region}",
                    "ipCidrRange": subnetwork.ip_range,
                }
            ))
        for firewall in network.firewalls:
            records.append(_record(
                f"{COMPUTE}/Firewall",
                f"projects/{project}/global/firewalls/{firewall.name}",
                {"name": firewall.name, "network": network_url}
            ))
        for route in network.routes:
            records.append(_record(
                f"{COMPUTE}/Route",
                f"projects/{project}/global/routes/{route.name}",
                {"name": route.name, "network": network_url, "destRange": route.ip_range}
            ))
        for address in network.addresses:
            if address.ephemeral:
                continue
            data = {
                "name": address.name,
                "address": address.address,
                "network": network_url,
                "addressType": address.address_type,
                "status": address.status,
                "purpose": address.purpose,
            }
            if address.region != "global":
                data["region"] = f"projects/{project}/regions/{address.region}"
            records.append(_record(
                f"{COMPUTE}/Address",
                f"projects/{project}/regions/{address.region}/addresses/{address.name or address.address}",
                data
            ))

    for disk in graph.disks:
        records.append(_disk_record(disk, project))
        if disk.source_image is not None:
            records.append(_image_record(disk.source_image, disk, project))

    for instance in graph.instances:
        records.append(_instance_record(instance, project))

    for account in graph.service_accounts:
        account_path = f"projects/{project}/serviceAccounts/{account.name}"
        records.append(_record(f"{IAM}/ServiceAccount", account_path, {"name": account_path}))
        for key in account.keys:
            key_path = f"{account_path}/keys/{key.name}"
            records.append(_record(f"{IAM}/ServiceAccountKey", key_path, {"name": key_path}))

    for service in graph.services:
        records.append(_record(
            "serviceusage.googleapis.com/Service",
            f"projects/{project}/services/{service.name}",
            {"name": service.name, "state": service.state}
        ))

    logger.debug(f"Serialized graph of project '{graph.project_name}' into {len(records)} records")
    return records
