"""
Attribute accessor service.
Parses raw record payloads once and exposes typed, named fields on demand.
"""
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, Union
import json
import logging
import re

from assetcost.core.config import config
from assetcost.domain.errors import MalformedPayload, MissingField, UnexpectedShape
from assetcost.domain.os_choice import os_from_license_name
from assetcost.domain.records import RawRecord, ResourceKind
from assetcost.domain.resources import NetworkInterface


logger = logging.getLogger(__name__)

# Zones look like europe-west1-b; the region is the zone without the letter suffix.
_ZONE_SUFFIX = re.compile(r"^(?P<region>.+)-[a-z]$")

GIB = 1024 * 1024 * 1024


def last_segment(value: str) -> str:
    """Return the final '/'-delimited segment of a resource URL or path."""
    return value.rstrip("/").split("/")[-1]


def region_from_zone(zone: str) -> str:
    """
    Derive a region from a zone name.

    Args:
        zone: Zone name such as 'europe-west1-b'

    Returns:
        Region name such as 'europe-west1'

    Raises:
        UnexpectedShape: If the zone has no trailing '-<letter>' suffix
    """
    match = _ZONE_SUFFIX.match(zone)
    if not match:
        raise UnexpectedShape(f"cannot derive a region from zone '{zone}'")
    return match.group("region")


class AttributeAccessor:
    """
    Typed access to the attributes of raw records.

    The payload of each record is parsed at most once; the parsed map is kept
    on the record itself, so the accessor holds no state of its own and a
    single instance can be shared.
    """

    def resource(self, record: RawRecord) -> Dict[str, Any]:
        """
        Return the parsed attribute map of a record, parsing it on first use.

        Raises:
            MalformedPayload: If the payload is not JSON, or not a map with a
                'data' map inside
        """
        if record._resource is None:
            record._resource = self._parse(record)
        return record._resource

    def _parse(self, record: RawRecord) -> Dict[str, Any]:
        payload = record.payload
        if isinstance(payload, (str, bytes)):
            try:
                decoded = json.loads(payload)
            except ValueError as error:
                raise MalformedPayload(f"payload is not valid JSON: {error}", record.name) from error
        else:
            decoded = payload

        if not isinstance(decoded, Mapping):
            raise MalformedPayload(
                f"expected payload to be a map but it is a {type(decoded).__name__}",
                record.name
            )
        data = decoded.get("data")
        if not isinstance(data, Mapping):
            raise MalformedPayload(
                f"expected resource[data] to be a map but it is a {type(data).__name__}",
                record.name
            )
        return dict(data)

    def get(self, record: RawRecord, path: str) -> Optional[Any]:
        """
        Look up a dotted attribute path such as 'scheduling.preemptible'.

        Returns:
            The value, or None if any segment of the path is absent

        Raises:
            UnexpectedShape: If an intermediate segment exists but is not a map
        """
        current: Any = self.resource(record)
        walked = []
        for key in path.split("."):
            if walked and not isinstance(current, Mapping):
                raise UnexpectedShape(
                    f"expected {'.'.join(walked)} to be a map but it is a {type(current).__name__}",
                    record.name
                )
            walked.append(key)
            current = current.get(key)
            if current is None:
                return None
        return current

    def _typed(self, record: RawRecord, path: str, expected: Union[Type, Tuple[Type, ...]], label: str) -> Optional[Any]:
        value = self.get(record, path)
        if value is None:
            return None
        # bool is an int subclass; never accept it where a number or string is expected
        if not isinstance(value, expected) or (isinstance(value, bool) and bool not in _as_tuple(expected)):
            raise UnexpectedShape(
                f"expected {path} to be a {label} but it is a {type(value).__name__}",
                record.name
            )
        return value

    def get_str(self, record: RawRecord, path: str) -> Optional[str]:
        return self._typed(record, path, str, "string")

    def get_bool(self, record: RawRecord, path: str) -> Optional[bool]:
        return self._typed(record, path, bool, "boolean")

    def get_list(self, record: RawRecord, path: str) -> Optional[List[Any]]:
        return self._typed(record, path, list, "list")

    def get_map(self, record: RawRecord, path: str) -> Optional[Mapping[str, Any]]:
        return self._typed(record, path, Mapping, "map")

    def get_int(self, record: RawRecord, path: str) -> Optional[int]:
        """
        Read an integer field. The asset inventory encodes int64 values as
        decimal strings, so numeric strings are accepted too.
        """
        value = self._typed(record, path, (int, str), "number")
        if value is None or isinstance(value, int):
            return value
        try:
            return int(value)
        except ValueError as error:
            raise UnexpectedShape(f"expected {path} to be numeric but got '{value}'", record.name) from error

    def get_str_list(self, record: RawRecord, path: str) -> List[str]:
        """Read a list of strings; absent lists read as empty."""
        values = self.get_list(record, path) or []
        for value in values:
            if not isinstance(value, str):
                raise UnexpectedShape(
                    f"expected entries of {path} to be strings but found a {type(value).__name__}",
                    record.name
                )
        return list(values)

    # Derived accessors

    def zone(self, record: RawRecord) -> Optional[str]:
        zone = self.get_str(record, "zone")
        return last_segment(zone) if zone else None

    def locations(self, record: RawRecord) -> List[str]:
        """
        Resolve where a resource lives.

        An explicit region wins; otherwise the region is derived from the
        zone; otherwise the storage locations of a multi-region resource are
        returned. Returns an empty list if none of these fields is present.
        """
        region = self.get_str(record, "region")
        if region:
            return [last_segment(region)]
        zone = self.zone(record)
        if zone:
            try:
                return [region_from_zone(zone)]
            except UnexpectedShape as error:
                raise UnexpectedShape(str(error), record.name) from error
        return self.get_str_list(record, "storageLocations")

    def single_region(self, record: RawRecord, kind: ResourceKind) -> str:
        """
        Resolve exactly one region for a resource that needs a location.

        Raises:
            MissingField: If the record has neither region, zone nor storage locations
            UnexpectedShape: If the record spans more than one region
        """
        regions = self.locations(record)
        if not regions:
            raise MissingField(f"missing both zone and region for {kind.value}", record.name)
        if len(regions) > 1:
            raise UnexpectedShape(
                f"expected a single region for {kind.value} but found {', '.join(regions)}",
                record.name
            )
        return regions[0]

    def scheduling_class(self, record: RawRecord) -> str:
        """
        Map the scheduling block to a billing usage type.

        Returns:
            'Preemptible', 'OnDemand', or '' if preemptibility is not stated
        """
        preemptible = self.get_bool(record, "scheduling.preemptible")
        if preemptible is None:
            return ""
        return "Preemptible" if preemptible else "OnDemand"

    def machine_type(self, record: RawRecord) -> Optional[str]:
        machine_type = self.get_str(record, "machineType")
        return last_segment(machine_type) if machine_type else None

    def disk_type(self, record: RawRecord) -> Optional[str]:
        disk_type = self.get_str(record, "type")
        return last_segment(disk_type) if disk_type else None

    def storage_size_gb(self, record: RawRecord) -> Optional[int]:
        """
        Storage size in GiB.

        Images report their archive size in bytes (4419062592 for a 4.12 GB
        image); disks report sizeGb directly.
        """
        archive_bytes = self.get_int(record, "archiveSizeBytes")
        if archive_bytes is not None:
            return archive_bytes // GIB
        size_gb = self.get_int(record, "sizeGb")
        if size_gb is not None:
            return size_gb
        return self.get_int(record, "diskSizeGb")

    def network_name(self, record: RawRecord) -> Optional[str]:
        network = self.get_str(record, "network")
        return last_segment(network) if network else None

    def service_account_name(self, record: RawRecord) -> str:
        """
        Account e-mail of a service account or one of its keys.

        Names have the form projects/<project>/serviceAccounts/<email>, with
        keys/<id> appended for keys.

        Raises:
            MissingField: If the record has no name
            UnexpectedShape: If the name does not have the expected form
        """
        name = self.get_str(record, "name")
        if not name:
            raise MissingField("missing name for service account or key", record.name)
        parts = name.split("/")
        if len(parts) < 4:
            raise UnexpectedShape(
                f"unexpected name format for service account or key: {name}",
                record.name
            )
        return parts[3]

    def network_interfaces(self, record: RawRecord) -> List[NetworkInterface]:
        """
        Network attachments of an instance.

        The tier of an interface is the last networkTier among its access
        configs; interfaces without one use the project default later on.

        Raises:
            MissingField: If an interface does not name its network
            UnexpectedShape: If interfaces or access configs are not maps
        """
        interfaces = []
        for index, raw in enumerate(self.get_list(record, "networkInterfaces") or []):
            if not isinstance(raw, Mapping):
                raise UnexpectedShape(
                    f"expected networkInterfaces[{index}] to be a map but it is a {type(raw).__name__}",
                    record.name
                )
            network = raw.get("network")
            if not isinstance(network, str) or not network:
                raise MissingField(f"networkInterfaces[{index}] has no network", record.name)
            subnetwork = raw.get("subnetwork")
            tier = None
            external_ips = []
            for config_index, access_config in enumerate(raw.get("accessConfigs") or []):
                if not isinstance(access_config, Mapping):
                    raise UnexpectedShape(
                        f"expected networkInterfaces[{index}].accessConfigs[{config_index}] to be a map",
                        record.name
                    )
                tier = access_config.get("networkTier") or tier
                if access_config.get("natIP"):
                    external_ips.append(access_config["natIP"])
            interfaces.append(NetworkInterface(
                name=raw.get("name") or f"nic{index}",
                network_name=last_segment(network),
                subnetwork_name=last_segment(subnetwork) if isinstance(subnetwork, str) and subnetwork else None,
                network_tier=tier.upper() if isinstance(tier, str) else None,
                external_ips=external_ips,
            ))
        return interfaces

    def licenses(self, record: RawRecord) -> List[str]:
        return self.get_str_list(record, "licenses")

    def boot_disk_licenses(self, record: RawRecord) -> List[str]:
        """Licenses of an instance's first attached disk."""
        disks = self.get_list(record, "disks") or []
        if not disks:
            return []
        first = disks[0]
        if not isinstance(first, Mapping):
            raise UnexpectedShape(
                f"expected disks[0] to be a map but it is a {type(first).__name__}",
                record.name
            )
        licenses = first.get("licenses") or []
        if not isinstance(licenses, list) or not all(isinstance(lic, str) for lic in licenses):
            raise UnexpectedShape("expected disks[0].licenses to be a list of strings", record.name)
        return list(licenses)

    def os_from_licenses(self, record: RawRecord, fallback: Optional[str] = None) -> Optional[str]:
        """
        OS name of an instance, from the first license of its first disk.

        Returns None when the instance has no licensed disk. Unknown license
        prefixes map to the configured fallback OS.
        """
        licenses = self.boot_disk_licenses(record)
        if not licenses:
            return None
        return os_from_license_name(licenses[0], fallback or config.FALLBACK_OS)


def _as_tuple(expected: Union[Type, Tuple[Type, ...]]) -> Tuple[Type, ...]:
    return expected if isinstance(expected, tuple) else (expected,)


# Shared accessor; it keeps no state between records.
attributes = AttributeAccessor()
