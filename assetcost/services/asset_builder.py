"""
Asset reconciliation service.
Builds a linked resource graph from an unordered sequence of raw records.
"""
from collections import defaultdict
from typing import Callable, DefaultDict, Dict, Iterable, List, Optional, Tuple
import logging

from assetcost.core.config import config
from assetcost.domain.errors import (
    DuplicateResource,
    MissingField,
    OrphanedReference,
    PayloadError,
    UnexpectedShape,
    UnresolvedLink,
)
from assetcost.domain.records import RawRecord, ResourceKind, kind_for_type_tag
from assetcost.domain.resources import (
    Address,
    Disk,
    Firewall,
    Image,
    Instance,
    Network,
    ResourceGraph,
    Route,
    Service,
    ServiceAccount,
    ServiceAccountKey,
    Subnetwork,
)
from assetcost.services.attributes import AttributeAccessor, attributes, last_segment


logger = logging.getLogger(__name__)

# Network that owns addresses which do not name one
DEFAULT_NETWORK = "default"

# A child waiting for its parent: (record name, entity)
Pending = Tuple[str, object]


def disk_key(location: str, name: str) -> str:
    """Identity of a disk: disk names are only unique per zone or region."""
    return f"{location}/{name}"


def parse_disk_reference(url: str) -> str:
    """
    Turn an image's sourceDisk URL into a disk key.

    Args:
        url: e.g. 'projects/p/zones/europe-west1-b/disks/web-1'

    Raises:
        UnexpectedShape: If the URL names no zone or region
    """
    parts = url.rstrip("/").split("/")
    for marker in ("zones", "regions"):
        if marker in parts:
            index = parts.index(marker)
            if index + 1 < len(parts) - 1:
                return disk_key(parts[index + 1], parts[-1])
    raise UnexpectedShape(f"source disk reference has no zone or region: {url}")


class AssetGraphBuilder:
    """
    Reconciles raw records into a ResourceGraph in a single forward pass.

    Records may arrive in any order. A child whose parent has not been seen
    yet waits in a dangling pool keyed by the parent's identity; parents pull
    their waiting children when they arrive. After the pass, anything still
    dangling is an error, and instance network interfaces are resolved
    against the finished networks.

    The pools and indexes belong to one build() call and are reset before and
    after it, so a builder can be reused but not shared between threads.
    """

    def __init__(
        self,
        accessor: Optional[AttributeAccessor] = None,
        default_network_tier: Optional[str] = None
    ):
        """
        Initialize the builder.

        Args:
            accessor: Attribute accessor (shared default if None)
            default_network_tier: Tier for interfaces without an explicit one,
                unless a project record overrides it (config default if None)
        """
        self.accessor = accessor or attributes
        self.default_network_tier = (default_network_tier or config.DEFAULT_NETWORK_TIER).upper()
        self._handlers: Dict[ResourceKind, Callable[[RawRecord], None]] = {
            ResourceKind.INSTANCE: self._build_instance,
            ResourceKind.DISK: lambda record: self._build_disk(record, is_regional=False),
            ResourceKind.REGION_DISK: lambda record: self._build_disk(record, is_regional=True),
            ResourceKind.IMAGE: self._build_image,
            ResourceKind.NETWORK: self._build_network,
            ResourceKind.SUBNETWORK: self._build_subnetwork,
            ResourceKind.FIREWALL: self._build_firewall,
            ResourceKind.ROUTE: self._build_route,
            ResourceKind.ADDRESS: self._build_address,
            ResourceKind.SERVICE_ACCOUNT: self._build_service_account,
            ResourceKind.SERVICE_ACCOUNT_KEY: self._build_service_account_key,
            ResourceKind.SERVICE: self._build_service,
            ResourceKind.PROJECT: self._build_project,
        }
        missing = set(ResourceKind) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for resource kinds: {sorted(k.value for k in missing)}")
        self._reset()

    @property
    def handled_kinds(self) -> frozenset:
        return frozenset(self._handlers)

    def _reset(self) -> None:
        self._graph = ResourceGraph(default_network_tier=self.default_network_tier)
        self._project_tier: Optional[str] = None

        self._networks: Dict[str, Network] = {}
        self._disks: Dict[str, Disk] = {}
        self._service_accounts: Dict[str, ServiceAccount] = {}
        self._addresses: Dict[str, Address] = {}

        # Dangling pools, keyed by the identity of the missing parent
        self._dangling_routes: DefaultDict[str, List[Pending]] = defaultdict(list)
        self._dangling_subnetworks: DefaultDict[str, List[Pending]] = defaultdict(list)
        self._dangling_firewalls: DefaultDict[str, List[Pending]] = defaultdict(list)
        self._dangling_images: DefaultDict[str, List[Pending]] = defaultdict(list)
        self._dangling_keys: DefaultDict[str, List[Pending]] = defaultdict(list)

    def build(self, records: Iterable[RawRecord]) -> ResourceGraph:
        """
        Build a resource graph from raw records.

        Args:
            records: Raw records in any order. Records with an empty type are
                skipped; records of unhandled kinds are logged and skipped.

        Returns:
            Fully linked ResourceGraph

        Raises:
            PayloadError: If any record cannot be read (no partial graph is returned)
            ReconciliationError: If children are orphaned or links do not resolve
        """
        self._reset()
        try:
            handled = 0
            for record in records:
                if not record.type:
                    continue
                kind = self._kind_of(record)
                if kind is None:
                    logger.warning(f"Resource type {record.type} not handled yet, skipping {record.name}")
                    continue
                # Parse up front so a malformed payload aborts regardless of kind
                self.accessor.resource(record)
                logger.debug(f"Processing {kind.value} {record.name}")
                self._handlers[kind](record)
                handled += 1

            self._reconcile()
            logger.info(
                f"Built resource graph for project '{self._graph.project_name}' "
                f"from {handled} records: {self._graph.summary()}"
            )
            return self._graph
        finally:
            self._reset()

    def _kind_of(self, record: RawRecord) -> Optional[ResourceKind]:
        try:
            return kind_for_type_tag(record.type)
        except PayloadError as error:
            raise type(error)(str(error), record.name) from error

    # Handlers

    def _build_instance(self, record: RawRecord) -> None:
        accessor = self.accessor
        zone = accessor.zone(record)
        if not zone:
            raise MissingField("missing zone for Instance", record.name)
        machine_type = accessor.machine_type(record)
        if not machine_type:
            raise MissingField("missing machineType for Instance", record.name)
        region = accessor.single_region(record, ResourceKind.INSTANCE)
        nics = accessor.network_interfaces(record)

        instance = Instance(
            name=record.short_name,
            zone=zone,
            region=region,
            machine_type=machine_type,
            scheduling=accessor.scheduling_class(record),
            os=accessor.os_from_licenses(record),
            network_interfaces=nics,
            licenses=accessor.boot_disk_licenses(record),
        )
        self._graph.instances.append(instance)

        # External IPs of the instance are ephemeral unless an Address record claims them
        for nic in nics:
            for ip in nic.external_ips:
                if ip not in self._addresses:
                    self._addresses[ip] = Address(
                        address=ip,
                        network_name=nic.network_name,
                        region=region,
                        address_type="EXTERNAL",
                        status="IN_USE",
                        purpose="NAT_AUTO",
                        ephemeral=True,
                    )

    def _build_disk(self, record: RawRecord, is_regional: bool) -> None:
        accessor = self.accessor
        kind = ResourceKind.REGION_DISK if is_regional else ResourceKind.DISK
        name = accessor.get_str(record, "name") or record.short_name
        region = accessor.single_region(record, kind)
        zone = None if is_regional else accessor.zone(record)
        size_gb = accessor.storage_size_gb(record)
        if size_gb is None:
            raise MissingField(f"unable to determine storage size for {kind.value}", record.name)

        disk = Disk(
            name=name,
            is_regional=is_regional,
            region=region,
            zone=zone,
            size_gb=size_gb,
            disk_type=accessor.disk_type(record) or "",
        )
        key = disk_key(disk.zone_or_region, name)
        if key in self._disks:
            raise DuplicateResource(f"duplicate disk {key} (record: {record.name})")
        self._disks[key] = disk
        self._graph.disks.append(disk)

        for _, image in self._dangling_images.pop(key, []):
            self._attach_image(disk, image)

    def _build_image(self, record: RawRecord) -> None:
        accessor = self.accessor
        source_disk = accessor.get_str(record, "sourceDisk")
        if not source_disk:
            raise MissingField("missing sourceDisk for Image", record.name)
        try:
            key = parse_disk_reference(source_disk)
        except UnexpectedShape as error:
            raise UnexpectedShape(str(error), record.name) from error

        image = Image(
            name=accessor.get_str(record, "name") or record.short_name,
            licenses=accessor.licenses(record),
            size_gb=accessor.storage_size_gb(record) or 0,
            storage_regions=accessor.get_str_list(record, "storageLocations"),
        )
        disk = self._disks.get(key)
        if disk is not None:
            self._attach_image(disk, image)
        else:
            self._dangling_images[key].append((record.name, image))

    def _attach_image(self, disk: Disk, image: Image) -> None:
        # A disk can be the source of several images; keep the same one whatever the arrival order
        if disk.source_image is None or image.name > disk.source_image.name:
            if disk.source_image is not None:
                logger.debug(
                    f"Disk {disk.name} has several images, keeping {image.name} over {disk.source_image.name}"
                )
            disk.source_image = image

    def _build_network(self, record: RawRecord) -> None:
        name = record.short_name
        if name in self._networks:
            raise DuplicateResource(f"duplicate network name {name} (record: {record.name})")
        network = Network(name=name)
        network.routes.extend(route for _, route in self._dangling_routes.pop(name, []))
        network.subnetworks.extend(snw for _, snw in self._dangling_subnetworks.pop(name, []))
        network.firewalls.extend(fw for _, fw in self._dangling_firewalls.pop(name, []))
        self._networks[name] = network
        self._graph.networks.append(network)

    def _required_network(self, record: RawRecord, kind: ResourceKind) -> str:
        network_name = self.accessor.network_name(record)
        if not network_name:
            raise MissingField(f"missing network for {kind.value}", record.name)
        return network_name

    def _build_subnetwork(self, record: RawRecord) -> None:
        accessor = self.accessor
        network_name = self._required_network(record, ResourceKind.SUBNETWORK)
        region = accessor.get_str(record, "region")
        if not region:
            raise MissingField("missing region for Subnetwork", record.name)
        subnetwork = Subnetwork(
            name=accessor.get_str(record, "name") or record.short_name,
            network_name=network_name,
            region=last_segment(region),
            ip_range=accessor.get_str(record, "ipCidrRange") or "",
        )
        self._attach_or_dangle(record, network_name, subnetwork, "subnetworks", self._dangling_subnetworks)

    def _build_firewall(self, record: RawRecord) -> None:
        network_name = self._required_network(record, ResourceKind.FIREWALL)
        firewall = Firewall(
            name=self.accessor.get_str(record, "name") or record.short_name,
            network_name=network_name,
        )
        self._attach_or_dangle(record, network_name, firewall, "firewalls", self._dangling_firewalls)

    def _build_route(self, record: RawRecord) -> None:
        network_name = self._required_network(record, ResourceKind.ROUTE)
        route = Route(
            name=self.accessor.get_str(record, "name") or record.short_name,
            network_name=network_name,
            ip_range=self.accessor.get_str(record, "destRange") or "",
        )
        self._attach_or_dangle(record, network_name, route, "routes", self._dangling_routes)

    def _attach_or_dangle(
        self,
        record: RawRecord,
        network_name: str,
        child: object,
        attribute: str,
        pool: DefaultDict[str, List[Pending]]
    ) -> None:
        network = self._networks.get(network_name)
        if network is not None:
            getattr(network, attribute).append(child)
        else:
            pool[network_name].append((record.name, child))

    def _build_address(self, record: RawRecord) -> None:
        accessor = self.accessor
        address = accessor.get_str(record, "address")
        if not address:
            raise MissingField("missing address for Address", record.name)
        status = accessor.get_str(record, "status") or ""
        if status == "RESERVING":
            # Cost only depends on whether the address is in use
            status = "RESERVED"
        region = accessor.get_str(record, "region")
        existing = self._addresses.get(address)
        if existing is not None and not existing.ephemeral:
            raise DuplicateResource(f"duplicate address {address} (record: {record.name})")
        # Explicit records always win over ephemeral addresses seen on instances
        self._addresses[address] = Address(
            address=address,
            name=accessor.get_str(record, "name") or record.short_name,
            network_name=accessor.network_name(record) or DEFAULT_NETWORK,
            region=last_segment(region) if region else "global",
            address_type=accessor.get_str(record, "addressType") or "EXTERNAL",
            status=status,
            purpose=accessor.get_str(record, "purpose") or "",
            ephemeral=False,
        )

    def _build_service_account(self, record: RawRecord) -> None:
        name = self.accessor.service_account_name(record)
        if name in self._service_accounts:
            raise DuplicateResource(f"duplicate service account {name} (record: {record.name})")
        account = ServiceAccount(name=name)
        account.keys.extend(key for _, key in self._dangling_keys.pop(name, []))
        self._service_accounts[name] = account
        self._graph.service_accounts.append(account)

    def _build_service_account_key(self, record: RawRecord) -> None:
        account_name = self.accessor.service_account_name(record)
        key = ServiceAccountKey(name=record.short_name, service_account_name=account_name)
        account = self._service_accounts.get(account_name)
        if account is not None:
            account.keys.append(key)
        else:
            self._dangling_keys[account_name].append((record.name, key))

    def _build_service(self, record: RawRecord) -> None:
        self._graph.services.append(Service(
            name=self.accessor.get_str(record, "name") or record.short_name,
            state=self.accessor.get_str(record, "state") or "",
        ))

    def _build_project(self, record: RawRecord) -> None:
        # There are two project records, one from the resource manager and one
        # from compute; they carry different fields.
        project_id = self.accessor.get_str(record, "projectId")
        if project_id:
            self._graph.project_name = project_id
        tier = self.accessor.get_str(record, "defaultNetworkTier")
        if tier:
            self._project_tier = tier.upper()

    # Reconciliation

    def _reconcile(self) -> None:
        self._check_orphans()

        default_tier = self._project_tier or self.default_network_tier
        self._graph.default_network_tier = default_tier
        for network in self._graph.networks:
            for subnetwork in network.subnetworks:
                subnetwork.tier = default_tier

        for instance in self._graph.instances:
            for nic in instance.network_interfaces:
                network = self._networks.get(nic.network_name)
                if network is None:
                    raise UnresolvedLink(
                        f"instance {instance.name} interface {nic.name} references "
                        f"unknown network {nic.network_name}"
                    )
                if not nic.subnetwork_name:
                    continue
                subnetwork = network.subnetwork(nic.subnetwork_name, instance.region)
                if subnetwork is None:
                    raise UnresolvedLink(
                        f"instance {instance.name} interface {nic.name} references "
                        f"unknown subnetwork {nic.subnetwork_name} in {instance.region} "
                        f"of network {nic.network_name}"
                    )
                subnetwork.raise_tier(nic.network_tier or default_tier)

        for ip, address in self._addresses.items():
            network = self._networks.get(address.network_name)
            if network is None:
                raise UnresolvedLink(f"could not find network {address.network_name} for address {ip}")
            network.addresses.append(address)

    def _check_orphans(self) -> None:
        pools = (
            ("route", "network", self._dangling_routes),
            ("subnetwork", "network", self._dangling_subnetworks),
            ("firewall", "network", self._dangling_firewalls),
            ("image", "disk", self._dangling_images),
            ("service account key", "service account", self._dangling_keys),
        )
        orphans = []
        for child_label, parent_label, pool in pools:
            for parent, pending in pool.items():
                for record_name, _ in pending:
                    orphans.append(f"{child_label} {record_name} (missing {parent_label} {parent})")
        if orphans:
            raise OrphanedReference(sorted(orphans))


def build_graph(records: Iterable[RawRecord], default_network_tier: Optional[str] = None) -> ResourceGraph:
    """
    Build a resource graph with a fresh builder.

    Args:
        records: Raw records in any order
        default_network_tier: Optional override of the configured default tier

    Returns:
        Fully linked ResourceGraph
    """
    return AssetGraphBuilder(default_network_tier=default_network_tier).build(records)


HANDLED_KINDS = AssetGraphBuilder().handled_kinds
