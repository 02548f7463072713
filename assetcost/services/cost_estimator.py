"""
Cost estimator service.
Converts a reconciled resource graph into a monthly cost report using a price catalog.
"""
from typing import Dict, List, Optional
import logging

from assetcost.core.config import config
from assetcost.domain.cost_models import CostReport, UnpricedResource
from assetcost.domain.errors import MissingPricingData
from assetcost.domain.os_choice import OsChoice, os_choice_by_name
from assetcost.domain.records import COMPUTE_SERVICE_ID, ResourceKind
from assetcost.domain.resources import Disk, Image, Instance, ResourceGraph, Subnetwork
from assetcost.pricing.catalog import PriceCatalog, PriceQuery
from assetcost.services.billing import TierSchedule, schedule_problems, tiered_cost
from assetcost.services.cost_lines import CostLine, assemble, resource_type_of
from assetcost.services.grouping import DEFAULT_SCHEDULING, ResourceGroup, group_graph
from assetcost.services.usage import (
    UsageProfile,
    disk_usage,
    egress_usage,
    image_usage,
    instance_usage,
    resource_group_for_disk_type,
    resource_group_for_network_tier,
    resource_groups_for_machine_type,
)


logger = logging.getLogger(__name__)

LICENSE_FAMILY = "License"
IMAGE_RESOURCE_GROUP = "StorageImage"


class CostEstimator:
    """Service for estimating monthly costs of a resource graph."""

    def __init__(
        self,
        catalog: PriceCatalog,
        projected_hours: Optional[float] = None,
        egress_gib_per_month: Optional[float] = None
    ):
        """
        Initialize cost estimator.

        Args:
            catalog: Price catalog to look schedules and machine shapes up in
            projected_hours: Expected monthly uptime of instances (config default if None)
            egress_gib_per_month: Internet egress per subnetwork (config default if None)
        """
        self.catalog = catalog
        self.projected_hours = (
            config.PROJECTED_HOURS_PER_MONTH if projected_hours is None else projected_hours
        )
        self.egress_gib_per_month = (
            config.EGRESS_GIB_PER_MONTH if egress_gib_per_month is None else egress_gib_per_month
        )

    def estimate(self, graph: ResourceGraph) -> CostReport:
        """
        Estimate costs for a resource graph.

        Resources are grouped by fingerprint and each group is priced once.
        A group that cannot be priced is logged and listed as unpriced; the
        rest of the report still completes.

        Args:
            graph: Reconciled resource graph

        Returns:
            CostReport with one line per priced group and matching schedule
        """
        report = CostReport(currency=config.REPORT_CURRENCY, project_name=graph.project_name)

        for group in group_graph(graph).all():
            try:
                lines = self._price_group(group)
            except MissingPricingData as error:
                logger.warning(f"Could not price {group.fingerprint}: {error}")
                report.unpriced.append(UnpricedResource(
                    resource_type=resource_type_of(group),
                    spec=group.fingerprint,
                    count=group.count,
                    reason=str(error),
                ))
                continue
            for line in lines:
                if line.currency != report.currency:
                    logger.warning(
                        f"{line.spec} is priced in {line.currency}, the report is in {report.currency}"
                    )
            report.lines.extend(lines)

        logger.info(
            f"Estimated {len(report.lines)} cost lines for project '{graph.project_name}' "
            f"({len(report.unpriced)} unpriced groups)"
        )
        return report

    def _price_group(self, group: ResourceGroup) -> List[CostLine]:
        representative = group.representative
        optional_queries: List[PriceQuery] = []
        if isinstance(representative, Instance):
            queries = self._instance_queries(representative)
            shape = self.catalog.machine_shape(representative.machine_type)
            if shape is None:
                raise MissingPricingData(f"unknown machine type {representative.machine_type}")
            usages = instance_usage(group, shape, self.projected_hours)
            license_query = self._license_query(representative)
            if license_query is not None:
                optional_queries.append(license_query)
        elif isinstance(representative, Disk):
            queries = [self._disk_query(representative)]
            usages = disk_usage(group)
        elif isinstance(representative, Image):
            queries = [self._image_query(representative)]
            usages = image_usage(group)
        else:
            queries = [self._egress_query(representative)]
            usages = egress_usage(group, self.egress_gib_per_month)

        lines = []
        for query in queries:
            schedules = self.catalog.find_schedules(query)
            if not schedules:
                raise MissingPricingData(
                    f"no price found for resource group {query.resource_group} "
                    f"in {', '.join(query.regions)}"
                )
            lines.extend(self._bill(group, schedules, usages))
        if not lines:
            raise MissingPricingData("no price matches the usage units of this resource")

        # Free operating systems have no license SKU
        for query in optional_queries:
            schedules = self.catalog.find_schedules(query)
            if not schedules:
                logger.debug(f"No {query.resource_family} price for {query.resource_group}, not charging for it")
                continue
            lines.extend(self._bill(group, schedules, usages))
        return lines

    def _bill(
        self,
        group: ResourceGroup,
        schedules: Dict[str, TierSchedule],
        usages: List[UsageProfile]
    ) -> List[CostLine]:
        lines = []
        for rate_id in sorted(schedules):
            schedule = schedules[rate_id]
            usage = _usage_for(schedule, usages)
            if usage is None:
                logger.debug(f"No usage in {schedule.usage_unit} for SKU {rate_id}, skipping")
                continue
            self._check_schedule(rate_id, schedule)
            try:
                cost = tiered_cost(schedule, usage.ceiling, usage.projected)
            except ValueError as error:
                raise MissingPricingData(f"SKU {rate_id}: {error}") from error
            lines.append(assemble(
                group,
                usage,
                cost,
                currency=schedule.cost_currency(config.REPORT_CURRENCY),
                spec_suffix=schedule.description or rate_id,
            ))
        return lines

    def _instance_queries(self, instance: Instance) -> List[PriceQuery]:
        try:
            resource_groups = resource_groups_for_machine_type(instance.machine_type)
        except ValueError as error:
            raise MissingPricingData(str(error)) from error
        return [
            PriceQuery(
                service_id=COMPUTE_SERVICE_ID,
                resource_family=ResourceKind.INSTANCE.resource_family,
                regions=[instance.region],
                resource_group=resource_group,
                usage_type=instance.scheduling or DEFAULT_SCHEDULING,
            )
            for resource_group in resource_groups
        ]

    def _license_query(self, instance: Instance) -> Optional[PriceQuery]:
        choice = os_choice_by_name(instance.os or "")
        if choice is OsChoice.UNSPECIFIED:
            return None
        # License SKUs are global
        return PriceQuery(
            service_id=COMPUTE_SERVICE_ID,
            resource_family=LICENSE_FAMILY,
            regions=[],
            resource_group=choice.resource_group,
        )

    def _disk_query(self, disk: Disk) -> PriceQuery:
        try:
            resource_group = resource_group_for_disk_type(disk.disk_type)
        except ValueError as error:
            raise MissingPricingData(str(error)) from error
        # Regional disks have their own SKUs, described as 'Regional ...'
        return PriceQuery(
            service_id=COMPUTE_SERVICE_ID,
            resource_family=ResourceKind.DISK.resource_family,
            regions=[disk.region],
            resource_group=resource_group,
            description_prefix="Regional" if disk.is_regional else None,
            description_excludes=None if disk.is_regional else "Regional",
        )

    def _image_query(self, image: Image) -> PriceQuery:
        if not image.storage_regions:
            raise MissingPricingData(f"image {image.name} has no storage location")
        return PriceQuery(
            service_id=COMPUTE_SERVICE_ID,
            resource_family=ResourceKind.IMAGE.resource_family,
            regions=list(image.storage_regions),
            resource_group=IMAGE_RESOURCE_GROUP,
        )

    def _egress_query(self, subnetwork: Subnetwork) -> PriceQuery:
        return PriceQuery(
            service_id=COMPUTE_SERVICE_ID,
            resource_family=ResourceKind.SUBNETWORK.resource_family,
            regions=[subnetwork.region],
            resource_group=resource_group_for_network_tier(subnetwork.tier),
        )

    def _check_schedule(self, rate_id: str, schedule: TierSchedule) -> None:
        for problem in schedule_problems(schedule):
            logger.warning(f"SKU {rate_id}: {problem}")
        if schedule.aggregation_level and schedule.aggregation_level != "PROJECT":
            logger.debug(
                f"SKU {rate_id} aggregates at {schedule.aggregation_level} level, "
                f"tier discounts may be shared with other projects"
            )


def _usage_for(schedule: TierSchedule, usages: List[UsageProfile]) -> Optional[UsageProfile]:
    for usage in usages:
        if usage.usage_unit == schedule.usage_unit:
            return usage
    return None
