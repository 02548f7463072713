"""
Price catalog.
Answers tier-schedule lookups for a resource's billing category, region and shape.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional
import logging

from assetcost.services.billing import TierSchedule, TieredRate, unit_price_from_money
from assetcost.services.usage import MachineShape


logger = logging.getLogger(__name__)


@dataclass
class Sku:
    """A billable SKU with its current pricing."""
    sku_id: str
    description: str
    service_id: str
    resource_family: str
    resource_group: str
    usage_type: str
    regions: List[str]
    schedule: TierSchedule

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "sku_id": self.sku_id,
            "description": self.description,
            "service_id": self.service_id,
            "resource_family": self.resource_family,
            "resource_group": self.resource_group,
            "usage_type": self.usage_type,
            "regions": list(self.regions),
            "pricing": self.schedule.to_dict(),
        }


@dataclass
class PriceQuery:
    """What a resource needs priced."""
    service_id: str
    resource_family: str
    regions: List[str]
    resource_group: str
    usage_type: Optional[str] = None
    description_prefix: Optional[str] = None
    description_excludes: Optional[str] = None

    def matches(self, sku: Sku) -> bool:
        if sku.service_id != self.service_id or sku.resource_family != self.resource_family:
            return False
        if sku.resource_group != self.resource_group:
            return False
        if self.regions and not set(self.regions) & set(sku.regions):
            return False
        if self.usage_type and sku.usage_type != self.usage_type:
            return False
        if self.description_prefix and not sku.description.startswith(self.description_prefix):
            return False
        if self.description_excludes and self.description_excludes in sku.description:
            return False
        return True


class PriceCatalog(ABC):
    """Source of tier schedules and machine shapes."""

    @abstractmethod
    def find_schedules(self, query: PriceQuery) -> Dict[str, TierSchedule]:
        """
        Find candidate schedules for a query.

        Returns:
            Schedules keyed by rate id (the SKU id); empty if nothing matches
        """

    @abstractmethod
    def machine_shape(self, machine_type: str) -> Optional[MachineShape]:
        """Return the shape of a machine type, or None if unknown."""


class InMemoryPriceCatalog(PriceCatalog):
    """Price catalog held in memory, filled from a dict or the Cloud Billing API."""

    def __init__(
        self,
        skus: Optional[Iterable[Sku]] = None,
        machine_shapes: Optional[Iterable[MachineShape]] = None
    ):
        self._skus: Dict[str, Sku] = {}
        self._machine_shapes: Dict[str, MachineShape] = {}
        for sku in skus or []:
            self.add_sku(sku)
        for shape in machine_shapes or []:
            self.add_machine_shape(shape)

    def __len__(self) -> int:
        return len(self._skus)

    def add_sku(self, sku: Sku) -> None:
        if sku.sku_id in self._skus:
            logger.debug(f"Replacing SKU {sku.sku_id}")
        self._skus[sku.sku_id] = sku

    def add_machine_shape(self, shape: MachineShape) -> None:
        self._machine_shapes[shape.name] = shape

    def find_schedules(self, query: PriceQuery) -> Dict[str, TierSchedule]:
        return {sku_id: sku.schedule for sku_id, sku in self._skus.items() if query.matches(sku)}

    def machine_shape(self, machine_type: str) -> Optional[MachineShape]:
        return self._machine_shapes.get(machine_type)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InMemoryPriceCatalog":
        """
        Build a catalog from plain data.

        Expected format:
            {
                "skus": [{"sku_id", "description", "service_id", "resource_family",
                          "resource_group", "usage_type", "regions",
                          "pricing": {"usage_unit", "conversion_rate", "aggregation_level",
                                      "tiers": [{"start_usage_amount", "unit_price" or
                                                 "units"/"nanos", "currency_code"}]}}],
                "machine_shapes": [{"name", "cpu_count", "memory_mb", "is_shared_cpu"}]
            }

        Raises:
            ValueError: If a SKU or machine shape is missing a required field,
                or a SKU has a conversion rate that is not positive
        """
        catalog = cls()
        for raw in data.get("skus", []):
            try:
                pricing = raw.get("pricing", {})
                conversion_rate = float(pricing.get("conversion_rate", 1.0))
                if conversion_rate <= 0:
                    raise ValueError(
                        f"SKU {raw['sku_id']} has conversion rate {conversion_rate}, it must be positive"
                    )
                schedule = TierSchedule(
                    usage_unit=pricing["usage_unit"],
                    tiers=[_tier_from_dict(tier) for tier in pricing.get("tiers", [])],
                    conversion_rate=conversion_rate,
                    description=raw.get("description", ""),
                    rate_id=raw["sku_id"],
                    aggregation_level=pricing.get("aggregation_level", ""),
                )
                catalog.add_sku(Sku(
                    sku_id=raw["sku_id"],
                    description=raw.get("description", ""),
                    service_id=raw["service_id"],
                    resource_family=raw["resource_family"],
                    resource_group=raw["resource_group"],
                    usage_type=raw.get("usage_type", ""),
                    regions=list(raw.get("regions", [])),
                    schedule=schedule,
                ))
            except KeyError as error:
                raise ValueError(f"SKU entry is missing field {error}") from error

        for raw in data.get("machine_shapes", []):
            try:
                catalog.add_machine_shape(MachineShape(
                    name=raw["name"],
                    cpu_count=int(raw["cpu_count"]),
                    memory_mb=int(raw["memory_mb"]),
                    is_shared_cpu=bool(raw.get("is_shared_cpu", False)),
                ))
            except KeyError as error:
                raise ValueError(f"machine shape entry is missing field {error}") from error
        return catalog


def _tier_from_dict(raw: Mapping[str, Any]) -> TieredRate:
    if raw.get("unit_price") is not None:
        price = float(raw["unit_price"])
    else:
        price = unit_price_from_money(int(raw.get("units", 0)), int(raw.get("nanos", 0)))
    return TieredRate(
        start_usage_amount=raw.get("start_usage_amount", 0),
        unit_price=price,
        currency_code=raw.get("currency_code", "USD"),
    )
