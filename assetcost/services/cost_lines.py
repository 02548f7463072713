"""
Cost line assembly.
Maps a priced resource group onto a report line in the fixed report column order.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from assetcost.domain.resources import Disk, Instance
from assetcost.services.grouping import ResourceGroup
from assetcost.services.usage import UsageProfile


# Column order is relied on by report consumers
REPORT_HEADER = [
    "resource type",
    "count",
    "spec",
    "max usage",
    "max cost",
    "projected usage",
    "projected cost",
]


def format_amount(amount: float) -> str:
    """Whole amounts without decimals, fractional ones to two places."""
    if float(amount).is_integer():
        return str(int(amount))
    return f"{amount:.2f}"


@dataclass
class CostLine:
    """One line of the cost report."""
    resource_type: str
    count: int
    spec: str
    max_usage: float
    max_cost: float
    projected_usage: float
    projected_cost: float
    usage_unit: str
    currency: str = "USD"

    def to_row(self) -> List[str]:
        """Render the line as strings in REPORT_HEADER order."""
        return [
            self.resource_type,
            str(self.count),
            self.spec,
            f"{format_amount(self.max_usage)} {self.usage_unit}",
            f"{self.max_cost:.2f} {self.currency}",
            f"{format_amount(self.projected_usage)} {self.usage_unit}",
            f"{self.projected_cost:.2f} {self.currency}",
        ]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "resource_type": self.resource_type,
            "count": self.count,
            "spec": self.spec,
            "max_usage": self.max_usage,
            "max_cost": round(self.max_cost, 6),
            "projected_usage": self.projected_usage,
            "projected_cost": round(self.projected_cost, 6),
            "usage_unit": self.usage_unit,
            "currency": self.currency,
        }


def resource_type_of(group: ResourceGroup) -> str:
    representative = group.representative
    if isinstance(representative, Instance):
        return "Instance"
    if isinstance(representative, Disk):
        return "RegionDisk" if representative.is_regional else "Disk"
    return type(representative).__name__


def assemble(
    group: ResourceGroup,
    usage: UsageProfile,
    engine_output: Tuple[float, float],
    currency: str = "USD",
    spec_suffix: str = ""
) -> CostLine:
    """
    Build a cost line.

    Args:
        group: Priced resource group
        usage: Usage profile the costs were computed for
        engine_output: (ceiling_cost, projected_cost) from the billing engine
        currency: Currency of the costs
        spec_suffix: Appended to the group fingerprint, usually the SKU description
    """
    ceiling_cost, projected_cost = engine_output
    spec = group.fingerprint if not spec_suffix else f"{group.fingerprint} ({spec_suffix})"
    return CostLine(
        resource_type=resource_type_of(group),
        count=group.count,
        spec=spec,
        max_usage=usage.ceiling,
        max_cost=ceiling_cost,
        projected_usage=usage.projected,
        projected_cost=projected_cost,
        usage_unit=usage.usage_unit,
        currency=currency,
    )
