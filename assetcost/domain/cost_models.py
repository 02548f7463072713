"""
Domain models for cost reports.
Defines the finished report and the resources that could not be priced.
"""
from typing import List, Dict, Any
from dataclasses import dataclass, field
from datetime import datetime

from assetcost.services.cost_lines import REPORT_HEADER, CostLine


@dataclass
class UnpricedResource:
    """A resource group left out of the report because it could not be priced."""
    resource_type: str
    spec: str
    count: int
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "resource_type": self.resource_type,
            "spec": self.spec,
            "count": self.count,
            "reason": self.reason,
        }


@dataclass
class CostReport:
    """Monthly cost report of one project."""
    currency: str
    project_name: str = ""
    lines: List[CostLine] = field(default_factory=list)
    unpriced: List[UnpricedResource] = field(default_factory=list)
    generated_at: datetime = field(default_factory=datetime.now)

    @property
    def total_ceiling_cost(self) -> float:
        return sum(line.max_cost for line in self.lines)

    @property
    def total_projected_cost(self) -> float:
        return sum(line.projected_cost for line in self.lines)

    def rows(self) -> List[List[str]]:
        """Header followed by one row per line, ready for a CSV writer."""
        return [list(REPORT_HEADER)] + [line.to_row() for line in self.lines]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "currency": self.currency,
            "project_name": self.project_name,
            "generated_at": self.generated_at.isoformat(),
            "total_ceiling_cost": round(self.total_ceiling_cost, 2),
            "total_projected_cost": round(self.total_projected_cost, 2),
            "lines": [line.to_dict() for line in self.lines],
            "unpriced": [resource.to_dict() for resource in self.unpriced],
        }
