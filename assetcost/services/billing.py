"""
Tiered billing engine.
Computes slab-billed costs for a ceiling and a projected usage against a tier schedule.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from assetcost.core.config import config


NANOS_PER_UNIT = 1_000_000_000


def unit_price_from_money(units: int, nanos: int) -> float:
    """
    Convert a Money value into a float price.

    Cloud Billing expresses prices as whole units plus nano units,
    e.g. units=0, nanos=40000000 is 0.04.
    """
    return units + nanos / NANOS_PER_UNIT


@dataclass(frozen=True)
class TieredRate:
    """Unit price that applies from start_usage_amount until the next tier starts."""
    start_usage_amount: float
    unit_price: float
    currency_code: str = "USD"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "start_usage_amount": self.start_usage_amount,
            "unit_price": self.unit_price,
            "currency_code": self.currency_code,
        }


@dataclass
class TierSchedule:
    """
    Ordered tiers of a single price, in the schedule's reference currency.

    Tiers are expected to be contiguous with strictly increasing starts and
    the first starting at 0. This is not checked when costing; use
    schedule_problems() to inspect a schedule.
    """
    usage_unit: str
    tiers: List[TieredRate] = field(default_factory=list)
    conversion_rate: float = 1.0
    description: str = ""
    rate_id: str = ""
    aggregation_level: str = ""

    @property
    def currency_code(self) -> str:
        return self.tiers[0].currency_code if self.tiers else config.REPORT_CURRENCY

    def cost_currency(self, display_currency: str) -> str:
        """
        Currency of the costs tiered_cost() returns at the schedule's own rate.

        A rate of 1.0 leaves costs in the schedule's currency; any other rate
        converts them into the display currency.
        """
        return self.currency_code if self.conversion_rate == 1.0 else display_currency

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "usage_unit": self.usage_unit,
            "tiers": [tier.to_dict() for tier in self.tiers],
            "conversion_rate": self.conversion_rate,
            "description": self.description,
            "rate_id": self.rate_id,
            "aggregation_level": self.aggregation_level,
        }


def tiered_cost(
    schedule: TierSchedule,
    ceiling_usage: float,
    projected_usage: float,
    conversion_rate: Optional[float] = None
) -> Tuple[float, float]:
    """
    Slab-bill a ceiling and a projected usage against a schedule.

    Each tier except the last covers the usage between its start and the
    next tier's start; the last tier covers everything above its start. Both
    quantities are consumed independently. A tier with a zero rate still
    consumes usage, it just charges nothing for it.

    Args:
        schedule: Tier schedule (tiers are walked in ascending start order)
        ceiling_usage: Maximum usage over the billing period
        projected_usage: Expected usage over the billing period
        conversion_rate: Reference-to-display currency rate; defaults to the
            schedule's own rate. Totals are divided by it.

    Returns:
        Tuple of (ceiling_cost, projected_cost)

    Raises:
        ValueError: If a usage is negative or the conversion rate is not positive
    """
    if ceiling_usage < 0 or projected_usage < 0:
        raise ValueError(f"usage must not be negative (ceiling={ceiling_usage}, projected={projected_usage})")
    rate = schedule.conversion_rate if conversion_rate is None else conversion_rate
    if rate <= 0:
        raise ValueError(f"conversion rate must be positive, got {rate}")

    tiers = sorted(schedule.tiers, key=lambda tier: tier.start_usage_amount)
    remaining = [ceiling_usage, projected_usage]
    totals = [0.0, 0.0]

    for index, tier in enumerate(tiers):
        if remaining[0] <= 0 and remaining[1] <= 0:
            break
        is_last = index == len(tiers) - 1
        capacity = None if is_last else tiers[index + 1].start_usage_amount - tier.start_usage_amount

        for quantity in (0, 1):
            if remaining[quantity] <= 0:
                continue
            if capacity is None or remaining[quantity] < capacity:
                consumed = remaining[quantity]
            else:
                consumed = capacity
            remaining[quantity] -= consumed
            if tier.unit_price:
                totals[quantity] += consumed * tier.unit_price

    if rate != 1.0:
        totals = [total / rate for total in totals]
    return totals[0], totals[1]


def schedule_problems(schedule: TierSchedule) -> List[str]:
    """
    List the ways a schedule breaks the costing preconditions.

    An empty list means the schedule is well formed. tiered_cost() never calls
    this; callers that want to reject bad price data do.
    """
    problems = []
    if not schedule.tiers:
        return ["schedule has no tiers"]
    if schedule.tiers[0].start_usage_amount != 0:
        problems.append(f"first tier starts at {schedule.tiers[0].start_usage_amount}, not 0")
    for previous, current in zip(schedule.tiers, schedule.tiers[1:]):
        if current.start_usage_amount <= previous.start_usage_amount:
            problems.append(
                f"tier starting at {current.start_usage_amount} does not follow "
                f"tier starting at {previous.start_usage_amount}"
            )
    currencies = sorted({tier.currency_code for tier in schedule.tiers})
    if len(currencies) > 1:
        problems.append(f"tiers mix currencies: {', '.join(currencies)}")
    if schedule.conversion_rate <= 0:
        problems.append(f"conversion rate {schedule.conversion_rate} is not positive")
    return problems
