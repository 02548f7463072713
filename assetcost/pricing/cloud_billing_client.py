"""
GCP Cloud Billing Catalog API client.
Downloads the SKUs of a billing service and loads them into a price catalog.
"""
from typing import Any, Dict, List, Mapping, Optional
import logging
from datetime import datetime, timedelta
import httpx

from assetcost.core.config import config
from assetcost.pricing.catalog import InMemoryPriceCatalog, Sku
from assetcost.resilience.circuit_breaker import get_circuit_breaker
from assetcost.services.billing import TierSchedule, TieredRate, unit_price_from_money


logger = logging.getLogger(__name__)


class CloudBillingError(Exception):
    """Raised when the Cloud Billing Catalog API cannot be queried."""
    pass


def parse_pricing_expression(
    expression: Mapping[str, Any],
    conversion_rate: float = 1.0,
    description: str = "",
    rate_id: str = "",
    aggregation_level: str = ""
) -> TierSchedule:
    """
    Turn a pricingExpression into a tier schedule.

    Money units are int64 and arrive as decimal strings; missing units,
    nanos and start amounts read as 0, and a missing currency as USD.

    Args:
        expression: pricingExpression object of a SKU's pricingInfo

    Raises:
        ValueError: If tieredRates or a unitPrice is not in the expected form,
            or the conversion rate is not positive
    """
    if float(conversion_rate) <= 0:
        raise ValueError(f"conversion rate must be positive, got {conversion_rate}")
    rates = expression.get("tieredRates", [])
    if not isinstance(rates, list):
        raise ValueError(f"tieredRates is a {type(rates).__name__}, expected a list")

    tiers = []
    for rate in rates:
        unit_price = rate.get("unitPrice") if isinstance(rate, Mapping) else None
        if not isinstance(unit_price, Mapping):
            raise ValueError(f"tiered rate has no unitPrice: {rate}")
        tiers.append(TieredRate(
            start_usage_amount=rate.get("startUsageAmount", 0),
            unit_price=unit_price_from_money(int(unit_price.get("units", 0)), int(unit_price.get("nanos", 0))),
            currency_code=unit_price.get("currencyCode", "USD"),
        ))

    return TierSchedule(
        usage_unit=expression.get("usageUnit", ""),
        tiers=tiers,
        conversion_rate=float(conversion_rate),
        description=description,
        rate_id=rate_id,
        aggregation_level=aggregation_level,
    )


def parse_sku(raw: Mapping[str, Any], service_id: str) -> Optional[Sku]:
    """
    Parse one SKU of a skus.list response.

    Returns:
        Sku priced with its latest pricing info, or None if the SKU has no pricing

    Raises:
        ValueError: If the SKU is not in the expected form
    """
    try:
        sku_id = raw["skuId"]
        category = raw.get("category", {})
        pricing_infos = raw.get("pricingInfo", [])
        if not pricing_infos:
            logger.debug(f"SKU {sku_id} has no pricing info, skipping")
            return None
        # pricingInfo is a timeline in chronological order
        pricing_info = pricing_infos[-1]
        description = raw.get("description", "")
        schedule = parse_pricing_expression(
            pricing_info["pricingExpression"],
            conversion_rate=pricing_info.get("currencyConversionRate", 1.0),
            description=description,
            rate_id=sku_id,
            aggregation_level=pricing_info.get("aggregationInfo", {}).get("aggregationLevel", ""),
        )
        return Sku(
            sku_id=sku_id,
            description=description,
            service_id=service_id,
            resource_family=category.get("resourceFamily", ""),
            resource_group=category.get("resourceGroup", ""),
            usage_type=category.get("usageType", ""),
            regions=list(raw.get("serviceRegions", [])),
            schedule=schedule,
        )
    except (KeyError, TypeError, AttributeError) as error:
        raise ValueError(f"unexpected SKU format: {error}") from error


class CloudBillingClient:
    """Client for the Cloud Billing Catalog API."""

    # In-memory cache: service_id -> (skus, timestamp)
    _cache: Dict[str, tuple] = {}

    PAGE_SIZE = 5000

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize Cloud Billing client.

        Args:
            api_key: API key (config.BILLING_API_KEY if None)
            base_url: API base URL (config.BILLING_API_BASE_URL if None)
            transport: Optional httpx transport, used to stub the API in tests
        """
        self.api_key = api_key if api_key is not None else config.BILLING_API_KEY
        self.base_url = (base_url or config.BILLING_API_BASE_URL).rstrip("/")
        self.timeout = config.BILLING_API_TIMEOUT
        self.cache_ttl = timedelta(seconds=config.PRICING_CACHE_TTL_SECONDS)
        self.transport = transport
        self.circuit_breaker = get_circuit_breaker("cloud_billing")

    def _get_cached_skus(self, service_id: str) -> Optional[List[Sku]]:
        """Get cached SKUs if still valid."""
        if service_id in self._cache:
            skus, timestamp = self._cache[service_id]
            if datetime.now() - timestamp < self.cache_ttl:
                return skus
            del self._cache[service_id]
        return None

    def _cache_skus(self, service_id: str, skus: List[Sku]) -> None:
        """Cache SKUs with current timestamp."""
        self._cache[service_id] = (skus, datetime.now())

    async def list_skus(self, service_id: str) -> List[Sku]:
        """
        List all priced SKUs of a billing service, following pagination.

        Args:
            service_id: Billing service id (e.g., '6F81-5844-456A' for Compute Engine)

        Returns:
            List of Sku

        Raises:
            CloudBillingError: If the circuit is open, or the API call or response parsing fails
        """
        cached = self._get_cached_skus(service_id)
        if cached is not None:
            return cached

        if not self.circuit_breaker.allow_request():
            raise CloudBillingError("Cloud Billing API circuit breaker is open")

        url = f"{self.base_url}/services/{service_id}/skus"
        skus: List[Sku] = []
        page_token = ""
        pages = 0
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                while True:
                    params = {"pageSize": self.PAGE_SIZE}
                    if self.api_key:
                        params["key"] = self.api_key
                    if page_token:
                        params["pageToken"] = page_token
                    response = await client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()
                    pages += 1

                    for raw in data.get("skus", []):
                        sku = parse_sku(raw, service_id)
                        if sku is not None:
                            skus.append(sku)

                    page_token = data.get("nextPageToken", "")
                    if not page_token:
                        break

        except httpx.HTTPStatusError as error:
            self.circuit_breaker.record_failure()
            logger.error(f"Cloud Billing API HTTP error: {error}")
            raise CloudBillingError(f"Failed to list SKUs: {error.response.status_code}") from error
        except httpx.RequestError as error:
            self.circuit_breaker.record_failure()
            logger.error(f"Cloud Billing API request error: {error}")
            raise CloudBillingError(f"Failed to connect to Cloud Billing API: {str(error)}") from error
        except ValueError as error:
            self.circuit_breaker.record_failure()
            logger.error(f"Error parsing Cloud Billing response: {error}")
            raise CloudBillingError(f"Unexpected Cloud Billing response: {str(error)}") from error

        self.circuit_breaker.record_success()
        logger.info(f"Fetched {len(skus)} SKUs for service {service_id} in {pages} page(s)")
        self._cache_skus(service_id, skus)
        return skus

    async def load_into(self, catalog: InMemoryPriceCatalog, service_id: str) -> int:
        """
        Load all SKUs of a service into a catalog.

        Returns:
            Number of SKUs loaded
        """
        skus = await self.list_skus(service_id)
        for sku in skus:
            catalog.add_sku(sku)
        return len(skus)
