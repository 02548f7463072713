"""
API routes for asset reconciliation and cost estimation.
"""
from typing import Any, Dict, List, Optional, Union
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
import logging

from assetcost.domain.errors import AssetCostError, OrphanedReference
from assetcost.domain.records import RawRecord
from assetcost.pricing.catalog import InMemoryPriceCatalog
from assetcost.pricing.cloud_billing_client import CloudBillingClient, CloudBillingError
from assetcost.services.asset_builder import build_graph
from assetcost.services.cost_estimator import CostEstimator


logger = logging.getLogger(__name__)
router = APIRouter()


class RecordModel(BaseModel):
    """A raw asset record."""
    name: str = Field(..., description="Full resource name")
    type: str = Field(default="", description="Asset type, e.g. compute.googleapis.com/Instance")
    payload: Union[Dict[str, Any], str] = Field(..., description="Resource JSON, with attributes under 'data'")

    def to_record(self) -> RawRecord:
        return RawRecord(name=self.name, type=self.type, payload=self.payload)


class GraphRequest(BaseModel):
    """Request model for building a resource graph."""
    records: List[RecordModel] = Field(..., description="Raw records in any order")
    default_network_tier: Optional[str] = Field(None, description="Override of the default network tier")


class TierModel(BaseModel):
    """A tier priced either as a plain unit price or as Money units and nanos."""
    start_usage_amount: float = 0
    unit_price: Optional[float] = None
    units: int = 0
    nanos: int = 0
    currency_code: str = "USD"


class PricingModel(BaseModel):
    usage_unit: str
    tiers: List[TierModel]
    conversion_rate: float = 1.0
    aggregation_level: str = ""


class SkuModel(BaseModel):
    """A priced SKU supplied by the caller."""
    sku_id: str
    description: str = ""
    service_id: str
    resource_family: str
    resource_group: str
    usage_type: str = ""
    regions: List[str] = Field(default_factory=list)
    pricing: PricingModel


class MachineShapeModel(BaseModel):
    name: str
    cpu_count: int
    memory_mb: int
    is_shared_cpu: bool = False


class CatalogModel(BaseModel):
    """Price data to estimate against."""
    skus: List[SkuModel] = Field(default_factory=list)
    machine_shapes: List[MachineShapeModel] = Field(default_factory=list)


class EstimateRequest(BaseModel):
    """Request model for cost estimation."""
    records: List[RecordModel] = Field(..., description="Raw records in any order")
    catalog: CatalogModel = Field(default_factory=CatalogModel, description="SKUs and machine shapes")
    billing_services: List[str] = Field(
        default_factory=list,
        description="Billing service ids whose SKUs are fetched from the Cloud Billing API"
    )
    projected_hours: Optional[float] = Field(None, ge=0, le=720, description="Expected monthly uptime")
    default_network_tier: Optional[str] = Field(None, description="Override of the default network tier")


def _unprocessable(error: AssetCostError) -> HTTPException:
    detail: Dict[str, Any] = {"error": type(error).__name__, "message": str(error)}
    if isinstance(error, OrphanedReference):
        detail["orphans"] = error.orphans
    return HTTPException(status_code=422, detail=detail)


@router.post("/api/assets/graph")
async def build_asset_graph(request: GraphRequest) -> Dict[str, Any]:
    """
    Reconcile raw records into a resource graph.

    Returns:
        JSON with status, the graph and entity counts

    Raises:
        HTTPException: 422 if any record is malformed or does not reconcile
    """
    try:
        graph = build_graph(
            [record.to_record() for record in request.records],
            default_network_tier=request.default_network_tier
        )
    except AssetCostError as error:
        logger.info(f"Rejected record set: {error}")
        raise _unprocessable(error) from error

    return {
        "status": "ok",
        "graph": graph.to_dict(),
        "summary": graph.summary(),
    }


@router.post("/api/cost/estimate")
async def estimate_cost(request: EstimateRequest) -> Dict[str, Any]:
    """
    Build the resource graph of a record set and estimate its monthly cost.

    Raises:
        HTTPException: 400 for an unusable catalog, 422 if the records do not
            reconcile, 502 if the Cloud Billing API fails
    """
    try:
        catalog = InMemoryPriceCatalog.from_dict(request.catalog.model_dump())
    except ValueError as error:
        raise HTTPException(status_code=400, detail=f"Invalid catalog: {error}") from error

    if request.billing_services:
        client = CloudBillingClient()
        try:
            for service_id in request.billing_services:
                loaded = await client.load_into(catalog, service_id)
                logger.info(f"Loaded {loaded} SKUs for billing service {service_id}")
        except CloudBillingError as error:
            raise HTTPException(status_code=502, detail=str(error)) from error

    try:
        graph = build_graph(
            [record.to_record() for record in request.records],
            default_network_tier=request.default_network_tier
        )
        report = CostEstimator(catalog, projected_hours=request.projected_hours).estimate(graph)
    except AssetCostError as error:
        logger.info(f"Rejected record set: {error}")
        raise _unprocessable(error) from error

    header, *rows = report.rows()
    return {
        "status": "ok",
        "header": header,
        "rows": rows,
        "report": report.to_dict(),
    }
