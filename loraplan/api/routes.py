from __future__ import annotations

from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ..core.config import Settings, get_settings
from ..core.errors import ProviderUnavailable
from ..core.logging import get_logger
from ..models import GeoPoint, RadioParams
from ..services.coverage import CoverageSampler
from ..services.elevation import TerrainProfileProvider
from ..services.link_analysis import calculate_link_budget, link_metadata
from .schemas import (
    CoverageRequest,
    CoverageResponse,
    ElevationRequest,
    ElevationResponse,
    LinkBudgetRequest,
    LinkBudgetResponse,
)

logger = get_logger(__name__)

router = APIRouter()


def get_terrain_provider(request: Request) -> TerrainProfileProvider:
    """The process-wide terrain provider created in the application lifespan."""
    return request.app.state.terrain_provider


def _radio(gain, height, cable_loss=None, connector_loss=None) -> RadioParams:
    defaults = RadioParams()
    return RadioParams(
        antenna_gain_dbi=defaults.antenna_gain_dbi if gain is None else gain,
        antenna_height_m=defaults.antenna_height_m if height is None else height,
        cable_loss_db=defaults.cable_loss_db if cable_loss is None else cable_loss,
        connector_loss_db=defaults.connector_loss_db if connector_loss is None else connector_loss,
    )


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)):
    return {
        "status": "ok",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
    }


async def _link_budget(params: LinkBudgetRequest, provider: TerrainProfileProvider) -> LinkBudgetResponse:
    tx_radio = _radio(params.tx_antenna_gain, params.tx_antenna_height, params.tx_cable_loss, params.connector_loss)
    analysis = await calculate_link_budget(
        provider,
        GeoPoint(params.lat1, params.lng1),
        GeoPoint(params.lat2, params.lng2),
        params.tx_power,
        tx_radio=tx_radio,
        rx_radio=_radio(params.rx_antenna_gain, params.rx_antenna_height, params.rx_cable_loss, params.connector_loss),
        fade_margin_db=params.fade_margin,
        environment=params.environment.value if params.environment else None,
    )
    return LinkBudgetResponse.from_analysis(analysis, link_metadata(tx_radio))


@router.post("/linkbudget", response_model=LinkBudgetResponse, tags=["link"])
async def post_link_budget(
    params: LinkBudgetRequest,
    provider: TerrainProfileProvider = Depends(get_terrain_provider),
):
    """Analyse a point-to-point link over terrain."""
    return await _link_budget(params, provider)


@router.get("/linkbudget", response_model=LinkBudgetResponse, tags=["link"])
async def get_link_budget(
    params: Annotated[LinkBudgetRequest, Query()],
    provider: TerrainProfileProvider = Depends(get_terrain_provider),
):
    return await _link_budget(params, provider)


async def _coverage(
    params: CoverageRequest,
    provider: TerrainProfileProvider,
    settings: Settings,
) -> CoverageResponse:
    sampler = CoverageSampler.from_settings(provider, settings)
    result = await sampler.generate(
        GeoPoint(params.lat, params.lng),
        params.power,
        resolution_deg=params.resolution,
        max_range_km=params.max_range,
    )
    return CoverageResponse.from_result(result)


@router.post("/coverage", response_model=CoverageResponse, tags=["coverage"])
async def post_coverage(
    params: CoverageRequest,
    provider: TerrainProfileProvider = Depends(get_terrain_provider),
    settings: Settings = Depends(get_settings),
):
    """
    Generate a terrain-aware coverage polygon for a transmitter.

    The response is flagged ``approximate`` when any bearing had to be
    estimated rather than ray-marched over terrain.
    """
    return await _coverage(params, provider, settings)


@router.get("/coverage", response_model=CoverageResponse, tags=["coverage"])
async def get_coverage(
    params: Annotated[CoverageRequest, Query()],
    provider: TerrainProfileProvider = Depends(get_terrain_provider),
    settings: Settings = Depends(get_settings),
):
    return await _coverage(params, provider, settings)


@router.get("/elevation", response_model=ElevationResponse, tags=["elevation"])
async def get_elevation(
    params: Annotated[ElevationRequest, Query()],
    provider: TerrainProfileProvider = Depends(get_terrain_provider),
):
    """Elevation profile between two points."""
    try:
        profile = await provider.get_profile(
            GeoPoint(params.lat1, params.lng1),
            GeoPoint(params.lat2, params.lng2),
            params.samples,
        )
    except ProviderUnavailable as exc:
        logger.warning("Elevation request failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Elevation service unavailable: {exc}",
        )
    return ElevationResponse.from_profile(profile)


@router.get("/elevation/stats", tags=["elevation"])
async def get_elevation_stats(
    provider: TerrainProfileProvider = Depends(get_terrain_provider),
) -> Dict[str, Any]:
    stats = getattr(provider, "stats", None)
    return {"provider": provider.name, "stats": stats() if callable(stats) else None}
