"""Request and response models for the HTTP API."""
from __future__ import annotations

import math
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..core.config import settings
from ..models import CoverageResult, Environment, LinkAnalysis, Quality, TerrainSample, TerrainSource


class LinkBudgetRequest(BaseModel):
    lat1: float = Field(..., ge=-90, le=90, description="Transmitter latitude in degrees")
    lng1: float = Field(..., ge=-180, le=180, description="Transmitter longitude in degrees")
    lat2: float = Field(..., ge=-90, le=90, description="Receiver latitude in degrees")
    lng2: float = Field(..., ge=-180, le=180, description="Receiver longitude in degrees")
    tx_power: float = Field(..., ge=0.1, le=5, description="Transmit power in watts")
    tx_cable_loss: Optional[float] = Field(None, ge=0, le=20, description="Transmit cable loss in dB")
    rx_cable_loss: Optional[float] = Field(None, ge=0, le=20, description="Receive cable loss in dB")
    connector_loss: Optional[float] = Field(None, ge=0, le=10, description="Connector loss per end in dB")
    tx_antenna_gain: Optional[float] = Field(None, ge=-10, le=30, description="Transmit antenna gain in dBi")
    rx_antenna_gain: Optional[float] = Field(None, ge=-10, le=30, description="Receive antenna gain in dBi")
    tx_antenna_height: Optional[float] = Field(None, ge=0, le=1000, description="Transmit antenna height above ground in m")
    rx_antenna_height: Optional[float] = Field(None, ge=0, le=1000, description="Receive antenna height above ground in m")
    fade_margin: Optional[float] = Field(None, ge=0, le=50, description="Fade margin in dB")
    environment: Optional[Environment] = Field(None, description="Propagation environment")


class CoverageRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90, description="Transmitter latitude in degrees")
    lng: float = Field(..., ge=-180, le=180, description="Transmitter longitude in degrees")
    power: float = Field(..., ge=0.1, le=5, description="Transmit power in watts")
    resolution: float = Field(settings.COVERAGE_DEFAULT_RESOLUTION_DEG, ge=5, le=90, description="Angular resolution in degrees")
    max_range: float = Field(settings.COVERAGE_DEFAULT_MAX_RANGE_KM, ge=0.5, le=100, description="Maximum range to check in km")


class ElevationRequest(BaseModel):
    lat1: float = Field(..., ge=-90, le=90)
    lng1: float = Field(..., ge=-180, le=180)
    lat2: float = Field(..., ge=-90, le=90)
    lng2: float = Field(..., ge=-180, le=180)
    samples: int = Field(50, ge=2, le=200, description="Number of profile samples")


class TerrainSampleOut(BaseModel):
    distance_km: float
    elevation_m: float
    lat: float
    lng: float


class PathLossOut(BaseModel):
    free_space_db: float
    diffraction_db: float
    terrain_db: float
    foliage_db: float
    total_db: float


class ObstructionOut(BaseModel):
    distance_km: float
    terrain_elevation_m: float
    required_height_m: float
    obstruction_m: float
    fresnel_radius_m: float


class ClearanceOut(BaseModel):
    has_adequate_clearance: bool
    min_clearance_m: Optional[float] = Field(None, description="Smallest clearance in m; null when no interior samples")
    obstructions: List[ObstructionOut]
    required_clearance_fraction: float

    @field_validator("min_clearance_m", mode="before")
    @classmethod
    def finite_or_none(cls, v):
        # JSON has no infinity
        if v is not None and not math.isfinite(v):
            return None
        return v


class LinkBudgetOut(BaseModel):
    tx_power_dbm: float
    eirp_dbm: float
    path_loss: PathLossOut
    rx_signal_dbm: float
    rx_sensitivity_dbm: float
    spreading_factor: str
    link_margin_db: float
    fade_margin_db: float
    reliability_percent: float
    is_viable: bool
    provisional_spreading_factor: str
    provisional_margin_db: float


class TerrainStatisticsOut(BaseModel):
    min_m: float
    max_m: float
    average_m: float
    variation_m: float
    roughness_m: float


class LinkBudgetResponse(BaseModel):
    success: bool = True
    distance_km: float
    link_budget: LinkBudgetOut
    terrain_analysis: ClearanceOut
    terrain_statistics: TerrainStatisticsOut
    line_of_sight: bool
    quality: Quality
    recommendations: List[str]
    elevation_profile: List[TerrainSampleOut]
    terrain_source: TerrainSource
    warnings: List[str] = []
    metadata: Dict[str, Any] = {}

    @classmethod
    def from_analysis(cls, analysis: LinkAnalysis, metadata: Dict[str, Any]) -> "LinkBudgetResponse":
        return cls(
            distance_km=analysis.distance_km,
            link_budget=asdict(analysis.budget),
            terrain_analysis=asdict(analysis.clearance),
            terrain_statistics=asdict(analysis.terrain),
            line_of_sight=analysis.line_of_sight,
            quality=analysis.quality,
            recommendations=analysis.recommendations,
            elevation_profile=[asdict(s) for s in analysis.profile],
            terrain_source=analysis.terrain_source,
            warnings=analysis.warnings,
            metadata=metadata,
        )


class CoveragePointOut(BaseModel):
    lat: float
    lng: float
    bearing_deg: float
    distance_km: float
    link_margin_db: float
    source: TerrainSource


class TransmitterOut(BaseModel):
    lat: float
    lng: float
    power: float


class CoverageResponse(BaseModel):
    success: bool = True
    transmitter: TransmitterOut
    polygon: List[CoveragePointOut]
    max_range_km: float
    avg_range_km: float
    point_count: int
    bearing_count: int
    timed_out: bool
    approximate: bool
    used_fallback_polygon: bool

    @classmethod
    def from_result(cls, result: CoverageResult) -> "CoverageResponse":
        return cls(
            transmitter=TransmitterOut(lat=result.origin.lat, lng=result.origin.lng, power=result.power_watts),
            polygon=[asdict(p) for p in result.points],
            max_range_km=result.max_range_km,
            avg_range_km=result.avg_range_km,
            point_count=len(result.points),
            bearing_count=result.bearing_count,
            timed_out=result.timed_out,
            approximate=result.approximate,
            used_fallback_polygon=result.used_fallback_polygon,
        )


class ElevationResponse(BaseModel):
    success: bool = True
    profile: List[TerrainSampleOut]
    total_distance_km: float
    samples: int

    @classmethod
    def from_profile(cls, profile: List[TerrainSample]) -> "ElevationResponse":
        return cls(
            profile=[asdict(s) for s in profile],
            total_distance_km=profile[-1].distance_km if profile else 0.0,
            samples=len(profile),
        )
