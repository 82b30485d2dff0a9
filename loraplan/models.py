"""Transient data model shared by the RF core and the services.

Everything here is computed per request and owned by value; nothing is
persisted and terrain samples are never mutated after construction.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .core.errors import InvalidInputError


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 coordinate in degrees."""

    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.lat) and math.isfinite(self.lng)):
            raise InvalidInputError(f"Coordinates must be finite, got ({self.lat}, {self.lng})")
        if abs(self.lat) > 90 or abs(self.lng) > 180:
            raise InvalidInputError(f"Invalid coordinate range: ({self.lat}, {self.lng})")


@dataclass(frozen=True)
class TerrainSample:
    """One point of a terrain profile; distance is measured from the path start in km."""

    distance_km: float
    elevation_m: float
    lat: float
    lng: float


# Ordered by increasing distance, first sample at distance 0.
TerrainProfile = List[TerrainSample]


class TerrainSource(str, Enum):
    """Where the numbers behind a result came from."""

    TERRAIN = "terrain"
    ESTIMATED = "estimated"
    FALLBACK = "fallback"


class Environment(str, Enum):
    RURAL = "rural"
    SUBURBAN = "suburban"
    URBAN = "urban"


class Quality(str, Enum):
    POOR = "poor"
    MARGINAL = "marginal"
    GOOD = "good"
    EXCELLENT = "excellent"


@dataclass(frozen=True)
class RadioParams:
    """Per-endpoint radio configuration."""

    transmit_power_watts: float = 1.0
    antenna_gain_dbi: float = 3.0
    antenna_height_m: float = 10.0
    cable_loss_db: float = 1.5
    connector_loss_db: float = 0.5


@dataclass(frozen=True)
class Obstruction:
    distance_km: float
    terrain_elevation_m: float
    required_height_m: float
    obstruction_m: float  # positive = blocking
    fresnel_radius_m: float


@dataclass
class ClearanceAnalysis:
    has_adequate_clearance: bool
    min_clearance_m: float
    obstructions: List[Obstruction]
    required_clearance_fraction: float

    @property
    def has_obstructions(self) -> bool:
        return bool(self.obstructions)

    def worst_obstruction(self) -> Optional[Obstruction]:
        if not self.obstructions:
            return None
        return max(self.obstructions, key=lambda o: o.obstruction_m)


@dataclass(frozen=True)
class PathLossBreakdown:
    free_space_db: float
    diffraction_db: float
    terrain_db: float
    foliage_db: float
    total_db: float


@dataclass(frozen=True)
class LinkBudgetResult:
    eirp_dbm: float
    path_loss: PathLossBreakdown
    rx_signal_dbm: float
    rx_sensitivity_dbm: float
    spreading_factor: str
    link_margin_db: float
    reliability_percent: float
    is_viable: bool
    provisional_spreading_factor: str
    provisional_margin_db: float
    tx_power_dbm: float
    fade_margin_db: float


@dataclass(frozen=True)
class TerrainStatistics:
    min_m: float
    max_m: float
    average_m: float
    variation_m: float
    roughness_m: float


@dataclass
class LinkAnalysis:
    """Full answer to a point-to-point link query."""

    tx: GeoPoint
    rx: GeoPoint
    distance_km: float
    budget: LinkBudgetResult
    clearance: ClearanceAnalysis
    line_of_sight: bool
    terrain: TerrainStatistics
    quality: Quality
    recommendations: List[str]
    profile: TerrainProfile
    terrain_source: TerrainSource = TerrainSource.TERRAIN
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CoveragePoint:
    lat: float
    lng: float
    bearing_deg: float
    distance_km: float
    link_margin_db: float
    source: TerrainSource = TerrainSource.TERRAIN


@dataclass
class CoverageResult:
    """A coverage polygon ordered by bearing, plus how it was obtained."""

    origin: GeoPoint
    power_watts: float
    points: List[CoveragePoint]
    bearing_count: int
    timed_out: bool = False
    used_fallback_polygon: bool = False

    @property
    def max_range_km(self) -> float:
        return max((p.distance_km for p in self.points), default=0.0)

    @property
    def avg_range_km(self) -> float:
        if not self.points:
            return 0.0
        return sum(p.distance_km for p in self.points) / len(self.points)

    @property
    def approximate(self) -> bool:
        return self.timed_out or any(p.source != TerrainSource.TERRAIN for p in self.points)
