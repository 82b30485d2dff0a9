"""Coverage polygon generation by ray-marching bearings over terrain.

Each bearing walks outward in fixed steps and stops at the first step whose
link margin falls below the coverage threshold. Bearings run in bounded
batches under a wall-clock budget; anything not finished in time gets a
closed-form radius estimate instead, and the result says so.
"""
from __future__ import annotations

import math
import time
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

from ..core.config import Settings, settings as default_settings
from ..core.errors import InvalidInputError, ProviderUnavailable
from ..core.logging import get_logger
from ..geo import destination_point
from ..models import CoveragePoint, CoverageResult, GeoPoint, RadioParams, TerrainSource
from ..rf.constants import DEFAULT_FADE_MARGIN_DB
from ..rf.link_budget import compute_link_budget, compute_path_loss, estimate_coverage_radius_km
from ..rf.propagation import analyze_clearance
from .batching import run_in_batches
from .elevation import TerrainProfileProvider

logger = get_logger(__name__)

FALLBACK_CIRCLE_STEP_DEG = 30
MIN_POLYGON_POINTS = 3
# Margin reported for bearings estimated after the time budget ran out
DEADLINE_ESTIMATE_MARGIN_DB = 12.0


def bearings(resolution_deg: float) -> List[float]:
    """Bearings 0, r, 2r, ... strictly below 360 degrees."""
    if not 0 < resolution_deg <= 360:
        raise InvalidInputError(f"Resolution must be in (0, 360], got {resolution_deg}")
    count = math.ceil(360.0 / resolution_deg - 1e-9)
    return [i * resolution_deg for i in range(count)]


def provider_failure_range_km(power_watts: float) -> float:
    """Range assumed reachable when terrain cannot be fetched for a step."""
    return 15.0 if power_watts >= 1.0 else 8.0


def fallback_circle_radius_km(power_watts: float) -> float:
    return 10.0 if power_watts >= 1.0 else 6.0


@dataclass
class _RayState:
    distance_km: float = 0.0
    point: Optional[GeoPoint] = None
    margin_db: float = 0.0
    source: TerrainSource = TerrainSource.TERRAIN


class CoverageSampler:
    """Builds coverage polygons for a transmitter against a terrain provider."""

    def __init__(
        self,
        provider: TerrainProfileProvider,
        step_km: float = 0.5,
        min_link_margin_db: float = 10.0,
        profile_samples: int = 15,
        batch_size: int = 6,
        time_budget_s: float = 8.0,
        pause_s: float = 0.025,
        radio: Optional[RadioParams] = None,
        fade_margin_db: float = DEFAULT_FADE_MARGIN_DB,
        environment: str = "suburban",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if step_km <= 0:
            raise ValueError("step_km must be positive")
        self.provider = provider
        self.step_km = step_km
        self.min_link_margin_db = min_link_margin_db
        self.profile_samples = profile_samples
        self.batch_size = batch_size
        self.time_budget_s = time_budget_s
        self.pause_s = pause_s
        self.radio = radio or RadioParams()
        self.fade_margin_db = fade_margin_db
        self.environment = environment
        self._clock = clock

    @classmethod
    def from_settings(cls, provider: TerrainProfileProvider, settings: Settings = default_settings) -> "CoverageSampler":
        return cls(
            provider,
            step_km=settings.COVERAGE_STEP_KM,
            min_link_margin_db=settings.COVERAGE_MIN_LINK_MARGIN_DB,
            profile_samples=settings.COVERAGE_PROFILE_SAMPLES,
            batch_size=settings.COVERAGE_BATCH_SIZE,
            time_budget_s=settings.COVERAGE_TIME_BUDGET_S,
            pause_s=settings.COVERAGE_BATCH_PAUSE_S,
            fade_margin_db=settings.FADE_MARGIN_DB,
            environment=settings.DEFAULT_ENVIRONMENT,
        )

    async def sample_bearing(
        self,
        origin: GeoPoint,
        power_watts: float,
        bearing_deg: float,
        max_range_km: float,
    ) -> CoveragePoint:
        """March outward along one bearing; returns the last distance that met the threshold."""
        tx = replace(self.radio, transmit_power_watts=power_watts)
        state = _RayState(point=origin)
        fallback_range = provider_failure_range_km(power_watts)
        steps = int(math.floor(max_range_km / self.step_km + 1e-9))

        for i in range(1, steps + 1):
            distance = i * self.step_km
            point = destination_point(origin, bearing_deg, distance)

            try:
                profile = await self.provider.get_profile(origin, point, self.profile_samples)
            except ProviderUnavailable as exc:
                logger.debug("Bearing %.1f step %.1f km: terrain unavailable (%s)", bearing_deg, distance, exc)
                if distance > fallback_range:
                    break
                state = _RayState(distance, point, self.min_link_margin_db, TerrainSource.ESTIMATED)
                continue

            clearance = analyze_clearance(profile, tx.antenna_height_m, self.radio.antenna_height_m, distance)
            budget = compute_link_budget(
                tx,
                self.radio,
                distance,
                compute_path_loss(distance, clearance),
                self.fade_margin_db,
                self.environment,
            )
            if budget.link_margin_db < self.min_link_margin_db:
                break
            state = _RayState(distance, point, budget.link_margin_db, TerrainSource.TERRAIN)

        logger.debug("Bearing %.1f: last good distance %.1f km", bearing_deg, state.distance_km)
        return CoveragePoint(
            lat=state.point.lat,
            lng=state.point.lng,
            bearing_deg=bearing_deg,
            distance_km=state.distance_km,
            link_margin_db=state.margin_db,
            source=state.source,
        )

    def estimated_point(
        self,
        origin: GeoPoint,
        power_watts: float,
        bearing_deg: float,
        max_range_km: float,
        margin_db: float,
    ) -> CoveragePoint:
        radius = min(estimate_coverage_radius_km(power_watts, "rolling", self.radio), max_range_km)
        point = destination_point(origin, bearing_deg, radius)
        return CoveragePoint(
            lat=point.lat,
            lng=point.lng,
            bearing_deg=bearing_deg,
            distance_km=radius,
            link_margin_db=margin_db,
            source=TerrainSource.ESTIMATED,
        )

    def fallback_circle(self, origin: GeoPoint, power_watts: float, max_range_km: float) -> List[CoveragePoint]:
        radius = min(fallback_circle_radius_km(power_watts), max_range_km)
        points = []
        for bearing in range(0, 360, FALLBACK_CIRCLE_STEP_DEG):
            point = destination_point(origin, bearing, radius)
            points.append(
                CoveragePoint(
                    lat=point.lat,
                    lng=point.lng,
                    bearing_deg=float(bearing),
                    distance_km=radius,
                    link_margin_db=self.fade_margin_db,
                    source=TerrainSource.FALLBACK,
                )
            )
        return points

    async def generate(
        self,
        origin: GeoPoint,
        power_watts: float,
        resolution_deg: float = 15.0,
        max_range_km: float = 25.0,
    ) -> CoverageResult:
        """Generate the coverage polygon around ``origin``.

        Always returns at least three points: when too few rays survive, a
        fixed-radius circle replaces them.

        Raises:
            InvalidInputError: for non-positive power or range, or a resolution
                outside (0, 360]
        """
        if power_watts <= 0:
            raise InvalidInputError(f"Transmit power must be positive, got {power_watts} W")
        if max_range_km <= 0:
            raise InvalidInputError(f"Maximum range must be positive, got {max_range_km} km")
        angles = bearings(resolution_deg)

        logger.info(
            "Generating coverage for %s at %.2f W: %d bearings, max range %.1f km",
            origin, power_watts, len(angles), max_range_km,
        )

        deadline = self._clock() + self.time_budget_s
        outcome = await run_in_batches(
            angles,
            lambda bearing: self.sample_bearing(origin, power_watts, bearing, max_range_km),
            self.batch_size,
            deadline=deadline,
            pause_s=self.pause_s,
            clock=self._clock,
        )

        points: List[CoveragePoint] = []
        for index, bearing in enumerate(angles):
            if index in outcome.results:
                points.append(outcome.results[index])
                continue
            if index in outcome.failures:
                logger.warning("Bearing %.1f failed, using estimated radius: %s", bearing, outcome.failures[index])
                margin = self.min_link_margin_db
            else:
                margin = DEADLINE_ESTIMATE_MARGIN_DB
            points.append(self.estimated_point(origin, power_watts, bearing, max_range_km, margin))

        if outcome.deadline_hit:
            logger.warning(
                "Coverage time budget of %.1f s exceeded, %d bearings estimated",
                self.time_budget_s, len(outcome.skipped),
            )

        points = [p for p in points if p.distance_km > 0]

        used_fallback = False
        if len(points) < MIN_POLYGON_POINTS:
            logger.warning("Only %d coverage points, using fallback circle", len(points))
            points = self.fallback_circle(origin, power_watts, max_range_km)
            used_fallback = True

        points.sort(key=lambda p: p.bearing_deg)
        return CoverageResult(
            origin=origin,
            power_watts=power_watts,
            points=points,
            bearing_count=len(angles),
            timed_out=outcome.deadline_hit,
            used_fallback_polygon=used_fallback,
        )
