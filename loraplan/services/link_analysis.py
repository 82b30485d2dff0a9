"""Point-to-point link analysis: terrain profile in, link verdict out."""
from __future__ import annotations

import math
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..core.config import settings
from ..core.errors import InvalidInputError, ProviderUnavailable
from ..core.logging import get_logger
from ..geo import distance_km
from ..models import (
    ClearanceAnalysis,
    GeoPoint,
    LinkAnalysis,
    LinkBudgetResult,
    RadioParams,
    TerrainProfile,
    TerrainSample,
    TerrainSource,
    TerrainStatistics,
)
from ..rf.constants import FREQUENCY_MHZ, SENSITIVITY_DBM, WAVELENGTH_M
from ..rf.link_budget import assess_quality, compute_link_budget, compute_path_loss
from ..rf.propagation import analyze_clearance, line_of_sight_clear
from .elevation import TerrainProfileProvider, flat_profile

logger = get_logger(__name__)

MAX_RESPONSE_PROFILE_POINTS = 10


def terrain_statistics(profile: Sequence[TerrainSample]) -> TerrainStatistics:
    """Elevation spread of a profile; roughness is the mean absolute step change."""
    elevations = np.array([s.elevation_m for s in profile], dtype=float)
    roughness = float(np.mean(np.abs(np.diff(elevations)))) if len(elevations) > 1 else 0.0
    return TerrainStatistics(
        min_m=float(elevations.min()),
        max_m=float(elevations.max()),
        average_m=float(elevations.mean()),
        variation_m=float(elevations.max() - elevations.min()),
        roughness_m=roughness,
    )


def downsample_profile(profile: TerrainProfile, max_points: int = MAX_RESPONSE_PROFILE_POINTS) -> TerrainProfile:
    """Keep every k-th sample so at most ``max_points`` survive."""
    if len(profile) <= max_points:
        return list(profile)
    step = math.ceil(len(profile) / max_points)
    return profile[::step]


def generate_recommendations(
    budget: LinkBudgetResult,
    clearance: ClearanceAnalysis,
    distance: float,
    power_watts: float,
) -> List[str]:
    recommendations = []
    margin = budget.link_margin_db

    if margin < 0:
        recommendations.append(f"Link margin is {margin:.1f} dB - connection may be unreliable")

    worst = clearance.worst_obstruction()
    if worst is not None:
        recommendations.append(f"Terrain obstruction detected at {worst.distance_km:.1f} km")
        raise_by = math.ceil(worst.obstruction_m + 5)
        recommendations.append(f"Consider raising antennas by {raise_by} m to clear obstacles")

    if distance > 15:
        recommendations.append(f"Long distance path ({distance:.1f} km) - consider repeaters")

    if budget.spreading_factor != "SF7":
        recommendations.append(f"Use {budget.spreading_factor} for optimal range vs. data rate balance")

    if 0 < margin < 10:
        recommendations.append("Link is viable but consider adding fade margin for reliability")
    elif margin >= 10:
        recommendations.append("Excellent link quality - reliable operation expected")

    if power_watts < 1 and margin < 5:
        recommendations.append("Consider increasing transmit power to 1 W for better link margin")

    return recommendations


async def calculate_link_budget(
    provider: TerrainProfileProvider,
    tx: GeoPoint,
    rx: GeoPoint,
    power_watts: float,
    tx_radio: Optional[RadioParams] = None,
    rx_radio: Optional[RadioParams] = None,
    fade_margin_db: Optional[float] = None,
    environment: Optional[str] = None,
    sample_count: Optional[int] = None,
) -> LinkAnalysis:
    """Analyse a link between two points over real terrain.

    When the provider fails the analysis continues on a flat two-point
    profile; the result is then marked ``estimated`` and carries a warning.

    Raises:
        InvalidInputError: if the two endpoints coincide
    """
    tx_radio = replace(tx_radio or RadioParams(), transmit_power_watts=power_watts)
    rx_radio = rx_radio or RadioParams()
    fade_margin_db = settings.FADE_MARGIN_DB if fade_margin_db is None else fade_margin_db
    environment = environment or settings.DEFAULT_ENVIRONMENT
    sample_count = sample_count or settings.LINK_PROFILE_SAMPLES

    distance = distance_km(tx, rx)
    if distance <= 0:
        raise InvalidInputError("Transmitter and receiver locations must differ")

    warnings: List[str] = []
    source = TerrainSource.TERRAIN
    try:
        profile = await provider.get_profile(tx, rx, sample_count)
    except ProviderUnavailable as exc:
        logger.warning("Terrain unavailable for link %s -> %s, using flat profile: %s", tx, rx, exc)
        profile = flat_profile(tx, rx, settings.DEFAULT_ELEVATION_M)
        source = TerrainSource.ESTIMATED
        warnings.append("Calculated without terrain data due to elevation service error")

    clearance = analyze_clearance(profile, tx_radio.antenna_height_m, rx_radio.antenna_height_m, distance)
    los = line_of_sight_clear(profile, tx_radio.antenna_height_m, rx_radio.antenna_height_m)
    path_loss = compute_path_loss(distance, clearance)
    budget = compute_link_budget(tx_radio, rx_radio, distance, path_loss, fade_margin_db, environment)

    logger.debug(
        "Link %.2f km: loss %.1f dB, margin %.1f dB, %s",
        distance, path_loss.total_db, budget.link_margin_db, budget.spreading_factor,
    )

    return LinkAnalysis(
        tx=tx,
        rx=rx,
        distance_km=distance,
        budget=budget,
        clearance=clearance,
        line_of_sight=los,
        terrain=terrain_statistics(profile),
        quality=assess_quality(budget.link_margin_db, clearance.has_obstructions),
        recommendations=generate_recommendations(budget, clearance, distance, power_watts),
        profile=downsample_profile(profile),
        terrain_source=source,
        warnings=warnings,
    )


def link_metadata(radio: Optional[RadioParams] = None) -> Dict[str, Any]:
    """Static radio assumptions reported alongside every link analysis."""
    radio = radio or RadioParams()
    return {
        "frequency_mhz": FREQUENCY_MHZ,
        "wavelength_m": WAVELENGTH_M,
        "antenna_gain_dbi": radio.antenna_gain_dbi,
        "antenna_height_m": radio.antenna_height_m,
        "receiver_sensitivity_dbm": SENSITIVITY_DBM["SF12"],
    }
