"""Propagation model: free-space loss, Fresnel geometry and terrain obstruction.

Distances passed in are kilometres; Fresnel and diffraction geometry is
evaluated in metres internally.
"""
from __future__ import annotations

from math import exp, inf, log10, sqrt
from typing import Sequence

from ..core.errors import ComputationDomainError, InvalidInputError
from ..models import ClearanceAnalysis, Obstruction, TerrainSample
from .constants import EARTH_RADIUS_M, FREQUENCY_HZ, WAVELENGTH_M


def free_space_path_loss_db(distance_km: float, frequency_hz: float = FREQUENCY_HZ) -> float:
    """Calculate free-space path loss in dB.

    FSPL(dB) = 20*log10(d_km) + 20*log10(f_MHz) + 32.44

    Args:
        distance_km: Path length in kilometres, must be > 0
        frequency_hz: Carrier frequency in Hz, must be > 0

    Returns:
        Free-space path loss in dB

    Raises:
        ComputationDomainError: for non-positive distance or frequency
    """
    if distance_km <= 0:
        raise ComputationDomainError(f"FSPL undefined for distance {distance_km} km")
    if frequency_hz <= 0:
        raise ComputationDomainError(f"FSPL undefined for frequency {frequency_hz} Hz")
    return 20 * log10(distance_km) + 20 * log10(frequency_hz / 1e6) + 32.44


def fresnel_radius_m(
    d1_km: float,
    d2_km: float,
    wavelength_m: float = WAVELENGTH_M,
    zone: int = 1,
) -> float:
    """Radius of the n-th Fresnel zone at a point d1 from tx and d2 from rx.

    r = sqrt(n * wavelength * d1 * d2 / (d1 + d2)), distances in metres.
    Returns 0 when the point coincides with both ends.
    """
    d1 = d1_km * 1000.0
    d2 = d2_km * 1000.0
    if d1 + d2 <= 0:
        return 0.0
    return sqrt(max(0.0, zone * wavelength_m * d1 * d2 / (d1 + d2)))


def earth_curvature_m(total_distance_km: float, fraction: float) -> float:
    """Earth bulge in metres at ``fraction`` of the way along the path: d1*d2 / (2*Re)."""
    total_m = total_distance_km * 1000.0
    d1 = total_m * fraction
    d2 = total_m * (1.0 - fraction)
    return (d1 * d2) / (2 * EARTH_RADIUS_M)


def required_fresnel_clearance_fraction(distance_km: float) -> float:
    """Fraction of the first Fresnel zone that must be clear; longer paths need more."""
    if distance_km < 5:
        return 0.6
    if distance_km < 15:
        return 0.7
    return 0.8


def knife_edge_diffraction_loss_db(
    obstacle_height_m: float,
    d1_km: float,
    d2_km: float,
    wavelength_m: float = WAVELENGTH_M,
) -> float:
    """Single knife-edge diffraction loss in dB (never negative).

    The Fresnel-Kirchhoff parameter v = h * sqrt(2 (d1 + d2) / (lambda d1 d2))
    selects one of four piecewise approximations; the result is clamped to 0.

    Args:
        obstacle_height_m: Height of the edge above the reference line (m)
        d1_km: Distance from transmitter to the edge (km)
        d2_km: Distance from the edge to the receiver (km)
        wavelength_m: Carrier wavelength (m)
    """
    d1 = d1_km * 1000.0
    d2 = d2_km * 1000.0
    if d1 <= 0 or d2 <= 0:
        return 0.0

    v = obstacle_height_m * sqrt(2 * (d1 + d2) / (wavelength_m * d1 * d2))

    if v <= -2.4:
        loss = 0.0
    elif v <= 0:
        loss = 20 * log10(0.5 - 0.62 * v)
    elif v <= 2.4:
        loss = 20 * log10(0.5 * exp(-0.95 * v))
    else:
        radicand = max(0.0, 0.1184 - (0.38 - 0.1 * v) ** 2)
        loss = 20 * log10(0.4 - sqrt(radicand))

    return max(0.0, loss)


def analyze_clearance(
    profile: Sequence[TerrainSample],
    tx_height_m: float,
    rx_height_m: float,
    total_distance_km: float,
) -> ClearanceAnalysis:
    """Check Fresnel-zone clearance at every interior sample of a terrain profile.

    The line of sight runs between the two antenna tips (ground + antenna
    height). At each interior sample the required height is the line of sight
    plus the Earth bulge plus the required fraction of the first Fresnel zone;
    terrain above it is an obstruction.

    Raises:
        InvalidInputError: if the profile has fewer than 2 samples or the path
            length is not positive
    """
    if len(profile) < 2:
        raise InvalidInputError(f"Terrain profile needs at least 2 samples, got {len(profile)}")
    if total_distance_km <= 0:
        raise InvalidInputError(f"Path length must be positive, got {total_distance_km} km")

    required_fraction = required_fresnel_clearance_fraction(total_distance_km)
    tx_elevation = profile[0].elevation_m + tx_height_m
    rx_elevation = profile[-1].elevation_m + rx_height_m

    obstructions = []
    min_clearance = inf

    for sample in profile[1:-1]:
        d1 = sample.distance_km
        d2 = total_distance_km - d1
        fraction = d1 / total_distance_km

        los_height = tx_elevation + (rx_elevation - tx_elevation) * fraction
        adjusted_los_height = los_height + earth_curvature_m(total_distance_km, fraction)

        fresnel = fresnel_radius_m(d1, d2)
        required_height = adjusted_los_height + fresnel * required_fraction

        excess = sample.elevation_m - required_height
        if excess > 0:
            obstructions.append(
                Obstruction(
                    distance_km=d1,
                    terrain_elevation_m=sample.elevation_m,
                    required_height_m=required_height,
                    obstruction_m=excess,
                    fresnel_radius_m=fresnel,
                )
            )
        min_clearance = min(min_clearance, -excess)

    return ClearanceAnalysis(
        has_adequate_clearance=not obstructions,
        min_clearance_m=min_clearance,
        obstructions=obstructions,
        required_clearance_fraction=required_fraction,
    )


def line_of_sight_clear(
    profile: Sequence[TerrainSample],
    tx_height_m: float,
    rx_height_m: float,
) -> bool:
    """True when no interior sample rises above the curvature-adjusted line of sight.

    Ignores Fresnel clearance entirely. Profiles with fewer than 3 samples have
    no interior points and are trivially clear.
    """
    if len(profile) < 3:
        return True

    total_distance_km = profile[-1].distance_km
    if total_distance_km <= 0:
        return True

    tx_elevation = profile[0].elevation_m + tx_height_m
    rx_elevation = profile[-1].elevation_m + rx_height_m

    for sample in profile[1:-1]:
        fraction = sample.distance_km / total_distance_km
        los_height = tx_elevation + (rx_elevation - tx_elevation) * fraction
        if sample.elevation_m > los_height + earth_curvature_m(total_distance_km, fraction):
            return False

    return True
