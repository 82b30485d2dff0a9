"""LoRa link budget: EIRP, path loss breakdown, margin and spreading factor."""
from __future__ import annotations

import math
from dataclasses import dataclass
from math import log10
from typing import Optional

from ..core.errors import ComputationDomainError
from ..models import ClearanceAnalysis, LinkBudgetResult, PathLossBreakdown, Quality, RadioParams
from .constants import (
    DEFAULT_ENVIRONMENT_FACTOR,
    DEFAULT_FADE_MARGIN_DB,
    ENVIRONMENT_FACTORS,
    FREQUENCY_MHZ,
    SENSITIVITY_DBM,
    SF_DISTANCE_THRESHOLDS_KM,
    TERRAIN_FACTORS,
)
from .propagation import free_space_path_loss_db, knife_edge_diffraction_loss_db


def watts_to_dbm(watts: float) -> float:
    """Convert power in watts to dBm."""
    if watts <= 0:
        raise ComputationDomainError(f"Power must be positive, got {watts} W")
    return 10 * log10(watts * 1000)


def dbm_to_watts(dbm: float) -> float:
    """Convert power in dBm to watts."""
    return 10 ** ((dbm - 30) / 10)


def optimal_spreading_factor(distance_km: float, environment: Optional[str] = "suburban") -> str:
    """Distance based spreading factor recommendation (SF7 .. SF12).

    The environment factor shrinks the usable range, so the distance is
    divided by it before the thresholds are applied. Unknown environments are
    treated as suburban.
    """
    factor = ENVIRONMENT_FACTORS.get(environment or "", DEFAULT_ENVIRONMENT_FACTOR)
    effective_distance = distance_km / factor

    for threshold_km, sf in SF_DISTANCE_THRESHOLDS_KM:
        if effective_distance <= threshold_km:
            return sf
    return "SF12"


def foliage_loss_db(distance_km: float) -> float:
    if distance_km < 1:
        return 0.0
    if distance_km < 5:
        return 3.0
    return 6.0


def compute_path_loss(distance_km: float, clearance: ClearanceAnalysis) -> PathLossBreakdown:
    """Path loss with terrain consideration.

    Free-space loss is always included. Diffraction is evaluated for the single
    worst obstruction only; a flat penalty of 2 dB per obstruction (max 10 dB)
    is added when there is more than one.
    """
    fspl = free_space_path_loss_db(distance_km)

    diffraction = 0.0
    terrain = 0.0
    worst = clearance.worst_obstruction()
    if worst is not None:
        diffraction = knife_edge_diffraction_loss_db(
            worst.obstruction_m,
            worst.distance_km,
            distance_km - worst.distance_km,
        )
        if len(clearance.obstructions) > 1:
            terrain = float(min(10, len(clearance.obstructions) * 2))

    foliage = foliage_loss_db(distance_km)

    return PathLossBreakdown(
        free_space_db=fspl,
        diffraction_db=diffraction,
        terrain_db=terrain,
        foliage_db=foliage,
        total_db=fspl + diffraction + terrain + foliage,
    )


def margin_adjusted_spreading_factor(distance_km: float, margin_db: float, spreading_factor: str) -> str:
    """Override a spreading factor from the margin it achieves."""
    if margin_db < -10:
        return "SF12"
    if margin_db < -5:
        return "SF11"
    if margin_db < 0:
        return "SF10"
    if margin_db > 20:
        return "SF7" if distance_km < 5 else "SF8"
    return spreading_factor


@dataclass(frozen=True)
class SpreadingFactorResolution:
    provisional_spreading_factor: str
    provisional_margin_db: float
    spreading_factor: str
    margin_db: float


def provisional_margin(rx_signal_dbm: float, spreading_factor: str, fade_margin_db: float) -> float:
    return rx_signal_dbm - SENSITIVITY_DBM[spreading_factor] - fade_margin_db


def resolve_spreading_factor(
    rx_signal_dbm: float,
    distance_km: float,
    fade_margin_db: float,
    environment: Optional[str] = "suburban",
) -> SpreadingFactorResolution:
    """Two-pass spreading factor selection.

    Pass 1 takes the distance based SF and computes a provisional margin with
    its sensitivity. Pass 2 applies the margin override policy to that margin
    and recomputes the final margin with the chosen SF's sensitivity.
    """
    first_sf = optimal_spreading_factor(distance_km, environment)
    first_margin = provisional_margin(rx_signal_dbm, first_sf, fade_margin_db)

    final_sf = margin_adjusted_spreading_factor(distance_km, first_margin, first_sf)
    final_margin = provisional_margin(rx_signal_dbm, final_sf, fade_margin_db)

    return SpreadingFactorResolution(
        provisional_spreading_factor=first_sf,
        provisional_margin_db=first_margin,
        spreading_factor=final_sf,
        margin_db=final_margin,
    )


def reliability_percent(link_margin_db: float) -> float:
    """Map link margin to an expected reliability percentage.

    Note the curve jumps from 100 (just below 0 dB) down to 90 at 0 dB.
    """
    if link_margin_db < -10:
        return 0.0
    if link_margin_db < 0:
        return 50 + (link_margin_db + 10) * 5
    if link_margin_db < 20:
        return 90 + link_margin_db * 0.5
    return 99.9


def assess_quality(link_margin_db: float, has_obstructions: bool) -> Quality:
    if link_margin_db < -5:
        return Quality.POOR
    if link_margin_db < 5 or has_obstructions:
        return Quality.MARGINAL
    if link_margin_db < 15:
        return Quality.GOOD
    return Quality.EXCELLENT


def compute_link_budget(
    tx: RadioParams,
    rx: RadioParams,
    distance_km: float,
    path_loss: PathLossBreakdown,
    fade_margin_db: float = DEFAULT_FADE_MARGIN_DB,
    environment: Optional[str] = "suburban",
) -> LinkBudgetResult:
    """Combine transmitter, path and receiver into a margin and viability verdict.

    Args:
        tx: Transmitter radio parameters (power, gain, losses)
        rx: Receiver radio parameters (gain, losses)
        distance_km: Path length in kilometres
        path_loss: Path loss breakdown for the path
        fade_margin_db: Margin reserved for fading
        environment: Environment used for the distance based SF choice
    """
    tx_power_dbm = watts_to_dbm(tx.transmit_power_watts)
    eirp = tx_power_dbm + tx.antenna_gain_dbi - tx.cable_loss_db - tx.connector_loss_db
    rx_signal = eirp - path_loss.total_db + rx.antenna_gain_dbi - rx.cable_loss_db - rx.connector_loss_db

    resolution = resolve_spreading_factor(rx_signal, distance_km, fade_margin_db, environment)
    margin = resolution.margin_db

    return LinkBudgetResult(
        eirp_dbm=eirp,
        path_loss=path_loss,
        rx_signal_dbm=rx_signal,
        rx_sensitivity_dbm=SENSITIVITY_DBM[resolution.spreading_factor],
        spreading_factor=resolution.spreading_factor,
        link_margin_db=margin,
        reliability_percent=reliability_percent(margin),
        is_viable=margin > 0,
        provisional_spreading_factor=resolution.provisional_spreading_factor,
        provisional_margin_db=resolution.provisional_margin_db,
        tx_power_dbm=tx_power_dbm,
        fade_margin_db=fade_margin_db,
    )


def estimate_coverage_radius_km(
    power_watts: float,
    terrain: str = "rolling",
    radio: RadioParams = RadioParams(),
    safety_margin_db: float = 20.0,
) -> float:
    """Closed-form coverage radius estimate, used when ray-marching is skipped.

    The largest tolerable path loss (EIRP plus receive gain, minus receive
    losses, SF12 sensitivity and a safety margin) is inverted through the
    free-space formula and scaled by a terrain factor.
    """
    eirp = watts_to_dbm(power_watts) + radio.antenna_gain_dbi - radio.cable_loss_db - radio.connector_loss_db
    max_path_loss = (
        eirp
        + radio.antenna_gain_dbi
        - radio.cable_loss_db
        - radio.connector_loss_db
        - SENSITIVITY_DBM["SF12"]
        - safety_margin_db
    )
    factor = TERRAIN_FACTORS.get(terrain, TERRAIN_FACTORS["rolling"])
    distance = 10 ** ((max_path_loss - 20 * log10(FREQUENCY_MHZ) - 32.44) / 20)
    if not math.isfinite(distance):
        raise ComputationDomainError(f"Coverage estimate diverged for {power_watts} W")
    return distance * factor
