"""Physical constants and LoRa radio parameters for the 915 MHz ISM band."""
from __future__ import annotations

from typing import Dict

LIGHT_SPEED_M_S = 299_792_458.0  # Speed of light in m/s
EARTH_RADIUS_M = 6_371_000.0  # Mean Earth radius in m

FREQUENCY_HZ = 915e6
FREQUENCY_MHZ = FREQUENCY_HZ / 1e6
WAVELENGTH_M = LIGHT_SPEED_M_S / FREQUENCY_HZ  # ~0.3276 m

# Typical LoRa receiver sensitivity by spreading factor (dBm)
SENSITIVITY_DBM: Dict[str, float] = {
    "SF7": -123.0,
    "SF8": -126.0,
    "SF9": -129.0,
    "SF10": -132.0,
    "SF11": -135.0,
    "SF12": -137.0,
}

# Range multipliers used to turn distance into an effective distance
ENVIRONMENT_FACTORS: Dict[str, float] = {
    "rural": 1.0,
    "suburban": 0.8,
    "urban": 0.6,
}
DEFAULT_ENVIRONMENT_FACTOR = ENVIRONMENT_FACTORS["suburban"]

# Upper bound (effective km) for each spreading factor; beyond the last, SF12
SF_DISTANCE_THRESHOLDS_KM = (
    (2.0, "SF7"),
    (5.0, "SF8"),
    (10.0, "SF9"),
    (15.0, "SF10"),
    (25.0, "SF11"),
)

TERRAIN_FACTORS: Dict[str, float] = {
    "flat": 1.0,
    "rolling": 0.7,
    "mountainous": 0.4,
}

DEFAULT_FADE_MARGIN_DB = 15.0
