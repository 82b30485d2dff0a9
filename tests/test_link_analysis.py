from __future__ import annotations

import asyncio

import pytest

from loraplan.core.errors import InvalidInputError, ProviderUnavailable
from loraplan.geo import destination_point
from loraplan.models import ClearanceAnalysis, GeoPoint, Obstruction, Quality, RadioParams, TerrainSample, TerrainSource
from loraplan.rf.link_budget import compute_link_budget, compute_path_loss
from loraplan.services.elevation import FlatTerrainProvider, build_profile
from loraplan.services.link_analysis import (
    calculate_link_budget,
    downsample_profile,
    generate_recommendations,
    link_metadata,
    terrain_statistics,
)


TX = GeoPoint(40.0, -105.0)
RX = destination_point(TX, 90.0, 10.0)


class FailingProvider:
    name = "failing"

    async def get_profile(self, start, end, sample_count):
        raise ProviderUnavailable("offline")


class RidgeProvider:
    """Flat 100 m terrain with a single 400 m ridge halfway along the path."""

    name = "ridge"

    async def get_profile(self, start, end, sample_count):
        profile = await FlatTerrainProvider(100.0).get_profile(start, end, sample_count)
        mid = sample_count // 2
        ridge = profile[mid]
        profile[mid] = TerrainSample(ridge.distance_km, 400.0, ridge.lat, ridge.lng)
        return profile


def _samples(elevations):
    return [TerrainSample(float(i), e, 0.0, 0.0) for i, e in enumerate(elevations)]


def test_flat_ten_km_link():
    analysis = asyncio.run(calculate_link_budget(FlatTerrainProvider(100.0), TX, RX, 1.0))

    assert analysis.distance_km == pytest.approx(10.0, rel=1e-6)
    assert analysis.terrain_source == TerrainSource.TERRAIN
    assert analysis.warnings == []
    assert analysis.clearance.has_adequate_clearance
    assert analysis.line_of_sight
    assert analysis.budget.path_loss.free_space_db == pytest.approx(111.67, abs=0.01)
    assert analysis.budget.path_loss.diffraction_db == 0.0
    assert analysis.budget.is_viable
    assert analysis.quality == Quality.EXCELLENT
    assert len(analysis.profile) <= 10
    assert analysis.terrain.variation_m == 0.0


def test_provider_failure_uses_flat_profile():
    analysis = asyncio.run(calculate_link_budget(FailingProvider(), TX, RX, 1.0))

    assert analysis.terrain_source == TerrainSource.ESTIMATED
    assert analysis.warnings
    assert len(analysis.profile) == 2
    assert analysis.clearance.obstructions == []
    assert analysis.budget.path_loss.diffraction_db == 0.0
    assert analysis.budget.is_viable


def test_ridge_reported_as_obstruction():
    analysis = asyncio.run(calculate_link_budget(RidgeProvider(), TX, RX, 1.0))

    assert not analysis.clearance.has_adequate_clearance
    assert not analysis.line_of_sight
    assert analysis.quality == Quality.MARGINAL
    assert any("obstruction" in r for r in analysis.recommendations)
    assert analysis.terrain.max_m == 400.0


def test_radio_overrides_apply():
    tall = RadioParams(antenna_height_m=30.0, antenna_gain_dbi=6.0)
    base = asyncio.run(calculate_link_budget(FlatTerrainProvider(), TX, RX, 0.5))
    boosted = asyncio.run(calculate_link_budget(FlatTerrainProvider(), TX, RX, 0.5, tx_radio=tall, rx_radio=tall))

    assert boosted.budget.rx_signal_dbm == pytest.approx(base.budget.rx_signal_dbm + 6.0)
    assert boosted.budget.tx_power_dbm == pytest.approx(base.budget.tx_power_dbm)


def test_coincident_endpoints_rejected():
    with pytest.raises(InvalidInputError):
        asyncio.run(calculate_link_budget(FlatTerrainProvider(), TX, TX, 1.0))


def test_terrain_statistics():
    stats = terrain_statistics(_samples([100.0, 110.0, 105.0, 125.0]))
    assert stats.min_m == 100.0
    assert stats.max_m == 125.0
    assert stats.average_m == pytest.approx(110.0)
    assert stats.variation_m == 25.0
    assert stats.roughness_m == pytest.approx((10 + 5 + 20) / 3)


def test_downsample_profile():
    profile = build_profile([TX] + [RX] * 49, [0.0] * 50)
    reduced = downsample_profile(profile)
    assert len(reduced) == 10
    assert reduced[0] == profile[0]
    assert downsample_profile(profile[:7]) == profile[:7]


def test_recommendations_for_long_weak_link():
    clearance = ClearanceAnalysis(
        False, -12.0,
        [Obstruction(8.0, 300.0, 288.0, 12.0, 30.0)],
        0.8,
    )
    radio = RadioParams(transmit_power_watts=0.5)
    budget = compute_link_budget(radio, RadioParams(), 40.0, compute_path_loss(40.0, clearance), 35.0)
    recommendations = generate_recommendations(budget, clearance, 40.0, 0.5)

    text = " ".join(recommendations)
    assert "8.0 km" in text
    assert "raising antennas by 17 m" in text
    assert "repeaters" in text
    assert "transmit power" in text


def test_link_metadata():
    meta = link_metadata()
    assert meta["frequency_mhz"] == 915.0
    assert meta["wavelength_m"] == pytest.approx(0.3276, abs=1e-4)
