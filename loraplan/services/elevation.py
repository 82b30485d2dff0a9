"""Terrain profile providers.

The RF core only needs ``get_profile(start, end, sample_count)``. Concrete
providers query free elevation APIs over HTTP; ``FailoverTerrainProvider``
chains them behind an injected cache. Any provider failure surfaces as
``ProviderUnavailable`` and callers decide how to degrade (see
``flat_profile``).
"""
from __future__ import annotations

import time
from typing import Any, Callable, Dict, Hashable, List, Optional, Protocol, Sequence

import httpx

from ..core.config import Settings
from ..core.errors import ProviderUnavailable
from ..core.logging import get_logger
from ..geo import distance_km, interpolate_path
from ..models import GeoPoint, TerrainProfile, TerrainSample
from .batching import gather_bounded
from .cache import TTLCache

logger = get_logger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class TerrainProfileProvider(Protocol):
    name: str

    async def get_profile(self, start: GeoPoint, end: GeoPoint, sample_count: int) -> TerrainProfile: ...


def build_profile(points: Sequence[GeoPoint], elevations: Sequence[float]) -> TerrainProfile:
    """Attach distances (km from the first point) to sampled elevations.

    Samples are evenly spaced along the arc; the first distance is exactly 0
    and the last exactly the great-circle length.
    """
    if len(points) != len(elevations):
        raise ValueError(f"{len(points)} points but {len(elevations)} elevations")

    total = distance_km(points[0], points[-1])
    last = len(points) - 1
    profile: TerrainProfile = []
    for i, (point, elevation) in enumerate(zip(points, elevations)):
        if i == 0:
            d = 0.0
        elif i == last:
            d = total
        else:
            d = total * i / last
        profile.append(TerrainSample(distance_km=d, elevation_m=float(elevation), lat=point.lat, lng=point.lng))
    return profile


def flat_profile(start: GeoPoint, end: GeoPoint, elevation_m: float = 100.0) -> TerrainProfile:
    """Two-sample flat profile used when no terrain data is available."""
    return build_profile([start, end], [elevation_m, elevation_m])


class FlatTerrainProvider:
    """Deterministic provider returning constant elevation; never fails."""

    name = "flat"

    def __init__(self, elevation_m: float = 100.0) -> None:
        self.elevation_m = elevation_m

    async def get_profile(self, start: GeoPoint, end: GeoPoint, sample_count: int) -> TerrainProfile:
        points = interpolate_path(start, end, sample_count)
        return build_profile(points, [self.elevation_m] * len(points))


class HttpElevationProvider:
    """Base class for point-elevation HTTP APIs.

    Path points are split into requests of at most ``points_per_request``,
    fetched with bounded concurrency and recombined in path order.
    """

    name = "http"

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        points_per_request: int = 100,
        concurrency: int = 4,
        daily_request_limit: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.url = url
        self.points_per_request = points_per_request
        self.concurrency = concurrency
        self.daily_request_limit = daily_request_limit
        self._clock = clock
        self.request_count = 0
        self._window_start = clock()

    async def get_profile(self, start: GeoPoint, end: GeoPoint, sample_count: int) -> TerrainProfile:
        points = interpolate_path(start, end, sample_count)
        chunks = [points[i:i + self.points_per_request] for i in range(0, len(points), self.points_per_request)]

        factories = [lambda chunk=chunk: self._fetch_chunk(chunk) for chunk in chunks]
        elevations: List[float] = []
        for chunk_elevations in await gather_bounded(factories, self.concurrency):
            elevations.extend(chunk_elevations)

        logger.debug("%s returned %d elevations for %d requests", self.name, len(elevations), len(chunks))
        return build_profile(points, elevations)

    async def _fetch_chunk(self, points: Sequence[GeoPoint]) -> List[float]:
        raise NotImplementedError

    def _check_rate_limit(self) -> None:
        now = self._clock()
        if now - self._window_start > SECONDS_PER_DAY:
            self.request_count = 0
            self._window_start = now
        if self.request_count >= self.daily_request_limit:
            raise ProviderUnavailable(f"Rate limit exceeded for {self.name}", provider=self.name)

    async def _get_json(self, params: Dict[str, str]) -> Any:
        self._check_rate_limit()
        self.request_count += 1
        try:
            response = await self.client.get(self.url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise ProviderUnavailable(
                f"{self.name} API error: {exc.response.status_code}", provider=self.name
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(f"{self.name} request failed: {exc}", provider=self.name) from exc
        except ValueError as exc:
            raise ProviderUnavailable(f"{self.name} returned invalid JSON", provider=self.name) from exc

    def _check_count(self, values: Sequence[Any], expected: int) -> None:
        if len(values) != expected:
            raise ProviderUnavailable(
                f"{self.name} returned {len(values)} elevations for {expected} points", provider=self.name
            )


class OpenMeteoProvider(HttpElevationProvider):
    """Open-Meteo elevation API (free, no key)."""

    name = "open-meteo"

    async def _fetch_chunk(self, points: Sequence[GeoPoint]) -> List[float]:
        data = await self._get_json({
            "latitude": ",".join(f"{p.lat:.6f}" for p in points),
            "longitude": ",".join(f"{p.lng:.6f}" for p in points),
        })
        try:
            values = data["elevation"]
        except (KeyError, TypeError) as exc:
            raise ProviderUnavailable("open-meteo response missing 'elevation'", provider=self.name) from exc

        self._check_count(values, len(points))
        return [float(v) if v is not None else 0.0 for v in values]


class OpenTopoDataProvider(HttpElevationProvider):
    """OpenTopoData public API (ASTER 30 m dataset by default)."""

    name = "opentopodata"

    async def _fetch_chunk(self, points: Sequence[GeoPoint]) -> List[float]:
        data = await self._get_json({"locations": "|".join(f"{p.lat:.6f},{p.lng:.6f}" for p in points)})
        try:
            if data.get("status", "OK") != "OK":
                raise ProviderUnavailable(
                    f"opentopodata status {data.get('status')}: {data.get('error', '')}", provider=self.name
                )
            values = [r.get("elevation") for r in data["results"]]
        except (KeyError, TypeError, AttributeError) as exc:
            raise ProviderUnavailable("opentopodata response missing 'results'", provider=self.name) from exc

        self._check_count(values, len(points))
        return [float(v) if v is not None else 0.0 for v in values]


def _cache_key(start: GeoPoint, end: GeoPoint, sample_count: int) -> Hashable:
    return (round(start.lat, 6), round(start.lng, 6), round(end.lat, 6), round(end.lng, 6), sample_count)


class FailoverTerrainProvider:
    """Try providers in order, caching the first successful profile."""

    name = "failover"

    def __init__(
        self,
        providers: Sequence[TerrainProfileProvider],
        cache: Optional[TTLCache[TerrainProfile]] = None,
    ) -> None:
        if not providers:
            raise ValueError("At least one terrain provider is required")
        self.providers = list(providers)
        self.cache = cache
        self.active_provider: Optional[str] = None

    async def get_profile(self, start: GeoPoint, end: GeoPoint, sample_count: int) -> TerrainProfile:
        key = _cache_key(start, end, sample_count)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Using cached elevation profile for %s", key)
                return list(cached)

        errors = []
        for provider in self.providers:
            try:
                profile = await provider.get_profile(start, end, sample_count)
            except ProviderUnavailable as exc:
                logger.warning("Elevation provider %s failed: %s", provider.name, exc)
                errors.append(f"{provider.name}: {exc}")
                continue

            if self.active_provider != provider.name:
                logger.info("Elevation data now served by %s", provider.name)
            self.active_provider = provider.name
            if self.cache is not None:
                self.cache.set(key, list(profile))
            return profile

        raise ProviderUnavailable("All elevation providers failed: " + "; ".join(errors))

    def stats(self) -> Dict[str, Any]:
        return {
            "active_provider": self.active_provider,
            "providers": [
                {"name": p.name, "request_count": getattr(p, "request_count", None)} for p in self.providers
            ],
            "cache": self.cache.stats() if self.cache is not None else None,
        }


PROVIDER_CLASSES = {
    OpenMeteoProvider.name: OpenMeteoProvider,
    OpenTopoDataProvider.name: OpenTopoDataProvider,
}


def build_terrain_provider(settings: Settings, client: httpx.AsyncClient) -> FailoverTerrainProvider:
    """Assemble the configured provider chain around a shared HTTP client."""
    urls = {
        OpenMeteoProvider.name: settings.OPEN_METEO_URL,
        OpenTopoDataProvider.name: settings.OPENTOPODATA_URL,
    }
    providers: List[TerrainProfileProvider] = []
    for name in settings.ELEVATION_PROVIDERS:
        if name == FlatTerrainProvider.name:
            providers.append(FlatTerrainProvider(settings.DEFAULT_ELEVATION_M))
            continue
        if name not in PROVIDER_CLASSES:
            raise ValueError(f"Unknown elevation provider '{name}'. Available: {sorted(PROVIDER_CLASSES)}")
        providers.append(
            PROVIDER_CLASSES[name](
                client,
                urls[name],
                points_per_request=settings.ELEVATION_POINTS_PER_REQUEST,
                concurrency=settings.ELEVATION_CONCURRENCY,
                daily_request_limit=settings.ELEVATION_DAILY_REQUEST_LIMIT.get(name, 10000),
            )
        )

    cache: TTLCache[TerrainProfile] = TTLCache(
        max_size=settings.ELEVATION_CACHE_SIZE,
        default_ttl=settings.ELEVATION_CACHE_TTL_S,
    )
    return FailoverTerrainProvider(providers, cache)
