"""
Location lookup for login attempts.

GPS coordinates are reverse geocoded when supplied, with IP geolocation as
fallback. Both are best effort: any failure yields None and is logged.
Results are cached (TTL 24 hours, max 10,000 entries).
"""

import logging
import time
from collections import OrderedDict
from typing import Optional, Tuple

import httpx

from core.ip_security import is_private_ip

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown"

_CACHE_TTL = 86400
_CACHE_MAX = 10000


class GeoLocator:
    """Async client for the IP and reverse-geocoding providers."""

    def __init__(
        self,
        ip_url: str = "http://ip-api.com/json/{ip}",
        reverse_url: str = "https://nominatim.openstreetmap.org/reverse",
        timeout: float = 3.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.ip_url = ip_url
        self.reverse_url = reverse_url
        self.timeout = timeout
        self._transport = transport
        self._cache: OrderedDict[str, Tuple[str, float]] = OrderedDict()

    @classmethod
    def from_settings(cls, settings) -> "GeoLocator":
        return cls(
            ip_url=settings.geo_ip_url,
            reverse_url=settings.reverse_geocode_url,
            timeout=settings.geo_timeout_seconds,
        )

    # ==================== CACHE ====================

    def _cache_get(self, key: str) -> Optional[str]:
        if key in self._cache:
            value, ts = self._cache[key]
            if time.time() - ts < _CACHE_TTL:
                self._cache.move_to_end(key)
                return value
            del self._cache[key]
        return None

    def _cache_set(self, key: str, value: str) -> None:
        if len(self._cache) >= _CACHE_MAX:
            self._cache.popitem(last=False)
        self._cache[key] = (value, time.time())

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"User-Agent": "station-admin-api"},
        )

    # ==================== LOOKUPS ====================

    async def resolve_ip(self, ip: Optional[str]) -> Optional[str]:
        if not ip or ip == "unknown" or is_private_ip(ip):
            return None

        cached = self._cache_get(f"ip:{ip}")
        if cached is not None:
            return cached

        try:
            async with self._client() as client:
                r = await client.get(
                    self.ip_url.format(ip=ip),
                    params={"fields": "status,city,regionName,country"},
                )
                data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"IP geolocation failed for {ip}: {e}")
            return None

        if data.get("status") != "success":
            return None
        parts = [data.get("city"), data.get("regionName"), data.get("country")]
        location = ", ".join(p for p in parts if p)
        if not location:
            return None
        self._cache_set(f"ip:{ip}", location)
        return location

    async def reverse_geocode(self, latitude: float, longitude: float) -> Optional[str]:
        key = f"gps:{latitude:.4f},{longitude:.4f}"
        cached = self._cache_get(key)
        if cached is not None:
            return cached

        try:
            async with self._client() as client:
                r = await client.get(
                    self.reverse_url,
                    params={"lat": latitude, "lon": longitude, "format": "json"},
                )
                r.raise_for_status()
                data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Reverse geocoding failed for {latitude},{longitude}: {e}")
            return None

        location = data.get("display_name")
        if not location:
            return None
        self._cache_set(key, location)
        return location

    async def locate(
        self,
        ip: Optional[str],
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> Tuple[str, Optional[str]]:
        """
        Returns (location, source) where source is "gps", "ip" or None.
        Coordinates are used only when both are present and non-zero.
        """
        if latitude and longitude:
            location = await self.reverse_geocode(latitude, longitude)
            if location:
                return location, "gps"

        location = await self.resolve_ip(ip)
        if location:
            return location, "ip"
        return UNKNOWN_LOCATION, None
