# File: civictrack/services/geocoding.py
"""Forward and reverse geocoding against Nominatim (OpenStreetMap).

No API key; availability is best effort. Forward lookups that fail are
reported as ``GeocodingError``; ``resolve_or_default`` turns any failure into
the configured default center so the map always has somewhere to look.
"""
from __future__ import annotations

import logging
from typing import Optional

import requests

from civictrack.core.config import settings
from civictrack.services.map_sync import LatLng

logger = logging.getLogger(__name__)

# centers known without a network round trip
KNOWN_POSTAL_CENTERS: dict[str, LatLng] = {
    "388001": LatLng(22.5645, 72.9289),  # Anand
}


class GeocodingError(Exception):
    pass


class NominatimGeocoder:
    def __init__(
        self,
        search_url: str,
        reverse_url: str,
        default_center: LatLng,
        user_agent: str = "civictrack/1.0",
        timeout: float = 10.0,
        country: str = "India",
        known_centers: Optional[dict[str, LatLng]] = None,
    ):
        self.search_url = search_url
        self.reverse_url = reverse_url
        self.default_center = default_center
        self.timeout = timeout
        self.country = country
        self.known_centers = dict(KNOWN_POSTAL_CENTERS if known_centers is None else known_centers)
        self.headers = {"User-Agent": user_agent, "Accept-Language": "en"}

    @classmethod
    def from_settings(cls) -> "NominatimGeocoder":
        return cls(
            search_url=settings.nominatim_search_url,
            reverse_url=settings.nominatim_reverse_url,
            default_center=LatLng(settings.default_lat, settings.default_lng),
            user_agent=settings.geocoder_user_agent,
            timeout=settings.geocoder_timeout,
            country=settings.geocoder_country,
        )

    def _get(self, url: str, params: dict):
        r = requests.get(url, params=params, headers=self.headers, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def _search(self, query: str, label: str) -> LatLng:
        try:
            data = self._get(self.search_url, {"format": "json", "q": query, "limit": 1})
        except (requests.RequestException, ValueError) as e:
            raise GeocodingError(f"lookup failed for {label}: {e}") from e
        if not data or not isinstance(data, list):
            raise GeocodingError(f"no location data found for {label}")
        try:
            return LatLng(float(data[0]["lat"]), float(data[0]["lon"]))
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodingError(f"malformed result for {label}") from e

    def resolve(self, postal_code: str) -> LatLng:
        if postal_code in self.known_centers:
            return self.known_centers[postal_code]
        return self._search(f"{postal_code}, {self.country}", postal_code)

    def locate_address(self, address: str, postal_code: str) -> LatLng:
        """Street-level lookup, scoped by postal code. Raises ``GeocodingError``."""
        address = (address or "").strip()
        if not address:
            raise GeocodingError("address is empty")
        return self._search(f"{address}, {postal_code}, {self.country}", address)

    def resolve_or_default(self, postal_code: Optional[str]) -> tuple[LatLng, bool]:
        """Return ``(center, fell_back)``."""
        if not postal_code:
            return self.default_center, True
        try:
            return self.resolve(postal_code), False
        except GeocodingError as e:
            logger.warning("Geocoding degraded to default center: %s", e)
            return self.default_center, True

    def reverse(self, lat: float, lng: float) -> str:
        try:
            data = self._get(
                self.reverse_url,
                {"format": "json", "lat": lat, "lon": lng, "zoom": 18, "addressdetails": 1},
            )
            if data and data.get("display_name"):
                return data["display_name"]
        except (requests.RequestException, ValueError, AttributeError) as e:
            logger.warning("Reverse geocoding failed for %s,%s: %s", lat, lng, e)
        return f"Location at {lat:.6f}, {lng:.6f}"


geocoder = NominatimGeocoder.from_settings()

def get_geocoder() -> NominatimGeocoder:
    return geocoder
