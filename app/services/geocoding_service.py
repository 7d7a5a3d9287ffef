import asyncio
import logging
from typing import Any, Dict, Optional

from geopy.exc import GeocoderServiceError, GeocoderTimedOut
from geopy.geocoders import Nominatim

logger = logging.getLogger(__name__)

class ReverseGeocoder:
    """
    Turns coordinates into address/city/country using Nominatim.

    Lookups are best effort: any geocoder error or timeout returns None and
    the caller keeps the raw coordinates.
    """

    def __init__(self, user_agent: str, timeout_seconds: float = 3.0, geolocator=None):
        self.timeout_seconds = timeout_seconds
        self._geolocator = geolocator or Nominatim(user_agent=user_agent, timeout=timeout_seconds)

    def _reverse(self, latitude: float, longitude: float) -> Optional[Dict[str, Any]]:
        location = self._geolocator.reverse((latitude, longitude), exactly_one=True, language="en")
        if location is None:
            return None
        address = location.raw.get("address", {})
        return {
            "address": location.address,
            "city": address.get("city") or address.get("town") or address.get("village"),
            "country": address.get("country"),
        }

    async def reverse(self, latitude: float, longitude: float) -> Optional[Dict[str, Any]]:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._reverse, latitude, longitude),
                timeout=self.timeout_seconds
            )
        except (GeocoderTimedOut, GeocoderServiceError, asyncio.TimeoutError) as e:
            logger.warning(f"Reverse geocoding failed for ({latitude}, {longitude}): {e}")
            return None
        except Exception as e:
            logger.warning(f"Unexpected reverse geocoding error: {e}")
            return None

    async def enrich(self, location: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Return the location with address fields added when the lookup succeeds."""
        if not location:
            return location
        latitude, longitude = location.get("latitude"), location.get("longitude")
        if latitude is None or longitude is None:
            return location
        resolved = await self.reverse(latitude, longitude)
        if not resolved:
            return location
        enriched = dict(location)
        for key, value in resolved.items():
            if value and not enriched.get(key):
                enriched[key] = value
        return enriched
