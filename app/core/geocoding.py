import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

import aiohttp

from app.core.geofencing import format_coordinates

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class Resolved:
    address: str

@dataclass(frozen=True)
class Fallback:
    address: str
    reason: str = ""

AddressResolution = Union[Resolved, Fallback]

class Geocoder:
    """Best-effort reverse geocoding against the Google Geocoding REST API"""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession,
        timeout: float = 10
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.session_factory = session_factory
        self.timeout = timeout

    async def resolve_address(self, lat: float, lng: float) -> AddressResolution:
        """
        Resolve a human-readable address for a coordinate pair.

        Never raises: any HTTP, network or parse failure yields a
        ``Fallback`` holding the coordinates formatted to 6 decimal places.
        """
        fallback_address = format_coordinates(lat, lng)

        try:
            address = await self._lookup(lat, lng)
        except Exception as e:
            logger.error(f"Error getting address from coordinates: {e}")
            return Fallback(fallback_address, reason=str(e))

        if not address:
            return Fallback(fallback_address, reason="no results")
        return Resolved(address)

    async def _lookup(self, lat: float, lng: float) -> Optional[str]:
        params = {"latlng": f"{lat},{lng}", "key": self.api_key}

        async with self.session_factory() as session:
            async with session.get(
                self.api_url,
                params=params,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                if not 200 <= response.status < 300:
                    logger.warning(f"Geocoding API error: {response.status}")
                    return None
                data: Dict[str, Any] = await response.json()

        results = data.get("results") or []
        if not results:
            return None
        return results[0].get("formatted_address")
