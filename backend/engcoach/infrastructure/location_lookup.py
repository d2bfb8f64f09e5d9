"""Location Lookup — best-effort approximate location for a client address.

Invariants:
    - locate() never raises: any failure returns LOCATION_NOT_AVAILABLE
    - Result format is "city, region, country_name"
    - Bounded by a request timeout
"""

import logging

import httpx

from engcoach.core.coach_strings import LOCATION_NOT_AVAILABLE

logger = logging.getLogger(__name__)


class IpLocationLookup:
    """ipapi-style JSON lookup over httpx."""

    def __init__(
        self,
        url_template: str = "https://ipapi.co/{ip}/json/",
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url_template = url_template
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _url_for(self, ip_address: str | None) -> str:
        if ip_address:
            return self.url_template.format(ip=ip_address)
        # No client address: ask for the caller's own location
        return self.url_template.replace("{ip}/", "").replace("{ip}", "")

    async def locate(self, ip_address: str | None) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport,
            ) as client:
                response = await client.get(self._url_for(ip_address))
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not fetch user location: {e}")
            return LOCATION_NOT_AVAILABLE

        if not isinstance(data, dict) or data.get("error"):
            return LOCATION_NOT_AVAILABLE
        parts = [data.get("city"), data.get("region"), data.get("country_name")]
        if not all(parts):
            return LOCATION_NOT_AVAILABLE
        return ", ".join(str(p) for p in parts)
