"""
Best-effort UV index and air temperature fetchers.

UV comes from the ARPANSA ``uvvalues.xml`` document, temperature from the
Bureau of Meteorology observations API. Both are enrichments of the solar
reading: every failure is logged and converted into ``None`` so a weather
outage can never fail a poll cycle.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-006)

TODO:
- None
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET

import httpx

from harvest.src.config import DEFAULT_UV_URL, DEFAULT_WEATHER_URL_TEMPLATE
from harvest.src.errors import UpstreamError

logger = logging.getLogger(__name__)


def parse_uv_index(document: str, station_name: str) -> float:
    """Pick the UV index of *station_name* out of an ARPANSA XML document.

    Args:
        document: Raw XML text (``<stations><location>...</location></stations>``).
        station_name: Value of the ``<name>`` element to match.

    Returns:
        The station's UV index.

    Raises:
        UpstreamError: If the document is not XML, the station is missing,
            or its index is not numeric.
    """
    try:
        root = ET.fromstring(document)
    except ET.ParseError as exc:
        raise UpstreamError(f"UV document is not valid XML: {exc}") from exc

    for location in root.iter("location"):
        if (location.findtext("name") or "").strip() != station_name:
            continue
        raw_index = location.findtext("index")
        try:
            return float(raw_index)  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise UpstreamError(
                f"UV index for station '{station_name}' is not numeric: {raw_index!r}"
            ) from exc

    raise UpstreamError(f"Station '{station_name}' not found in UV document")


class WeatherClient:
    """Unauthenticated client for the UV and weather observation feeds.

    Args:
        http: Shared async HTTP client owned by the caller.
        uv_url: URL of the ARPANSA UV XML document.
        weather_url_template: BOM observations URL with a ``{geocode}`` slot.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        uv_url: str = DEFAULT_UV_URL,
        weather_url_template: str = DEFAULT_WEATHER_URL_TEMPLATE,
    ) -> None:
        self._http = http
        self._uv_url = uv_url
        self._weather_url_template = weather_url_template

    async def fetch_uv(self, station_name: str) -> float | None:
        """Return the current UV index for *station_name*, or None on any failure."""
        try:
            response = await self._http.get(self._uv_url)
            response.raise_for_status()
            uv_index = parse_uv_index(response.text, station_name)
        except (httpx.HTTPError, UpstreamError):
            logger.warning("Error getting UV level for %s", station_name, exc_info=True)
            return None
        except Exception:
            logger.error(
                "Unexpected error getting UV level for %s",
                station_name,
                exc_info=True,
            )
            return None

        logger.info("Fetched UV level: %s", uv_index)
        return uv_index

    async def fetch_weather(self, geocode: str) -> float | None:
        """Return the observed air temperature at *geocode*, or None on any failure."""
        url = self._weather_url_template.format(geocode=geocode)
        try:
            response = await self._http.get(url)
            response.raise_for_status()
            body = response.json()
            temperature = float(body["data"]["temp"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError):
            logger.warning(
                "Error getting weather details for %s", geocode, exc_info=True
            )
            return None
        except Exception:
            logger.error(
                "Unexpected error getting weather details for %s",
                geocode,
                exc_info=True,
            )
            return None

        logger.info("Fetched weather details: %s C", temperature)
        return temperature
