"""
GoodWe SEMS portal client: login exchange and plant-details fetch.

Uses an httpx.AsyncClient lent by the caller; the client's configured
timeout bounds every request. Failures are raised as typed errors and never
retried here: the poller's fixed interval is the only retry mechanism.

Operations:
- login(): CrossLogin exchange, returns the opaque credential blob.
- fetch_solar(credential): plant details for the configured power station.
- parse_plant_kpi(raw_payload): re-derive KPI fields from a stored payload.

CHANGELOG:
- 2026-10-19: Expose parse_plant_kpi for re-deriving counters from raw payloads
- 2026-10-19: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from harvest.src.config import (
    DEFAULT_SEMS_LOGIN_URL,
    DEFAULT_SEMS_PLANT_DETAILS_URL,
)
from harvest.src.errors import AuthError, UpstreamError
from harvest.src.models import Credential, SolarPartial

logger = logging.getLogger(__name__)

# base64 of
# {"uid":"","timestamp":0,"token":"","client":"web","version":"","language":"en"}
ANONYMOUS_TOKEN = (
    "eyJ1aWQiOiIiLCJ0aW1lc3RhbXAiOjAsInRva2VuIjoiIiwiY2xpZW50Ijoid2ViIiwidmVyc2lv"
    "biI6IiIsImxhbmd1YWdlIjoiZW4ifQ=="
)


@dataclass(frozen=True)
class PlantKpi:
    """KPI block of a plant-details response.

    Attributes:
        current_power_w: Instantaneous AC output (``pac``).
        today_kwh: Generation so far today (``power``).
        month_kwh: Generation so far this month (``month_generation``).
        lifetime_kwh: Lifetime generation (``total_power``).
    """

    current_power_w: float
    today_kwh: float | None
    month_kwh: float | None
    lifetime_kwh: float | None


def encode_token(token_blob: dict[str, Any]) -> str:
    """Encode a credential blob for the SEMS ``token`` header."""
    serialized = json.dumps(token_blob, separators=(",", ":"))
    return base64.b64encode(serialized.encode("utf-8")).decode("ascii")


def _optional_float(value: Any) -> float | None:
    """Coerce a KPI value to float, or None when absent or non-numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_plant_kpi(raw_payload: dict[str, Any]) -> PlantKpi:
    """Extract the KPI block from a plant-details response.

    Args:
        raw_payload: A SEMS ``GetPlantDetailByPowerstationId`` response body,
            either fresh from the portal or re-read from the store.

    Returns:
        PlantKpi with the power reading and kWh counters.

    Raises:
        UpstreamError: If ``data.kpi.pac`` is missing or not numeric.
    """
    data = raw_payload.get("data") if isinstance(raw_payload, dict) else None
    kpi = data.get("kpi") if isinstance(data, dict) else None
    if not isinstance(kpi, dict):
        raise UpstreamError("Plant details body has no data.kpi object")

    pac = _optional_float(kpi.get("pac"))
    if pac is None:
        raise UpstreamError("Plant details body has no numeric data.kpi.pac")

    return PlantKpi(
        current_power_w=pac,
        today_kwh=_optional_float(kpi.get("power")),
        month_kwh=_optional_float(kpi.get("month_generation")),
        lifetime_kwh=_optional_float(kpi.get("total_power")),
    )


class SemsClient:
    """Client for the two SEMS endpoints the harvester needs.

    Args:
        http: Shared async HTTP client owned by the caller.
        account: SEMS login account.
        password: SEMS login password.
        station_id: Power station to fetch plant details for.
        login_url: CrossLogin endpoint.
        plant_details_url: Plant details endpoint.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        account: str,
        password: str,
        station_id: str,
        login_url: str = DEFAULT_SEMS_LOGIN_URL,
        plant_details_url: str = DEFAULT_SEMS_PLANT_DETAILS_URL,
    ) -> None:
        self._http = http
        self._account = account
        self._password = password
        self._station_id = station_id
        self._login_url = login_url
        self._plant_details_url = plant_details_url

    async def login(self) -> dict[str, Any]:
        """Perform the CrossLogin exchange.

        Returns:
            The opaque ``data`` object of the login response.

        Raises:
            AuthError: On transport errors, non-2xx status, a non-JSON body,
                ``hasError`` set, or a body without a usable ``data`` object.
        """
        try:
            response = await self._http.post(
                self._login_url,
                json={"account": self._account, "pwd": self._password},
                headers={"token": ANONYMOUS_TOKEN, "Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise AuthError(f"SEMS login request failed: {exc!r}") from exc

        if not response.is_success:
            raise AuthError(f"SEMS login failed (HTTP {response.status_code})")

        try:
            body = response.json()
        except ValueError as exc:
            raise AuthError("SEMS login returned a non-JSON body") from exc

        if (
            not isinstance(body, dict)
            or body.get("hasError")
            or str(body.get("code", 0)) != "0"
        ):
            msg = body.get("msg") if isinstance(body, dict) else None
            raise AuthError(f"SEMS login rejected: {msg or 'unknown error'}")

        data = body.get("data")
        if not isinstance(data, dict) or not data.get("token"):
            raise AuthError("SEMS login body has no token data")

        logger.info("SEMS login succeeded")
        return data

    async def fetch_solar(self, credential: Credential) -> SolarPartial:
        """Fetch plant details for the configured station.

        Args:
            credential: Current SEMS credential.

        Returns:
            SolarPartial with the power reading and the full raw body.

        Raises:
            UpstreamError: On transport errors, any non-2xx status (including
                401), a non-JSON body, ``hasError`` set, or missing KPI data.
        """
        try:
            response = await self._http.post(
                self._plant_details_url,
                data={"powerStationId": self._station_id},
                headers={
                    "token": encode_token(credential.token_blob),
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as exc:
            raise UpstreamError(f"SEMS plant details request failed: {exc!r}") from exc

        if not response.is_success:
            raise UpstreamError(
                f"SEMS plant details failed (HTTP {response.status_code})"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamError("SEMS plant details returned a non-JSON body") from exc

        if not isinstance(body, dict):
            raise UpstreamError("SEMS plant details body is not an object")
        if body.get("hasError"):
            raise UpstreamError(
                f"SEMS plant details rejected: {body.get('msg') or 'unknown error'}"
            )

        kpi = parse_plant_kpi(body)
        logger.info("Fetched solar data: %s W", kpi.current_power_w)

        return SolarPartial(
            current_power_w=kpi.current_power_w,
            today_kwh=kpi.today_kwh,
            month_kwh=kpi.month_kwh,
            lifetime_kwh=kpi.lifetime_kwh,
            raw_payload=body,
        )
