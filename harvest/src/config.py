"""
Harvester configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files;
portal credentials and the forwarder key are never hardcoded.

CHANGELOG:
- 2026-10-19: Model optional forwarding as ForwardTarget instead of empty strings
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from pydantic import field_validator
from pydantic_settings import BaseSettings

DEFAULT_SEMS_LOGIN_URL = "https://www.semsportal.com/api/v2/Common/CrossLogin"
DEFAULT_SEMS_PLANT_DETAILS_URL = (
    "https://au.semsportal.com/api/v3/PowerStation/GetPlantDetailByPowerstationId"
)
DEFAULT_UV_URL = "https://uvdata.arpansa.gov.au/xml/uvvalues.xml"
DEFAULT_WEATHER_URL_TEMPLATE = (
    "https://api.weather.bom.gov.au/v1/locations/{geocode}/observations"
)


@dataclass(frozen=True)
class ForwardTarget:
    """Destination for the downstream forwarder.

    Attributes:
        base_url: Base URL of the ingest sink (``/v1/ingest/solar`` is appended).
        api_key: Shared secret sent as the ``X-Api-Key`` header.
    """

    base_url: str
    api_key: str


class HarvestSettings(BaseSettings):
    """Configuration for the solar harvester service.

    All values are loaded from environment variables. Required variables
    must be set; optional variables have sensible defaults.

    Attributes:
        database_url: SQLAlchemy async URL (asyncpg for TimescaleDB,
            aiosqlite for local development).
        sems_account: SEMS portal login account.
        sems_password: SEMS portal password.
        sems_station_id: Power station identifier to poll.
        sems_login_url: SEMS cross-login endpoint.
        sems_plant_details_url: SEMS plant details endpoint.
        uv_url: ARPANSA UV index XML document URL.
        uv_station_name: Station ``name`` to pick from the UV document.
        weather_url_template: BOM observations URL with a ``{geocode}`` slot.
        weather_geocode: BOM location geohash.
        poll_interval_s: Fixed seconds between the end of one cycle and the
            start of the next.
        credential_ttl_s: Freshness threshold for the cached SEMS credential.
        http_timeout_s: Timeout applied to every upstream HTTP request.
        utc_offset_minutes: Fixed civil-time offset used for today/yesterday.
        forward_base_url: Optional downstream sink base URL.
        forward_api_key: Shared secret for the downstream sink.
        redis_url: Optional Redis URL for caching the current snapshot.
        cache_ttl_s: TTL of the cached current snapshot.
        cors_origins: Comma-separated list of allowed CORS origins.
        poller_enabled: Start the background poll loop with the API.
        health_file: Optional path of a JSON health file.
        host: Bind address for the HTTP server.
        port: Bind port for the HTTP server.
    """

    database_url: str
    sems_account: str
    sems_password: str
    sems_station_id: str
    sems_login_url: str = DEFAULT_SEMS_LOGIN_URL
    sems_plant_details_url: str = DEFAULT_SEMS_PLANT_DETAILS_URL
    uv_url: str = DEFAULT_UV_URL
    uv_station_name: str = "per"
    weather_url_template: str = DEFAULT_WEATHER_URL_TEMPLATE
    weather_geocode: str = "qd63he"
    poll_interval_s: int = 60
    credential_ttl_s: int = 300
    http_timeout_s: float = 10.0
    utc_offset_minutes: int = 480
    forward_base_url: str | None = None
    forward_api_key: str | None = None
    redis_url: str | None = None
    cache_ttl_s: int = 5
    cors_origins: str = "http://localhost:5173"
    poller_enabled: bool = True
    health_file: str | None = None
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("poll_interval_s")
    @classmethod
    def poll_interval_must_be_reasonable(cls, v: int) -> int:
        """Reject poll intervals that would hammer the SEMS portal."""
        if v < 10:
            raise ValueError("POLL_INTERVAL_S must be >= 10")
        return v

    @field_validator("credential_ttl_s", "cache_ttl_s")
    @classmethod
    def ttl_must_be_positive(cls, v: int) -> int:
        """Validate TTLs are strictly positive."""
        if v <= 0:
            raise ValueError("TTL values must be > 0")
        return v

    @field_validator("http_timeout_s")
    @classmethod
    def http_timeout_must_be_positive(cls, v: float) -> float:
        """Validate that every upstream call carries a bounded timeout."""
        if v <= 0:
            raise ValueError("HTTP_TIMEOUT_S must be > 0")
        return v

    @field_validator("utc_offset_minutes")
    @classmethod
    def utc_offset_must_be_valid(cls, v: int) -> int:
        """Validate the civil-time offset is within +/-14 hours."""
        if abs(v) > 14 * 60:
            raise ValueError("UTC_OFFSET_MINUTES must be between -840 and 840")
        return v

    @field_validator("forward_base_url")
    @classmethod
    def forward_base_url_must_be_http(cls, v: str | None) -> str | None:
        """Normalise an empty FORWARD_BASE_URL to None and check its scheme."""
        if v is None or not v.strip():
            return None
        v = v.strip().rstrip("/")
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("FORWARD_BASE_URL must start with http:// or https://")
        return v

    @field_validator("redis_url", "health_file")
    @classmethod
    def empty_optional_is_none(cls, v: str | None) -> str | None:
        """Treat empty optional strings as unset."""
        if v is None or not v.strip():
            return None
        return v

    @property
    def forward_target(self) -> ForwardTarget | None:
        """Downstream forwarding destination, or None when disabled."""
        if self.forward_base_url is None:
            return None
        return ForwardTarget(
            base_url=self.forward_base_url,
            api_key=self.forward_api_key or "",
        )

    @property
    def utc_offset(self) -> timedelta:
        """Fixed civil-time offset as a timedelta."""
        return timedelta(minutes=self.utc_offset_minutes)

    @property
    def cors_origin_list(self) -> list[str]:
        """CORS origins split from the comma-separated setting."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
